"""Height-field surface built from elevation samples, with ray intersection."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import numpy as np
from loguru import logger

from ..data.structures import Cell, Intersection
from ..geometry.ray import Ray
from ..geometry.vector import EPSILON, GridCoordinates, GridIndex, Point3, Vector3
from ..io.samplers import ElevationSampler

__all__ = ["HeightMap", "HeightMapError", "OutOfExtentError"]


class HeightMapError(ValueError):
    """Raised when a height map cannot be built from the given inputs."""


class OutOfExtentError(HeightMapError):
    """Raised when a lookup falls outside the grid footprint."""


@dataclass(frozen=True, slots=True)
class _Run:
    """Span of columns crossed by the ray while it stays inside one row.

    The ray height along the run is ``init_y + slope_y * (t - t_from)``.
    """

    row: int
    col_from: int
    col_to: int
    t_from: float
    t_to: float
    init_y: float
    slope_y: float

    def height_at(self, t: float) -> float:
        return self.init_y + self.slope_y * (t - self.t_from)

    @property
    def lowest_height(self) -> float:
        return min(self.init_y, self.height_at(self.t_to))

    def columns(self) -> Iterator[int]:
        step = 1 if self.col_to >= self.col_from else -1
        return iter(range(self.col_from, self.col_to + step, step))


class HeightMap:
    """Terrain surface over a grid of cells, queried with rays.

    Column indices follow world x and row indices follow world z. The surface
    of every cell is the pair of triangles obtained by splitting it along the
    top-left/bottom-right diagonal. Instances never change after construction,
    so any number of threads may query one concurrently.
    """

    def __init__(
        self,
        sampler: ElevationSampler,
        position: Point3,
        width: float,
        height: float,
        depth: float,
        material: Any = None,
        *,
        tolerance: float = EPSILON,
    ) -> None:
        image_width = int(sampler.width)
        image_height = int(sampler.height)
        if image_width < 2 or image_height < 2:
            raise HeightMapError(
                f"Elevation sampler must be at least 2x2, got {image_width}x{image_height}"
            )
        if width <= 0 or depth <= 0:
            raise HeightMapError("Height map width and depth must be positive")
        if height < 0:
            raise HeightMapError("Height map height scale must not be negative")
        if tolerance <= 0:
            raise HeightMapError("Tolerance must be positive")

        samples = np.empty((image_height, image_width), dtype=np.float64)
        for row in range(image_height):
            for col in range(image_width):
                samples[row, col] = sampler.elevation_at(row, col)
        if not np.all(np.isfinite(samples)):
            raise HeightMapError("Elevation samples must be finite")
        if np.any(samples < 0):
            raise HeightMapError("Elevation samples must not be negative")

        self._rows = image_height - 1
        self._cols = image_width - 1
        corners = np.stack(
            (samples[:-1, :-1], samples[:-1, 1:], samples[1:, :-1], samples[1:, 1:]),
            axis=-1,
        )
        self._corners = np.ascontiguousarray(corners.reshape(self._rows * self._cols, 4))
        self._max_heights = self._corners.max(axis=1)
        self._corners.setflags(write=False)
        self._max_heights.setflags(write=False)

        self._position = position
        self._width = float(width)
        self._height = float(height)
        self._depth = float(depth)
        self._material = material
        self._tolerance = float(tolerance)
        self._width_ratio = self._cols / self._width
        self._depth_ratio = self._rows / self._depth
        self._max_elevation = float(self._max_heights.max())
        self._aabb_min = position
        self._aabb_max = position + Vector3(
            self._width, self._height * self._max_elevation, self._depth
        )

        logger.debug(
            "Built height map with {}x{} cells at {} (max elevation {:.4f})",
            self._rows,
            self._cols,
            position,
            self._max_elevation,
        )

    # Accessors -------------------------------------------------------
    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def position(self) -> Point3:
        return self._position

    @property
    def material(self) -> Any:
        return self._material

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def depth(self) -> float:
        return self._depth

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @property
    def max_elevation(self) -> float:
        return self._max_elevation

    @property
    def bounding_box(self) -> tuple[Point3, Point3]:
        return self._aabb_min, self._aabb_max

    def cell(self, row: int, col: int) -> Cell:
        if not (0 <= row < self._rows and 0 <= col < self._cols):
            raise OutOfExtentError(
                f"Cell ({row}, {col}) outside grid of {self._rows}x{self._cols} cells"
            )
        top_left, top_right, bottom_left, bottom_right = self._corners[
            row * self._cols + col
        ].tolist()
        return Cell(top_left, top_right, bottom_left, bottom_right)

    def base_coordinates(self, position: Point3) -> GridCoordinates:
        return GridCoordinates(
            row=(position.z - self._position.z) * self._depth_ratio,
            col=(position.x - self._position.x) * self._width_ratio,
        )

    def int_base_coordinates(self, position: Point3) -> GridIndex:
        coordinates = self.base_coordinates(position)
        return GridIndex(row=math.floor(coordinates.row), col=math.floor(coordinates.col))

    def cell_on_position(self, position: Point3) -> Cell:
        index = self.int_base_coordinates(position)
        if not (0 <= index.row < self._rows and 0 <= index.col < self._cols):
            raise OutOfExtentError(f"{position} lies outside the height map footprint")
        return self.cell(index.row, index.col)

    # Queries ---------------------------------------------------------
    def find_intersection(self, ray: Ray) -> Intersection | None:
        """Return the first point where ``ray`` strikes the surface, if any."""

        interval = self.intersect_bounding_box(ray)
        if interval is None:
            return None
        t_low, t_high = interval
        if t_high < 0.0:
            return None

        t_entry = max(t_low, 0.0)
        entry = ray.point_at(t_entry)
        found = self._traverse(entry, t_entry, t_high, ray)
        if found is None:
            return None

        t, normal, index = found
        t = min(max(t, t_entry), t_high)
        return Intersection(t=t, normal=normal, point=ray.point_at(t), cell=index)

    def intersect_bounding_box(self, ray: Ray) -> tuple[float, float] | None:
        """Slab test against the bounding box.

        Returns the raw ``(t_low, t_high)`` interval, which starts behind the
        ray origin when the origin lies inside the box, or ``None`` when the
        supporting line misses the box.
        """

        interval: tuple[float, float] | None = (-math.inf, math.inf)
        interval = self._intersect_axis(0, ray, *interval)
        if interval is None:
            return None
        interval = self._intersect_height_axis(ray, *interval)
        if interval is None:
            return None
        return self._intersect_axis(2, ray, *interval)

    def _intersect_axis(
        self, axis: int, ray: Ray, t_low: float, t_high: float
    ) -> tuple[float, float] | None:
        return _fold_slab(
            ray.origin[axis],
            ray.direction[axis],
            self._aabb_min[axis],
            self._aabb_max[axis],
            t_low,
            t_high,
            self._tolerance,
        )

    def _intersect_height_axis(
        self, ray: Ray, t_low: float, t_high: float
    ) -> tuple[float, float] | None:
        return _fold_slab(
            ray.origin.y,
            ray.direction.y,
            self._world_height(0.0),
            self._world_height(self._max_elevation),
            t_low,
            t_high,
            self._tolerance,
        )

    # Traversal -------------------------------------------------------
    def _traverse(
        self, entry: Point3, t_entry: float, t_exit: float, ray: Ray
    ) -> tuple[float, Vector3, GridIndex] | None:
        grid_z0 = (ray.origin.z - self._position.z) * self._depth_ratio
        grid_dz = ray.direction.z * self._depth_ratio
        row = self._clamp(math.floor(self.base_coordinates(entry).row), self._rows)

        # Crossing less than `tolerance` rows over the interval means one run.
        if grid_dz == 0.0 or abs(grid_dz) * (t_exit - t_entry) <= self._tolerance:
            return self._check_run(self._make_run(row, t_entry, t_exit, ray), ray)

        step = 1 if grid_dz > 0 else -1
        t_from = t_entry
        while 0 <= row < self._rows:
            boundary = row + 1 if step > 0 else row
            t_to = min(max((boundary - grid_z0) / grid_dz, t_from), t_exit)
            found = self._check_run(self._make_run(row, t_from, t_to, ray), ray)
            if found is not None:
                return found
            if t_to >= t_exit:
                break
            t_from = t_to
            row += step
        return None

    def _make_run(self, row: int, t_from: float, t_to: float, ray: Ray) -> _Run:
        grid_x0 = (ray.origin.x - self._position.x) * self._width_ratio
        grid_dx = ray.direction.x * self._width_ratio
        x_from = grid_x0 + grid_dx * t_from
        x_to = grid_x0 + grid_dx * t_to
        if x_to >= x_from:
            col_from = math.floor(x_from - self._tolerance)
            col_to = math.floor(x_to + self._tolerance)
        else:
            col_from = math.floor(x_from + self._tolerance)
            col_to = math.floor(x_to - self._tolerance)
        return _Run(
            row=row,
            col_from=self._clamp(col_from, self._cols),
            col_to=self._clamp(col_to, self._cols),
            t_from=t_from,
            t_to=t_to,
            init_y=ray.origin.y + ray.direction.y * t_from,
            slope_y=ray.direction.y,
        )

    def _check_run(self, run: _Run, ray: Ray) -> tuple[float, Vector3, GridIndex] | None:
        start = run.row * self._cols
        low, high = sorted((run.col_from, run.col_to))
        run_top = self._world_height(float(self._max_heights[start + low : start + high + 1].max()))
        if run.lowest_height > run_top + self._tolerance:
            return None

        for col in run.columns():
            t_a, t_b = self._column_window(col, run, ray)
            if t_a > t_b + self._slack(t_b):
                continue
            cell_top = self._world_height(float(self._max_heights[start + col]))
            if min(run.height_at(t_a), run.height_at(t_b)) > cell_top + self._tolerance:
                continue
            found = self._intersect_cell(run.row, col, ray, t_a, t_b)
            if found is not None:
                t, normal = found
                return t, normal, GridIndex(run.row, col)
        return None

    def _column_window(self, col: int, run: _Run, ray: Ray) -> tuple[float, float]:
        grid_dx = ray.direction.x * self._width_ratio
        if grid_dx == 0.0 or abs(grid_dx) * (run.t_to - run.t_from) <= self._tolerance:
            return run.t_from, run.t_to
        grid_x0 = (ray.origin.x - self._position.x) * self._width_ratio
        t_a = (col - grid_x0) / grid_dx
        t_b = (col + 1 - grid_x0) / grid_dx
        if t_a > t_b:
            t_a, t_b = t_b, t_a
        return max(t_a, run.t_from), min(t_b, run.t_to)

    def _intersect_cell(
        self, row: int, col: int, ray: Ray, t_min: float, t_max: float
    ) -> tuple[float, Vector3] | None:
        x0 = self._position.x + col / self._width_ratio
        x1 = self._position.x + (col + 1) / self._width_ratio
        z0 = self._position.z + row / self._depth_ratio
        z1 = self._position.z + (row + 1) / self._depth_ratio
        top_left, top_right, bottom_left, bottom_right = self._corners[
            row * self._cols + col
        ].tolist()
        a = Point3(x0, self._world_height(top_left), z0)
        b = Point3(x1, self._world_height(top_right), z0)
        c = Point3(x0, self._world_height(bottom_left), z1)
        d = Point3(x1, self._world_height(bottom_right), z1)

        best: tuple[float, Vector3] | None = None
        for triangle in ((a, b, d), (a, d, c)):
            found = _intersect_triangle(ray, *triangle, self._tolerance)
            if found is None:
                continue
            t = found[0]
            if t < t_min - self._slack(t_min) or t > t_max + self._slack(t_max):
                continue
            if best is None or t < best[0]:
                best = found
        return best

    # Helpers ---------------------------------------------------------
    def _world_height(self, elevation: float) -> float:
        return self._position.y + self._height * elevation

    def _slack(self, t: float) -> float:
        return self._tolerance * max(1.0, abs(t))

    @staticmethod
    def _clamp(index: int, count: int) -> int:
        return min(max(index, 0), count - 1)

    # Debug representation --------------------------------------------
    def __str__(self) -> str:
        lines = ["heightMap("]
        for row in range(self._rows):
            cells = " ".join(str(self.cell(row, col)) for col in range(self._cols))
            lines.append(f"  {cells}")
        lines.append(
            ") with parameters (height, width, depth) set to "
            f"({self._height:g}, {self._width:g}, {self._depth:g}) at {self._position}"
        )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"HeightMap(rows={self._rows}, cols={self._cols}, position={self._position!r}, "
            f"width={self._width:g}, height={self._height:g}, depth={self._depth:g})"
        )


def _fold_slab(
    origin: float,
    direction: float,
    lower: float,
    upper: float,
    t_low: float,
    t_high: float,
    tolerance: float,
) -> tuple[float, float] | None:
    if abs(direction) <= tolerance:
        # Parallel to the slab faces: the origin decides for every t.
        if origin < lower or origin > upper:
            return None
        return t_low, t_high

    t_near = (lower - origin) / direction
    t_far = (upper - origin) / direction
    if t_near > t_far:
        t_near, t_far = t_far, t_near
    t_low = max(t_low, t_near)
    t_high = min(t_high, t_far)
    if t_low > t_high:
        return None
    return t_low, t_high


def _intersect_triangle(
    ray: Ray, a: Point3, b: Point3, c: Point3, tolerance: float
) -> tuple[float, Vector3] | None:
    edge1 = b - a
    edge2 = c - a
    p = ray.direction.cross(edge2)
    det = edge1.dot(p)
    scale = edge1.length * edge2.length * ray.direction.length
    if abs(det) <= tolerance * scale:
        return None

    inv_det = 1.0 / det
    s = ray.origin - a
    u = s.dot(p) * inv_det
    if u < -tolerance or u > 1.0 + tolerance:
        return None
    q = s.cross(edge1)
    v = ray.direction.dot(q) * inv_det
    if v < -tolerance or u + v > 1.0 + tolerance:
        return None

    t = edge2.dot(q) * inv_det
    normal = edge1.cross(edge2).normalized()
    if normal.y < 0:
        normal = -normal
    return t, normal
