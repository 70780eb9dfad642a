"""Value types produced and consumed by the height-field core."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..geometry.vector import GridIndex, Point3, Vector3

__all__ = ["Cell", "Intersection"]


@dataclass(frozen=True, slots=True)
class Cell:
    """One grid square of the height-field, described by its corner elevations.

    ``top`` corners share the lower row index and ``left`` corners the lower
    column index. ``max_height`` is derived from the corners and cannot be
    passed in.
    """

    top_left: float
    top_right: float
    bottom_left: float
    bottom_right: float
    max_height: float = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "max_height",
            max(self.top_left, self.top_right, self.bottom_left, self.bottom_right),
        )

    @property
    def corners(self) -> tuple[float, float, float, float]:
        return self.top_left, self.top_right, self.bottom_left, self.bottom_right

    def __str__(self) -> str:
        values = ",".join(f"{value:.2f}" for value in self.corners)
        return f"{{{values} --> {self.max_height:.2f}}}"


@dataclass(frozen=True, slots=True)
class Intersection:
    t: float
    normal: Vector3
    point: Point3
    cell: GridIndex

    def __str__(self) -> str:
        return f"hit t={self.t:.6g} point={self.point} normal={self.normal} cell={self.cell}"
