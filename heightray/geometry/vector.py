"""Coordinate primitives used by the tracing core."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

__all__ = ["EPSILON", "GridCoordinates", "GridIndex", "Point3", "Vector3"]

EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class Vector3:
    """Direction or offset in 3-space."""

    x: float
    y: float
    z: float

    def __add__(self, other: Vector3) -> Vector3:
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector3) -> Vector3:
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Vector3:
        return Vector3(-self.x, -self.y, -self.z)

    def __mul__(self, scalar: float) -> Vector3:
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector3:
        return Vector3(self.x / scalar, self.y / scalar, self.z / scalar)

    def __getitem__(self, axis: int) -> float:
        return (self.x, self.y, self.z)[axis]

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __str__(self) -> str:
        return f"vector({self.x:g}, {self.y:g}, {self.z:g})"

    def dot(self, other: Vector3) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector3) -> Vector3:
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    @property
    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def normalized(self) -> Vector3:
        length = self.length
        if length <= 0.0 or not math.isfinite(length):
            raise ValueError(f"Cannot normalize degenerate {self}")
        return self / length


@dataclass(frozen=True, slots=True)
class Point3:
    """Position in 3-space."""

    x: float
    y: float
    z: float

    def __add__(self, offset: Vector3) -> Point3:
        return Point3(self.x + offset.x, self.y + offset.y, self.z + offset.z)

    def __sub__(self, other: Point3) -> Vector3:
        if not isinstance(other, Point3):
            return NotImplemented
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __getitem__(self, axis: int) -> float:
        return (self.x, self.y, self.z)[axis]

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __str__(self) -> str:
        return f"point({self.x:g}, {self.y:g}, {self.z:g})"

    def to_vector(self) -> Vector3:
        return Vector3(self.x, self.y, self.z)


@dataclass(frozen=True, slots=True)
class GridCoordinates:
    """Continuous position in grid space (rows follow z, columns follow x)."""

    row: float
    col: float


@dataclass(frozen=True, slots=True)
class GridIndex:
    row: int
    col: int

    def __str__(self) -> str:
        return f"{self.row},{self.col}"
