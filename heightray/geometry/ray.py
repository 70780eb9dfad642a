"""Half-line queries cast against the terrain."""

from __future__ import annotations

import math
from dataclasses import dataclass

from .vector import EPSILON, Point3, Vector3

__all__ = ["Ray"]


@dataclass(frozen=True, slots=True)
class Ray:
    """Ray parametrised as ``origin + t * direction`` for ``t >= 0``.

    The direction is kept as given, so ``t`` is measured in multiples of its
    length. Use :meth:`through` or normalise the direction beforehand when
    ``t`` should be a world-space distance.
    """

    origin: Point3
    direction: Vector3

    def __post_init__(self) -> None:
        if not all(math.isfinite(value) for value in (*self.origin, *self.direction)):
            raise ValueError(f"Ray components must be finite: {self}")
        if self.direction.length <= EPSILON:
            raise ValueError("Ray direction must be non-degenerate")

    @classmethod
    def through(cls, origin: Point3, target: Point3) -> Ray:
        direction = target - origin
        return cls(origin=origin, direction=direction.normalized())

    def point_at(self, t: float) -> Point3:
        return self.origin + self.direction * t

    def __str__(self) -> str:
        return f"ray({self.origin} --> {self.direction})"
