from __future__ import annotations

import math

import pytest
from heightray.geometry.ray import Ray
from heightray.geometry.vector import Point3, Vector3


def test_vector_arithmetic() -> None:
    a = Vector3(1.0, 2.0, 3.0)
    b = Vector3(-1.0, 0.5, 2.0)
    assert a + b == Vector3(0.0, 2.5, 5.0)
    assert a - b == Vector3(2.0, 1.5, 1.0)
    assert -a == Vector3(-1.0, -2.0, -3.0)
    assert 2.0 * a == a * 2.0 == Vector3(2.0, 4.0, 6.0)
    assert a / 2.0 == Vector3(0.5, 1.0, 1.5)
    assert a.dot(b) == pytest.approx(6.0)


def test_cross_product_is_right_handed() -> None:
    x = Vector3(1.0, 0.0, 0.0)
    y = Vector3(0.0, 1.0, 0.0)
    assert x.cross(y) == Vector3(0.0, 0.0, 1.0)
    assert y.cross(x) == Vector3(0.0, 0.0, -1.0)


def test_normalized_has_unit_length() -> None:
    v = Vector3(3.0, 0.0, 4.0).normalized()
    assert v.length == pytest.approx(1.0)
    assert tuple(v) == pytest.approx((0.6, 0.0, 0.8))


def test_normalized_rejects_zero_vector() -> None:
    with pytest.raises(ValueError):
        Vector3(0.0, 0.0, 0.0).normalized()


def test_point_and_vector_mix() -> None:
    p = Point3(1.0, 1.0, 1.0)
    q = Point3(2.0, 3.0, 4.0)
    assert q - p == Vector3(1.0, 2.0, 3.0)
    assert p + Vector3(1.0, 0.0, 0.0) == Point3(2.0, 1.0, 1.0)
    assert p[0] == 1.0 and q[2] == 4.0


def test_point_difference_is_a_vector() -> None:
    p = Point3(1.0, 1.0, 1.0)
    assert isinstance(Point3(0.0, 0.0, 0.0) - p, Vector3)
    assert p + -Vector3(1.0, 0.0, 0.0) == Point3(0.0, 1.0, 1.0)
    with pytest.raises(TypeError):
        p - Vector3(1.0, 0.0, 0.0)


def test_ray_point_at() -> None:
    ray = Ray(Point3(0.0, 5.0, 0.0), Vector3(0.0, -2.0, 0.0))
    assert ray.point_at(0.0) == Point3(0.0, 5.0, 0.0)
    assert ray.point_at(1.5) == Point3(0.0, 2.0, 0.0)


def test_ray_through_normalizes_direction() -> None:
    ray = Ray.through(Point3(0.0, 0.0, 0.0), Point3(0.0, 0.0, 10.0))
    assert ray.direction == Vector3(0.0, 0.0, 1.0)
    assert ray.point_at(10.0) == Point3(0.0, 0.0, 10.0)


@pytest.mark.parametrize(
    "direction",
    [Vector3(0.0, 0.0, 0.0), Vector3(math.nan, 1.0, 0.0)],
)
def test_ray_rejects_degenerate_direction(direction: Vector3) -> None:
    with pytest.raises(ValueError):
        Ray(Point3(0.0, 0.0, 0.0), direction)


def test_ray_string_representation() -> None:
    ray = Ray(Point3(0.0, 1.0, 2.0), Vector3(1.0, 0.0, 0.0))
    assert str(ray) == "ray(point(0, 1, 2) --> vector(1, 0, 0))"
