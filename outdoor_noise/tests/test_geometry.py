import math

import pytest

from ..world.api import BuildingFootprint, Point2D, Point3D, ReflectingSurface, Segment
from ..world.geometry import (
    find_blocking_buildings,
    find_visible_corners,
    is_path_blocked,
    mirror_point,
    mirror_point_3d,
    path_height_at_point,
    point_in_polygon,
    reflection_height,
    segment_intersection,
    segment_intersects_polygon,
    surface_normal,
)

SQUARE = (Point2D(0.0, 0.0), Point2D(1.0, 0.0), Point2D(1.0, 1.0), Point2D(0.0, 1.0))


def _wall(x: float, y0: float = -5.0, y1: float = 5.0, id: str = "w:0") -> ReflectingSurface:
    return ReflectingSurface(Segment(Point2D(x, y0), Point2D(x, y1)), 3.0, id=id, obstacle_id="w")


def test_segment_intersection_crossing() -> None:
    hit = segment_intersection(Point2D(0, 0), Point2D(2, 2), Point2D(0, 2), Point2D(2, 0))
    assert hit == Point2D(1.0, 1.0)


def test_segment_intersection_degenerate() -> None:
    # parallel, collinear and zero-length segments never intersect
    assert segment_intersection(Point2D(0, 0), Point2D(1, 0), Point2D(0, 1), Point2D(1, 1)) is None
    assert segment_intersection(Point2D(0, 0), Point2D(2, 0), Point2D(1, 0), Point2D(3, 0)) is None
    assert segment_intersection(Point2D(0, 0), Point2D(0, 0), Point2D(-1, 0), Point2D(1, 0)) is None


def test_point_in_polygon() -> None:
    assert point_in_polygon(Point2D(0.5, 0.5), SQUARE)
    assert not point_in_polygon(Point2D(1.5, 0.5), SQUARE)
    assert not point_in_polygon(Point2D(0.5, 0.5), SQUARE[:2])


def test_mirror_point() -> None:
    seg = Segment(Point2D(-1, 0), Point2D(1, 0))
    assert mirror_point(Point2D(3, 2), seg) == Point2D(3.0, -2.0)
    assert mirror_point_3d(Point3D(3, 2, 7), seg) == Point3D(3.0, -2.0, 7.0)
    assert mirror_point(Point2D(3, 2), Segment(Point2D(1, 1), Point2D(1, 1))) == Point2D(3, 2)


def test_surface_normal_faces_point() -> None:
    n = surface_normal(_wall(0.0), Point2D(-4.0, 0.0))
    assert n.x == pytest.approx(-1.0)
    assert n.y == pytest.approx(0.0, abs=1e-12)


def test_occlusion_flips_when_barrier_moves() -> None:
    a, b = Point2D(0.0, 0.0), Point2D(10.0, 0.0)
    assert is_path_blocked(a, b, [_wall(5.0)])
    assert not is_path_blocked(a, b, [_wall(5.0, 1.0, 6.0)])


def test_is_path_blocked_ignores_endpoints_and_excluded() -> None:
    a, b = Point2D(0.0, 0.0), Point2D(10.0, 0.0)
    assert not is_path_blocked(a, b, [_wall(10.0)])
    assert not is_path_blocked(a, b, [_wall(5.0)], exclude_id="w:0")


def test_segment_intersects_polygon_through() -> None:
    crossing = segment_intersects_polygon(Point2D(-1.0, 0.5), Point2D(2.0, 0.5), SQUARE)
    assert crossing.intersects
    assert (crossing.entry_point.x, crossing.entry_point.y) == pytest.approx((0.0, 0.5))
    assert (crossing.exit_point.x, crossing.exit_point.y) == pytest.approx((1.0, 0.5))


def test_segment_intersects_polygon_from_inside() -> None:
    crossing = segment_intersects_polygon(Point2D(0.5, 0.5), Point2D(2.0, 0.5), SQUARE)
    assert crossing.intersects
    assert crossing.entry_point == Point2D(0.5, 0.5)
    assert (crossing.exit_point.x, crossing.exit_point.y) == pytest.approx((1.0, 0.5))


def test_segment_intersects_polygon_miss() -> None:
    crossing = segment_intersects_polygon(Point2D(-1.0, 2.0), Point2D(2.0, 2.0), SQUARE)
    assert not crossing.intersects
    assert crossing.entry_point is None


def test_find_visible_corners() -> None:
    fp = BuildingFootprint("b", SQUARE, 5.0)
    visible = find_visible_corners(Point2D(-10.0, 0.5), fp)
    assert set(visible) == {Point2D(0.0, 0.0), Point2D(0.0, 1.0)}


def test_find_blocking_buildings_uses_roof_height() -> None:
    verts = (Point2D(10, -5), Point2D(20, -5), Point2D(20, 5), Point2D(10, 5))
    src, rec = Point3D(0.0, 0.0, 2.0), Point3D(30.0, 0.0, 2.0)
    tall = BuildingFootprint("tall", verts, 10.0)
    low = BuildingFootprint("low", verts, 1.0)
    blocking = find_blocking_buildings(src, rec, [tall, low])
    assert [fp.id for fp, _ in blocking] == ["tall"]


def test_path_height_at_point() -> None:
    frm, to = Point3D(0.0, 0.0, 2.0), Point3D(10.0, 0.0, 12.0)
    assert path_height_at_point(frm, to, Point2D(5.0, 3.0)) == pytest.approx(7.0)
    assert path_height_at_point(frm, to, Point2D(-5.0, 0.0)) == pytest.approx(2.0)
    assert path_height_at_point(frm, frm, Point2D(1.0, 1.0)) == 2.0


def test_reflection_height_interpolates() -> None:
    assert reflection_height(1.0, 15.0, 0.5) == pytest.approx(8.0)
    assert reflection_height(1.0, 15.0, 0.0) == pytest.approx(1.0)
    assert math.isfinite(reflection_height(0.0, 0.0, 1.0))
