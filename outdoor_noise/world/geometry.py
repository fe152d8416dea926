"""Plan-view geometry kernel.

Every function here is total: degenerate input (zero-length segments,
parallel or collinear lines, coincident points) resolves to "no
interaction" rather than raising.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from ..constants import EPSILON
from .api import BuildingFootprint, Point2D, Point3D, PolygonCrossing, ReflectingSurface, Segment

__all__ = [
    "distance_2d",
    "distance_3d",
    "cross_2d",
    "segment_intersection",
    "point_in_polygon",
    "mirror_point",
    "mirror_point_3d",
    "surface_normal",
    "segment_intersects_polygon",
    "is_path_blocked",
    "find_visible_corners",
    "path_height_at_point",
    "find_blocking_buildings",
    "reflection_height",
]


def distance_2d(a: Point2D | Point3D, b: Point2D | Point3D) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def distance_3d(a: Point3D, b: Point3D) -> float:
    return math.sqrt((b.x - a.x) ** 2 + (b.y - a.y) ** 2 + (b.z - a.z) ** 2)


def cross_2d(ax: float, ay: float, bx: float, by: float) -> float:
    """z component of the 3D cross product of two plan vectors."""
    return ax * by - ay * bx


def _same_point(a: Point2D, b: Point2D) -> bool:
    return abs(a.x - b.x) < EPSILON and abs(a.y - b.y) < EPSILON


# ---------------------------------------------------------------------------
# Segments and polygons
# ---------------------------------------------------------------------------


def _intersection_params(
    p1: Point2D, p2: Point2D, q1: Point2D, q2: Point2D
) -> Optional[Tuple[float, float]]:
    rx, ry = p2.x - p1.x, p2.y - p1.y
    sx, sy = q2.x - q1.x, q2.y - q1.y
    rxs = cross_2d(rx, ry, sx, sy)
    if abs(rxs) < EPSILON:
        return None
    qpx, qpy = q1.x - p1.x, q1.y - p1.y
    t = cross_2d(qpx, qpy, sx, sy) / rxs
    u = cross_2d(qpx, qpy, rx, ry) / rxs
    if t < -EPSILON or t > 1 + EPSILON or u < -EPSILON or u > 1 + EPSILON:
        return None
    return t, u


def segment_intersection(p1: Point2D, p2: Point2D, q1: Point2D, q2: Point2D) -> Optional[Point2D]:
    """Intersection of segments ``p1p2`` and ``q1q2`` or ``None``.

    Parallel and collinear segments (including near-grazing ones whose
    direction cross product falls below ``EPSILON``) never intersect.
    """
    params = _intersection_params(p1, p2, q1, q2)
    if params is None:
        return None
    t, _ = params
    return Point2D(p1.x + t * (p2.x - p1.x), p1.y + t * (p2.y - p1.y))


def point_in_polygon(point: Point2D, vertices: Sequence[Point2D]) -> bool:
    """Even-odd ray casting towards +x."""
    inside = False
    n = len(vertices)
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i].x, vertices[i].y
        xj, yj = vertices[j].x, vertices[j].y
        if (yi > point.y) != (yj > point.y):
            x_cross = (xj - xi) * (point.y - yi) / (yj - yi) + xi
            if point.x < x_cross:
                inside = not inside
        j = i
    return inside


def mirror_point(point: Point2D, segment: Segment) -> Point2D:
    """Reflect ``point`` across the infinite line through ``segment``."""
    p1, p2 = segment.p1, segment.p2
    dx, dy = p2.x - p1.x, p2.y - p1.y
    len_sq = dx * dx + dy * dy
    if len_sq < EPSILON:
        return point
    t = ((point.x - p1.x) * dx + (point.y - p1.y) * dy) / len_sq
    proj_x = p1.x + t * dx
    proj_y = p1.y + t * dy
    return Point2D(2 * proj_x - point.x, 2 * proj_y - point.y)


def mirror_point_3d(point: Point3D, segment: Segment) -> Point3D:
    """Mirror across a vertical wall; the height is preserved."""
    m = mirror_point(point.xy, segment)
    return Point3D(m.x, m.y, point.z)


def surface_normal(surface: ReflectingSurface, toward: Point2D) -> Point2D:
    """Unit plan normal of ``surface`` on the side facing ``toward``."""
    p1, p2 = surface.segment.p1, surface.segment.p2
    dx, dy = p2.x - p1.x, p2.y - p1.y
    length = math.hypot(dx, dy)
    if length < EPSILON:
        return Point2D(0.0, 0.0)
    nx, ny = -dy / length, dx / length
    mx, my = (p1.x + p2.x) / 2, (p1.y + p2.y) / 2
    if nx * (toward.x - mx) + ny * (toward.y - my) > 0:
        return Point2D(nx, ny)
    return Point2D(-nx, -ny)


def segment_intersects_polygon(frm: Point2D, to: Point2D, vertices: Sequence[Point2D]) -> PolygonCrossing:
    """Entry and exit points of segment ``frm -> to`` through a polygon.

    Edge crossings are ordered by their parameter along the segment; whether
    either endpoint already lies inside decides which crossing is the entry
    and which the exit.
    """
    dx, dy = to.x - frm.x, to.y - frm.y
    len_sq = dx * dx + dy * dy
    crossings: List[Tuple[float, Point2D]] = []
    n = len(vertices)
    if len_sq > EPSILON:
        for i in range(n):
            hit = segment_intersection(frm, to, vertices[i], vertices[(i + 1) % n])
            if hit is None:
                continue
            t = ((hit.x - frm.x) * dx + (hit.y - frm.y) * dy) / len_sq
            if EPSILON < t < 1 - EPSILON:
                crossings.append((t, hit))

    from_inside = point_in_polygon(frm, vertices)
    to_inside = point_in_polygon(to, vertices)
    if not (from_inside or to_inside or crossings):
        return PolygonCrossing(False)

    crossings.sort(key=lambda c: c[0])
    if from_inside:
        entry = frm
        exit_ = crossings[0][1] if crossings else to
    elif len(crossings) >= 2:
        entry = crossings[0][1]
        exit_ = crossings[-1][1]
    elif len(crossings) == 1:
        entry = crossings[0][1]
        exit_ = to if to_inside else crossings[0][1]
    else:
        # only ``to`` is inside and no edge was crossed (grazing entry)
        entry, exit_ = None, None
    return PolygonCrossing(True, entry, exit_)


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


def is_path_blocked(
    frm: Point2D,
    to: Point2D,
    surfaces: Sequence[ReflectingSurface],
    exclude_id: Optional[str] = None,
) -> bool:
    """True if a surface crosses ``frm -> to`` strictly between its endpoints."""
    for surface in surfaces:
        if exclude_id is not None and surface.id == exclude_id:
            continue
        hit = segment_intersection(frm, to, surface.segment.p1, surface.segment.p2)
        if hit is None:
            continue
        if distance_2d(hit, frm) > EPSILON and distance_2d(hit, to) > EPSILON:
            return True
    return False


def find_visible_corners(point: Point2D, building: BuildingFootprint) -> List[Point2D]:
    """Footprint vertices that no non-adjacent edge hides from ``point``."""
    verts = building.vertices
    n = len(verts)
    visible: List[Point2D] = []
    for corner in verts:
        blocked = False
        for i in range(n):
            v1, v2 = verts[i], verts[(i + 1) % n]
            if _same_point(v1, corner) or _same_point(v2, corner):
                continue
            hit = segment_intersection(point, corner, v1, v2)
            if hit is not None and distance_2d(hit, point) > EPSILON and distance_2d(hit, corner) > EPSILON:
                blocked = True
                break
        if not blocked:
            visible.append(corner)
    return visible


def path_height_at_point(frm: Point3D, to: Point3D, point: Point2D) -> float:
    """Height of the straight ray ``frm -> to`` above ``point`` (linear in plan)."""
    dx, dy = to.x - frm.x, to.y - frm.y
    len_sq = dx * dx + dy * dy
    if len_sq < EPSILON:
        return min(frm.z, to.z)
    t = ((point.x - frm.x) * dx + (point.y - frm.y) * dy) / len_sq
    t = min(max(t, 0.0), 1.0)
    return frm.z + t * (to.z - frm.z)


def find_blocking_buildings(
    frm: Point3D, to: Point3D, buildings: Sequence[BuildingFootprint]
) -> List[Tuple[BuildingFootprint, PolygonCrossing]]:
    """Buildings whose footprint is crossed below roof level by ``frm -> to``."""
    blocking = []
    for building in buildings:
        crossing = segment_intersects_polygon(frm.xy, to.xy, building.vertices)
        if not crossing.intersects or crossing.entry_point is None or crossing.exit_point is None:
            continue
        top = building.top
        if (
            path_height_at_point(frm, to, crossing.entry_point) < top
            or path_height_at_point(frm, to, crossing.exit_point) < top
        ):
            blocking.append((building, crossing))
    return blocking


def reflection_height(receiver_z: float, source_z: float, t: float) -> float:
    """Height where the receiver -> image-source ray meets the wall.

    ``t`` is the fractional distance from the receiver to the intersection;
    the image source keeps the real source height.
    """
    return receiver_z + t * (source_z - receiver_z)
