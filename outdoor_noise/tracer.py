"""Enumerate propagation paths between one source and one receiver.

Every query yields a list of :class:`~outdoor_noise.world.api.RayPath`
values: the direct path, the ground reflection, first-order wall
reflections (image sources) and diffraction over and around barriers and
buildings.  Paths that fail a geometric test are kept with ``valid=False``
so callers can count them; only valid, dominant paths are summed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from .constants import EPSILON
from .phasor import reflection_phase_change
from .world.api import (
    BuildingFootprint,
    GroundParams,
    ImageSource,
    Point2D,
    Point3D,
    PolygonCrossing,
    RayPath,
    ReflectingSurface,
    SceneObstacle,
)
from .world.geometry import (
    cross_2d,
    distance_2d,
    distance_3d,
    find_blocking_buildings,
    find_visible_corners,
    is_path_blocked,
    mirror_point_3d,
    point_in_polygon,
    reflection_height,
    segment_intersection,
    segment_intersects_polygon,
)
from .world.obstacles import Barrier, Building, surfaces_from_obstacles

logger = logging.getLogger(__name__)

__all__ = [
    "DIFFRACTION_PHASE",
    "ObstacleSet",
    "TracerConfig",
    "DEFAULT_TRACER_CONFIG",
    "create_image_sources",
    "trace_direct_path",
    "trace_ground_path",
    "trace_wall_paths",
    "trace_diffraction_path",
    "trace_barrier_diffraction_paths",
    "trace_building_diffraction_paths",
    "trace_all_paths",
    "select_dominant_diffraction",
    "strongest_screen",
]

# Knife-edge phase shift, independent of the diffraction angle
DIFFRACTION_PHASE = -math.pi / 4


@dataclass(frozen=True)
class TracerConfig:
    """Which path families to trace.

    ``side_diffraction`` is ``"off"``, ``"on"`` or ``"auto"``; the latter
    enables paths around the ends of barriers shorter than
    ``side_length_threshold`` metres.  ``near_barrier_threshold`` is the
    largest path difference (m) for which a barrier that clears the line of
    sight still yields a diffracted path.
    """

    include_ground: bool = True
    ground: GroundParams = field(default_factory=GroundParams)
    max_reflection_order: int = 1
    include_diffraction: bool = True
    near_barrier_diffraction: bool = False
    near_barrier_threshold: float = 5.0
    side_diffraction: Literal["off", "auto", "on"] = "auto"
    side_length_threshold: float = 50.0


DEFAULT_TRACER_CONFIG = TracerConfig()


@dataclass(frozen=True)
class ObstacleSet:
    """Read-only view of a scene's obstacles, built once per batch."""

    barriers: Tuple[Barrier, ...] = ()
    buildings: Tuple[Building, ...] = ()
    barrier_surfaces: Tuple[ReflectingSurface, ...] = ()
    building_surfaces: Tuple[ReflectingSurface, ...] = ()
    footprints: Tuple[BuildingFootprint, ...] = ()

    @classmethod
    def from_obstacles(cls, obstacles: Sequence[SceneObstacle]) -> "ObstacleSet":
        barriers = tuple(o for o in obstacles if isinstance(o, Barrier) and len(o.vertices) >= 2)
        buildings = tuple(o for o in obstacles if isinstance(o, Building) and len(o.vertices) >= 3)
        return cls(
            barriers,
            buildings,
            tuple(surfaces_from_obstacles(barriers)),
            tuple(surfaces_from_obstacles(buildings)),
            tuple(b.footprint for b in buildings),
        )

    @property
    def surfaces(self) -> Tuple[ReflectingSurface, ...]:
        return self.barrier_surfaces + self.building_surfaces

    def footprint(self, obstacle_id: Optional[str]) -> Optional[BuildingFootprint]:
        for fp in self.footprints:
            if fp.id == obstacle_id:
                return fp
        return None


def _as_obstacle_set(obstacles) -> ObstacleSet:
    if isinstance(obstacles, ObstacleSet):
        return obstacles
    return ObstacleSet.from_obstacles(list(obstacles))


def _path_difference(total: float, direct: float) -> float:
    return max(total - direct, 0.0)


# ---------------------------------------------------------------------------
# Direct, ground and wall paths
# ---------------------------------------------------------------------------


def create_image_sources(
    source: Point3D, surfaces: Sequence[ReflectingSurface], max_order: int = 1
) -> List[ImageSource]:
    """First-order image sources of ``source`` in every surface.

    Only ``max_order >= 1`` produces anything; higher orders are not
    generated.
    """
    if max_order < 1:
        return []
    return [
        ImageSource(
            position=mirror_point_3d(source, surface.segment),
            surface=surface,
            order=1,
            absorption=surface.absorption,
            phase_change=reflection_phase_change(surface.surface_type),
        )
        for surface in surfaces
    ]


def trace_direct_path(source: Point3D, receiver: Point3D, obstacles: ObstacleSet) -> RayPath:
    """Line of sight; invalid when a barrier crosses it in plan or a building in 3D."""
    dist = distance_3d(source, receiver)
    blocked = is_path_blocked(source.xy, receiver.xy, obstacles.barrier_surfaces) or bool(
        find_blocking_buildings(source, receiver, obstacles.footprints)
    )
    return RayPath("direct", dist, dist, 0.0, (source, receiver), valid=not blocked)


def _leg_blocked(a: Point3D, b: Point3D, obstacles: ObstacleSet) -> bool:
    return is_path_blocked(a.xy, b.xy, obstacles.barrier_surfaces) or bool(
        find_blocking_buildings(a, b, obstacles.footprints)
    )


def trace_ground_path(
    source: Point3D, receiver: Point3D, obstacles: ObstacleSet, ground: GroundParams
) -> RayPath:
    """Specular reflection on the plane ``z = 0``.

    The reflection point divides the plan line in the ratio of the two
    heights.  Hard ground keeps phase and amplitude, soft ground flips the
    phase and absorbs 20 %; mixed ground scales both by its soft share.
    """
    heights = source.z + receiver.z
    t = source.z / heights if heights > EPSILON else 0.5
    point = Point3D(source.x + t * (receiver.x - source.x), source.y + t * (receiver.y - source.y), 0.0)

    total = distance_3d(source, point) + distance_3d(point, receiver)
    direct = distance_3d(source, receiver)
    blocked = _leg_blocked(source, point, obstacles) or _leg_blocked(point, receiver, obstacles)

    if ground.type == "soft":
        phase, absorption = math.pi, 0.2
    elif ground.type == "mixed":
        phase, absorption = math.pi * ground.mixed_factor, 0.1 * ground.mixed_factor
    else:
        phase, absorption = 0.0, 0.0

    return RayPath(
        "ground",
        total,
        direct,
        _path_difference(total, direct),
        (source, point, receiver),
        absorption_factor=1.0 - absorption,
        reflection_phase_change=phase,
        valid=not blocked and source.z > 0 and receiver.z > 0,
        ground=ground,
    )


def trace_wall_paths(source: Point3D, receiver: Point3D, obstacles: ObstacleSet) -> List[RayPath]:
    """First-order reflections off every barrier and building face.

    Faces the receiver -> image-source line misses in plan are skipped.  A
    reflection point above the face or below ground, or a leg blocked by
    another face, yields a path with ``valid=False``.
    """
    paths: List[RayPath] = []
    surfaces = obstacles.surfaces
    direct = distance_3d(source, receiver)
    r2d = receiver.xy

    for image in create_image_sources(source, surfaces):
        surface = image.surface
        seg = surface.segment
        img2d = image.position.xy
        hit = segment_intersection(r2d, img2d, seg.p1, seg.p2)
        if hit is None:
            continue
        seg_len = distance_2d(seg.p1, seg.p2)
        if distance_2d(hit, seg.p1) > seg_len + EPSILON or distance_2d(hit, seg.p2) > seg_len + EPSILON:
            continue
        span = distance_2d(r2d, img2d)
        if span < EPSILON:
            continue

        footprint = obstacles.footprint(surface.obstacle_id) if surface.kind == "building" else None
        if footprint is not None and (
            point_in_polygon(source.xy, footprint.vertices) or point_in_polygon(r2d, footprint.vertices)
        ):
            continue

        z = reflection_height(receiver.z, source.z, distance_2d(r2d, hit) / span)
        point = Point3D(hit.x, hit.y, z)
        height_ok = 0.0 <= z <= surface.height
        blocked = is_path_blocked(source.xy, hit, surfaces, exclude_id=surface.id) or is_path_blocked(
            hit, r2d, surfaces, exclude_id=surface.id
        )
        if not height_ok:
            logger.debug("Reflection on %s at z=%.2f misses the face (height %.2f)", surface.id, z, surface.height)

        total = distance_3d(source, point) + distance_3d(point, receiver)
        paths.append(
            RayPath(
                "wall",
                total,
                direct,
                _path_difference(total, direct),
                (source, point, receiver),
                absorption_factor=1.0 - image.absorption,
                reflection_phase_change=image.phase_change,
                valid=height_ok and not blocked,
                surfaces=(surface,),
                obstacle_id=surface.obstacle_id,
            )
        )
    return paths


# ---------------------------------------------------------------------------
# Diffraction
# ---------------------------------------------------------------------------


def _diffracted(
    source: Point3D,
    receiver: Point3D,
    edge_point: Point3D,
    edge: str,
    surface: Optional[ReflectingSurface],
    obstacle_id: Optional[str],
    valid: bool = True,
) -> RayPath:
    total = distance_3d(source, edge_point) + distance_3d(edge_point, receiver)
    direct = distance_3d(source, receiver)
    return RayPath(
        "diffracted",
        total,
        direct,
        _path_difference(total, direct),
        (source, edge_point, receiver),
        reflection_phase_change=DIFFRACTION_PHASE,
        valid=valid,
        surfaces=(surface,) if surface is not None else (),
        edge=edge,
        diffraction_points=1,
        obstacle_id=obstacle_id,
    )


def trace_diffraction_path(
    source: Point3D, receiver: Point3D, surface: ReflectingSurface
) -> Optional[RayPath]:
    """Path over the top edge of ``surface`` or ``None`` if it does not cross the line of sight."""
    hit = segment_intersection(source.xy, receiver.xy, surface.segment.p1, surface.segment.p2)
    if hit is None:
        return None
    top = Point3D(hit.x, hit.y, surface.height)
    return _diffracted(source, receiver, top, "top", surface, surface.obstacle_id)


def _closest_on_segment(p: Point2D, a: Point2D, b: Point2D) -> Point2D:
    dx, dy = b.x - a.x, b.y - a.y
    len_sq = dx * dx + dy * dy
    if len_sq < EPSILON:
        return a
    t = min(max(((p.x - a.x) * dx + (p.y - a.y) * dy) / len_sq, 0.0), 1.0)
    return Point2D(a.x + t * dx, a.y + t * dy)


def _nearest_barrier_point(
    s: Point2D, r: Point2D, surfaces: Sequence[ReflectingSurface]
) -> Optional[Tuple[Point2D, ReflectingSurface]]:
    """Point of a barrier closest to segment ``s -> r`` in plan.

    For two non-crossing segments the minimum distance is attained at an
    endpoint of one of them.
    """
    best: Optional[Tuple[float, Point2D, ReflectingSurface]] = None
    for surface in surfaces:
        a, b = surface.segment.p1, surface.segment.p2
        candidates = [
            (distance_2d(a, _closest_on_segment(a, s, r)), a),
            (distance_2d(b, _closest_on_segment(b, s, r)), b),
        ]
        for end in (s, r):
            q = _closest_on_segment(end, a, b)
            candidates.append((distance_2d(end, q), q))
        for dist, q in candidates:
            if best is None or dist < best[0]:
                best = (dist, q, surface)
    if best is None:
        return None
    return best[1], best[2]


def _use_side_diffraction(barrier: Barrier, config: TracerConfig) -> bool:
    if config.side_diffraction == "off":
        return False
    if config.side_diffraction == "on":
        return True
    return barrier.length < config.side_length_threshold


def trace_barrier_diffraction_paths(
    source: Point3D,
    receiver: Point3D,
    barrier: Barrier,
    obstacles: ObstacleSet,
    config: TracerConfig = DEFAULT_TRACER_CONFIG,
) -> List[RayPath]:
    """Diffraction candidates offered by one barrier.

    A barrier crossing the line of sight yields one over-the-top path per
    crossed segment and, for short barriers, paths around both ends of the
    polyline at ground level.  A barrier that clears the line of sight may
    still yield a ``"near"`` path when enabled and its path difference is
    within ``config.near_barrier_threshold``.
    """
    own = [s for s in obstacles.barrier_surfaces if s.obstacle_id == barrier.id]
    paths = [p for p in (trace_diffraction_path(source, receiver, s) for s in own) if p is not None]

    if not paths:
        if config.near_barrier_diffraction:
            nearest = _nearest_barrier_point(source.xy, receiver.xy, own)
            if nearest is not None:
                q, surface = nearest
                near = _diffracted(source, receiver, Point3D(q.x, q.y, surface.height), "near", surface, barrier.id)
                if near.path_difference <= config.near_barrier_threshold:
                    paths.append(near)
        return paths

    if _use_side_diffraction(barrier, config):
        direction = (receiver.x - source.x, receiver.y - source.y)
        for end in barrier.ends:
            side = "left" if cross_2d(*direction, end.x - source.x, end.y - source.y) > 0 else "right"
            corner = Point3D(end.x, end.y, 0.0)
            blocked = is_path_blocked(source.xy, end, obstacles.barrier_surfaces) or is_path_blocked(
                end, receiver.xy, obstacles.barrier_surfaces
            )
            paths.append(_diffracted(source, receiver, corner, side, None, barrier.id, valid=not blocked))
    return paths


def trace_building_diffraction_paths(
    source: Point3D,
    receiver: Point3D,
    footprint: BuildingFootprint,
    crossing: PolygonCrossing,
) -> List[RayPath]:
    """Roof and corner paths around a building that occludes the line of sight."""
    paths: List[RayPath] = []
    direct = distance_3d(source, receiver)
    top = footprint.top

    if crossing.entry_point is not None and crossing.exit_point is not None:
        entry = Point3D(crossing.entry_point.x, crossing.entry_point.y, top)
        exit_ = Point3D(crossing.exit_point.x, crossing.exit_point.y, top)
        total = distance_3d(source, entry) + distance_3d(entry, exit_) + distance_3d(exit_, receiver)
        paths.append(
            RayPath(
                "roof",
                total,
                direct,
                _path_difference(total, direct),
                (source, entry, exit_, receiver),
                reflection_phase_change=DIFFRACTION_PHASE,
                diffraction_points=2,
                obstacle_id=footprint.id,
            )
        )

    s2d, r2d = source.xy, receiver.xy
    from_receiver = find_visible_corners(r2d, footprint)
    for corner in find_visible_corners(s2d, footprint):
        if not any(abs(c.x - corner.x) < EPSILON and abs(c.y - corner.y) < EPSILON for c in from_receiver):
            continue
        if not (
            _corner_leg_clear(s2d, corner, corner, footprint) and _corner_leg_clear(corner, r2d, corner, footprint)
        ):
            continue
        corner3d = Point3D(corner.x, corner.y, min(source.z, receiver.z, top))
        total = distance_3d(source, corner3d) + distance_3d(corner3d, receiver)
        turn = cross_2d(r2d.x - s2d.x, r2d.y - s2d.y, corner.x - s2d.x, corner.y - s2d.y)
        paths.append(
            RayPath(
                "corner-left" if turn > 0 else "corner-right",
                total,
                direct,
                _path_difference(total, direct),
                (source, corner3d, receiver),
                reflection_phase_change=DIFFRACTION_PHASE,
                diffraction_points=1,
                obstacle_id=footprint.id,
            )
        )
    return paths


def _corner_leg_clear(a: Point2D, b: Point2D, corner: Point2D, footprint: BuildingFootprint) -> bool:
    crossing = segment_intersects_polygon(a, b, footprint.vertices)
    if not crossing.intersects or crossing.entry_point is None:
        return True
    return distance_2d(crossing.entry_point, corner) < EPSILON


# ---------------------------------------------------------------------------
# Ranking and orchestration
# ---------------------------------------------------------------------------


def select_dominant_diffraction(paths: Sequence[RayPath]) -> List[RayPath]:
    """Flag the diffraction candidate with the smallest path difference per obstacle.

    Candidates of one obstacle (over the top, around either end, over the
    roof or around a corner) describe the same shadowed energy; only the
    least detoured valid one stays ``dominant``.  When that winner is a
    building corner, the opposite corner with the same path difference stays
    ``dominant`` as well, since the two go around different sides.  Order is
    preserved.
    """
    best: Dict[Optional[str], int] = {}
    for i, path in enumerate(paths):
        if not path.is_diffracted or not path.valid:
            continue
        j = best.get(path.obstacle_id)
        if j is None or _ranks_before(path, paths[j]):
            best[path.obstacle_id] = i

    winners = set(best.values())
    for i, path in enumerate(paths):
        j = best.get(path.obstacle_id)
        if j is not None and path.valid and _corner_sibling(path, paths[j]):
            winners.add(i)

    out: List[RayPath] = []
    for i, path in enumerate(paths):
        if path.is_diffracted:
            out.append(replace(path, dominant=i in winners))
        else:
            out.append(path)
    return out


_CORNER_KINDS = ("corner-left", "corner-right")


def _corner_sibling(a: RayPath, b: RayPath) -> bool:
    return (
        a.kind in _CORNER_KINDS
        and b.kind in _CORNER_KINDS
        and a.kind != b.kind
        and abs(a.path_difference - b.path_difference) < 1e-9
    )


def _ranks_before(a: RayPath, b: RayPath) -> bool:
    # positive path differences win over grazing ones
    if (a.path_difference > 0) != (b.path_difference > 0):
        return a.path_difference > 0
    return a.path_difference < b.path_difference


def strongest_screen(paths: Sequence[RayPath]) -> Optional[RayPath]:
    """Blocking diffraction path with the largest path difference, if any.

    Only screens that cut the line of sight count: over-the-top barrier
    paths and roof paths.
    """
    screens = [p for p in paths if p.valid and (p.kind == "roof" or (p.kind == "diffracted" and p.edge == "top"))]
    if not screens:
        return None
    return max(screens, key=lambda p: p.path_difference)


def trace_all_paths(
    source: Point3D,
    receiver: Point3D,
    obstacles,
    config: TracerConfig = DEFAULT_TRACER_CONFIG,
) -> List[RayPath]:
    """Every path family enabled in ``config``.

    ``obstacles`` is an :class:`ObstacleSet` or a sequence of scene
    obstacles.  The direct path is always first.
    """
    obstacles = _as_obstacle_set(obstacles)
    direct = trace_direct_path(source, receiver, obstacles)
    paths = [direct]

    if config.include_ground and source.z > 0 and receiver.z > 0:
        paths.append(trace_ground_path(source, receiver, obstacles, config.ground))

    if config.max_reflection_order >= 1:
        paths.extend(trace_wall_paths(source, receiver, obstacles))

    if config.include_diffraction:
        for barrier in obstacles.barriers:
            paths.extend(trace_barrier_diffraction_paths(source, receiver, barrier, obstacles, config))
        for footprint, crossing in find_blocking_buildings(source, receiver, obstacles.footprints):
            paths.extend(trace_building_diffraction_paths(source, receiver, footprint, crossing))

    paths = select_dominant_diffraction(paths)
    logger.debug(
        "Traced %d paths (%d valid), direct %s",
        len(paths),
        sum(p.valid for p in paths),
        "clear" if direct.valid else "blocked",
    )
    return paths
