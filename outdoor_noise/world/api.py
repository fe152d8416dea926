from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Protocol, Tuple

SurfaceType = Literal["hard", "soft", "mixed"]
ObstacleKind = Literal["barrier", "building"]
PathKind = Literal["direct", "ground", "wall", "diffracted", "roof", "corner-left", "corner-right"]
DiffractionEdge = Literal["top", "left", "right", "near"]


@dataclass(frozen=True)
class Point2D:
    """Plan-view position in metres (local planar frame)."""

    x: float
    y: float


@dataclass(frozen=True)
class Point3D:
    """Position in metres with ``z`` the height above the ground plane."""

    x: float
    y: float
    z: float

    @property
    def xy(self) -> Point2D:
        return Point2D(self.x, self.y)


@dataclass(frozen=True)
class Segment:
    """Ordered pair of plan-view points; the direction fixes the normal side."""

    p1: Point2D
    p2: Point2D


@dataclass(frozen=True)
class ReflectingSurface:
    """One vertical face of a barrier or building footprint.

    Parameters
    ----------
    segment : Segment
        Plan-view trace of the face.
    height : float
        Elevation of the top edge in metres.
    surface_type : {"hard", "soft", "mixed"}
        Acoustic character used for the reflection phase.
    absorption : float
        0 for a fully reflective face, 1 for a fully absorbing one.
    id : str
        Unique per face; used to exclude the face from its own blocking test.
    obstacle_id : str
        Identifier of the barrier or building the face belongs to.
    kind : {"barrier", "building"}
        Which obstacle family produced the face.
    """

    segment: Segment
    height: float
    surface_type: SurfaceType = "hard"
    absorption: float = 0.0
    id: Optional[str] = None
    obstacle_id: Optional[str] = None
    kind: ObstacleKind = "barrier"


@dataclass(frozen=True)
class BuildingFootprint:
    """Closed polygon with a flat roof at ``ground_elevation + height``."""

    id: str
    vertices: Tuple[Point2D, ...]
    height: float
    ground_elevation: float = 0.0

    @property
    def top(self) -> float:
        return self.ground_elevation + self.height


@dataclass(frozen=True)
class PolygonCrossing:
    """Where a plan-view segment enters and leaves a polygon.

    ``entry_point`` and ``exit_point`` are ``None`` when there is no crossing.
    """

    intersects: bool
    entry_point: Optional[Point2D] = None
    exit_point: Optional[Point2D] = None


@dataclass(frozen=True)
class GroundParams:
    """Ground surface description.

    Parameters
    ----------
    type : {"hard", "soft", "mixed"}
        Ground category.
    flow_resistivity : float
        Flow resistivity of the soft component (Pa·s/m²).
    mixed_factor : float
        Share of soft ground in ``[0, 1]`` (0 = hard, 1 = soft).
    """

    type: SurfaceType = "mixed"
    flow_resistivity: float = 20_000.0
    mixed_factor: float = 0.5


@dataclass(frozen=True)
class ImageSource:
    """Source mirrored across one reflecting surface."""

    position: Point3D
    surface: ReflectingSurface
    order: int = 1
    absorption: float = 0.0
    phase_change: float = 0.0


@dataclass(frozen=True)
class RayPath:
    """One propagation path between a source and a receiver.

    ``kind`` tags the variant.  ``path_difference`` is ``total_distance -
    direct_distance`` and is never negative.  Diffracted variants carry
    ``edge`` (which edge of a barrier was used) and ``diffraction_points``
    (1 for a single edge, 2 for the double edge over a roof).  ``dominant``
    is cleared on diffraction candidates that lose the per-obstacle ranking
    by path difference; only dominant paths feed the level summation.
    """

    kind: PathKind
    total_distance: float
    direct_distance: float
    path_difference: float
    waypoints: Tuple[Point3D, ...]
    absorption_factor: float = 1.0
    reflection_phase_change: float = 0.0
    valid: bool = True
    surfaces: Tuple[ReflectingSurface, ...] = ()
    edge: Optional[DiffractionEdge] = None
    diffraction_points: int = 0
    dominant: bool = True
    obstacle_id: Optional[str] = None
    ground: Optional[GroundParams] = field(default=None, compare=False)

    @property
    def is_diffracted(self) -> bool:
        return self.kind in ("diffracted", "roof", "corner-left", "corner-right")


class SceneObstacle(Protocol):
    """Anything that contributes vertical faces to a scene.

    ``Barrier`` and ``Building`` in :mod:`outdoor_noise.world.obstacles`
    implement it.
    """

    id: str
    height: float

    def surfaces(self) -> List[ReflectingSurface]:
        """Return the faces with ids unique within the scene."""
