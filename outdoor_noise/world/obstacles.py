from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..constants import EPSILON
from .api import BuildingFootprint, Point2D, ReflectingSurface, SceneObstacle, Segment, SurfaceType
from .geometry import distance_2d


@dataclass(frozen=True)
class Barrier:
    """Open polyline screen of constant height.

    Parameters
    ----------
    id : str
        Scene identifier.
    vertices : tuple of Point2D
        Polyline vertices in plan view; at least two.
    height : float
        Height of the top edge in metres.
    surface_type : {"hard", "soft", "mixed"}, optional
        Acoustic character of both faces.
    absorption : float, optional
        Energy absorption of the faces in ``[0, 1]``.
    """

    id: str
    vertices: Tuple[Point2D, ...]
    height: float
    surface_type: SurfaceType = "hard"
    absorption: float = 0.1

    @property
    def length(self) -> float:
        return sum(distance_2d(a, b) for a, b in zip(self.vertices[:-1], self.vertices[1:]))

    @property
    def ends(self) -> Tuple[Point2D, Point2D]:
        return self.vertices[0], self.vertices[-1]

    def surfaces(self) -> List[ReflectingSurface]:
        out = []
        for i, (a, b) in enumerate(zip(self.vertices[:-1], self.vertices[1:])):
            if distance_2d(a, b) < EPSILON:
                continue
            out.append(
                ReflectingSurface(
                    Segment(a, b),
                    self.height,
                    self.surface_type,
                    self.absorption,
                    id=f"{self.id}:{i}",
                    obstacle_id=self.id,
                    kind="barrier",
                )
            )
        return out


@dataclass(frozen=True)
class Building:
    """Closed footprint with a flat roof; every edge is a reflecting wall."""

    id: str
    vertices: Tuple[Point2D, ...]
    height: float
    ground_elevation: float = 0.0
    surface_type: SurfaceType = "hard"
    absorption: float = 0.1

    @property
    def footprint(self) -> BuildingFootprint:
        return BuildingFootprint(self.id, tuple(self.vertices), self.height, self.ground_elevation)

    def surfaces(self) -> List[ReflectingSurface]:
        out = []
        n = len(self.vertices)
        for i in range(n):
            a, b = self.vertices[i], self.vertices[(i + 1) % n]
            if distance_2d(a, b) < EPSILON:
                continue
            out.append(
                ReflectingSurface(
                    Segment(a, b),
                    self.ground_elevation + self.height,
                    self.surface_type,
                    self.absorption,
                    id=f"{self.id}:{i}",
                    obstacle_id=self.id,
                    kind="building",
                )
            )
        return out


def surfaces_from_obstacles(obstacles: Sequence[SceneObstacle]) -> List[ReflectingSurface]:
    """Flatten obstacles into their faces, barriers and buildings alike."""
    surfaces: List[ReflectingSurface] = []
    for obstacle in obstacles:
        if isinstance(obstacle, Building) and len(obstacle.vertices) < 3:
            continue
        surfaces.extend(obstacle.surfaces())
    return surfaces
