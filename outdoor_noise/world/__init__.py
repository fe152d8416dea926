"""Scene geometry, obstacles and ground materials."""

from .api import (
    BuildingFootprint,
    GroundParams,
    ImageSource,
    Point2D,
    Point3D,
    PolygonCrossing,
    RayPath,
    ReflectingSurface,
    SceneObstacle,
    Segment,
)
from .materials import Material, MaterialDB, default_materials
from .obstacles import Barrier, Building, surfaces_from_obstacles

__all__ = [
    "BuildingFootprint",
    "GroundParams",
    "ImageSource",
    "Point2D",
    "Point3D",
    "PolygonCrossing",
    "RayPath",
    "ReflectingSurface",
    "SceneObstacle",
    "Segment",
    "Material",
    "MaterialDB",
    "default_materials",
    "Barrier",
    "Building",
    "surfaces_from_obstacles",
]
