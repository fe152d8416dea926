"""Outdoor sound propagation core.

Traces direct, ground, wall and diffracted paths between point sources and
receivers, attenuates them per octave band and sums them into 9-band
levels.
"""

from .config import ConfigError, PropagationConfig, default_config, merge_config
from .engine import (
    ProbeResult,
    Source,
    SourceContribution,
    TracedPath,
    compute_points,
    compute_probe,
    compute_receivers_simple,
    compute_spl_simple,
    request_hash,
)
from .spectrum import flat_spectrum, make_spectrum, overall_level
from .tracer import ObstacleSet, TracerConfig, trace_all_paths
from .world import Barrier, Building, GroundParams, Point2D, Point3D

__all__ = [
    "ConfigError",
    "PropagationConfig",
    "default_config",
    "merge_config",
    "ProbeResult",
    "Source",
    "SourceContribution",
    "TracedPath",
    "compute_points",
    "compute_probe",
    "compute_receivers_simple",
    "compute_spl_simple",
    "request_hash",
    "flat_spectrum",
    "make_spectrum",
    "overall_level",
    "ObstacleSet",
    "TracerConfig",
    "trace_all_paths",
    "Barrier",
    "Building",
    "GroundParams",
    "Point2D",
    "Point3D",
]
