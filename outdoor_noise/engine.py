"""Receiver level computation on top of the tracer and attenuation model.

Two entry points share the same geometry:

* :func:`compute_probe` traces every path family, turns each path into a
  spectral phasor and sums them per source, then energetically across
  sources.
* :func:`compute_spl_simple` returns a single level from the ISO 9613-2
  budget using the strongest screen only.

:func:`compute_points` fans probe evaluations out to a thread pool with a
single shared :class:`~outdoor_noise.tracer.ObstacleSet`.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .attenuation import BarrierGeometry, calculate_propagation, calculate_spl
from .config import PropagationConfig, to_tracer_config
from .constants import OCTAVE_BANDS
from .phasor import compute_source_phasors, path_level, path_phase, sum_source_spectral_phasors
from .spectrum import (
    Spectrum9,
    apply_gain_to_spectrum,
    empty_spectrum,
    make_spectrum,
    overall_level,
    sum_decibels,
    sum_multiple_spectra,
)
from .tracer import ObstacleSet, TracerConfig, strongest_screen, trace_all_paths
from .world.api import PathKind, Point2D, Point3D, RayPath
from .world.geometry import distance_2d, distance_3d

logger = logging.getLogger(__name__)

__all__ = [
    "Source",
    "TracedPath",
    "SourceContribution",
    "ProbeResult",
    "compute_probe",
    "compute_points",
    "compute_spl_simple",
    "compute_receivers_simple",
    "request_hash",
]

REPORT_FREQUENCY = 1000.0


@dataclass(frozen=True)
class Source:
    """Point source.

    Parameters
    ----------
    id : str
        Scene identifier.
    position : Point3D
        Location in metres, ``z`` above ground.
    spectrum : Spectrum9
        Octave band sound power levels in dB.
    gain : float, optional
        Offset added to every band.
    sound_power_level : float, optional
        Overall level used by the simple API; the Z-weighted sum of the
        spectrum when omitted.
    """

    id: str
    position: Point3D
    spectrum: Spectrum9
    gain: float = 0.0
    sound_power_level: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "spectrum", make_spectrum(self.spectrum))

    @property
    def overall_power(self) -> float:
        if self.sound_power_level is not None:
            return self.sound_power_level + self.gain
        return overall_level(apply_gain_to_spectrum(self.spectrum, self.gain))


@dataclass(frozen=True)
class TracedPath:
    """Plan-view rendition of one summed path for display."""

    kind: PathKind
    points: Tuple[Point2D, ...]
    level_db: float
    phase: float
    source_id: str
    reflection_point: Optional[Point2D] = None
    diffraction_edge: Optional[Point2D] = None


@dataclass(frozen=True)
class SourceContribution:
    source_id: str
    spectrum: Spectrum9
    path_kinds: Tuple[str, ...]
    direct_distance: float


@dataclass(frozen=True)
class ProbeResult:
    spectrum: Spectrum9
    LAeq: float
    LCeq: float
    LZeq: float
    path_count: int
    valid_path_count: int
    ghost_count: int
    contributions: Tuple[SourceContribution, ...]
    paths: Tuple[TracedPath, ...] = ()


def _obstacle_set(obstacles) -> ObstacleSet:
    if isinstance(obstacles, ObstacleSet):
        return obstacles
    return ObstacleSet.from_obstacles(list(obstacles))


def _traced_path(source: Source, path: RayPath, config: PropagationConfig) -> TracedPath:
    levels = apply_gain_to_spectrum(source.spectrum, source.gain)
    band_levels = [path_level(float(l), path, float(f), config) for l, f in zip(levels, OCTAVE_BANDS)]
    points = tuple(p.xy for p in path.waypoints)
    middle = points[1] if len(points) > 2 else None
    return TracedPath(
        kind=path.kind,
        points=points,
        level_db=overall_level(make_spectrum(band_levels)),
        phase=path_phase(path, REPORT_FREQUENCY, config),
        source_id=source.id,
        reflection_point=middle if path.kind in ("ground", "wall") else None,
        diffraction_edge=middle if path.is_diffracted else None,
    )


def compute_probe(
    position: Point3D,
    sources: Sequence[Source],
    obstacles,
    config: Optional[PropagationConfig] = None,
    include_paths: bool = False,
    tracer_config: Optional[TracerConfig] = None,
) -> ProbeResult:
    """Band levels at ``position`` from all ``sources``.

    Parameters
    ----------
    position : Point3D
        Receiver location.
    sources : sequence of Source
        Uncorrelated point sources.
    obstacles : ObstacleSet or sequence
        Barriers and buildings; a plain sequence is indexed on every call.
    config : PropagationConfig, optional
        Defaults to :class:`PropagationConfig`.
    include_paths : bool, optional
        Also return the summed paths in plan view.

    Returns
    -------
    ProbeResult
        ``ghost_count`` counts summed paths other than the direct one.
    """
    config = config or PropagationConfig()
    tracer_config = tracer_config or to_tracer_config(config)
    scene = _obstacle_set(obstacles)

    contributions = []
    spectra = []
    traced: List[TracedPath] = []
    path_count = valid_count = ghosts = 0

    for source in sources:
        paths = trace_all_paths(source.position, position, scene, tracer_config)
        summed = [p for p in paths if p.valid and p.dominant and p.total_distance <= config.max_distance]
        path_count += len(paths)
        valid_count += len(summed)
        ghosts += sum(1 for p in summed if p.kind != "direct")

        phasors = compute_source_phasors(source.spectrum, summed, config, source.gain)
        spectrum = sum_source_spectral_phasors(phasors, config.coherent_summation)
        spectra.append(spectrum)
        contributions.append(
            SourceContribution(
                source.id,
                spectrum,
                tuple(dict.fromkeys(p.kind for p in summed)),
                distance_3d(source.position, position),
            )
        )
        if include_paths:
            traced.extend(_traced_path(source, p, config) for p in summed)

    total = sum_multiple_spectra(spectra) if spectra else empty_spectrum()
    logger.debug(
        "Probe at (%.1f, %.1f, %.1f): %d paths, %d summed",
        position.x,
        position.y,
        position.z,
        path_count,
        valid_count,
    )
    return ProbeResult(
        spectrum=total,
        LAeq=overall_level(total, "A"),
        LCeq=overall_level(total, "C"),
        LZeq=overall_level(total, "Z"),
        path_count=path_count,
        valid_path_count=valid_count,
        ghost_count=ghosts,
        contributions=tuple(contributions),
        paths=tuple(traced),
    )


def compute_points(
    points: Sequence[Point3D],
    sources: Sequence[Source],
    obstacles,
    config: Optional[PropagationConfig] = None,
    max_workers: Optional[int] = None,
    include_paths: bool = False,
) -> List[ProbeResult]:
    """:func:`compute_probe` for many receivers; results follow ``points`` order."""
    config = config or PropagationConfig()
    tracer_config = to_tracer_config(config)
    scene = _obstacle_set(obstacles)
    logger.info("Computing %d points for %d sources", len(points), len(sources))

    def _one(point: Point3D) -> ProbeResult:
        return compute_probe(point, sources, scene, config, include_paths, tracer_config)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(_one, points))
    logger.info("Finished %d points", len(results))
    return results


# ---------------------------------------------------------------------------
# Simple API
# ---------------------------------------------------------------------------


def _screen_geometry(source: Point3D, receiver: Point3D, screen: RayPath) -> BarrierGeometry:
    first, last = screen.waypoints[1], screen.waypoints[-2]
    return BarrierGeometry(distance_2d(source, first), distance_2d(last, receiver), first.z)


def compute_spl_simple(
    source: Source,
    receiver: Point3D,
    obstacles,
    config: Optional[PropagationConfig] = None,
) -> float:
    """Overall level at ``receiver`` from the 1 kHz attenuation budget.

    Only the screen with the largest path difference is considered; ground
    effect is partitioned around its edge.
    """
    config = config or PropagationConfig()
    scene = _obstacle_set(obstacles)
    screens_only = dataclasses.replace(
        to_tracer_config(config),
        include_ground=False,
        include_diffraction=True,
        max_reflection_order=0,
        side_diffraction="off",
    )
    paths = trace_all_paths(source.position, receiver, scene, screens_only) if config.include_barriers else []
    screen = strongest_screen(paths)

    distance = distance_3d(source.position, receiver)
    hs, hr = source.position.z, receiver.z
    if screen is None:
        result = calculate_propagation(distance, hs, hr, config)
    else:
        result = calculate_propagation(
            distance,
            hs,
            hr,
            config,
            path_difference=screen.path_difference,
            blocked=True,
            path_length=screen.total_distance,
            barrier_type="thick" if screen.kind == "roof" else "thin",
            barrier=_screen_geometry(source.position, receiver, screen),
        )
    return calculate_spl(source.overall_power, result)


def compute_receivers_simple(
    receivers: Sequence[Point3D],
    sources: Sequence[Source],
    obstacles,
    config: Optional[PropagationConfig] = None,
) -> List[float]:
    """Energetic sum over sources of :func:`compute_spl_simple` per receiver."""
    scene = _obstacle_set(obstacles)
    return [
        sum_decibels(compute_spl_simple(source, receiver, scene, config) for source in sources)
        for receiver in receivers
    ]


# ---------------------------------------------------------------------------
# Request hashing
# ---------------------------------------------------------------------------


def _canonical(obj):
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _canonical(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, np.ndarray):
        return [round(float(v), 9) for v in obj.ravel()]
    if isinstance(obj, (list, tuple)):
        return [_canonical(v) for v in obj]
    if isinstance(obj, dict):
        return {str(k): _canonical(v) for k, v in obj.items()}
    if isinstance(obj, float):
        return round(obj, 9)
    if isinstance(obj, np.generic):
        return _canonical(obj.item())
    return obj


def _sorted_entities(items) -> list:
    encoded = [json.dumps(_canonical(item), sort_keys=True) for item in items]
    return [json.loads(e) for e in sorted(encoded)]


def request_hash(
    sources: Sequence[Source],
    receivers: Sequence[Point3D],
    obstacles: Sequence,
    config: Optional[PropagationConfig] = None,
) -> str:
    """SHA-1 of the request, independent of key order and entity order."""
    scene = obstacles
    if isinstance(scene, ObstacleSet):
        scene = list(scene.barriers) + list(scene.buildings)
    payload = {
        "sources": _sorted_entities(sources),
        "receivers": _sorted_entities(receivers),
        "obstacles": _sorted_entities(scene),
        "config": _canonical(config or PropagationConfig()),
    }
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(text.encode("utf-8")).hexdigest()
