"""Pressure phasors and per-path spectral levels.

Each traced path becomes one phasor per octave band: a linear pressure
amplitude from the band level after divergence, air absorption, surface
losses and diffraction, and a phase from the travelled length plus any
reflection or diffraction shift.  Paths of one source add coherently or
energetically; different sources always add energetically.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Sequence, Tuple

import numpy as np

from . import complex as cx
from .attenuation import barrier_attenuation, maekawa_diffraction, spreading_loss, total_atmospheric_absorption
from .constants import MIN_LEVEL, OCTAVE_BAND_COUNT, OCTAVE_BANDS, P_MIN, P_REF, SPEED_OF_SOUND_20C
from .ground import reflection_coeff
from .spectrum import Spectrum9, apply_gain_to_spectrum, empty_spectrum, make_spectrum
from .world.api import RayPath, SurfaceType

if TYPE_CHECKING:
    from .config import PropagationConfig

__all__ = [
    "Phasor",
    "SpectralPhasor",
    "db_to_pressure",
    "pressure_to_db",
    "create_phasor",
    "sum_phasors_coherent",
    "sum_phasors_coherent_full",
    "sum_phasors_incoherent",
    "sum_spectral_phasors_coherent",
    "phase_from_path_difference",
    "reflection_phase_change",
    "wavelength",
    "fresnel_radius",
    "path_level",
    "path_phase",
    "compute_source_phasors",
    "sum_source_spectral_phasors",
]

SILENT_DB = -200.0


@dataclass(frozen=True)
class Phasor:
    """Pressure amplitude in Pa and phase in radians."""

    pressure: float
    phase: float = 0.0


SpectralPhasor = List[Phasor]


def db_to_pressure(level_db: float) -> float:
    if not math.isfinite(level_db) or level_db < SILENT_DB:
        return P_MIN
    return P_REF * 10.0 ** (level_db / 20.0)


def pressure_to_db(pressure: float) -> float:
    if not math.isfinite(pressure) or pressure <= 0.0:
        return SILENT_DB
    return 20.0 * math.log10(pressure / P_REF)


def create_phasor(
    level_db: float, distance: float, f: float, c: float = SPEED_OF_SOUND_20C, phase_offset: float = 0.0
) -> Phasor:
    """Phasor of a wave that travelled ``distance`` metres."""
    k = 2.0 * math.pi * f / c
    return Phasor(db_to_pressure(level_db), -k * distance + phase_offset)


def _resultant(phasors: Sequence[Phasor]) -> Tuple[float, float]:
    re = 0.0
    im = 0.0
    for p in phasors:
        if p.pressure <= 0.0:
            continue
        re += p.pressure * math.cos(p.phase)
        im += p.pressure * math.sin(p.phase)
    return re, im


def sum_phasors_coherent(phasors: Sequence[Phasor]) -> float:
    """Level in dB of ``|sum p_i exp(j phi_i)|``."""
    if not phasors:
        return SILENT_DB
    re, im = _resultant(phasors)
    return pressure_to_db(math.hypot(re, im))


def sum_phasors_coherent_full(phasors: Sequence[Phasor]) -> Phasor:
    if not phasors:
        return Phasor(0.0, 0.0)
    re, im = _resultant(phasors)
    return Phasor(math.hypot(re, im), math.atan2(im, re))


def sum_phasors_incoherent(phasors: Sequence[Phasor]) -> float:
    """Level in dB of ``sqrt(sum p_i**2)``; phases are ignored."""
    if not phasors:
        return SILENT_DB
    return pressure_to_db(math.sqrt(sum(p.pressure * p.pressure for p in phasors)))


def sum_spectral_phasors_coherent(spectral_phasors: Sequence[SpectralPhasor]) -> Spectrum9:
    levels = []
    for band in range(OCTAVE_BAND_COUNT):
        phasors = [sp[band] for sp in spectral_phasors if sp[band].pressure > 0.0]
        levels.append(max(sum_phasors_coherent(phasors), MIN_LEVEL) if phasors else MIN_LEVEL)
    return make_spectrum(levels)


def phase_from_path_difference(path_difference: float, f: float, c: float = SPEED_OF_SOUND_20C) -> float:
    return -2.0 * math.pi * f / c * path_difference


def reflection_phase_change(surface_type: SurfaceType) -> float:
    """Constant reflection phase: hard 0, soft pi, mixed pi/2."""
    if surface_type == "soft":
        return math.pi
    if surface_type == "mixed":
        return math.pi / 2.0
    return 0.0


def wavelength(f: float, c: float = SPEED_OF_SOUND_20C) -> float:
    return c / f


def fresnel_radius(d1: float, d2: float, f: float, c: float = SPEED_OF_SOUND_20C) -> float:
    """Radius of the first Fresnel zone at ``d1`` from one end of a ``d1 + d2`` path."""
    total = d1 + d2
    if total <= 0.0:
        return 0.0
    return math.sqrt(wavelength(f, c) * d1 * d2 / total)


# ---------------------------------------------------------------------------
# Per-path levels
# ---------------------------------------------------------------------------


def _ground_gamma(path: RayPath, f: float, config: "PropagationConfig") -> cx.Complex:
    hs = path.waypoints[0].z
    hr = path.waypoints[-1].z
    r2 = max(path.total_distance, 1e-6)
    ground = path.ground
    return reflection_coeff(
        f,
        (hs + hr) / r2,
        ground.type,
        ground.flow_resistivity,
        ground.mixed_factor,
        r2,
        config.c,
    )


def _uses_impedance(path: RayPath, config: "PropagationConfig") -> bool:
    return path.kind == "ground" and path.ground is not None and config.ground_reflection_model == "impedance"


def _diffraction_loss(path: RayPath, f: float, c: float) -> float:
    if path.path_difference <= 0.0:
        return 0.0
    if path.kind == "diffracted":
        return maekawa_diffraction(path.path_difference, f, c)
    if path.kind == "roof":
        return barrier_attenuation(path.path_difference, f, c / f, "thick")
    if path.kind in ("corner-left", "corner-right"):
        return barrier_attenuation(path.path_difference, f, c / f, "thin")
    return 0.0


def path_level(source_level: float, path: RayPath, f: float, config: "PropagationConfig") -> float:
    """Band level in dB delivered by ``path`` from a source band level.

    Invalid paths and paths beyond ``config.max_distance`` deliver
    ``MIN_LEVEL``.
    """
    if not path.valid or path.total_distance > config.max_distance or source_level <= MIN_LEVEL:
        return MIN_LEVEL

    level = source_level - spreading_loss(path.total_distance, config.spreading)
    level -= total_atmospheric_absorption(path.total_distance, f, config)

    if _uses_impedance(path, config):
        amplitude = cx.magnitude(_ground_gamma(path, f, config))
    else:
        amplitude = path.absorption_factor
    if amplitude <= 0.0:
        return MIN_LEVEL
    if amplitude < 1.0:
        level += 20.0 * math.log10(max(amplitude, 1e-6))

    return level - _diffraction_loss(path, f, config.c)


def path_phase(path: RayPath, f: float, config: "PropagationConfig") -> float:
    phase = -2.0 * math.pi * f / config.c * path.total_distance
    if _uses_impedance(path, config):
        return phase + cx.phase(_ground_gamma(path, f, config))
    return phase + path.reflection_phase_change


def compute_source_phasors(
    spectrum: Spectrum9, paths: Sequence[RayPath], config: "PropagationConfig", gain: float = 0.0
) -> List[SpectralPhasor]:
    """One spectral phasor per summed path (valid and dominant)."""
    levels = apply_gain_to_spectrum(spectrum, gain)
    out: List[SpectralPhasor] = []
    for path in paths:
        if not (path.valid and path.dominant):
            continue
        phasors = []
        for level, f in zip(levels, OCTAVE_BANDS):
            lp = path_level(float(level), path, float(f), config)
            pressure = 0.0 if lp <= MIN_LEVEL else db_to_pressure(lp)
            phasors.append(Phasor(pressure, path_phase(path, float(f), config)))
        out.append(phasors)
    return out


def sum_source_spectral_phasors(spectral_phasors: Sequence[SpectralPhasor], coherent: bool) -> Spectrum9:
    """Band levels of one source: coherent phasor sum or energetic sum."""
    if not spectral_phasors:
        return empty_spectrum()
    if coherent:
        return sum_spectral_phasors_coherent(spectral_phasors)
    pressures = np.array([[p.pressure for p in sp] for sp in spectral_phasors], dtype=float)
    totals = np.sqrt(np.sum(pressures**2, axis=0))
    return make_spectrum(max(pressure_to_db(float(v)), MIN_LEVEL) for v in totals)
