"""ISO 9613-2 style attenuation budget for a single source-receiver path.

``A = A_div + A_atm + A_gr + A_bar`` with geometric divergence, air
absorption over the travelled length, ground effect and screening.  All
terms are in dB and positive values attenuate.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Literal, Optional, Tuple

import numpy as np

from .atmosphere import atmospheric_absorption_iso9613, atmospheric_absorption_simple
from .constants import MIN_DISTANCE, MIN_LEVEL, OCTAVE_BANDS, SPEED_OF_SOUND_20C
from .ground import agr_iso_eq10_db, agr_two_ray_db

if TYPE_CHECKING:
    from .config import PropagationConfig

__all__ = [
    "BarrierType",
    "SpreadingMode",
    "SPHERICAL_CONSTANT",
    "CYLINDRICAL_CONSTANT",
    "spreading_loss",
    "spreading_loss_from_reference",
    "total_atmospheric_absorption",
    "barrier_attenuation",
    "maekawa_diffraction",
    "nearest_octave_band",
    "agr_iso9613_per_band",
    "ground_effect",
    "BarrierGeometry",
    "PropagationResult",
    "BandedPropagationResult",
    "calculate_propagation",
    "calculate_banded_propagation",
    "calculate_spl",
]

BarrierType = Literal["thin", "thick"]
SpreadingMode = Literal["spherical", "cylindrical"]

SPHERICAL_CONSTANT = 10.0 * math.log10(4.0 * math.pi)
CYLINDRICAL_CONSTANT = 10.0 * math.log10(2.0 * math.pi)

# ---------------------------------------------------------------------------
# Divergence and air absorption
# ---------------------------------------------------------------------------


def spreading_loss(distance: float, mode: SpreadingMode = "spherical") -> float:
    """Geometric divergence of a sound power level, ``Lw -> Lp``."""
    d = max(distance, MIN_DISTANCE)
    if mode == "cylindrical":
        return 10.0 * math.log10(d) + CYLINDRICAL_CONSTANT
    return 20.0 * math.log10(d) + SPHERICAL_CONSTANT


def spreading_loss_from_reference(distance: float, mode: SpreadingMode = "spherical") -> float:
    """Divergence relative to a level measured at 1 m."""
    d = max(distance, MIN_DISTANCE)
    if mode == "cylindrical":
        return 10.0 * math.log10(d)
    return 20.0 * math.log10(d)


def total_atmospheric_absorption(path_length: float, f: float, config: "PropagationConfig") -> float:
    """Air absorption in dB over ``path_length`` metres at frequency ``f``."""
    model = config.atmospheric_absorption
    if model == "none":
        return 0.0
    if model == "simple":
        alpha = atmospheric_absorption_simple(f, config.temperature, config.humidity)
    else:
        alpha = atmospheric_absorption_iso9613(f, config.temperature, config.humidity, config.pressure)
    return float(alpha) * path_length


# ---------------------------------------------------------------------------
# Screening
# ---------------------------------------------------------------------------


def _fresnel_loss(n: float, coef: float) -> float:
    # the argument drops below 1 just above N = -0.1; floor it at 0 dB
    return 10.0 * math.log10(max(3.0 + coef * n, 1.0))


def barrier_attenuation(
    path_difference: float,
    f: float,
    wavelength: Optional[float] = None,
    barrier_type: BarrierType = "thin",
) -> float:
    """Screen insertion loss from the Fresnel number ``N = 2 delta / lambda``.

    Parameters
    ----------
    path_difference : float
        Detour over the edge minus the direct distance (m).
    f : float
        Frequency in Hz.
    wavelength : float, optional
        Defaults to ``343 / f``.
    barrier_type : {"thin", "thick"}
        Single edge: ``10 log10(3 + 20 N)`` capped at 20 dB.  Double edge
        (buildings): ``10 log10(3 + 40 N)`` capped at 25 dB.

    Returns
    -------
    float
        0 when ``N < -0.1``.
    """
    lam = wavelength if wavelength is not None else SPEED_OF_SOUND_20C / f
    n = 2.0 * path_difference / lam
    if n < -0.1:
        return 0.0
    if barrier_type == "thick":
        return min(_fresnel_loss(n, 40.0), 25.0)
    return min(_fresnel_loss(n, 20.0), 20.0)


def maekawa_diffraction(path_difference: float, f: float, c: float = SPEED_OF_SOUND_20C) -> float:
    """Single edge Maekawa loss clamped to ``[0, 25]`` dB."""
    n = 2.0 * path_difference / (c / f)
    if n < -0.1:
        return 0.0
    return min(_fresnel_loss(n, 20.0), 25.0)


# ---------------------------------------------------------------------------
# Ground effect
# ---------------------------------------------------------------------------

# ISO 9613-2 Table 3, source and receiver regions: (a', b', c', d')
ISO_TABLE_3: Dict[int, Tuple[float, float, float, float]] = {
    63: (-1.5, -3.0, 1.5, -1.5),
    125: (-1.5, -3.0, 1.5, -1.5),
    250: (-1.5, -3.0, 1.5, -1.5),
    500: (-1.5, -3.0, 1.5, -1.5),
    1000: (-1.5, -3.0, 1.5, -1.5),
    2000: (-1.5, 0.0, 1.5, 0.0),
    4000: (-1.5, 0.0, 1.5, 0.0),
    8000: (-1.5, 0.0, 1.5, 0.0),
}

# ISO 9613-2 Table 4, middle region: (a, b)
ISO_TABLE_4: Dict[int, Tuple[float, float]] = {band: (-3.0, 3.0) for band in ISO_TABLE_3}

_TABLE_BANDS = np.array(sorted(ISO_TABLE_3), dtype=float)


def nearest_octave_band(f: float) -> int:
    """Closest tabulated band (63 Hz to 8 kHz) on a log2 scale."""
    idx = int(np.argmin(np.abs(np.log2(max(f, 1.0)) - np.log2(_TABLE_BANDS))))
    return int(_TABLE_BANDS[idx])


def _region_effect(height: float, distance: float, G: float, f: float) -> float:
    a, b, c, d = ISO_TABLE_3[nearest_octave_band(f)]
    h = max(height, 0.001)
    dp = max(min(30.0 * h, distance), 0.001)
    return a + b * G * math.log10(h) + c * G * math.log10(dp) + d * G


def _middle_region_effect(hs: float, hr: float, distance: float, G: float, f: float) -> float:
    a, b = ISO_TABLE_4[nearest_octave_band(f)]
    q = max(0.0, 1.0 - 30.0 * (hs + hr) / max(distance, 0.1))
    return a * q + b * (1.0 - G) * q


def agr_iso9613_per_band(d: float, hs: float, hr: float, G: float, f: float) -> float:
    """``A_gr = A_s + A_r + A_m`` from Tables 3 and 4, never below -3 dB."""
    G = min(max(G, 0.0), 1.0)
    d = max(d, 0.1)
    total = _region_effect(hs, d, G, f) + _region_effect(hr, d, G, f) + _middle_region_effect(hs, hr, d, G, f)
    return max(-3.0, total)


def ground_effect(d: float, hs: float, hr: float, f: float, config: "PropagationConfig") -> float:
    """Ground term for horizontal distance ``d`` using ``config.ground_model``."""
    if config.ground_model == "two_ray":
        return agr_two_ray_db(
            f,
            d,
            hs,
            hr,
            config.ground_type,
            config.ground_flow_resistivity,
            config.ground_mixed_factor,
            config.c,
        )
    if config.ground_model == "iso9613_eq10":
        return agr_iso_eq10_db(d, hs, hr)
    return agr_iso9613_per_band(d, hs, hr, config.ground_factor, f)


# ---------------------------------------------------------------------------
# Combined budget
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BarrierGeometry:
    """Plan distances either side of the diffraction edge and its height."""

    dist_source_to_barrier: float
    dist_barrier_to_receiver: float
    barrier_height: float


@dataclass(frozen=True)
class PropagationResult:
    total_attenuation: float
    spreading_loss: float
    atmospheric_absorption: float
    ground_effect: float
    barrier_attenuation: float
    distance: float
    blocked: bool


@dataclass(frozen=True)
class BandedPropagationResult:
    bands: Tuple[PropagationResult, ...]
    overall: PropagationResult


def calculate_propagation(
    distance: float,
    hs: float,
    hr: float,
    config: "PropagationConfig",
    path_difference: float = 0.0,
    blocked: bool = False,
    f: float = 1000.0,
    path_length: Optional[float] = None,
    barrier_type: BarrierType = "thin",
    barrier: Optional[BarrierGeometry] = None,
) -> PropagationResult:
    """Attenuation from a source to a receiver at one frequency.

    Parameters
    ----------
    distance : float
        Direct 3D distance; drives divergence.
    hs, hr : float
        Source and receiver heights above ground.
    config : PropagationConfig
        Ground, absorption, spreading and distance settings.
    path_difference : float, optional
        Detour over the strongest screen.
    blocked : bool, optional
        Whether a screen cuts the line of sight.
    f : float, optional
        Frequency in Hz.
    path_length : float, optional
        Length actually travelled, used for air absorption.  Defaults to
        ``distance``.
    barrier_type : {"thin", "thick"}
        Screen formula.
    barrier : BarrierGeometry, optional
        With a blocked path and ground reflection enabled, ground effect is
        evaluated separately on the source and receiver side of the edge
        and added to the screen loss.  Without it, the larger of screen
        loss and ground effect is used.

    Returns
    -------
    PropagationResult
        ``blocked=True`` with ``total_attenuation = MIN_LEVEL`` beyond
        ``config.max_distance``.
    """
    distance = max(distance, MIN_DISTANCE)
    if distance > config.max_distance:
        return PropagationResult(MIN_LEVEL, 0.0, 0.0, 0.0, 0.0, distance, True)

    a_div = spreading_loss(distance, config.spreading)
    a_atm = total_atmospheric_absorption(path_length if path_length is not None else distance, f, config)
    wavelength = config.c / f
    horizontal = math.sqrt(max(distance * distance - (hs - hr) ** 2, 0.0))

    a_gr = 0.0
    a_bar = 0.0
    if blocked and barrier is not None and config.ground_reflection:
        a_gr = ground_effect(barrier.dist_source_to_barrier, hs, barrier.barrier_height, f, config) + ground_effect(
            barrier.dist_barrier_to_receiver, barrier.barrier_height, hr, f, config
        )
        a_bar = barrier_attenuation(path_difference, f, wavelength, barrier_type)
        total = a_div + a_atm + a_bar + a_gr
    elif blocked and config.include_barriers:
        if config.ground_reflection:
            a_gr = ground_effect(horizontal, hs, hr, f, config)
        a_bar = barrier_attenuation(path_difference, f, wavelength, barrier_type)
        total = a_div + a_atm + max(a_bar, a_gr)
    else:
        if config.ground_reflection:
            a_gr = ground_effect(horizontal, hs, hr, f, config)
        total = a_div + a_atm + a_gr

    return PropagationResult(total, a_div, a_atm, a_gr, a_bar, distance, False)


def calculate_banded_propagation(
    distance: float,
    hs: float,
    hr: float,
    config: "PropagationConfig",
    path_difference: float = 0.0,
    blocked: bool = False,
    path_length: Optional[float] = None,
    barrier_type: BarrierType = "thin",
    barrier: Optional[BarrierGeometry] = None,
) -> BandedPropagationResult:
    """:func:`calculate_propagation` for all nine bands plus 1 kHz as overall."""
    bands = tuple(
        calculate_propagation(
            distance, hs, hr, config, path_difference, blocked, float(f), path_length, barrier_type, barrier
        )
        for f in OCTAVE_BANDS
    )
    overall = calculate_propagation(
        distance, hs, hr, config, path_difference, blocked, 1000.0, path_length, barrier_type, barrier
    )
    return BandedPropagationResult(bands, overall)


def calculate_spl(sound_power_level: float, result: PropagationResult) -> float:
    """Receiver level, or ``MIN_LEVEL`` when the path is out of range."""
    if result.blocked:
        return MIN_LEVEL
    return sound_power_level - result.total_attenuation
