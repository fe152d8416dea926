"""Physical and numerical constants shared by the propagation core."""

from __future__ import annotations

import numpy as np

__all__ = [
    "EPSILON",
    "OCTAVE_BANDS",
    "OCTAVE_BAND_COUNT",
    "MIN_LEVEL",
    "P_REF",
    "P_MIN",
    "MIN_DISTANCE",
    "MAX_DISTANCE",
    "SPEED_OF_SOUND_20C",
    "STANDARD_PRESSURE_KPA",
    "STANDARD_TEMPERATURE_C",
    "STANDARD_HUMIDITY_PCT",
    "A_WEIGHTING",
    "C_WEIGHTING",
    "Z_WEIGHTING",
    "weighting_offsets",
    "speed_of_sound",
]


def _frozen(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    arr.flags.writeable = False
    return arr


# ---------------------------------------------------------------------------
# Numerical tolerances
# ---------------------------------------------------------------------------

EPSILON = 1e-10

# ---------------------------------------------------------------------------
# Frequency bands
# ---------------------------------------------------------------------------

OCTAVE_BANDS = _frozen([63, 125, 250, 500, 1000, 2000, 4000, 8000, 16000])
OCTAVE_BAND_COUNT = 9

# IEC 61672-1 octave band weightings, same order as ``OCTAVE_BANDS``
A_WEIGHTING = _frozen([-26.2, -16.1, -8.6, -3.2, 0.0, 1.2, 1.0, -1.1, -6.6])
C_WEIGHTING = _frozen([-0.8, -0.2, 0.0, 0.0, 0.0, -0.2, -0.8, -3.0, -8.5])
Z_WEIGHTING = _frozen([0.0] * OCTAVE_BAND_COUNT)

# ---------------------------------------------------------------------------
# Levels and pressures
# ---------------------------------------------------------------------------

MIN_LEVEL = -100.0  # dB, floor for "no audible contribution"
P_REF = 2e-5  # Pa, threshold of hearing
P_MIN = 1e-12  # Pa, numerical floor

# ---------------------------------------------------------------------------
# Propagation
# ---------------------------------------------------------------------------

MIN_DISTANCE = 0.1  # m
MAX_DISTANCE = 2000.0  # m, default propagation cut-off
SPEED_OF_SOUND_20C = 343.0
STANDARD_PRESSURE_KPA = 101.325
STANDARD_TEMPERATURE_C = 20.0
STANDARD_HUMIDITY_PCT = 50.0


def weighting_offsets(weighting: str) -> np.ndarray:
    """Return the nine band offsets for ``"A"``, ``"C"`` or ``"Z"`` weighting."""
    try:
        return {"A": A_WEIGHTING, "C": C_WEIGHTING, "Z": Z_WEIGHTING}[weighting]
    except KeyError:
        raise ValueError(f"unknown frequency weighting {weighting!r}") from None


def speed_of_sound(temperature_c: float = STANDARD_TEMPERATURE_C) -> float:
    """Speed of sound in air (m/s) from the linearised temperature law."""
    return 331.3 + 0.606 * temperature_c
