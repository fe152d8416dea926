"""Nine-band octave spectra and decibel arithmetic.

A spectrum is a read-only ``numpy`` array of exactly nine levels in dB,
ordered like :data:`~outdoor_noise.constants.OCTAVE_BANDS`.  Construction
goes through :func:`make_spectrum` so that "all nine bands present" holds
structurally instead of being re-checked by every consumer.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from .constants import MIN_LEVEL, OCTAVE_BAND_COUNT, OCTAVE_BANDS, weighting_offsets

__all__ = [
    "Spectrum9",
    "make_spectrum",
    "flat_spectrum",
    "empty_spectrum",
    "add_decibels",
    "sum_decibels",
    "sum_multiple_spectra",
    "apply_gain_to_spectrum",
    "apply_weighting",
    "overall_level",
    "band_index",
    "overall_to_flat_spectrum",
]

Spectrum9 = np.ndarray


def make_spectrum(values: Iterable[float]) -> Spectrum9:
    """Return ``values`` as a read-only 9-band spectrum.

    Raises
    ------
    ValueError
        If ``values`` does not hold exactly nine levels.
    """
    arr = np.array(list(values), dtype=float)
    if arr.shape != (OCTAVE_BAND_COUNT,):
        raise ValueError(f"spectrum must have {OCTAVE_BAND_COUNT} bands, got {arr.size}")
    arr.flags.writeable = False
    return arr


def flat_spectrum(level: float) -> Spectrum9:
    return make_spectrum([level] * OCTAVE_BAND_COUNT)


def empty_spectrum() -> Spectrum9:
    return flat_spectrum(MIN_LEVEL)


def band_index(frequency: float) -> int:
    """Index of ``frequency`` in the octave band list."""
    idx = np.flatnonzero(OCTAVE_BANDS == frequency)
    if idx.size == 0:
        raise ValueError(f"invalid octave band frequency: {frequency} Hz")
    return int(idx[0])


# ---------------------------------------------------------------------------
# Energetic decibel sums
# ---------------------------------------------------------------------------


def add_decibels(a: float, b: float) -> float:
    if a < MIN_LEVEL and b < MIN_LEVEL:
        return MIN_LEVEL
    if a < MIN_LEVEL:
        return b
    if b < MIN_LEVEL:
        return a
    return float(10.0 * np.log10(10.0 ** (a / 10.0) + 10.0 ** (b / 10.0)))


def sum_decibels(levels: Iterable[float]) -> float:
    """Energetic sum of levels; contributions at or below MIN_LEVEL are ignored."""
    valid = np.array([l for l in levels if l > MIN_LEVEL], dtype=float)
    if valid.size == 0:
        return MIN_LEVEL
    if valid.size == 1:
        return float(valid[0])
    return float(10.0 * np.log10(np.sum(10.0 ** (valid / 10.0))))


def sum_multiple_spectra(spectra: Sequence[Spectrum9]) -> Spectrum9:
    """Band-wise energetic sum of uncorrelated spectra."""
    if len(spectra) == 0:
        return empty_spectrum()
    stacked = np.vstack([np.asarray(s, dtype=float) for s in spectra])
    return make_spectrum(sum_decibels(stacked[:, i]) for i in range(OCTAVE_BAND_COUNT))


def apply_gain_to_spectrum(spectrum: Spectrum9, gain: float) -> Spectrum9:
    """Offset all bands by ``gain`` dB, keeping silent bands at MIN_LEVEL."""
    s = np.asarray(spectrum, dtype=float)
    return make_spectrum(np.where(s <= MIN_LEVEL, MIN_LEVEL, s + gain))


def apply_weighting(spectrum: Spectrum9, weighting: str) -> Spectrum9:
    return make_spectrum(np.asarray(spectrum, dtype=float) + weighting_offsets(weighting))


def overall_level(spectrum: Spectrum9, weighting: str = "Z") -> float:
    """Weighted overall level: per-band offsets then an energetic sum."""
    s = np.asarray(spectrum, dtype=float)
    if s.shape != (OCTAVE_BAND_COUNT,):
        raise ValueError(f"spectrum must have {OCTAVE_BAND_COUNT} bands, got {s.size}")
    audible = s > MIN_LEVEL
    if not np.any(audible):
        return MIN_LEVEL
    weighted = s[audible] + weighting_offsets(weighting)[audible]
    return float(10.0 * np.log10(np.sum(10.0 ** (weighted / 10.0))))


def overall_to_flat_spectrum(level: float) -> Spectrum9:
    """Spread an overall level evenly over the nine bands."""
    return flat_spectrum(level - 10.0 * np.log10(OCTAVE_BAND_COUNT))
