from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from .constants import (
    STANDARD_HUMIDITY_PCT,
    STANDARD_PRESSURE_KPA,
    STANDARD_TEMPERATURE_C,
    speed_of_sound,
)

__all__ = [
    "AbsorptionModel",
    "Atmosphere",
    "atmospheric_absorption_iso9613",
    "atmospheric_absorption_simple",
]

AbsorptionModel = Literal["none", "simple", "iso9613"]

# Upper band edge (Hz) -> base coefficient (dB/m) at 20 °C / 50 % RH
_SIMPLE_EDGES = np.array([63, 125, 250, 500, 1000, 2000, 4000, 8000], dtype=float)
_SIMPLE_ALPHA = np.array([1e-4, 3e-4, 1e-3, 2e-3, 4e-3, 8e-3, 0.02, 0.06, 0.2])


def atmospheric_absorption_iso9613(
    f: np.ndarray | float,
    temperature_c: float = STANDARD_TEMPERATURE_C,
    humidity_pct: float = STANDARD_HUMIDITY_PCT,
    pressure_kpa: float = STANDARD_PRESSURE_KPA,
) -> np.ndarray | float:
    """ISO 9613-1 pure-tone absorption coefficient in dB/m.

    ``f`` may be a scalar or an array; the meteorological inputs are
    scalars.  Relaxation frequencies of oxygen and nitrogen are derived from
    the molar concentration of water vapour.
    """
    f = np.asarray(f, dtype=float)
    T = temperature_c + 273.15
    T0 = 293.15
    T01 = 273.16
    ps0 = STANDARD_PRESSURE_KPA
    ps = pressure_kpa

    psat = ps0 * 10.0 ** (-6.8346 * (T01 / T) ** 1.261 + 4.6151)
    h = humidity_pct * psat / ps

    fr_o = (ps / ps0) * (24.0 + 4.04e4 * h * (0.02 + h) / (0.391 + h))
    fr_n = (ps / ps0) * (T / T0) ** -0.5 * (9.0 + 280.0 * h * np.exp(-4.17 * ((T / T0) ** (-1.0 / 3.0) - 1.0)))

    alpha = 8.686 * f**2 * (
        1.84e-11 * (ps / ps0) ** -1 * (T / T0) ** 0.5
        + (T / T0) ** -2.5
        * (
            0.01275 * np.exp(-2239.1 / T) * fr_o / (fr_o**2 + f**2)
            + 0.1068 * np.exp(-3352.0 / T) * fr_n / (fr_n**2 + f**2)
        )
    )
    if alpha.ndim == 0:
        return float(alpha)
    return alpha


def atmospheric_absorption_simple(
    f: np.ndarray | float,
    temperature_c: float = STANDARD_TEMPERATURE_C,
    humidity_pct: float = STANDARD_HUMIDITY_PCT,
) -> np.ndarray | float:
    """Tabulated per-band absorption (dB/m) with linear meteo corrections."""
    f = np.asarray(f, dtype=float)
    base = _SIMPLE_ALPHA[np.searchsorted(_SIMPLE_EDGES, f, side="left")]
    factor = (1.0 + 0.01 * (temperature_c - 20.0)) * (1.0 + 0.005 * (50.0 - humidity_pct))
    alpha = np.maximum(base * factor, 0.0)
    if alpha.ndim == 0:
        return float(alpha)
    return alpha


@dataclass
class Atmosphere:
    """Homogeneous still atmosphere.

    Parameters
    ----------
    temperature : float
        Air temperature in °C.
    humidity : float
        Relative humidity in percent.
    pressure : float
        Static pressure in kPa.
    """

    temperature: float = STANDARD_TEMPERATURE_C
    humidity: float = STANDARD_HUMIDITY_PCT
    pressure: float = STANDARD_PRESSURE_KPA

    def speed_of_sound(self) -> float:
        return speed_of_sound(self.temperature)

    def absorption(self, freqs: np.ndarray | float, model: AbsorptionModel = "iso9613") -> np.ndarray | float:
        """Absorption coefficient in dB/m for ``freqs`` under ``model``."""
        if model == "none":
            out = np.zeros_like(np.asarray(freqs, dtype=float))
            return float(out) if out.ndim == 0 else out
        if model == "simple":
            return atmospheric_absorption_simple(freqs, self.temperature, self.humidity)
        return atmospheric_absorption_iso9613(freqs, self.temperature, self.humidity, self.pressure)
