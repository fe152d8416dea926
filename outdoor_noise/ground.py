"""Ground impedance and the two ground-effect formulas.

The reflection coefficient follows the locally reacting surface model:
Delany–Bazley normalised impedance (Miki above its validity range), a
plane-wave coefficient and a spherical-wave correction for large numerical
distances.  :func:`agr_two_ray_db` uses it for a signed interference level;
:func:`agr_iso_eq10_db` is the frequency independent ISO 9613-2 Eq. (10)
and never goes negative.
"""

from __future__ import annotations

import math

from . import complex as cx
from .complex import Complex
from .world.api import SurfaceType

__all__ = [
    "MAX_REFLECTION_MAGNITUDE",
    "delany_bazley_normalized_impedance",
    "miki_impedance",
    "effective_flow_resistivity",
    "reflection_coeff",
    "agr_two_ray_db",
    "agr_iso_eq10_db",
]

MAX_REFLECTION_MAGNITUDE = 0.98
MIN_COS_THETA = 0.05
RIGID_IMPEDANCE = Complex(100.0, 0.0)


def miki_impedance(f: float, sigma: float) -> Complex:
    """Miki (1990) normalised impedance, with ``f/sigma`` capped at 10."""
    x = min(max(f, 20.0) / max(sigma, 1.0), 10.0)
    p = x ** -0.632
    return Complex(1.0 + 5.50 * p, -8.43 * p)


def delany_bazley_normalized_impedance(f: float, sigma: float) -> Complex:
    """Normalised surface impedance of a porous ground.

    Parameters
    ----------
    f : float
        Frequency in Hz.
    sigma : float
        Flow resistivity in Pa·s/m².

    Returns
    -------
    Complex
        ``zeta = Z / (rho c)``.  Below ``f/sigma = 0.01`` the surface is
        treated as rigid (``100 + 0j``); above 1 the Miki extension is used.
    """
    x = max(f, 20.0) / max(sigma, 1.0)
    if x < 0.01:
        return RIGID_IMPEDANCE
    if x > 1.0:
        return miki_impedance(f, sigma)
    return Complex(1.0 + 9.08 * x ** -0.75, -11.9 * x ** -0.73)


def effective_flow_resistivity(ground_type: SurfaceType, sigma_soft: float, mixed_factor: float) -> float:
    """Flow resistivity seen by the impedance model.

    Mixed ground interpolates towards a ten times harder surface as the soft
    share drops.
    """
    if ground_type == "mixed":
        mix = min(max(mixed_factor, 0.0), 1.0)
        return sigma_soft * (1.0 + 9.0 * (1.0 - mix))
    return sigma_soft


def reflection_coeff(
    f: float,
    cos_theta: float,
    ground_type: SurfaceType,
    sigma_soft: float,
    mixed_factor: float,
    r2: float,
    c: float,
) -> Complex:
    """Spherical-wave ground reflection coefficient.

    Parameters
    ----------
    f : float
        Frequency in Hz.
    cos_theta : float
        Cosine of the angle of incidence measured from the normal, i.e.
        ``(hs + hr) / r2`` for a flat ground.
    ground_type : {"hard", "soft", "mixed"}
        Hard ground reflects perfectly (``1 + 0j``).
    sigma_soft : float
        Flow resistivity of the soft component.
    mixed_factor : float
        Soft share for mixed ground.
    r2 : float
        Length of the reflected path in metres.
    c : float
        Speed of sound in m/s.

    Returns
    -------
    Complex
        Coefficient with magnitude at most ``MAX_REFLECTION_MAGNITUDE``.
    """
    if ground_type == "hard":
        gamma = cx.ONE
    else:
        cos_t = min(max(cos_theta, MIN_COS_THETA), 1.0)
        sigma = effective_flow_resistivity(ground_type, sigma_soft, mixed_factor)
        zeta = delany_bazley_normalized_impedance(f, sigma)
        zeta_cos = cx.scale(zeta, cos_t)
        gamma = cx.div(cx.sub(zeta_cos, cx.ONE), cx.add(zeta_cos, cx.ONE))

        k = 2.0 * math.pi * f / c
        w = cx.mul(cx.sqrt(Complex(0.0, k * r2 / 2.0)), cx.add(Complex(cos_t), cx.div(cx.ONE, zeta)))
        if cx.magnitude(w) >= 4.0:
            w2 = cx.mul(w, w)
            w4 = cx.mul(w2, w2)
            boundary_loss = cx.add(cx.div(Complex(-0.5), w2), cx.div(Complex(0.75), w4))
            gamma = cx.add(gamma, cx.mul(cx.sub(cx.ONE, gamma), boundary_loss))

    mag = cx.magnitude(gamma)
    if mag > MAX_REFLECTION_MAGNITUDE:
        gamma = cx.scale(gamma, MAX_REFLECTION_MAGNITUDE / mag)
    return gamma


def agr_two_ray_db(
    f: float,
    d: float,
    hs: float,
    hr: float,
    ground_type: SurfaceType,
    sigma_soft: float,
    mixed_factor: float,
    c: float,
) -> float:
    """Two-ray ground interference level in dB.

    Positive values attenuate, negative values boost.  ``d`` is the
    horizontal distance; degenerate geometry returns 0.
    """
    if d <= 0.0:
        return 0.0
    hs = max(hs, 0.0)
    hr = max(hr, 0.0)
    r1 = math.sqrt(d * d + (hs - hr) ** 2)
    r2 = math.sqrt(d * d + (hs + hr) ** 2)
    if r1 <= 0.0 or r2 <= 0.0:
        return 0.0

    cos_theta = (hs + hr) / r2
    gamma = reflection_coeff(f, cos_theta, ground_type, sigma_soft, mixed_factor, r2, c)
    k = 2.0 * math.pi * f / c
    ratio = cx.add(cx.ONE, cx.mul(cx.scale(gamma, r1 / r2), cx.expj(-k * (r2 - r1))))
    mag = cx.magnitude(ratio)
    if not math.isfinite(mag):
        return 0.0
    return -20.0 * math.log10(max(mag, 1e-6))


def agr_iso_eq10_db(d: float, hs: float, hr: float) -> float:
    """ISO 9613-2 Eq. (10) ground attenuation with ``hm = (hs + hr) / 2``."""
    hm = 0.5 * (hs + hr)
    d = max(d, 1.0)
    return max(0.0, 4.8 - (2.0 * hm / d) * (17.0 + 300.0 / d))
