"""Small complex value type used by the ground impedance model.

Python's builtin ``complex`` would do the arithmetic, but the divide guard
and the square root branch used by the reflection coefficient are pinned
down here explicitly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import EPSILON

__all__ = [
    "Complex",
    "ZERO",
    "ONE",
    "add",
    "sub",
    "mul",
    "div",
    "magnitude",
    "phase",
    "sqrt",
    "scale",
    "expj",
    "from_polar",
]


@dataclass(frozen=True)
class Complex:
    re: float
    im: float = 0.0


ZERO = Complex(0.0, 0.0)
ONE = Complex(1.0, 0.0)


def add(a: Complex, b: Complex) -> Complex:
    return Complex(a.re + b.re, a.im + b.im)


def sub(a: Complex, b: Complex) -> Complex:
    return Complex(a.re - b.re, a.im - b.im)


def mul(a: Complex, b: Complex) -> Complex:
    return Complex(a.re * b.re - a.im * b.im, a.re * b.im + a.im * b.re)


def div(a: Complex, b: Complex) -> Complex:
    """``a / b``; a denominator with squared magnitude below ``EPSILON`` gives 0."""
    denom = b.re * b.re + b.im * b.im
    if denom < EPSILON:
        return ZERO
    return Complex((a.re * b.re + a.im * b.im) / denom, (a.im * b.re - a.re * b.im) / denom)


def magnitude(a: Complex) -> float:
    return math.hypot(a.re, a.im)


def phase(a: Complex) -> float:
    return math.atan2(a.im, a.re)


def sqrt(a: Complex) -> Complex:
    """Principal square root (non-negative real part)."""
    r = magnitude(a)
    if r == 0.0:
        return ZERO
    t = math.sqrt(max((r + a.re) / 2.0, 0.0))
    u = math.sqrt(max((r - a.re) / 2.0, 0.0))
    return Complex(t, -u if a.im < 0 else u)


def scale(a: Complex, factor: float) -> Complex:
    return Complex(a.re * factor, a.im * factor)


def expj(phi: float) -> Complex:
    """``exp(j*phi)``"""
    return Complex(math.cos(phi), math.sin(phi))


def from_polar(mag: float, phi: float) -> Complex:
    return scale(expj(phi), mag)
