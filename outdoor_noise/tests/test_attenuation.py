import math

import numpy as np
import pytest

from ..atmosphere import Atmosphere, atmospheric_absorption_iso9613, atmospheric_absorption_simple
from ..attenuation import (
    BarrierGeometry,
    agr_iso9613_per_band,
    barrier_attenuation,
    calculate_banded_propagation,
    calculate_propagation,
    calculate_spl,
    maekawa_diffraction,
    nearest_octave_band,
    spreading_loss,
    spreading_loss_from_reference,
    total_atmospheric_absorption,
)
from ..config import PropagationConfig
from ..constants import MIN_LEVEL, OCTAVE_BANDS


@pytest.mark.parametrize("d", [0.5, 1.0, 7.3, 100.0, 1500.0])
def test_inverse_square_law(d: float) -> None:
    assert spreading_loss(2 * d) - spreading_loss(d) == pytest.approx(20 * math.log10(2), abs=1e-9)


def test_spreading_modes() -> None:
    assert spreading_loss(1.0) == pytest.approx(10 * math.log10(4 * math.pi))
    assert spreading_loss(20.0, "cylindrical") - spreading_loss(10.0, "cylindrical") == pytest.approx(3.0103, abs=1e-4)
    assert spreading_loss_from_reference(10.0) == pytest.approx(20.0)
    assert spreading_loss(0.0) == spreading_loss(0.1)


def test_barrier_attenuation_monotonic_and_capped() -> None:
    deltas = np.linspace(0.0, 50.0, 200)
    for barrier_type, cap in (("thin", 20.0), ("thick", 25.0)):
        values = [barrier_attenuation(d, 1000.0, barrier_type=barrier_type) for d in deltas]
        assert all(b >= a - 1e-12 for a, b in zip(values, values[1:]))
        assert max(values) == pytest.approx(cap)
    assert barrier_attenuation(-1.0, 1000.0) == 0.0
    assert barrier_attenuation(0.0, 1000.0) == pytest.approx(10 * math.log10(3))


def test_barrier_attenuation_finite_for_grazing_fresnel_numbers() -> None:
    lam = 0.343
    fresnel = np.linspace(-0.1, 0.0, 101)
    for barrier_type in ("thin", "thick"):
        values = [barrier_attenuation(n * lam / 2, 1000.0, lam, barrier_type) for n in fresnel]
        assert all(math.isfinite(v) and v >= 0.0 for v in values)
        assert all(b >= a - 1e-12 for a, b in zip(values, values[1:]))
    assert barrier_attenuation(-0.09 * lam / 2, 1000.0, lam, "thick") == 0.0
    assert all(maekawa_diffraction(n * lam / 2, 1000.0, 343.0) >= 0.0 for n in fresnel)


def test_maekawa_bounds() -> None:
    assert maekawa_diffraction(-1.0, 500.0) == 0.0
    assert maekawa_diffraction(100.0, 8000.0) == 25.0
    assert 0.0 < maekawa_diffraction(0.5, 500.0) < 25.0


def test_nearest_octave_band() -> None:
    assert nearest_octave_band(1000.0) == 1000
    assert nearest_octave_band(1100.0) == 1000
    assert nearest_octave_band(16000.0) == 8000


def test_agr_iso9613_floor() -> None:
    for f in OCTAVE_BANDS:
        assert agr_iso9613_per_band(200.0, 2.0, 1.5, 1.0, float(f)) >= -3.0
    hard = agr_iso9613_per_band(200.0, 2.0, 1.5, 0.0, 500.0)
    assert hard == pytest.approx(-3.0)


def test_iso9613_absorption_increases_with_frequency() -> None:
    alpha = atmospheric_absorption_iso9613(OCTAVE_BANDS)
    assert np.all(np.diff(alpha) > 0)
    assert alpha[4] == pytest.approx(0.0047, rel=0.1)
    assert isinstance(atmospheric_absorption_iso9613(1000.0), float)


def test_simple_absorption_table() -> None:
    assert atmospheric_absorption_simple(63.0) == pytest.approx(1e-4)
    assert atmospheric_absorption_simple(16000.0) == pytest.approx(0.2)
    assert Atmosphere().absorption(1000.0, "none") == 0.0
    assert Atmosphere(temperature=0.0).speed_of_sound() == pytest.approx(331.3)


def test_total_absorption_scales_with_path_length() -> None:
    config = PropagationConfig()
    short = total_atmospheric_absorption(100.0, 4000.0, config)
    assert total_atmospheric_absorption(300.0, 4000.0, config) == pytest.approx(3 * short)
    assert total_atmospheric_absorption(300.0, 4000.0, PropagationConfig(atmospheric_absorption=False)) == 0.0


def test_propagation_unblocked_free_field() -> None:
    config = PropagationConfig(ground_reflection=False, atmospheric_absorption="none")
    result = calculate_propagation(10.0, 2.0, 1.5, config)
    assert result.total_attenuation == pytest.approx(spreading_loss(10.0))
    assert calculate_spl(100.0, result) == pytest.approx(100.0 - spreading_loss(10.0))


def test_propagation_blocked_uses_max_without_geometry() -> None:
    config = PropagationConfig(atmospheric_absorption="none")
    result = calculate_propagation(50.0, 1.0, 1.5, config, path_difference=1.0, blocked=True)
    assert result.total_attenuation == pytest.approx(
        result.spreading_loss + max(result.barrier_attenuation, result.ground_effect)
    )


def test_propagation_blocked_partitions_ground() -> None:
    config = PropagationConfig(atmospheric_absorption="none")
    geometry = BarrierGeometry(20.0, 30.0, 4.0)
    result = calculate_propagation(50.0, 1.0, 1.5, config, path_difference=1.0, blocked=True, barrier=geometry)
    assert result.total_attenuation == pytest.approx(
        result.spreading_loss + result.barrier_attenuation + result.ground_effect
    )


def test_propagation_beyond_max_distance() -> None:
    config = PropagationConfig(max_distance=100.0)
    result = calculate_propagation(150.0, 1.0, 1.0, config)
    assert result.blocked
    assert calculate_spl(100.0, result) == MIN_LEVEL


def test_banded_propagation() -> None:
    banded = calculate_banded_propagation(100.0, 2.0, 1.5, PropagationConfig())
    assert len(banded.bands) == 9
    assert banded.overall == banded.bands[4]
    assert banded.bands[-1].atmospheric_absorption > banded.bands[0].atmospheric_absorption
