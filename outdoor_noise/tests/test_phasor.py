import math

import numpy as np
import pytest

from ..config import PropagationConfig
from ..constants import MIN_LEVEL, P_REF
from ..phasor import (
    Phasor,
    compute_source_phasors,
    create_phasor,
    db_to_pressure,
    fresnel_radius,
    path_level,
    path_phase,
    phase_from_path_difference,
    pressure_to_db,
    reflection_phase_change,
    sum_phasors_coherent,
    sum_phasors_coherent_full,
    sum_phasors_incoherent,
    sum_source_spectral_phasors,
)
from ..spectrum import flat_spectrum
from ..tracer import ObstacleSet, trace_ground_path
from ..world.api import GroundParams, Point3D, RayPath


def _direct(distance: float) -> RayPath:
    a, b = Point3D(0.0, 0.0, 1.0), Point3D(distance, 0.0, 1.0)
    return RayPath("direct", distance, distance, 0.0, (a, b))


@pytest.mark.parametrize("level", [-50.0, 0.0, 20.0, 94.0, 140.0])
def test_db_pressure_round_trip(level: float) -> None:
    assert pressure_to_db(db_to_pressure(level)) == pytest.approx(level, abs=1e-6)


def test_pressure_floor() -> None:
    assert pressure_to_db(0.0) == -200.0
    assert db_to_pressure(float("nan")) > 0.0
    assert db_to_pressure(94.0) == pytest.approx(P_REF * 10 ** (94.0 / 20.0))
    assert db_to_pressure(94.0) == pytest.approx(1.0, rel=5e-3)


def test_coherent_boundary_cases() -> None:
    one = sum_phasors_coherent([Phasor(1.0, 0.0)])
    assert sum_phasors_coherent([Phasor(1.0, 0.0), Phasor(1.0, 0.0)]) - one == pytest.approx(6.02, abs=0.01)
    assert sum_phasors_coherent([Phasor(1.0, 0.0), Phasor(1.0, math.pi / 2)]) - one == pytest.approx(3.01, abs=0.01)
    assert sum_phasors_coherent([Phasor(1.0, 0.0), Phasor(1.0, math.pi)]) < -100.0


def test_incoherent_ignores_phase() -> None:
    one = sum_phasors_incoherent([Phasor(1.0, 0.0)])
    assert sum_phasors_incoherent([Phasor(1.0, 0.0), Phasor(1.0, math.pi)]) - one == pytest.approx(3.01, abs=0.01)


def test_coherent_full_returns_phase() -> None:
    total = sum_phasors_coherent_full([Phasor(1.0, 0.0), Phasor(1.0, math.pi / 2)])
    assert total.pressure == pytest.approx(math.sqrt(2.0))
    assert total.phase == pytest.approx(math.pi / 4)


def test_phase_helpers() -> None:
    assert create_phasor(94.0, 343.0, 1.0, 343.0).phase == pytest.approx(-2 * math.pi)
    assert phase_from_path_difference(0.343, 1000.0, 343.0) == pytest.approx(-2 * math.pi)
    assert reflection_phase_change("hard") == 0.0
    assert reflection_phase_change("soft") == pytest.approx(math.pi)
    assert reflection_phase_change("mixed") == pytest.approx(math.pi / 2)
    assert fresnel_radius(0.0, 0.0, 1000.0) == 0.0
    assert fresnel_radius(50.0, 50.0, 343.0, 343.0) == pytest.approx(5.0)


def test_path_level_direct() -> None:
    config = PropagationConfig(atmospheric_absorption="none")
    assert path_level(100.0, _direct(10.0), 1000.0, config) == pytest.approx(100.0 - 20.0 - 10 * math.log10(4 * math.pi))


def test_path_level_invalid_and_out_of_range() -> None:
    config = PropagationConfig(max_distance=100.0)
    invalid = RayPath("direct", 10.0, 10.0, 0.0, (Point3D(0, 0, 1), Point3D(10, 0, 1)), valid=False)
    assert path_level(100.0, invalid, 1000.0, config) == MIN_LEVEL
    assert path_level(100.0, _direct(150.0), 1000.0, config) == MIN_LEVEL


def test_ground_path_uses_impedance_coefficient() -> None:
    src, rec = Point3D(0.0, 0.0, 2.0), Point3D(50.0, 0.0, 1.5)
    path = trace_ground_path(src, rec, ObstacleSet(), GroundParams("soft"))
    impedance = PropagationConfig(atmospheric_absorption="none", ground_type="soft")
    simple = PropagationConfig(atmospheric_absorption="none", ground_type="soft", ground_reflection_model="simple")
    assert path_phase(path, 500.0, simple) == pytest.approx(
        -2 * math.pi * 500.0 / simple.c * path.total_distance + math.pi
    )
    assert path_level(100.0, path, 500.0, simple) == pytest.approx(
        100.0 - 20 * math.log10(path.total_distance) - 10 * math.log10(4 * math.pi) + 20 * math.log10(0.8)
    )
    assert path_level(100.0, path, 500.0, impedance) < 100.0 - 20 * math.log10(path.total_distance)


def test_source_phasors_skip_non_dominant() -> None:
    config = PropagationConfig(atmospheric_absorption="none")
    loser = RayPath("diffracted", 12.0, 10.0, 2.0, (Point3D(0, 0, 1), Point3D(10, 0, 1)), dominant=False)
    phasors = compute_source_phasors(flat_spectrum(100.0), [_direct(10.0), loser], config)
    assert len(phasors) == 1
    assert len(phasors[0]) == 9


def test_energetic_sum_of_silent_paths() -> None:
    config = PropagationConfig()
    silent = compute_source_phasors(flat_spectrum(MIN_LEVEL), [_direct(10.0)], config)
    levels = sum_source_spectral_phasors(silent, coherent=False)
    assert np.all(levels == MIN_LEVEL)
    assert np.all(sum_source_spectral_phasors([], coherent=True) == MIN_LEVEL)


def test_two_equal_paths_in_phase() -> None:
    config = PropagationConfig(atmospheric_absorption="none")
    phasors = compute_source_phasors(flat_spectrum(100.0), [_direct(10.0)], config)
    single = sum_source_spectral_phasors(phasors, coherent=True)
    double = sum_source_spectral_phasors(phasors * 2, coherent=True)
    assert np.allclose(double - single, 20 * math.log10(2), atol=1e-6)
    energetic = sum_source_spectral_phasors(phasors * 2, coherent=False)
    assert np.allclose(energetic - single, 10 * math.log10(2), atol=1e-6)


def test_coherent_cancellation_floors_at_min_level() -> None:
    opposed = [[Phasor(1.0, 0.0)] * 9, [Phasor(1.0, math.pi)] * 9]
    levels = sum_source_spectral_phasors(opposed, coherent=True)
    assert np.all(levels == MIN_LEVEL)
