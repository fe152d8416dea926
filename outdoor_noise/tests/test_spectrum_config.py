import numpy as np
import pytest

from ..config import ConfigError, PropagationConfig, default_config, merge_config, to_tracer_config
from ..constants import MIN_LEVEL, OCTAVE_BANDS
from ..spectrum import (
    add_decibels,
    apply_gain_to_spectrum,
    apply_weighting,
    band_index,
    empty_spectrum,
    flat_spectrum,
    make_spectrum,
    overall_level,
    overall_to_flat_spectrum,
    sum_decibels,
    sum_multiple_spectra,
)
from ..world.api import GroundParams
from ..world.materials import default_materials


def test_make_spectrum_requires_nine_bands() -> None:
    with pytest.raises(ValueError):
        make_spectrum([0.0] * 8)
    spectrum = flat_spectrum(60.0)
    with pytest.raises(ValueError):
        spectrum[0] = 1.0


def test_decibel_sums() -> None:
    assert add_decibels(60.0, 60.0) == pytest.approx(63.0103, abs=1e-4)
    assert add_decibels(60.0, -150.0) == 60.0
    assert sum_decibels([]) == MIN_LEVEL
    assert sum_decibels([70.0, 70.0, 70.0, 70.0]) == pytest.approx(76.0206, abs=1e-4)


def test_sum_multiple_spectra() -> None:
    total = sum_multiple_spectra([flat_spectrum(50.0), flat_spectrum(50.0)])
    assert np.allclose(total, 50.0 + 10 * np.log10(2))
    assert np.all(sum_multiple_spectra([]) == MIN_LEVEL)


def test_gain_keeps_silent_bands() -> None:
    spectrum = make_spectrum([MIN_LEVEL] + [80.0] * 8)
    gained = apply_gain_to_spectrum(spectrum, 5.0)
    assert gained[0] == MIN_LEVEL
    assert np.allclose(gained[1:], 85.0)


def test_overall_levels() -> None:
    assert overall_level(flat_spectrum(60.0)) == pytest.approx(60.0 + 10 * np.log10(9))
    assert overall_level(flat_spectrum(60.0), "A") < overall_level(flat_spectrum(60.0), "C")
    assert overall_level(empty_spectrum(), "A") == MIN_LEVEL
    assert overall_level(overall_to_flat_spectrum(90.0)) == pytest.approx(90.0)
    with pytest.raises(ValueError):
        overall_level(flat_spectrum(60.0), "B")


def test_apply_weighting() -> None:
    weighted = apply_weighting(flat_spectrum(70.0), "A")
    assert weighted[4] == 70.0
    assert weighted[0] == pytest.approx(43.8)
    assert not weighted.flags.writeable


def test_band_index() -> None:
    assert band_index(1000) == 4
    assert len(OCTAVE_BANDS) == 9
    with pytest.raises(ValueError):
        band_index(1100)


def test_config_normalises_absorption_flag() -> None:
    assert PropagationConfig(atmospheric_absorption=True).atmospheric_absorption == "iso9613"
    assert PropagationConfig(atmospheric_absorption=False).atmospheric_absorption == "none"


def test_config_rejects_unknown_choice() -> None:
    with pytest.raises(ConfigError):
        PropagationConfig(ground_model="nord2000")
    with pytest.raises(ConfigError):
        PropagationConfig(max_distance=0.0)
    with pytest.raises(ConfigError):
        merge_config(PropagationConfig(), spreading="planar")
    with pytest.raises(ConfigError):
        merge_config(PropagationConfig(), no_such_field=1)


def test_config_clamps_and_derives() -> None:
    config = PropagationConfig(ground_mixed_factor=1.7, temperature=0.0)
    assert config.ground_mixed_factor == 1.0
    assert config.ground_factor == 1.0
    assert config.c == pytest.approx(331.3)
    assert PropagationConfig(speed_of_sound=340.0).c == 340.0
    assert PropagationConfig(ground_type="hard").ground_factor == 0.0


def test_presets() -> None:
    fast = default_config("festival_fast")
    assert not fast.ground_reflection and not fast.coherent_summation
    assert fast.atmospheric_absorption == "simple"
    assert default_config("standards_strict").ground_model == "iso9613"
    with pytest.raises(ConfigError):
        default_config("loudest")


def test_tracer_config_mapping() -> None:
    tracer = to_tracer_config(PropagationConfig(wall_reflections=False, ground_type="soft"))
    assert tracer.max_reflection_order == 0
    assert tracer.ground.type == "soft"
    assert tracer.side_diffraction == "auto"


def test_config_named_ground_material() -> None:
    gravel = PropagationConfig(ground_material="gravel")
    assert to_tracer_config(gravel).ground == GroundParams("mixed", 5e5, 0.7)
    assert gravel.ground_factor == pytest.approx(0.7)
    assert PropagationConfig(ground_material="hard").ground_factor == 0.0
    assert merge_config(gravel, temperature=5.0).ground_flow_resistivity == 5e5
    with pytest.raises(ConfigError):
        PropagationConfig(ground_material="lava")


def test_materials() -> None:
    mats = default_materials()
    assert mats.by_name("gravel").flow_resistivity == 5e5
    assert mats.ground_params("hard").type == "hard"
    assert mats.ground_params("gravel", 0.3).mixed_factor == 0.3
    with pytest.raises(KeyError):
        mats.by_name("lava")
