"""Propagation settings, presets and validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal, Optional, Union

from .atmosphere import AbsorptionModel, Atmosphere
from .constants import (
    MAX_DISTANCE,
    STANDARD_HUMIDITY_PCT,
    STANDARD_PRESSURE_KPA,
    STANDARD_TEMPERATURE_C,
    speed_of_sound,
)
from .tracer import TracerConfig
from .world.api import GroundParams, SurfaceType
from .world.materials import default_materials

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigError",
    "PropagationConfig",
    "default_config",
    "merge_config",
    "to_tracer_config",
]

GroundModel = Literal["iso9613", "iso9613_eq10", "two_ray"]
GroundReflectionModel = Literal["impedance", "simple"]
SideDiffractionMode = Literal["off", "auto", "on"]
SpreadingMode = Literal["spherical", "cylindrical"]

_CHOICES = {
    "ground_type": ("hard", "soft", "mixed"),
    "ground_model": ("iso9613", "iso9613_eq10", "two_ray"),
    "ground_reflection_model": ("impedance", "simple"),
    "barrier_side_diffraction": ("off", "auto", "on"),
    "atmospheric_absorption": ("none", "simple", "iso9613"),
    "spreading": ("spherical", "cylindrical"),
}


class ConfigError(ValueError):
    """Raised for a setting outside its enumerated choices."""


@dataclass
class PropagationConfig:
    """Request-level propagation settings.

    Parameters
    ----------
    ground_reflection : bool
        Trace the ground-reflected path and apply ground effect.
    ground_type : {"hard", "soft", "mixed"}
        Ground category between sources and receivers.
    ground_mixed_factor : float
        Soft share of mixed ground, clamped to ``[0, 1]``.
    ground_flow_resistivity : float
        Flow resistivity of the soft component in Pa·s/m².
    ground_material : str, optional
        Name of a ground material from
        :func:`~outdoor_noise.world.materials.default_materials`.  When set
        it fixes ``ground_type`` and ``ground_flow_resistivity``, and
        ``ground_mixed_factor`` becomes the material ground factor G.
    ground_model : {"iso9613", "iso9613_eq10", "two_ray"}
        Formula used for the ground term of the attenuation budget.
    ground_reflection_model : {"impedance", "simple"}
        How the traced ground path is weighted in the phasor sum: the
        complex spherical-wave coefficient per band, or the constant
        absorption and phase carried by the path.
    wall_reflections : bool
        Trace first-order reflections off barrier and building faces.
    barrier_diffraction : bool
        Trace diffraction over and around barriers and buildings.
    barrier_side_diffraction : {"off", "auto", "on"}
        Diffraction around the ends of finite barriers; ``"auto"`` enables
        it for barriers shorter than ``side_length_threshold``.
    near_barrier_diffraction : bool
        Also diffract over barriers that clear the line of sight by less
        than ``near_barrier_threshold`` of path difference.
    coherent_summation : bool
        Sum paths of one source with their phases; sources always add
        energetically.
    atmospheric_absorption : bool or {"none", "simple", "iso9613"}
        ``True`` selects ``"iso9613"`` and ``False`` selects ``"none"``.
    temperature, humidity, pressure : float
        °C, percent and kPa.
    speed_of_sound : float, optional
        Overrides the temperature derived value.
    spreading : {"spherical", "cylindrical"}
        Geometric divergence law.
    max_distance : float
        Paths longer than this contribute nothing.
    include_barriers : bool
        Apply barrier attenuation in the scalar attenuation budget.
    """

    ground_reflection: bool = True
    ground_type: SurfaceType = "mixed"
    ground_mixed_factor: float = 0.5
    ground_flow_resistivity: float = 20_000.0
    ground_material: Optional[str] = None
    ground_model: GroundModel = "iso9613"
    ground_reflection_model: GroundReflectionModel = "impedance"
    wall_reflections: bool = True
    barrier_diffraction: bool = True
    barrier_side_diffraction: SideDiffractionMode = "auto"
    near_barrier_diffraction: bool = False
    near_barrier_threshold: float = 5.0
    side_length_threshold: float = 50.0
    coherent_summation: bool = True
    atmospheric_absorption: Union[bool, AbsorptionModel] = "iso9613"
    temperature: float = STANDARD_TEMPERATURE_C
    humidity: float = STANDARD_HUMIDITY_PCT
    pressure: float = STANDARD_PRESSURE_KPA
    speed_of_sound: Optional[float] = None
    spreading: SpreadingMode = "spherical"
    max_distance: float = MAX_DISTANCE
    include_barriers: bool = True

    def __post_init__(self) -> None:
        if self.atmospheric_absorption is True:
            self.atmospheric_absorption = "iso9613"
        elif self.atmospheric_absorption is False:
            self.atmospheric_absorption = "none"
        for name, choices in _CHOICES.items():
            value = getattr(self, name)
            if value not in choices:
                raise ConfigError(f"{name} must be one of {choices}, got {value!r}")
        self.ground_mixed_factor = min(max(float(self.ground_mixed_factor), 0.0), 1.0)
        if self.ground_material is not None:
            self._apply_ground_material(self.ground_material)
        if self.max_distance <= 0:
            raise ConfigError(f"max_distance must be positive, got {self.max_distance!r}")

    def _apply_ground_material(self, name: str) -> None:
        materials = default_materials()
        try:
            material = materials.by_name(name)
        except KeyError:
            raise ConfigError(f"unknown ground material {name!r}; choose from {sorted(materials.materials)}") from None
        ground = materials.ground_params(name, material.ground_factor)
        self.ground_type = ground.type
        self.ground_flow_resistivity = ground.flow_resistivity
        self.ground_mixed_factor = ground.mixed_factor

    @property
    def c(self) -> float:
        """Effective speed of sound in m/s."""
        if self.speed_of_sound is not None:
            return self.speed_of_sound
        return speed_of_sound(self.temperature)

    @property
    def atmosphere(self) -> Atmosphere:
        return Atmosphere(self.temperature, self.humidity, self.pressure)

    @property
    def ground(self) -> GroundParams:
        return GroundParams(self.ground_type, self.ground_flow_resistivity, self.ground_mixed_factor)

    @property
    def ground_factor(self) -> float:
        """ISO 9613-2 ground factor G."""
        if self.ground_type == "hard":
            return 0.0
        if self.ground_type == "soft":
            return 1.0
        return self.ground_mixed_factor


_PRESETS = {
    "festival_fast": dict(
        ground_reflection=False,
        wall_reflections=False,
        barrier_side_diffraction="off",
        atmospheric_absorption="simple",
        coherent_summation=False,
    ),
    "standards_strict": dict(
        ground_reflection=True,
        ground_model="iso9613",
        wall_reflections=True,
        barrier_side_diffraction="auto",
        atmospheric_absorption="iso9613",
        coherent_summation=True,
    ),
}


def default_config(preset: Optional[str] = None) -> PropagationConfig:
    """Return a fresh configuration, optionally from a named preset.

    ``"festival_fast"`` skips ground and reflections and uses the tabulated
    absorption; ``"standards_strict"`` follows ISO 9613 throughout.
    """
    if preset is None:
        return PropagationConfig()
    try:
        overrides = _PRESETS[preset]
    except KeyError:
        raise ConfigError(f"unknown preset {preset!r}; choose from {sorted(_PRESETS)}") from None
    logger.debug("Using propagation preset %s", preset)
    return PropagationConfig(**overrides)


def merge_config(base: PropagationConfig, **overrides) -> PropagationConfig:
    """Copy of ``base`` with ``overrides`` applied and validated."""
    try:
        return replace(base, **overrides)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc


def to_tracer_config(config: PropagationConfig) -> TracerConfig:
    """Path tracer settings derived from propagation settings."""
    return TracerConfig(
        include_ground=config.ground_reflection,
        ground=config.ground,
        max_reflection_order=1 if config.wall_reflections else 0,
        include_diffraction=config.barrier_diffraction,
        near_barrier_diffraction=config.near_barrier_diffraction,
        near_barrier_threshold=config.near_barrier_threshold,
        side_diffraction=config.barrier_side_diffraction,
        side_length_threshold=config.side_length_threshold,
    )
