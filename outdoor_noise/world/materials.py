from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .api import GroundParams


@dataclass(frozen=True)
class Material:
    """Ground material description.

    Parameters
    ----------
    name : str
        Lookup key.
    flow_resistivity : float
        Flow resistivity (Pa·s/m²).
    ground_factor : float, optional
        ISO 9613-2 ground factor G (0 hard, 1 porous).
    """

    name: str
    flow_resistivity: float
    ground_factor: float = 0.0


@dataclass
class MaterialDB:
    """Dictionary style container for :class:`Material` objects."""

    materials: Dict[str, Material]

    def by_name(self, name: str) -> Material:
        """Return material called ``name``."""
        return self.materials[name]

    def ground_params(self, name: str, mixed_factor: float = 0.5) -> GroundParams:
        """Ground parameters for a named surface.

        ``"hard"`` and ``"soft"`` map to their own categories; every other
        material is treated as mixed ground carrying its own resistivity.
        """
        mat = self.by_name(name)
        if name in ("hard", "soft"):
            return GroundParams(name, mat.flow_resistivity, 0.0 if name == "hard" else 1.0)
        return GroundParams("mixed", mat.flow_resistivity, mixed_factor)


def default_materials() -> MaterialDB:
    """Return the default ground material table."""

    mats = {
        "hard": Material("hard", 2e6, 0.0),
        "soft": Material("soft", 2e4, 1.0),
        "gravel": Material("gravel", 5e5, 0.7),
        "compact_soil": Material("compact_soil", 1e5, 0.3),
        "snow": Material("snow", 3e4, 1.0),
    }
    return MaterialDB(mats)
