"""
Named generation parameter presets.

Level knobs use the 0-10 scale of GenerationParams.
"""

from typing import Dict, List

from ..core.errors import InvalidParameterError
from .editor_settings import GenerationParams

PRESETS: Dict[str, GenerationParams] = {
    "default": GenerationParams(
        seed="default",
        water_level=3.0,
        mountains_level=7.0,
        forest_density=0.2,
        swamp_density=0.1,
        buildings_density=0.05,
        hills_density=0.15,
    ),
    "forest": GenerationParams(
        seed="forest",
        water_level=2.0,
        mountains_level=8.5,
        forest_density=0.5,
        swamp_density=0.15,
        buildings_density=0.02,
        hills_density=0.1,
    ),
    "mountain": GenerationParams(
        seed="mountain",
        water_level=2.5,
        mountains_level=5.5,
        forest_density=0.15,
        swamp_density=0.05,
        buildings_density=0.03,
        hills_density=0.25,
    ),
    "islands": GenerationParams(
        seed="islands",
        water_level=4.5,
        mountains_level=8.0,
        forest_density=0.3,
        swamp_density=0.15,
        buildings_density=0.1,
        hills_density=0.15,
    ),
    "swamps": GenerationParams(
        seed="swamps",
        water_level=3.5,
        mountains_level=8.5,
        forest_density=0.25,
        swamp_density=0.35,
        buildings_density=0.05,
        hills_density=0.1,
    ),
}


def get_preset(name: str) -> GenerationParams:
    """Return a copy of the named preset."""
    preset = PRESETS.get(name)
    if preset is None:
        raise InvalidParameterError(f"Unknown preset {name!r}; expected one of {list_presets()}")
    return preset.model_copy()


def list_presets() -> List[str]:
    return list(PRESETS)
