"""
Terrain type reference data.

Every cell stores a terrain id string. The generators work on numpy code
arrays, so each terrain also has a stable integer code.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict

import structlog

logger = structlog.get_logger()


class TerrainCode(IntEnum):
    """Integer codes for terrain ids, used in numpy working arrays."""

    FIELD = 0
    SWAMP = 1
    HIGHLAND = 2
    WATER = 3
    FOREST = 4
    ASPHALT = 5
    HILLS = 6
    MOUNTAINS = 7
    BUILDINGS = 8
    EMPTY = 9


@dataclass(frozen=True)
class TerrainType:
    """Static description of a terrain type."""

    id: str
    display_name: str
    color: str
    base_height_factor: float
    texture_ref: str
    default_height: int
    hex_only: bool = False

    @property
    def code(self) -> TerrainCode:
        return TerrainCode[self.id.upper()]


DEFAULT_TERRAIN = "field"
EMPTY_TERRAIN = "empty"

TERRAIN_TYPES: Dict[str, TerrainType] = {
    t.id: t
    for t in (
        TerrainType("field", "Field", "#4CAF50", 0.3, "field", 1),
        TerrainType("swamp", "Swamp", "#1B5E20", 0.15, "swamp", 1),
        TerrainType("highland", "Highland", "#F9A825", 0.6, "highland", 5),
        TerrainType("water", "Water", "#1976D2", 0.05, "water", 0),
        TerrainType("forest", "Forest", "#33691E", 0.4, "forest", 2),
        TerrainType("asphalt", "Asphalt", "#424242", 0.2, "asphalt", 1),
        TerrainType("hills", "Hills", "#A1887F", 0.5, "hills", 3),
        TerrainType("mountains", "Mountains", "#795548", 0.8, "mountains", 6),
        TerrainType("buildings", "Buildings", "#9E9E9E", 0.35, "buildings", 2),
        TerrainType("empty", "Empty", "#00000000", 0.0, "", 0, hex_only=True),
    )
}

_BY_CODE: Dict[int, TerrainType] = {t.code: t for t in TERRAIN_TYPES.values()}


def resolve_terrain(terrain_id: str) -> TerrainType:
    """Return the terrain type for an id, falling back to ``field``."""
    terrain = TERRAIN_TYPES.get(terrain_id)
    if terrain is None:
        logger.warning("Unknown terrain id, using default", terrain_id=terrain_id)
        return TERRAIN_TYPES[DEFAULT_TERRAIN]
    return terrain


def terrain_for_code(code: int) -> TerrainType:
    """Return the terrain type for an integer code."""
    return _BY_CODE[int(code)]


def is_known_terrain(terrain_id: str) -> bool:
    return terrain_id in TERRAIN_TYPES


# Lookup table: code -> default height, indexable by a code array.
DEFAULT_HEIGHTS = [terrain_for_code(code).default_height for code in TerrainCode]
