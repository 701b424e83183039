"""
Terrain classification strategies.

This module implements:
- Noise channel declarations per generator mode
- Rule-table classification of noise channels into terrain and height
- The shared buildings placement rule
- A mode -> strategy registry used by the generation pipeline

Each strategy only decides terrain and height from its noise channels.
Rivers, smoothing and shoreline cleanup are separate pipeline stages that
a strategy switches on through its flags.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..config import settings
from ..config.editor_settings import GenerationParams
from ..utils.random import noise_seed
from .alea_prng import AleaPRNG
from .canvas import TerrainCanvas, clamp_heights, round_half_up
from .errors import UnknownModeError
from .noise import NoiseField, NoiseParams
from .terrain_types import DEFAULT_HEIGHTS, TerrainCode
from .topology import GridTopology

logger = structlog.get_logger()


@dataclass(frozen=True)
class NoiseChannel:
    """One named noise layer sampled for a strategy."""

    name: str
    scale_factor: float = 1.0  # multiplier on the base lattice scale
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    seed_offset: int = 0


@dataclass(frozen=True)
class HeightBand:
    """Height derived from elevation: ``max(floor, round(elevation * multiplier))``."""

    multiplier: float
    floor: int

    def heights(self, elevation: np.ndarray) -> np.ndarray:
        return np.maximum(self.floor, round_half_up(elevation * self.multiplier)).astype(np.int64)


# Water (band None) always sits at the minimum height.
TERRAIN_BANDS: Dict[TerrainCode, Optional[HeightBand]] = {
    TerrainCode.WATER: None,
    TerrainCode.SWAMP: HeightBand(4, 1),
    TerrainCode.ASPHALT: HeightBand(5, 1),
    TerrainCode.FIELD: HeightBand(6, 1),
    TerrainCode.BUILDINGS: HeightBand(6, 1),
    TerrainCode.FOREST: HeightBand(8, 2),
    TerrainCode.HILLS: HeightBand(9, 3),
    TerrainCode.HIGHLAND: HeightBand(10, 5),
    TerrainCode.MOUNTAINS: HeightBand(10, 5),
    TerrainCode.EMPTY: None,
}

RuleTable = Sequence[Tuple[TerrainCode, Optional[HeightBand]]]

# Procedural elevation/moisture ladder. Order matches the masks built in
# ProceduralStrategy.classify; the first matching rule wins.
PROCEDURAL_LADDER: RuleTable = (
    (TerrainCode.FIELD, HeightBand(5, 1)),      # low, dry
    (TerrainCode.WATER, None),                   # low
    (TerrainCode.FIELD, HeightBand(6, 1)),      # mid-low, dry
    (TerrainCode.SWAMP, HeightBand(4, 1)),      # mid-low, moist
    (TerrainCode.WATER, None),                   # mid-low, wet
    (TerrainCode.FIELD, HeightBand(7, 3)),      # mid-high, dry
    (TerrainCode.FOREST, HeightBand(8, 2)),     # mid-high, moist
    (TerrainCode.SWAMP, HeightBand(5, 2)),      # mid-high, wet
    (TerrainCode.HIGHLAND, HeightBand(10, 5)),  # high, dry
    (TerrainCode.FOREST, HeightBand(8, 4)),     # high, moist
)


def apply_rule_table(
    conditions: List[np.ndarray], rules: RuleTable, elevation: np.ndarray
) -> TerrainCanvas:
    """
    Assign terrain and height from ordered (mask, rule) pairs.

    Cells matching no condition stay ``field`` at its band height.
    """
    if len(conditions) != len(rules):
        raise ValueError("Every rule needs exactly one condition mask")

    canvas = TerrainCanvas.blank(len(elevation))
    canvas.heights[:] = TERRAIN_BANDS[TerrainCode.FIELD].heights(elevation)
    remaining = np.ones(len(elevation), dtype=bool)

    for mask, (code, band) in zip(conditions, rules):
        hit = mask & remaining
        if not hit.any():
            continue
        canvas.terrain[hit] = code
        canvas.heights[hit] = settings.height_min if band is None else band.heights(elevation[hit])
        remaining &= ~hit

    canvas.heights[:] = clamp_heights(canvas.heights)
    return canvas


def derive_heights(terrain: np.ndarray, elevation: np.ndarray) -> np.ndarray:
    """Monotonic per-terrain heights from an elevation field in [0, 1]."""
    heights = np.full(len(terrain), settings.height_min, dtype=np.int64)
    for code, band in TERRAIN_BANDS.items():
        mask = terrain == code
        if band is not None and mask.any():
            heights[mask] = band.heights(elevation[mask])
    return clamp_heights(heights)


def place_buildings(
    canvas: TerrainCanvas, topology: GridTopology, probability: float, rng: AleaPRNG
) -> TerrainCanvas:
    """
    Convert isolated field cells to buildings.

    A field cell qualifies when none of its neighbours is water, asphalt or
    buildings. Cells are visited in index order, so a conversion blocks its
    later neighbours.
    """
    result = canvas.copy()
    if probability <= 0:
        return result

    neighbor_codes = topology.gather(result.terrain, TerrainCode.EMPTY)
    blocked = np.isin(
        neighbor_codes, (TerrainCode.WATER, TerrainCode.ASPHALT, TerrainCode.BUILDINGS)
    ).any(axis=1)
    candidates = np.flatnonzero((result.terrain == TerrainCode.FIELD) & ~blocked)

    placed = 0
    for index in candidates:
        if (result.terrain[topology.neighbors(index)] == TerrainCode.BUILDINGS).any():
            continue
        if rng.random() < probability:
            result.terrain[index] = TerrainCode.BUILDINGS
            placed += 1

    logger.debug("Buildings placed", candidates=len(candidates), placed=placed)
    return result


class ClassificationStrategy:
    """
    Base class for generator modes.

    Subclasses declare their noise channels and pipeline flags and
    implement ``classify``.
    """

    mode: str = ""
    channels: Tuple[NoiseChannel, ...] = ()
    carve_rivers: bool = False
    smooth_heights: bool = False
    refine_shorelines: bool = False
    default_buildings_density: float = 0.0

    def sample_fields(self, topology: GridTopology, params: GenerationParams) -> Dict[str, np.ndarray]:
        """Sample every declared channel as a flat per-cell array."""
        base_scale = max(topology.extent / params.terrain_scale, 2.0)
        seed = noise_seed(params.seed)
        fields = {}
        for channel in self.channels:
            scale = base_scale * channel.scale_factor
            if topology.is_hex:
                values = NoiseField.sample_points(
                    topology.xs, topology.ys, scale, channel.octaves,
                    channel.persistence, channel.lacunarity, seed + channel.seed_offset,
                )
            else:
                values = NoiseField.sample(
                    NoiseParams(
                        width=topology.width,
                        height=topology.height,
                        scale=scale,
                        octaves=channel.octaves,
                        persistence=channel.persistence,
                        lacunarity=channel.lacunarity,
                        seed=seed + channel.seed_offset,
                    )
                ).ravel()
            fields[channel.name] = values
        return fields

    def classify(
        self,
        fields: Dict[str, np.ndarray],
        topology: GridTopology,
        params: GenerationParams,
        rng: AleaPRNG,
    ) -> TerrainCanvas:
        raise NotImplementedError

    def buildings_density(self, params: GenerationParams) -> float:
        return params.density("buildings", self.default_buildings_density)


class ProceduralStrategy(ClassificationStrategy):
    """Elevation/moisture ladder with a road overlay, rivers and smoothing."""

    mode = "procedural"
    channels = (
        NoiseChannel("elevation", 1.0, octaves=4, persistence=0.5, seed_offset=0),
        NoiseChannel("road", 1.2, octaves=3, persistence=0.6, seed_offset=1000),
        NoiseChannel("moisture", 1.5, octaves=3, persistence=0.5, seed_offset=2000),
    )
    carve_rivers = True
    smooth_heights = True
    default_buildings_density = 0.02

    road_band = (0.48, 0.52)
    road_chance = 0.7

    def classify(self, fields, topology, params, rng):
        elevation = fields["elevation"] * (0.8 + params.mountains_level * 0.1)
        moisture = fields["moisture"]
        dry = moisture < 0.4 - params.water_level * 0.05

        low = elevation < 0.3
        mid_low = ~low & (elevation < 0.5)
        mid_high = (elevation >= 0.5) & (elevation < 0.7)
        high = elevation >= 0.7

        conditions = [
            low & dry, low,
            mid_low & dry, mid_low & (moisture < 0.7), mid_low,
            mid_high & dry, mid_high & (moisture < 0.8), mid_high,
            high & (moisture < 0.5), high,
        ]
        canvas = apply_rule_table(conditions, PROCEDURAL_LADDER, elevation)
        canvas = self._overlay_roads(canvas, fields["road"], rng)
        return place_buildings(canvas, topology, self.buildings_density(params), rng)

    def _overlay_roads(self, canvas: TerrainCanvas, road: np.ndarray, rng: AleaPRNG) -> TerrainCanvas:
        low, high = self.road_band
        candidates = np.flatnonzero((road > low) & (road < high))
        chosen = candidates[rng.random_array(len(candidates)) < self.road_chance]

        result = canvas.copy()
        result.terrain[chosen] = TerrainCode.ASPHALT
        result.heights[chosen] = np.maximum(1, np.minimum(result.heights[chosen] - 1, 3))
        logger.debug("Road overlay", candidates=len(candidates), roads=len(chosen))
        return result


class ThresholdStrategy(ClassificationStrategy):
    """Direct elevation and moisture thresholds driven by the level knobs."""

    mode = "threshold"
    channels = (
        NoiseChannel("elevation", 1.0, octaves=4, persistence=0.5, seed_offset=0),
        NoiseChannel("moisture", 0.7, octaves=3, persistence=0.5, seed_offset=100),
    )
    refine_shorelines = True
    default_buildings_density = 0.03

    swamp_moisture = 0.65

    def classify(self, fields, topology, params, rng):
        elevation = fields["elevation"]
        moisture = fields["moisture"]

        water = elevation < params.water_level / 10
        mountains = elevation > params.mountains_level / 10
        hills = elevation > params.density("hills", 0.55)
        swamp = moisture > self.swamp_moisture
        forest = moisture > params.density("forest", 0.45)

        terrain = np.select(
            [water, mountains, hills, swamp, forest],
            [TerrainCode.WATER, TerrainCode.MOUNTAINS, TerrainCode.HILLS, TerrainCode.SWAMP, TerrainCode.FOREST],
            default=TerrainCode.FIELD,
        ).astype(np.uint8)
        canvas = TerrainCanvas(terrain=terrain, heights=derive_heights(terrain, elevation))
        return place_buildings(canvas, topology, self.buildings_density(params), rng)


class IslandStrategy(ClassificationStrategy):
    """Radial falloff from the map centre produces a central landmass."""

    mode = "island"
    channels = (NoiseChannel("elevation", 0.7, octaves=4, persistence=0.5, seed_offset=0),)
    refine_shorelines = True
    default_buildings_density = 0.05

    falloff_weight = 0.5
    jitter = 0.1
    forest_chance = 0.7

    def classify(self, fields, topology, params, rng):
        n = topology.n_cells
        elevation = (
            fields["elevation"]
            - topology.radial_distance * self.falloff_weight
            + (rng.random_array(n) - 0.5) * self.jitter
        )

        wooded_band = (elevation >= 0.5) & (elevation < 0.7)
        wooded = np.zeros(n, dtype=bool)
        band_cells = np.flatnonzero(wooded_band)
        wooded[band_cells] = rng.random_array(len(band_cells)) < self.forest_chance

        terrain = np.select(
            [elevation < 0.25, elevation < 0.35, elevation < 0.5, wooded, elevation < 0.7, elevation < 0.85],
            [TerrainCode.WATER, TerrainCode.SWAMP, TerrainCode.FIELD, TerrainCode.FOREST,
             TerrainCode.FIELD, TerrainCode.HILLS],
            default=TerrainCode.MOUNTAINS,
        ).astype(np.uint8)
        heights = derive_heights(terrain, np.clip(elevation, 0.0, 1.0))
        canvas = TerrainCanvas(terrain=terrain, heights=heights)
        return place_buildings(canvas, topology, self.buildings_density(params), rng)


class BiomesStrategy(ClassificationStrategy):
    """Temperature x moisture biome matrix with a sparse water overlay."""

    mode = "biomes"
    channels = (
        NoiseChannel("temperature", 1.4, octaves=3, persistence=0.5, seed_offset=0),
        NoiseChannel("moisture", 1.0, octaves=3, persistence=0.5, seed_offset=2),
        NoiseChannel("water", 0.7, octaves=2, persistence=0.5, seed_offset=100),
        NoiseChannel("elevation", 1.0, octaves=4, persistence=0.5, seed_offset=200),
    )
    refine_shorelines = True
    default_buildings_density = 0.07

    def classify(self, fields, topology, params, rng):
        temperature = fields["temperature"]
        moisture = fields["moisture"]

        cold = temperature < 0.3
        temperate = ~cold & (temperature < 0.7)
        warm = temperature >= 0.7

        terrain = np.select(
            [
                cold & (moisture < 0.3), cold & (moisture < 0.6), cold,
                temperate & (moisture < 0.3), temperate & (moisture < 0.7), temperate,
                warm & (moisture < 0.5), warm & (moisture < 0.8), warm,
            ],
            [
                TerrainCode.MOUNTAINS, TerrainCode.HILLS, TerrainCode.SWAMP,
                TerrainCode.FIELD, TerrainCode.FOREST, TerrainCode.SWAMP,
                TerrainCode.FIELD, TerrainCode.FOREST, TerrainCode.WATER,
            ],
            default=TerrainCode.FIELD,
        ).astype(np.uint8)
        terrain[(fields["water"] > 0.8) & (moisture > 0.4)] = TerrainCode.WATER

        canvas = TerrainCanvas(terrain=terrain, heights=derive_heights(terrain, fields["elevation"]))
        return place_buildings(canvas, topology, self.buildings_density(params), rng)


class RandomStrategy(ClassificationStrategy):
    """Independent per-cell draws with no spatial coherence."""

    mode = "random"

    def weights(self, params: GenerationParams) -> List[Tuple[TerrainCode, float]]:
        return [
            (TerrainCode.FIELD, 0.3),
            (TerrainCode.HILLS, params.density("hills", 0.15)),
            (TerrainCode.FOREST, params.density("forest", 0.2)),
            (TerrainCode.SWAMP, params.density("swamp", 0.1)),
            (TerrainCode.BUILDINGS, params.density("buildings", 0.05)),
            (TerrainCode.WATER, params.water_level / 10),
        ]

    def classify(self, fields, topology, params, rng):
        codes = [code for code, _ in self.weights(params)]
        thresholds = np.cumsum([weight for _, weight in self.weights(params)])
        draws = rng.random_array(topology.n_cells)

        # Draws past the last threshold fall through to mountains.
        slot = np.searchsorted(thresholds, draws, side="right")
        lookup = np.asarray(codes + [TerrainCode.MOUNTAINS], dtype=np.uint8)
        terrain = lookup[slot]
        heights = np.asarray(DEFAULT_HEIGHTS, dtype=np.int64)[terrain]
        return TerrainCanvas(terrain=terrain, heights=clamp_heights(heights))


STRATEGIES: Dict[str, ClassificationStrategy] = {}


def register_strategy(strategy: ClassificationStrategy) -> ClassificationStrategy:
    """Register (or replace) the strategy for ``strategy.mode``."""
    if not strategy.mode:
        raise ValueError("Strategy must declare a mode")
    STRATEGIES[strategy.mode] = strategy
    return strategy


def get_strategy(mode: str) -> ClassificationStrategy:
    strategy = STRATEGIES.get(mode)
    if strategy is None:
        raise UnknownModeError(
            f"Unknown generation mode {mode!r}; expected one of {sorted(STRATEGIES)}"
        )
    return strategy


def available_modes() -> List[str]:
    return sorted(STRATEGIES)


for _strategy in (ProceduralStrategy(), ThresholdStrategy(), IslandStrategy(), BiomesStrategy(), RandomStrategy()):
    register_strategy(_strategy)
