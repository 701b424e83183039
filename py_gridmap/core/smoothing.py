"""
Post-classification smoothing passes.

smooth_heights evens out height steps between neighbouring land cells.
refine_shorelines applies stochastic neighbour-count rules (swampy banks,
hills around isolated mountains, forest beside swamps). Both return a new
canvas and leave their input untouched.
"""

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .canvas import TerrainCanvas, round_half_up
from .terrain_types import TerrainCode
from .topology import GridTopology

logger = structlog.get_logger()

# Terrains whose heights are never smoothed and never feed a neighbour's average.
RIGID_TERRAINS = (TerrainCode.WATER, TerrainCode.ASPHALT)

BANK_WATER_NEIGHBORS = 3
BANK_CHANCE = 0.3  # swamp when rng > this
SKIRT_OPEN_NEIGHBORS = 4
SKIRT_CHANCE = 0.5  # hills when rng > this
GROVE_SWAMP_NEIGHBORS = 2
GROVE_CHANCE = 0.7  # forest when rng > this


def smooth_heights(canvas: TerrainCanvas, topology: GridTopology) -> TerrainCanvas:
    """
    Single smoothing pass over interior land cells.

    Each interior cell that is not water or road takes
    ``floor((h + round(mean)) / 2)``, where ``mean`` is the average height
    of its neighbours that are not water or road. All cells read the
    original heights.
    """
    rigid = np.isin(canvas.terrain, RIGID_TERRAINS)
    neighbor_heights = topology.gather(canvas.heights, 0)
    eligible = topology.gather(~rigid, False)

    counts = eligible.sum(axis=1)
    sums = np.where(eligible, neighbor_heights, 0).sum(axis=1)
    target = topology.interior & ~rigid & (counts > 0)

    average = round_half_up(sums[target] / counts[target])
    result = canvas.copy()
    result.heights[target] = np.floor((canvas.heights[target] + average) / 2).astype(np.int64)

    logger.debug("Heights smoothed", cells=int(target.sum()))
    return result


def refine_shorelines(canvas: TerrainCanvas, topology: GridTopology, rng: AleaPRNG) -> TerrainCanvas:
    """
    Apply the shoreline and structure cleanup rules once, in cell order.

    For each cell:
    1. non-water with at least 3 water neighbours becomes swamp
    2. mountains with at least 4 non-mountain neighbours turn some land
       neighbours into hills
    3. field with at least 2 swamp neighbours becomes forest

    Rules see the changes made by earlier rules and earlier cells.
    Converted cells take their terrain's default height.
    """
    result = canvas.copy()
    terrain = result.terrain
    changes = 0

    for index in range(topology.n_cells):
        neighbors = topology.neighbors(index)

        if terrain[index] != TerrainCode.WATER:
            water = np.count_nonzero(terrain[neighbors] == TerrainCode.WATER)
            if water >= BANK_WATER_NEIGHBORS and rng.random() > BANK_CHANCE:
                result.set_terrain(index, TerrainCode.SWAMP)
                changes += 1

        if terrain[index] == TerrainCode.MOUNTAINS:
            open_sides = np.count_nonzero(terrain[neighbors] != TerrainCode.MOUNTAINS)
            if open_sides >= SKIRT_OPEN_NEIGHBORS:
                for neighbor in neighbors:
                    if terrain[neighbor] in (TerrainCode.MOUNTAINS, TerrainCode.WATER):
                        continue
                    if rng.random() > SKIRT_CHANCE:
                        result.set_terrain(neighbor, TerrainCode.HILLS)
                        changes += 1

        if terrain[index] == TerrainCode.FIELD:
            swamps = np.count_nonzero(terrain[neighbors] == TerrainCode.SWAMP)
            if swamps >= GROVE_SWAMP_NEIGHBORS and rng.random() > GROVE_CHANCE:
                result.set_terrain(index, TerrainCode.FOREST)
                changes += 1

    logger.debug("Shorelines refined", changes=changes)
    return result
