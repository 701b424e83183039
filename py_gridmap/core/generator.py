"""
Procedural terrain generation pipeline.

generate() runs the same stages for every mode:

    noise channels -> classification strategy -> rivers -> smoothing
    -> shoreline cleanup -> immutable grid

The strategy selected by ``mode`` supplies the channels and the
classification rules and switches the optional stages on or off.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from ..config.editor_settings import GenerationParams, parse_model
from ..utils.random import make_prng
from .canvas import canvas_to_grid
from .classifier import ClassificationStrategy, get_strategy
from .grid import Grid, GridSize, coerce_size
from .hydrology import HydrologyCarver, river_count
from .smoothing import refine_shorelines, smooth_heights
from .topology import GridTopology, topology_for

logger = structlog.get_logger()

DEFAULT_MODE = "procedural"


@dataclass
class GenerationStats:
    """Summary of the last generation run."""

    mode: str
    cells: int
    rivers: int = 0


class TerrainGenerator:
    """
    Generates terrain grids for one map shape.

    A generator can be reused for several seeds or modes on the same
    shape; the topology is built once.
    """

    def __init__(self, size: GridSize):
        """
        Initialize the generator.

        Args:
            size: ``MapSize`` / ``(width, height)`` or an integer hex radius
        """
        self.size = coerce_size(size)
        self.topology: GridTopology = topology_for(self.size)
        self.stats: Optional[GenerationStats] = None

    def generate(self, params: GenerationParams, mode: str = DEFAULT_MODE) -> Grid:
        strategy: ClassificationStrategy = get_strategy(mode)
        topology = self.topology
        rng = make_prng(params.seed)
        stats = GenerationStats(mode=mode, cells=topology.n_cells)

        logger.info(
            "Generating terrain",
            mode=mode,
            hex=topology.is_hex,
            cells=topology.n_cells,
            seed=params.seed,
        )

        fields = strategy.sample_fields(topology, params)
        canvas = strategy.classify(fields, topology, params, rng)

        if strategy.carve_rivers:
            carver = HydrologyCarver(topology, rng)
            canvas = carver.carve(canvas, fields["elevation"], river_count(params.water_level))
            stats.rivers = len(carver.rivers)

        if strategy.smooth_heights:
            canvas = smooth_heights(canvas, topology)

        if strategy.refine_shorelines:
            canvas = refine_shorelines(canvas, topology, rng)

        self.stats = stats
        logger.info("Terrain generated", mode=mode, cells=stats.cells, rivers=stats.rivers)
        return canvas_to_grid(canvas, topology)


def generate(size, params=None, mode: str = DEFAULT_MODE) -> Grid:
    """
    Generate a new grid. Pure: the same arguments always give an equal grid.

    Args:
        size: ``MapSize`` / ``(width, height)`` for a rectangular map or an
            integer radius for a hex map
        params: ``GenerationParams`` or a dict (snake_case or camelCase keys)
        mode: ``procedural``, ``threshold``, ``island``, ``biomes`` or ``random``

    Returns:
        New grid

    Raises:
        InvalidParameterError: Invalid size or parameters
        UnknownModeError: Unregistered mode
    """
    params = parse_model(GenerationParams, params)
    get_strategy(mode)
    return TerrainGenerator(size).generate(params, mode)


