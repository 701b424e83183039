"""
River and lake carving.

This module implements:
- River source selection (highest of a fixed number of random samples)
- Downhill river walks over the elevation field
- Swampy river banks
- Occasional terminal lakes with swampy rims

Carving works on any GridTopology, so rectangular (8 neighbours) and hex
(6 neighbours) maps share one implementation.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import structlog

from ..config import settings
from .alea_prng import AleaPRNG
from .canvas import TerrainCanvas
from .terrain_types import TerrainCode
from .topology import GridTopology

logger = structlog.get_logger()


@dataclass
class HydrologyOptions:
    """River and lake carving options."""

    source_samples: int = 100  # Random samples when choosing a river source
    path_length_factor: float = 0.5  # Max path length as a fraction of map width
    min_path_length: int = 5
    bank_swamp_chance: float = 0.4  # Chance a river bank cell turns to swamp
    lake_chance: float = 0.5  # Chance of a lake at the river mouth
    min_lake_radius: int = 2
    max_lake_radius: int = 4
    lake_rim_swamp_chance: float = 0.7


@dataclass
class River:
    """A carved river: visited cells from source to mouth."""

    id: int
    cells: List[int]
    lake_radius: Optional[int] = None

    @property
    def source_cell(self) -> int:
        return self.cells[0]

    @property
    def mouth_cell(self) -> int:
        return self.cells[-1]


def river_count(water_level: float) -> int:
    return max(1, int(np.floor(water_level)))


class HydrologyCarver:
    """Carves rivers and lakes into a terrain canvas."""

    def __init__(self, topology: GridTopology, rng: AleaPRNG, options: Optional[HydrologyOptions] = None):
        """
        Initialize the carver.

        Args:
            topology: Cell adjacency of the map being generated
            rng: Seeded generator shared with the rest of the pipeline
            options: Carving options
        """
        self.topology = topology
        self.rng = rng
        self.options = options or HydrologyOptions()
        self.rivers: List[River] = []

    def carve(self, canvas: TerrainCanvas, elevation: np.ndarray, num_rivers: int) -> TerrainCanvas:
        """
        Carve ``num_rivers`` rivers and return a new canvas.

        Args:
            canvas: Classified terrain (not modified)
            elevation: Per-cell elevation the rivers flow down
            num_rivers: Number of rivers to carve

        Returns:
            New canvas with rivers, banks and lakes applied
        """
        result = canvas.copy()
        self.rivers = []

        for river_id in range(num_rivers):
            source = self._pick_source(elevation)
            cells = self._walk(result, elevation, source)
            river = River(id=river_id, cells=cells)

            if self.rng.random() < self.options.lake_chance:
                river.lake_radius = self.rng.randint(self.options.min_lake_radius, self.options.max_lake_radius)
                self._grow_lake(result, river.mouth_cell, river.lake_radius)

            self.rivers.append(river)
            logger.debug(
                "River carved",
                river_id=river_id,
                source=river.source_cell,
                length=len(cells),
                lake_radius=river.lake_radius,
            )

        logger.info("Hydrology carved", rivers=len(self.rivers))
        return result

    def _pick_source(self, elevation: np.ndarray) -> int:
        best = 0
        best_elevation = -np.inf
        n = self.topology.n_cells
        for _ in range(self.options.source_samples):
            index = int(self.rng.random() * n)
            if elevation[index] > best_elevation:
                best_elevation = elevation[index]
                best = index
        return best

    def _walk(self, canvas: TerrainCanvas, elevation: np.ndarray, source: int) -> List[int]:
        """Follow the steepest descent from ``source`` until a local minimum."""
        max_steps = int(self.rng.random() * self.topology.width * self.options.path_length_factor)
        max_steps += self.options.min_path_length

        current = source
        visited = [current]
        for _ in range(max_steps):
            canvas.set_terrain(current, TerrainCode.WATER, settings.height_min)
            self._swamp_banks(canvas, current)

            neighbors = self.topology.neighbors(current)
            if len(neighbors) == 0:
                break
            lowest = neighbors[np.argmin(elevation[neighbors])]
            if elevation[lowest] >= elevation[current]:
                break
            current = int(lowest)
            visited.append(current)

        # The walk may run out of steps on a cell it has not marked yet.
        canvas.set_terrain(current, TerrainCode.WATER, settings.height_min)
        return visited

    def _swamp_banks(self, canvas: TerrainCanvas, index: int) -> None:
        for neighbor in self.topology.neighbors(index):
            if canvas.terrain[neighbor] == TerrainCode.WATER:
                continue
            if self.rng.random() < self.options.bank_swamp_chance:
                canvas.set_terrain(neighbor, TerrainCode.SWAMP, max(1, canvas.heights[neighbor] - 1))

    def _grow_lake(self, canvas: TerrainCanvas, center: int, radius: int) -> None:
        distances = self.topology.distances_from(center)
        lake_cells = np.flatnonzero(distances <= radius)

        for index in lake_cells:
            canvas.set_terrain(index, TerrainCode.WATER, settings.height_min)
            if distances[index] > radius - 1 and self.rng.random() < self.options.lake_rim_swamp_chance:
                for neighbor in self.topology.neighbors(index):
                    if canvas.terrain[neighbor] != TerrainCode.WATER:
                        canvas.set_terrain(neighbor, TerrainCode.SWAMP, max(1, canvas.heights[neighbor] - 1))
