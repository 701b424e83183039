"""
Mutable working arrays used while a map is being generated.

A TerrainCanvas is private to one generation call: the pipeline stages
pass canvases along (each stage returns a new one) and only the final
canvas is frozen into an immutable grid.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from ..config import settings
from .grid import Cell, Grid, HexCell, HexGrid, RectGrid
from .terrain_types import DEFAULT_HEIGHTS, TerrainCode, terrain_for_code
from .topology import GridTopology


@dataclass
class TerrainCanvas:
    """Terrain codes and integer heights, one entry per topology cell."""

    terrain: np.ndarray  # uint8 TerrainCode values
    heights: np.ndarray  # int64 heights

    @classmethod
    def blank(cls, n_cells: int) -> "TerrainCanvas":
        return cls(
            terrain=np.full(n_cells, TerrainCode.FIELD, dtype=np.uint8),
            heights=np.ones(n_cells, dtype=np.int64),
        )

    def copy(self) -> "TerrainCanvas":
        return TerrainCanvas(terrain=self.terrain.copy(), heights=self.heights.copy())

    def set_terrain(self, index: int, code: TerrainCode, height: int = None) -> None:
        """Set one cell's terrain; height defaults to the terrain's default height."""
        self.terrain[index] = code
        self.heights[index] = DEFAULT_HEIGHTS[code] if height is None else height


def clamp_heights(heights: np.ndarray) -> np.ndarray:
    return np.clip(heights, settings.height_min, settings.height_max)


def round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def canvas_to_grid(canvas: TerrainCanvas, topology: GridTopology) -> Grid:
    """Freeze a canvas into an immutable grid for the topology's shape."""
    heights = clamp_heights(canvas.heights)
    ids = [terrain_for_code(code).id for code in TerrainCode]

    if topology.is_hex:
        cells = {}
        for index, coord in enumerate(topology.coords):
            cells[coord] = HexCell(*coord, terrain=ids[canvas.terrain[index]], height=int(heights[index]))
        return HexGrid._from_dict(topology.radius, cells)

    # Cells are immutable, so identical (terrain, height) pairs share one object.
    interned: Dict[Tuple[int, int], Cell] = {}
    codes = canvas.terrain.tolist()
    values = heights.tolist()
    rows = []
    for row_start in range(0, topology.n_cells, topology.width):
        row = []
        for index in range(row_start, row_start + topology.width):
            key = (codes[index], values[index])
            cell = interned.get(key)
            if cell is None:
                cell = interned[key] = Cell(ids[key[0]], key[1])
            row.append(cell)
        rows.append(tuple(row))
    return RectGrid._from_rows(tuple(rows))
