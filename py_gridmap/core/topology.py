"""
Cell adjacency for rectangular and hex layouts.

Generation runs on flat per-cell arrays. GridTopology maps each cell index
to its grid coordinate, its plane position for noise sampling and its
neighbours (8 for rectangular grids, 6 for hex grids), so the carving and
smoothing passes work the same way on both layouts.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .grid import HEX_DIRECTIONS, MapSize, hex_coordinates

# Offsets (drow, dcol) of the eight rectangular neighbours.
RECT_DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (0, -1), (0, 1), (-1, 0), (1, 0),
    (-1, -1), (-1, 1), (1, -1), (1, 1),
)


@dataclass
class GridTopology:
    """Flat cell indexing plus neighbour table for one grid shape."""

    is_hex: bool
    width: int                 # columns (rect) or hex diameter
    height: int                # rows (rect) or hex diameter
    radius: int                # hex radius, 0 for rect grids
    coords: List[tuple]        # (row, col) or (q, r, s) per cell index
    xs: np.ndarray             # plane x used for noise sampling
    ys: np.ndarray             # plane y used for noise sampling
    neighbor_table: np.ndarray  # (n_cells, k) neighbour indices, -1 = none
    interior: np.ndarray       # True where the cell has a full neighbourhood
    radial_distance: np.ndarray  # distance from the map centre, ~[0, 1]

    @property
    def n_cells(self) -> int:
        return len(self.coords)

    @property
    def extent(self) -> int:
        return max(self.width, self.height)

    def neighbors(self, index: int) -> np.ndarray:
        row = self.neighbor_table[index]
        return row[row >= 0]

    def gather(self, values: np.ndarray, missing) -> np.ndarray:
        """
        Neighbour values for every cell, shape (n_cells, k).

        Slots without a neighbour read ``missing``.
        """
        padded = np.concatenate((values, np.asarray([missing], dtype=values.dtype)))
        return padded[self.neighbor_table]

    def distances_from(self, index: int) -> np.ndarray:
        """Distance of every cell to ``index``: Euclidean (rect) or hex steps (hex)."""
        if self.is_hex:
            q, r, s = self.coords[index]
            cube = np.asarray(self.coords)
            return np.abs(cube - (q, r, s)).max(axis=1).astype(np.float64)
        row, col = self.coords[index]
        rows = np.arange(self.n_cells) // self.width
        cols = np.arange(self.n_cells) % self.width
        return np.hypot(rows - row, cols - col)


def rect_topology(width: int, height: int) -> GridTopology:
    n = width * height
    rows = np.repeat(np.arange(height), width)
    cols = np.tile(np.arange(width), height)

    table = np.full((n, len(RECT_DIRECTIONS)), -1, dtype=np.int64)
    for k, (dr, dc) in enumerate(RECT_DIRECTIONS):
        nr = rows + dr
        nc = cols + dc
        valid = (nr >= 0) & (nr < height) & (nc >= 0) & (nc < width)
        table[valid, k] = nr[valid] * width + nc[valid]

    interior = (rows > 0) & (rows < height - 1) & (cols > 0) & (cols < width - 1)

    half_w = (width - 1) / 2
    half_h = (height - 1) / 2
    span = max(half_w, half_h, 0.5) * 1.5
    radial = np.hypot(cols - half_w, rows - half_h) / span

    coords = list(zip(rows.tolist(), cols.tolist()))
    return GridTopology(
        is_hex=False,
        width=width,
        height=height,
        radius=0,
        coords=coords,
        xs=cols.astype(np.float64),
        ys=rows.astype(np.float64),
        neighbor_table=table,
        interior=interior,
        radial_distance=radial,
    )


def hex_topology(radius: int) -> GridTopology:
    coords = hex_coordinates(radius)
    index = {coord: i for i, coord in enumerate(coords)}

    table = np.full((len(coords), len(HEX_DIRECTIONS)), -1, dtype=np.int64)
    for i, (q, r, s) in enumerate(coords):
        for k, (dq, dr, ds) in enumerate(HEX_DIRECTIONS):
            table[i, k] = index.get((q + dq, r + dr, s + ds), -1)

    cube = np.asarray(coords, dtype=np.float64)
    q = cube[:, 0]
    r = cube[:, 1]
    interior = (table >= 0).all(axis=1)
    radial = np.sqrt((cube ** 2).sum(axis=1)) / (max(radius, 1) * 1.5)

    side = 2 * radius + 1
    return GridTopology(
        is_hex=True,
        width=side,
        height=side,
        radius=radius,
        coords=coords,
        # Flat-top projection of axial coordinates onto the plane.
        xs=q * 1.5,
        ys=q * 0.5 + r,
        neighbor_table=table,
        interior=interior,
        radial_distance=radial,
    )


def topology_for(size) -> GridTopology:
    """Build the topology for a ``MapSize`` or an integer hex radius."""
    if isinstance(size, MapSize):
        return rect_topology(size.width, size.height)
    return hex_topology(size)

