"""
Grid data structures and bulk grid operations.

Grids are immutable. Cells are frozen dataclasses, rectangular rows are
tuples and hex grids expose a read-only mapping, so every write has to go
through an operation that returns a new grid object. The history keeps
plain references to earlier grids and relies on this.

Two layouts are supported:
- RectGrid: dense ``height x width`` rows indexed ``[row][col]``
- HexGrid: every cube coordinate within ``radius``; removed tiles are
  ``empty`` cells, never missing keys
"""

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from ..config import settings
from .errors import InvalidParameterError
from .terrain_types import (
    DEFAULT_TERRAIN,
    EMPTY_TERRAIN,
    TERRAIN_TYPES,
    is_known_terrain,
)

logger = structlog.get_logger()

HexCoord = Tuple[int, int, int]

# Cube-coordinate offsets of the six hex neighbours.
HEX_DIRECTIONS: Tuple[HexCoord, ...] = (
    (1, -1, 0), (1, 0, -1), (0, 1, -1),
    (-1, 1, 0), (-1, 0, 1), (0, -1, 1),
)

DEFAULT_HEIGHT = 1


@dataclass(frozen=True)
class MapSize:
    """Rectangular map dimensions."""

    width: int
    height: int

    @property
    def cell_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Cell:
    """A rectangular grid cell."""

    terrain: str = DEFAULT_TERRAIN
    height: int = DEFAULT_HEIGHT


@dataclass(frozen=True)
class UnitRef:
    """A unit token standing on a hex."""

    type: str
    icon: str = ""
    color: str = ""


@dataclass(frozen=True)
class HexCell:
    """A hex grid cell in cube coordinates (q + r + s == 0)."""

    q: int
    r: int
    s: int
    terrain: str = DEFAULT_TERRAIN
    height: int = DEFAULT_HEIGHT
    unit: Optional[UnitRef] = None

    def __post_init__(self):
        if self.q + self.r + self.s != 0:
            raise InvalidParameterError(
                f"Cube coordinates must sum to zero, got ({self.q}, {self.r}, {self.s})"
            )

    @property
    def coords(self) -> HexCoord:
        return (self.q, self.r, self.s)

    @property
    def is_empty(self) -> bool:
        return self.terrain == EMPTY_TERRAIN


DEFAULT_CELL = Cell()


def hex_cell_count(radius: int) -> int:
    """Number of hexes within ``radius`` of the origin."""
    return 3 * radius * (radius + 1) + 1


def hex_coordinates(radius: int) -> List[HexCoord]:
    """All cube coordinates within ``radius``, in canonical (q, then r) order."""
    coords = []
    for q in range(-radius, radius + 1):
        r1 = max(-radius, -q - radius)
        r2 = min(radius, -q + radius)
        for r in range(r1, r2 + 1):
            coords.append((q, r, -q - r))
    return coords


def hex_distance(a: HexCoord, b: HexCoord) -> int:
    """Number of hex steps between two cube coordinates."""
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]), abs(a[2] - b[2]))


class RectGrid:
    """Immutable dense rectangular grid."""

    __slots__ = ("_rows", "_width")

    is_hex = False

    def __init__(self, rows: Sequence[Sequence[Cell]]):
        rows = tuple(tuple(row) for row in rows)
        if not rows or not rows[0]:
            raise InvalidParameterError("A rectangular grid needs at least one cell")
        width = len(rows[0])
        for index, row in enumerate(rows):
            if len(row) != width:
                raise InvalidParameterError(
                    f"Row {index} has {len(row)} cells, expected {width}"
                )
        self._rows = rows
        self._width = width

    @classmethod
    def _from_rows(cls, rows: Tuple[Tuple[Cell, ...], ...]) -> "RectGrid":
        """Wrap already-validated tuple rows without re-checking them."""
        grid = cls.__new__(cls)
        grid._rows = rows
        grid._width = len(rows[0])
        return grid

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return len(self._rows)

    @property
    def size(self) -> MapSize:
        return MapSize(self._width, len(self._rows))

    @property
    def cell_count(self) -> int:
        return self._width * len(self._rows)

    @property
    def rows(self) -> Tuple[Tuple[Cell, ...], ...]:
        return self._rows

    def __getitem__(self, row: int) -> Tuple[Cell, ...]:
        return self._rows[row]

    def __iter__(self) -> Iterator[Tuple[Cell, ...]]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RectGrid):
            return NotImplemented
        return self._rows == other._rows

    def __repr__(self) -> str:
        return f"RectGrid(width={self._width}, height={len(self._rows)})"

    def cell(self, row: int, col: int) -> Cell:
        return self._rows[row][col]

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < len(self._rows) and 0 <= col < self._width

    def cells(self) -> Iterator[Tuple[int, int, Cell]]:
        for row_index, row in enumerate(self._rows):
            for col_index, cell in enumerate(row):
                yield row_index, col_index, cell

    def with_changes(self, changes: Iterable[Tuple[int, int, Cell]]) -> "RectGrid":
        """
        Return a new grid with the given ``(row, col, cell)`` changes applied.

        Only rows that receive at least one change are copied; every other
        row object is shared with this grid.
        """
        by_row: Dict[int, List[Tuple[int, Cell]]] = {}
        for row, col, cell in changes:
            by_row.setdefault(row, []).append((col, cell))

        if not by_row:
            return self

        rows = list(self._rows)
        for row, row_changes in by_row.items():
            new_row = list(rows[row])
            for col, cell in row_changes:
                new_row[col] = cell
            rows[row] = tuple(new_row)
        return RectGrid._from_rows(tuple(rows))

    def snapshot(self) -> "RectGrid":
        """Row-level copy: a new grid whose rows are fresh tuple objects."""
        return RectGrid._from_rows(tuple(tuple(list(row)) for row in self._rows))


class HexGrid:
    """Immutable hex grid covering every cube coordinate within ``radius``."""

    __slots__ = ("_cells", "_radius")

    is_hex = True

    def __init__(self, radius: int, cells: Mapping[HexCoord, HexCell]):
        expected = hex_coordinates(radius)
        if len(cells) != len(expected) or any(coord not in cells for coord in expected):
            raise InvalidParameterError(
                f"Hex grid of radius {radius} needs exactly {len(expected)} cells, "
                f"got {len(cells)}"
            )
        for coord, cell in cells.items():
            if cell.coords != tuple(coord):
                raise InvalidParameterError(f"Cell {cell.coords} stored under key {coord}")
        self._radius = radius
        self._cells = MappingProxyType({coord: cells[coord] for coord in expected})

    @classmethod
    def _from_dict(cls, radius: int, cells: Dict[HexCoord, HexCell]) -> "HexGrid":
        grid = cls.__new__(cls)
        grid._radius = radius
        grid._cells = MappingProxyType(cells)
        return grid

    @property
    def radius(self) -> int:
        return self._radius

    @property
    def size(self) -> MapSize:
        side = 2 * self._radius + 1
        return MapSize(side, side)

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    @property
    def cells(self) -> Mapping[HexCoord, HexCell]:
        return self._cells

    def __getitem__(self, coord: HexCoord) -> HexCell:
        return self._cells[tuple(coord)]

    def __contains__(self, coord) -> bool:
        return tuple(coord) in self._cells

    def __iter__(self) -> Iterator[HexCell]:
        return iter(self._cells.values())

    def __len__(self) -> int:
        return len(self._cells)

    def __eq__(self, other) -> bool:
        if not isinstance(other, HexGrid):
            return NotImplemented
        return self._radius == other._radius and dict(self._cells) == dict(other._cells)

    def __repr__(self) -> str:
        return f"HexGrid(radius={self._radius}, cells={len(self._cells)})"

    def get(self, q: int, r: int) -> Optional[HexCell]:
        return self._cells.get((q, r, -q - r))

    def with_changes(self, changes: Iterable[HexCell]) -> "HexGrid":
        """Return a new grid with the given cells replacing those at their coordinates."""
        updated = dict(self._cells)
        changed = False
        for cell in changes:
            if cell.coords not in updated:
                raise InvalidParameterError(f"Coordinate {cell.coords} is outside radius {self._radius}")
            updated[cell.coords] = cell
            changed = True
        if not changed:
            return self
        return HexGrid._from_dict(self._radius, updated)

    def snapshot(self) -> "HexGrid":
        return HexGrid._from_dict(self._radius, dict(self._cells))


Grid = Union[RectGrid, HexGrid]
GridSize = Union[MapSize, int]


def is_very_large(cell_count: int) -> bool:
    return cell_count > settings.very_large_grid_cells


def size_of(grid: Grid) -> GridSize:
    """The size argument that recreates ``grid``'s shape."""
    return grid.radius if grid.is_hex else grid.size


def validate_map_size(size: MapSize) -> MapSize:
    if not isinstance(size.width, int) or not isinstance(size.height, int):
        raise InvalidParameterError(f"Map dimensions must be integers, got {size}")
    if not (1 <= size.width <= settings.max_map_width and 1 <= size.height <= settings.max_map_height):
        raise InvalidParameterError(
            f"Map size {size.width}x{size.height} outside 1x1..."
            f"{settings.max_map_width}x{settings.max_map_height}"
        )
    return size


def clamp_radius(radius) -> int:
    """Validate a hex radius and cap it at the configured maximum."""
    if isinstance(radius, bool) or not isinstance(radius, int):
        raise InvalidParameterError(f"Hex radius must be an integer, got {radius!r}")
    if radius < 0:
        raise InvalidParameterError(f"Hex radius must not be negative, got {radius}")
    if radius > settings.max_hex_radius:
        logger.warning(
            "Hex radius capped", requested=radius, radius=settings.max_hex_radius
        )
        return settings.max_hex_radius
    return radius


def validate_height(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(f"Height must be an integer, got {value!r}")
    if not settings.height_min <= value <= settings.height_max:
        raise InvalidParameterError(
            f"Height {value} outside {settings.height_min}..{settings.height_max}"
        )
    return value


def validate_terrain(terrain_id: str, hex_grid: bool) -> str:
    if not is_known_terrain(terrain_id):
        raise InvalidParameterError(f"Unknown terrain type: {terrain_id!r}")
    if TERRAIN_TYPES[terrain_id].hex_only and not hex_grid:
        raise InvalidParameterError(f"Terrain {terrain_id!r} is only valid on hex grids")
    return terrain_id


def coerce_size(size) -> GridSize:
    if isinstance(size, MapSize):
        return validate_map_size(size)
    if isinstance(size, tuple) and len(size) == 2:
        return validate_map_size(MapSize(*size))
    return clamp_radius(size)


def create_empty(size) -> Grid:
    """
    Create a grid of default cells (``field``, height 1).

    Args:
        size: ``MapSize`` / ``(width, height)`` for a rectangular grid, or an
            integer radius for a hex grid

    Returns:
        New grid
    """
    size = coerce_size(size)

    if isinstance(size, int):
        cells = {coord: HexCell(*coord) for coord in hex_coordinates(size)}
        return HexGrid._from_dict(size, cells)

    if is_very_large(size.cell_count):
        # One immutable template row shared by every row.
        template = (DEFAULT_CELL,) * size.width
        logger.debug("Creating very large grid from template row", width=size.width, height=size.height)
        return RectGrid._from_rows((template,) * size.height)

    return RectGrid._from_rows(
        tuple(tuple(Cell() for _ in range(size.width)) for _ in range(size.height))
    )


def _map_rows_shared(grid: RectGrid, transform: Callable[[Cell], Cell]) -> RectGrid:
    """
    Transform every cell, building each distinct row and cell only once.

    Rows that are the same object map to the same new row, so a grid built
    from a template row is filled by building a single template row.
    """
    row_memo: Dict[int, Tuple[Cell, ...]] = {}
    cell_memo: Dict[Cell, Cell] = {}
    rows = []
    for row in grid.rows:
        new_row = row_memo.get(id(row))
        if new_row is None:
            cells = []
            for cell in row:
                new_cell = cell_memo.get(cell)
                if new_cell is None:
                    new_cell = cell_memo[cell] = transform(cell)
                cells.append(new_cell)
            new_row = row_memo[id(row)] = tuple(cells)
        rows.append(new_row)
    return RectGrid._from_rows(tuple(rows))


def fill(grid: Grid, tool: str, value=None) -> Grid:
    """
    Set every cell's height (``tool='height'``) or terrain (``tool=<terrain id>``).

    Args:
        grid: Source grid (not modified)
        tool: ``"height"`` or a terrain id
        value: Target height when ``tool='height'``; ignored otherwise

    Returns:
        New grid
    """
    if tool == "height":
        height = validate_height(value)

        def transform(cell):
            return replace(cell, height=height)
    else:
        terrain = validate_terrain(tool, grid.is_hex)

        def transform(cell):
            return replace(cell, terrain=terrain)

    if grid.is_hex:
        return HexGrid._from_dict(
            grid.radius, {coord: transform(cell) for coord, cell in grid.cells.items()}
        )

    if is_very_large(grid.cell_count):
        logger.debug("Filling very large grid with shared rows", cells=grid.cell_count, tool=tool)
        return _map_rows_shared(grid, transform)

    return RectGrid._from_rows(tuple(tuple(transform(cell) for cell in row) for row in grid.rows))


def resize(grid: Grid, new_size) -> Grid:
    """
    Resize a grid, keeping cells at coordinates present in both shapes.

    New coordinates receive default cells. Hex radii are capped at the
    configured maximum.
    """
    new_size = coerce_size(new_size)

    if grid.is_hex:
        if not isinstance(new_size, int):
            raise InvalidParameterError("A hex grid can only be resized to a radius")
        cells = {}
        for coord in hex_coordinates(new_size):
            existing = grid.cells.get(coord)
            cells[coord] = existing if existing is not None else HexCell(*coord)
        logger.debug("Hex grid resized", old_radius=grid.radius, new_radius=new_size)
        return HexGrid._from_dict(new_size, cells)

    if isinstance(new_size, int):
        raise InvalidParameterError("A rectangular grid can only be resized to a MapSize")

    keep_cols = min(grid.width, new_size.width)
    pad = (DEFAULT_CELL,) * max(0, new_size.width - grid.width)
    rows = []
    for row_index in range(new_size.height):
        if row_index < grid.height:
            old_row = grid.rows[row_index]
            row = old_row if keep_cols == len(old_row) and not pad else old_row[:keep_cols] + pad
        else:
            row = (DEFAULT_CELL,) * new_size.width
        rows.append(row)

    logger.debug(
        "Grid resized",
        old_width=grid.width, old_height=grid.height,
        new_width=new_size.width, new_height=new_size.height,
    )
    return RectGrid._from_rows(tuple(rows))


class GridStore:
    """Holds the single current grid."""

    def __init__(self, grid: Grid):
        self._grid = grid

    @property
    def current(self) -> Grid:
        return self._grid

    @property
    def cell_count(self) -> int:
        return self._grid.cell_count

    @property
    def is_very_large(self) -> bool:
        return is_very_large(self._grid.cell_count)

    def commit(self, grid: Grid) -> None:
        if not isinstance(grid, (RectGrid, HexGrid)):
            raise InvalidParameterError(f"Cannot commit {type(grid).__name__} as a grid")
        self._grid = grid
