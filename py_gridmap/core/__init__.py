"""
Core terrain engine: grids, generation, brushes, history and serialization.
"""

from .errors import EditorStateError, GridMapError, InvalidParameterError, MapFormatError, UnknownModeError
from .grid import Cell, GridStore, HexCell, HexGrid, MapSize, RectGrid, create_empty, fill, resize
from .terrain_types import TERRAIN_TYPES, TerrainType, resolve_terrain

__all__ = ['GridMapError', 'InvalidParameterError', 'UnknownModeError', 'MapFormatError', 'EditorStateError',
           'Cell', 'HexCell', 'RectGrid', 'HexGrid', 'MapSize', 'GridStore', 'create_empty', 'fill', 'resize',
           'TERRAIN_TYPES', 'TerrainType', 'resolve_terrain']
