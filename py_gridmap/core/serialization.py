"""
JSON map documents.

Rectangular maps are written as version 1.0 documents with a row-major
``data`` array of ``{type, height}`` cells. Hex maps are written as version
2.0 documents with ``data`` keyed by ``"q,r,s"``, including ``empty``
cells. The importer also accepts the older shapes written by earlier
editor versions:

- hex ``data`` as an array of rows (keys become ``"q,r"`` with q = column)
- ``"q,r"`` keys without the derived ``s``
- ``type`` in place of ``terrainType``
- ``{mapRadius, hexes: [{position: {q, r, s}, terrainType}]}`` documents
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

import structlog

from ..config import settings
from .errors import InvalidParameterError, MapFormatError
from .grid import (
    Cell,
    Grid,
    HexCell,
    HexCoord,
    HexGrid,
    RectGrid,
    UnitRef,
    clamp_radius,
    hex_coordinates,
    hex_distance,
)
from .terrain_types import DEFAULT_TERRAIN, EMPTY_TERRAIN, TERRAIN_TYPES, resolve_terrain

logger = structlog.get_logger()

RECT_VERSION = "1.0"
HEX_VERSION = "2.0"


@dataclass
class MapDocument:
    """An imported map and its metadata."""

    grid: Grid
    name: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    version: Optional[str] = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def export_map(
    grid: Grid,
    name: Optional[str] = None,
    description: Optional[str] = None,
    created_at: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the JSON-ready document for a grid.

    Args:
        grid: Grid to export
        name: Optional map name
        description: Optional map description
        created_at: ISO-8601 timestamp, defaults to now (UTC)

    Returns:
        Plain dict that ``json.dumps`` can serialize
    """
    if grid.is_hex:
        side = 2 * grid.radius + 1
        data = {}
        for (q, r, s), cell in grid.cells.items():
            entry = {"terrainType": cell.terrain, "height": cell.height}
            if cell.unit is not None:
                entry["unit"] = {"type": cell.unit.type, "icon": cell.unit.icon, "color": cell.unit.color}
            data[f"{q},{r},{s}"] = entry
        document = {
            "width": side,
            "height": side,
            "hexGrid": True,
            "mapRadius": grid.radius,
            "data": data,
            "version": HEX_VERSION,
        }
    else:
        document = {
            "width": grid.width,
            "height": grid.height,
            "data": [[{"type": cell.terrain, "height": cell.height} for cell in row] for row in grid.rows],
            "version": RECT_VERSION,
        }

    document["createdAt"] = created_at or _timestamp()
    if name is not None:
        document["name"] = name
    if description is not None:
        document["description"] = description
    return document


def dumps(grid: Grid, indent: Optional[int] = 2, **metadata) -> str:
    """Serialize a grid to a JSON string."""
    return json.dumps(export_map(grid, **metadata), indent=indent)


def loads(text: Union[str, bytes]) -> MapDocument:
    """Parse a JSON string into a MapDocument."""
    return import_map(text)


def import_map(document: Union[str, bytes, Dict[str, Any]]) -> MapDocument:
    """
    Parse a map document (dict or JSON text) into a grid.

    Unknown terrain ids fall back to ``field``. Hex coordinates outside the
    map radius are dropped and missing coordinates become ``empty`` cells.

    Raises:
        MapFormatError: Unparseable JSON or missing ``width``/``height``/``data``
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as e:
            raise MapFormatError(f"Map file is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MapFormatError(f"Map document must be a JSON object, got {type(document).__name__}")

    if "hexes" in document and "data" not in document:
        grid = _import_hex_list(document)
    else:
        for key in ("width", "height", "data"):
            if not document.get(key):
                raise MapFormatError(f"Map document is missing {key!r}")

        data = document["data"]
        is_hex = bool(document.get("hexGrid")) or "mapRadius" in document or isinstance(data, dict)
        if is_hex:
            if isinstance(data, list):
                data = _rows_to_keyed(data)
            grid = _import_hex(document, data)
        else:
            grid = _import_rect(document, data)

    logger.info("Map imported", hex=grid.is_hex, cells=grid.cell_count, version=document.get("version"))
    return MapDocument(
        grid=grid,
        name=document.get("name"),
        description=document.get("description"),
        created_at=document.get("createdAt"),
        version=document.get("version"),
    )


def _import_rect(document: Dict[str, Any], data) -> RectGrid:
    width = _positive_int(document, "width")
    height = _positive_int(document, "height")

    if not isinstance(data, list) or len(data) != height:
        raise MapFormatError(f"Expected {height} rows of map data")

    rows = []
    for row_index, row in enumerate(data):
        if not isinstance(row, list) or len(row) != width:
            raise MapFormatError(f"Row {row_index} must hold {width} cells")
        cells = []
        for raw in row:
            terrain, height_value = _cell_fields(raw)
            if TERRAIN_TYPES[terrain].hex_only:
                terrain = DEFAULT_TERRAIN
            cells.append(Cell(terrain, height_value))
        rows.append(tuple(cells))
    return RectGrid._from_rows(tuple(rows))


def _rows_to_keyed(rows) -> Dict[str, Any]:
    """Convert array-of-rows hex data to ``"q,r"`` keys (q = column, r = row)."""
    keyed = {}
    for r, row in enumerate(rows):
        if not isinstance(row, list):
            raise MapFormatError(f"Row {r} of map data must be an array")
        for q, raw in enumerate(row):
            keyed[f"{q},{r}"] = raw
    return keyed


def _import_hex(document: Dict[str, Any], data: Dict[str, Any]) -> HexGrid:
    parsed = {_parse_key(key): raw for key, raw in data.items()}

    if "mapRadius" in document:
        radius = _to_int(document["mapRadius"], "mapRadius")
    elif parsed:
        radius = max(hex_distance(coord, (0, 0, 0)) for coord in parsed)
    else:
        radius = (_positive_int(document, "width") - 1) // 2

    return _build_hex(radius, ((coord, _cell_fields(raw), raw) for coord, raw in parsed.items()))


def _import_hex_list(document: Dict[str, Any]) -> HexGrid:
    hexes = document.get("hexes")
    if not isinstance(hexes, list):
        raise MapFormatError("Legacy hex document needs a 'hexes' array")
    if "mapRadius" not in document:
        raise MapFormatError("Legacy hex document is missing 'mapRadius'")
    radius = _to_int(document["mapRadius"], "mapRadius")

    entries = []
    for raw in hexes:
        position = raw.get("position") if isinstance(raw, dict) else None
        if not isinstance(position, dict):
            raise MapFormatError("Every legacy hex needs a position")
        q = _to_int(position.get("q"), "q")
        r = _to_int(position.get("r"), "r")
        entries.append(((q, r, -q - r), _cell_fields(raw), raw))
    return _build_hex(radius, entries)


def _build_hex(radius: int, entries) -> HexGrid:
    try:
        radius = clamp_radius(radius)
    except InvalidParameterError as e:
        raise MapFormatError(str(e)) from e

    cells: Dict[HexCoord, HexCell] = {
        coord: HexCell(*coord, terrain=EMPTY_TERRAIN, height=settings.height_min)
        for coord in hex_coordinates(radius)
    }
    dropped = 0
    for coord, (terrain, height), raw in entries:
        if coord not in cells:
            dropped += 1
            continue
        cells[coord] = HexCell(*coord, terrain=terrain, height=height, unit=_unit(raw))

    if dropped:
        logger.warning("Dropped hexes outside map radius", dropped=dropped, radius=radius)
    return HexGrid._from_dict(radius, cells)


def _parse_key(key: str) -> HexCoord:
    parts = str(key).split(",")
    try:
        values = [int(part) for part in parts]
    except ValueError as e:
        raise MapFormatError(f"Invalid hex coordinate key {key!r}") from e

    if len(values) == 2:
        q, r = values
        return (q, r, -q - r)
    if len(values) == 3 and sum(values) == 0:
        return tuple(values)
    raise MapFormatError(f"Invalid hex coordinate key {key!r}")


def _cell_fields(raw) -> Tuple[str, int]:
    if not isinstance(raw, dict):
        raise MapFormatError(f"Map cell must be an object, got {raw!r}")
    terrain_id = raw.get("terrainType", raw.get("type", DEFAULT_TERRAIN))
    terrain = resolve_terrain(str(terrain_id))

    height = raw.get("height", terrain.default_height)
    if isinstance(height, bool) or not isinstance(height, (int, float)):
        raise MapFormatError(f"Cell height must be a number, got {height!r}")
    if isinstance(height, float) and not math.isfinite(height):
        raise MapFormatError(f"Cell height must be finite, got {height!r}")
    height = min(settings.height_max, max(settings.height_min, int(round(height))))
    return terrain.id, height


def _unit(raw) -> Optional[UnitRef]:
    unit = raw.get("unit")
    if not isinstance(unit, dict) or "type" not in unit:
        return None
    return UnitRef(type=str(unit["type"]), icon=str(unit.get("icon", "")), color=str(unit.get("color", "")))


def _positive_int(document: Dict[str, Any], key: str) -> int:
    value = _to_int(document.get(key), key)
    if value < 1:
        raise MapFormatError(f"{key!r} must be positive, got {value}")
    return value


def _to_int(value, key: str) -> int:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or (isinstance(value, float) and not math.isfinite(value))
        or int(value) != value
    ):
        raise MapFormatError(f"{key!r} must be an integer, got {value!r}")
    return int(value)
