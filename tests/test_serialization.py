"""Tests for map document import and export."""

import json

import pytest

from py_gridmap.core.errors import MapFormatError
from py_gridmap.core.generator import generate
from py_gridmap.core.grid import Cell, HexCell, MapSize, UnitRef, create_empty
from py_gridmap.core.serialization import HEX_VERSION, RECT_VERSION, dumps, export_map, import_map, loads


class TestExport:
    """Test document layout."""

    def test_rect_document(self, small_grid):
        grid = small_grid.with_changes([(0, 1, Cell("water", 0))])
        document = export_map(grid, name="Pond", created_at="2024-01-01T00:00:00+00:00")
        assert document["version"] == RECT_VERSION
        assert document["width"] == 5 and document["height"] == 5
        assert document["data"][0][1] == {"type": "water", "height": 0}
        assert document["name"] == "Pond"
        assert document["createdAt"] == "2024-01-01T00:00:00+00:00"
        assert "description" not in document

    def test_hex_document(self, hex_grid):
        document = export_map(hex_grid)
        assert document["version"] == HEX_VERSION
        assert document["hexGrid"] is True
        assert document["mapRadius"] == 2
        assert document["width"] == document["height"] == 5
        assert len(document["data"]) == 19
        assert document["data"]["1,-1,0"] == {"terrainType": "field", "height": 1}
        assert document["createdAt"]

    def test_unit_exported(self, hex_grid):
        grid = hex_grid.with_changes([HexCell(0, 0, 0, unit=UnitRef("infantry", "inf", "#ff0000"))])
        entry = export_map(grid)["data"]["0,0,0"]
        assert entry["unit"] == {"type": "infantry", "icon": "inf", "color": "#ff0000"}

    def test_dumps_is_json(self, small_grid):
        assert json.loads(dumps(small_grid, description="test"))["description"] == "test"


class TestRoundTrip:
    """Export followed by import reproduces the map."""

    def test_rect(self):
        grid = generate(MapSize(12, 9), {"seed": "trip"}, "threshold")
        document = loads(dumps(grid, name="Trip", description="A map"))
        assert document.grid == grid
        assert document.name == "Trip"
        assert document.description == "A map"
        assert document.version == RECT_VERSION

    def test_hex_with_empty_cells(self, hex_grid):
        grid = hex_grid.with_changes([
            HexCell(2, -2, 0, "empty", 0),
            HexCell(0, 1, -1, "mountains", 9, UnitRef("scout")),
        ])
        assert import_map(export_map(grid)).grid == grid

    def test_generated_hex(self):
        grid = generate(1, {"waterLevel": 0, "mountainsLevel": 0, "seed": "x"}, "random")
        restored = import_map(json.dumps(export_map(grid))).grid
        assert restored == grid
        assert restored.radius == 1
        assert restored.cell_count == 7


class TestLegacyImport:
    """Older document shapes are still accepted."""

    def test_hex_rows(self):
        cell = {"type": "forest", "height": 2}
        document = {"width": 2, "height": 2, "hexGrid": True, "data": [[cell, cell], [cell, cell]]}
        grid = import_map(document).grid
        assert grid.radius == 2
        assert grid.cell_count == 19
        assert grid[(1, 1, -2)].terrain == "forest"
        assert grid[(0, 0, 0)].terrain == "forest"
        assert grid[(-1, 0, 1)].is_empty
        assert grid[(-1, 0, 1)].height == 0

    def test_two_part_keys(self):
        document = {
            "width": 3,
            "height": 3,
            "mapRadius": 1,
            "data": {"1,-1": {"type": "swamp", "height": 1}, "0,0": {"terrainType": "hills"}},
        }
        grid = import_map(document).grid
        assert grid[(1, -1, 0)] == HexCell(1, -1, 0, "swamp", 1)
        assert grid[(0, 0, 0)].height == 3
        assert grid[(-1, 1, 0)].is_empty

    def test_hexes_list(self):
        document = {
            "mapRadius": 1,
            "hexes": [
                {"position": {"q": 0, "r": 0, "s": 0}, "terrainType": "water", "height": 0},
                {"position": {"q": 1, "r": 0, "s": -1}, "terrainType": "highland", "height": 6},
            ],
        }
        grid = import_map(document).grid
        assert grid.cell_count == 7
        assert grid[(0, 0, 0)].terrain == "water"
        assert grid[(1, 0, -1)].height == 6


class TestLenientImport:
    """Bad cells are repaired instead of rejected."""

    def test_unknown_terrain_becomes_field(self):
        document = {"width": 1, "height": 1, "data": [[{"type": "lava", "height": 4}]]}
        assert import_map(document).grid.cell(0, 0) == Cell("field", 4)

    def test_empty_on_rect_becomes_field(self):
        document = {"width": 1, "height": 1, "data": [[{"type": "empty", "height": 0}]]}
        assert import_map(document).grid.cell(0, 0).terrain == "field"

    def test_heights_clamped_and_rounded(self):
        document = {"width": 2, "height": 1, "data": [[{"type": "hills", "height": 14}, {"type": "hills", "height": 2.6}]]}
        grid = import_map(document).grid
        assert grid.cell(0, 0).height == 10
        assert grid.cell(0, 1).height == 3

    def test_out_of_radius_hexes_dropped(self):
        document = {
            "width": 3,
            "height": 3,
            "mapRadius": 1,
            "data": {"0,0,0": {"terrainType": "water", "height": 0}, "3,-3,0": {"terrainType": "water"}},
        }
        grid = import_map(document).grid
        assert grid.cell_count == 7
        assert (3, -3, 0) not in grid

    def test_radius_capped(self):
        document = {"width": 41, "height": 41, "mapRadius": 20, "data": {"0,0,0": {"terrainType": "field"}}}
        assert import_map(document).grid.radius == 15


class TestImportErrors:
    """Malformed documents raise MapFormatError."""

    @pytest.mark.parametrize(
        "document",
        [
            "{not json",
            "[1, 2, 3]",
            {"height": 1, "data": [[{"type": "field"}]]},
            {"width": 1, "data": [[{"type": "field"}]]},
            {"width": 1, "height": 1},
            {"width": 2, "height": 1, "data": [[{"type": "field"}]]},
            {"width": 1, "height": 2, "data": [[{"type": "field"}]]},
            {"width": 1, "height": 1, "data": [["field"]]},
            {"width": 1, "height": 1, "data": [[{"type": "field", "height": "high"}]]},
            {"width": 3, "height": 3, "mapRadius": 1, "data": {"a,b": {"terrainType": "field"}}},
            {"width": 3, "height": 3, "mapRadius": -1, "data": {"0,0,0": {"terrainType": "field"}}},
            {"hexes": []},
            '{"width": 1, "height": 1, "data": [[{"type": "field", "height": NaN}]]}',
            '{"width": Infinity, "height": 1, "data": [[{"type": "field"}]]}',
            '{"width": 3, "height": 3, "mapRadius": -Infinity, "data": {"0,0,0": {"terrainType": "field"}}}',
        ],
    )
    def test_rejected(self, document):
        with pytest.raises(MapFormatError):
            import_map(document)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            loads("")


class TestCreateEmptyExport:
    def test_empty_grid_round_trip(self):
        grid = create_empty(MapSize(3, 4))
        assert import_map(dumps(grid)).grid == grid
