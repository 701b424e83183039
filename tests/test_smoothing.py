"""Tests for height smoothing and shoreline cleanup."""

import numpy as np

from conftest import FixedRandom
from py_gridmap.core.canvas import TerrainCanvas
from py_gridmap.core.smoothing import refine_shorelines, smooth_heights
from py_gridmap.core.terrain_types import TerrainCode
from py_gridmap.core.topology import hex_topology, rect_topology

CENTRE = 4  # middle cell of a 3x3 rect map
HEX_CENTRE = 3  # (0, 0, 0) in a radius 1 hex map


def square(centre_height):
    canvas = TerrainCanvas.blank(9)
    canvas.heights[CENTRE] = centre_height
    return canvas


class TestSmoothHeights:
    """Test the neighbour-average pass."""

    def test_peak_is_lowered(self):
        result = smooth_heights(square(9), rect_topology(3, 3))
        assert result.heights[CENTRE] == 5
        # Border cells lack a full neighbourhood and keep their height.
        assert np.all(np.delete(result.heights, CENTRE) == 1)

    def test_water_is_not_smoothed(self):
        canvas = square(9)
        canvas.terrain[CENTRE] = TerrainCode.WATER
        result = smooth_heights(canvas, rect_topology(3, 3))
        assert result.heights[CENTRE] == 9

    def test_road_is_not_smoothed(self):
        canvas = square(9)
        canvas.terrain[CENTRE] = TerrainCode.ASPHALT
        assert smooth_heights(canvas, rect_topology(3, 3)).heights[CENTRE] == 9

    def test_no_land_neighbours(self):
        canvas = square(7)
        canvas.terrain[:] = TerrainCode.WATER
        canvas.terrain[CENTRE] = TerrainCode.FIELD
        assert smooth_heights(canvas, rect_topology(3, 3)).heights[CENTRE] == 7

    def test_water_neighbours_ignored(self):
        canvas = square(5)
        for index in (0, 1, 2, 3):
            canvas.terrain[index] = TerrainCode.WATER
            canvas.heights[index] = 0
        for index in (5, 6, 7, 8):
            canvas.heights[index] = 3
        assert smooth_heights(canvas, rect_topology(3, 3)).heights[CENTRE] == 4

    def test_input_untouched(self):
        canvas = square(9)
        smooth_heights(canvas, rect_topology(3, 3))
        assert canvas.heights[CENTRE] == 9


class TestRefineShorelines:
    """Test the neighbour-count cleanup rules on a radius 1 hex map."""

    def test_bank_becomes_swamp(self):
        topology = hex_topology(1)
        canvas = TerrainCanvas.blank(topology.n_cells)
        canvas.terrain[[0, 1, 2]] = TerrainCode.WATER

        result = refine_shorelines(canvas, topology, FixedRandom(0.9))
        assert result.terrain[HEX_CENTRE] == TerrainCode.SWAMP
        assert result.heights[HEX_CENTRE] == 1
        assert canvas.terrain[HEX_CENTRE] == TerrainCode.FIELD

    def test_bank_kept_on_low_draw(self):
        topology = hex_topology(1)
        canvas = TerrainCanvas.blank(topology.n_cells)
        canvas.terrain[[0, 1, 2]] = TerrainCode.WATER

        result = refine_shorelines(canvas, topology, FixedRandom(0.1))
        assert np.array_equal(result.terrain, canvas.terrain)

    def test_field_between_swamps_becomes_forest(self):
        topology = hex_topology(1)
        canvas = TerrainCanvas.blank(topology.n_cells)
        canvas.terrain[[0, 1]] = TerrainCode.SWAMP

        result = refine_shorelines(canvas, topology, FixedRandom(0.9))
        assert result.terrain[HEX_CENTRE] == TerrainCode.FOREST
        assert result.heights[HEX_CENTRE] == 2
        others = [i for i in range(topology.n_cells) if i not in (0, 1, HEX_CENTRE)]
        assert np.all(result.terrain[others] == TerrainCode.FIELD)

    def test_isolated_mountain_gets_hills(self):
        topology = hex_topology(1)
        canvas = TerrainCanvas.blank(topology.n_cells)
        canvas.set_terrain(HEX_CENTRE, TerrainCode.MOUNTAINS)

        result = refine_shorelines(canvas, topology, FixedRandom(0.9))
        ring = [i for i in range(topology.n_cells) if i != HEX_CENTRE]
        assert result.terrain[HEX_CENTRE] == TerrainCode.MOUNTAINS
        assert np.all(result.terrain[ring] == TerrainCode.HILLS)
        assert np.all(result.heights[ring] == 3)

    def test_no_rule_no_draw(self):
        topology = hex_topology(1)
        rng = FixedRandom(0.9)
        canvas = TerrainCanvas.blank(topology.n_cells)
        result = refine_shorelines(canvas, topology, rng)
        assert np.array_equal(result.terrain, canvas.terrain)
        assert rng.calls == 0
