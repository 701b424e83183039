"""Tests for river and lake carving."""

import numpy as np
import pytest

from py_gridmap.core.canvas import TerrainCanvas
from py_gridmap.core.hydrology import HydrologyCarver, HydrologyOptions, river_count
from py_gridmap.core.terrain_types import TerrainCode
from py_gridmap.core.topology import hex_topology, rect_topology
from py_gridmap.utils.random import make_prng


@pytest.fixture
def slope():
    """8x8 map whose elevation falls from west (1.0) to east (0.0)."""
    topology = rect_topology(8, 8)
    cols = np.arange(topology.n_cells) % 8
    return topology, 1.0 - cols / 7.0


@pytest.fixture
def plain_options():
    """No banks and no lakes, so only river cells turn to water."""
    return HydrologyOptions(bank_swamp_chance=0.0, lake_chance=0.0)


class TestHydrologyCarver:
    """Test downhill river walks."""

    def test_rivers_flow_downhill(self, slope, plain_options):
        topology, elevation = slope
        carver = HydrologyCarver(topology, make_prng("rivers"), plain_options)
        carver.carve(TerrainCanvas.blank(topology.n_cells), elevation, 3)

        assert len(carver.rivers) == 3
        for river in carver.rivers:
            for current, following in zip(river.cells, river.cells[1:]):
                assert following in topology.neighbors(current)
                assert elevation[following] < elevation[current]
            assert river.lake_radius is None

    def test_only_river_cells_become_water(self, slope, plain_options):
        topology, elevation = slope
        carver = HydrologyCarver(topology, make_prng(11), plain_options)
        result = carver.carve(TerrainCanvas.blank(topology.n_cells), elevation, 2)

        river_cells = {cell for river in carver.rivers for cell in river.cells}
        water = set(np.flatnonzero(result.terrain == TerrainCode.WATER).tolist())
        assert water == river_cells
        assert all(result.heights[cell] == 0 for cell in river_cells)

    def test_flat_ground_gives_single_cell_river(self, plain_options):
        topology = rect_topology(6, 6)
        carver = HydrologyCarver(topology, make_prng("flat"), plain_options)
        result = carver.carve(TerrainCanvas.blank(topology.n_cells), np.full(topology.n_cells, 0.5), 1)

        river = carver.rivers[0]
        assert river.cells == [river.source_cell]
        assert river.mouth_cell == river.source_cell
        assert np.count_nonzero(result.terrain == TerrainCode.WATER) == 1

    def test_input_canvas_untouched(self, slope):
        topology, elevation = slope
        canvas = TerrainCanvas.blank(topology.n_cells)
        HydrologyCarver(topology, make_prng("pure")).carve(canvas, elevation, 3)
        assert np.all(canvas.terrain == TerrainCode.FIELD)
        assert np.all(canvas.heights == 1)

    def test_lakes_and_banks(self, slope):
        topology, elevation = slope
        options = HydrologyOptions(bank_swamp_chance=1.0, lake_chance=1.0, lake_rim_swamp_chance=0.0)
        carver = HydrologyCarver(topology, make_prng("lakes"), options)
        result = carver.carve(TerrainCanvas.blank(topology.n_cells), elevation, 1)

        river = carver.rivers[0]
        assert 2 <= river.lake_radius <= 4
        distances = topology.distances_from(river.mouth_cell)
        lake = np.flatnonzero(distances <= river.lake_radius)
        assert np.all(result.terrain[lake] == TerrainCode.WATER)
        assert np.any(result.terrain == TerrainCode.SWAMP)

    def test_same_seed_same_rivers(self, slope):
        topology, elevation = slope
        first = HydrologyCarver(topology, make_prng("again"))
        second = HydrologyCarver(topology, make_prng("again"))
        a = first.carve(TerrainCanvas.blank(topology.n_cells), elevation, 3)
        b = second.carve(TerrainCanvas.blank(topology.n_cells), elevation, 3)
        assert np.array_equal(a.terrain, b.terrain)
        assert [r.cells for r in first.rivers] == [r.cells for r in second.rivers]

    def test_hex_topology(self, plain_options):
        topology = hex_topology(4)
        # Highest at the centre, falling towards the rim.
        elevation = 1.0 - topology.radial_distance
        carver = HydrologyCarver(topology, make_prng("hex"), plain_options)
        result = carver.carve(TerrainCanvas.blank(topology.n_cells), elevation, 2)

        for river in carver.rivers:
            for current, following in zip(river.cells, river.cells[1:]):
                assert following in topology.neighbors(current)
            assert all(result.terrain[cell] == TerrainCode.WATER for cell in river.cells)


class TestRiverCount:
    def test_at_least_one(self):
        assert river_count(0) == 1
        assert river_count(0.5) == 1

    def test_floor_of_level(self):
        assert river_count(3.7) == 3
        assert river_count(10) == 10
