"""Tests for editor sessions and stroke throttling."""

import asyncio

import pytest

from conftest import FakeClock
from py_gridmap.core import editor as editor_module
from py_gridmap.core.editor import EditorSession, StrokeThrottle
from py_gridmap.core.errors import EditorStateError, InvalidParameterError
from py_gridmap.core.grid import Cell, MapSize, create_empty
from py_gridmap.core.serialization import export_map

WATER = {"tool": "terrain", "selectedTerrain": "water"}


class TestStrokeThrottle:
    """Test dab rate limiting."""

    def test_keeps_latest_skipped_dab(self, clock):
        applied = []
        throttle = StrokeThrottle(lambda row, col: applied.append((row, col)), interval_ms=50, clock=clock)

        assert throttle.submit(0, 0) is True
        clock.advance(0.01)
        assert throttle.submit(0, 1) is False
        clock.advance(0.01)
        assert throttle.submit(0, 2) is False
        assert throttle.pending == (0, 2)

        clock.advance(0.05)
        assert throttle.submit(0, 3) is True
        assert applied == [(0, 0), (0, 2), (0, 3)]
        assert throttle.pending is None

    def test_end_stroke_flushes(self, clock):
        applied = []
        throttle = StrokeThrottle(lambda row, col: applied.append((row, col)), clock=clock)
        throttle.submit(1, 1)
        throttle.submit(1, 2)
        throttle.end_stroke()
        assert applied == [(1, 1), (1, 2)]
        # A new stroke starts with an open window.
        assert throttle.submit(1, 3) is True

    def test_flush_without_pending(self, clock):
        throttle = StrokeThrottle(lambda row, col: None, clock=clock)
        assert throttle.flush() is False


class TestEditorSession:
    """Test whole-grid operations and history routing."""

    def test_default_map(self):
        session = EditorSession()
        assert session.grid.size == MapSize(32, 32)
        assert not session.history.can_undo

    def test_generate_undo_redo(self):
        session = EditorSession(MapSize(12, 12))
        blank = session.grid
        generated = session.generate({"seed": "session"}, "threshold")
        assert session.grid is generated
        assert session.mode == "threshold"
        assert session.params.seed == "session"

        assert session.undo() == blank
        assert session.redo() == generated
        assert session.redo() is None

    def test_generate_reuses_last_params(self):
        session = EditorSession(MapSize(10, 10))
        first = session.generate({"seed": 4}, "island")
        again = session.generate()
        assert again == first

    def test_invalid_generate_leaves_state(self):
        session = EditorSession(MapSize(6, 6))
        before = session.grid
        with pytest.raises(InvalidParameterError):
            session.generate({"waterLevel": 20})
        assert session.grid is before
        assert not session.history.can_undo

    def test_listeners_notified(self):
        session = EditorSession(MapSize(4, 4))
        seen = []
        session.add_listener(seen.append)
        session.fill("forest")
        session.undo()
        session.remove_listener(seen.append)
        session.fill("swamp")
        assert len(seen) == 2
        assert seen[0].cell(0, 0).terrain == "forest"
        assert seen[1].cell(0, 0).terrain == "field"

    def test_no_op_edit_not_recorded(self):
        session = EditorSession(MapSize(4, 4))
        session.brush(0, 0, {"tool": "terrain", "selectedTerrain": "field"})
        assert not session.history.can_undo

    def test_resize_and_new_map(self):
        session = EditorSession(MapSize(4, 4))
        session.resize(MapSize(6, 5))
        assert session.grid.size == MapSize(6, 5)
        assert session.history.can_undo

        session.new_map(3)
        assert session.grid.is_hex
        assert not session.history.can_undo

    def test_brush_uses_session_config(self):
        session = EditorSession(MapSize(5, 5))
        session.set_brush({"tool": "height", "selectedHeight": 7, "brushSize": 3})
        session.brush(2, 2)
        assert session.grid.cell(2, 2).height == 7
        assert session.grid.cell(1, 1).height == 1


class TestStrokes:
    """A stroke is one history step."""

    def test_stroke_is_single_undo_step(self):
        session = EditorSession(MapSize(6, 6))
        original = session.grid
        session.begin_stroke(WATER)
        for col in range(4):
            assert session.stroke_to(2, col) is True
        final = session.end_stroke()

        assert [final.cell(2, col).terrain for col in range(4)] == ["water"] * 4
        assert len(session.history.undo_stack) == 1
        assert session.undo() == original
        assert session.redo() == final

    def test_dabs_render_during_stroke(self):
        session = EditorSession(MapSize(6, 6))
        seen = []
        session.add_listener(seen.append)
        session.begin_stroke(WATER)
        session.stroke_to(0, 0)
        session.stroke_to(0, 1)
        assert len(seen) == 2
        assert not session.history.can_undo
        session.end_stroke()
        assert session.history.can_undo

    def test_empty_stroke_not_recorded(self):
        session = EditorSession(MapSize(4, 4))
        session.begin_stroke(WATER)
        session.end_stroke()
        assert not session.history.can_undo

    def test_state_errors(self):
        session = EditorSession(MapSize(4, 4))
        with pytest.raises(EditorStateError):
            session.stroke_to(0, 0)
        with pytest.raises(EditorStateError):
            session.end_stroke()

        session.begin_stroke(WATER)
        for action in (session.undo, lambda: session.fill("forest"), lambda: session.begin_stroke(WATER)):
            with pytest.raises(EditorStateError):
                action()
        session.end_stroke()
        session.undo()

    def test_bad_dab_keeps_earlier_dabs(self):
        session = EditorSession(MapSize(4, 4))
        session.begin_stroke(WATER)
        session.stroke_to(0, 0)
        with pytest.raises(InvalidParameterError):
            session.stroke_to(9, 9)
        final = session.end_stroke()
        assert final.cell(0, 0).terrain == "water"
        assert not session.drawing

    def test_very_large_stroke_is_throttled(self):
        clock = FakeClock()
        session = EditorSession(MapSize(250, 200), clock=clock)
        original = session.grid
        session.begin_stroke(WATER)

        assert session.stroke_to(0, 0) is True
        assert session.stroke_to(0, 1) is False
        assert session.grid.cell(0, 1) == Cell()

        final = session.end_stroke()
        assert final.cell(0, 1).terrain == "water"
        assert len(session.history.undo_stack) == 1
        assert session.history.undo_stack[0] is original

    def test_very_large_bad_dab_rejected_before_throttle(self):
        clock = FakeClock()
        session = EditorSession(MapSize(250, 200), clock=clock)
        session.begin_stroke(WATER)
        session.stroke_to(0, 0)
        with pytest.raises(InvalidParameterError):
            session.stroke_to(999, 999)
        assert session._throttle.pending is None

        final = session.end_stroke()
        assert final.cell(0, 0).terrain == "water"
        assert session.history.can_undo

    def test_failed_pending_dab_rolls_back_stroke(self):
        clock = FakeClock()
        session = EditorSession(MapSize(250, 200), clock=clock)
        original = session.grid
        session.begin_stroke(WATER)
        session.stroke_to(0, 0)
        assert session.stroke_to(0, 1) is False

        def reject(row, col):
            raise InvalidParameterError("rejected")

        session._throttle.apply = reject
        with pytest.raises(InvalidParameterError):
            session.end_stroke()
        assert session.grid is original
        assert not session.history.can_undo
        assert not session.drawing

    def test_cancel_stroke_restores_origin(self):
        session = EditorSession(MapSize(5, 5))
        original = session.grid
        seen = []
        session.add_listener(seen.append)
        session.begin_stroke(WATER)
        session.stroke_to(1, 1)
        session.stroke_to(1, 2)

        assert session.cancel_stroke() is original
        assert session.grid is original
        assert seen[-1] is original
        assert not session.history.can_undo
        assert not session.drawing
        with pytest.raises(EditorStateError):
            session.cancel_stroke()

    def test_flush_stroke_applies_pending_dab(self):
        clock = FakeClock()
        session = EditorSession(MapSize(250, 200), clock=clock)
        session.begin_stroke(WATER)
        session.stroke_to(0, 0)
        session.stroke_to(0, 1)
        assert session.grid.cell(0, 1) == Cell()

        assert session.flush_stroke() is True
        assert session.grid.cell(0, 1).terrain == "water"
        assert session.flush_stroke() is False
        session.end_stroke()
        assert len(session.history.undo_stack) == 1

    def test_invalid_stroke_config_rejected_up_front(self):
        session = EditorSession(MapSize(4, 4))
        with pytest.raises(InvalidParameterError):
            session.begin_stroke({"tool": "terrain", "selectedTerrain": "empty"})
        assert not session.drawing

    def test_small_stroke_not_throttled(self, clock):
        session = EditorSession(MapSize(8, 8), clock=clock)
        session.begin_stroke(WATER)
        assert session.stroke_to(0, 0) is True
        assert session.stroke_to(0, 1) is True
        session.end_stroke()


class TestDocuments:
    """Import and export through the session."""

    def test_import_clears_history(self):
        session = EditorSession(MapSize(4, 4))
        session.fill("forest")
        imported = create_empty(2)
        session.import_document(export_map(imported, name="Imported", description="hexes"))

        assert session.grid == imported
        assert session.name == "Imported"
        assert not session.history.can_undo

    def test_export_carries_name(self):
        session = EditorSession(MapSize(3, 3), name="Valley", description="A small valley")
        document = session.export_document()
        assert document["name"] == "Valley"
        assert document["description"] == "A small valley"
        assert len(document["data"]) == 3


class TestAsyncOperations:
    """Async variants yield once for large grids."""

    @pytest.fixture
    def sleeps(self, monkeypatch):
        calls = []

        async def fake_sleep(delay):
            calls.append(delay)

        monkeypatch.setattr(editor_module.asyncio, "sleep", fake_sleep)
        return calls

    def test_small_grid_does_not_yield(self, sleeps):
        session = EditorSession(MapSize(10, 10))
        asyncio.run(session.fill_async("forest"))
        assert sleeps == []
        assert session.grid.cell(0, 0).terrain == "forest"

    def test_large_grid_yields_once(self, sleeps):
        session = EditorSession(MapSize(120, 100))
        asyncio.run(session.fill_async("height", 4))
        assert sleeps == [0]
        assert session.grid.cell(99, 119).height == 4

    def test_resize_to_large_yields(self, sleeps):
        session = EditorSession(MapSize(10, 10))
        asyncio.run(session.resize_async(MapSize(200, 100)))
        assert sleeps == [0]
        assert session.grid.cell_count == 20_000

    def test_generate_async(self, sleeps):
        session = EditorSession(MapSize(10, 10))
        grid = asyncio.run(session.generate_async({"seed": 2}, "random"))
        assert session.grid is grid
        assert sleeps == []

    def test_generate_async_validates_first(self, sleeps):
        session = EditorSession(MapSize(120, 100))
        with pytest.raises(InvalidParameterError):
            asyncio.run(session.generate_async({"terrainScale": 50}))
        assert sleeps == []
