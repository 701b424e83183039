"""
Editor session: the host-facing entry point for one open map.

An EditorSession owns a GridStore and its HistoryManager and routes every
edit (generation, fills, resizes, brush strokes, imports) through them,
notifying render listeners with each committed grid.

Concurrency model:
- All mutations run to completion on the caller's thread.
- The ``*_async`` variants yield to the event loop exactly once before
  running when the grid is large, so a UI can paint a busy indicator.
- On very large grids brush dabs inside a stroke are rate-limited by a
  StrokeThrottle, which keeps the most recent skipped dab and applies it
  later instead of dropping it.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from ..config import settings
from ..config.editor_settings import BrushConfig, GenerationParams, parse_model
from .brush import BrushEngine, apply_brush
from .errors import EditorStateError, GridMapError
from .generator import DEFAULT_MODE, generate
from .grid import Grid, GridSize, GridStore, MapSize, coerce_size, create_empty, fill, hex_cell_count, resize, size_of
from .history import HistoryManager
from .serialization import MapDocument, export_map, import_map

logger = structlog.get_logger()

RenderListener = Callable[[Grid], None]

DEFAULT_MAP_SIZE = MapSize(32, 32)


def size_cell_count(size: GridSize) -> int:
    if isinstance(size, MapSize):
        return size.cell_count
    return hex_cell_count(size)


class StrokeThrottle:
    """
    Rate-limits brush dabs without losing the last one.

    A dab submitted inside the throttle window is held as pending (newer
    submissions replace it). The pending dab is applied before the next dab
    that passes the window, on ``flush()`` and on ``end_stroke()``. It never
    fires on its own; a host that wants idle dabs shown calls ``flush()``
    from a timer.
    """

    def __init__(
        self,
        apply: Callable[[int, int], Any],
        interval_ms: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.apply = apply
        self.interval = (settings.throttle_interval_ms if interval_ms is None else interval_ms) / 1000.0
        self.clock = clock
        self._last_applied: Optional[float] = None
        self._pending: Optional[Tuple[int, int]] = None

    @property
    def pending(self) -> Optional[Tuple[int, int]]:
        return self._pending

    def submit(self, row: int, col: int) -> bool:
        """Apply the dab now if the window has passed; returns whether it was applied."""
        now = self.clock()
        if self._last_applied is not None and now - self._last_applied < self.interval:
            self._pending = (row, col)
            return False

        self.flush()
        self.apply(row, col)
        self._last_applied = now
        return True

    def flush(self) -> bool:
        """Apply the pending dab, if any."""
        if self._pending is None:
            return False
        row, col = self._pending
        self._pending = None
        self.apply(row, col)
        self._last_applied = self.clock()
        return True

    def end_stroke(self) -> None:
        self.flush()
        self._last_applied = None


class EditorSession:
    """One open map: current grid, history, brush state and listeners."""

    def __init__(
        self,
        size=None,
        grid: Optional[Grid] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if grid is None:
            grid = create_empty(DEFAULT_MAP_SIZE if size is None else size)
        self.store = GridStore(grid)
        self.history = HistoryManager()
        self.name = name
        self.description = description
        self.brush_config = BrushConfig(tool="terrain", selected_terrain="field")
        self.params = GenerationParams()
        self.mode = DEFAULT_MODE
        self._listeners: List[RenderListener] = []
        self._clock = clock

        self.drawing = False
        self._stroke_origin: Optional[Grid] = None
        self._stroke_config: Optional[BrushConfig] = None
        self._throttle: Optional[StrokeThrottle] = None

    @property
    def grid(self) -> Grid:
        return self.store.current

    def add_listener(self, listener: RenderListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RenderListener) -> None:
        self._listeners.remove(listener)

    def _notify(self) -> None:
        grid = self.store.current
        for listener in self._listeners:
            listener(grid)

    def _commit(self, new_grid: Grid) -> Grid:
        """Record ``new_grid`` in history and make it current."""
        if new_grid is self.store.current:
            return new_grid
        self.history.record(self.store, new_grid)
        self._notify()
        return new_grid

    def _require_idle(self, operation: str) -> None:
        if self.drawing:
            raise EditorStateError(f"Cannot {operation} while a brush stroke is in progress")

    # Whole-grid operations

    def generate(self, params=None, mode: Optional[str] = None) -> Grid:
        """Generate terrain for the current grid shape and commit it."""
        self._require_idle("generate")
        params = self.params if params is None else parse_model(GenerationParams, params)
        mode = mode or self.mode
        new_grid = generate(size_of(self.store.current), params, mode)
        self.params = params
        self.mode = mode
        return self._commit(new_grid)

    def fill(self, tool: str, value=None) -> Grid:
        self._require_idle("fill")
        return self._commit(fill(self.store.current, tool, value))

    def resize(self, new_size) -> Grid:
        self._require_idle("resize")
        return self._commit(resize(self.store.current, new_size))

    def new_map(self, size) -> Grid:
        """Start a fresh map; history is cleared."""
        self._require_idle("create a new map")
        self.store.commit(create_empty(size))
        self.history.clear()
        self._notify()
        logger.info("New map created", cells=self.store.cell_count)
        return self.store.current

    def undo(self) -> Optional[Grid]:
        self._require_idle("undo")
        grid = self.history.undo(self.store)
        if grid is not None:
            self._notify()
        return grid

    def redo(self) -> Optional[Grid]:
        self._require_idle("redo")
        grid = self.history.redo(self.store)
        if grid is not None:
            self._notify()
        return grid

    # Cooperative variants for large grids

    async def _yield_if_large(self, target_cells: int = 0) -> None:
        if max(self.store.cell_count, target_cells) > settings.large_grid_cells:
            await asyncio.sleep(0)

    async def generate_async(self, params=None, mode: Optional[str] = None) -> Grid:
        if params is not None:
            params = parse_model(GenerationParams, params)
        await self._yield_if_large()
        return self.generate(params, mode)

    async def fill_async(self, tool: str, value=None) -> Grid:
        await self._yield_if_large()
        return self.fill(tool, value)

    async def resize_async(self, new_size) -> Grid:
        await self._yield_if_large(size_cell_count(coerce_size(new_size)))
        return self.resize(new_size)

    # Brush

    def set_brush(self, config) -> BrushConfig:
        self.brush_config = parse_model(BrushConfig, config)
        return self.brush_config

    def brush(self, row: int, col: int, config=None) -> Grid:
        """Apply a single dab as its own history step."""
        self._require_idle("apply a single brush dab")
        config = self.brush_config if config is None else parse_model(BrushConfig, config)
        return self._commit(apply_brush(self.store.current, row, col, config))

    def begin_stroke(self, config=None) -> None:
        """Start a brush stroke; dabs until ``end_stroke`` form one history step."""
        self._require_idle("begin a new stroke")
        config = self.brush_config if config is None else parse_model(BrushConfig, config)
        BrushEngine.validate(config.tool, config.value, config.brush_size, self.store.current.is_hex)
        self._stroke_config = config
        self._stroke_origin = self.store.current
        self.drawing = True
        if self.store.is_very_large:
            self._throttle = StrokeThrottle(self._apply_dab, clock=self._clock)
        logger.debug("Stroke started", throttled=self._throttle is not None)

    def stroke_to(self, row: int, col: int) -> bool:
        """
        Paint at a cell within the current stroke; returns whether the dab ran now.

        A throttled dab stays pending until the next dab, ``flush_stroke()``
        or ``end_stroke()``. Hosts should call ``flush_stroke()`` on a timer
        while the pointer rests so the last dab shows without further input.
        """
        if not self.drawing:
            raise EditorStateError("No brush stroke in progress")
        BrushEngine.check_center(self.store.current, row, col)
        if self._throttle is not None:
            return self._throttle.submit(row, col)
        self._apply_dab(row, col)
        return True

    def flush_stroke(self) -> bool:
        """Apply a throttled dab that is still pending."""
        if not self.drawing:
            raise EditorStateError("No brush stroke in progress")
        if self._throttle is None:
            return False
        return self._throttle.flush()

    def cancel_stroke(self) -> Grid:
        """Abandon the stroke and restore the grid it started from; nothing is recorded."""
        if not self.drawing:
            raise EditorStateError("No brush stroke in progress")
        origin = self._stroke_origin
        changed = self.store.current is not origin
        self._reset_stroke()
        if changed:
            self.store.commit(origin)
            self._notify()
        logger.debug("Stroke cancelled", changed=changed)
        return origin

    def end_stroke(self) -> Grid:
        """Finish the stroke, applying any pending dab, and record it in history."""
        if not self.drawing:
            raise EditorStateError("No brush stroke in progress")
        if self._throttle is not None:
            try:
                self._throttle.end_stroke()
            except GridMapError:
                self.cancel_stroke()
                raise

        final = self.store.current
        origin = self._stroke_origin
        self._reset_stroke()
        if final is not origin:
            # Rewind to the pre-stroke grid so the whole stroke is one undo step.
            self.store.commit(origin)
            self.history.record(self.store, final)
        logger.debug("Stroke finished", changed=final is not origin)
        return final

    def _reset_stroke(self) -> None:
        self.drawing = False
        self._stroke_origin = None
        self._stroke_config = None
        self._throttle = None

    def _apply_dab(self, row: int, col: int) -> None:
        new_grid = apply_brush(self.store.current, row, col, self._stroke_config)
        if new_grid is not self.store.current:
            self.store.commit(new_grid)
            self._notify()

    # Documents

    def import_document(self, document) -> MapDocument:
        """Replace the map with an imported document; history is cleared."""
        self._require_idle("import")
        imported = import_map(document)
        self.store.commit(imported.grid)
        self.history.clear()
        self.name = imported.name or self.name
        self.description = imported.description or self.description
        self._notify()
        return imported

    def export_document(self) -> Dict[str, Any]:
        return export_map(self.store.current, name=self.name, description=self.description)
