"""
Bounded undo/redo history.

Two stacks of earlier and later grids. Depth shrinks as grids grow:
50 entries up to ``large_grid_cells``, 20 up to ``very_large_grid_cells``,
10 beyond that. Very large grids are stored by reference, which is safe
only because every grid operation returns a new grid object; smaller
grids are stored as row-level snapshot copies.
"""

from typing import List, Optional

import structlog

from ..config import settings
from .grid import Grid, GridStore, is_very_large

logger = structlog.get_logger()


def capacity_for(cell_count: int) -> int:
    """Maximum stack depth for a grid of ``cell_count`` cells."""
    if cell_count <= settings.large_grid_cells:
        return settings.history_depth_normal
    if cell_count <= settings.very_large_grid_cells:
        return settings.history_depth_large
    return settings.history_depth_very_large


def snapshot_of(grid: Grid) -> Grid:
    """History entry for ``grid``: the grid itself when very large, else a row copy."""
    if is_very_large(grid.cell_count):
        return grid
    return grid.snapshot()


class HistoryManager:
    """Undo and redo stacks for one GridStore."""

    def __init__(self):
        self.undo_stack: List[Grid] = []
        self.redo_stack: List[Grid] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def record(self, store: GridStore, new_grid: Grid) -> Grid:
        """
        Commit ``new_grid`` as the current grid, remembering the previous one.

        Clears the redo stack.
        """
        previous = store.current
        store.commit(new_grid)

        self.undo_stack.append(snapshot_of(previous))
        self.redo_stack.clear()
        self._truncate(self.undo_stack, new_grid.cell_count)

        logger.debug("History recorded", undo_depth=len(self.undo_stack))
        return new_grid

    def undo(self, store: GridStore) -> Optional[Grid]:
        """Restore the previous grid; returns it, or None when there is nothing to undo."""
        if not self.undo_stack:
            return None
        grid = self.undo_stack.pop()
        self.redo_stack.append(snapshot_of(store.current))
        self._truncate(self.redo_stack, grid.cell_count)
        store.commit(grid)

        logger.debug("Undo", undo_depth=len(self.undo_stack), redo_depth=len(self.redo_stack))
        return grid

    def redo(self, store: GridStore) -> Optional[Grid]:
        """Re-apply the next grid; returns it, or None when there is nothing to redo."""
        if not self.redo_stack:
            return None
        grid = self.redo_stack.pop()
        self.undo_stack.append(snapshot_of(store.current))
        self._truncate(self.undo_stack, grid.cell_count)
        store.commit(grid)

        logger.debug("Redo", undo_depth=len(self.undo_stack), redo_depth=len(self.redo_stack))
        return grid

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

    @staticmethod
    def _truncate(stack: List[Grid], cell_count: int) -> None:
        # Oldest entries sit at the bottom of the stack.
        excess = len(stack) - capacity_for(cell_count)
        if excess > 0:
            del stack[:excess]
