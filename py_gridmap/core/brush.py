"""
Circular brush painting.

The brush computes every changed cell first and then applies the whole
batch with ``with_changes``, which copies only the rows (or the hex
mapping) it touches. Soft brushes weight height edits by a falloff curve;
terrain ids are labels and are never blended.
"""

import math
from dataclasses import replace
from typing import List, Optional, Tuple

import structlog

from ..config import settings
from ..config.editor_settings import (
    BrushConfig,
    BrushTool,
    BrushType,
    FalloffType,
    SoftBrushSettings,
    parse_model,
)
from .errors import InvalidParameterError
from .grid import Cell, Grid, HexCell, HexGrid, RectGrid, hex_distance, validate_height, validate_terrain

logger = structlog.get_logger()

# Soft brush weights below this leave the cell untouched.
MIN_WEIGHT = 0.01


def calculate_falloff(distance: float, radius: float, falloff_type, strength: float) -> float:
    """
    Soft brush weight for a cell at ``distance`` from the brush centre.

    Args:
        distance: Distance from the centre in cells
        radius: Brush radius; a zero radius gives full weight at the centre
        falloff_type: ``linear``, ``quadratic``, ``gaussian`` or ``plateau``
        strength: Peak weight, clamped to [0.1, 1]

    Returns:
        Weight in [0, 1]
    """
    d = min(distance / radius, 1.0) if radius > 0 else 0.0
    strength = max(0.1, min(1.0, strength))
    falloff_type = FalloffType(falloff_type)

    if falloff_type == FalloffType.LINEAR:
        return max(0.0, 1 - d) * strength
    if falloff_type == FalloffType.QUADRATIC:
        return max(0.0, 1 - d * d) * strength
    if falloff_type == FalloffType.GAUSSIAN:
        return math.exp(-4 * d * d) * strength
    # Plateau: full strength in the inner half, linear drop to the edge.
    if d < 0.5:
        return strength
    return max(0.0, 1 - (d - 0.5) * 2) * strength


def blend_height(current: int, target: int, weight: float) -> int:
    """Round-half-up interpolation from ``current`` towards ``target``."""
    return int(math.floor(current + (target - current) * weight + 0.5))


class BrushEngine:
    """Applies one brush dab to a grid."""

    @staticmethod
    def validate(tool, value, brush_size: int, hex_grid: bool):
        """Check tool, value and size before any cell is visited; returns the normalized tool."""
        try:
            tool = BrushTool(tool)
        except ValueError as e:
            raise InvalidParameterError(f"Unknown brush tool: {tool!r}") from e

        if isinstance(brush_size, bool) or not isinstance(brush_size, int):
            raise InvalidParameterError(f"Brush size must be an integer, got {brush_size!r}")
        if brush_size < 1 or brush_size % 2 == 0 or brush_size > settings.max_brush_size:
            raise InvalidParameterError(
                f"Brush size must be an odd integer in 1..{settings.max_brush_size}, got {brush_size}"
            )

        if tool == BrushTool.HEIGHT:
            validate_height(value)
        else:
            validate_terrain(value, hex_grid)
        return tool

    @staticmethod
    def check_center(grid: Grid, center_row: int, center_col: int) -> None:
        """Raise unless the dab centre lies on the grid (axial r/q on hex grids)."""
        if grid.is_hex:
            center = (center_col, center_row, -center_col - center_row)
            if center not in grid:
                raise InvalidParameterError(f"Brush centre {center} outside radius {grid.radius}")
        elif not grid.in_bounds(center_row, center_col):
            raise InvalidParameterError(
                f"Brush centre ({center_row}, {center_col}) outside {grid.width}x{grid.height} grid"
            )

    @classmethod
    def apply(
        cls,
        grid: Grid,
        center_row: int,
        center_col: int,
        tool,
        value,
        brush_size: int = 1,
        brush_type=BrushType.NORMAL,
        soft_settings: Optional[SoftBrushSettings] = None,
    ) -> Grid:
        """
        Paint one dab centred on a cell.

        On hex grids ``center_row``/``center_col`` are the axial ``r``/``q``.

        Args:
            grid: Source grid (not modified)
            center_row: Centre row (rect) or r (hex)
            center_col: Centre column (rect) or q (hex)
            tool: ``terrain`` or ``height``
            value: Terrain id or target height
            brush_size: Odd brush diameter
            brush_type: ``normal`` or ``soft``
            soft_settings: Falloff settings for soft brushes

        Returns:
            New grid, or ``grid`` itself when no cell changes
        """
        tool = cls.validate(tool, value, brush_size, grid.is_hex)
        cls.check_center(grid, center_row, center_col)
        brush_type = BrushType(brush_type)
        if brush_type == BrushType.SOFT and soft_settings is None:
            soft_settings = SoftBrushSettings()
        soft = soft_settings if brush_type == BrushType.SOFT else None

        if grid.is_hex:
            changes = cls._hex_changes(grid, center_col, center_row, tool, value, brush_size, soft)
        else:
            changes = cls._rect_changes(grid, center_row, center_col, tool, value, brush_size, soft)

        logger.debug(
            "Brush applied",
            tool=tool.value,
            size=brush_size,
            brush_type=brush_type.value,
            changed=len(changes),
        )
        return grid.with_changes(changes)

    @staticmethod
    def _paint(cell, tool: BrushTool, value, weight: Optional[float]):
        """New cell for one brush hit, or None when nothing changes."""
        if tool == BrushTool.HEIGHT:
            height = value if weight is None else blend_height(cell.height, value, weight)
            return None if height == cell.height else replace(cell, height=height)
        return None if cell.terrain == value else replace(cell, terrain=value)

    @classmethod
    def _rect_changes(
        cls, grid: RectGrid, row: int, col: int, tool, value, brush_size: int, soft
    ) -> List[Tuple[int, int, Cell]]:
        radius = brush_size // 2
        changes = []
        for target_row in range(max(0, row - radius), min(grid.height, row + radius + 1)):
            cells = grid.rows[target_row]
            for target_col in range(max(0, col - radius), min(grid.width, col + radius + 1)):
                distance = math.hypot(target_row - row, target_col - col)
                if brush_size > 1 and distance > radius:
                    continue

                weight = None
                if soft is not None:
                    weight = calculate_falloff(distance, radius, soft.falloff_type, soft.strength)
                    if weight < MIN_WEIGHT:
                        continue

                new_cell = cls._paint(cells[target_col], tool, value, weight)
                if new_cell is not None:
                    changes.append((target_row, target_col, new_cell))
        return changes

    @classmethod
    def _hex_changes(cls, grid: HexGrid, q: int, r: int, tool, value, brush_size: int, soft) -> List[HexCell]:
        center = (q, r, -q - r)
        radius = brush_size // 2
        changes = []
        for dq in range(-radius, radius + 1):
            for dr in range(max(-radius, -dq - radius), min(radius, -dq + radius) + 1):
                coord = (q + dq, r + dr, -q - r - dq - dr)
                cell = grid.cells.get(coord)
                if cell is None:
                    continue

                weight = None
                if soft is not None:
                    distance = hex_distance(center, coord)
                    weight = calculate_falloff(distance, radius, soft.falloff_type, soft.strength)
                    if weight < MIN_WEIGHT:
                        continue

                new_cell = cls._paint(cell, tool, value, weight)
                if new_cell is not None:
                    changes.append(new_cell)
        return changes


def apply_brush(grid: Grid, row: int, col: int, config) -> Grid:
    """
    Apply a brush described by a ``BrushConfig`` (or a dict) at a cell.

    For hex grids ``row`` and ``col`` are the axial ``r`` and ``q``.
    """
    config = parse_model(BrushConfig, config)
    return BrushEngine.apply(
        grid,
        row,
        col,
        config.tool,
        config.value,
        config.brush_size,
        config.brush_type,
        config.soft_settings,
    )


def apply_hex_brush(grid: HexGrid, q: int, r: int, config) -> HexGrid:
    """Apply a brush centred on the hex at axial ``(q, r)``."""
    if not grid.is_hex:
        raise InvalidParameterError("apply_hex_brush needs a hex grid")
    return apply_brush(grid, r, q, config)
