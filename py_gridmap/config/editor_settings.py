"""
Input models for editing and generation operations.

These pydantic models validate everything the host passes in (brush
selection, generation parameters) before any grid is touched. Field
aliases accept the camelCase names used by the JSON boundary.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core.errors import InvalidParameterError
from .config import settings


class BrushTool(str, Enum):
    """What a brush stroke changes."""

    TERRAIN = "terrain"
    HEIGHT = "height"


class BrushType(str, Enum):
    """Hard (normal) or soft-edged brush."""

    NORMAL = "normal"
    SOFT = "soft"


class FalloffType(str, Enum):
    """Soft brush weight profiles."""

    LINEAR = "linear"
    QUADRATIC = "quadratic"
    GAUSSIAN = "gaussian"
    PLATEAU = "plateau"


class SoftBrushSettings(BaseModel):
    """Soft brush falloff settings."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    falloff_type: FalloffType = Field(
        default=FalloffType.LINEAR, alias="falloffType", description="Weight profile"
    )
    strength: float = Field(default=0.5, description="Peak weight, clamped to [0.1, 1]")

    @field_validator("strength")
    @classmethod
    def _clamp_strength(cls, value: float) -> float:
        return max(0.1, min(1.0, value))


class BrushConfig(BaseModel):
    """Brush and tool selection state."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    tool: BrushTool = Field(default=BrushTool.TERRAIN, description="Paint terrain or height")
    selected_terrain: Optional[str] = Field(
        default=None, alias="selectedTerrain", description="Terrain id for the terrain tool"
    )
    selected_height: Optional[int] = Field(
        default=None, alias="selectedHeight", description="Target height for the height tool"
    )
    brush_size: int = Field(default=1, alias="brushSize", ge=1, description="Brush diameter in cells")
    brush_type: BrushType = Field(default=BrushType.NORMAL, alias="brushType")
    soft_settings: Optional[SoftBrushSettings] = Field(default=None, alias="softSettings")

    @field_validator("brush_size")
    @classmethod
    def _check_brush_size(cls, value: int) -> int:
        if value % 2 == 0:
            raise ValueError(f"brush size must be odd, got {value}")
        if value > settings.max_brush_size:
            raise ValueError(f"brush size {value} exceeds maximum {settings.max_brush_size}")
        return value

    @model_validator(mode="after")
    def _check_selection(self):
        if self.tool == BrushTool.TERRAIN and not self.selected_terrain:
            raise ValueError("terrain tool requires selected_terrain")
        if self.tool == BrushTool.HEIGHT and self.selected_height is None:
            raise ValueError("height tool requires selected_height")
        if self.brush_type == BrushType.SOFT and self.soft_settings is None:
            self.soft_settings = SoftBrushSettings()
        return self

    @property
    def value(self):
        return self.selected_height if self.tool == BrushTool.HEIGHT else self.selected_terrain


class GenerationParams(BaseModel):
    """
    Procedural generation parameters.

    Level knobs (water, mountains) are scale factors on a 0-10 scale;
    threshold-based modes read them as ``level / 10``. Densities are
    probabilities or thresholds in [0, 1]; ``None`` means the mode's own
    default.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    seed: Union[int, str] = Field(
        default="default",
        validation_alias=AliasChoices("seed", "randomSeed"),
        description="Seed for reproducible generation",
    )
    terrain_scale: float = Field(default=6.0, ge=1, le=10, alias="terrainScale")
    mountains_level: float = Field(default=5.0, ge=0, le=10, alias="mountainsLevel")
    water_level: float = Field(default=3.0, ge=0, le=10, alias="waterLevel")
    forest_density: Optional[float] = Field(default=None, ge=0, le=1, alias="forestDensity")
    swamp_density: Optional[float] = Field(default=None, ge=0, le=1, alias="swampDensity")
    buildings_density: Optional[float] = Field(default=None, ge=0, le=1, alias="buildingsDensity")
    hills_density: Optional[float] = Field(default=None, ge=0, le=1, alias="hillsDensity")

    def density(self, name: str, default: float) -> float:
        value = getattr(self, f"{name}_density")
        return default if value is None else value


def parse_model(model_cls, data):
    """
    Validate ``data`` into ``model_cls``, raising InvalidParameterError.

    Instances of the model pass through unchanged.
    """
    if isinstance(data, model_cls):
        return data
    if data is None:
        data = {}
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise InvalidParameterError(f"Invalid {model_cls.__name__}: {e}") from e
