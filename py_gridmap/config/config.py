"""Configuration management."""

import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env for local/dev environments, without overriding real environment variables
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v

class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    # Cell heights
    height_min: int = Field(default=0, description="Lowest allowed cell height")
    height_max: int = Field(default=10, description="Highest allowed cell height")

    # Grid size limits and performance tiers
    max_map_width: int = Field(default=1000, description="Max allowed map width")
    max_map_height: int = Field(default=1000, description="Max allowed map height")
    max_hex_radius: int = Field(default=15, description="Hex radius soft cap")
    large_grid_cells: int = Field(
        default=10_000, description="Cell count above which long operations yield first"
    )
    very_large_grid_cells: int = Field(
        default=40_000, description="Cell count above which size-adaptive strategies switch"
    )

    # Brush
    max_brush_size: int = Field(default=25, description="Largest accepted brush diameter")
    throttle_interval_ms: int = Field(
        default=50, description="Minimum interval between brush dabs on very large grids"
    )

    # History
    history_depth_normal: int = Field(default=50, description="Undo depth up to large_grid_cells")
    history_depth_large: int = Field(default=20, description="Undo depth up to very_large_grid_cells")
    history_depth_very_large: int = Field(default=10, description="Undo depth above very_large_grid_cells")

    model_config = SettingsConfigDict(
        env_prefix="GRIDMAP_",
        extra="ignore",
    )


settings = Settings()
