"""FastAPI main application."""

from typing import Any, Dict, List

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import settings
from ..config.presets import PRESETS
from ..core.classifier import available_modes
from ..core.terrain_types import TERRAIN_TYPES
from ..utils.logging import configure_logging
from .editor import router as editor_router
from .editor import sessions

configure_logging()

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Grid Map Terrain API",
    description="Terrain generation and brush editing for rectangular and hex grid maps",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(editor_router)


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Grid Map Terrain API", host=settings.api_host, port=settings.api_port)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Grid Map Terrain API", open_sessions=len(sessions))
    sessions.clear()


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Grid Map Terrain API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "sessions": len(sessions)}


@app.get("/presets")
async def list_presets() -> Dict[str, Dict[str, Any]]:
    """Named generation presets, keyed by name (camelCase fields)."""
    return {name: preset.model_dump(by_alias=True) for name, preset in PRESETS.items()}


@app.get("/modes")
async def list_modes() -> List[str]:
    return available_modes()


@app.get("/terrain-types")
async def list_terrain_types() -> List[Dict[str, Any]]:
    """Static terrain reference data."""
    return [
        {
            "id": terrain.id,
            "name": terrain.display_name,
            "color": terrain.color,
            "baseHeightFactor": terrain.base_height_factor,
            "texture": terrain.texture_ref,
            "defaultHeight": terrain.default_height,
            "hexOnly": terrain.hex_only,
        }
        for terrain in TERRAIN_TYPES.values()
    ]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("py_gridmap.api.main:app", host=settings.api_host, port=settings.api_port)
