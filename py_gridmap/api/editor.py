"""
Editor session API endpoints.

Sessions live in memory only; a session is one open map with its own
undo/redo history. Maps leave and enter the service as JSON documents
through the export and import endpoints.
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, model_validator

from ..config.editor_settings import BrushConfig, GenerationParams
from ..config.presets import get_preset
from ..core.editor import EditorSession
from ..core.errors import EditorStateError, GridMapError, MapFormatError
from ..core.generator import DEFAULT_MODE
from ..core.grid import MapSize

logger = structlog.get_logger()

router = APIRouter(prefix="/sessions", tags=["Map Editor"])

# Open sessions by id
sessions: Dict[str, EditorSession] = {}


class MapShape(BaseModel):
    """Rectangular size or hex radius."""

    width: Optional[int] = Field(default=None, description="Map width in cells")
    height: Optional[int] = Field(default=None, description="Map height in cells")
    radius: Optional[int] = Field(default=None, description="Hex map radius")

    @model_validator(mode="after")
    def _check_shape(self):
        rect = self.width is not None and self.height is not None
        if rect == (self.radius is not None):
            raise ValueError("Give either width and height, or radius")
        return self

    def to_size(self):
        if self.radius is not None:
            return self.radius
        return MapSize(self.width, self.height)


class CreateSessionRequest(MapShape):
    """Request to open a new editor session."""

    name: Optional[str] = Field(default=None, description="Map name")
    description: Optional[str] = Field(default=None, description="Map description")


class GenerateRequest(BaseModel):
    """Request to generate terrain for the session's map."""

    params: Optional[GenerationParams] = Field(default=None, description="Generation parameters")
    preset: Optional[str] = Field(default=None, description="Named preset used when params are omitted")
    mode: str = Field(default=DEFAULT_MODE, description="Generator mode")


class BrushRequest(BaseModel):
    """A single brush dab."""

    row: int = Field(description="Row (rect) or r (hex)")
    col: int = Field(description="Column (rect) or q (hex)")
    brush: BrushConfig


class StrokeRequest(BaseModel):
    """A whole brush stroke, recorded as one undo step."""

    points: List[Tuple[int, int]] = Field(min_length=1, description="(row, col) dab positions")
    brush: BrushConfig


class FillRequest(BaseModel):
    """Fill the whole map with one terrain or one height."""

    tool: str = Field(description="'height' or a terrain id")
    value: Optional[int] = Field(default=None, description="Height for the height tool")


class SessionSummary(BaseModel):
    """State of an editor session."""

    id: str
    name: Optional[str]
    hex_grid: bool
    width: int
    height: int
    radius: Optional[int]
    cells: int
    can_undo: bool
    can_redo: bool


def get_session_or_404(session_id: str) -> EditorSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def http_error(error: GridMapError) -> HTTPException:
    """Translate an engine error into an HTTP error response."""
    if isinstance(error, MapFormatError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, EditorStateError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=422, detail=str(error))


def summarize(session_id: str, session: EditorSession) -> SessionSummary:
    grid = session.grid
    return SessionSummary(
        id=session_id,
        name=session.name,
        hex_grid=grid.is_hex,
        width=grid.size.width,
        height=grid.size.height,
        radius=grid.radius if grid.is_hex else None,
        cells=grid.cell_count,
        can_undo=session.history.can_undo,
        can_redo=session.history.can_redo,
    )


@router.post("", response_model=SessionSummary, status_code=201)
async def create_session(request: CreateSessionRequest):
    """Open a new session with an empty map."""
    try:
        session = EditorSession(request.to_size(), name=request.name, description=request.description)
    except GridMapError as e:
        raise http_error(e)

    session_id = str(uuid.uuid4())
    sessions[session_id] = session
    logger.info("Session created", session_id=session_id, cells=session.grid.cell_count)
    return summarize(session_id, session)


@router.get("/{session_id}", response_model=SessionSummary)
async def get_session(session_id: str):
    return summarize(session_id, get_session_or_404(session_id))


@router.delete("/{session_id}", status_code=204)
async def close_session(session_id: str):
    get_session_or_404(session_id)
    del sessions[session_id]
    logger.info("Session closed", session_id=session_id)


@router.post("/{session_id}/generate", response_model=SessionSummary)
async def generate_terrain(session_id: str, request: GenerateRequest):
    """
    Generate terrain for the session's map.

    Uses ``params`` when given, else the named ``preset``, else the
    session's last parameters.
    """
    session = get_session_or_404(session_id)
    logger.info("Generation requested", session_id=session_id, mode=request.mode, preset=request.preset)
    try:
        params = request.params
        if params is None and request.preset is not None:
            params = get_preset(request.preset)
        await session.generate_async(params, request.mode)
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/brush", response_model=SessionSummary)
async def apply_brush(session_id: str, request: BrushRequest):
    session = get_session_or_404(session_id)
    try:
        session.brush(request.row, request.col, request.brush)
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/stroke", response_model=SessionSummary)
async def apply_stroke(session_id: str, request: StrokeRequest):
    session = get_session_or_404(session_id)
    try:
        session.begin_stroke(request.brush)
        try:
            for row, col in request.points:
                session.stroke_to(row, col)
        except GridMapError:
            session.cancel_stroke()
            raise
        session.end_stroke()
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/fill", response_model=SessionSummary)
async def fill_map(session_id: str, request: FillRequest):
    session = get_session_or_404(session_id)
    try:
        await session.fill_async(request.tool, request.value)
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/resize", response_model=SessionSummary)
async def resize_map(session_id: str, request: MapShape):
    session = get_session_or_404(session_id)
    try:
        await session.resize_async(request.to_size())
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/undo", response_model=SessionSummary)
async def undo(session_id: str):
    session = get_session_or_404(session_id)
    try:
        session.undo()
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/redo", response_model=SessionSummary)
async def redo(session_id: str):
    session = get_session_or_404(session_id)
    try:
        session.redo()
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.post("/{session_id}/import", response_model=SessionSummary)
async def import_document(session_id: str, document: Dict[str, Any]):
    """Replace the session's map with an uploaded JSON document."""
    session = get_session_or_404(session_id)
    try:
        session.import_document(document)
    except GridMapError as e:
        raise http_error(e)
    return summarize(session_id, session)


@router.get("/{session_id}/export")
async def export_document(session_id: str) -> Dict[str, Any]:
    """Export the session's map as a JSON document."""
    return get_session_or_404(session_id).export_document()
