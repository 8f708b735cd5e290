"""FastAPI application entrypoint."""
from __future__ import annotations

import datetime as dt
import io
import logging
import uuid
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd
from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.portfolio import session_store
from src.portfolio.config import get_default_zoom
from src.portfolio.duration import apply_duration, calculate_project_duration
from src.portfolio.health import compute_health
from src.portfolio.ingest import CSVIngestor
from src.portfolio.kpi import portfolio_kpis
from src.portfolio.rules import find_inconsistencies
from src.portfolio.schemas import Diagnostic, Project, Zoom
from src.portfolio.timeline import layout, toggle_all, visible_rows

app = FastAPI(title="Portfolio Health")

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1 * 1024 * 1024  # 1 MB
ALLOWED_EXTENSIONS = {"csv"}
SESSION_COOKIE_NAME = "timeline_session_id"


def _json_error(status_code: int, message: str) -> JSONResponse:
    """Return a standardized JSON error response."""

    logger.warning("Returning error %s: %s", status_code, message)
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning("HTTPException at %s: %s", request.url.path, message)
    return JSONResponse(status_code=exc.status_code, content={"error": message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Validation error at %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"error": "Invalid request payload."})


class TimelineRequest(BaseModel):
    """Schema for a timeline layout request."""

    project_id: str = "default"
    start_date: Any = None
    end_date: Any = None
    milestones: List[Any] = Field(default_factory=list)
    zoom: Optional[Zoom] = None
    today: Optional[dt.date] = None


class DurationRequest(BaseModel):
    project: Project
    today: Optional[dt.date] = None


class PortfolioRequest(BaseModel):
    projects: List[Project] = Field(default_factory=list)
    today: Optional[dt.date] = None
    window_days: Optional[int] = Field(default=None, ge=0)


@app.get("/")
def read_root() -> dict[str, str]:
    """Basic health endpoint."""

    return {"status": "ok"}


@app.middleware("http")
async def ensure_session_cookie(request: Request, call_next):
    """Ensure every request has a stable session identifier for timeline state."""

    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    new_session = False

    if not session_id:
        session_id = str(uuid.uuid4())
        new_session = True
        logger.debug("Generated new session id %s", session_id)

    request.state.session_id = session_id

    response = await call_next(request)

    if new_session:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            session_id,
            httponly=True,
            samesite="lax",
        )
        logger.info("Assigned session cookie %s", session_id)

    return response


def _get_session_id(request: Request) -> str:
    session_id = getattr(request.state, "session_id", None)
    if not session_id:
        session_id = request.cookies.get(SESSION_COOKIE_NAME) or str(uuid.uuid4())
        request.state.session_id = session_id
    return session_id


def _build_timeline(payload: TimelineRequest, diagnostics: list[Diagnostic]):
    try:
        return layout(
            payload.start_date,
            payload.end_date,
            payload.milestones,
            zoom=payload.zoom or get_default_zoom(),
            today=payload.today,
            diagnostics=diagnostics.append,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _timeline_response(payload: TimelineRequest, request: Request) -> JSONResponse:
    diagnostics: list[Diagnostic] = []
    timeline = _build_timeline(payload, diagnostics)
    session_id = _get_session_id(request)
    expanded = session_store.get_expanded(session_id, payload.project_id)

    content = {
        "timeline": timeline.model_dump(mode="json"),
        "visible_rows": [row.model_dump(mode="json") for row in visible_rows(timeline, expanded)],
        "expanded": sorted(expanded),
        "diagnostics": [item.model_dump() for item in diagnostics],
    }
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.post("/projects/health")
def project_health(project: Project) -> JSONResponse:
    """Return the time-aware health status for a single project."""

    result = compute_health(project)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.model_dump(mode="json"))


@app.post("/projects/duration")
def project_duration(payload: DurationRequest) -> JSONResponse:
    """Recalculate a project's duration fields and the health they imply."""

    duration = calculate_project_duration(payload.project.milestones, payload.today)
    updated = apply_duration(payload.project, payload.today)
    content = {
        "duration": duration.model_dump(mode="json"),
        "health": compute_health(updated).model_dump(mode="json"),
    }
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.post("/projects/timeline")
def project_timeline(payload: TimelineRequest, request: Request) -> JSONResponse:
    """Lay out a project's timeline using the session's expanded rows."""

    return _timeline_response(payload, request)


@app.post("/timeline/{project_id}/rows/{row_index}/toggle")
def toggle_timeline_row(project_id: str, row_index: int, request: Request) -> JSONResponse:
    """Expand or collapse the task sub-rows of one milestone."""

    if row_index < 0:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Row index must not be negative.")

    session_id = _get_session_id(request)
    expanded = session_store.toggle_row(session_id, project_id, row_index)
    return JSONResponse(status_code=status.HTTP_200_OK, content={"expanded": sorted(expanded)})


@app.post("/timeline/toggle-all")
def toggle_all_rows(payload: TimelineRequest, request: Request) -> JSONResponse:
    """Expand every milestone with tasks, or collapse them all if already open."""

    timeline = _build_timeline(payload, [])
    session_id = _get_session_id(request)
    session_store.update_expanded(session_id, payload.project_id, lambda rows: toggle_all(timeline, rows))
    return _timeline_response(payload, request)


@app.post("/portfolio/kpis")
def portfolio_kpi_summary(payload: PortfolioRequest) -> JSONResponse:
    """Compute roll-up KPIs across the supplied projects."""

    content = portfolio_kpis(payload.projects, payload.today, payload.window_days)
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.post("/portfolio/duration-check")
def portfolio_duration_check(payload: PortfolioRequest) -> JSONResponse:
    """Report projects whose stored duration fields disagree."""

    return JSONResponse(status_code=status.HTTP_200_OK, content=find_inconsistencies(payload.projects))


def _get_extension(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip(".")


@app.post("/upload")
async def upload_milestones(file: UploadFile = File(...)) -> JSONResponse:
    """Accept a milestone CSV and return the parsed milestones with their duration."""

    if not file.filename:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Filename is required.")

    if _get_extension(file.filename) not in ALLOWED_EXTENSIONS:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Unsupported file type. Allowed: csv.")

    data = await file.read()
    logger.debug("Read %s bytes from uploaded file %s", len(data), file.filename)

    if len(data) > MAX_FILE_SIZE:
        return _json_error(status.HTTP_400_BAD_REQUEST, "File too large. Limit is 1 MB.")
    if not data:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Uploaded file is empty.")

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:  # pragma: no cover - depends on user input
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unable to decode CSV as UTF-8.") from exc

    try:
        milestones = list(CSVIngestor(io.StringIO(text)).read_milestones())
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to parse CSV file.") from exc

    duration = calculate_project_duration(milestones)
    logger.info("Parsed %s milestones from %s", len(milestones), file.filename)
    content = {
        "ok": True,
        "milestones": [milestone.model_dump(mode="json") for milestone in milestones],
        "duration": duration.model_dump(mode="json"),
    }
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)
