"""
FastAPI backend for msgintel.

Read-only HTTP access to the same extraction runs the CLI performs. Every
request opens chat.db read-only, runs one ExtractionSession and closes it.

Environment Variables:
    MSGINTEL_DB_PATH: chat.db location (default: ./chat.db, then
        ~/Library/Messages/chat.db).
    MSGINTEL_DRAFTS_PATH: Drafts directory (default: ~/Library/Messages/Drafts).
    MSGINTEL_ALLOWED_ORIGIN: extra CORS origin for a local frontend.
    MSGINTEL_HOST, MSGINTEL_PORT: bind address for msgintel-api.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from msgintel import __version__
from msgintel.config import Config
from msgintel.database import SQLiteQueryExecutor
from msgintel.extract.drafts import DraftArtifactReader
from msgintel.extract.pipeline import (
    ATTACHMENTS,
    CONTACTS,
    DRAFTS,
    HIDDEN,
    MESSAGES,
    THREADS,
    ExtractionRequest,
    ExtractionSession,
    date_range_from_strings,
)
from msgintel.extract.records import ExtractionResult
from msgintel.extract.renderer import RenderFormat, render
from msgintel.permissions import PermissionProbe

logger = logging.getLogger(__name__)

_MEDIA_TYPES = {
    RenderFormat.CSV: "text/csv",
    RenderFormat.HTML: "text/html",
}


def _get_config() -> Config:
    """Build configuration from the MSGINTEL_* environment variables."""
    return Config(
        db_path=os.getenv("MSGINTEL_DB_PATH") or None,
        drafts_path=os.getenv("MSGINTEL_DRAFTS_PATH") or None,
    )


def _respond(result: ExtractionResult, fmt: RenderFormat) -> Any:
    if fmt.is_structured:
        return result.to_document()
    return PlainTextResponse(render(result, fmt), media_type=_MEDIA_TYPES.get(fmt, "text/plain"))


def _extract(request: ExtractionRequest, fmt: RenderFormat, *, needs_store: bool = True) -> Any:
    """
    Run one extraction and render it.

    Raises HTTPException(503) if the request needs chat.db and it cannot be read.
    """
    config = _get_config()
    reader = DraftArtifactReader(config.drafts_path)

    if not needs_store:
        session = ExtractionSession(None, reader, store_available=False)
        return _respond(session.run(request), fmt)

    probe = PermissionProbe(config.db_path)
    if not probe.is_granted():
        status = probe.status()
        raise HTTPException(
            status_code=503,
            detail={
                "error": "chat.db not readable",
                "message": "Grant Full Disk Access or set MSGINTEL_DB_PATH",
                "path": status["path"],
                "reason": status["error"],
            },
        )

    try:
        with SQLiteQueryExecutor(config) as executor:
            session = ExtractionSession(executor, reader, source_db=config.db_path_str)
            result = session.run(request)
    except ValueError as e:
        raise HTTPException(status_code=503, detail={"error": str(e)})

    return _respond(result, fmt)


app = FastAPI(
    title="msgintel API",
    version=__version__,
    description="Read-only extraction API for the macOS Messages store.",
)

# Local dev CORS defaults
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        os.getenv("MSGINTEL_ALLOWED_ORIGIN", "http://127.0.0.1:5173"),
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> Dict[str, Any]:
    """Health check - reports whether chat.db and the Drafts directory are visible."""
    config = _get_config()
    db_ok = config.validate()
    return {
        "status": "ok" if db_ok else "degraded",
        "version": __version__,
        "db_exists": db_ok,
        "db_path": config.db_path_str,
        "drafts_path": str(config.drafts_path),
        "drafts_exists": config.validate_drafts(),
    }


@app.get("/permissions")
def permissions() -> Dict[str, Any]:
    """Full Disk Access probe result for chat.db."""
    return PermissionProbe(_get_config().db_path).status()


@app.get("/messages")
def messages(fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format")) -> Any:
    return _extract(ExtractionRequest(kinds=(MESSAGES,)), fmt)


@app.get("/attachments")
def attachments(fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format")) -> Any:
    return _extract(ExtractionRequest(kinds=(ATTACHMENTS,)), fmt)


@app.get("/contacts")
def contacts(fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format")) -> Any:
    return _extract(ExtractionRequest(kinds=(CONTACTS,)), fmt)


@app.get("/threads")
def threads(fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format")) -> Any:
    return _extract(ExtractionRequest(kinds=(THREADS,)), fmt)


@app.get("/hidden")
def hidden(fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format")) -> Any:
    """Recoverable (recently deleted) messages, newest deletion first."""
    return _extract(ExtractionRequest(kinds=(HIDDEN,)), fmt)


@app.get("/drafts")
def drafts(fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format")) -> Any:
    """Unsent drafts. Does not need chat.db."""
    return _extract(ExtractionRequest(kinds=(DRAFTS,)), fmt, needs_store=False)


@app.get("/search")
def search(
    q: str = Query(..., min_length=1, max_length=500),
    fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format"),
) -> Any:
    """Messages whose text, guid, handle or caller id contain ``q`` literally."""
    return _extract(ExtractionRequest(search_term=q), fmt)


@app.get("/date-range")
def date_range(
    start: str = Query(..., description="ISO date or datetime"),
    end: str = Query(..., description="ISO date or datetime; a bare date covers the whole day"),
    fmt: RenderFormat = Query(default=RenderFormat.JSON, alias="format"),
) -> Any:
    try:
        request = ExtractionRequest(date_range=date_range_from_strings(start, end))
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})
    return _extract(request, fmt)


def run() -> None:
    """Serve the API with uvicorn (console script: msgintel-api)."""
    uvicorn.run(
        app,
        host=os.getenv("MSGINTEL_HOST", "127.0.0.1"),
        port=int(os.getenv("MSGINTEL_PORT", "8000")),
    )
