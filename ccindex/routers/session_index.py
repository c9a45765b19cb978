"""Session index API: watch sessions, read index status, file edits and edit context."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ccindex.index import EditContextNotFound, IndexBuildError
from ccindex.models import EditContext, FileEdit, IndexStatus
from ccindex.session_manager import IndexNotReady, SessionNotWatched, session_index_manager
from ccindex.watcher import session_watcher

logger = logging.getLogger("ccindex.api")

session_index_router = APIRouter(prefix="/api/session-index", tags=["session-index"])


class WatchSessionRequest(BaseModel):
    projectPath: str = Field(..., min_length=1)
    sessionId: str = Field(..., min_length=1)
    # explicit transcript path; defaults to the Claude Code projects directory layout
    sessionFile: Optional[str] = None


class SessionRef(BaseModel):
    projectPath: str = Field(..., min_length=1)
    sessionId: str = Field(..., min_length=1)


class EditLinesResponse(BaseModel):
    filePath: str
    lines: list[int] = Field(default_factory=list)


def _lookup_error(exc: Exception) -> HTTPException:
    if isinstance(exc, SessionNotWatched):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, IndexNotReady):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, EditContextNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@session_index_router.post("/watch")
async def watch_session(req: WatchSessionRequest):
    """Start indexing a session in the background and watch it for changes."""
    session_file = Path(req.sessionFile).expanduser() if req.sessionFile else None
    try:
        await session_watcher.start(req.projectPath, req.sessionId, session_file)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "status": "indexing",
        "projectPath": req.projectPath,
        "sessionId": req.sessionId,
    }


@session_index_router.post("/unwatch")
async def unwatch_session(req: SessionRef):
    removed = session_index_manager.is_watching(req.projectPath, req.sessionId)
    await session_watcher.stop(req.projectPath, req.sessionId)
    return {"status": "ok", "removed": removed}


@session_index_router.post("/refresh")
async def refresh_session(req: SessionRef):
    """Force an incremental update outside the watcher."""
    try:
        outcome = await asyncio.to_thread(session_index_manager.refresh, req.projectPath, req.sessionId)
    except SessionNotWatched as exc:
        raise _lookup_error(exc) from exc
    status = session_index_manager.get_status(req.projectPath, req.sessionId)
    return {"result": outcome, "status": status.model_dump()}


@session_index_router.get("/status", response_model=IndexStatus)
async def get_index_status(
    projectPath: str = Query(..., min_length=1),
    sessionId: str = Query(..., min_length=1),
):
    try:
        return session_index_manager.get_status(projectPath, sessionId)
    except SessionNotWatched as exc:
        raise _lookup_error(exc) from exc


@session_index_router.get("/file-edits", response_model=list[FileEdit])
async def list_file_edits(
    projectPath: str = Query(..., min_length=1),
    sessionId: str = Query(..., min_length=1),
):
    try:
        return session_index_manager.file_edits(projectPath, sessionId)
    except (SessionNotWatched, IndexNotReady) as exc:
        raise _lookup_error(exc) from exc


@session_index_router.get("/edit-lines", response_model=EditLinesResponse)
async def list_edit_lines(
    projectPath: str = Query(..., min_length=1),
    sessionId: str = Query(..., min_length=1),
    filePath: str = Query(..., min_length=1),
):
    try:
        lines = session_index_manager.edit_lines(projectPath, sessionId, filePath)
    except (SessionNotWatched, IndexNotReady) as exc:
        raise _lookup_error(exc) from exc
    return EditLinesResponse(filePath=filePath, lines=lines)


@session_index_router.get("/edit-context", response_model=EditContext)
async def get_edit_context(
    projectPath: str = Query(..., min_length=1),
    sessionId: str = Query(..., min_length=1),
    line: int = Query(..., ge=0),
):
    try:
        return await asyncio.to_thread(session_index_manager.edit_context, projectPath, sessionId, line)
    except (SessionNotWatched, IndexNotReady, EditContextNotFound, IndexBuildError) as exc:
        if isinstance(exc, IndexBuildError):
            logger.error(f"Failed to load edit context for {sessionId} line {line}: {exc}")
        raise _lookup_error(exc) from exc
