"""Session index lifecycle: one index per watched session, serialized per session."""
from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ccindex import config
from ccindex.index import (
    IndexBuildError,
    SessionIndex,
    UpdateResult,
    build_session_index,
    get_edit_context,
    make_relative_path,
    update_index_incremental,
)
from ccindex.models import EditContext, FileEdit, IndexStatus
from ccindex.observability import record_index_operation, record_skipped_lines, start_span

logger = logging.getLogger("ccindex.sessions")

INDEX_READY_EVENT = "index-ready"
SESSION_CHANGED_EVENT = "session-changed"

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_SLUG_PATTERN = re.compile(r"[^A-Za-z0-9]")

Listener = Callable[[str, dict[str, Any]], None]
SessionKey = tuple[str, str]


class SessionNotWatched(LookupError):
    """The session has not been registered with ``watch_session``."""


class IndexNotReady(RuntimeError):
    """The session is registered but its index is still building or failed."""


def project_slug(project_path: str) -> str:
    """Claude Code's directory name for a project.

    /home/dev/my_app -> -home-dev-my-app
    /home/dev/.local/share -> -home-dev--local-share
    """
    return _SLUG_PATTERN.sub("-", project_path.rstrip("/") or "/")


@dataclass
class WatchedSession:
    project_path: str
    session_id: str
    session_file: Path
    index: Optional[SessionIndex] = None
    status: IndexStatus = field(default_factory=IndexStatus.building)
    # set when an incremental update failed partway; next refresh rebuilds
    needs_rebuild: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class SessionIndexManager:
    """Owns the indexes of watched sessions.

    Build, update and query calls for one session run under that session's
    lock; different sessions never wait on each other.
    """

    def __init__(self, projects_dir: Path):
        self.projects_dir = projects_dir
        self._sessions: dict[SessionKey, WatchedSession] = {}
        self._registry_lock = threading.Lock()
        self._listeners: list[Listener] = []

    # ── events ──────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception as e:
                logger.error(f"Session event listener failed for {event}: {e}")

    # ── registration ────────────────────────────────────────────────

    def resolve_session_file(self, project_path: str, session_id: str) -> Path:
        if not _SESSION_ID_PATTERN.match(session_id or ""):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.projects_dir / project_slug(project_path) / f"{session_id}.jsonl"

    def watch_session(
        self,
        project_path: str,
        session_id: str,
        session_file: Optional[Path] = None,
    ) -> WatchedSession:
        """Register a session; the index is built separately by ``build``."""
        key = (project_path, session_id)
        path = session_file or self.resolve_session_file(project_path, session_id)
        with self._registry_lock:
            existing = self._sessions.get(key)
            if existing is not None and existing.session_file == path:
                return existing
            watched = WatchedSession(project_path=project_path, session_id=session_id, session_file=path)
            self._sessions[key] = watched
        logger.info(f"Watching session {session_id} ({path})")
        return watched

    def unwatch_session(self, project_path: str, session_id: str) -> bool:
        with self._registry_lock:
            removed = self._sessions.pop((project_path, session_id), None)
        if removed is not None:
            logger.info(f"Stopped watching session {session_id}")
        return removed is not None

    def is_watching(self, project_path: str, session_id: str) -> bool:
        return (project_path, session_id) in self._sessions

    def list_sessions(self) -> list[WatchedSession]:
        with self._registry_lock:
            return list(self._sessions.values())

    def find_by_file(self, session_file: Path) -> list[WatchedSession]:
        return [watched for watched in self.list_sessions() if watched.session_file == session_file]

    def _get(self, project_path: str, session_id: str) -> WatchedSession:
        watched = self._sessions.get((project_path, session_id))
        if watched is None:
            raise SessionNotWatched(f"Session {session_id} is not being watched for {project_path}")
        return watched

    # ── build / update ──────────────────────────────────────────────

    def _build_locked(self, watched: WatchedSession) -> IndexStatus:
        t0 = time.monotonic()
        result = "success"
        with start_span("session_index.build", {"session_id": watched.session_id}):
            try:
                index = build_session_index(watched.session_file, watched.project_path)
            except IndexBuildError as e:
                result = "error"
                watched.index = None
                watched.status = IndexStatus.failed(str(e))
                logger.error(f"Failed to build index for session {watched.session_id}: {e}")
            else:
                watched.index = index
                watched.needs_rebuild = False
                watched.status = index.to_status()
                record_skipped_lines(index.skipped_lines, session_id=watched.session_id)
        record_index_operation(
            "build", result, (time.monotonic() - t0) * 1000, session_id=watched.session_id
        )
        return watched.status

    def build(self, project_path: str, session_id: str) -> IndexStatus:
        """Build the session's index from scratch and announce it."""
        watched = self._get(project_path, session_id)
        with watched.lock:
            status = self._build_locked(watched)
        self._emit(
            INDEX_READY_EVENT,
            {"projectPath": project_path, "sessionId": session_id, "status": status.model_dump()},
        )
        return status

    def refresh(self, project_path: str, session_id: str) -> Optional[UpdateResult]:
        """Apply file changes to the session's index.

        Returns None when the refresh failed; the failure is kept in the
        session status and the next refresh rebuilds from scratch.
        """
        watched = self._get(project_path, session_id)
        with watched.lock:
            if watched.index is None or watched.needs_rebuild:
                status = self._build_locked(watched)
                outcome: Optional[UpdateResult] = "rebuilt" if status.ready else None
            else:
                outcome = self._update_locked(watched)

        if outcome and outcome != "unchanged":
            self._emit(
                SESSION_CHANGED_EVENT,
                {"projectPath": project_path, "sessionId": session_id, "result": outcome},
            )
        return outcome

    def _update_locked(self, watched: WatchedSession) -> Optional[UpdateResult]:
        index = watched.index
        if index is None:
            raise IndexNotReady(f"Index for session {watched.session_id} has not been built")
        t0 = time.monotonic()
        skipped_before = index.skipped_lines
        with start_span("session_index.update", {"session_id": watched.session_id}):
            try:
                outcome = update_index_incremental(index, watched.session_file, watched.project_path)
            except IndexBuildError as e:
                watched.needs_rebuild = True
                watched.status = IndexStatus.failed(str(e))
                logger.error(f"Failed to update index for session {watched.session_id}: {e}")
                record_index_operation(
                    "update", "error", (time.monotonic() - t0) * 1000, session_id=watched.session_id
                )
                return None

        watched.status = index.to_status()
        if outcome == "rebuilt":
            record_skipped_lines(index.skipped_lines, session_id=watched.session_id)
        else:
            record_skipped_lines(index.skipped_lines - skipped_before, session_id=watched.session_id)
        record_index_operation(
            "update", outcome, (time.monotonic() - t0) * 1000, session_id=watched.session_id
        )
        if outcome != "unchanged":
            logger.info(f"Session {watched.session_id} index {outcome}: {watched.status.totalEvents} events")
        return outcome

    # ── queries ─────────────────────────────────────────────────────

    def get_status(self, project_path: str, session_id: str) -> IndexStatus:
        return self._get(project_path, session_id).status

    def _ready_index(self, watched: WatchedSession) -> SessionIndex:
        if watched.index is None or watched.needs_rebuild:
            raise IndexNotReady(watched.status.error or f"Index for session {watched.session_id} is not ready")
        return watched.index

    def file_edits(self, project_path: str, session_id: str) -> list[FileEdit]:
        watched = self._get(project_path, session_id)
        with watched.lock:
            index = self._ready_index(watched)
            return [edit.model_copy() for edit in index.file_edits]

    def edit_lines(self, project_path: str, session_id: str, file_path: str) -> list[int]:
        watched = self._get(project_path, session_id)
        with watched.lock:
            rel_path = make_relative_path(file_path, project_path)
            return self._ready_index(watched).edit_lines_for(rel_path)

    def edit_context(self, project_path: str, session_id: str, edit_line: int) -> EditContext:
        watched = self._get(project_path, session_id)
        with watched.lock:
            index = self._ready_index(watched)
            return get_edit_context(index, watched.session_file, edit_line)


# Global instance rooted at the Claude Code projects directory
session_index_manager = SessionIndexManager(config.CLAUDE_PROJECTS_DIR)
