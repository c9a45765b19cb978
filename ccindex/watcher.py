"""Session file watcher using watchfiles.

Builds a session's index in the background when watching starts, then
applies incremental updates whenever the session's JSONL file changes.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from ccindex import config
from ccindex.session_manager import SessionIndexManager, SessionKey, session_index_manager

logger = logging.getLogger("ccindex.watcher")


def classify_changes(changes: set[tuple[Change, str]], session_file: Path) -> list[str]:
    """Reduce raw watchfiles changes to the change kinds affecting ``session_file``."""
    result = []
    for change_type, path_str in changes:
        if Path(path_str) != session_file:
            continue
        if change_type == Change.deleted:
            result.append("deleted")
        elif change_type in (Change.modified, Change.added):
            result.append("modified")
    return result


class SessionWatcher:
    """Background watchers, one task per watched session."""

    def __init__(self, manager: SessionIndexManager):
        self.manager = manager
        self._tasks: dict[SessionKey, asyncio.Task] = {}
        self._stop_events: dict[SessionKey, asyncio.Event] = {}

    def is_running(self, project_path: str, session_id: str) -> bool:
        task = self._tasks.get((project_path, session_id))
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def start(self, project_path: str, session_id: str, session_file: Optional[Path] = None) -> None:
        """Register the session, then index and watch it in a background task."""
        key = (project_path, session_id)
        if self.is_running(project_path, session_id):
            logger.warning(f"Session watcher already running for {session_id}")
            return

        watched = self.manager.watch_session(project_path, session_id, session_file)
        stop_event = asyncio.Event()
        self._stop_events[key] = stop_event
        self._tasks[key] = asyncio.create_task(
            self._watch_loop(project_path, session_id, watched.session_file, stop_event),
            name=f"session-watcher-{session_id}",
        )
        logger.info(f"Session watcher started for {session_id}")

    async def stop(self, project_path: str, session_id: str) -> None:
        key = (project_path, session_id)
        stop_event = self._stop_events.pop(key, None)
        if stop_event is not None:
            stop_event.set()
        task = self._tasks.pop(key, None)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.manager.unwatch_session(project_path, session_id)
        logger.info(f"Session watcher stopped for {session_id}")

    async def stop_all(self) -> None:
        for project_path, session_id in list(self._tasks):
            await self.stop(project_path, session_id)

    async def _watch_loop(
        self,
        project_path: str,
        session_id: str,
        session_file: Path,
        stop_event: asyncio.Event,
    ) -> None:
        """Initial build, then refresh on every change to the session file."""
        try:
            await asyncio.to_thread(self.manager.build, project_path, session_id)
        except LookupError:
            logger.info(f"Session {session_id} was unwatched before its first build finished")
            return

        watch_dir = session_file.parent
        if not watch_dir.exists():
            logger.warning(f"Session directory {watch_dir} does not exist, nothing to watch")
            return

        try:
            async for changes in awatch(
                watch_dir,
                stop_event=stop_event,
                debounce=config.WATCH_DEBOUNCE_MS,
                recursive=False,
            ):
                kinds = classify_changes(changes, session_file)
                if not kinds:
                    continue
                if "deleted" in kinds:
                    logger.warning(f"Session file {session_file} was deleted")
                try:
                    await asyncio.to_thread(self.manager.refresh, project_path, session_id)
                except LookupError:
                    # unwatched while the change was in flight
                    break
        except asyncio.CancelledError:
            logger.info(f"Session watcher task cancelled for {session_id}")
            raise
        except Exception as e:
            logger.error(f"Session watcher error for {session_id}: {e}")


# Singleton instance
session_watcher = SessionWatcher(session_index_manager)
