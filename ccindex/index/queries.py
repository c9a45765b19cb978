"""Query functions that re-read records from the session file via the index."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from ccindex.index.builder import trim_line_terminator
from ccindex.index.types import EditContextNotFound, IndexBuildError, SessionIndex
from ccindex.models import EditContext, SessionLog
from ccindex.parsers.platforms.registry import EventParser, event_parser_for


def walk_to_trigger(index: SessionIndex, edit_line: int, start_uuid: Optional[str]) -> list[int]:
    """Lines from the edit back up the parent chain, newest first.

    Stops after the first human message (inclusive) or when the chain breaks.
    A visited set plus a step bound keep corrupted, cyclic chains finite.
    """
    lines = [edit_line]
    visited: set[str] = {start_uuid} if start_uuid is not None else set()
    current = start_uuid
    max_steps = index.total_events()

    while current is not None and len(lines) <= max_steps:
        parent_uuid = index.parent_of(current)
        if parent_uuid is None or parent_uuid in visited:
            break
        visited.add(parent_uuid)
        parent_line = index.line_for_uuid(parent_uuid)
        if parent_line is None:
            break
        lines.append(parent_line)
        if index.is_human_message(parent_line):
            break
        current = parent_uuid

    return lines


def get_edit_context(
    index: SessionIndex,
    session_file: Path | str,
    edit_line: int,
    parse_event: Optional[EventParser] = None,
) -> EditContext:
    """Events from the human message that triggered an edit through the edit itself."""
    edit_meta = index.edit_metadata.get(edit_line)
    if edit_meta is None:
        raise EditContextNotFound(f"No edit metadata found for line {edit_line}")

    lines_in_context = walk_to_trigger(index, edit_line, edit_meta.uuid)
    lines_in_context.reverse()

    if len(lines_in_context) > 1 and index.is_human_message(lines_in_context[0]):
        trigger_line = lines_in_context[0]
    else:
        boundary = index.find_human_boundary(edit_line)
        trigger_line = boundary if boundary is not None else 0

    events = get_events_for_lines(index, session_file, lines_in_context, parse_event)
    return EditContext(events=events, triggerLine=trigger_line, editLine=edit_line)


def get_events_for_lines(
    index: SessionIndex,
    session_file: Path | str,
    lines: Iterable[int],
    parse_event: Optional[EventParser] = None,
) -> list[SessionLog]:
    """Materialize the records at ``lines`` by seeking to their stored offsets.

    Lines outside the index or that the parser rejects are left out.
    """
    path = Path(session_file)
    parser = parse_event or event_parser_for(path)

    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise IndexBuildError(f"Failed to open session file {path}: {exc}") from exc

    events: list[SessionLog] = []
    with handle:
        for line in lines:
            if line < 0 or line >= len(index.line_offsets):
                continue
            offset, _length = index.line_offsets[line]
            try:
                handle.seek(offset)
                raw = handle.readline()
            except OSError as exc:
                raise IndexBuildError(f"Failed to read line {line} at byte {offset}: {exc}") from exc
            event = parser(trim_line_terminator(raw), line, offset)
            if event is not None:
                events.append(event)
    return events
