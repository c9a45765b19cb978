"""Full session index build.

Reads the JSONL file once, extracting:
- line offsets for pagination and random access
- uuid -> line and uuid -> parentUuid maps for chain walking
- human message boundaries
- file edits (added vs modified)
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable

from ccindex.index.classifier import EditBatch
from ccindex.index.scanner import is_human_message, scan_line
from ccindex.index.types import IndexBuildError, SessionIndex

logger = logging.getLogger("ccindex.index")


def trim_line_terminator(raw: bytes) -> bytes:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw


def stat_session_file(session_file: Path) -> os.stat_result:
    try:
        return session_file.stat()
    except OSError as exc:
        raise IndexBuildError(f"Failed to read file metadata for {session_file}: {exc}") from exc


def index_line(
    index: SessionIndex,
    batch: EditBatch,
    raw: bytes,
    sequence: int,
    on_human_message: Callable[[int], None],
) -> bool:
    """Fold one scanned line into ``index``/``batch``.

    The caller has already recorded the line offset. Returns False when the
    line could not be parsed; such lines contribute nothing but their span.
    """
    record = scan_line(trim_line_terminator(raw))
    if record is None:
        return False

    if record.uuid is not None:
        index.uuid_to_line[record.uuid] = sequence
        if record.parent_uuid is not None:
            index.parent_map[record.uuid] = record.parent_uuid

    if is_human_message(record):
        on_human_message(sequence)

    if record.is_assistant:
        for item in record.tool_uses():
            batch.observe(
                item,
                sequence=sequence,
                uuid=record.uuid,
                timestamp=record.timestamp,
            )
    return True


def scan_lines(
    handle: BinaryIO,
    index: SessionIndex,
    batch: EditBatch,
    start_offset: int,
    on_human_message: Callable[[int], None],
    hold_partial_tail: bool = False,
) -> tuple[int, int]:
    """Index every line from the handle's current position.

    With ``hold_partial_tail`` an unterminated last line is left unread, so a
    line still being written is indexed whole on a later pass.

    Returns ``(end_offset, skipped_lines)``.
    """
    byte_offset = start_offset
    sequence = len(index.line_offsets)
    skipped = 0
    try:
        for raw in handle:
            if hold_partial_tail and not raw.endswith(b"\n"):
                break
            line_len = len(raw)
            index.line_offsets.append((byte_offset, line_len))
            if not index_line(index, batch, raw, sequence, on_human_message):
                skipped += 1
            byte_offset += line_len
            sequence += 1
    except OSError as exc:
        raise IndexBuildError(f"Failed to read session file at byte {byte_offset}: {exc}") from exc
    return byte_offset, skipped


def build_session_index(session_file: Path | str, project_path: str) -> SessionIndex:
    """Build a complete index for ``session_file`` from scratch.

    Only I/O failures raise (``IndexBuildError``); malformed lines are
    skipped. The returned index is fresh, so a failed build never leaves a
    half-populated index behind.
    """
    path = Path(session_file)
    metadata = stat_session_file(path)

    index = SessionIndex()
    batch = EditBatch(project_path=project_path)
    human_lines: list[int] = []

    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise IndexBuildError(f"Failed to open session file {path}: {exc}") from exc

    with handle:
        end_offset, skipped = scan_lines(handle, index, batch, 0, human_lines.append)

    batch.finalize(index)
    index.human_message_lines = sorted(set(human_lines))

    # baseline is what was actually read, so bytes appended mid-build are
    # picked up by the next incremental update
    index.file_size = end_offset
    index.last_modified = metadata.st_mtime
    index.skipped_lines = skipped

    if skipped:
        logger.debug("Skipped %d unparseable line(s) in %s", skipped, path)
    logger.info(
        "Built session index for %s: %d lines, %d human messages, %d edited files",
        path.name,
        index.total_events(),
        len(index.human_message_lines),
        len(index.file_edits),
    )
    return index

