"""Incremental session index updates.

Extends an existing SessionIndex when lines are appended to the JSONL file,
and falls back to a full rebuild when the file shrank.
"""
from __future__ import annotations

import logging
from pathlib import Path

from ccindex.index.builder import build_session_index, scan_lines, stat_session_file
from ccindex.index.classifier import EditBatch
from ccindex.index.types import IndexBuildError, SessionIndex, UpdateResult

logger = logging.getLogger("ccindex.index")


def update_index_incremental(
    index: SessionIndex,
    session_file: Path | str,
    project_path: str,
) -> UpdateResult:
    """Bring ``index`` up to date with ``session_file``.

    - ``"unchanged"``: size and mtime match the stored baseline.
    - ``"rebuilt"``: the file shrank (truncated, compacted or replaced), or
      grew after a build that ended on an unterminated line, so ``index`` is
      replaced in place by a fresh build.
    - ``"updated"``: only the bytes past the stored baseline were read. An
      unterminated last line is held back until its writer finishes it.

    Raises ``IndexBuildError`` on I/O failure. A failure partway through an
    append pass can leave ``index`` partially extended; rebuild before
    trusting it again.
    """
    path = Path(session_file)
    metadata = stat_session_file(path)
    current_size = metadata.st_size
    current_mtime = metadata.st_mtime

    if current_size == index.file_size and current_mtime == index.last_modified:
        return "unchanged"

    if current_size < index.file_size:
        logger.info(
            "Session file %s shrank (%d -> %d bytes), rebuilding index",
            path.name,
            index.file_size,
            current_size,
        )
        index.replace_with(build_session_index(path, project_path))
        return "rebuilt"

    start_lines = index.total_events()
    batch = EditBatch(project_path=project_path, known_paths=index.file_to_edit_lines)

    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise IndexBuildError(f"Failed to open session file {path}: {exc}") from exc

    with handle:
        try:
            if index.file_size > 0 and current_size > index.file_size:
                handle.seek(index.file_size - 1)
                ends_mid_line = handle.read(1) != b"\n"
            else:
                ends_mid_line = False
            handle.seek(index.file_size)
        except OSError as exc:
            raise IndexBuildError(f"Failed to seek to byte {index.file_size} in {path}: {exc}") from exc

        if not ends_mid_line:
            end_offset, skipped = scan_lines(
                handle,
                index,
                batch,
                index.file_size,
                index.add_human_message,
                hold_partial_tail=True,
            )

    if ends_mid_line:
        # the last indexed line was cut short; its remainder cannot be appended
        logger.info("Session file %s completed a partial last line, rebuilding index", path.name)
        index.replace_with(build_session_index(path, project_path))
        return "rebuilt"

    batch.merge_into(index)

    index.file_size = end_offset
    index.last_modified = current_mtime
    index.skipped_lines += skipped

    logger.debug(
        "Updated session index for %s: +%d lines, %d new edit line(s), %d skipped",
        path.name,
        index.total_events() - start_lines,
        len(batch),
        skipped,
    )
    return "updated"
