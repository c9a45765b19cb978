"""In-memory session index and its lookup methods."""
from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Literal, Optional

from ccindex.date_utils import epoch_to_iso
from ccindex.models import FileEdit, IndexStatus

UpdateResult = Literal["updated", "rebuilt", "unchanged"]


class IndexBuildError(OSError):
    """The session file could not be opened, stat'd, seeked or read."""


class EditContextNotFound(LookupError):
    """No edit metadata is recorded for the requested line."""


@dataclass
class EditMetadata:
    # uuid of the record holding the edit, used to start a parent-chain walk
    uuid: Optional[str] = None


@dataclass
class SessionIndex:
    """Index over one session JSONL file.

    Built once when a session is opened and updated incrementally as the
    file grows. Line numbers ("sequences") are 0-based positions in the file.
    """

    # baseline of the file as of the last build/update
    file_size: int = 0
    last_modified: float = 0.0
    # lines that could not be parsed (still counted in line_offsets)
    skipped_lines: int = 0

    # (byte_offset, byte_length) per line, length includes the terminator
    line_offsets: list[tuple[int, int]] = field(default_factory=list)

    uuid_to_line: dict[str, int] = field(default_factory=dict)
    parent_map: dict[str, str] = field(default_factory=dict)

    # sorted, de-duplicated
    human_message_lines: list[int] = field(default_factory=list)

    # sorted by path, one entry per distinct path
    file_edits: list[FileEdit] = field(default_factory=list)
    file_to_edit_lines: dict[str, list[int]] = field(default_factory=dict)
    edit_metadata: dict[int, EditMetadata] = field(default_factory=dict)

    def total_events(self) -> int:
        return len(self.line_offsets)

    def line_for_uuid(self, uuid: str) -> Optional[int]:
        return self.uuid_to_line.get(uuid)

    def parent_of(self, uuid: str) -> Optional[str]:
        return self.parent_map.get(uuid)

    def is_human_message(self, line: int) -> bool:
        pos = bisect_left(self.human_message_lines, line)
        return pos < len(self.human_message_lines) and self.human_message_lines[pos] == line

    def find_human_boundary(self, line: int) -> Optional[int]:
        """Most recent human message at or before ``line``."""
        pos = bisect_right(self.human_message_lines, line)
        if pos == 0:
            return None
        return self.human_message_lines[pos - 1]

    def add_human_message(self, line: int) -> None:
        pos = bisect_left(self.human_message_lines, line)
        if pos < len(self.human_message_lines) and self.human_message_lines[pos] == line:
            return
        self.human_message_lines.insert(pos, line)

    def edit_lines_for(self, path: str) -> list[int]:
        return list(self.file_to_edit_lines.get(path, []))

    def file_edit_for(self, path: str) -> Optional[FileEdit]:
        for edit in self.file_edits:
            if edit.path == path:
                return edit
        return None

    def replace_with(self, other: SessionIndex) -> None:
        """Adopt every field of ``other`` (used when an update turns into a rebuild)."""
        self.file_size = other.file_size
        self.last_modified = other.last_modified
        self.skipped_lines = other.skipped_lines
        self.line_offsets = other.line_offsets
        self.uuid_to_line = other.uuid_to_line
        self.parent_map = other.parent_map
        self.human_message_lines = other.human_message_lines
        self.file_edits = other.file_edits
        self.file_to_edit_lines = other.file_to_edit_lines
        self.edit_metadata = other.edit_metadata

    def to_status(self) -> IndexStatus:
        return IndexStatus(
            ready=True,
            totalEvents=self.total_events(),
            fileEditsCount=len(self.file_edits),
            filesEditedCount=len(self.file_to_edit_lines),
            lastModified=epoch_to_iso(self.last_modified) or None,
            error=None,
        )
