"""Classify Edit/Write tool invocations into per-file added/modified state."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ccindex.index.paths import make_relative_path
from ccindex.index.types import EditMetadata, SessionIndex
from ccindex.models import EDIT_ADDED, EDIT_MODIFIED, FileEdit, FileEditType

# Tools whose invocations count as file edits.
EDIT_TOOL = "Edit"
WRITE_TOOL = "Write"


@dataclass
class EditBatch:
    """File edit observations from one pass over a range of lines.

    A full build uses one batch for the whole file and calls ``finalize``;
    an incremental update uses a fresh batch for the appended range and calls
    ``merge_into``.
    """

    project_path: str
    # paths already present in the index being extended (empty for a full build)
    known_paths: Mapping[str, Any] = field(default_factory=dict)

    operations: dict[str, FileEditType] = field(default_factory=dict)
    prior_content: set[str] = field(default_factory=set)
    timestamps: dict[str, str] = field(default_factory=dict)
    edit_lines: dict[str, list[int]] = field(default_factory=dict)
    metadata: dict[int, EditMetadata] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.metadata)

    def observe(
        self,
        item: dict[str, Any],
        *,
        sequence: int,
        uuid: Optional[str],
        timestamp: Optional[str],
    ) -> bool:
        """Record one ``tool_use`` content block. Returns True if it was a file edit."""
        tool_name = item.get("name")
        if tool_name not in (EDIT_TOOL, WRITE_TOOL):
            return False
        tool_input = item.get("input")
        if not isinstance(tool_input, dict):
            return False
        file_path = tool_input.get("file_path")
        if not isinstance(file_path, str) or not file_path:
            return False

        rel_path = make_relative_path(file_path, self.project_path)

        if tool_name == EDIT_TOOL:
            old_string = tool_input.get("old_string")
            # replacing existing text means the file existed before
            if isinstance(old_string, str) and old_string:
                self.prior_content.add(rel_path)
            self.operations[rel_path] = EDIT_MODIFIED
        elif rel_path not in self.operations and rel_path not in self.known_paths:
            self.operations[rel_path] = EDIT_ADDED

        if timestamp:
            self.timestamps[rel_path] = timestamp
        self.metadata[sequence] = EditMetadata(uuid=uuid)
        lines = self.edit_lines.setdefault(rel_path, [])
        if not lines or lines[-1] != sequence:
            lines.append(sequence)
        return True

    def _final_type(self, path: str) -> FileEditType:
        edit_type = self.operations.get(path, EDIT_ADDED)
        if edit_type == EDIT_MODIFIED and path not in self.prior_content:
            # an Edit with nothing to replace is effectively a creation
            return EDIT_ADDED
        return edit_type

    def finalize(self, index: SessionIndex) -> None:
        """Install this batch as the index's complete file edit state."""
        index.file_edits = sorted(
            (
                FileEdit(
                    path=path,
                    editType=self._final_type(path),
                    lastEditedAt=self.timestamps.get(path),
                )
                for path in self.edit_lines
            ),
            key=lambda edit: edit.path,
        )
        index.file_to_edit_lines = self.edit_lines
        index.edit_metadata = self.metadata

    def merge_into(self, index: SessionIndex) -> None:
        """Fold an incremental batch into an existing index.

        Existing entries never regress from modified to added; they are
        promoted to modified when this batch saw prior content.
        """
        if not self.edit_lines:
            return

        existing_by_path = {edit.path: edit for edit in index.file_edits}
        for path, lines in self.edit_lines.items():
            existing = existing_by_path.get(path)
            if existing is not None:
                timestamp = self.timestamps.get(path)
                if timestamp:
                    existing.lastEditedAt = timestamp
                if path in self.prior_content:
                    existing.editType = EDIT_MODIFIED
            else:
                index.file_edits.append(
                    FileEdit(
                        path=path,
                        editType=self._final_type(path),
                        lastEditedAt=self.timestamps.get(path),
                    )
                )

            target = index.file_to_edit_lines.setdefault(path, [])
            for line in lines:
                if not target or target[-1] != line:
                    target.append(line)

        index.edit_metadata.update(self.metadata)
        index.file_edits.sort(key=lambda edit: edit.path)
