"""Session index: fast lookups into a session JSONL file.

Built once when a session is opened and updated incrementally when the file
changes. Provides O(1) uuid lookups and file edit retrieval, O(depth) parent
chain walking for edit context, and per-line byte offsets for random access.
"""

from ccindex.index.builder import build_session_index
from ccindex.index.paths import make_relative_path
from ccindex.index.queries import get_edit_context, get_events_for_lines
from ccindex.index.types import (
    EditContextNotFound,
    EditMetadata,
    IndexBuildError,
    SessionIndex,
    UpdateResult,
)
from ccindex.index.updater import update_index_incremental

__all__ = [
    "EditContextNotFound",
    "EditMetadata",
    "IndexBuildError",
    "SessionIndex",
    "UpdateResult",
    "build_session_index",
    "get_edit_context",
    "get_events_for_lines",
    "make_relative_path",
    "update_index_incremental",
]
