"""Minimal per-line extraction of the fields the session index needs."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, Optional


@dataclass(frozen=True)
class ScannedRecord:
    entry_type: Optional[str] = None
    uuid: Optional[str] = None
    parent_uuid: Optional[str] = None
    user_type: Optional[str] = None
    is_compact_summary: bool = False
    is_meta: bool = False
    timestamp: Optional[str] = None
    # None (absent), a scalar, or the list of content blocks
    content: Any = None

    @property
    def is_assistant(self) -> bool:
        return self.entry_type == "assistant"

    def content_items(self) -> list[Any]:
        return self.content if isinstance(self.content, list) else []

    def tool_uses(self) -> Iterator[dict[str, Any]]:
        for item in self.content_items():
            if isinstance(item, dict) and item.get("type") == "tool_use":
                yield item


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def scan_line(raw_line: bytes | str) -> Optional[ScannedRecord]:
    """Parse one JSONL line (terminator already trimmed).

    Returns None for corrupt lines: bad encoding, invalid JSON or a
    top-level value that is not an object.
    """
    if isinstance(raw_line, bytes):
        try:
            text = raw_line.decode("utf-8")
        except UnicodeDecodeError:
            return None
    else:
        text = raw_line

    if not text.strip():
        return None
    try:
        entry = json.loads(text)
    except (ValueError, RecursionError):
        # oversized integers and pathological nesting fail outside JSONDecodeError
        return None
    if not isinstance(entry, dict):
        return None

    content = None
    message = entry.get("message")
    if isinstance(message, dict):
        content = message.get("content")

    return ScannedRecord(
        entry_type=_str_or_none(entry.get("type")),
        uuid=_str_or_none(entry.get("uuid")),
        parent_uuid=_str_or_none(entry.get("parentUuid")),
        user_type=_str_or_none(entry.get("userType")),
        is_compact_summary=entry.get("isCompactSummary") is True,
        is_meta=entry.get("isMeta") is True,
        timestamp=_str_or_none(entry.get("timestamp")),
        content=content,
    )


def is_human_message(record: ScannedRecord) -> bool:
    """True for genuine end-user input.

    The "user" role also carries tool results, compaction summaries and
    system-injected meta messages; none of those start a conversation turn.
    """
    if record.entry_type != "user":
        return False
    if record.user_type != "external":
        return False
    for item in record.content_items():
        if isinstance(item, dict) and item.get("type") == "tool_result":
            return False
    if record.is_compact_summary:
        return False
    if record.is_meta:
        return False
    return True
