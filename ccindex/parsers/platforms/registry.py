"""Event parser registry for platform-specific implementations."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from ccindex.models import SessionLog
from ccindex.parsers.platforms.claude_code import parser as claude_code_parser

EventParser = Callable[[bytes, int, int], Optional[SessionLog]]

_PARSERS_BY_SUFFIX: dict[str, EventParser] = {
    ".jsonl": claude_code_parser.parse_session_event,
}


def event_parser_for(path: Path) -> EventParser:
    """Pick the single-line event parser for a session file.

    Claude Code `.jsonl` transcripts are the only registered platform and
    double as the fallback; the parser ignores lines it cannot read.
    """
    return _PARSERS_BY_SUFFIX.get(path.suffix.lower(), claude_code_parser.parse_session_event)
