"""Timestamp helpers shared by the event parser and index status."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

# Fallback layouts seen in hand-edited or older transcripts.
_FALLBACK_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y/%m/%d %H:%M:%S", "%Y/%m/%d")


def _to_utc_string(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc).replace(microsecond=0)
    return utc.isoformat().replace("+00:00", "Z")


def _parse_timestamp(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    try:
        # Claude Code writes millisecond ISO strings with a "Z" suffix
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def epoch_to_iso(epoch: float) -> str:
    """Format a filesystem mtime as a UTC ISO string ("" for the epoch itself)."""
    if epoch <= 0:
        return ""
    try:
        return _to_utc_string(datetime.fromtimestamp(epoch, timezone.utc))
    except (OverflowError, OSError, ValueError):
        return ""


def normalize_iso_date(value: Any) -> str:
    """Render a record timestamp as second-precision UTC ISO, or "" if unusable."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, datetime):
        return _to_utc_string(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return epoch_to_iso(float(value))
    if isinstance(value, str):
        parsed = _parse_timestamp(value)
        return _to_utc_string(parsed) if parsed else ""
    return ""
