"""ccindex configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Where Claude Code keeps per-project session transcripts
CLAUDE_PROJECTS_DIR = Path(
    os.getenv("CCINDEX_CLAUDE_PROJECTS_DIR", str(Path.home() / ".claude" / "projects"))
).expanduser()

LOG_LEVEL = os.getenv("CCINDEX_LOG_LEVEL", "INFO").upper()

# Watcher tuning
WATCH_DEBOUNCE_MS = _env_int("CCINDEX_WATCH_DEBOUNCE_MS", 200)

# Observability
OTEL_ENABLED = _env_bool("CCINDEX_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CCINDEX_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CCINDEX_OTEL_SERVICE_NAME", "ccindex")
PROM_PORT = _env_int("CCINDEX_PROM_PORT", 0)

# CORS
FRONTEND_ORIGIN = os.getenv("CCINDEX_FRONTEND_ORIGIN", "http://localhost:3000")
