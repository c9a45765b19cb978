"""Project-relative path normalization for edited files."""
from __future__ import annotations


def make_relative_path(file_path: str, project_path: str) -> str:
    """Rewrite ``file_path`` relative to ``project_path`` when it lives under it.

    ``/proj/src/a.py`` under ``/proj`` becomes ``src/a.py``. Paths outside the
    project root are returned unchanged.
    """
    project = project_path.rstrip("/")
    if not project:
        # root "/" contains every absolute path
        return file_path.lstrip("/") if project_path else file_path
    if file_path == project:
        return ""
    if file_path.startswith(project + "/"):
        return file_path[len(project):].lstrip("/")
    return file_path
