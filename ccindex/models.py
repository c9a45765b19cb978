"""Pydantic models matching the frontend TypeScript types."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal, Optional

FileEditType = Literal["added", "modified"]

EDIT_ADDED: FileEditType = "added"
EDIT_MODIFIED: FileEditType = "modified"


# ── Session event models ────────────────────────────────────────────

class ToolCallInfo(BaseModel):
    id: Optional[str] = None
    name: str = ""
    args: str = ""
    output: Optional[str] = None
    status: str = "success"
    isError: bool = False


class SessionLog(BaseModel):
    id: str
    timestamp: str
    speaker: str  # "user" | "agent" | "system"
    type: str  # "message" | "tool" | "tool_result" | "thought" | "system"
    content: str = ""
    agentName: Optional[str] = None
    relatedToolCallId: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
    toolCall: Optional[ToolCallInfo] = None


# ── Session index models ────────────────────────────────────────────

class FileEdit(BaseModel):
    path: str
    editType: FileEditType = EDIT_MODIFIED
    lastEditedAt: Optional[str] = None


class IndexStatus(BaseModel):
    ready: bool = False
    totalEvents: int = 0
    fileEditsCount: int = 0
    filesEditedCount: int = 0
    # mtime of the session file at the last build/update
    lastModified: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def building(cls) -> IndexStatus:
        return cls(ready=False)

    @classmethod
    def failed(cls, message: str) -> IndexStatus:
        return cls(ready=False, error=message)


class EditContext(BaseModel):
    """Events from the triggering human message through to a file edit."""

    events: list[SessionLog] = Field(default_factory=list)
    triggerLine: int
    editLine: int
