"""Parse single Claude Code JSONL entries into display-ready SessionLog events."""
from __future__ import annotations

import json
from typing import Any

from ccindex.date_utils import normalize_iso_date
from ccindex.models import SessionLog, ToolCallInfo

_MAX_MESSAGE_CHARS = 4000
_MAX_THINKING_CHARS = 8000
_MAX_TOOL_ARGS_CHARS = 12000
_MAX_TOOL_OUTPUT_CHARS = 8000

# Entry types that never carry conversation content.
_SILENT_ENTRY_TYPES = {"file-history-snapshot", "progress", "queue-operation"}


def _str_value(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _tool_result_to_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks: list[str] = []
        for block in content:
            if isinstance(block, str):
                chunks.append(block)
            elif isinstance(block, dict):
                text = block.get("text")
                if isinstance(text, str) and text.strip():
                    chunks.append(text)
                elif isinstance(block.get("content"), str):
                    chunks.append(block["content"])
        return "\n".join(chunks)
    if content is None:
        return ""
    try:
        return json.dumps(content)
    except (TypeError, ValueError):
        return str(content)


def _decode_entry(raw_line: bytes | str) -> dict[str, Any] | None:
    if isinstance(raw_line, bytes):
        try:
            raw_line = raw_line.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not raw_line.strip():
        return None
    try:
        entry = json.loads(raw_line)
    except (ValueError, RecursionError):
        return None
    return entry if isinstance(entry, dict) else None


def _base_metadata(entry: dict[str, Any], sequence: int, offset: int) -> dict[str, Any]:
    metadata: dict[str, Any] = {"sequence": sequence, "byteOffset": offset}
    for source_key, target_key in (
        ("uuid", "uuid"),
        ("parentUuid", "parentUuid"),
        ("userType", "userType"),
        ("sessionId", "sessionId"),
        ("cwd", "cwd"),
    ):
        value = _str_value(entry.get(source_key))
        if value:
            metadata[target_key] = value
    if entry.get("isMeta") is True:
        metadata["isMeta"] = True
    if entry.get("isCompactSummary") is True:
        metadata["isCompactSummary"] = True
    if entry.get("isSidechain") is True:
        metadata["isSidechain"] = True
    return metadata


def _tool_use_log(
    block: dict[str, Any],
    log_id: str,
    timestamp: str,
    agent_name: str | None,
    metadata: dict[str, Any],
) -> SessionLog:
    tool_name = str(block.get("name") or "unknown")
    tool_id = block.get("id")
    tool_input = block.get("input", {})
    try:
        tool_args = json.dumps(tool_input, indent=2, ensure_ascii=True)[:_MAX_TOOL_ARGS_CHARS]
    except (TypeError, ValueError):
        tool_args = ""
    metadata["toolInputKeys"] = list(tool_input.keys()) if isinstance(tool_input, dict) else []
    if isinstance(tool_input, dict):
        file_path = _str_value(tool_input.get("file_path"))
        if file_path:
            metadata["filePath"] = file_path
    return SessionLog(
        id=log_id,
        timestamp=timestamp,
        speaker="agent",
        type="tool",
        content=f"Called {tool_name}",
        agentName=agent_name,
        metadata=metadata,
        toolCall=ToolCallInfo(
            id=tool_id if isinstance(tool_id, str) else None,
            name=tool_name,
            args=tool_args,
            status="success",
            isError=False,
        ),
    )


def _tool_result_log(
    block: dict[str, Any],
    log_id: str,
    timestamp: str,
    metadata: dict[str, Any],
) -> SessionLog:
    tool_use_id = block.get("tool_use_id")
    is_error = block.get("is_error") is True
    output = _tool_result_to_text(block.get("content"))
    return SessionLog(
        id=log_id,
        timestamp=timestamp,
        speaker="system",
        type="tool_result",
        content=output[:_MAX_MESSAGE_CHARS],
        relatedToolCallId=tool_use_id if isinstance(tool_use_id, str) else None,
        metadata=metadata,
        toolCall=ToolCallInfo(
            id=tool_use_id if isinstance(tool_use_id, str) else None,
            output=output[:_MAX_TOOL_OUTPUT_CHARS],
            status="error" if is_error else "success",
            isError=is_error,
        ),
    )


def parse_session_event(raw_line: bytes | str, sequence: int, offset: int) -> SessionLog | None:
    """Turn one JSONL line into a SessionLog, or None if there is nothing to show.

    Malformed input never raises. Ids are derived from the line number so the
    same line always maps to the same event.
    """
    entry = _decode_entry(raw_line)
    if entry is None:
        return None

    entry_type = _str_value(entry.get("type")).lower()
    if not entry_type or entry_type in _SILENT_ENTRY_TYPES:
        return None

    log_id = f"log-{sequence}"
    timestamp = normalize_iso_date(entry.get("timestamp"))
    metadata = _base_metadata(entry, sequence, offset)
    metadata["entryType"] = entry_type

    if entry_type == "summary":
        summary = _str_value(entry.get("summary"))
        if not summary:
            return None
        return SessionLog(
            id=log_id,
            timestamp=timestamp,
            speaker="system",
            type="system",
            content=summary[:_MAX_MESSAGE_CHARS],
            metadata=metadata,
        )

    if entry_type == "system":
        text = _tool_result_to_text(entry.get("content")).strip()
        subtype = _str_value(entry.get("subtype"))
        if subtype:
            metadata["subtype"] = subtype
        if not text and not subtype:
            return None
        return SessionLog(
            id=log_id,
            timestamp=timestamp,
            speaker="system",
            type="system",
            content=(text or subtype)[:_MAX_MESSAGE_CHARS],
            metadata=metadata,
        )

    if entry_type not in ("user", "assistant"):
        return None

    message = entry.get("message", {})
    message_role = entry_type
    if isinstance(message, dict) and isinstance(message.get("role"), str):
        message_role = message["role"]
    speaker = "agent" if message_role == "assistant" else "user"
    agent_name = entry.get("agentName") if speaker == "agent" else None
    if not isinstance(agent_name, str):
        agent_name = None

    if isinstance(message, dict) and speaker == "agent":
        model = _str_value(message.get("model"))
        if model:
            metadata["model"] = model
        usage = message.get("usage")
        if isinstance(usage, dict):
            tokens_in = usage.get("input_tokens") or 0
            tokens_out = usage.get("output_tokens") or 0
            if isinstance(tokens_in, int) and isinstance(tokens_out, int) and (tokens_in or tokens_out):
                metadata["inputTokens"] = tokens_in
                metadata["outputTokens"] = tokens_out

    if isinstance(message, str):
        content_blocks: Any = message
    elif isinstance(message, dict):
        content_blocks = message.get("content", [])
    else:
        return None

    if isinstance(content_blocks, str):
        content = content_blocks.strip()
        if not content:
            return None
        return SessionLog(
            id=log_id,
            timestamp=timestamp,
            speaker=speaker,
            type="message",
            content=content[:_MAX_MESSAGE_CHARS],
            agentName=agent_name,
            metadata=metadata,
        )

    if not isinstance(content_blocks, list):
        return None

    text_parts: list[str] = []
    thinking_parts: list[str] = []
    tool_uses: list[dict[str, Any]] = []
    tool_results: list[dict[str, Any]] = []
    for block in content_blocks:
        if isinstance(block, str):
            text_parts.append(block)
            continue
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text", "")
            if isinstance(text, str) and text.strip():
                text_parts.append(text)
        elif block_type == "thinking":
            thinking = block.get("thinking", "")
            if isinstance(thinking, str) and thinking.strip():
                thinking_parts.append(thinking)
        elif block_type == "tool_use":
            tool_uses.append(block)
        elif block_type == "tool_result":
            tool_results.append(block)

    if tool_uses:
        if len(tool_uses) > 1:
            metadata["toolNames"] = [str(block.get("name") or "unknown") for block in tool_uses]
        if text_parts:
            metadata["text"] = "\n".join(text_parts)[:_MAX_MESSAGE_CHARS]
        return _tool_use_log(tool_uses[0], log_id, timestamp, agent_name, metadata)

    if tool_results:
        return _tool_result_log(tool_results[0], log_id, timestamp, metadata)

    if text_parts:
        return SessionLog(
            id=log_id,
            timestamp=timestamp,
            speaker=speaker,
            type="message",
            content="\n".join(text_parts).strip()[:_MAX_MESSAGE_CHARS],
            agentName=agent_name,
            metadata=metadata,
        )

    if thinking_parts:
        return SessionLog(
            id=log_id,
            timestamp=timestamp,
            speaker="agent",
            type="thought",
            content="\n".join(thinking_parts)[:_MAX_THINKING_CHARS],
            agentName=agent_name,
            metadata=metadata,
        )

    return None
