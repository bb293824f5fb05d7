"""
Transcript parsing for host session files.

A transcript is newline-delimited JSON, one record per line:

    {"type": "session", "id": "abc123", "timestamp": "..."}
    {"type": "message", "message": {"role": "user", "content": "Hello", "timestamp": "..."}}
    {"type": "message", "message": {"role": "assistant", "content": [
        {"type": "thinking", "thinking": "..."},
        {"type": "text", "text": "Hi there"}
    ]}}

Only user and assistant messages with non-empty text are kept. Lines that
cannot be decoded are skipped; one bad line never fails the whole file.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles

from .exceptions import TranscriptReadError

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"
SYNCED_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class TranscriptSession:
    """Session descriptor found in a transcript."""

    id: str
    timestamp: str | None = None

    @property
    def session_key(self) -> str:
        """Identifier the vault stores this session under."""
        return f"{SESSION_KEY_PREFIX}{self.id}"


@dataclass(frozen=True)
class TranscriptMessage:
    """A user or assistant turn with its flattened text."""

    role: str
    content: str
    timestamp: str | None = None


@dataclass
class ParsedTranscript:
    """Result of parsing one transcript file."""

    session: TranscriptSession | None = None
    messages: list[TranscriptMessage] = field(default_factory=list)
    skipped_lines: int = 0

    @property
    def message_count(self) -> int:
        return len(self.messages)


def flatten_content(content: Any) -> str:
    """
    Flatten message content to plain text.

    Strings are returned verbatim. For a list of content blocks, the text of
    each ``{"type": "text"}`` block is joined with newlines; thinking, tool
    calls and other block types are dropped.

    Examples:
        >>> flatten_content("Hello")
        'Hello'
        >>> flatten_content([{"type": "text", "text": "a"}, {"type": "tool_call"}, {"type": "text", "text": "b"}])
        'a\\nb'
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts = []
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "text":
                continue
            text = block.get("text")
            if isinstance(text, str):
                parts.append(text)
        return "\n".join(parts)

    return ""


def parse_transcript(data: bytes | str) -> ParsedTranscript:
    """
    Parse raw transcript contents.

    Pure function: the same input always yields the same result.

    Args:
        data: File contents. Bytes are decoded as UTF-8, replacing invalid sequences.

    Returns:
        ParsedTranscript with the last session descriptor seen (if any) and
        messages in file order.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")

    result = ParsedTranscript()

    for line_number, line in enumerate(data.split("\n"), start=1):
        line = line.strip()
        if not line:
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed transcript line {line_number}")
            result.skipped_lines += 1
            continue

        if not isinstance(record, dict):
            result.skipped_lines += 1
            continue

        record_type = record.get("type")

        if record_type == "session":
            session_id = record.get("id")
            # Numeric ids are keyed by their string form
            if isinstance(session_id, int) and not isinstance(session_id, bool):
                session_id = str(session_id)
            if isinstance(session_id, str) and session_id:
                result.session = TranscriptSession(id=session_id, timestamp=record.get("timestamp"))
            else:
                result.skipped_lines += 1

        elif record_type == "message":
            message = record.get("message")
            if not isinstance(message, dict):
                result.skipped_lines += 1
                continue

            role = message.get("role")
            if role not in SYNCED_ROLES:
                continue

            text = flatten_content(message.get("content"))
            if not text:
                continue

            result.messages.append(
                TranscriptMessage(
                    role=role,
                    content=text,
                    timestamp=message.get("timestamp") or record.get("timestamp"),
                )
            )

        # Other record types (model changes, tool results, ...) are not synced

    return result


async def read_transcript(path: Path) -> ParsedTranscript:
    """Read and parse a transcript file.

    Raises:
        TranscriptReadError: If the file cannot be read at all
    """
    try:
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
    except OSError as e:
        raise TranscriptReadError(str(path), e) from e

    return parse_transcript(data)
