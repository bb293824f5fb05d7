"""
Data types for vault records.

Rows coming out of SQLite are converted into these dataclasses by
``from_row``; timestamps are stored as ISO 8601 UTC strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class MessageRole(str, Enum):
    """Closed set of message roles accepted by the vault."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class SnapshotTrigger(str, Enum):
    """Why a snapshot was taken."""

    MANUAL = "manual"
    AUTO = "auto"
    PRE_COMPACTION = "pre-compaction"


class SummaryAvailability(str, Enum):
    """Whether the host produced a summary of compacted content.

    The synchronizer cannot observe this, so detected compactions are
    recorded as UNKNOWN. Stored as 1 / 0 / NULL.
    """

    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: SummaryAvailability | bool | str | None) -> SummaryAvailability:
        if isinstance(value, SummaryAvailability):
            return value
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        return cls(value)

    def to_db(self) -> int | None:
        if self is SummaryAvailability.YES:
            return 1
        if self is SummaryAvailability.NO:
            return 0
        return None

    @classmethod
    def from_db(cls, value: int | None) -> SummaryAvailability:
        if value is None:
            return cls.UNKNOWN
        return cls.YES if value else cls.NO


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Session:
    """One conversation stream."""

    session_id: str
    agent_id: str | None
    created_at: datetime | None
    last_activity: datetime | None
    total_messages: int = 0

    @classmethod
    def from_row(cls, row: Any) -> Session:
        return cls(
            session_id=row["id"],
            agent_id=row["agent_id"],
            created_at=_parse_ts(row["created_at"]),
            last_activity=_parse_ts(row["last_activity"]),
            total_messages=row["total_messages"] or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "agent_id": self.agent_id,
            "created_at": _format_ts(self.created_at),
            "last_activity": _format_ts(self.last_activity),
            "total_messages": self.total_messages,
        }


@dataclass
class Message:
    """An appended message. Immutable once stored.

    Attributes:
        id: Row id in the vault (global, increasing)
        session_id: Owning session
        message_index: 0-based position within the session
        role: Message role
        content: Text content
        timestamp: When the vault stored the message (UTC)
        metadata: Opaque caller payload, returned exactly as stored
    """

    id: int
    session_id: str
    message_index: int
    role: MessageRole
    content: str
    timestamp: datetime
    metadata: str | bytes | None = None

    @classmethod
    def from_row(cls, row: Any) -> Message:
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            message_index=row["message_index"],
            role=MessageRole(row["role"]),
            content=row["content"] or "",
            timestamp=datetime.fromisoformat(row["timestamp"]),
            metadata=row["metadata"],
        )

    def to_dict(self) -> dict[str, Any]:
        metadata = self.metadata
        if isinstance(metadata, bytes):
            metadata = metadata.decode("utf-8", errors="replace")
        return {
            "id": self.id,
            "session_id": self.session_id,
            "message_index": self.message_index,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": metadata,
        }


@dataclass
class SearchHit:
    """A full-text search match."""

    message: Message
    highlighted: str  # content with matches wrapped in ** **
    rank: float  # FTS5 rank, lower is better

    def to_dict(self) -> dict[str, Any]:
        return {**self.message.to_dict(), "highlighted": self.highlighted, "rank": self.rank}


@dataclass
class Snapshot:
    """Named point-in-time marker for a session."""

    id: int
    session_id: str
    name: str
    trigger: SnapshotTrigger
    message_count: int
    created_at: datetime
    last_message_id: int | None

    @classmethod
    def from_row(cls, row: Any) -> Snapshot:
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            name=row["name"],
            trigger=SnapshotTrigger(row["trigger"]),
            message_count=row["message_count"] or 0,
            created_at=datetime.fromisoformat(row["created_at"]),
            last_message_id=row["last_message_id"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "name": self.name,
            "trigger": self.trigger.value,
            "message_count": self.message_count,
            "created_at": self.created_at.isoformat(),
            "last_message_id": self.last_message_id,
        }


@dataclass
class Compaction:
    """A detected drop in a session's visible message count."""

    id: int
    session_id: str
    timestamp: datetime
    messages_before: int
    messages_after: int
    summary_available: SummaryAvailability

    @classmethod
    def from_row(cls, row: Any) -> Compaction:
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            messages_before=row["messages_before"],
            messages_after=row["messages_after"],
            summary_available=SummaryAvailability.from_db(row["summary_available"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "messages_before": self.messages_before,
            "messages_after": self.messages_after,
            "summary_available": self.summary_available.value,
        }


@dataclass
class SessionStats:
    """Counts for one session, derived at query time."""

    session_id: str
    message_count: int
    created_at: datetime | None = None
    last_activity: datetime | None = None
    snapshot_count: int = 0
    compaction_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "message_count": self.message_count,
            "created_at": _format_ts(self.created_at),
            "last_activity": _format_ts(self.last_activity),
            "snapshot_count": self.snapshot_count,
            "compaction_count": self.compaction_count,
        }


@dataclass
class VaultStats:
    """Vault-wide record counts."""

    sessions: int
    messages: int
    snapshots: int
    compactions: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": self.sessions,
            "messages": self.messages,
            "snapshots": self.snapshots,
            "compactions": self.compactions,
        }
