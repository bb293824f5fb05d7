"""
Per-session sync cursors.

Remembers, for each session seen during this process's lifetime, how many
messages its transcript held at the last check. Cursors are not persisted:
after a restart the synchronizer falls back to the vault's stored counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class SessionCursor:
    """Last observed state of one session's transcript.

    Attributes:
        session_id: Session key in the vault
        message_count: Messages in the transcript at the last check
        checked_at: When the transcript was last checked
    """

    session_id: str
    message_count: int
    checked_at: datetime


class SyncTracker:
    """High-water marks for the sessions one synchronizer has seen.

    Each synchronizer owns its own tracker, so independent instances
    (for example in tests) never share state.
    """

    def __init__(self) -> None:
        self._cursors: dict[str, SessionCursor] = {}

    def get(self, session_id: str) -> SessionCursor | None:
        return self._cursors.get(session_id)

    def update(self, session_id: str, message_count: int) -> SessionCursor:
        """Store the message count observed for a session."""
        cursor = SessionCursor(
            session_id=session_id,
            message_count=message_count,
            checked_at=datetime.now(UTC),
        )
        self._cursors[session_id] = cursor
        return cursor

    def forget(self, session_id: str) -> bool:
        """Drop a session's cursor. Returns True if one existed."""
        return self._cursors.pop(session_id, None) is not None

    def clear(self) -> None:
        self._cursors.clear()

    def sessions(self) -> list[str]:
        return list(self._cursors)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._cursors

    def __len__(self) -> int:
        return len(self._cursors)
