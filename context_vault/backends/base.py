"""
Abstract base class for vault storage backends.

The synchronizer and recovery composer only talk to this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import (
    Compaction,
    Message,
    MessageRole,
    SearchHit,
    Session,
    SessionStats,
    Snapshot,
    SnapshotTrigger,
    SummaryAvailability,
    VaultStats,
)


class VaultBackend(ABC):
    """
    Append-only store for sessions, messages, snapshots and compactions.

    Messages are never updated or deleted. Implementations must keep the
    full-text index consistent with the message table as part of each append.
    """

    # =========================================================================
    # Write operations
    # =========================================================================

    @abstractmethod
    async def append_message(
        self,
        session_id: str,
        role: MessageRole | str,
        content: str,
        metadata: str | bytes | None = None,
        *,
        agent_id: str | None = None,
    ) -> Message:
        """
        Append one message to a session.

        Creates the session if needed, assigns the next message index and the
        store timestamp, and updates the session's running count.

        Args:
            session_id: Session identifier
            role: user, assistant or system
            content: Message text
            metadata: Opaque payload, stored and returned verbatim
            agent_id: Owning agent, recorded when the session is created

        Returns:
            The stored message
        """

    @abstractmethod
    async def create_snapshot(
        self,
        session_id: str,
        name: str,
        trigger: SnapshotTrigger | str = SnapshotTrigger.MANUAL,
    ) -> Snapshot:
        """Record a named snapshot of the session's current state."""

    @abstractmethod
    async def record_compaction(
        self,
        session_id: str,
        messages_before: int,
        messages_after: int,
        summary_available: SummaryAvailability | bool | None = SummaryAvailability.UNKNOWN,
    ) -> Compaction:
        """Record a drop in the session's visible message count."""

    # =========================================================================
    # Read operations
    # =========================================================================

    @abstractmethod
    async def get_messages(self, session_id: str, limit: int = 50, offset: int = 0) -> list[Message]:
        """Get messages newest first."""

    @abstractmethod
    async def search(
        self,
        query: str,
        session_id: str | None = None,
        limit: int = 20,
    ) -> list[SearchHit]:
        """Full-text search over message content, best match first."""

    @abstractmethod
    async def get_snapshots(self, session_id: str) -> list[Snapshot]:
        """Get snapshots newest first."""

    @abstractmethod
    async def get_compactions(self, session_id: str) -> list[Compaction]:
        """Get compactions newest first."""

    async def get_latest_compaction(self, session_id: str) -> Compaction | None:
        """Get the most recent compaction, if any."""
        compactions = await self.get_compactions(session_id)
        return compactions[0] if compactions else None

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        """Get a session row, or None if the session has never been seen."""

    @abstractmethod
    async def list_sessions(self, agent_id: str | None = None, limit: int = 100) -> list[Session]:
        """List sessions by most recent activity."""

    @abstractmethod
    async def count_messages(self, session_id: str) -> int:
        """Number of messages persisted for a session."""

    @abstractmethod
    async def get_session_stats(self, session_id: str) -> SessionStats:
        """Counts for one session. Unknown sessions report zeros."""

    @abstractmethod
    async def get_stats(self) -> VaultStats:
        """Vault-wide record counts."""

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @abstractmethod
    async def close(self) -> None:
        """Release the storage handle. Other operations fail afterwards."""

    async def __aenter__(self) -> VaultBackend:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
