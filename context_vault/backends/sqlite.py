"""
SQLite vault backend.

Single-file, append-only store built on aiosqlite. The database runs in WAL
mode: any number of readers, one writer. Every write takes the write lock up
front (BEGIN IMMEDIATE), so a second process writing to the same file gets a
StorageContentionError instead of interleaving with the first.

Message content is indexed with FTS5. The index is fed by an insert trigger,
so it is updated inside the same transaction as the message row and a search
issued after append returns always sees the new message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles.os
import aiosqlite

from ..config import VaultConfig
from ..exceptions import (
    QuerySyntaxError,
    StorageConnectionError,
    StorageContentionError,
    StorageIOError,
    ValidationError,
)
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
from .base import VaultBackend

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# =============================================================================
# Schema
# =============================================================================

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    agent_id TEXT,
    created_at TEXT NOT NULL,
    last_activity TEXT NOT NULL,
    total_messages INTEGER NOT NULL DEFAULT 0
);

-- Append-only: rows are never updated or deleted
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    message_index INTEGER NOT NULL,
    role TEXT NOT NULL,
    content TEXT,
    timestamp TEXT NOT NULL,
    metadata TEXT,
    UNIQUE (session_id, message_index)
);

CREATE VIRTUAL TABLE IF NOT EXISTS messages_fts USING fts5(
    content,
    content='messages',
    content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS messages_ai AFTER INSERT ON messages BEGIN
    INSERT INTO messages_fts(rowid, content) VALUES (new.id, new.content);
END;

CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    name TEXT NOT NULL,
    trigger TEXT NOT NULL,
    message_count INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    last_message_id INTEGER
);

CREATE TABLE IF NOT EXISTS compactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    messages_before INTEGER NOT NULL,
    messages_after INTEGER NOT NULL,
    summary_available INTEGER
);

CREATE INDEX IF NOT EXISTS idx_sessions_agent ON sessions(agent_id, last_activity DESC);
CREATE INDEX IF NOT EXISTS idx_snapshots_session ON snapshots(session_id, created_at);
CREATE INDEX IF NOT EXISTS idx_compactions_session ON compactions(session_id, timestamp);
"""

MESSAGE_READ_COLUMNS = (
    "id",
    "session_id",
    "message_index",
    "role",
    "content",
    "timestamp",
    "metadata",
)

_MESSAGE_COLUMNS_SQL = ", ".join(MESSAGE_READ_COLUMNS)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _is_lock_error(error: Exception) -> bool:
    text = str(error).lower()
    return "locked" in text or "busy" in text


class SQLiteVault(VaultBackend):
    """
    SQLite implementation of the vault.

    Features:
    - Single database file in WAL mode
    - Monotonic per-session message indices (max + 1)
    - FTS5 search with highlighted matches
    - Snapshots and compaction records
    """

    def __init__(self, config: VaultConfig):
        """
        Initialize SQLite vault.

        Args:
            config: Vault configuration (db_path, busy_timeout)
        """
        self.config = config
        self.conn: aiosqlite.Connection | None = None
        self._initialized = False

    @classmethod
    async def create(cls, config: VaultConfig | None = None) -> SQLiteVault:
        """Create and initialize a SQLite vault."""
        if config is None:
            config = VaultConfig.from_env()

        vault = cls(config)
        await vault.initialize()
        return vault

    @property
    def db_path(self) -> str:
        return str(self.config.db_path)

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        if self._initialized:
            return

        try:
            if self.db_path != ":memory:":
                await aiofiles.os.makedirs(Path(self.db_path).parent, exist_ok=True)

            self.conn = await aiosqlite.connect(self.db_path, timeout=self.config.busy_timeout)
            self.conn.row_factory = aiosqlite.Row

            async with self.conn.execute("PRAGMA journal_mode = WAL") as cursor:
                row = await cursor.fetchone()
                journal_mode = row[0] if row else "unknown"

            await self.conn.executescript(_SCHEMA_SQL)

            if await self._get_schema_version() is None:
                await self._set_schema_version(SCHEMA_VERSION)

            await self.conn.commit()
            self._initialized = True
            logger.debug(f"SQLite vault initialized: {self.db_path} (journal_mode={journal_mode})")

        except Exception as e:
            if self.conn is not None:
                await self.conn.close()
                self.conn = None
            raise StorageConnectionError(self.db_path, e) from e

    async def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None

        self._initialized = False

    # =========================================================================
    # Schema Management
    # =========================================================================

    async def _get_schema_version(self) -> int | None:
        async with self.conn.execute("SELECT value FROM schema_meta WHERE key = 'version'") as cursor:
            row = await cursor.fetchone()
            return int(row[0]) if row else None

    async def _set_schema_version(self, version: int) -> None:
        await self.conn.execute(
            """
            INSERT INTO schema_meta (key, value) VALUES ('version', ?)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value
            """,
            (str(version),),
        )

    # =========================================================================
    # Connection helpers
    # =========================================================================

    def _require_conn(self, operation: str) -> aiosqlite.Connection:
        if self.conn is None:
            raise StorageIOError(operation, self.db_path, RuntimeError("Not initialized"))
        return self.conn

    def _translate_error(self, operation: str, error: aiosqlite.Error) -> Exception:
        if _is_lock_error(error):
            return StorageContentionError(operation, self.db_path, error)
        return StorageIOError(operation, self.db_path, error)

    @asynccontextmanager
    async def _write_transaction(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed statements as one write transaction.

        The write lock is taken when the transaction begins; if another
        connection holds it, StorageContentionError is raised.
        """
        conn = self._require_conn(operation)
        try:
            await conn.execute("BEGIN IMMEDIATE")
        except aiosqlite.OperationalError as e:
            raise self._translate_error(operation, e) from e
        except asyncio.CancelledError:
            # BEGIN may still run on the connection thread after the await is cancelled
            await conn.rollback()
            raise

        try:
            yield conn
            await conn.commit()
        except BaseException as e:
            # Cancellation included: the write lock must not outlive the task
            await conn.rollback()
            if isinstance(e, aiosqlite.Error):
                raise self._translate_error(operation, e) from e
            raise

    async def _fetchall(self, operation: str, sql: str, params: tuple | list = ()) -> list[Any]:
        conn = self._require_conn(operation)
        try:
            async with conn.execute(sql, params) as cursor:
                return list(await cursor.fetchall())
        except aiosqlite.OperationalError as e:
            raise self._translate_error(operation, e) from e

    async def _fetchone(self, operation: str, sql: str, params: tuple | list = ()) -> Any:
        rows = await self._fetchall(operation, sql, params)
        return rows[0] if rows else None

    @staticmethod
    async def _ensure_session(
        conn: aiosqlite.Connection,
        session_id: str,
        now: str,
        agent_id: str | None = None,
    ) -> None:
        await conn.execute(
            """
            INSERT INTO sessions (id, agent_id, created_at, last_activity, total_messages)
            VALUES (?, ?, ?, ?, 0)
            ON CONFLICT (id) DO UPDATE SET
                agent_id = COALESCE(sessions.agent_id, excluded.agent_id)
            """,
            (session_id, agent_id, now, now),
        )

    # =========================================================================
    # Write operations
    # =========================================================================

    async def append_message(
        self,
        session_id: str,
        role: MessageRole | str,
        content: str,
        metadata: str | bytes | None = None,
        *,
        agent_id: str | None = None,
    ) -> Message:
        """Append one message; session upsert, row insert and index update commit together."""
        _validate_session_id(session_id)
        try:
            role = MessageRole(role)
        except ValueError as e:
            raise ValidationError("role", "must be one of user, assistant, system", str(role)) from e
        if not isinstance(content, str):
            raise ValidationError("content", "must be a string")
        if metadata is not None and not isinstance(metadata, (str, bytes)):
            raise ValidationError("metadata", "must be str, bytes or None")

        async with self._write_transaction("append_message") as conn:
            now = _now()
            await self._ensure_session(conn, session_id, now, agent_id)

            async with conn.execute(
                "SELECT COALESCE(MAX(message_index), -1) + 1 FROM messages WHERE session_id = ?",
                (session_id,),
            ) as cursor:
                row = await cursor.fetchone()
                message_index = row[0]

            cursor = await conn.execute(
                """
                INSERT INTO messages (session_id, message_index, role, content, timestamp, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (session_id, message_index, role.value, content, now, metadata),
            )
            message_id = cursor.lastrowid
            await cursor.close()

            await conn.execute(
                """
                UPDATE sessions
                SET last_activity = ?, total_messages = total_messages + 1
                WHERE id = ?
                """,
                (now, session_id),
            )

        return Message(
            id=message_id,
            session_id=session_id,
            message_index=message_index,
            role=role,
            content=content,
            timestamp=datetime.fromisoformat(now),
            metadata=metadata,
        )

    async def create_snapshot(
        self,
        session_id: str,
        name: str,
        trigger: SnapshotTrigger | str = SnapshotTrigger.MANUAL,
    ) -> Snapshot:
        """Record a named snapshot. Duplicate names are allowed."""
        _validate_session_id(session_id)
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name", "must be a non-empty string")
        try:
            trigger = SnapshotTrigger(trigger)
        except ValueError as e:
            raise ValidationError(
                "trigger", "must be one of manual, auto, pre-compaction", str(trigger)
            ) from e

        async with self._write_transaction("create_snapshot") as conn:
            now = _now()
            await self._ensure_session(conn, session_id, now)

            async with conn.execute(
                "SELECT COUNT(*), MAX(id) FROM messages WHERE session_id = ?",
                (session_id,),
            ) as cursor:
                row = await cursor.fetchone()
                message_count, last_message_id = row[0], row[1]

            cursor = await conn.execute(
                """
                INSERT INTO snapshots (session_id, name, trigger, message_count, created_at, last_message_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (session_id, name, trigger.value, message_count, now, last_message_id),
            )
            snapshot_id = cursor.lastrowid
            await cursor.close()

        logger.info(f"Snapshot '{name}' ({trigger.value}) for {session_id} at {message_count} messages")
        return Snapshot(
            id=snapshot_id,
            session_id=session_id,
            name=name,
            trigger=trigger,
            message_count=message_count,
            created_at=datetime.fromisoformat(now),
            last_message_id=last_message_id,
        )

    async def record_compaction(
        self,
        session_id: str,
        messages_before: int,
        messages_after: int,
        summary_available: SummaryAvailability | bool | None = SummaryAvailability.UNKNOWN,
    ) -> Compaction:
        """Record a compaction event."""
        _validate_session_id(session_id)
        if messages_before < 0 or messages_after < 0:
            raise ValidationError("messages_before/messages_after", "must not be negative")
        try:
            summary = SummaryAvailability.coerce(summary_available)
        except ValueError as e:
            raise ValidationError(
                "summary_available", "must be yes, no, unknown or a bool", str(summary_available)
            ) from e

        async with self._write_transaction("record_compaction") as conn:
            now = _now()
            await self._ensure_session(conn, session_id, now)
            cursor = await conn.execute(
                """
                INSERT INTO compactions (session_id, timestamp, messages_before, messages_after, summary_available)
                VALUES (?, ?, ?, ?, ?)
                """,
                (session_id, now, messages_before, messages_after, summary.to_db()),
            )
            compaction_id = cursor.lastrowid
            await cursor.close()

        return Compaction(
            id=compaction_id,
            session_id=session_id,
            timestamp=datetime.fromisoformat(now),
            messages_before=messages_before,
            messages_after=messages_after,
            summary_available=summary,
        )

    # =========================================================================
    # Read operations
    # =========================================================================

    async def get_messages(self, session_id: str, limit: int = 50, offset: int = 0) -> list[Message]:
        """Get messages newest first."""
        _validate_page(limit, offset)
        rows = await self._fetchall(
            "get_messages",
            f"""
            SELECT {_MESSAGE_COLUMNS_SQL}
            FROM messages
            WHERE session_id = ?
            ORDER BY message_index DESC
            LIMIT ? OFFSET ?
            """,
            (session_id, limit, offset),
        )
        return [Message.from_row(row) for row in rows]

    async def search(
        self,
        query: str,
        session_id: str | None = None,
        limit: int = 20,
    ) -> list[SearchHit]:
        """
        Full-text search over message content.

        The query is passed to FTS5 unchanged, so its syntax applies: bare
        tokens, "quoted phrases", OR, and prefix* matching.

        Raises:
            QuerySyntaxError: If FTS5 rejects the query
        """
        if not isinstance(query, str) or not query.strip():
            raise QuerySyntaxError(str(query), "query is empty")
        _validate_page(limit, 0)

        conn = self._require_conn("search")

        where_parts = ["messages_fts MATCH ?"]
        params: list[Any] = [query]

        if session_id:
            where_parts.append("m.session_id = ?")
            params.append(session_id)

        where_clause = " AND ".join(where_parts)
        params.append(limit)

        sql = f"""
            SELECT m.id, m.session_id, m.message_index, m.role, m.content, m.timestamp, m.metadata,
                   highlight(messages_fts, 0, '**', '**') AS highlighted,
                   messages_fts.rank AS rank
            FROM messages_fts
            JOIN messages m ON m.id = messages_fts.rowid
            WHERE {where_clause}
            ORDER BY rank
            LIMIT ?
        """

        try:
            async with conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.OperationalError as e:
            if _is_lock_error(e):
                raise StorageContentionError("search", self.db_path, e) from e
            raise QuerySyntaxError(query, str(e)) from e

        return [
            SearchHit(
                message=Message.from_row(row),
                highlighted=row["highlighted"],
                rank=row["rank"],
            )
            for row in rows
        ]

    async def get_snapshots(self, session_id: str) -> list[Snapshot]:
        rows = await self._fetchall(
            "get_snapshots",
            "SELECT * FROM snapshots WHERE session_id = ? ORDER BY created_at DESC, id DESC",
            (session_id,),
        )
        return [Snapshot.from_row(row) for row in rows]

    async def get_compactions(self, session_id: str) -> list[Compaction]:
        rows = await self._fetchall(
            "get_compactions",
            "SELECT * FROM compactions WHERE session_id = ? ORDER BY timestamp DESC, id DESC",
            (session_id,),
        )
        return [Compaction.from_row(row) for row in rows]

    async def get_session(self, session_id: str) -> Session | None:
        row = await self._fetchone(
            "get_session", "SELECT * FROM sessions WHERE id = ?", (session_id,)
        )
        return Session.from_row(row) if row else None

    async def list_sessions(self, agent_id: str | None = None, limit: int = 100) -> list[Session]:
        _validate_page(limit, 0)
        if agent_id:
            rows = await self._fetchall(
                "list_sessions",
                "SELECT * FROM sessions WHERE agent_id = ? ORDER BY last_activity DESC LIMIT ?",
                (agent_id, limit),
            )
        else:
            rows = await self._fetchall(
                "list_sessions",
                "SELECT * FROM sessions ORDER BY last_activity DESC LIMIT ?",
                (limit,),
            )
        return [Session.from_row(row) for row in rows]

    async def count_messages(self, session_id: str) -> int:
        row = await self._fetchone(
            "count_messages",
            "SELECT COUNT(*) FROM messages WHERE session_id = ?",
            (session_id,),
        )
        return row[0] if row else 0

    async def get_session_stats(self, session_id: str) -> SessionStats:
        """Counts for one session, computed on every call."""
        row = await self._fetchone(
            "get_session_stats",
            """
            SELECT
                (SELECT COUNT(*) FROM messages WHERE session_id = ?) AS message_count,
                (SELECT COUNT(*) FROM snapshots WHERE session_id = ?) AS snapshot_count,
                (SELECT COUNT(*) FROM compactions WHERE session_id = ?) AS compaction_count
            """,
            (session_id, session_id, session_id),
        )
        session = await self.get_session(session_id)

        return SessionStats(
            session_id=session_id,
            message_count=row["message_count"],
            created_at=session.created_at if session else None,
            last_activity=session.last_activity if session else None,
            snapshot_count=row["snapshot_count"],
            compaction_count=row["compaction_count"],
        )

    async def get_stats(self) -> VaultStats:
        row = await self._fetchone(
            "get_stats",
            """
            SELECT
                (SELECT COUNT(*) FROM sessions) AS sessions,
                (SELECT COUNT(*) FROM messages) AS messages,
                (SELECT COUNT(*) FROM snapshots) AS snapshots,
                (SELECT COUNT(*) FROM compactions) AS compactions
            """,
        )
        return VaultStats(
            sessions=row["sessions"],
            messages=row["messages"],
            snapshots=row["snapshots"],
            compactions=row["compactions"],
        )


def _validate_session_id(session_id: str) -> None:
    if not isinstance(session_id, str) or not session_id:
        raise ValidationError("session_id", "must be a non-empty string")


def _validate_page(limit: int, offset: int) -> None:
    if limit < 1:
        raise ValidationError("limit", "must be at least 1", str(limit))
    if offset < 0:
        raise ValidationError("offset", "must not be negative", str(offset))
