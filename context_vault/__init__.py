"""
Context Vault

Durable local memory for agent sessions. Host transcripts are tailed into an
append-only SQLite store so conversation history survives when the agent
runtime compacts its context.

Provides:
- Append-only message log with per-session indices
- Full-text search (SQLite FTS5) with highlighted matches
- Named snapshots and compaction records
- Incremental transcript sync with compaction detection
- Markdown recovery documents

Usage:

    >>> from context_vault import SQLiteVault, SessionSynchronizer, RecoveryComposer, VaultConfig
    >>> config = VaultConfig.load()
    >>> async with await SQLiteVault.create(config) as vault:
    ...     report = await SessionSynchronizer(vault, config).sync_all()
    ...     hits = await vault.search("migration OR rollback")
    ...     document = await RecoveryComposer(vault).compose("session:abc123", 50)
"""

from .backends import SQLiteVault, VaultBackend
from .config import VaultConfig
from .exceptions import (
    ConfigurationError,
    QuerySyntaxError,
    StorageConnectionError,
    StorageContentionError,
    StorageIOError,
    TranscriptReadError,
    ValidationError,
    VaultError,
)
from .models import (
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
from .recovery import RecoveryComposer
from .sync import SessionSynchronizer, SessionSyncResult, SyncReport, SyncTracker
from .transcript import ParsedTranscript, flatten_content, parse_transcript, read_transcript

__all__ = [
    # Storage
    "VaultBackend",
    "SQLiteVault",
    "VaultConfig",
    # Sync
    "SessionSynchronizer",
    "SessionSyncResult",
    "SyncReport",
    "SyncTracker",
    # Transcripts
    "ParsedTranscript",
    "parse_transcript",
    "read_transcript",
    "flatten_content",
    # Recovery
    "RecoveryComposer",
    # Models
    "Session",
    "Message",
    "MessageRole",
    "SearchHit",
    "Snapshot",
    "SnapshotTrigger",
    "Compaction",
    "SummaryAvailability",
    "SessionStats",
    "VaultStats",
    # Exceptions
    "VaultError",
    "StorageIOError",
    "StorageConnectionError",
    "StorageContentionError",
    "QuerySyntaxError",
    "TranscriptReadError",
    "ValidationError",
    "ConfigurationError",
]

__version__ = "0.1.0"
