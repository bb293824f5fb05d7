"""
Transcript synchronization.

Discovers host session transcripts, tracks per-session cursors and appends
new messages into the vault.
"""

from .discovery import TranscriptFile, discover_transcripts
from .engine import SessionSynchronizer, SessionSyncResult, SyncFileError, SyncReport
from .tracker import SessionCursor, SyncTracker

__all__ = [
    "SessionSynchronizer",
    "SessionSyncResult",
    "SyncReport",
    "SyncFileError",
    "SyncTracker",
    "SessionCursor",
    "TranscriptFile",
    "discover_transcripts",
]
