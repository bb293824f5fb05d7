"""
Session synchronization engine.

Tails host transcript files into the vault:
- Parse each transcript
- Detect compaction (visible message count dropped)
- Append only messages beyond the vault's persisted count
- Repeat on an interval until stopped

Files are processed one at a time and appends are never parallelized, so
message index assignment in the vault stays race-free.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ..backends.base import VaultBackend
from ..config import VaultConfig
from ..exceptions import StorageContentionError
from ..logging_utils import SessionLoggerAdapter
from ..models import SnapshotTrigger, SummaryAvailability
from ..transcript import read_transcript
from .discovery import discover_transcripts
from .tracker import SyncTracker

logger = logging.getLogger(__name__)


@dataclass
class SessionSyncResult:
    """Result of syncing one transcript file."""

    appended: int = 0
    session_id: str | None = None
    total: int = 0
    compaction_detected: bool = False


@dataclass
class SyncFileError:
    """A transcript that could not be synced during a pass."""

    path: Path
    error: str


@dataclass
class SyncReport:
    """Aggregate result of a sync pass over all transcripts."""

    total_appended: int = 0
    sessions_updated: int = 0
    files_scanned: int = 0
    errors: list[SyncFileError] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return not self.errors


class SessionSynchronizer:
    """Incrementally copies host session transcripts into the vault.

    Handles:
    - Delta sync floored at the vault's persisted count
    - Compaction detection against the last observed count
    - Per-file error isolation during full passes
    - A stoppable polling loop
    """

    def __init__(
        self,
        vault: VaultBackend,
        config: VaultConfig | None = None,
        tracker: SyncTracker | None = None,
    ):
        """Initialize the synchronizer.

        Args:
            vault: Vault to append into
            config: Vault configuration (transcript location, slack, interval)
            tracker: Cursor map; a fresh one is created if not given
        """
        self.vault = vault
        self.config = config or VaultConfig()
        self.tracker = tracker if tracker is not None else SyncTracker()

        self._stop_event = asyncio.Event()
        self._watch_task: asyncio.Task[int] | None = None
        self._last_report: SyncReport | None = None

    @property
    def last_report(self) -> SyncReport | None:
        """Report of the most recent full pass."""
        return self._last_report

    async def sync_file(self, path: Path, agent_id: str | None = None) -> SessionSyncResult:
        """Sync one transcript file into the vault.

        Args:
            path: Transcript file
            agent_id: Agent that owns the transcript, recorded on new sessions

        Returns:
            Appended count, session key and transcript message count

        Raises:
            TranscriptReadError: If the file cannot be read
        """
        parsed = await read_transcript(Path(path))
        if parsed.session is None:
            logger.debug(f"No session record in {path}, skipping")
            return SessionSyncResult()

        session_id = parsed.session.session_key
        total = parsed.message_count
        log = SessionLoggerAdapter(logger, {"session_id": session_id})

        cursor = self.tracker.get(session_id)
        if cursor is not None:
            prior_count = cursor.message_count
        else:
            prior_count = await self.vault.count_messages(session_id)

        compaction_detected = False
        if prior_count > 0 and total < prior_count - self.config.compaction_slack:
            compaction_detected = True
            if self.config.snapshot_on_compaction:
                await self.vault.create_snapshot(
                    session_id,
                    f"pre-compaction-{datetime.now(UTC).strftime('%Y%m%dT%H%M%SZ')}",
                    SnapshotTrigger.PRE_COMPACTION,
                )
            await self.vault.record_compaction(
                session_id,
                messages_before=prior_count,
                messages_after=total,
                summary_available=SummaryAvailability.UNKNOWN,
            )
            log.warning(f"Compaction detected: {session_id} ({prior_count} -> {total})")

        persisted = await self.vault.count_messages(session_id)
        appended = 0
        for message in parsed.messages[persisted:]:
            await self.vault.append_message(
                session_id,
                message.role,
                message.content,
                json.dumps({"timestamp": message.timestamp}),
                agent_id=agent_id,
            )
            appended += 1

        self.tracker.update(session_id, total)

        if appended:
            log.info(f"{session_id}: +{appended} messages")

        return SessionSyncResult(
            appended=appended,
            session_id=session_id,
            total=total,
            compaction_detected=compaction_detected,
        )

    async def sync_all(self) -> SyncReport:
        """Sync every discovered transcript.

        A file that fails is reported in the result and the pass continues.
        Write-lock contention is not a per-file problem and is raised.
        """
        start = time.monotonic()
        files = await discover_transcripts(self.config.agents_dir, self.config.transcript_suffix)
        report = SyncReport(files_scanned=len(files))

        for transcript in files:
            try:
                result = await self.sync_file(transcript.path, agent_id=transcript.agent_id)
            except StorageContentionError:
                raise
            except Exception as e:
                logger.error(f"Error syncing {transcript.path.name}: {e}")
                report.errors.append(SyncFileError(path=transcript.path, error=str(e)))
                continue

            if result.appended > 0:
                report.total_appended += result.appended
                report.sessions_updated += 1

        report.duration_ms = int((time.monotonic() - start) * 1000)
        self._last_report = report
        return report

    async def watch(self, interval: float | None = None, *, max_passes: int | None = None) -> int:
        """Sync immediately, then once per interval until stopped.

        Args:
            interval: Seconds between passes (defaults to config.watch_interval)
            max_passes: Stop after this many passes (None = until stop())

        Returns:
            Number of passes completed
        """
        interval = interval if interval is not None else self.config.watch_interval

        logger.info(f"Watching {self.config.agents_dir}/*/sessions/ every {interval}s")

        passes = 0
        try:
            while True:
                report = await self.sync_all()
                passes += 1

                if passes == 1:
                    logger.info(
                        f"Initial sync: {report.total_appended} messages "
                        f"from {report.files_scanned} files"
                    )
                elif report.total_appended > 0:
                    logger.info(f"Synced {report.total_appended} new messages")

                if max_passes is not None and passes >= max_passes:
                    break

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except TimeoutError:
                    continue
                break
        finally:
            # A stop() issued before this run started still ends it; reset for the next run
            self._stop_event.clear()

        logger.info(f"Watch stopped after {passes} passes")
        return passes

    def stop(self) -> None:
        """Signal a running watch loop to stop after its current pass."""
        self._stop_event.set()

    def start_watching(self, interval: float | None = None) -> asyncio.Task[int]:
        """Run watch() as a background task and return its handle."""
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.create_task(self.watch(interval))
        return self._watch_task

    async def stop_watching(self) -> int:
        """Stop the background watch task and wait for it to finish.

        Returns:
            Number of passes the task completed (0 if none was running)
        """
        if self._watch_task is None:
            return 0

        self.stop()
        try:
            return await self._watch_task
        finally:
            self._watch_task = None
