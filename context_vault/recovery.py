"""
Recovery document rendering.

Produces a Markdown file an agent can read after compaction to recover
recent conversation history from the vault.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from .backends.base import VaultBackend
from .exceptions import StorageIOError, ValidationError
from .models import Compaction, Message

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 2000


class RecoveryComposer:
    """Renders recent vault history for one session as Markdown."""

    def __init__(self, vault: VaultBackend, max_content_chars: int = MAX_CONTENT_CHARS):
        self.vault = vault
        self.max_content_chars = max_content_chars

    async def compose(
        self,
        session_id: str,
        message_count: int = 50,
        output_path: Path | str | None = None,
    ) -> str:
        """
        Build the recovery document for a session.

        Args:
            session_id: Session to recover
            message_count: How many of the most recent messages to include
            output_path: If given, the document is also written there

        Returns:
            The Markdown document
        """
        if message_count < 1:
            raise ValidationError("message_count", "must be at least 1", str(message_count))

        # Newest first from the vault; rendered oldest first
        messages = await self.vault.get_messages(session_id, limit=message_count)
        messages.reverse()
        compaction = await self.vault.get_latest_compaction(session_id)

        document = self.render(session_id, message_count, messages, compaction)

        if output_path is not None:
            await _write_text(Path(output_path), document)
            logger.info(f"Recovery file for {session_id} written to {output_path}")

        return document

    def render(
        self,
        session_id: str,
        message_count: int,
        messages: list[Message],
        compaction: Compaction | None,
        generated_at: datetime | None = None,
    ) -> str:
        """Render the document from already-loaded records (oldest message first)."""
        generated_at = generated_at or datetime.now(UTC)

        lines = [
            "# Context Recovery File",
            "",
            f"**Session:** {session_id}",
            f"**Generated:** {generated_at.isoformat()}",
            f"**Messages:** Last {message_count} ({len(messages)} available)",
            "",
        ]

        if compaction is not None:
            lines += [
                "## Last Compaction",
                f"- Time: {compaction.timestamp.isoformat()}",
                f"- Messages before: {compaction.messages_before}",
                f"- Messages after: {compaction.messages_after}",
                f"- Summary available: {compaction.summary_available.value}",
                "",
            ]

        lines += ["## Recent Conversation", ""]

        for message in messages:
            content = message.content[: self.max_content_chars] or "(no content)"
            lines += [
                f"### [{message.timestamp.strftime('%H:%M:%S')}] {message.role.value.upper()}",
                "",
                content,
                "",
                "---",
                "",
            ]

        return "\n".join(lines)


async def _write_text(path: Path, text: str) -> None:
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(text)
    except OSError as e:
        raise StorageIOError("write_recovery", str(path), e) from e
