"""
Transcript discovery.

Host transcripts live at ``<openclaw_dir>/agents/<agent>/sessions/<session>.jsonl``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import aiofiles.os

from ..exceptions import StorageIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptFile:
    """A transcript file and the agent directory it was found under."""

    path: Path
    agent_id: str


async def list_directories(path: Path) -> list[str]:
    """List subdirectory names of ``path``; missing directories yield []."""
    try:
        if not await aiofiles.os.path.isdir(path):
            return []

        entries = await aiofiles.os.listdir(path)
        dirs = []
        for entry in entries:
            if await aiofiles.os.path.isdir(path / entry):
                dirs.append(entry)
        return sorted(dirs)
    except OSError as e:
        raise StorageIOError("list_directories", str(path), e) from e


async def discover_transcripts(agents_dir: Path, suffix: str = ".jsonl") -> list[TranscriptFile]:
    """
    Find every transcript file under the agents directory.

    Args:
        agents_dir: Directory containing one subdirectory per agent
        suffix: File extension of transcript files

    Returns:
        Transcript files ordered by agent, then file name. An agent whose
        sessions directory cannot be listed is logged and skipped.
    """
    found: list[TranscriptFile] = []

    for agent_id in await list_directories(agents_dir):
        sessions_dir = agents_dir / agent_id / "sessions"
        if not await aiofiles.os.path.isdir(sessions_dir):
            continue

        try:
            names = sorted(await aiofiles.os.listdir(sessions_dir))
        except OSError as e:
            # One unreadable agent must not hide the others
            logger.error(f"Cannot list transcripts in {sessions_dir}: {e}")
            continue

        for name in names:
            if name.endswith(suffix):
                found.append(TranscriptFile(path=sessions_dir / name, agent_id=agent_id))

    return found
