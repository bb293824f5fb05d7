"""
Shared test configuration and fixtures.

Every test gets its own vault database file and its own fake ``~/.openclaw``
tree under pytest's tmp_path, so no test touches the real home directory.
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from context_vault import SQLiteVault, VaultConfig


def transcript_text(
    session_id: str | None,
    message_count: int,
    *,
    start: int = 0,
    extra_lines: dict[int, str] | None = None,
) -> str:
    """
    Build transcript contents with alternating user/assistant messages.

    Message i has content ``"message {i}"``. ``extra_lines`` maps a position
    in the message sequence to a raw line inserted before that message.
    """
    lines = []
    if session_id is not None:
        lines.append(
            json.dumps({"type": "session", "id": session_id, "timestamp": "2026-01-01T00:00:00Z"})
        )

    extra_lines = extra_lines or {}
    for i in range(start, start + message_count):
        if i in extra_lines:
            lines.append(extra_lines[i])
        role = "user" if i % 2 == 0 else "assistant"
        lines.append(
            json.dumps(
                {
                    "type": "message",
                    "timestamp": f"2026-01-01T00:{i // 60:02d}:{i % 60:02d}Z",
                    "message": {"role": role, "content": f"message {i}"},
                }
            )
        )
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_transcript() -> Callable[..., str]:
    """Fixture exposing transcript_text to tests."""
    return transcript_text


@pytest.fixture
def openclaw_dir(tmp_path: Path) -> Path:
    """Fake host directory with an empty agents tree."""
    root = tmp_path / "openclaw"
    (root / "agents").mkdir(parents=True)
    return root


@pytest.fixture
def vault_config(tmp_path: Path, openclaw_dir: Path) -> VaultConfig:
    return VaultConfig(db_path=tmp_path / "vault" / "vault.db", openclaw_dir=openclaw_dir)


@pytest.fixture
async def vault(vault_config: VaultConfig):
    """Fixture providing an initialized SQLite vault on a temp file."""
    storage = await SQLiteVault.create(vault_config)
    yield storage
    await storage.close()


@pytest.fixture
def write_transcript(openclaw_dir: Path) -> Callable[..., Path]:
    """
    Fixture returning a helper that writes a transcript for an agent.

    Usage:
        path = write_transcript("abc", 10)               # agents/main/sessions/abc.jsonl
        path = write_transcript("abc", 12, agent="ops")   # agents/ops/sessions/abc.jsonl
    """

    def _write(
        session_id: str,
        message_count: int,
        *,
        agent: str = "main",
        file_name: str | None = None,
        extra_lines: dict[int, str] | None = None,
    ) -> Path:
        sessions_dir = openclaw_dir / "agents" / agent / "sessions"
        sessions_dir.mkdir(parents=True, exist_ok=True)
        path = sessions_dir / (file_name or f"{session_id}.jsonl")
        path.write_text(transcript_text(session_id, message_count, extra_lines=extra_lines))
        return path

    return _write
