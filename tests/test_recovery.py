"""
Tests for recovery document rendering.
"""

from datetime import UTC, datetime

import pytest

from context_vault import RecoveryComposer, StorageIOError, ValidationError


@pytest.fixture
def composer(vault):
    return RecoveryComposer(vault)


class TestCompose:
    """Tests for RecoveryComposer.compose."""

    @pytest.mark.asyncio
    async def test_chronological_order(self, composer, vault):
        await vault.append_message("s", "user", "first question")
        await vault.append_message("s", "assistant", "first answer")
        await vault.append_message("s", "user", "second question")

        document = await composer.compose("s", message_count=50)

        assert document.startswith("# Context Recovery File")
        assert "**Session:** s" in document
        assert "**Messages:** Last 50 (3 available)" in document
        first = document.index("first question")
        second = document.index("first answer")
        third = document.index("second question")
        assert first < second < third
        assert document.count("---") == 3
        assert "] USER" in document
        assert "] ASSISTANT" in document

    @pytest.mark.asyncio
    async def test_limits_to_most_recent(self, composer, vault):
        for i in range(10):
            await vault.append_message("s", "user", f"msg-{i:02d}")

        document = await composer.compose("s", message_count=3)

        assert "(3 available)" in document
        assert "msg-06" not in document
        assert document.index("msg-07") < document.index("msg-08") < document.index("msg-09")

    @pytest.mark.asyncio
    async def test_empty_session(self, composer):
        document = await composer.compose("missing")

        assert "**Messages:** Last 50 (0 available)" in document
        assert "## Recent Conversation" in document
        assert "## Last Compaction" not in document
        assert "###" not in document

    @pytest.mark.asyncio
    async def test_compaction_section(self, composer, vault):
        await vault.append_message("s", "user", "hello")
        await vault.record_compaction("s", 120, 20)
        await vault.record_compaction("s", 80, 15, summary_available=True)

        document = await composer.compose("s")

        assert "## Last Compaction" in document
        assert "- Messages before: 80" in document
        assert "- Messages after: 15" in document
        assert "- Summary available: yes" in document
        assert document.index("## Last Compaction") < document.index("## Recent Conversation")

    @pytest.mark.asyncio
    async def test_unknown_summary_rendered(self, composer, vault):
        await vault.record_compaction("s", 100, 10)
        document = await composer.compose("s")
        assert "- Summary available: unknown" in document

    @pytest.mark.asyncio
    async def test_long_content_truncated(self, composer, vault):
        await vault.append_message("s", "assistant", "x" * 5000)

        document = await composer.compose("s")

        assert "x" * 2000 in document
        assert "x" * 2001 not in document

    @pytest.mark.asyncio
    async def test_custom_truncation(self, vault):
        await vault.append_message("s", "assistant", "abcdefghij")
        document = await RecoveryComposer(vault, max_content_chars=4).compose("s")
        assert "abcd\n" in document
        assert "abcde" not in document

    @pytest.mark.asyncio
    async def test_empty_content_placeholder(self, composer, vault):
        await vault.append_message("s", "user", "")
        document = await composer.compose("s")
        assert "(no content)" in document

    @pytest.mark.asyncio
    async def test_writes_output_file(self, composer, vault, tmp_path):
        await vault.append_message("s", "user", "persist me")
        output = tmp_path / "nested" / "recovery.md"

        document = await composer.compose("s", output_path=output)

        assert output.read_text(encoding="utf-8") == document
        assert "persist me" in document

    @pytest.mark.asyncio
    async def test_unwritable_output(self, composer, tmp_path):
        # Parent "directory" is a regular file
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with pytest.raises(StorageIOError) as exc_info:
            await composer.compose("s", output_path=blocker / "recovery.md")
        assert exc_info.value.operation == "write_recovery"

    @pytest.mark.asyncio
    async def test_invalid_count(self, composer):
        with pytest.raises(ValidationError):
            await composer.compose("s", message_count=0)


class TestRender:
    """Tests for RecoveryComposer.render with fixed inputs."""

    def test_generated_time_and_header(self, vault):
        generated = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

        document = RecoveryComposer(vault).render("s", 5, [], None, generated_at=generated)

        assert document.splitlines()[:5] == [
            "# Context Recovery File",
            "",
            "**Session:** s",
            "**Generated:** 2026-03-01T12:00:00+00:00",
            "**Messages:** Last 5 (0 available)",
        ]
