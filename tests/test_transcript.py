"""
Tests for transcript parsing.

Covers content flattening, role filtering and tolerance of malformed lines.
"""

import json

import pytest

from context_vault.exceptions import TranscriptReadError
from context_vault.transcript import (
    ParsedTranscript,
    TranscriptSession,
    flatten_content,
    parse_transcript,
    read_transcript,
)


def _message_line(role, content, **extra):
    return json.dumps({"type": "message", "message": {"role": role, "content": content, **extra}})


class TestFlattenContent:
    """Tests for flatten_content."""

    def test_string_content_verbatim(self):
        assert flatten_content("  Hello\nworld ") == "  Hello\nworld "

    def test_text_blocks_joined_with_newline(self):
        content = [
            {"type": "text", "text": "first"},
            {"type": "text", "text": "second"},
        ]
        assert flatten_content(content) == "first\nsecond"

    def test_non_text_blocks_ignored(self):
        content = [
            {"type": "thinking", "thinking": "internal"},
            {"type": "text", "text": "visible"},
            {"type": "tool_call", "name": "bash"},
            {"type": "image", "source": "..."},
        ]
        assert flatten_content(content) == "visible"

    def test_malformed_blocks_ignored(self):
        content = ["raw string", {"type": "text"}, {"type": "text", "text": 42}, {"type": "text", "text": "ok"}]
        assert flatten_content(content) == "ok"

    def test_other_types_flatten_to_empty(self):
        assert flatten_content(None) == ""
        assert flatten_content({"text": "dict"}) == ""
        assert flatten_content(17) == ""


class TestParseTranscript:
    """Tests for parse_transcript."""

    def test_session_descriptor(self, make_transcript):
        parsed = parse_transcript(make_transcript("abc123", 2))

        assert parsed.session == TranscriptSession(id="abc123", timestamp="2026-01-01T00:00:00Z")
        assert parsed.session.session_key == "session:abc123"

    def test_messages_in_file_order(self, make_transcript):
        parsed = parse_transcript(make_transcript("abc123", 4))

        assert [m.content for m in parsed.messages] == [
            "message 0",
            "message 1",
            "message 2",
            "message 3",
        ]
        assert [m.role for m in parsed.messages] == ["user", "assistant", "user", "assistant"]

    def test_message_timestamp_falls_back_to_record(self, make_transcript):
        parsed = parse_transcript(make_transcript("abc", 1))
        assert parsed.messages[0].timestamp == "2026-01-01T00:00:00Z"

    def test_message_timestamp_prefers_message_field(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "s"}),
                json.dumps(
                    {
                        "type": "message",
                        "timestamp": "outer",
                        "message": {"role": "user", "content": "hi", "timestamp": "inner"},
                    }
                ),
            ]
        )
        assert parse_transcript(data).messages[0].timestamp == "inner"

    def test_malformed_line_tolerance(self, make_transcript):
        """One invalid JSON line among 10 valid messages yields exactly 10 messages."""
        data = make_transcript("abc", 10, extra_lines={5: '{"type": "message", "message": {'})

        parsed = parse_transcript(data)

        assert parsed.message_count == 10
        assert parsed.skipped_lines == 1
        assert [m.content for m in parsed.messages] == [f"message {i}" for i in range(10)]

    def test_non_object_lines_skipped(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "s"}),
                "[1, 2, 3]",
                '"just a string"',
                _message_line("user", "kept"),
            ]
        )
        parsed = parse_transcript(data)
        assert [m.content for m in parsed.messages] == ["kept"]
        assert parsed.skipped_lines == 2

    def test_only_user_and_assistant_roles(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "s"}),
                _message_line("system", "system prompt"),
                _message_line("tool", "tool output"),
                _message_line("user", "question"),
                _message_line("assistant", [{"type": "text", "text": "answer"}]),
            ]
        )
        parsed = parse_transcript(data)
        assert [(m.role, m.content) for m in parsed.messages] == [
            ("user", "question"),
            ("assistant", "answer"),
        ]

    def test_empty_text_messages_dropped(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "s"}),
                _message_line("user", ""),
                _message_line("assistant", [{"type": "tool_call", "name": "bash"}]),
                _message_line("assistant", "done"),
            ]
        )
        assert [m.content for m in parse_transcript(data).messages] == ["done"]

    def test_unknown_record_types_ignored(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "s"}),
                json.dumps({"type": "model_change", "model": "x"}),
                json.dumps({"type": "custom", "message": {"role": "user", "content": "no"}}),
                _message_line("user", "yes"),
            ]
        )
        parsed = parse_transcript(data)
        assert [m.content for m in parsed.messages] == ["yes"]
        assert parsed.skipped_lines == 0

    def test_message_without_body_skipped(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "s"}),
                json.dumps({"type": "message", "message": "not a dict"}),
                json.dumps({"type": "message"}),
                _message_line("user", "ok"),
            ]
        )
        parsed = parse_transcript(data)
        assert parsed.message_count == 1
        assert parsed.skipped_lines == 2

    def test_no_session_record(self):
        parsed = parse_transcript(_message_line("user", "orphan"))
        assert parsed.session is None
        assert parsed.message_count == 1

    def test_last_session_record_wins(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": "first"}),
                json.dumps({"type": "session", "id": "second"}),
            ]
        )
        assert parse_transcript(data).session.id == "second"

    def test_numeric_session_id(self):
        parsed = parse_transcript(json.dumps({"type": "session", "id": 42}))
        assert parsed.session.id == "42"
        assert parsed.session.session_key == "session:42"

    def test_unusable_session_id_skipped(self):
        data = "\n".join(
            [
                json.dumps({"type": "session", "id": None}),
                json.dumps({"type": "session", "id": True}),
                json.dumps({"type": "session", "id": ""}),
            ]
        )
        parsed = parse_transcript(data)
        assert parsed.session is None
        assert parsed.skipped_lines == 3

    def test_empty_input(self):
        assert parse_transcript("") == ParsedTranscript()
        assert parse_transcript(b"\n\n  \n") == ParsedTranscript()

    def test_bytes_with_invalid_utf8(self):
        data = (
            json.dumps({"type": "session", "id": "s"}).encode()
            + b"\n\xff\xfe garbage\n"
            + _message_line("user", "café").encode("utf-8")
        )
        parsed = parse_transcript(data)
        assert parsed.session.id == "s"
        assert [m.content for m in parsed.messages] == ["café"]

    def test_crlf_line_endings(self):
        data = json.dumps({"type": "session", "id": "s"}) + "\r\n" + _message_line("user", "hi") + "\r\n"
        assert parse_transcript(data).messages[0].content == "hi"

    def test_idempotent(self, make_transcript):
        data = make_transcript("abc", 5, extra_lines={2: "not json"})
        assert parse_transcript(data) == parse_transcript(data)


class TestReadTranscript:
    """Tests for read_transcript."""

    @pytest.mark.asyncio
    async def test_reads_file(self, tmp_path, make_transcript):
        path = tmp_path / "abc.jsonl"
        path.write_text(make_transcript("abc", 3))

        parsed = await read_transcript(path)

        assert parsed.session.id == "abc"
        assert parsed.message_count == 3

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(TranscriptReadError) as exc_info:
            await read_transcript(tmp_path / "missing.jsonl")
        assert exc_info.value.path.endswith("missing.jsonl")

    @pytest.mark.asyncio
    async def test_directory_raises(self, tmp_path):
        with pytest.raises(TranscriptReadError):
            await read_transcript(tmp_path)
