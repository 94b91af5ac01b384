"""Tests for transcript format detection, normalization and chunk planning."""

from __future__ import annotations

import pytest

from src.ingestion.chunking import plan_chunks
from src.ingestion.models import FileMetadata, TranscriptFormat
from src.ingestion.parsers import (
    decode_transcript,
    detect_format,
    extract_attendees,
    is_timestamp_line,
    is_valid_transcript,
    normalize,
    parse_transcript,
)

VTT_SAMPLE = """WEBVTT
Kind: captions

NOTE recorded by the meeting bot
for internal use

1
00:00:01.000 --> 00:00:04.000
<v Alice>Let's review the roadmap.</v>

2
00:00:05.000 --> 00:00:08.000
<v Bob>I'll send the notes by Friday.</v>
"""

SRT_SAMPLE = """1
00:00:01,000 --> 00:00:04,000
Alice: Welcome everyone.

2
00:00:04,500 --> 00:00:07,000
Bob: Thanks, <i>let's start</i>.
"""

MEET_SAMPLE = """Google Meet transcript
0:00:05 Alice
Welcome to the sync.
0:01:10 Bob
I'll handle the deploy.
"""

ZOOM_SAMPLE = """From Alice Smith to Everyone: Can someone share the deck?
From Bob to Everyone: Sharing now
"""

TEAMS_SAMPLE = """Microsoft Teams meeting
9:30 AM Alice Smith
Let's begin with status.
9:31 AM Bob
I'll fix the login bug.
"""

PLAIN_SAMPLE = """[00:01:02] Alice: Good morning.
00:01:10
Bob: Morning!
3
"""

ALL_SAMPLES = {
    TranscriptFormat.VTT: VTT_SAMPLE,
    TranscriptFormat.SRT: SRT_SAMPLE,
    TranscriptFormat.MEET: MEET_SAMPLE,
    TranscriptFormat.ZOOM: ZOOM_SAMPLE,
    TranscriptFormat.TEAMS: TEAMS_SAMPLE,
    TranscriptFormat.PLAIN: PLAIN_SAMPLE,
}


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestDetectFormat:
    @pytest.mark.parametrize(("fmt", "sample"), list(ALL_SAMPLES.items()))
    def test_detects_each_sample(self, fmt: TranscriptFormat, sample: str) -> None:
        assert detect_format(sample) is fmt

    def test_meet_timestamp_without_banner(self) -> None:
        assert detect_format("0:01:05 Alice\nHello there") is TranscriptFormat.MEET

    def test_zoom_chat_found_beyond_first_lines(self) -> None:
        lines = [f"line {i} of the discussion" for i in range(20)]
        lines.append("From Bob to Everyone: see you all tomorrow")
        assert detect_format("\n".join(lines)) is TranscriptFormat.ZOOM

    def test_from_to_phrase_in_plain_text_is_not_zoom(self) -> None:
        lines = [f"Alice: point {i}" for i in range(14)]
        lines.append("From January to March: revenue grew ten percent")
        raw = "\n".join(lines)

        assert detect_format(raw) is TranscriptFormat.PLAIN
        result = parse_transcript(raw)
        assert "From January to March: revenue grew ten percent" in result.content
        assert "January" not in result.attendees

    def test_vtt_header_only_counts_near_top(self) -> None:
        lines = [f"Alice: point {i}" for i in range(15)] + ["WEBVTT"]
        assert detect_format("\n".join(lines)) is TranscriptFormat.PLAIN

    def test_unrecognised_is_plain(self) -> None:
        assert detect_format("just some notes\nnothing special") is TranscriptFormat.PLAIN

    def test_empty_is_plain(self) -> None:
        assert detect_format("") is TranscriptFormat.PLAIN


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalize:
    def test_vtt(self) -> None:
        result = normalize(VTT_SAMPLE, TranscriptFormat.VTT)
        assert result.content == (
            "Alice: Let's review the roadmap.\nBob: I'll send the notes by Friday."
        )
        assert result.format is TranscriptFormat.VTT

    def test_vtt_header_followed_directly_by_cue(self) -> None:
        vtt = "WEBVTT\n00:00:01.000 --> 00:00:02.000\nCarol: First words."
        assert normalize(vtt, TranscriptFormat.VTT).content == "Carol: First words."

    def test_vtt_multiline_cue_keeps_order(self) -> None:
        vtt = """WEBVTT

00:00:01.000 --> 00:00:05.000
Alice: This is line one.
and this is line two.
"""
        content = normalize(vtt, TranscriptFormat.VTT).content
        assert content == "Alice: This is line one.\nand this is line two."

    def test_srt(self) -> None:
        result = normalize(SRT_SAMPLE, TranscriptFormat.SRT)
        assert result.content == "Alice: Welcome everyone.\nBob: Thanks, let's start."

    def test_meet(self) -> None:
        result = normalize(MEET_SAMPLE, TranscriptFormat.MEET)
        assert result.content == (
            "Alice:\nWelcome to the sync.\nBob:\nI'll handle the deploy."
        )

    def test_zoom_chat_lines(self) -> None:
        raw = (
            "10:00:01 From Alice Smith to Everyone: Can someone share the deck?\n"
            "10:00:30 From Bob to Everyone: Sharing now\n"
        )
        result = normalize(raw, TranscriptFormat.ZOOM)
        assert result.content == "Alice Smith: Can someone share the deck?\nBob: Sharing now"

    def test_teams(self) -> None:
        result = normalize(TEAMS_SAMPLE, TranscriptFormat.TEAMS)
        assert result.content == (
            "Alice Smith:\nLet's begin with status.\nBob:\nI'll fix the login bug."
        )

    def test_plain_strips_timestamps_and_sequence_numbers(self) -> None:
        result = normalize(PLAIN_SAMPLE, TranscriptFormat.PLAIN)
        assert result.content == "Alice: Good morning.\nBob: Morning!"

    def test_crlf_line_endings(self) -> None:
        result = normalize("Alice: one\r\nBob: two\r\n", TranscriptFormat.PLAIN)
        assert result.content == "Alice: one\nBob: two"

    @pytest.mark.parametrize(("fmt", "sample"), list(ALL_SAMPLES.items()))
    def test_no_timestamp_or_sequence_lines_survive(
        self, fmt: TranscriptFormat, sample: str
    ) -> None:
        content = normalize(sample, fmt).content
        for line in content.split("\n"):
            assert line.strip()
            assert not is_timestamp_line(line)
            assert not line.strip().isdigit()

    @pytest.mark.parametrize("fmt", list(TranscriptFormat))
    def test_any_format_rule_on_foreign_input_never_leaves_timestamps(
        self, fmt: TranscriptFormat
    ) -> None:
        content = normalize(SRT_SAMPLE + "\n" + PLAIN_SAMPLE, fmt).content
        assert not any(is_timestamp_line(line) for line in content.split("\n") if line)


class TestAttendees:
    def test_three_label_shapes(self) -> None:
        content = "[Alice] hello\nBob said: hi\nCarol Jones: yes"
        assert extract_attendees(content) == {"Alice", "Bob", "Carol Jones"}

    def test_clock_like_names_are_ignored(self) -> None:
        assert extract_attendees("AM: early start\nAlice: hi") == {"Alice"}

    def test_unique_names(self) -> None:
        assert extract_attendees("Alice: one\nAlice: two\nBob: three") == {"Alice", "Bob"}

    def test_normalized_vtt_attendees(self) -> None:
        assert parse_transcript(VTT_SAMPLE).attendees == {"Alice", "Bob"}


class TestDecodeAndValidity:
    def test_decode_strips_bom(self) -> None:
        assert decode_transcript(b"\xef\xbb\xbfAlice: hi") == "Alice: hi"

    def test_undecodable_bytes_are_plain_text(self) -> None:
        result = parse_transcript(decode_transcript(b"\xff\xfe\x00garbage\x81 bytes"))
        assert result.format is TranscriptFormat.PLAIN
        assert "garbage" in result.content

    def test_str_passes_through(self) -> None:
        assert decode_transcript("already text") == "already text"

    @pytest.mark.parametrize("name", ["notes.txt", "call.VTT", "captions.srt", "minutes.docx"])
    def test_transcript_extensions(self, name: str) -> None:
        metadata = FileMetadata(file_id="f", name=name, created_at="2026-02-03", mime_type="x/y")
        assert is_valid_transcript(metadata)

    def test_mime_type_is_enough(self) -> None:
        metadata = FileMetadata(
            file_id="f",
            name="Weekly sync",
            created_at="2026-02-03",
            mime_type="application/vnd.google-apps.document",
        )
        assert is_valid_transcript(metadata)

    def test_non_transcript(self) -> None:
        metadata = FileMetadata(
            file_id="f", name="slides.pdf", created_at="2026-02-03", mime_type="application/pdf"
        )
        assert not is_valid_transcript(metadata)


# ---------------------------------------------------------------------------
# Chunk planning
# ---------------------------------------------------------------------------


def _transcript(n_lines: int, line_len: int = 100) -> str:
    speakers = ["Alice", "Bob", "Carol"]
    lines = []
    for i in range(n_lines):
        prefix = f"{speakers[i % 3]}: "
        lines.append(prefix + "x" * (line_len - len(prefix)))
    return "\n".join(lines)


class TestPlanChunks:
    def test_under_limit_is_single_chunk(self) -> None:
        content = _transcript(1500)  # ~150k characters
        assert len(content) > 140_000
        assert plan_chunks(content, 400_000) == [content]

    def test_over_limit_splits_and_reproduces_input(self) -> None:
        content = _transcript(10)
        chunks = plan_chunks(content, 250)
        assert len(chunks) >= 2
        assert "\n".join(chunks) == content
        assert all(len(chunk) <= 250 for chunk in chunks)

    def test_chunks_break_on_line_boundaries(self) -> None:
        content = _transcript(10)
        original_lines = content.split("\n")
        for chunk in plan_chunks(content, 250):
            assert all(line in original_lines for line in chunk.split("\n"))

    def test_oversized_line_is_its_own_chunk(self) -> None:
        long_line = "y" * 500
        content = f"short\n{long_line}\nend"
        assert plan_chunks(content, 100) == ["short", long_line, "end"]

    def test_blank_content(self) -> None:
        assert plan_chunks("   \n  ", 100) == []

    def test_invalid_limit(self) -> None:
        with pytest.raises(ValueError):
            plan_chunks("Alice: hi", 0)
