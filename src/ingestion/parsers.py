"""Transcript format detection and normalization for VTT, SRT, plain text and meeting platforms.

Every supported layout is flattened into speaker-prefixed plain text
(``Name: what they said``), one utterance per line, with timing cues,
sequence numbers and platform metadata removed.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from src.ingestion.models import FileMetadata, NormalizedTranscript, TranscriptFormat

# Number of leading lines inspected by format detection
DETECTION_WINDOW_LINES = 10

_NAME = r"[A-Z][a-zA-Z]+(?:[ \t]+[A-Z][a-zA-Z]+)?"

# Speaker labels: "John:" / "John Smith:", "[John]", "John said:"
SPEAKER_LABEL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"^({_NAME}):", re.MULTILINE),
    re.compile(rf"^\[({_NAME})\]", re.MULTILINE),
    re.compile(rf"^({_NAME})[ \t]+said:", re.MULTILINE),
)

_CUE_TIMING_RE = re.compile(r"^(?:\d{1,2}:)?\d{2}:\d{2}[.,]\d{3}\s*-->\s*(?:\d{1,2}:)?\d{2}:\d{2}[.,]\d{3}")
_SRT_BLOCK_RE = re.compile(
    r"^\d+\s*\n\d{2}:\d{2}:\d{2},\d{3}\s*-->\s*\d{2}:\d{2}:\d{2},\d{3}", re.MULTILINE
)
_MEET_LINE_RE = re.compile(r"^\d{1,2}:\d{2}:\d{2}[ \t]+[A-Z][a-z]+", re.MULTILINE)
_ZOOM_CHAT_RE = re.compile(
    r"^(?:\d{1,2}:\d{2}(?::\d{2})?\s+)?From\s+(.+?)\s+to\s+(.+?):\s*(.*)$", re.MULTILINE
)
_ZOOM_EVERYONE_RE = re.compile(
    r"^(?:\d{1,2}:\d{2}(?::\d{2})?[ \t]+)?From[ \t]+.+?[ \t]+to[ \t]+Everyone:", re.MULTILINE
)
_TEAMS_LINE_RE = re.compile(r"^\d{1,2}:\d{2}[ \t]+(?:AM|PM)[ \t]+[A-Z][a-z]+", re.MULTILINE)

_TIMESTAMP_ONLY_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?\s*(?:AM|PM)?$", re.IGNORECASE),
    re.compile(r"^\d{2}:\d{2}:\d{2}[.,]\d{3}"),
    re.compile(r"^\[\d{1,2}:\d{2}(?::\d{2})?\]$"),
    _CUE_TIMING_RE,
)
_SEQUENCE_RE = re.compile(r"^\d+$")
_TAG_RE = re.compile(r"<[^>]+>")
_VOICE_TAG_RE = re.compile(r"^<v(?:\.[\w.-]+)?\s+([^>]+)>(.*?)(?:</v>)?$")
_LEADING_TIMESTAMP_RE = re.compile(r"^\[?\d{1,2}:\d{2}(?::\d{2})?\]?\s*")
_MEET_TIMESTAMPED_RE = re.compile(r"^(\d{1,2}:\d{2}(?::\d{2})?)\s+(.+)$")
_TEAMS_TIMESTAMPED_RE = re.compile(r"^(\d{1,2}:\d{2})\s*(?:AM|PM)?\s*(.+)$", re.IGNORECASE)
_LIKELY_TIMESTAMP_RE = re.compile(r"^\d{1,2}:\d{2}|^[AP]M$", re.IGNORECASE)


def is_timestamp_line(line: str) -> bool:
    """Return True if *line* is nothing but a timestamp or cue timing."""
    stripped = line.strip()
    return any(p.search(stripped) for p in _TIMESTAMP_ONLY_RES)


def is_speaker_line(line: str) -> bool:
    """Return True if *line* opens with a speaker label."""
    return any(p.match(line) for p in SPEAKER_LABEL_PATTERNS)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

# (format, predicate(head, full_text)) evaluated in order; first match wins.
_DETECTION_RULES: tuple[tuple[TranscriptFormat, Callable[[str, str], bool]], ...] = (
    (TranscriptFormat.VTT, lambda head, _full: "WEBVTT" in head),
    (TranscriptFormat.SRT, lambda head, _full: bool(_SRT_BLOCK_RE.search(head))),
    (
        TranscriptFormat.MEET,
        lambda head, _full: "Google Meet" in head or bool(_MEET_LINE_RE.search(head)),
    ),
    (
        TranscriptFormat.ZOOM,
        lambda head, full: "ZOOM" in head or bool(_ZOOM_EVERYONE_RE.search(full)),
    ),
    (
        TranscriptFormat.TEAMS,
        lambda head, _full: "Microsoft Teams" in head or bool(_TEAMS_LINE_RE.search(head)),
    ),
)


def _split_lines(raw_text: str) -> list[str]:
    return raw_text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def detect_format(raw_text: str) -> TranscriptFormat:
    """Classify a raw transcript by inspecting its first lines.

    Zoom chat exports are also recognised anywhere in the text by their
    ``From X to Everyone:`` lines.  Anything unrecognised is ``plain``.
    """
    full = "\n".join(_split_lines(raw_text))
    head = "\n".join(full.split("\n")[:DETECTION_WINDOW_LINES])
    for fmt, predicate in _DETECTION_RULES:
        if predicate(head, full):
            return fmt
    return TranscriptFormat.PLAIN


# ---------------------------------------------------------------------------
# Per-format line rules
# ---------------------------------------------------------------------------


def _strip_tags(line: str) -> str:
    return _TAG_RE.sub("", line).strip()


def _normalize_vtt(lines: list[str]) -> list[str]:
    """Drop the header block, NOTE/STYLE/REGION blocks, cue ids and timings.

    Voice tags (``<v Name>text</v>``, used by Teams and Zoom exports) become
    ``Name: text``; any other inline markup is removed.
    """
    out: list[str] = []
    in_header = False
    in_block = False
    for i, raw in enumerate(lines):
        line = raw.strip()
        if not line:
            in_header = False
            in_block = False
            continue
        if line.startswith("WEBVTT"):
            in_header = True
            continue
        if _CUE_TIMING_RE.match(line):
            in_header = False
            continue
        if in_header or in_block:
            continue
        if line.startswith(("NOTE", "STYLE", "REGION")):
            in_block = True
            continue
        # Cue identifier: any line directly followed by a timing line
        next_line = lines[i + 1].strip() if i + 1 < len(lines) else ""
        if _CUE_TIMING_RE.match(next_line):
            continue

        voice = _VOICE_TAG_RE.match(line)
        if voice:
            text = _strip_tags(voice.group(2))
            out.append(f"{voice.group(1).strip()}: {text}" if text else "")
        else:
            out.append(_strip_tags(line))
    return out


def _normalize_srt(lines: list[str]) -> list[str]:
    out: list[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or _SEQUENCE_RE.match(line) or _CUE_TIMING_RE.match(line):
            continue
        out.append(_strip_tags(line))
    return out


def _normalize_meet(lines: list[str]) -> list[str]:
    """``H:MM:SS Speaker`` headers become ``Speaker:`` lines."""
    out: list[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or ("Google Meet" in line and ":" not in line):
            continue
        match = _MEET_TIMESTAMPED_RE.match(line)
        if match and not is_timestamp_line(line):
            rest = match.group(2)
            out.append(rest if ":" in rest else f"{rest}:")
        else:
            out.append(line)
    return out


def _normalize_zoom(lines: list[str]) -> list[str]:
    out: list[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(("ZOOM", "Recording")):
            continue
        chat = _ZOOM_CHAT_RE.match(line)
        if chat:
            out.append(f"{chat.group(1)}: {chat.group(3)}".rstrip())
        else:
            out.append(line)
    return out


def _normalize_teams(lines: list[str]) -> list[str]:
    """Strip the leading ``H:MM AM`` stamp; a bare speaker name gets a colon."""
    out: list[str] = []
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if ("Microsoft Teams" in line or "Meeting recording" in line) and ":" not in line:
            continue
        match = _TEAMS_TIMESTAMPED_RE.match(line)
        if match and not is_timestamp_line(line):
            rest = match.group(2).strip()
            out.append(rest if ":" in rest else f"{rest}:")
        else:
            out.append(line)
    return out


def _normalize_plain(lines: list[str]) -> list[str]:
    out: list[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or is_timestamp_line(line):
            continue
        out.append(_LEADING_TIMESTAMP_RE.sub("", line))
    return out


_NORMALIZERS: dict[TranscriptFormat, Callable[[list[str]], list[str]]] = {
    TranscriptFormat.VTT: _normalize_vtt,
    TranscriptFormat.SRT: _normalize_srt,
    TranscriptFormat.MEET: _normalize_meet,
    TranscriptFormat.ZOOM: _normalize_zoom,
    TranscriptFormat.TEAMS: _normalize_teams,
    TranscriptFormat.PLAIN: _normalize_plain,
}


def normalize(raw_text: str, fmt: TranscriptFormat) -> NormalizedTranscript:
    """Flatten *raw_text* using the line rule for *fmt*.

    Whatever the format, pure timestamp lines and sequence-number lines never
    survive, and the remaining lines keep their original order.
    """
    lines = _NORMALIZERS[fmt](_split_lines(raw_text))
    kept = [
        line
        for line in (entry.strip() for entry in lines)
        if line and not is_timestamp_line(line) and not _SEQUENCE_RE.match(line)
    ]
    content = "\n".join(kept)
    return NormalizedTranscript(
        content=content,
        format=fmt,
        attendees=extract_attendees(content),
    )


def extract_attendees(content: str) -> frozenset[str]:
    """Collect speaker names from ``Name:``, ``[Name]`` and ``Name said:`` labels."""
    attendees: set[str] = set()
    for pattern in SPEAKER_LABEL_PATTERNS:
        for match in pattern.finditer(content):
            name = match.group(1).strip()
            if len(name) > 1 and not _LIKELY_TIMESTAMP_RE.match(name):
                attendees.add(name)
    return frozenset(attendees)


def parse_transcript(raw_text: str) -> NormalizedTranscript:
    """Detect the format of *raw_text* and normalize it."""
    return normalize(raw_text, detect_format(raw_text))


def decode_transcript(raw: bytes | str) -> str:
    """Decode file content as UTF-8 (BOM tolerant); undecodable bytes are replaced."""
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8-sig", errors="replace")


# Extensions and MIME types accepted as transcripts
TRANSCRIPT_EXTENSIONS = (".txt", ".vtt", ".srt", ".docx", ".doc")
TRANSCRIPT_MIME_TYPES = frozenset(
    {
        "text/plain",
        "text/vtt",
        "application/x-subrip",
        "application/vnd.google-apps.document",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/msword",
    }
)


def is_valid_transcript(metadata: FileMetadata) -> bool:
    """Return True if the file looks like a transcript by extension or MIME type."""
    return metadata.name.lower().endswith(TRANSCRIPT_EXTENSIONS) or (
        metadata.mime_type in TRANSCRIPT_MIME_TYPES
    )
