"""Data models for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class TranscriptFormat(StrEnum):
    """Transcript layouts recognised by the format detector."""

    VTT = "vtt"
    SRT = "srt"
    PLAIN = "plain"
    MEET = "meet"
    ZOOM = "zoom"
    TEAMS = "teams"


@dataclass(frozen=True)
class NormalizedTranscript:
    """Speaker-prefixed plain text with all timing and markup stripped."""

    content: str
    format: TranscriptFormat
    attendees: frozenset[str] = field(default_factory=frozenset)


@dataclass
class FileMetadata:
    """Metadata the file source reports for a transcript file."""

    file_id: str
    name: str
    created_at: str
    mime_type: str = "text/plain"
    owner: str | None = None
    web_view_link: str | None = None
