"""Data models for structured extraction results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator


class Priority(StrEnum):
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class ExtractionType(StrEnum):
    EXPLICIT = "explicit"  # stated as a task ("Action item: ...")
    IMPLICIT = "implicit"  # inferred from a commitment ("I'll send it over")


class TaskCandidate(BaseModel):
    """A single task proposed by the extraction service."""

    title: str = Field(description="Clear, actionable task title")
    description: str = Field(default="", description="What needs to be done")
    suggested_assignee: str | None = Field(
        default=None, description="Person who should own the task, or null if unclear"
    )
    suggested_due: str | None = Field(
        default=None, description="Due date as YYYY-MM-DD, or the phrase used, or null"
    )
    priority: Priority = Field(default=Priority.NORMAL, description="Task priority")
    source_quote: str = Field(default="", description="Exact transcript quote for the task")
    confidence: float = Field(ge=0.0, le=1.0, description="0-1; explicit callouts are 1.0")
    extraction_type: ExtractionType = Field(description="explicit callout or implicit commitment")

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @model_validator(mode="after")
    def _explicit_is_certain(self) -> TaskCandidate:
        if self.extraction_type is ExtractionType.EXPLICIT and self.confidence != 1.0:
            self.confidence = 1.0
        return self


class MeetingAnalysis(BaseModel):
    """Tasks, summary and decisions extracted from one transcript (or chunk)."""

    tasks: list[TaskCandidate] = Field(default_factory=list)
    meeting_summary: str = Field(default="", description="Brief summary in 2-3 sentences")
    decisions: list[str] = Field(default_factory=list)


@dataclass
class MeetingContext:
    """Meeting information sent alongside the transcript."""

    title: str
    date: str  # ISO date (or datetime) of the meeting; reference for relative dates
    folder_name: str = ""
    attendees: list[str] = field(default_factory=list)
