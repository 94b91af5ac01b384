"""Data models for pending task sets tracked through human approval."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from src.extraction.models import TaskCandidate


class Resolution(StrEnum):
    PENDING = "pending"
    CREATED = "created"
    DISMISSED = "dismissed"


class SetStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"  # a bulk resolution is running
    COMPLETED = "completed"


TERMINAL_RESOLUTIONS = frozenset({Resolution.CREATED, Resolution.DISMISSED})

# Fields a reviewer may change before a task is resolved
EDITABLE_FIELDS = frozenset(
    {"title", "description", "suggested_assignee", "suggested_due", "priority"}
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PendingCandidate(TaskCandidate):
    """A task candidate plus its approval outcome."""

    resolution: Resolution = Resolution.PENDING
    external_task_id: str | None = None
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.resolution in TERMINAL_RESOLUTIONS


class PendingTaskSet(BaseModel):
    """All candidates extracted from one file, addressed by list index."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    file_id: str
    folder_id: str
    folder_name: str = ""
    meeting_title: str = ""
    meeting_date: str = ""
    summary: str = ""
    decisions: list[str] = Field(default_factory=list)
    tasks: list[PendingCandidate] = Field(default_factory=list)
    status: SetStatus = SetStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 0

    def all_resolved(self) -> bool:
        return all(task.is_terminal for task in self.tasks)
