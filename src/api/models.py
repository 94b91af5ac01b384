"""Pydantic request/response schemas for the task approval API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from src.extraction.models import Priority
from src.ingestion.pipeline import PipelineStatus
from src.lifecycle.models import SetStatus


class IngestResponse(BaseModel):
    """Response body for the /api/ingest endpoint."""

    file_id: str
    status: PipelineStatus
    pending_id: str | None = None
    task_count: int = 0
    reason: str = ""


class PendingSetSummary(BaseModel):
    """Summary representation of a pending set for list views."""

    id: str
    file_id: str
    folder_name: str
    meeting_title: str
    status: SetStatus
    task_count: int
    open_count: int
    created_at: datetime


class PendingStats(BaseModel):
    total: int
    pending: int
    processing: int
    completed: int


class TaskEditRequest(BaseModel):
    """Reviewer edits; only the fields sent are changed."""

    title: str | None = None
    description: str | None = None
    suggested_assignee: str | None = None
    suggested_due: str | None = None
    priority: Priority | None = None


class CreatedTaskResponse(BaseModel):
    index: int
    external_task_id: str
    url: str
    name: str


class BulkFailureResponse(BaseModel):
    index: int
    title: str
    error: str
    external_task_id: str | None = None
    external_url: str | None = None


class BulkResponse(BaseModel):
    """Response body for the create-all / dismiss-all endpoints."""

    message: str
    created: list[CreatedTaskResponse] = []
    dismissed: list[int] = []
    skipped: list[int] = []
    failed: list[BulkFailureResponse] = []
