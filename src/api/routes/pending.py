"""Pending task set endpoints: review, edit, approve, and dismiss extracted tasks."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException

from src.api.models import (
    BulkFailureResponse,
    BulkResponse,
    CreatedTaskResponse,
    PendingSetSummary,
    PendingStats,
    TaskEditRequest,
)
from src.config import settings
from src.errors import (
    AlreadyResolvedError,
    ConcurrentModificationError,
    NotFoundError,
    UnrecordedTaskError,
)
from src.lifecycle.bulk import BulkResult, create_all, dismiss_all
from src.lifecycle.models import PendingTaskSet
from src.lifecycle.store import get_lifecycle_store
from src.lifecycle.tracker import ClickUpTaskTracker, TaskOrigin, TaskTracker

router = APIRouter()


def get_task_tracker() -> TaskTracker:
    """ClickUp tracker for the configured list, or 501 if not configured."""
    if not settings.clickup_api_key or not settings.clickup_list_id:
        raise HTTPException(
            status_code=501,
            detail="Task creation is not configured. Set CLICKUP_API_KEY and CLICKUP_LIST_ID.",
        )
    return ClickUpTaskTracker(settings.clickup_api_key, settings.clickup_list_id)


def _summary(pending: PendingTaskSet) -> PendingSetSummary:
    return PendingSetSummary(
        id=pending.id,
        file_id=pending.file_id,
        folder_name=pending.folder_name,
        meeting_title=pending.meeting_title,
        status=pending.status,
        task_count=len(pending.tasks),
        open_count=sum(1 for t in pending.tasks if not t.is_terminal),
        created_at=pending.created_at,
    )


def _bulk_response(message: str, result: BulkResult) -> BulkResponse:
    return BulkResponse(
        message=message,
        created=[
            CreatedTaskResponse(index=i, external_task_id=c.id, url=c.url, name=c.name)
            for i, c in result.created.items()
        ],
        dismissed=result.dismissed,
        skipped=result.skipped,
        failed=[
            BulkFailureResponse(
                index=f.index,
                title=f.title,
                error=f.error,
                external_task_id=f.external_task_id,
                external_url=f.external_url,
            )
            for f in result.failed
        ],
    )


@router.get("/api/pending", response_model=list[PendingSetSummary])
async def list_pending(limit: int = 5, all_statuses: bool = False) -> list[PendingSetSummary]:
    """List the most recent sets (only open ones unless ``all_statuses``)."""
    store = get_lifecycle_store()
    return [_summary(p) for p in store.list_recent(limit=limit, all_statuses=all_statuses)]


@router.get("/api/pending/stats", response_model=PendingStats)
async def pending_stats() -> PendingStats:
    return PendingStats(**get_lifecycle_store().stats())


@router.get("/api/pending/{set_id}", response_model=PendingTaskSet)
async def get_pending(set_id: str) -> PendingTaskSet:
    return get_lifecycle_store().get_set(set_id)


@router.patch("/api/pending/{set_id}/tasks/{index}", response_model=PendingTaskSet)
async def edit_task(set_id: str, index: int, edits: TaskEditRequest) -> PendingTaskSet:
    """Apply reviewer edits to an unresolved task."""
    store = get_lifecycle_store()
    pending = store.get_set(set_id)
    if 0 <= index < len(pending.tasks) and pending.tasks[index].is_terminal:
        raise AlreadyResolvedError(set_id, index, pending.tasks[index].resolution.value)
    return store.edit_candidate(set_id, index, edits.model_dump(exclude_unset=True))


@router.post("/api/pending/{set_id}/tasks/{index}/create", response_model=CreatedTaskResponse)
async def create_task(
    set_id: str, index: int, edits: TaskEditRequest | None = None
) -> CreatedTaskResponse:
    """Create one task in the tracker (after optional edits) and record it."""
    store = get_lifecycle_store()
    tracker = get_task_tracker()

    pending = store.get_set(set_id)
    if not 0 <= index < len(pending.tasks):
        raise NotFoundError(f"Invalid task index {index} for set {set_id}")
    task = pending.tasks[index]
    if task.is_terminal:
        raise AlreadyResolvedError(set_id, index, task.resolution.value)

    fields = edits.model_dump(exclude_unset=True) if edits else {}
    if fields:
        task = store.edit_candidate(set_id, index, fields).tasks[index]

    origin = TaskOrigin(
        meeting_title=pending.meeting_title,
        meeting_date=pending.meeting_date,
        folder_name=pending.folder_name,
    )
    created = await asyncio.to_thread(tracker.create_task, task, origin)
    try:
        store.resolve_created(set_id, index, created.id)
    except (AlreadyResolvedError, ConcurrentModificationError) as exc:
        raise UnrecordedTaskError(set_id, index, created.id, created.url) from exc
    return CreatedTaskResponse(index=index, external_task_id=created.id, url=created.url, name=created.name)


@router.post("/api/pending/{set_id}/tasks/{index}/dismiss", response_model=PendingTaskSet)
async def dismiss_task(set_id: str, index: int) -> PendingTaskSet:
    return get_lifecycle_store().resolve_dismissed(set_id, index)


@router.post("/api/pending/{set_id}/create-all", response_model=BulkResponse)
async def create_all_tasks(
    set_id: str, edits: dict[int, TaskEditRequest] | None = None
) -> BulkResponse:
    """Create every open task in the set; failures are reported per task."""
    store = get_lifecycle_store()
    tracker = get_task_tracker()
    field_edits = {i: e.model_dump(exclude_unset=True) for i, e in (edits or {}).items()}

    result = await asyncio.to_thread(create_all, store, set_id, tracker, field_edits)
    return _bulk_response(
        f"Bulk creation: {len(result.created)}/{result.eligible} tasks created", result
    )


@router.post("/api/pending/{set_id}/dismiss-all", response_model=BulkResponse)
async def dismiss_all_tasks(set_id: str) -> BulkResponse:
    result = dismiss_all(get_lifecycle_store(), set_id)
    return _bulk_response(f"{len(result.dismissed)} tasks dismissed", result)
