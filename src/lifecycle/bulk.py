"""Bulk resolution of every open task in a pending set ("create all" / "dismiss all")."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from src.errors import AlreadyResolvedError
from src.lifecycle.store import TaskLifecycleStore
from src.lifecycle.tracker import CreatedTask, TaskOrigin, TaskTracker

logger = logging.getLogger(__name__)

# Pause between external task creations
CREATE_DELAY_SECONDS = 0.2


@dataclass
class BulkFailure:
    index: int
    title: str
    error: str
    # Set when the tracker task exists but could not be recorded on the set
    external_task_id: str | None = None
    external_url: str | None = None


@dataclass
class BulkResult:
    """Outcome of a bulk run; resolved tasks stay resolved even if others fail."""

    created: dict[int, CreatedTask] = field(default_factory=dict)
    dismissed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)  # already resolved
    failed: list[BulkFailure] = field(default_factory=list)

    @property
    def eligible(self) -> int:
        return len(self.created) + len(self.dismissed) + len(self.failed)


def create_all(
    store: TaskLifecycleStore,
    set_id: str,
    tracker: TaskTracker,
    edits: dict[int, dict[str, Any]] | None = None,
    delay_seconds: float = CREATE_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> BulkResult:
    """Create every unresolved task in the set, one at a time.

    Each task is edited (if *edits* has an entry for its index), created in
    the tracker and recorded before moving on, so progress survives an
    interruption.  A failure is recorded against its task and the loop goes
    on; nothing is rolled back.

    Raises:
        NotFoundError: The set does not exist.
    """
    pending = store.mark_processing(set_id)
    origin = TaskOrigin(
        meeting_title=pending.meeting_title,
        meeting_date=pending.meeting_date,
        folder_name=pending.folder_name,
    )
    result = BulkResult()
    edits = edits or {}

    try:
        for index in range(len(pending.tasks)):
            task = store.get_set(set_id).tasks[index]
            if task.is_terminal:
                result.skipped.append(index)
                continue
            try:
                if edits.get(index):
                    task = store.edit_candidate(set_id, index, edits[index]).tasks[index]
                created = tracker.create_task(task, origin)
            except AlreadyResolvedError:
                logger.warning("Task %d in set %s was resolved concurrently", index, set_id)
                result.skipped.append(index)
                continue
            except Exception as exc:
                logger.exception("Failed to create task %d in set %s", index, set_id)
                result.failed.append(BulkFailure(index=index, title=task.title, error=str(exc)))
                continue
            try:
                store.resolve_created(set_id, index, created.id)
            except Exception as exc:
                logger.exception(
                    "Created tracker task %s for task %d in set %s but could not record it",
                    created.id,
                    index,
                    set_id,
                )
                result.failed.append(
                    BulkFailure(
                        index=index,
                        title=task.title,
                        error=str(exc),
                        external_task_id=created.id,
                        external_url=created.url,
                    )
                )
                continue
            result.created[index] = created
            sleep(delay_seconds)
    finally:
        store.refresh_status(set_id)

    logger.info(
        "Bulk creation for set %s: %d/%d created", set_id, len(result.created), result.eligible
    )
    return result


def dismiss_all(store: TaskLifecycleStore, set_id: str) -> BulkResult:
    """Dismiss every unresolved task in the set, one at a time."""
    pending = store.mark_processing(set_id)
    result = BulkResult()

    try:
        for index, task in enumerate(pending.tasks):
            if task.is_terminal:
                result.skipped.append(index)
                continue
            try:
                store.resolve_dismissed(set_id, index)
            except AlreadyResolvedError:
                result.skipped.append(index)
                continue
            except Exception as exc:
                logger.exception("Failed to dismiss task %d in set %s", index, set_id)
                result.failed.append(BulkFailure(index=index, title=task.title, error=str(exc)))
                continue
            result.dismissed.append(index)
    finally:
        store.refresh_status(set_id)

    return result
