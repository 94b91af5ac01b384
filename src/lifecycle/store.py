"""Task lifecycle store: the only writer of pending task sets.

Every mutation is an optimistic read-modify-write of the whole set
document: read it with its version, apply the change to a copy, and write it
back only if nobody else wrote in between; on conflict, re-read and retry.
Two concurrent resolutions of different tasks in the same set therefore
never lose an update.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from src.errors import (
    AlreadyResolvedError,
    ConcurrentModificationError,
    DuplicateIngestionError,
    NotFoundError,
)
from src.extraction.models import MeetingAnalysis, MeetingContext, TaskCandidate
from src.lifecycle.models import (
    EDITABLE_FIELDS,
    PendingCandidate,
    PendingTaskSet,
    Resolution,
    SetStatus,
)
from src.lifecycle.storage import DocumentStore, SupabaseDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 10


class TaskLifecycleStore:
    """Creates pending task sets and applies per-task resolutions atomically."""

    def __init__(self, documents: DocumentStore, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        self._documents = documents
        self._max_retries = max_retries

    # -- reads ---------------------------------------------------------------

    def get_set(self, set_id: str) -> PendingTaskSet:
        doc = self._documents.get(set_id)
        if doc is None:
            raise NotFoundError(f"Pending task set not found: {set_id}")
        return PendingTaskSet.model_validate(doc)

    def is_file_already_ingested(self, file_id: str) -> bool:
        """True if any set exists for *file_id*, whatever its status."""
        return bool(self._documents.find_by("file_id", file_id, limit=1))

    def list_recent(self, limit: int = 5, all_statuses: bool = False) -> list[PendingTaskSet]:
        """Most recent sets first; only ``pending`` ones unless *all_statuses*."""
        status = None if all_statuses else SetStatus.PENDING.value
        return [
            PendingTaskSet.model_validate(doc)
            for doc in self._documents.list_recent(limit, status=status)
        ]

    def stats(self) -> dict[str, int]:
        counts = self._documents.count_by_status()
        result = {status.value: counts.get(status.value, 0) for status in SetStatus}
        return {"total": sum(counts.values()), **result}

    # -- creation ------------------------------------------------------------

    def create_set(
        self,
        file_id: str,
        folder_id: str,
        context: MeetingContext,
        analysis: MeetingAnalysis,
        tasks: list[TaskCandidate] | None = None,
        folder_name: str = "",
    ) -> PendingTaskSet:
        """Persist a new pending set for *file_id*.

        Args:
            file_id: Source file identifier; at most one set per file.
            folder_id: Source folder identifier.
            context: Meeting information.
            analysis: The merged analysis (summary and decisions are kept).
            tasks: Tasks to track; defaults to ``analysis.tasks``.
            folder_name: Display name of the source folder.

        Raises:
            DuplicateIngestionError: A set already exists for *file_id*.
        """
        if self.is_file_already_ingested(file_id):
            raise DuplicateIngestionError(file_id)

        chosen = analysis.tasks if tasks is None else tasks
        pending = PendingTaskSet(
            file_id=file_id,
            folder_id=folder_id,
            folder_name=folder_name,
            meeting_title=context.title,
            meeting_date=context.date,
            summary=analysis.meeting_summary,
            decisions=list(analysis.decisions),
            tasks=[PendingCandidate(**task.model_dump()) for task in chosen],
        )
        self._documents.insert(pending.model_dump(mode="json"))
        logger.info("Stored pending task set %s (%d tasks) for file %s", pending.id, len(chosen), file_id)
        return pending

    # -- mutations -----------------------------------------------------------

    def _mutate(self, set_id: str, change: Callable[[PendingTaskSet], None]) -> PendingTaskSet:
        """Apply *change* to the set as one atomic whole-document write."""
        for attempt in range(1, self._max_retries + 1):
            pending = self.get_set(set_id)
            expected = pending.version
            change(pending)
            pending.version = expected + 1
            pending.updated_at = datetime.now(UTC)
            if self._documents.compare_and_swap(set_id, expected, pending.model_dump(mode="json")):
                return pending
            logger.debug("Version conflict on set %s (attempt %d), retrying", set_id, attempt)
        raise ConcurrentModificationError(
            f"Gave up updating set {set_id} after {self._max_retries} conflicting writes"
        )

    @staticmethod
    def _task_at(pending: PendingTaskSet, index: int) -> PendingCandidate:
        if not 0 <= index < len(pending.tasks):
            raise NotFoundError(f"Invalid task index {index} for set {pending.id}")
        return pending.tasks[index]

    def _resolve(
        self,
        set_id: str,
        index: int,
        resolution: Resolution,
        external_task_id: str | None = None,
    ) -> PendingTaskSet:
        def change(pending: PendingTaskSet) -> None:
            task = self._task_at(pending, index)
            if task.is_terminal:
                raise AlreadyResolvedError(set_id, index, task.resolution.value)
            task.resolution = resolution
            task.external_task_id = external_task_id
            task.resolved_at = datetime.now(UTC)
            if pending.all_resolved():
                pending.status = SetStatus.COMPLETED

        updated = self._mutate(set_id, change)
        logger.info("Task %d in set %s %s", index, set_id, resolution.value)
        return updated

    def resolve_created(self, set_id: str, index: int, external_task_id: str) -> PendingTaskSet:
        """Record that task *index* was created externally as *external_task_id*."""
        return self._resolve(set_id, index, Resolution.CREATED, external_task_id)

    def resolve_dismissed(self, set_id: str, index: int) -> PendingTaskSet:
        return self._resolve(set_id, index, Resolution.DISMISSED)

    def edit_candidate(self, set_id: str, index: int, fields: dict[str, Any]) -> PendingTaskSet:
        """Overwrite only the given editable fields of task *index*.

        Editing an already resolved task is not checked here; callers must
        not do it.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be edited: {sorted(unknown)}"
            raise ValueError(msg)

        def change(pending: PendingTaskSet) -> None:
            task = self._task_at(pending, index)
            pending.tasks[index] = PendingCandidate.model_validate({**task.model_dump(), **fields})

        return self._mutate(set_id, change)

    def mark_processing(self, set_id: str) -> PendingTaskSet:
        """Flag a bulk resolution in progress (no-op on a completed set)."""

        def change(pending: PendingTaskSet) -> None:
            if pending.status is not SetStatus.COMPLETED:
                pending.status = SetStatus.PROCESSING

        return self._mutate(set_id, change)

    def refresh_status(self, set_id: str) -> PendingTaskSet:
        """Recompute the set status from its tasks once a bulk run ends."""

        def change(pending: PendingTaskSet) -> None:
            pending.status = SetStatus.COMPLETED if pending.all_resolved() else SetStatus.PENDING

        return self._mutate(set_id, change)


def get_lifecycle_store() -> TaskLifecycleStore:
    """Lifecycle store backed by the configured Supabase project."""
    return TaskLifecycleStore(SupabaseDocumentStore())
