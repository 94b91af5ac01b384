"""Error taxonomy shared by the ingestion pipeline and the task lifecycle store."""

from __future__ import annotations


class TaskEngineError(Exception):
    """Base class for all engine errors."""


class ExtractionValidationError(TaskEngineError):
    """The extraction service returned data that does not match the analysis schema."""


class UpstreamUnavailableError(TaskEngineError):
    """An external collaborator (LLM, file source, task tracker) failed."""


class NotFoundError(TaskEngineError):
    """A pending task set or candidate index does not exist."""


class DuplicateIngestionError(TaskEngineError):
    """The file already has a pending task set."""

    def __init__(self, file_id: str) -> None:
        super().__init__(f"File {file_id!r} has already been ingested")
        self.file_id = file_id


class AlreadyResolvedError(TaskEngineError):
    """A candidate already has a terminal resolution."""

    def __init__(self, set_id: str, index: int, resolution: str) -> None:
        super().__init__(f"Task {index} in set {set_id!r} is already {resolution}")
        self.set_id = set_id
        self.index = index
        self.resolution = resolution


class ConcurrentModificationError(TaskEngineError):
    """Optimistic write kept losing to concurrent writers."""


class UnrecordedTaskError(TaskEngineError):
    """A tracker task was created but the candidate had been resolved meanwhile.

    The external task exists and nothing in the set references it; callers
    reconcile it by ``external_task_id``.
    """

    def __init__(self, set_id: str, index: int, external_task_id: str, url: str) -> None:
        super().__init__(
            f"Task {index} in set {set_id!r} was resolved while tracker task "
            f"{external_task_id} ({url}) was being created; it is not recorded"
        )
        self.set_id = set_id
        self.index = index
        self.external_task_id = external_task_id
        self.url = url
