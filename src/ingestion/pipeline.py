"""End-to-end ingestion pipeline: fetch -> parse -> extract -> filter -> store -> notify."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeVar

from src.errors import DuplicateIngestionError, TaskEngineError, UpstreamUnavailableError
from src.extraction.extractor import extract_tasks
from src.extraction.llm import ExtractionClient
from src.extraction.models import ExtractionType, MeetingContext, TaskCandidate
from src.ingestion.parsers import decode_transcript, is_valid_transcript, parse_transcript
from src.ingestion.sources import FileSource
from src.lifecycle.models import PendingTaskSet
from src.lifecycle.store import TaskLifecycleStore
from src.pipeline_config import FolderConfig, PipelineConfig

logger = logging.getLogger(__name__)

CONFIDENTIAL_QUOTE = "[Confidential - see transcript]"
_TRANSCRIPT_SUFFIX_RE = re.compile(r"\.(txt|docx|vtt|srt|doc)$", re.IGNORECASE)

T = TypeVar("T")


class Notifier(Protocol):
    """Delivers approval requests for a stored set to humans."""

    def notify(self, pending: PendingTaskSet, recipients: list[str], folder: FolderConfig) -> None: ...


class PipelineStatus(StrEnum):
    CREATED = "created"
    SKIPPED = "skipped"


@dataclass
class PipelineResult:
    status: PipelineStatus
    pending_id: str | None = None
    task_count: int = 0
    reason: str = ""


def filter_by_confidence(tasks: list[TaskCandidate], threshold: float) -> list[TaskCandidate]:
    """Keep explicit tasks and implicit tasks at or above *threshold*."""
    return [
        task
        for task in tasks
        if task.extraction_type is ExtractionType.EXPLICIT or task.confidence >= threshold
    ]


def apply_folder_rules(tasks: list[TaskCandidate], folder: FolderConfig) -> list[TaskCandidate]:
    """Prefix titles with the folder prefix; redact quotes for confidential folders."""
    result = []
    for task in tasks:
        title = f"{folder.task_prefix} {task.title}" if folder.task_prefix else task.title
        update: dict[str, str] = {"title": title}
        if folder.confidential:
            update["source_quote"] = CONFIDENTIAL_QUOTE
            update["description"] = title
        result.append(task.model_copy(update=update))
    return result


def _from_source(what: str, file_id: str, fetch: Callable[[], T]) -> T:
    try:
        return fetch()
    except TaskEngineError:
        raise
    except Exception as exc:
        raise UpstreamUnavailableError(f"Could not fetch {what} for file {file_id}: {exc}") from exc


def process_transcript(
    file_id: str,
    folder_id: str,
    *,
    file_source: FileSource,
    store: TaskLifecycleStore,
    client: ExtractionClient,
    config: PipelineConfig,
    notifier: Notifier | None = None,
) -> PipelineResult:
    """Turn one transcript file into a pending task set awaiting approval.

    Nothing is persisted unless extraction succeeds and at least one task
    passes the confidence filter.

    Args:
        file_id: Identifier understood by *file_source*.
        folder_id: Folder the file was delivered from (selects routing rules).
        file_source: Supplies metadata and raw content.
        store: Lifecycle store receiving the new set.
        client: Extraction service client.
        config: Injected pipeline configuration.
        notifier: Optional approval-request channel.

    Returns:
        A PipelineResult describing the created set or why the file was skipped.

    Raises:
        DuplicateIngestionError: The file already has a set.
        UpstreamUnavailableError: File source or extraction service failed.
        ExtractionValidationError: Extraction responses did not match the schema.
    """
    if store.is_file_already_ingested(file_id):
        logger.info("File %s has already been processed, skipping", file_id)
        raise DuplicateIngestionError(file_id)

    folder = config.folders.get(folder_id)
    logger.info("Processing file %s from folder %s", file_id, folder.name)

    metadata = _from_source("metadata", file_id, lambda: file_source.fetch_metadata(file_id))
    if not is_valid_transcript(metadata):
        logger.info("File %s (%s) is not a transcript, skipping", file_id, metadata.name)
        return PipelineResult(status=PipelineStatus.SKIPPED, reason="not a transcript")

    raw = _from_source("content", file_id, lambda: file_source.fetch_content(file_id))
    transcript = parse_transcript(decode_transcript(raw))

    context = MeetingContext(
        title=_TRANSCRIPT_SUFFIX_RE.sub("", metadata.name),
        date=metadata.created_at,
        folder_name=folder.name,
        attendees=sorted(transcript.attendees),
    )
    logger.info(
        "Meeting %s (%s format), %d attendees",
        context.title,
        transcript.format.value,
        len(context.attendees),
    )

    analysis = extract_tasks(transcript.content, context, client, config)
    logger.info("Found %d tasks", len(analysis.tasks))

    kept = filter_by_confidence(analysis.tasks, config.confidence_threshold)
    logger.info(
        "Filtered %d tasks to %d (threshold: %s)",
        len(analysis.tasks),
        len(kept),
        config.confidence_threshold,
    )
    if not kept:
        return PipelineResult(status=PipelineStatus.SKIPPED, reason="no tasks above threshold")

    pending = store.create_set(
        file_id,
        folder_id,
        context,
        analysis,
        tasks=apply_folder_rules(kept, folder),
        folder_name=folder.name,
    )

    if notifier is not None:
        recipients = config.folders.notify_users(folder_id)
        if folder.notify.type == "dm_owner" and metadata.owner and metadata.owner not in recipients:
            recipients.append(metadata.owner)
        try:
            notifier.notify(pending, recipients, folder)
        except Exception:
            # The set is stored; approvals can still be reached through the API
            logger.exception("Failed to send approval request for set %s", pending.id)

    return PipelineResult(
        status=PipelineStatus.CREATED,
        pending_id=pending.id,
        task_count=len(pending.tasks),
    )
