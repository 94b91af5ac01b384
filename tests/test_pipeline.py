"""End-to-end tests for the ingestion pipeline with in-memory collaborators."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.errors import DuplicateIngestionError, NotFoundError, UpstreamUnavailableError
from src.extraction.models import ExtractionType, TaskCandidate
from src.ingestion.models import FileMetadata
from src.ingestion.pipeline import (
    CONFIDENTIAL_QUOTE,
    PipelineStatus,
    apply_folder_rules,
    filter_by_confidence,
    process_transcript,
)
from src.ingestion.sources import LocalDirectoryFileSource, StaticFileSource
from src.lifecycle.storage import InMemoryDocumentStore
from src.lifecycle.store import TaskLifecycleStore
from src.pipeline_config import FolderConfig, FoldersConfiguration, NotifyConfig, PipelineConfig

TRANSCRIPT = b"""WEBVTT

00:00:01.000 --> 00:00:05.000
<v Bob>Action item: Carol updates the pricing page by next Friday.</v>

00:00:06.000 --> 00:00:09.000
<v Alice>I might look into the flaky test at some point.</v>
"""

FOLDERS = FoldersConfiguration.model_validate(
    {
        "folders": [
            {"id": "eng", "name": "Engineering", "task_prefix": "[ENG]"},
            {
                "id": "hr",
                "name": "People Ops",
                "confidential": True,
                "always_notify_users": ["hr-lead"],
                "notify": {"type": "space", "space_id": "spaces/hr"},
            },
        ],
        "global_notify_users": ["ops-admin"],
    }
)
CONFIG = PipelineConfig(model="primary", fallback_model="fallback", folders=FOLDERS)


def _metadata(name: str = "Pricing Sync.vtt", **overrides: Any) -> FileMetadata:
    fields: dict[str, Any] = {
        "file_id": "file-1",
        "name": name,
        "created_at": "2026-02-03T10:00:00+00:00",
        "mime_type": "text/vtt",
        "owner": "bob@example.com",
    }
    fields.update(overrides)
    return FileMetadata(**fields)


def _analysis_payload() -> dict[str, Any]:
    return {
        "tasks": [
            {
                "title": "Update the pricing page",
                "description": "Refresh prices for the new plan",
                "suggested_assignee": "Carol",
                "suggested_due": "next Friday",
                "priority": "high",
                "source_quote": "Action item: Carol updates the pricing page by next Friday.",
                "confidence": 1.0,
                "extraction_type": "explicit",
            },
            {
                "title": "Investigate the flaky test",
                "source_quote": "I might look into the flaky test at some point.",
                "confidence": 0.4,
                "extraction_type": "implicit",
            },
        ],
        "meeting_summary": "Pricing update agreed.",
        "decisions": ["Launch the new plan"],
    }


def _client(payload: dict[str, Any] | None = None) -> MagicMock:
    client = MagicMock()
    client.complete.return_value = payload if payload is not None else _analysis_payload()
    return client


def _run(
    folder_id: str = "eng",
    *,
    metadata: FileMetadata | None = None,
    content: bytes = TRANSCRIPT,
    store: TaskLifecycleStore | None = None,
    client: MagicMock | None = None,
    notifier: Any = None,
) -> tuple[Any, TaskLifecycleStore, MagicMock]:
    store = store or TaskLifecycleStore(InMemoryDocumentStore())
    client = client or _client()
    metadata = metadata or _metadata()
    result = process_transcript(
        metadata.file_id,
        folder_id,
        file_source=StaticFileSource(metadata, content),
        store=store,
        client=client,
        config=CONFIG,
        notifier=notifier,
    )
    return result, store, client


class TestProcessTranscript:
    def test_creates_pending_set(self) -> None:
        result, store, client = _run()

        assert result.status is PipelineStatus.CREATED
        assert result.task_count == 1
        pending = store.get_set(result.pending_id)
        assert pending.file_id == "file-1"
        assert pending.folder_name == "Engineering"
        assert pending.meeting_title == "Pricing Sync"
        assert pending.summary == "Pricing update agreed."
        assert pending.decisions == ["Launch the new plan"]

        task = pending.tasks[0]
        assert task.title == "[ENG] Update the pricing page"
        assert task.suggested_due == "2026-02-06"
        assert task.source_quote.startswith("Action item")

    def test_prompt_carries_normalized_transcript_and_context(self) -> None:
        _, _, client = _run()

        user_prompt = client.complete.call_args.args[1]
        assert "Title: Pricing Sync" in user_prompt
        assert "Source Folder: Engineering" in user_prompt
        assert "Attendees: Alice, Bob" in user_prompt
        assert "Bob: Action item: Carol updates the pricing page" in user_prompt
        assert "-->" not in user_prompt

    def test_duplicate_file_rejected_before_extraction(self) -> None:
        _, store, _ = _run()
        client = _client()

        with pytest.raises(DuplicateIngestionError):
            _run(store=store, client=client)
        client.complete.assert_not_called()

    def test_non_transcript_skipped(self) -> None:
        metadata = _metadata(name="deck.pdf", mime_type="application/pdf")
        result, store, client = _run(metadata=metadata)

        assert result.status is PipelineStatus.SKIPPED
        assert result.reason == "not a transcript"
        assert result.pending_id is None
        assert store.stats()["total"] == 0
        client.complete.assert_not_called()

    def test_nothing_above_threshold_stores_nothing(self) -> None:
        payload = _analysis_payload()
        payload["tasks"] = payload["tasks"][1:]
        result, store, _ = _run(client=_client(payload))

        assert result.status is PipelineStatus.SKIPPED
        assert result.reason == "no tasks above threshold"
        assert not store.is_file_already_ingested("file-1")

    def test_extraction_failure_stores_nothing(self) -> None:
        client = MagicMock()
        client.complete.side_effect = UpstreamUnavailableError("down")
        store = TaskLifecycleStore(InMemoryDocumentStore())

        with pytest.raises(UpstreamUnavailableError):
            _run(store=store, client=client)
        assert client.complete.call_count == 2
        assert store.stats()["total"] == 0

    def test_source_failure_is_upstream_unavailable(self) -> None:
        source = MagicMock()
        source.fetch_metadata.return_value = _metadata()
        source.fetch_content.side_effect = OSError("drive unreachable")

        with pytest.raises(UpstreamUnavailableError, match="drive unreachable"):
            process_transcript(
                "file-1",
                "eng",
                file_source=source,
                store=TaskLifecycleStore(InMemoryDocumentStore()),
                client=_client(),
                config=CONFIG,
            )

    def test_unknown_file_id_is_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            process_transcript(
                "other-file",
                "eng",
                file_source=StaticFileSource(_metadata(), TRANSCRIPT),
                store=TaskLifecycleStore(InMemoryDocumentStore()),
                client=_client(),
                config=CONFIG,
            )

    def test_confidential_folder_redacts_quotes(self) -> None:
        result, store, _ = _run("hr")

        task = store.get_set(result.pending_id).tasks[0]
        assert task.title == "Update the pricing page"
        assert task.source_quote == CONFIDENTIAL_QUOTE
        assert task.description == task.title

    def test_unknown_folder_uses_defaults(self) -> None:
        result, store, _ = _run("somewhere-else")
        pending = store.get_set(result.pending_id)
        assert pending.folder_name == "Unknown Folder"
        assert pending.tasks[0].title == "Update the pricing page"


class TestNotification:
    def test_recipients_include_owner_for_dm_folders(self) -> None:
        notifier = MagicMock()
        result, _, _ = _run(notifier=notifier)

        pending, recipients, folder = notifier.notify.call_args.args
        assert pending.id == result.pending_id
        assert recipients == ["ops-admin", "bob@example.com"]
        assert folder.id == "eng"

    def test_space_folders_skip_owner(self) -> None:
        notifier = MagicMock()
        _run("hr", notifier=notifier)

        _, recipients, folder = notifier.notify.call_args.args
        assert recipients == ["ops-admin", "hr-lead"]
        assert folder.notify == NotifyConfig(type="space", space_id="spaces/hr")

    def test_notifier_failure_keeps_set(self, caplog: pytest.LogCaptureFixture) -> None:
        notifier = MagicMock()
        notifier.notify.side_effect = RuntimeError("chat API down")

        with caplog.at_level(logging.ERROR, logger="src.ingestion.pipeline"):
            result, store, _ = _run(notifier=notifier)

        assert result.status is PipelineStatus.CREATED
        assert store.is_file_already_ingested("file-1")
        assert "Failed to send approval request" in caplog.text


class TestFilters:
    @staticmethod
    def _task(confidence: float, extraction_type: str = "implicit") -> TaskCandidate:
        return TaskCandidate(
            title=f"Task at {confidence}", confidence=confidence, extraction_type=extraction_type
        )

    def test_threshold_is_inclusive(self) -> None:
        tasks = [self._task(0.69), self._task(0.7), self._task(0.95)]
        kept = filter_by_confidence(tasks, 0.7)
        assert [t.confidence for t in kept] == [0.7, 0.95]

    def test_explicit_always_kept(self) -> None:
        explicit = self._task(0.1, "explicit")
        assert filter_by_confidence([explicit], 0.99) == [explicit]
        assert explicit.extraction_type is ExtractionType.EXPLICIT

    def test_folder_prefix(self) -> None:
        folder = FolderConfig(id="eng", name="Engineering", task_prefix="[ENG]")
        (task,) = apply_folder_rules([self._task(0.9)], folder)
        assert task.title == "[ENG] Task at 0.9"

    def test_folder_rules_do_not_mutate_input(self) -> None:
        original = self._task(0.9)
        folder = FolderConfig(id="hr", name="HR", task_prefix="[HR]", confidential=True)
        apply_folder_rules([original], folder)
        assert original.title == "Task at 0.9"


class TestLocalDirectoryFileSource:
    def test_reads_file_and_metadata(self, tmp_path: Path) -> None:
        (tmp_path / "standup.vtt").write_bytes(TRANSCRIPT)
        source = LocalDirectoryFileSource(tmp_path)

        metadata = source.fetch_metadata("standup.vtt")
        assert metadata.name == "standup.vtt"
        assert metadata.created_at[:4].isdigit()
        assert source.fetch_content("standup.vtt") == TRANSCRIPT

    def test_path_outside_root_not_found(self, tmp_path: Path) -> None:
        (tmp_path / "inner").mkdir()
        (tmp_path / "secret.txt").write_text("nope")
        source = LocalDirectoryFileSource(tmp_path / "inner")

        with pytest.raises(NotFoundError):
            source.fetch_content("../secret.txt")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            LocalDirectoryFileSource(tmp_path).fetch_metadata("absent.txt")

    def test_pipeline_over_directory(self, tmp_path: Path) -> None:
        (tmp_path / "Retro.txt").write_text("Alice: I'll update the pricing page.\n")
        store = TaskLifecycleStore(InMemoryDocumentStore())

        result = process_transcript(
            "Retro.txt",
            "eng",
            file_source=LocalDirectoryFileSource(tmp_path),
            store=store,
            client=_client(),
            config=CONFIG,
        )

        assert store.get_set(result.pending_id).meeting_title == "Retro"

