"""Task-tracking service adapter: creates approved tasks in ClickUp."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from src.errors import UpstreamUnavailableError
from src.extraction.models import Priority, TaskCandidate

logger = logging.getLogger(__name__)

CLICKUP_API_URL = "https://api.clickup.com/api/v2"

# ClickUp priorities: 1 = urgent ... 4 = low
CLICKUP_PRIORITY: dict[Priority, int] = {
    Priority.URGENT: 1,
    Priority.HIGH: 2,
    Priority.NORMAL: 3,
    Priority.LOW: 4,
}

CONFIDENTIAL_MARKER = "[Confidential"


@dataclass
class TaskOrigin:
    """Where an approved task came from, for the external description."""

    meeting_title: str
    meeting_date: str
    folder_name: str


@dataclass
class CreatedTask:
    id: str
    url: str
    name: str


class TaskTracker(Protocol):
    def create_task(self, task: TaskCandidate, origin: TaskOrigin) -> CreatedTask: ...


def build_description(task: TaskCandidate, origin: TaskOrigin) -> str:
    """Task description followed by meeting context and extraction provenance."""
    parts = [
        task.description or task.title,
        "",
        "---",
        f"Meeting: {origin.meeting_title}",
        f"Date: {origin.meeting_date}",
        f"Folder: {origin.folder_name}",
    ]
    if task.source_quote and CONFIDENTIAL_MARKER not in task.source_quote:
        parts.append(f'Source: "{task.source_quote}"')
    parts.append(
        f"Extraction: {task.extraction_type.value} ({round(task.confidence * 100)}% confidence)"
    )
    return "\n".join(parts)


def _due_date_ms(iso_date: str) -> int:
    due = datetime.fromisoformat(iso_date).replace(tzinfo=UTC)
    return int(due.timestamp() * 1000)


class ClickUpTaskTracker:
    """Creates tasks in a single ClickUp list."""

    def __init__(
        self,
        api_key: str,
        list_id: str,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._list_id = list_id
        self._client = client or httpx.Client(
            base_url=CLICKUP_API_URL,
            headers={"Authorization": api_key, "Content-Type": "application/json"},
            timeout=timeout,
        )

    def build_payload(self, task: TaskCandidate, origin: TaskOrigin) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": task.title,
            "description": build_description(task, origin),
            "priority": CLICKUP_PRIORITY[task.priority],
        }
        if task.suggested_due:
            payload["due_date"] = _due_date_ms(task.suggested_due)
        # Form dropdowns send numeric member ids; free-text names are left for manual assignment
        if task.suggested_assignee and task.suggested_assignee.isdigit():
            payload["assignees"] = [int(task.suggested_assignee)]
        return payload

    def create_task(self, task: TaskCandidate, origin: TaskOrigin) -> CreatedTask:
        try:
            response = self._client.post(
                f"/list/{self._list_id}/task", json=self.build_payload(task, origin)
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"ClickUp task creation failed: {exc}") from exc

        data = response.json()
        logger.info("Created ClickUp task %s", data["id"])
        return CreatedTask(id=str(data["id"]), url=data.get("url", ""), name=data.get("name", task.title))
