"""Pipeline configuration: provider enum, folder routing, and PipelineConfig dataclass."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from src.config import Settings, get_settings

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Available extraction service providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class NotifyConfig(BaseModel):
    """Where approval requests for a folder are delivered."""

    type: Literal["space", "dm_owner"] = "dm_owner"
    space_id: str | None = None


class FolderConfig(BaseModel):
    """Per-folder routing: display name, task title prefix, confidentiality."""

    id: str
    name: str
    task_prefix: str = ""
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
    confidential: bool = False
    always_notify_users: list[str] = Field(default_factory=list)


class FolderDefaults(BaseModel):
    """Settings applied to folders that are not explicitly configured."""

    task_prefix: str = ""
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
    confidential: bool = False
    always_notify_users: list[str] = Field(default_factory=list)


class FoldersConfiguration(BaseModel):
    """Folder routing table, loaded once at startup."""

    folders: list[FolderConfig] = Field(default_factory=list)
    defaults: FolderDefaults = Field(default_factory=FolderDefaults)
    global_notify_users: list[str] = Field(default_factory=list)

    def get(self, folder_id: str) -> FolderConfig:
        """Return the folder's config, or the defaults under ``"Unknown Folder"``."""
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        logger.warning("Unknown folder ID %s, using default config", folder_id)
        return FolderConfig(id=folder_id, name="Unknown Folder", **self.defaults.model_dump())

    def notify_users(self, folder_id: str) -> list[str]:
        """Global plus folder-specific notify users, deduplicated in order."""
        folder = self.get(folder_id)
        return list(dict.fromkeys([*self.global_notify_users, *folder.always_notify_users]))


def load_folders_config(path: str | Path) -> FoldersConfiguration:
    """Load the folder routing table from JSON; a missing file yields an empty table."""
    config_path = Path(path)
    if not config_path.exists():
        logger.info("No folders config at %s, using defaults", config_path)
        return FoldersConfiguration()
    data = json.loads(config_path.read_text(encoding="utf-8"))
    return FoldersConfiguration.model_validate(data)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for the ingestion pipeline.

    Passed explicitly into the pipeline so the core never reads ambient
    settings.  Defaults mirror the production settings.
    """

    model: str = "claude-sonnet-4-20250514"
    fallback_model: str = "claude-3-5-haiku-20241022"
    max_chars_per_chunk: int = 400_000
    chunk_delay_seconds: float = 1.0
    confidence_threshold: float = 0.7
    folders: FoldersConfiguration = field(default_factory=FoldersConfiguration)

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        return cls(
            model=settings.llm_model,
            fallback_model=settings.llm_fallback_model,
            max_chars_per_chunk=settings.max_chars_per_chunk,
            chunk_delay_seconds=settings.chunk_delay_seconds,
            confidence_threshold=settings.confidence_threshold,
            folders=load_folders_config(settings.folders_config_path),
        )


@lru_cache(maxsize=1)
def get_pipeline_config() -> PipelineConfig:
    """Pipeline configuration built once from the process settings."""
    return PipelineConfig.from_settings(get_settings())
