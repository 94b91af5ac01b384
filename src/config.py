from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process-wide settings for the task engine.

    Read from environment variables, then a local .env file. Every key is
    optional so the core can run (and be tested) without credentials.
    """

    # Provider credentials
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    clickup_api_key: str = ""  # Optional; task creation endpoints return 501 if absent

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    pending_table: str = "pending_task_sets"

    # Extraction
    llm_provider: str = "anthropic"  # "anthropic" or "openai"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_fallback_model: str = "claude-3-5-haiku-20241022"
    max_chars_per_chunk: int = 400_000
    chunk_delay_seconds: float = 1.0
    confidence_threshold: float = 0.7

    # Routing
    folders_config_path: str = "config/folders.json"
    clickup_list_id: str = ""

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for this process, built once.

    An unreadable .env file is ignored in favour of the environment.
    """
    try:
        return Settings()
    except Exception:
        return Settings(_env_file=None)  # type: ignore[call-arg]


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging once for the API process and CLI scripts."""
    logging.basicConfig(
        level=level if isinstance(level, int) else level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


settings = get_settings()
