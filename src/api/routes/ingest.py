"""Ingest endpoint: upload a transcript and turn it into a pending task set."""

from __future__ import annotations

import asyncio
import hashlib
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from src.api.models import IngestResponse
from src.config import settings
from src.extraction.llm import get_extraction_client
from src.ingestion.models import FileMetadata
from src.ingestion.pipeline import process_transcript
from src.ingestion.sources import StaticFileSource
from src.lifecycle.store import get_lifecycle_store
from src.pipeline_config import get_pipeline_config

router = APIRouter()

# 20 MB upload limit
MAX_UPLOAD_BYTES = 20 * 1024 * 1024


@router.post("/api/ingest", response_model=IngestResponse)
async def ingest(
    file: Annotated[UploadFile, File(...)],
    folder_id: Annotated[str, Form()] = "uploads",
    file_id: Annotated[str | None, Form()] = None,
    meeting_date: Annotated[str | None, Form()] = None,
    owner: Annotated[str | None, Form()] = None,
) -> IngestResponse:
    """Upload a transcript file (.txt, .vtt, .srt) and extract task candidates.

    ``file_id`` defaults to the SHA-256 of the upload, so uploading the same
    bytes twice is rejected as a duplicate (409).  ``meeting_date`` is the
    reference date for relative due dates and defaults to today (UTC).
    """
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)} MB.",
        )

    resolved_id = file_id or hashlib.sha256(raw).hexdigest()
    metadata = FileMetadata(
        file_id=resolved_id,
        name=file.filename or "transcript.txt",
        created_at=meeting_date or datetime.now(UTC).date().isoformat(),
        mime_type=file.content_type or "text/plain",
        owner=owner,
    )

    # Extraction is synchronous and slow; keep it off the event loop.
    result = await asyncio.to_thread(
        process_transcript,
        resolved_id,
        folder_id,
        file_source=StaticFileSource(metadata, raw),
        store=get_lifecycle_store(),
        client=get_extraction_client(settings),
        config=get_pipeline_config(),
    )

    return IngestResponse(
        file_id=resolved_id,
        status=result.status,
        pending_id=result.pending_id,
        task_count=result.task_count,
        reason=result.reason,
    )
