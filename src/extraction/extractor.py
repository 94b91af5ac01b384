"""LLM-powered extraction of task candidates, decisions, and a summary from transcripts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from pydantic import ValidationError

from src.errors import ExtractionValidationError, UpstreamUnavailableError
from src.extraction.dates import is_iso_date, resolve_date
from src.extraction.llm import ExtractionClient
from src.extraction.merge import merge_analyses
from src.extraction.models import MeetingAnalysis, MeetingContext
from src.ingestion.chunking import plan_chunks
from src.pipeline_config import PipelineConfig

logger = logging.getLogger(__name__)

ANALYSIS_SCHEMA: dict[str, Any] = MeetingAnalysis.model_json_schema()

SYSTEM_PROMPT = """\
You are an expert meeting analyst who extracts actionable tasks from meeting transcripts. \
Your job is to identify both explicit task callouts and implicit action items.

## Explicit Task Patterns (confidence: 1.0)
These patterns indicate someone is explicitly creating a task:
- "Create task [name] for [person] due [date]"
- "Task for [person]: [description] by [date]"
- "Action item: [task] assigned to [person]"
- "[Person], can you [task] by [date]"
- "Let's make that a task for [person]"
- "I'll take an action item to [task]"

## Implicit Task Detection (confidence: varies)
These are commitments made naturally in conversation:
- "[Person] will [action]" or "I'll [action]"
- "Let me follow up on [topic]"
- Promises: "I can have that ready by..."
- Clear next steps: "The next step is..."
- Requests with deadlines: "We need this done by..."

## Priority Guidelines
- urgent: "urgent", "ASAP", "critical", "immediately", "blocker"
- high: important but not urgent, "important", "priority", "soon"
- normal: standard tasks without urgency indicators
- low: "when you get a chance", "eventually", "low priority"

## Date Resolution
When dates are mentioned relatively, resolve them against the meeting date provided \
and return YYYY-MM-DD. If you cannot resolve a date, return the phrase exactly as spoken.

## Guidelines
1. Quote the exact transcript text where each task was identified.
2. Use assignee names exactly as mentioned.
3. Explicit callouts always have confidence 1.0.
4. Implicit tasks get a confidence reflecting how clear the commitment is.
5. Do not create duplicate tasks; consolidate repeated mentions.
6. Focus on actionable items, not general discussion.

Use the provided schema to return tasks, a 2-3 sentence meeting summary, and key decisions."""


def build_user_prompt(transcript: str, context: MeetingContext) -> str:
    """Build the user prompt with meeting context."""
    attendees = ", ".join(context.attendees) if context.attendees else "Not specified"
    return (
        "Analyze the following meeting transcript and extract all tasks.\n\n"
        "## Meeting Information\n"
        f"- Title: {context.title}\n"
        f"- Date: {context.date}\n"
        f"- Source Folder: {context.folder_name or 'Not specified'}\n"
        f"- Attendees: {attendees}\n\n"
        "## Transcript\n"
        f"{transcript}\n\n"
        "Identify all explicit task callouts and implicit action items. For each task give "
        "the title, description, suggested assignee, due date (if mentioned), priority, the "
        "exact source quote, your confidence, and whether it was explicit or implicit."
    )


def _call_model(client: ExtractionClient, user_prompt: str, model: str) -> MeetingAnalysis:
    data = client.complete(SYSTEM_PROMPT, user_prompt, ANALYSIS_SCHEMA, model)
    try:
        return MeetingAnalysis.model_validate(data)
    except ValidationError as exc:
        raise ExtractionValidationError(
            f"{model} returned a response that does not match the analysis schema: {exc}"
        ) from exc


def post_process_analysis(analysis: MeetingAnalysis, meeting_date: str) -> MeetingAnalysis:
    """Resolve relative due dates; unresolvable phrases become ``None``."""
    tasks = []
    for task in analysis.tasks:
        if task.suggested_due and not is_iso_date(task.suggested_due):
            resolved = resolve_date(task.suggested_due, meeting_date)
            if resolved is None:
                logger.debug("Dropping unresolvable due date %r", task.suggested_due)
            task = task.model_copy(update={"suggested_due": resolved})
        tasks.append(task)
    return analysis.model_copy(update={"tasks": tasks})


def _extract_single(
    content: str,
    context: MeetingContext,
    client: ExtractionClient,
    config: PipelineConfig,
) -> MeetingAnalysis:
    """One extraction call, retried exactly once against the fallback model."""
    user_prompt = build_user_prompt(content, context)
    try:
        analysis = _call_model(client, user_prompt, config.model)
    except (ExtractionValidationError, UpstreamUnavailableError) as exc:
        logger.warning(
            "Extraction with %s failed (%s); retrying with %s", config.model, exc, config.fallback_model
        )
        analysis = _call_model(client, user_prompt, config.fallback_model)
    return post_process_analysis(analysis, context.date)


def extract_tasks(
    content: str,
    context: MeetingContext,
    client: ExtractionClient,
    config: PipelineConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> MeetingAnalysis:
    """Extract tasks, summary and decisions from a normalized transcript.

    Transcripts longer than ``config.max_chars_per_chunk`` are split into
    chunks that are extracted one at a time (with a fixed delay between calls
    to respect provider rate limits) and merged.

    Args:
        content: Normalized transcript text.
        context: Meeting title, reference date, folder name and attendees.
        client: Extraction service client.
        config: Models, chunk size and inter-chunk delay.
        sleep: Delay function (injected in tests).

    Returns:
        The consolidated MeetingAnalysis.

    Raises:
        ExtractionValidationError: Both primary and fallback responses were malformed.
        UpstreamUnavailableError: The fallback call failed.
    """
    if len(content) <= config.max_chars_per_chunk:
        return _extract_single(content, context, client, config)

    chunks = plan_chunks(content, config.max_chars_per_chunk)
    if len(chunks) == 1:
        # A single over-long line cannot be split further
        return _extract_single(content, context, client, config)

    logger.info("Splitting transcript into %d chunks for processing", len(chunks))
    results: list[MeetingAnalysis] = []
    for i, chunk in enumerate(chunks, start=1):
        logger.info("Processing chunk %d/%d", i, len(chunks))
        chunk_context = replace(context, title=f"{context.title} (Part {i}/{len(chunks)})")
        results.append(extract_tasks(chunk, chunk_context, client, config, sleep))
        if i < len(chunks):
            sleep(config.chunk_delay_seconds)

    return merge_analyses(results)
