"""Merge per-chunk analyses into one, deduplicating tasks by title similarity."""

from __future__ import annotations

from src.extraction.models import ExtractionType, MeetingAnalysis, TaskCandidate

# Shared tokens / smaller token set must exceed this for two titles to match
TOKEN_OVERLAP_THRESHOLD = 0.7


def normalize_title(title: str) -> str:
    return title.lower().strip()


def titles_similar(title1: str, title2: str) -> bool:
    """Return True if two normalized titles describe the same task.

    Titles match when equal, when one contains the other, or when their
    word sets overlap by more than 70% of the smaller set.
    """
    if title1 == title2:
        return True
    if title1 in title2 or title2 in title1:
        return True

    words1 = set(title1.split())
    words2 = set(title2.split())
    smaller = min(len(words1), len(words2))
    if smaller == 0:
        return False
    return len(words1 & words2) / smaller > TOKEN_OVERLAP_THRESHOLD


def _outranks(candidate: TaskCandidate, incumbent: TaskCandidate) -> bool:
    if candidate.confidence != incumbent.confidence:
        return candidate.confidence > incumbent.confidence
    return (
        candidate.extraction_type is ExtractionType.EXPLICIT
        and incumbent.extraction_type is ExtractionType.IMPLICIT
    )


def deduplicate_tasks(tasks: list[TaskCandidate]) -> list[TaskCandidate]:
    """Collapse similar tasks, keeping the strongest of each group.

    Tasks are processed in order.  A task similar to an already kept one
    replaces it only if it has higher confidence, or the same confidence and
    is explicit where the kept one is implicit; otherwise the earlier task
    stays.  A replacement moves to the end of the output, so the result is
    ordered by when each surviving task was kept.
    """
    kept: dict[str, TaskCandidate] = {}

    for task in tasks:
        key = normalize_title(task.title)
        duplicate_of = next((k for k in kept if titles_similar(key, k)), None)
        if duplicate_of is None:
            kept[key] = task
            continue
        if _outranks(task, kept[duplicate_of]):
            del kept[duplicate_of]
            kept[key] = task

    return list(kept.values())


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def merge_analyses(results: list[MeetingAnalysis]) -> MeetingAnalysis:
    """Consolidate chunk analyses into a single analysis.

    A single result is returned unchanged.  Decisions are deduplicated by exact
    text (first seen wins) and summaries are joined into one narrative.
    """
    if len(results) == 1:
        return results[0]
    if not results:
        return MeetingAnalysis()

    all_tasks: list[TaskCandidate] = []
    all_decisions: list[str] = []
    summaries: list[str] = []
    for result in results:
        all_tasks.extend(result.tasks)
        all_decisions.extend(result.decisions)
        if result.meeting_summary.strip():
            summaries.append(result.meeting_summary.strip())

    return MeetingAnalysis(
        tasks=deduplicate_tasks(all_tasks),
        meeting_summary="Meeting covered multiple topics. " + " ".join(summaries),
        decisions=_unique(all_decisions),
    )
