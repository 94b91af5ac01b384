"""Resolve relative due-date phrases ("next Friday", "eom", "Q1") to ISO dates.

Resolution is relative to the meeting date, in the transcript's own calendar;
no timezone conversion is performed.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections.abc import Callable
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

MONTHS: dict[str, int] = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WEEKDAY = "(" + "|".join(WEEKDAYS) + ")"
_MONTH = "(" + "|".join(MONTHS) + ")"


def is_iso_date(value: str) -> bool:
    """Return True if *value* is already a ``YYYY-MM-DD`` date."""
    return bool(_ISO_DATE_RE.match(value))


def _end_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _next_weekday(ref: date, weekday: int) -> date:
    """Next occurrence of *weekday* strictly after *ref* (same day -> +7)."""
    days = (weekday - ref.weekday()) % 7
    return ref + timedelta(days=days or 7)


def _this_weekday(ref: date, weekday: int) -> date:
    """*weekday* within the Monday-start week containing *ref* (may be in the past)."""
    return ref - timedelta(days=ref.weekday()) + timedelta(days=weekday)


def _end_of_quarter(ref: date) -> date:
    end_month = (ref.month - 1) // 3 * 3 + 3
    return _end_of_month(ref.year, end_month)


def _quarter_end(ref: date, quarter: int) -> date:
    end_month = quarter * 3
    year = ref.year + 1 if end_month < ref.month else ref.year
    return _end_of_month(year, end_month)


def _month_end(ref: date, month: int) -> date:
    year = ref.year + 1 if month < ref.month else ref.year
    return _end_of_month(year, month)


# (pattern, resolver(match, reference)) in priority order; first match wins.
_RESOLVERS: tuple[tuple[re.Pattern[str], Callable[[re.Match[str], date], date]], ...] = (
    (re.compile(r"^tomorrow$"), lambda m, ref: ref + timedelta(days=1)),
    (
        re.compile(rf"^next\s+{_WEEKDAY}$"),
        lambda m, ref: _next_weekday(ref, WEEKDAYS[m.group(1)]),
    ),
    (
        re.compile(rf"^this\s+{_WEEKDAY}$"),
        lambda m, ref: _this_weekday(ref, WEEKDAYS[m.group(1)]),
    ),
    (
        re.compile(r"^(?:end\s+of\s+(?:the\s+)?week|eow)$"),
        lambda m, ref: _next_weekday(ref, WEEKDAYS["friday"]),
    ),
    (
        re.compile(r"^(?:end\s+of\s+(?:the\s+)?month|eom)$"),
        lambda m, ref: _end_of_month(ref.year, ref.month),
    ),
    (re.compile(r"^(?:end\s+of\s+(?:the\s+)?quarter|eoq)$"), lambda m, ref: _end_of_quarter(ref)),
    (re.compile(r"^in\s+(\d+)\s+days?$"), lambda m, ref: ref + timedelta(days=int(m.group(1)))),
    (re.compile(r"^in\s+(\d+)\s+weeks?$"), lambda m, ref: ref + timedelta(weeks=int(m.group(1)))),
    (re.compile(r"^in\s+a\s+week$"), lambda m, ref: ref + timedelta(weeks=1)),
    (re.compile(r"^in\s+two\s+weeks$"), lambda m, ref: ref + timedelta(weeks=2)),
    (re.compile(r"^next\s+week$"), lambda m, ref: ref + timedelta(weeks=1)),
    (re.compile(r"^q([1-4])$"), lambda m, ref: _quarter_end(ref, int(m.group(1)))),
    # "Do it now" phrases land on the next day, not the meeting day itself
    (
        re.compile(r"^(?:asap|immediately|right\s+away|urgent)$"),
        lambda m, ref: ref + timedelta(days=1),
    ),
    (
        re.compile(rf"^by\s+{_WEEKDAY}$"),
        lambda m, ref: _next_weekday(ref, WEEKDAYS[m.group(1)]),
    ),
    (
        re.compile(rf"^(?:(?:by|in)\s+)?{_MONTH}$"),
        lambda m, ref: _month_end(ref, MONTHS[m.group(1)]),
    ),
)


def _coerce_reference(reference: date | datetime | str) -> date | None:
    if isinstance(reference, datetime):
        return reference.date()
    if isinstance(reference, date):
        return reference
    text = reference.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def resolve_date(expression: str, reference: date | datetime | str) -> str | None:
    """Resolve a relative date *expression* against the meeting *reference* date.

    Args:
        expression: Free-form phrase from the transcript, e.g. ``"next Friday"``.
        reference: Meeting date as a ``date``, ``datetime`` or ISO string
            (a datetime string is truncated to its date part).

    Returns:
        ``YYYY-MM-DD``, or ``None`` if the phrase matches no known pattern,
        the reference date is invalid or the result falls outside the calendar.
    """
    ref = _coerce_reference(reference)
    if ref is None:
        logger.warning("Invalid meeting date: %r", reference)
        return None

    normalized = " ".join(expression.lower().split())
    for pattern, resolver in _RESOLVERS:
        match = pattern.match(normalized)
        if match:
            try:
                return resolver(match, ref).isoformat()
            except (OverflowError, ValueError):
                logger.warning("Due date %r out of range from %s", expression, ref)
                return None
    return None
