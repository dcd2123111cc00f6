"""Recurring appointment expansion.

Turns a single appointment (anchor date-time, inclusive ``until`` date and a
daily/weekly/monthly frequency) into the ordered list of concrete occurrence
timestamps. Every occurrence keeps the anchor's time-of-day.

The expander trusts its input; callers run ``validate_recurrence_request``
first so malformed input is rejected before any create request goes out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Union

from dateutil.relativedelta import relativedelta

from stratflow_lite.exceptions import RecurrenceValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 250


class Frequency(str, Enum):
    """Supported recurrence cadences."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Union[str, "Frequency"]) -> "Frequency":
        """Parse a frequency name case-insensitively.

        Raises:
            RecurrenceValidationError: If the value is not a known frequency
        """
        if isinstance(value, Frequency):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(f.value for f in cls)
        raise RecurrenceValidationError(f"Unsupported frequency {value!r}; expected one of {allowed}")


@dataclass(frozen=True)
class RecurrenceRequest:
    """Validated recurrence input.

    ``until`` is an inclusive calendar-date bound.
    """

    anchor: datetime
    until: date
    frequency: Frequency


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def _step(anchor: datetime, frequency: Frequency, index: int) -> datetime:
    """Return the ``index``-th cursor position counted from the anchor.

    Monthly steps are always taken from the anchor so that a month-end anchor
    clamps per month (Jan 31 -> Feb 29 -> Mar 31) instead of drifting.
    """
    if frequency is Frequency.DAILY:
        return anchor + timedelta(days=index)
    if frequency is Frequency.WEEKLY:
        return anchor + timedelta(weeks=index)
    return anchor + relativedelta(months=index)


def _with_anchor_time(value: datetime, anchor: datetime) -> datetime:
    return value.replace(
        hour=anchor.hour,
        minute=anchor.minute,
        second=anchor.second,
        microsecond=anchor.microsecond,
    )


def expand_occurrences(
    anchor: datetime,
    until: Union[date, datetime],
    frequency: Union[str, Frequency],
) -> list[datetime]:
    """Expand a recurrence into concrete occurrence timestamps.

    Anchor-only contract: when the anchor falls after ``until`` the result is
    ``[anchor]``, so the series always has a first occurrence.

    Monthly occurrences clamp to the last day of shorter months (Jan 31 ->
    Feb 29 -> Mar 31). This intentionally differs from JavaScript's
    ``Date.setMonth``, which overflows into the next month (Jan 31 -> Mar 2)
    and then drifts.

    Args:
        anchor: First occurrence (date and time-of-day)
        until: Inclusive upper bound; a datetime contributes only its date
        frequency: daily, weekly or monthly

    Returns:
        Non-empty, strictly increasing list of datetimes
    """
    freq = Frequency.parse(frequency)
    bound = _as_date(until)

    if anchor.date() > bound:
        logger.debug("Anchor %s is after %s; returning anchor only", anchor.isoformat(), bound)
        return [anchor]

    occurrences: list[datetime] = []
    index = 0
    cursor = anchor
    while cursor.date() <= bound:
        occurrences.append(_with_anchor_time(cursor, anchor))
        index += 1
        cursor = _step(anchor, freq, index)

    logger.debug(
        "Expanded %s recurrence from %s to %s: %d occurrences",
        freq.value,
        anchor.isoformat(),
        bound.isoformat(),
        len(occurrences),
    )
    return occurrences


def count_occurrences(anchor: datetime, until: Union[date, datetime], frequency: Union[str, Frequency]) -> int:
    """Number of occurrences ``expand_occurrences`` would produce, computed without expanding."""
    freq = Frequency.parse(frequency)
    bound = _as_date(until)
    start = anchor.date()
    if start > bound:
        return 1

    days = (bound - start).days
    if freq is Frequency.DAILY:
        return days + 1
    if freq is Frequency.WEEKLY:
        return days // 7 + 1

    months = (bound.year - start.year) * 12 + (bound.month - start.month)
    if _step(anchor, freq, months).date() > bound:
        months -= 1
    return months + 1


def validate_recurrence_request(
    anchor: Any,
    until: Any,
    frequency: Any,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> RecurrenceRequest:
    """Validate recurrence input before expansion.

    Args:
        anchor: First occurrence; must be a datetime
        until: Inclusive bound; must be a date or datetime
        frequency: Frequency name or enum member
        max_occurrences: Largest series a caller may create in one request

    Returns:
        Normalised RecurrenceRequest

    Raises:
        RecurrenceValidationError: If any field is malformed or the series is too long
    """
    if not isinstance(anchor, datetime):
        raise RecurrenceValidationError(f"Recurrence anchor must be a datetime, got {type(anchor).__name__}")
    if not isinstance(until, date):
        raise RecurrenceValidationError(f"Recurrence end date must be a date, got {type(until).__name__}")

    freq = Frequency.parse(frequency)
    bound = _as_date(until)

    total = count_occurrences(anchor, bound, freq)
    if total > max_occurrences:
        raise RecurrenceValidationError(
            f"Recurrence would create {total} occurrences; the limit is {max_occurrences}"
        )

    return RecurrenceRequest(anchor=anchor, until=bound, frequency=freq)


class RecurrenceExpander:
    """Validating front door to ``expand_occurrences``.

    Used by the appointment-creation flow, which maps each occurrence to an
    independent create request.
    """

    def __init__(self, max_occurrences: int = DEFAULT_MAX_OCCURRENCES):
        self.max_occurrences = max_occurrences

    def validate(self, anchor: Any, until: Any, frequency: Any) -> RecurrenceRequest:
        return validate_recurrence_request(anchor, until, frequency, self.max_occurrences)

    def expand(
        self,
        anchor: datetime,
        until: Union[date, datetime],
        frequency: Union[str, Frequency],
    ) -> list[datetime]:
        """Expand without validating; see ``expand_occurrences``."""
        return expand_occurrences(anchor, until, frequency)

    def expand_request(self, request: RecurrenceRequest) -> list[datetime]:
        return expand_occurrences(request.anchor, request.until, request.frequency)
