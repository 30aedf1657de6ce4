"""Summary: Time filter parsing and cutoff calculation.

Importance: Gives every store query and provider view the same notion of "today" or "week".
Alternatives: Let each provider compute its own date boundaries.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

DAY_SECONDS = 24 * 60 * 60
WEEK_SECONDS = 7 * DAY_SECONDS
MONTH_SECONDS = 30 * DAY_SECONDS


class TimeFilter(str, Enum):
    """Summary: Supported time filters for queries and views.

    Importance: Keeps filter names consistent across API, CLI, and storage.
    Alternatives: Accept free-form date ranges.
    """

    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"

    @staticmethod
    def parse(value: "str | TimeFilter | None") -> "TimeFilter":
        """Summary: Convert user input into a TimeFilter.

        Importance: Rejects unknown filters early with a clear message.
        Alternatives: Silently fall back to ALL.
        """

        if value is None:
            return TimeFilter.ALL
        if isinstance(value, TimeFilter):
            return value
        try:
            return TimeFilter(value.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown time filter: {value}") from exc


def local_midnight(now: float) -> int:
    """Return the epoch seconds of local midnight for the day containing ``now``."""

    start = datetime.fromtimestamp(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(start.timestamp())


def cutoff_for(time_filter: TimeFilter | str, now: float) -> int | None:
    """Summary: Compute the inclusive epoch cutoff for a time filter.

    Importance: Filters are evaluated against wall-clock now at call time.
    Alternatives: Precompute cutoffs once per process.
    """

    parsed = TimeFilter.parse(time_filter)
    if parsed is TimeFilter.TODAY:
        return local_midnight(now)
    if parsed is TimeFilter.WEEK:
        return int(now - WEEK_SECONDS)
    if parsed is TimeFilter.MONTH:
        return int(now - MONTH_SECONDS)
    return None
