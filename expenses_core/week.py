"""Calendar helpers for week and budget-period boundaries."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Union

from .exceptions import ValidationError
from .validators import validate_date

WEEK_STARTS = {"monday": 0, "sunday": 6}

DateLike = Union[str, date]


def week_start_index(name: str) -> int:
    try:
        return WEEK_STARTS[name.strip().lower()]
    except (KeyError, AttributeError) as exc:
        raise ValidationError(
            f"week start must be one of: {', '.join(sorted(WEEK_STARTS))}"
        ) from exc


def get_week_start(value: DateLike, week_starts_on: str = "sunday") -> str:
    """Return the ISO date of the first day of the week containing ``value``."""
    day = date.fromisoformat(validate_date(value, "date"))
    first = week_start_index(week_starts_on)
    offset = (day.weekday() - first) % 7
    return (day - timedelta(days=offset)).isoformat()


def get_month_start(value: DateLike) -> str:
    day = date.fromisoformat(validate_date(value, "date"))
    return day.replace(day=1).isoformat()
