"""Calendar helpers shared by the board engines.

Task dates are stored as ISO text ("2024-01-10", or a longer ISO timestamp
whose first ten characters are the day). Anything that does not parse is
treated as absent.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], date]


def local_today() -> date:
    return date.today()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_day(value: Optional[str]) -> Optional[date]:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def js_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday, the convention stored in settings."""
    return (day.weekday() + 1) % 7


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
