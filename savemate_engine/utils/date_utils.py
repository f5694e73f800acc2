"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from typing import Optional

_DAY_FIRST_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%d-%m-%y")
_YEAR_FIRST_FORMATS = ("%Y/%m/%d", "%Y-%m-%d")


def parse_notification_date(token: Optional[str]) -> Optional[date]:
    """
    Best-effort conversion of a date token found in a bank notification.

    Colombian banks write day-first dates (17/10/2026); some wallets use
    ISO-like year-first dates. Anything unparseable yields None.
    """
    if not token:
        return None

    formats = _YEAR_FIRST_FORMATS if len(token.split("/")[0].split("-")[0]) == 4 else _DAY_FIRST_FORMATS
    for fmt in formats:
        try:
            return datetime.strptime(token, fmt).date()
        except ValueError:
            continue
    return None


def at_start_of_day(day: date) -> datetime:
    """Promote a date to a UTC datetime at midnight"""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
