# habit_tracker/core/clock.py
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Header, HTTPException

from habit_tracker.config import settings

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class LocalDay:
    """The caller's calendar day and timezone.

    Every engine operation that needs "today" receives one of these instead of
    reading the server clock.
    """

    today: date
    tz: ZoneInfo

    @property
    def key(self) -> str:
        return date_key(self.today)

    def to_local(self, moment: datetime) -> datetime:
        # SQLite hands back naive datetimes; they are stored as UTC
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz)


def date_key(day: date) -> str:
    """Ledger key for a calendar day (YYYY-MM-DD)."""
    return day.strftime(DATE_FORMAT)


def parse_date_key(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_local_day(
    x_timezone: Optional[str] = Header(None),
    x_local_date: Optional[str] = Header(None),
) -> LocalDay:
    """Resolve the request's calendar context from X-Timezone / X-Local-Date."""
    try:
        tz = ZoneInfo(x_timezone or settings.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(400, f"Unknown timezone: {x_timezone}")

    if x_local_date:
        today = parse_date_key(x_local_date)
        if today is None:
            raise HTTPException(400, "X-Local-Date must be YYYY-MM-DD")
        return LocalDay(today=today, tz=tz)

    return LocalDay(today=datetime.now(tz).date(), tz=tz)
