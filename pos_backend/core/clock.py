from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    """Calendar day used for order numbers and reports (UTC)."""
    return utcnow().date()


def day_bounds(start_day: date, end_day: date | None = None) -> tuple[datetime, datetime]:
    """Half-open UTC interval ``[start_day 00:00, end_day + 1 00:00)``."""
    start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_day or start_day, time.min, tzinfo=timezone.utc) + timedelta(days=1)
    return start, end


def utc_day(moment: datetime) -> date:
    # SQLite devolve datetime sem tz, já em UTC
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()
