"""Week boundaries.

Weeks start on Monday (ISO 8601). Tracks are keyed by the Monday of the week
they were scraped in, and playlist refreshes run once per ISO week.
"""

from datetime import UTC, date, datetime, timedelta


def week_start(day: date | datetime) -> date:
    """Monday of the ISO week containing `day`."""
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def current_week_start(now: datetime | None = None) -> date:
    """Monday of the current ISO week (UTC)."""
    return week_start(now or datetime.now(UTC))


def week_start_datetime(day: date) -> datetime:
    """Midnight UTC at the start of the ISO week containing `day`."""
    monday = week_start(day)
    return datetime(monday.year, monday.month, monday.day, tzinfo=UTC)
