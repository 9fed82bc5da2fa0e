import calendar
from datetime import date, datetime, timezone

MONTH_FORMAT = "%Y-%m"


def utc_today() -> date:
    """Current calendar day in UTC; the only place the engine reads the clock."""
    return datetime.now(timezone.utc).date()


def parse_iso_date(raw) -> date:
    """Accept a date, a datetime or a YYYY-MM-DD string."""
    if isinstance(raw, datetime):
        return raw.astimezone(timezone.utc).date() if raw.tzinfo else raw.date()
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw).strip())


def month_start(d: date) -> date:
    return d.replace(day=1)


def next_month_start(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def prev_month_start(d: date) -> date:
    if d.month == 1:
        return date(d.year - 1, 12, 1)
    return date(d.year, d.month - 1, 1)


def clamp_day(year: int, month: int, day: int) -> int:
    """Clamp day to the valid range for the given year/month (0 = last day)."""
    last = calendar.monthrange(year, month)[1]
    return last if day == 0 else min(day, last)


def add_months(d: date, n: int, target_day: int | None = None) -> date:
    """Add n months to d, keeping target_day (default d.day) clamped to month end."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = d.day if target_day is None else target_day
    return date(year, month, clamp_day(year, month, day))


def add_years(d: date, n: int, target_day: int | None = None) -> date:
    year = d.year + n
    day = d.day if target_day is None else target_day
    return date(year, d.month, clamp_day(year, d.month, day))
