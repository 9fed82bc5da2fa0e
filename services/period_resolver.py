"""
Period Resolver: maps a period declaration to a concrete ``[start, end)`` interval.

Pure functions; no database access. Every ledger total for a period is queried
with ``start <= effective_date < end`` using the bounds produced here.
"""
from datetime import date, datetime, timedelta

from models.period import PERIOD_TYPES, Period
from services.errors import InvalidPeriod
from utils.dates import MONTH_FORMAT, month_start, next_month_start, parse_iso_date, prev_month_start


def parse_month_token(token: str) -> date:
    """'YYYY-MM' → first day of that month."""
    if not token:
        raise InvalidPeriod("Month is required for monthly budgets")
    try:
        return datetime.strptime(token.strip(), MONTH_FORMAT).date()
    except ValueError as exc:
        raise InvalidPeriod(f"Invalid month token: {token!r} (expected YYYY-MM)") from exc


def _parse_day(raw, what: str) -> date:
    if raw is None or raw == "":
        raise InvalidPeriod(f"{what} is required")
    try:
        return parse_iso_date(raw)
    except ValueError as exc:
        raise InvalidPeriod(f"Invalid {what.lower()}: {raw!r}") from exc


def monthly_period(d: date) -> Period:
    start = month_start(d)
    return Period("monthly", start, next_month_start(start))


def weekly_period(start) -> Period:
    start = _parse_day(start, "Week start date")
    return Period("weekly", start, start + timedelta(days=7))


def custom_period(start, end) -> Period:
    """Custom ranges are inclusive of their end day; the bound is the next midnight."""
    start = _parse_day(start, "Start date")
    end = _parse_day(end, "End date")
    if end < start:
        raise InvalidPeriod(f"Custom period ends ({end}) before it starts ({start})")
    return Period("custom", start, end + timedelta(days=1))


def resolve_period(period_type: str, month=None, start=None, end=None) -> Period:
    """
    Resolve a period declaration.

    Args:
        period_type: 'monthly', 'weekly' or 'custom'.
        month: 'YYYY-MM' token (monthly).
        start: first day (weekly, custom).
        end: last day, inclusive (custom).

    Raises:
        InvalidPeriod: missing parameters, unknown type, or end before start.
    """
    if period_type not in PERIOD_TYPES:
        raise InvalidPeriod(f"Invalid period type: {period_type!r}")

    if period_type == "monthly":
        return monthly_period(parse_month_token(month))
    if period_type == "weekly":
        return weekly_period(start)
    return custom_period(start, end)


def resolve_period_token(token, today: date) -> Period:
    """
    Resolve the optional period token accepted by query surfaces.

    ``None`` → the calendar month containing ``today``; ``YYYY-MM`` → monthly;
    ``YYYY-MM-DD`` → the week starting that day; ``YYYY-MM-DD..YYYY-MM-DD`` → custom.
    """
    if token is None or not str(token).strip():
        return monthly_period(today)

    token = str(token).strip()
    if ".." in token:
        start, _, end = token.partition("..")
        return custom_period(start, end)
    if len(token) == 7:
        return monthly_period(parse_month_token(token))
    return weekly_period(token)


def previous_monthly_period(today: date) -> Period:
    start = prev_month_start(month_start(today))
    return Period("monthly", start, next_month_start(start))
