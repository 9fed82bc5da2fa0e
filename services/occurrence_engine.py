"""
Occurrence Generator: Deterministic Due-Date Sequences for Recurring Rules

Pure functions of (rule start, frequency, anchor, horizon). No database
access, no clock reads, no side effects.
"""
from datetime import date, timedelta

from models.recurring_rule import FREQUENCIES
from utils.dates import add_months, add_years, clamp_day

WEEK = timedelta(days=7)


def _target_day(rule_start: date, frequency: str, day_hint):
    if frequency == "weekly":
        return None
    return rule_start.day if day_hint is None else day_hint


def advance(d: date, frequency: str, target_day=None) -> date:
    """
    Step one interval forward from ``d``.

    Monthly and yearly steps keep ``target_day`` (default ``d.day``) and clamp
    it to the length of the landing month, so Jan 31 → Feb 28/29 → Mar 31.
    """
    if frequency == "weekly":
        return d + WEEK
    if frequency == "monthly":
        return add_months(d, 1, target_day)
    if frequency == "yearly":
        return add_years(d, 1, target_day)
    raise ValueError(f"Unknown frequency: {frequency!r}")


def align(anchor: date, frequency: str, target_day) -> date:
    """First date on or after ``anchor`` that falls on ``target_day``."""
    if frequency == "weekly" or target_day is None:
        return anchor
    candidate = anchor.replace(day=clamp_day(anchor.year, anchor.month, target_day))
    if candidate < anchor:
        candidate = advance(candidate, frequency, target_day)
    return candidate


class OccurrenceSchedule:
    """
    Ordered due dates of one rule from ``anchor`` through ``horizon_end`` (inclusive).

    Iterating twice yields the same dates: every ``iter()`` starts a fresh walk
    from the anchor.
    """

    def __init__(self, rule_start: date, frequency: str, anchor: date = None,
                 horizon_end: date = None, day_hint=None):
        if frequency not in FREQUENCIES:
            raise ValueError(f"Unknown frequency: {frequency!r}")
        if horizon_end is None:
            raise ValueError("horizon_end is required")
        self.rule_start = rule_start
        self.frequency = frequency
        self.anchor = max(anchor or rule_start, rule_start)
        self.horizon_end = horizon_end
        self.target_day = _target_day(rule_start, frequency, day_hint)

    def __iter__(self):
        current = align(self.anchor, self.frequency, self.target_day)
        while current <= self.horizon_end:
            yield current
            current = advance(current, self.frequency, self.target_day)

    def first_on_or_after(self, d: date) -> date:
        current = align(self.anchor, self.frequency, self.target_day)
        if self.frequency == "weekly" and current < d:
            weeks = -(-(d - current).days // 7)
            return current + WEEK * weeks
        while current < d:
            current = advance(current, self.frequency, self.target_day)
        return current


def schedule_for_rule(rule, horizon_end: date) -> OccurrenceSchedule:
    """Schedule for a RecurringRule, anchored at its next-due pointer (or start)."""
    return OccurrenceSchedule(
        rule.start_date,
        rule.frequency,
        anchor=rule.anchor,
        horizon_end=horizon_end,
        day_hint=rule.day_of_period,
    )


def occurrences_between(rule, start: date, end_exclusive: date) -> list:
    """Due dates of ``rule`` with ``start <= date < end_exclusive``."""
    if end_exclusive <= start:
        return []
    schedule = schedule_for_rule(rule, end_exclusive - timedelta(days=1))
    first = schedule.first_on_or_after(start)
    result = []
    current = first
    while current < end_exclusive:
        result.append(current)
        current = advance(current, schedule.frequency, schedule.target_day)
    return result
