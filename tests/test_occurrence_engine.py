from datetime import date, timedelta

import pytest

from models.recurring_rule import FixedAmount, RecurringRule
from services.occurrence_engine import OccurrenceSchedule, advance, occurrences_between


def _rule(frequency, start, next_due=None, day_hint=None):
    return RecurringRule(
        id=1, owner_id="u1", label="Rent", amount=FixedAmount(100),
        category="Bills", frequency=frequency, start_date=start,
        day_of_period=day_hint, next_due_date=next_due,
    )


def test_monthly_advance_clamps_to_end_of_february():
    assert advance(date(2023, 1, 31), "monthly") == date(2023, 2, 28)
    assert advance(date(2024, 1, 31), "monthly") == date(2024, 2, 29)


def test_monthly_sequence_returns_to_original_day_after_clamping():
    dates = list(OccurrenceSchedule(date(2024, 1, 31), "monthly", horizon_end=date(2024, 5, 31)))
    assert dates == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_clamped_anchor_keeps_rule_start_day():
    # Resuming from a clamped pointer must not drift to the 29th forever.
    dates = list(OccurrenceSchedule(date(2024, 1, 31), "monthly", anchor=date(2024, 2, 29),
                                    horizon_end=date(2024, 4, 30)))
    assert dates == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_weekly_sequence_is_inclusive_of_horizon():
    start = date(2024, 3, 1)
    dates = list(OccurrenceSchedule(start, "weekly", horizon_end=date(2024, 3, 15)))
    assert dates == [date(2024, 3, 1), date(2024, 3, 8), date(2024, 3, 15)]


def test_yearly_leap_day_clamps():
    dates = list(OccurrenceSchedule(date(2024, 2, 29), "yearly", horizon_end=date(2028, 3, 1)))
    assert dates == [
        date(2024, 2, 29),
        date(2025, 2, 28),
        date(2026, 2, 28),
        date(2027, 2, 28),
        date(2028, 2, 29),
    ]


def test_schedule_is_restartable():
    schedule = OccurrenceSchedule(date(2024, 1, 1), "weekly", horizon_end=date(2024, 2, 1))
    assert list(schedule) == list(schedule)
    assert len(list(schedule)) == 5


def test_anchor_after_horizon_yields_nothing():
    schedule = OccurrenceSchedule(date(2024, 1, 1), "monthly", anchor=date(2024, 5, 1),
                                  horizon_end=date(2024, 4, 30))
    assert list(schedule) == []


def test_last_day_hint():
    dates = list(OccurrenceSchedule(date(2024, 1, 10), "monthly", horizon_end=date(2024, 4, 30), day_hint=0))
    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_day_hint_aligns_first_occurrence_forward():
    dates = list(OccurrenceSchedule(date(2024, 1, 20), "monthly", horizon_end=date(2024, 3, 31), day_hint=5))
    assert dates == [date(2024, 2, 5), date(2024, 3, 5)]


def test_first_on_or_after_weekly_skips_ahead():
    schedule = OccurrenceSchedule(date(2020, 1, 6), "weekly", horizon_end=date(2030, 1, 1))
    first = schedule.first_on_or_after(date(2024, 3, 15))
    assert first >= date(2024, 3, 15)
    assert first - timedelta(days=7) < date(2024, 3, 15)
    assert (first - date(2020, 1, 6)).days % 7 == 0


def test_occurrences_between_is_half_open():
    rule = _rule("weekly", date(2024, 3, 1))
    assert occurrences_between(rule, date(2024, 3, 1), date(2024, 3, 15)) == [
        date(2024, 3, 1), date(2024, 3, 8),
    ]
    assert occurrences_between(rule, date(2024, 3, 15), date(2024, 3, 15)) == []


def test_occurrences_between_starts_at_pointer():
    rule = _rule("monthly", date(2024, 1, 10), next_due=date(2024, 4, 10))
    assert occurrences_between(rule, date(2024, 3, 1), date(2024, 6, 1)) == [
        date(2024, 4, 10), date(2024, 5, 10),
    ]


def test_unknown_frequency_is_rejected():
    with pytest.raises(ValueError):
        OccurrenceSchedule(date(2024, 1, 1), "daily", horizon_end=date(2024, 2, 1))
