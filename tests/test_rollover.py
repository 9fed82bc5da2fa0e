from datetime import date
from decimal import Decimal

import duckdb

import services.rollover_service as rollover_module
from repositories.budget_repository import find_budget, update_rollover_amount
from repositories.ledger_repository import create_entry
from services.budget_service import set_budget
from services.rollover_service import process_rollover

TODAY = date(2024, 3, 1)
FEB = date(2024, 2, 1)
MAR = date(2024, 3, 1)


def _setup(conn, owner, feb_total, rollover_enabled=True, with_march=True):
    set_budget(owner, "monthly", feb_total, month="2024-02",
               rollover_enabled=rollover_enabled, conn=conn)
    if with_march:
        set_budget(owner, "monthly", feb_total, month="2024-03",
                   rollover_enabled=rollover_enabled, conn=conn)


def test_leftover_moves_into_current_month(conn):
    _setup(conn, "u1", 1000)
    create_entry(conn, "u1", "Groceries", 400, "Food", date(2024, 2, 10))
    create_entry(conn, "u1", "Dinner", 200, "Food", date(2024, 2, 29))
    create_entry(conn, "u1", "Outside period", 999, "Food", date(2024, 3, 1))

    report = process_rollover(today=TODAY, conn=conn)

    assert report.ok
    assert report.processed == 1
    assert report.updated == 1
    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("400.00")


def test_previous_rollover_counts_toward_leftover(conn):
    _setup(conn, "u1", 1000)
    update_rollover_amount(conn, "u1", FEB, 150)
    create_entry(conn, "u1", "Rent", 900, "Bills", date(2024, 2, 1))

    process_rollover(today=TODAY, conn=conn)

    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("250.00")


def test_overspending_does_not_carry_a_deficit(conn):
    _setup(conn, "u1", 1000)
    update_rollover_amount(conn, "u1", MAR, 75)
    create_entry(conn, "u1", "Splurge", 1200, "Fun", date(2024, 2, 14))

    report = process_rollover(today=TODAY, conn=conn)

    assert report.processed == 1
    assert report.updated == 0
    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("75.00")


def test_disabled_budgets_are_skipped(conn):
    _setup(conn, "u1", 1000, rollover_enabled=False)

    report = process_rollover(today=TODAY, conn=conn)

    assert report.processed == 0
    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("0.00")


def test_missing_current_budget_is_tolerated(conn):
    _setup(conn, "u1", 1000, with_march=False)

    report = process_rollover(today=TODAY, conn=conn)

    assert report.ok
    assert report.processed == 1
    assert report.updated == 0
    assert find_budget(conn, "u1", MAR) is None


def test_rollover_is_per_owner(conn):
    _setup(conn, "u1", 1000)
    _setup(conn, "u2", 500)
    create_entry(conn, "u2", "Rent", 100, "Bills", date(2024, 2, 3))

    report = process_rollover(today=date(2024, 3, 20), conn=conn)

    assert report.processed == 2
    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("1000.00")
    assert find_budget(conn, "u2", MAR).rollover_amount == Decimal("400.00")


def test_running_twice_leaves_the_same_amount(conn):
    _setup(conn, "u1", 1000)
    create_entry(conn, "u1", "Groceries", 300, "Food", date(2024, 2, 10))

    first = process_rollover(today=TODAY, conn=conn)
    second = process_rollover(today=TODAY, conn=conn)

    assert first.updated == second.updated == 1
    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("700.00")


def test_failing_budget_is_reported_and_others_continue(conn, monkeypatch):
    _setup(conn, "u1", 1000)
    _setup(conn, "u2", 500)
    real_sum = rollover_module.sum_amount

    def flaky_sum(conn, owner_id, start, end, category=None):
        if owner_id == "u1":
            raise duckdb.IOException("ledger unavailable")
        return real_sum(conn, owner_id, start, end, category)

    monkeypatch.setattr(rollover_module, "sum_amount", flaky_sum)
    report = process_rollover(today=TODAY, conn=conn)

    assert not report.ok
    assert report.processed == 2
    assert report.updated == 1
    assert [(f.owner_id, f.period_start) for f in report.failures] == [("u1", FEB)]
    assert report.to_dict()["failed"][0]["period_start"] == "2024-02-01"
    assert find_budget(conn, "u1", MAR).rollover_amount == Decimal("0.00")
    assert find_budget(conn, "u2", MAR).rollover_amount == Decimal("500.00")
