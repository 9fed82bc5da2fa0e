from datetime import date
from decimal import Decimal

import duckdb
import pytest
from fastapi.testclient import TestClient

import db
import services.notification_sink as notification_sink
import services.recurring_sync_service as sync_module
import services.rollover_service as rollover_module
from main import app
from models.budget import Allocation
from models.recurring_rule import FixedAmount, RecurringRule
from repositories.ledger_repository import create_entry, list_entries_for_rule
from repositories.recurring_repository import add_rule
from services.budget_service import set_budget


@pytest.fixture
def client(db_file):
    return TestClient(app)


def _seed(fn):
    conn = db.get_db()
    try:
        return fn(conn)
    finally:
        conn.close()


def _entries_for(rule_id):
    return _seed(lambda c: list_entries_for_rule(c, rule_id))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


@pytest.mark.parametrize("headers", [
    {},
    {"Authorization": "Bearer wrong"},
    {"Authorization": "s3cret"},
])
def test_cron_rejects_bad_credentials(client, cron_secret, headers):
    rule = _seed(lambda c: add_rule(c, "u1", "Gym", 30, "weekly", date(2024, 3, 1)))

    r = client.get("/api/cron/process-recurring?as_of_date=2024-03-15", headers=headers)

    assert r.status_code == 401
    assert _entries_for(rule.id) == []


def test_cron_rejects_everything_without_configured_secret(client, monkeypatch):
    monkeypatch.setattr("config.CRON_SECRET", "")
    r = client.get("/api/cron/process-recurring", headers={"Authorization": "Bearer "})
    assert r.status_code == 401


def test_cron_processes_recurring(client, cron_secret):
    rule = _seed(lambda c: add_rule(c, "u1", "Gym", 30, "weekly", date(2024, 3, 1)))
    auth = {"Authorization": f"Bearer {cron_secret}"}

    r = client.get("/api/cron/process-recurring?as_of_date=2024-03-15", headers=auth)

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["created"] == 3
    assert r.json()["processed"] == 1

    again = client.get("/api/cron/process-recurring?as_of_date=2024-03-15", headers=auth)
    assert again.json()["created"] == 0
    assert [e.effective_date for e in _entries_for(rule.id)] == [
        date(2024, 3, 1), date(2024, 3, 8), date(2024, 3, 15),
    ]


def test_cron_rejects_bad_as_of_date(client, cron_secret):
    r = client.get("/api/cron/process-recurring?as_of_date=15/03/2024",
                   headers={"Authorization": f"Bearer {cron_secret}"})
    assert r.status_code == 400


def test_cron_processes_rollover(client, cron_secret):
    def seed(conn):
        set_budget("u1", "monthly", 1000, month="2024-02", rollover_enabled=True, conn=conn)
        set_budget("u1", "monthly", 1000, month="2024-03", rollover_enabled=True, conn=conn)
        create_entry(conn, "u1", "Rent", 700, "Rent", date(2024, 2, 1))
    _seed(seed)

    r = client.get("/api/cron/process-rollover?as_of_date=2024-03-01",
                   headers={"Authorization": f"Bearer {cron_secret}"})

    assert r.status_code == 200
    assert r.json() == {"success": True, "processed": 1, "updated": 1, "failed": []}


def test_user_sync_only_touches_that_owner(client):
    mine = _seed(lambda c: add_rule(c, "u1", "Phone", 20, "monthly", date(2024, 3, 1)))
    theirs = _seed(lambda c: add_rule(c, "u2", "Phone", 20, "monthly", date(2024, 3, 1)))

    r = client.post("/recurring/sync?owner_id=u1&as_of_date=2024-03-15")

    assert r.status_code == 200
    assert r.json()["created"] == 1
    assert len(_entries_for(mine.id)) == 1
    assert _entries_for(theirs.id) == []


def test_forecast_endpoint(client):
    def seed(conn):
        set_budget("u1", "monthly", 5000, month="2024-03", conn=conn)
        create_entry(conn, "u1", "Rent", 3000, "Rent", date(2024, 3, 1))
        add_rule(conn, "u1", "Insurance", 1000, "monthly", date(2024, 3, 25))
    _seed(seed)

    r = client.get("/forecast?owner_id=u1&as_of_date=2024-03-15")

    assert r.status_code == 200
    body = r.json()
    assert body["period_start"] == "2024-03-01"
    assert body["period_end"] == "2024-04-01"
    assert body["remaining_budget"] == 2000.0
    assert body["upcoming_recurring_total"] == 1000.0
    assert body["safe_to_spend"] == 1000.0
    assert body["upcoming_list"] == []
    assert body["warnings"] == []


@pytest.mark.parametrize("query", [
    "owner_id=u1&period=2024-13",
    "owner_id=u1&period=2024-03-10..2024-03-01",
    "owner_id=u1&as_of_date=yesterday",
    "owner_id=u1&period=2024-03-05garbage",
])
def test_forecast_rejects_bad_input(client, query):
    assert client.get(f"/forecast?{query}").status_code == 400


def test_save_budget_and_status(client):
    r = client.post("/budget", json={
        "owner_id": "u1",
        "month": "2024-03",
        "monthly_total": 400,
        "allocations": [{"category": "Food", "amount": 300}, {"category": "Fun", "amount": 200}],
        "budget_alert_threshold": 0.95,
    })

    assert r.status_code == 200
    body = r.json()
    assert body["budget"]["alert_threshold"] == 0.8
    assert [a["type"] for a in body["alerts"]] == ["info"]

    _seed(lambda c: create_entry(c, "u1", "Market", 100, "Food", date(2024, 3, 4)))
    status = client.get("/budget/status?owner_id=u1&period=2024-03&as_of_date=2024-03-15").json()
    assert status["total_spent"] == 100.0
    assert status["remaining"] == 300.0
    assert status["percent_used"] == 0.25


def test_save_budget_rejects_bad_period(client):
    r = client.post("/budget", json={"owner_id": "u1", "period_type": "daily", "monthly_total": 10})
    assert r.status_code == 400
    r = client.post("/budget", json={"owner_id": "u1", "month": "2024-03", "monthly_total": -1})
    assert r.status_code == 422


def test_export_endpoint(client):
    _seed(lambda c: create_entry(c, "u1", "Groceries", 12, "Food", date(2024, 3, 4)))

    r = client.get("/budget/export?owner_id=u1&month=2024-03")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="budget-2024-03.csv"' in r.headers["content-disposition"]
    assert r.text.splitlines()[1] == '"2024-03-04","12.00","Food","Groceries"'


def test_alerts_check_endpoint(client):
    _seed(lambda c: set_budget("u1", "monthly", 100, month="2024-03",
                               allocations=[Allocation("Food", Decimal("50"))], conn=c))

    r = client.post("/alerts/check", json={
        "owner_id": "u1", "amount": 85, "category": "Food", "date": "2024-03-10",
    })

    assert r.status_code == 200
    assert r.json()["alerts"] == [
        {"type": "info", "message": "You're approaching your budget (80%): 85.00 / 100.00"},
        {"type": "warning", "message": "Category 'Food' budget exceeded: 85.00 / 50.00"},
    ]


def test_add_expense_hands_alerts_to_the_sink(client, sink, monkeypatch):
    monkeypatch.setattr(notification_sink, "get_notification_sink", lambda: sink)
    _seed(lambda c: set_budget("u1", "monthly", 100, month="2024-03",
                               allocations=[Allocation("Food", Decimal("50"))], conn=c))

    r = client.post("/expenses", json={
        "owner_id": "u1", "description": "Dinner", "amount": 85, "category": "Food", "date": "2024-03-10",
    })

    assert r.status_code == 200
    assert r.json()["entry"]["date"] == "2024-03-10"
    assert r.json()["entry"]["amount"] == 85.0
    assert [a["type"] for a in r.json()["alerts"]] == ["info", "warning"]
    assert len(sink.batches) == 1
    owner, title, alerts = sink.batches[0]
    assert owner == "u1"
    assert [a.severity for a in alerts] == ["info", "warning"]


def test_add_expense_rejects_blank_description(client):
    r = client.post("/expenses", json={"owner_id": "u1", "description": "  ", "amount": 5})
    assert r.status_code == 400


def test_observed_amount_endpoint(client):
    variable = _seed(lambda c: add_rule(c, "u1", "Electric", 80, "monthly", date(2024, 3, 1), is_variable=True))
    fixed = _seed(lambda c: add_rule(c, "u1", "Rent", 900, "monthly", date(2024, 3, 1)))

    r = client.post(f"/recurring/{variable.id}/amount", json={"amount": 92.5})
    assert r.status_code == 200
    assert r.json()["rule"]["amount"] == 92.5

    assert client.post(f"/recurring/{fixed.id}/amount", json={"amount": 1}).status_code == 400
    assert client.post("/recurring/9999/amount", json={"amount": 1}).status_code == 404


def test_rollover_failure_returns_partial_report(client, cron_secret, monkeypatch):
    def seed(conn):
        for owner in ("u1", "u2"):
            set_budget(owner, "monthly", 1000, month="2024-02", rollover_enabled=True, conn=conn)
            set_budget(owner, "monthly", 1000, month="2024-03", rollover_enabled=True, conn=conn)
    _seed(seed)
    real_sum = rollover_module.sum_amount

    def flaky_sum(conn, owner_id, start, end, category=None):
        if owner_id == "u2":
            raise duckdb.IOException("ledger unavailable")
        return real_sum(conn, owner_id, start, end, category)

    monkeypatch.setattr(rollover_module, "sum_amount", flaky_sum)
    r = client.get("/api/cron/process-rollover?as_of_date=2024-03-01",
                   headers={"Authorization": f"Bearer {cron_secret}"})

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["processed"] == 2
    assert body["updated"] == 1
    assert [f["owner_id"] for f in body["failed"]] == ["u2"]


def test_recurring_trigger_reports_unusable_rule(client, cron_secret, monkeypatch):
    healthy = _seed(lambda c: add_rule(c, "u2", "Gym", 30, "weekly", date(2024, 3, 1)))
    broken = RecurringRule(
        id=999, owner_id="u1", label="Broken", amount=FixedAmount(Decimal("-5")),
        category="Other", frequency="monthly", start_date=date(2024, 3, 1),
    )
    real_list = sync_module.list_active_rules
    monkeypatch.setattr(sync_module, "list_active_rules",
                        lambda conn, owner_id=None: [broken] + real_list(conn, owner_id=owner_id))

    r = client.get("/api/cron/process-recurring?as_of_date=2024-03-15",
                   headers={"Authorization": f"Bearer {cron_secret}"})

    assert r.status_code == 500
    assert r.json()["created"] == 3
    assert r.json()["failed"][0]["rule_id"] == 999
    assert len(_entries_for(healthy.id)) == 3


def test_create_pause_and_list_rule_entries(client):
    r = client.post("/recurring", json={
        "owner_id": "u1", "label": "Gym", "amount": 30, "frequency": "weekly",
        "start_date": "2024-03-01", "category": "Health",
    })
    assert r.status_code == 200
    rule_id = r.json()["rule"]["id"]
    assert r.json()["rule"]["next_due_date"] is None

    client.post("/recurring/sync?owner_id=u1&as_of_date=2024-03-15")
    listed = client.get(f"/recurring/{rule_id}/entries").json()
    assert listed["count"] == 3
    assert [e["date"] for e in listed["entries"]] == ["2024-03-01", "2024-03-08", "2024-03-15"]

    paused = client.post(f"/recurring/{rule_id}/active", json={"active": False})
    assert paused.json()["rule"]["active"] is False
    later = client.post("/recurring/sync?owner_id=u1&as_of_date=2024-03-29")
    assert later.json()["processed"] == 0


@pytest.mark.parametrize("payload", [
    {"frequency": "daily"},
    {"amount": -1},
    {"day_of_period": 32},
])
def test_create_rule_rejects_bad_input(client, payload):
    body = {"owner_id": "u1", "label": "Bad", "amount": 10, "frequency": "monthly",
            "start_date": "2024-03-01"}
    body.update(payload)
    assert client.post("/recurring", json=body).status_code in (400, 422)


def test_unknown_rule_is_not_found(client):
    assert client.post("/recurring/9999/active", json={"active": False}).status_code == 404
    assert client.get("/recurring/9999/entries").status_code == 404
