"""
Recurring Sync Engine: materializes due recurring rules into ledger entries.

Each occurrence is written as (create entry, advance pointer) in one
transaction, so a crash or retry resumes from the last persisted
``next_due_date`` without duplicating or skipping occurrences. The ledger's
(rule, date) uniqueness backs this up: a duplicate is treated as already
materialized.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

import duckdb

import config
from db import get_db, log_error, log_info
from repositories.ledger_repository import create_entry, entry_exists
from repositories.recurring_repository import (
    get_rule_by_id,
    list_active_rules,
    update_last_amount,
    update_next_due_date,
)
from services.errors import BudgetEngineError, DuplicateEntry, InvalidRule, NotFound, PersistenceFailure
from services.occurrence_engine import advance, schedule_for_rule
from utils.dates import utc_today


@dataclass
class SyncFailure:
    rule_id: int
    due_date: Optional[date]
    error: str


@dataclass
class SyncReport:
    created: int = 0
    processed: int = 0
    skipped: int = 0
    failures: List[SyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self):
        return {
            "success": self.ok,
            "created": self.created,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": [
                {
                    "rule_id": f.rule_id,
                    "due_date": f.due_date.isoformat() if f.due_date else None,
                    "error": f.error,
                }
                for f in self.failures
            ],
        }


def sync_rule(conn, rule, today: date) -> tuple:
    """
    Catch up one rule: every due date from its anchor through ``today``.

    Returns (created_entries, skipped_duplicates). Raises PersistenceFailure
    (store errors) or InvalidRule (unusable rule data), both carrying the rule
    id and the due date being processed; entries committed before the failure
    stay committed.
    """
    schedule = schedule_for_rule(rule, horizon_end=today)
    created = []
    skipped = 0
    due = None

    try:
        for due in schedule:
            following = advance(due, schedule.frequency, schedule.target_day)
            if entry_exists(conn, rule.id, due):
                update_next_due_date(conn, rule.id, following)
                skipped += 1
                log_info(f"Rule {rule.id}: occurrence {due} already materialized, pointer advanced")
                continue

            conn.begin()
            try:
                entry = create_entry(
                    conn,
                    owner_id=rule.owner_id,
                    label=f"{config.AUTO_ENTRY_PREFIX}{rule.label}",
                    amount=rule.resolved_amount,
                    category=rule.category,
                    effective_date=due,
                    rule_id=rule.id,
                )
                update_next_due_date(conn, rule.id, following)
                conn.commit()
            except DuplicateEntry:
                # Raced with another invocation between the check and the insert.
                conn.rollback()
                update_next_due_date(conn, rule.id, following)
                skipped += 1
                log_info(f"Rule {rule.id}: occurrence {due} already materialized, pointer advanced")
                continue
            except Exception:
                conn.rollback()
                raise

            created.append(entry)
            log_info(f"Rule {rule.id}: created entry {entry.id} for {due}")

        if rule.next_due_date is None and not created and not skipped:
            # Never run and nothing due yet: pin the first occurrence.
            due = None
            update_next_due_date(conn, rule.id, schedule.first_on_or_after(rule.anchor))

    except (duckdb.Error, NotFound) as e:
        raise PersistenceFailure(
            f"Sync failed for rule {rule.id} at {due}: {e}",
            rule_id=rule.id,
            due_date=due,
        ) from e
    except (ValueError, ArithmeticError) as e:
        # Bad stored data, e.g. a negative amount or an impossible day hint.
        raise InvalidRule(
            f"Rule {rule.id} cannot be materialized at {due}: {e}",
            rule_id=rule.id,
            due_date=due,
        ) from e

    return created, skipped


def _record_failure(report, rule, due_date, error):
    log_error(
        f"Recurring sync failed: rule={rule.id} owner={rule.owner_id} "
        f"due_date={due_date} error={type(error).__name__}: {error}"
    )
    report.failures.append(SyncFailure(rule.id, due_date, str(error)))


def sync_recurring(owner_id=None, today: date = None, conn=None) -> SyncReport:
    """
    Materialize every due occurrence of the active rules.

    Args:
        owner_id: Restrict to one owner; None processes every owner (scheduled job).
        today: Reference day; defaults to the current UTC day.
        conn: Optional database connection. If not provided, opens a new one.

    A failing rule is logged and reported; the remaining rules still run.
    """
    today = today or utc_today()
    report = SyncReport()

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        try:
            rules = list_active_rules(conn, owner_id=owner_id)
        except duckdb.Error as e:
            log_error(f"Recurring sync could not list rules (owner={owner_id}): {e}")
            raise PersistenceFailure(f"Could not list recurring rules: {e}", owner_id=owner_id) from e

        for rule in rules:
            report.processed += 1
            try:
                created, skipped = sync_rule(conn, rule, today)
            except BudgetEngineError as e:
                _record_failure(report, rule, e.context.get("due_date"), e)
                continue
            except Exception as e:
                _record_failure(report, rule, None, e)
                continue
            report.created += len(created)
            report.skipped += skipped
    finally:
        if own_conn:
            conn.close()

    log_info(
        f"Recurring sync done (owner={owner_id or 'all'}, today={today}): "
        f"created={report.created} processed={report.processed} failed={len(report.failures)}"
    )
    return report


def record_observed_amount(rule_id, amount, conn=None):
    """Store the latest observed charge for a variable-amount rule and return the rule."""
    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        update_last_amount(conn, rule_id, amount)
        return get_rule_by_id(conn, rule_id)
    finally:
        if own_conn:
            conn.close()
