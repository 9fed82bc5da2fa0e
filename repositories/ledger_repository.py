from datetime import date
from decimal import Decimal

from models.ledger_entry import LedgerEntry
from services.errors import DuplicateEntry
from utils.money import ZERO, to_money

# -----------------------------
# Ledger Repository
# -----------------------------

_ENTRY_COLUMNS = "id, owner_id, label, amount, category, effective_date, recurring_rule_id"


def _row_to_entry(row) -> LedgerEntry:
    return LedgerEntry(
        id=row[0],
        owner_id=row[1],
        label=row[2],
        amount=row[3],
        category=row[4],
        effective_date=row[5],
        recurring_rule_id=row[6],
    )


def create_entry(conn, owner_id, label, amount, category, effective_date,
                 rule_id=None) -> LedgerEntry:
    """
    Inserts a ledger entry.
    - conn: DuckDB connection
    - effective_date: the due date of the expense; may be in the past
    - rule_id: optional back-reference to the RecurringRule that produced it

    Raises DuplicateEntry when the rule already has an entry on that date.
    """
    amount = to_money(amount)
    if amount < 0:
        raise ValueError("Ledger amounts must be non-negative")

    try:
        row = conn.execute(
            f"""
            INSERT INTO ledger_entries
            (owner_id, label, amount, category, effective_date, recurring_rule_id)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING {_ENTRY_COLUMNS}
            """,
            (owner_id, label, amount, category or "Other", effective_date, rule_id)
        ).fetchone()
    except Exception as e:
        # Check if exception is a unique constraint violation (duplicate)
        msg = str(e).lower()
        if "unique" in msg or "duplicate key" in msg:
            raise DuplicateEntry(
                f"Rule {rule_id} already has an entry on {effective_date}"
            ) from e
        raise

    return _row_to_entry(row)


def entry_exists(conn, rule_id, effective_date: date) -> bool:
    row = conn.execute(
        "SELECT 1 FROM ledger_entries WHERE recurring_rule_id = ? AND effective_date = ?",
        (rule_id, effective_date)
    ).fetchone()
    return bool(row)


def sum_amount(conn, owner_id, start: date, end: date, category=None) -> Decimal:
    """
    Sum of entry amounts for an owner with start <= effective_date < end.
    - category: optional filter
    """
    query = """
    SELECT COALESCE(SUM(amount), 0)
    FROM ledger_entries
    WHERE owner_id = ? AND effective_date >= ? AND effective_date < ?
    """
    params = [owner_id, start, end]

    if category is not None:
        query += " AND category = ?"
        params.append(category)

    total = conn.execute(query, params).fetchone()[0]
    return to_money(total) if total is not None else ZERO


def sum_by_category(conn, owner_id, start: date, end: date) -> dict:
    rows = conn.execute(
        """
        SELECT category, SUM(amount)
        FROM ledger_entries
        WHERE owner_id = ? AND effective_date >= ? AND effective_date < ?
        GROUP BY category
        """,
        (owner_id, start, end)
    ).fetchall()
    return {r[0]: to_money(r[1]) for r in rows}


def list_entries(conn, owner_id, start: date, end: date, rule_id=None):
    """
    Returns entries for an owner in [start, end), newest first.
    """
    query = f"""
    SELECT {_ENTRY_COLUMNS}
    FROM ledger_entries
    WHERE owner_id = ? AND effective_date >= ? AND effective_date < ?
    """
    params = [owner_id, start, end]

    if rule_id is not None:
        query += " AND recurring_rule_id = ?"
        params.append(rule_id)

    query += " ORDER BY effective_date DESC, id DESC"

    rows = conn.execute(query, params).fetchall()
    return [_row_to_entry(r) for r in rows]


def list_entries_for_rule(conn, rule_id):
    rows = conn.execute(
        f"""
        SELECT {_ENTRY_COLUMNS}
        FROM ledger_entries
        WHERE recurring_rule_id = ?
        ORDER BY effective_date
        """,
        (rule_id,)
    ).fetchall()
    return [_row_to_entry(r) for r in rows]
