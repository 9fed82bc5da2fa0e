from datetime import date

from models.recurring_rule import FREQUENCIES, FixedAmount, RecurringRule, VariableAmount
from services.errors import NotFound
from utils.money import to_money

_RULE_COLUMNS = """
    id, owner_id, label, amount, is_variable, last_amount, category,
    frequency, start_date, day_of_period, active, next_due_date
"""


def _row_to_rule(row) -> RecurringRule:
    if row[4]:
        amount = VariableAmount(estimate=row[3], last_observed=row[5])
    else:
        amount = FixedAmount(row[3])
    return RecurringRule(
        id=row[0],
        owner_id=row[1],
        label=row[2],
        amount=amount,
        category=row[6],
        frequency=row[7],
        start_date=row[8],
        day_of_period=row[9],
        active=bool(row[10]),
        next_due_date=row[11],
    )


def list_active_rules(conn, owner_id=None):
    """
    Return active recurring rules sorted by id.

    Args:
        conn: Database connection.
        owner_id: Optional owner filter; None returns every active rule.
    """
    query = f"SELECT {_RULE_COLUMNS} FROM recurring_rules WHERE active = TRUE"
    params = []

    if owner_id is not None:
        query += " AND owner_id = ?"
        params.append(owner_id)

    query += " ORDER BY id"

    rows = conn.execute(query, params).fetchall()
    return [_row_to_rule(r) for r in rows]


def get_rule_by_id(conn, rule_id):
    """
    Return a single rule by ID, or None if not found.
    """
    row = conn.execute(
        f"SELECT {_RULE_COLUMNS} FROM recurring_rules WHERE id = ?",
        (rule_id,)
    ).fetchone()

    if row:
        return _row_to_rule(row)
    return None


def add_rule(conn, owner_id, label, amount, frequency, start_date: date,
             category="Other", is_variable=False, day_of_period=None, active=True):
    """
    Insert a new recurring rule and return it. ``next_due_date`` starts NULL.
    """
    if frequency not in FREQUENCIES:
        raise ValueError(f"Invalid frequency: {frequency!r}")
    if not label or not label.strip():
        raise ValueError("Label cannot be empty.")
    if to_money(amount) < 0:
        raise ValueError("Amount must be non-negative.")
    if day_of_period is not None and not 0 <= day_of_period <= 31:
        raise ValueError("Day of period must be between 0 (last day) and 31.")

    row = conn.execute(
        f"""
        INSERT INTO recurring_rules
        (owner_id, label, amount, is_variable, category, frequency, start_date, day_of_period, active)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING {_RULE_COLUMNS}
        """,
        (owner_id, label.strip(), to_money(amount), is_variable, category or "Other",
         frequency, start_date, day_of_period, active)
    ).fetchone()
    return _row_to_rule(row)


def update_next_due_date(conn, rule_id, next_due: date):
    """
    Advance a rule's next-due pointer.

    The pointer never moves backwards: an older date leaves the row as is.
    Raises NotFound when the rule does not exist.
    """
    exists = conn.execute(
        "SELECT 1 FROM recurring_rules WHERE id = ?", (rule_id,)
    ).fetchone()
    if not exists:
        raise NotFound(f"Recurring rule {rule_id} not found")

    conn.execute(
        """
        UPDATE recurring_rules
        SET next_due_date = ?
        WHERE id = ? AND (next_due_date IS NULL OR next_due_date < ?)
        """,
        (next_due, rule_id, next_due)
    )


def update_last_amount(conn, rule_id, amount):
    """Record the last observed charge for a variable-amount rule."""
    exists = conn.execute(
        "SELECT is_variable FROM recurring_rules WHERE id = ?", (rule_id,)
    ).fetchone()
    if not exists:
        raise NotFound(f"Recurring rule {rule_id} not found")
    if not exists[0]:
        raise ValueError(f"Recurring rule {rule_id} has a fixed amount")
    if to_money(amount) < 0:
        raise ValueError("Observed amount must be non-negative.")

    conn.execute(
        "UPDATE recurring_rules SET last_amount = ? WHERE id = ?",
        (to_money(amount), rule_id)
    )


def set_active(conn, rule_id, active: bool):
    exists = conn.execute(
        "SELECT 1 FROM recurring_rules WHERE id = ?", (rule_id,)
    ).fetchone()
    if not exists:
        raise NotFound(f"Recurring rule {rule_id} not found")

    conn.execute(
        "UPDATE recurring_rules SET active = ? WHERE id = ?",
        (active, rule_id)
    )
