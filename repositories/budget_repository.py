from datetime import date

from models.budget import Allocation, BudgetDefinition
from utils.money import to_money

# -----------------------------
# Budget Repository
# -----------------------------

_BUDGET_COLUMNS = """
    id, owner_id, period_type, period_start, period_end, monthly_total,
    rollover_amount, rollover_enabled, alert_threshold
"""


def _load_allocations(conn, budget_id):
    rows = conn.execute(
        """
        SELECT category, amount
        FROM budget_allocations
        WHERE budget_id = ?
        ORDER BY position
        """,
        (budget_id,)
    ).fetchall()
    return [Allocation(category=r[0], amount=r[1]) for r in rows]


def _row_to_budget(conn, row) -> BudgetDefinition:
    return BudgetDefinition(
        id=row[0],
        owner_id=row[1],
        period_type=row[2],
        period_start=row[3],
        period_end=row[4],
        monthly_total=row[5],
        rollover_amount=row[6],
        rollover_enabled=bool(row[7]),
        alert_threshold=row[8],
        allocations=_load_allocations(conn, row[0]),
    )


def find_budget(conn, owner_id, period_start: date):
    """Return the owner's budget keyed by period start, or None."""
    row = conn.execute(
        f"SELECT {_BUDGET_COLUMNS} FROM budgets WHERE owner_id = ? AND period_start = ?",
        (owner_id, period_start)
    ).fetchone()
    if row:
        return _row_to_budget(conn, row)
    return None


def find_budget_covering(conn, owner_id, day: date):
    """
    Return the budget whose [period_start, period_end) contains ``day``.
    The latest-starting definition wins when periods overlap.
    """
    row = conn.execute(
        f"""
        SELECT {_BUDGET_COLUMNS}
        FROM budgets
        WHERE owner_id = ? AND period_start <= ? AND period_end > ?
        ORDER BY period_start DESC
        LIMIT 1
        """,
        (owner_id, day, day)
    ).fetchone()
    if row:
        return _row_to_budget(conn, row)
    return None


def list_rollover_budgets(conn, period_start: date):
    """All rollover-enabled budgets, any owner, starting on ``period_start``."""
    rows = conn.execute(
        f"""
        SELECT {_BUDGET_COLUMNS}
        FROM budgets
        WHERE period_start = ? AND rollover_enabled = TRUE
        ORDER BY id
        """,
        (period_start,)
    ).fetchall()
    return [_row_to_budget(conn, r) for r in rows]


def update_rollover_amount(conn, owner_id, period_start: date, amount) -> int:
    """
    Set the carried-forward balance of the owner's budget for ``period_start``.

    Returns the number of definitions updated (0 when none exists yet).
    """
    count = conn.execute(
        "SELECT COUNT(*) FROM budgets WHERE owner_id = ? AND period_start = ?",
        (owner_id, period_start)
    ).fetchone()[0]
    if not count:
        return 0

    conn.execute(
        "UPDATE budgets SET rollover_amount = ? WHERE owner_id = ? AND period_start = ?",
        (to_money(amount), owner_id, period_start)
    )
    return count


def upsert_budget(conn, owner_id, period, monthly_total, alert_threshold,
                  rollover_enabled=False, allocations=()):
    """
    Create or replace the owner's budget for ``period.start``.

    Allocations are replaced wholesale; the carried rollover amount is kept.
    """
    conn.begin()
    try:
        existing = conn.execute(
            "SELECT id FROM budgets WHERE owner_id = ? AND period_start = ?",
            (owner_id, period.start)
        ).fetchone()

        if existing:
            budget_id = existing[0]
            conn.execute(
                """
                UPDATE budgets
                SET period_type = ?, period_end = ?, monthly_total = ?,
                    alert_threshold = ?, rollover_enabled = ?
                WHERE id = ?
                """,
                (period.period_type, period.end, to_money(monthly_total),
                 alert_threshold, rollover_enabled, budget_id)
            )
            conn.execute("DELETE FROM budget_allocations WHERE budget_id = ?", (budget_id,))
        else:
            budget_id = conn.execute(
                """
                INSERT INTO budgets
                (owner_id, period_type, period_start, period_end, monthly_total,
                 alert_threshold, rollover_enabled)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                (owner_id, period.period_type, period.start, period.end,
                 to_money(monthly_total), alert_threshold, rollover_enabled)
            ).fetchone()[0]

        for position, alloc in enumerate(allocations):
            conn.execute(
                """
                INSERT INTO budget_allocations (budget_id, position, category, amount)
                VALUES (?, ?, ?, ?)
                """,
                (budget_id, position, alloc.category, to_money(alloc.amount))
            )
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    return find_budget(conn, owner_id, period.start)
