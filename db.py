import duckdb
import logging

import config

DB_FILE = config.DB_FILE

# -----------------------------
# Logging
# -----------------------------
logging.basicConfig(
    filename=config.LOG_FILE,
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)

def log_info(msg):
    logging.info(msg)

def log_error(msg):
    logging.error(msg)

# -----------------------------
# Get a DB connection
# -----------------------------
def get_db():
    """
    Returns a new DuckDB connection.
    """
    return duckdb.connect(DB_FILE)

# -----------------------------
# Initialize database schema
# -----------------------------
def init_db():
    conn = get_db()
    try:
        conn.execute("CREATE SEQUENCE IF NOT EXISTS ledger_entries_id_seq START 1")
        conn.execute("CREATE SEQUENCE IF NOT EXISTS recurring_rules_id_seq START 1")
        conn.execute("CREATE SEQUENCE IF NOT EXISTS budgets_id_seq START 1")
        conn.execute("CREATE SEQUENCE IF NOT EXISTS budget_allocations_id_seq START 1")

        # Recurring rules table
        conn.execute("""
        CREATE TABLE IF NOT EXISTS recurring_rules (
            id BIGINT PRIMARY KEY DEFAULT nextval('recurring_rules_id_seq'),
            owner_id VARCHAR NOT NULL,
            label VARCHAR NOT NULL,
            amount DECIMAL(12,2) NOT NULL CHECK(amount >= 0),
            is_variable BOOLEAN DEFAULT FALSE,
            last_amount DECIMAL(12,2) CHECK(last_amount >= 0),
            category VARCHAR NOT NULL DEFAULT 'Other',
            frequency VARCHAR NOT NULL CHECK(frequency IN ('weekly','monthly','yearly')),
            start_date DATE NOT NULL,
            day_of_period INTEGER CHECK(day_of_period BETWEEN 0 AND 31),
            active BOOLEAN DEFAULT TRUE,
            next_due_date DATE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """)
        log_info("Recurring rules table ensured.")

        # Ledger table; one entry per (rule, due date)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS ledger_entries (
            id BIGINT PRIMARY KEY DEFAULT nextval('ledger_entries_id_seq'),
            owner_id VARCHAR NOT NULL,
            label VARCHAR NOT NULL,
            amount DECIMAL(12,2) NOT NULL CHECK(amount >= 0),
            category VARCHAR NOT NULL DEFAULT 'Other',
            effective_date DATE NOT NULL,
            recurring_rule_id BIGINT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(recurring_rule_id, effective_date)
        );
        """)
        log_info("Ledger table ensured.")

        # Budget definitions
        conn.execute("""
        CREATE TABLE IF NOT EXISTS budgets (
            id BIGINT PRIMARY KEY DEFAULT nextval('budgets_id_seq'),
            owner_id VARCHAR NOT NULL,
            period_type VARCHAR NOT NULL CHECK(period_type IN ('monthly','weekly','custom')),
            period_start DATE NOT NULL,
            period_end DATE NOT NULL,
            monthly_total DECIMAL(12,2) NOT NULL DEFAULT 0,
            rollover_amount DECIMAL(12,2) NOT NULL DEFAULT 0,
            rollover_enabled BOOLEAN DEFAULT FALSE,
            alert_threshold DOUBLE NOT NULL DEFAULT 0.8,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(owner_id, period_start)
        );
        """)
        log_info("Budgets table ensured.")

        conn.execute("""
        CREATE TABLE IF NOT EXISTS budget_allocations (
            id BIGINT PRIMARY KEY DEFAULT nextval('budget_allocations_id_seq'),
            budget_id BIGINT NOT NULL,
            position INTEGER NOT NULL,
            category VARCHAR NOT NULL,
            amount DECIMAL(12,2) NOT NULL
        );
        """)
        log_info("Budget allocations table ensured.")

        # Indexes
        conn.execute("CREATE INDEX IF NOT EXISTS idx_ledger_owner_date ON ledger_entries(owner_id, effective_date);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_rules_owner ON recurring_rules(owner_id);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_alloc_budget ON budget_allocations(budget_id);")
        log_info("Indexes created/ensured.")

    except Exception as e:
        log_error(f"Error initializing DB: {e}")
        raise
    finally:
        conn.close()
        log_info("Database setup complete and connection closed.")
