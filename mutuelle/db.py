import sqlite3
from pathlib import Path

from .settings import Settings


def connect(db_path: str | Path):
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _column_exists(conn: sqlite3.Connection, table_name: str, column_name: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
    return any(row["name"] == column_name for row in rows)


def _updated_at_trigger(conn: sqlite3.Connection, table_name: str) -> None:
    conn.execute(
        f"""
        CREATE TRIGGER IF NOT EXISTS {table_name}_updated_at
        AFTER UPDATE ON {table_name}
        FOR EACH ROW
        BEGIN
          UPDATE {table_name} SET updated_at = datetime('now') WHERE id = OLD.id;
        END;
        """
    )


def init_db(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    with connect(settings.db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS profiles (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              email TEXT UNIQUE,
              full_name TEXT,
              role TEXT NOT NULL DEFAULT 'member'
                CHECK(role IN ('member','admin','treasurer','teller')),
              created_at TEXT NOT NULL DEFAULT (datetime('now')),
              updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
        _updated_at_trigger(conn, "profiles")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS members (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              profile_id INTEGER UNIQUE REFERENCES profiles(id) ON DELETE SET NULL,
              member_number TEXT NOT NULL UNIQUE,
              full_name TEXT NOT NULL,
              phone TEXT,
              address TEXT,
              join_date TEXT NOT NULL DEFAULT (date('now')),
              status TEXT NOT NULL DEFAULT 'active'
                CHECK(status IN ('active','inactive','suspended')),
              created_at TEXT NOT NULL DEFAULT (datetime('now')),
              updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
        _updated_at_trigger(conn, "members")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_categories (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              name TEXT NOT NULL UNIQUE,
              color TEXT NOT NULL DEFAULT '#c69bcc',
              is_active INTEGER NOT NULL DEFAULT 1
            );
            """
        )
        # amount is a decimal string; type is left unconstrained so rows with
        # types unknown to this version still load.
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              member_id INTEGER REFERENCES members(id) ON DELETE RESTRICT,
              type TEXT NOT NULL,
              amount TEXT NOT NULL,
              description TEXT,
              transaction_date TEXT NOT NULL,
              created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
              created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
        if not _column_exists(conn, "transactions", "expense_category_id"):
            conn.execute(
                """
                ALTER TABLE transactions
                ADD COLUMN expense_category_id INTEGER
                  REFERENCES expense_categories(id) ON DELETE RESTRICT
                """
            )
        if not _column_exists(conn, "transactions", "period"):
            conn.execute("ALTER TABLE transactions ADD COLUMN period TEXT")
        conn.execute(
            """
            UPDATE transactions
            SET period = substr(transaction_date, 1, 7)
            WHERE type = 'contribution' AND period IS NULL
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_transactions_member_date
            ON transactions(member_id, transaction_date DESC, id DESC)
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS loans (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              member_id INTEGER NOT NULL REFERENCES members(id) ON DELETE RESTRICT,
              amount TEXT NOT NULL,
              interest_rate TEXT NOT NULL DEFAULT '0',
              status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending','approved','active','paid','defaulted')),
              payment_frequency TEXT NOT NULL DEFAULT 'monthly'
                CHECK(payment_frequency IN ('weekly','biweekly','monthly')),
              duration_days INTEGER NOT NULL DEFAULT 30 CHECK(duration_days > 0),
              transaction_id INTEGER REFERENCES transactions(id) ON DELETE SET NULL,
              created_at TEXT NOT NULL DEFAULT (datetime('now')),
              updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
        if not _column_exists(conn, "loans", "due_date"):
            conn.execute("ALTER TABLE loans ADD COLUMN due_date TEXT")
        if not _column_exists(conn, "loans", "approved_at"):
            conn.execute("ALTER TABLE loans ADD COLUMN approved_at TEXT")
        if not _column_exists(conn, "loans", "approved_by"):
            conn.execute(
                """
                ALTER TABLE loans
                ADD COLUMN approved_by INTEGER
                  REFERENCES profiles(id) ON DELETE SET NULL
                """
            )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_loans_status_due_date
            ON loans(status, due_date)
            """
        )
        _updated_at_trigger(conn, "loans")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS loan_config (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              interest_rate TEXT NOT NULL,
              default_duration_days INTEGER NOT NULL CHECK(default_duration_days > 0),
              payment_frequency TEXT NOT NULL
                CHECK(payment_frequency IN ('weekly','biweekly','monthly')),
              is_active INTEGER NOT NULL DEFAULT 1,
              created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
              created_at TEXT NOT NULL DEFAULT (datetime('now')),
              updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
        _updated_at_trigger(conn, "loan_config")
