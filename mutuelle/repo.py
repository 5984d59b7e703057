import sqlite3

from .db import connect
from .logic import validate_role
from .models import ACTIVE_LOAN_STATUSES, MEMBER_STATUSES


def create_profile(
    db_path, *, email: str | None, full_name: str | None, role: str = "member"
) -> int:
    validate_role(role)
    with connect(db_path) as conn:
        try:
            cur = conn.execute(
                """
                INSERT INTO profiles(email, full_name, role)
                VALUES (?, ?, ?)
                """,
                (email, full_name, role),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError("profile email already exists") from exc
        return int(cur.lastrowid)


def get_profile(db_path, profile_id: int):
    with connect(db_path) as conn:
        return conn.execute(
            "SELECT id, email, full_name, role FROM profiles WHERE id = ?",
            (profile_id,),
        ).fetchone()


def get_profile_role(db_path, profile_id: int | None) -> str | None:
    if profile_id is None:
        return None
    profile = get_profile(db_path, profile_id)
    return profile["role"] if profile else None


def create_member(
    db_path,
    *,
    member_number: str,
    full_name: str,
    profile_id: int | None = None,
    phone: str | None = None,
    address: str | None = None,
    status: str = "active",
) -> int:
    number = member_number.replace("-", "").strip()
    name = full_name.strip()
    if not number:
        raise ValueError("member number required")
    if not name:
        raise ValueError("member name required")
    if status not in MEMBER_STATUSES:
        raise ValueError("member status invalid")
    with connect(db_path) as conn:
        try:
            cur = conn.execute(
                """
                INSERT INTO members(profile_id, member_number, full_name, phone, address, status)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (profile_id, number, name, phone, address, status),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError("member already exists") from exc
        return int(cur.lastrowid)


def get_member(db_path, member_id: int):
    with connect(db_path) as conn:
        return conn.execute(
            """
            SELECT id, profile_id, member_number, full_name, phone, address,
                   join_date, status
            FROM members
            WHERE id = ?
            """,
            (member_id,),
        ).fetchone()


def get_member_by_profile(db_path, profile_id: int):
    with connect(db_path) as conn:
        return conn.execute(
            """
            SELECT id, profile_id, member_number, full_name, phone, address,
                   join_date, status
            FROM members
            WHERE profile_id = ?
            """,
            (profile_id,),
        ).fetchone()


def list_members(db_path, *, status: str | None = "active"):
    with connect(db_path) as conn:
        if status is None:
            cur = conn.execute(
                """
                SELECT id, member_number, full_name, phone, status
                FROM members
                ORDER BY full_name ASC, id ASC
                """
            )
        else:
            cur = conn.execute(
                """
                SELECT id, member_number, full_name, phone, status
                FROM members
                WHERE status = ?
                ORDER BY full_name ASC, id ASC
                """,
                (status,),
            )
        return cur.fetchall()


def create_expense_category(db_path, name: str, color: str = "#c69bcc") -> int:
    category_name = name.strip()
    if not category_name:
        raise ValueError("category name required")
    with connect(db_path) as conn:
        try:
            cur = conn.execute(
                "INSERT INTO expense_categories(name, color) VALUES (?, ?)",
                (category_name, color.strip() or "#c69bcc"),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError("category name already exists") from exc
        return int(cur.lastrowid)


def list_expense_categories(db_path, *, include_inactive: bool = False):
    with connect(db_path) as conn:
        if include_inactive:
            cur = conn.execute(
                """
                SELECT id, name, color, is_active
                FROM expense_categories
                ORDER BY is_active DESC, name ASC
                """
            )
        else:
            cur = conn.execute(
                """
                SELECT id, name, color, is_active
                FROM expense_categories
                WHERE is_active = 1
                ORDER BY name ASC
                """
            )
        return cur.fetchall()


def set_expense_category_active(db_path, category_id: int, active: bool) -> None:
    with connect(db_path) as conn:
        cur = conn.execute(
            "UPDATE expense_categories SET is_active = ? WHERE id = ?",
            (1 if active else 0, category_id),
        )
        if cur.rowcount == 0:
            raise ValueError("category not found")


def _insert_txn(
    conn: sqlite3.Connection,
    *,
    member_id: int | None,
    txn_type: str,
    amount,
    transaction_date: str,
    description: str | None,
    created_by: int | None,
    expense_category_id: int | None,
    period: str | None,
) -> int:
    if member_id is not None:
        if (
            conn.execute(
                "SELECT 1 FROM members WHERE id = ?", (member_id,)
            ).fetchone()
            is None
        ):
            raise ValueError("member not found")
    elif txn_type != "expense":
        raise ValueError("member required")

    if txn_type == "expense":
        if expense_category_id is None:
            raise ValueError("expense category required")
        if (
            conn.execute(
                "SELECT 1 FROM expense_categories WHERE id = ? AND is_active = 1",
                (expense_category_id,),
            ).fetchone()
            is None
        ):
            raise ValueError("expense category not found")

    cur = conn.execute(
        """
        INSERT INTO transactions(
          member_id, type, amount, description, transaction_date,
          created_by, expense_category_id, period
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            member_id,
            txn_type,
            str(amount),
            description,
            transaction_date,
            created_by,
            expense_category_id,
            period,
        ),
    )
    return int(cur.lastrowid)


def create_txn(
    db_path,
    *,
    member_id: int | None,
    txn_type: str,
    amount,
    transaction_date: str,
    description: str | None = None,
    created_by: int | None = None,
    expense_category_id: int | None = None,
    period: str | None = None,
) -> int:
    with connect(db_path) as conn:
        return _insert_txn(
            conn,
            member_id=member_id,
            txn_type=txn_type,
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            created_by=created_by,
            expense_category_id=expense_category_id,
            period=period,
        )


def get_txn(db_path, txn_id: int):
    with connect(db_path) as conn:
        return conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (txn_id,)
        ).fetchone()


def list_txns(
    db_path,
    *,
    member_id: int,
    txn_type: str | None = None,
    start: str | None = None,
    end: str | None = None,
    limit: int | None = None,
):
    clauses = ["member_id = ?"]
    params: list = [member_id]
    if txn_type is not None:
        clauses.append("type = ?")
        params.append(txn_type)
    if start is not None:
        clauses.append("transaction_date >= ?")
        params.append(start)
    if end is not None:
        # Dates may carry a time part; compare against the end of that day.
        clauses.append("substr(transaction_date, 1, 10) <= ?")
        params.append(end)
    sql = f"""
        SELECT * FROM transactions
        WHERE {" AND ".join(clauses)}
        ORDER BY transaction_date DESC, id DESC
    """
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    with connect(db_path) as conn:
        return conn.execute(sql, params).fetchall()


def delete_txn(db_path, txn_id: int) -> None:
    with connect(db_path) as conn:
        cur = conn.execute("DELETE FROM transactions WHERE id = ?", (txn_id,))
        if cur.rowcount == 0:
            raise ValueError("transaction not found")


def _insert_loan(
    conn: sqlite3.Connection,
    *,
    member_id: int,
    amount,
    interest_rate,
    payment_frequency: str,
    duration_days: int,
    transaction_id: int | None,
    status: str,
) -> int:
    try:
        cur = conn.execute(
            """
            INSERT INTO loans(
              member_id, amount, interest_rate, status,
              payment_frequency, duration_days, transaction_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                member_id,
                str(amount),
                str(interest_rate),
                status,
                payment_frequency,
                duration_days,
                transaction_id,
            ),
        )
    except sqlite3.IntegrityError as exc:
        raise ValueError("loan invalid") from exc
    return int(cur.lastrowid)


def create_loan(
    db_path,
    *,
    member_id: int,
    amount,
    interest_rate,
    payment_frequency: str,
    duration_days: int,
    transaction_id: int | None = None,
    status: str = "pending",
) -> int:
    with connect(db_path) as conn:
        return _insert_loan(
            conn,
            member_id=member_id,
            amount=amount,
            interest_rate=interest_rate,
            payment_frequency=payment_frequency,
            duration_days=duration_days,
            transaction_id=transaction_id,
            status=status,
        )


def create_loan_txn(
    db_path,
    *,
    member_id: int,
    amount,
    transaction_date: str,
    interest_rate,
    payment_frequency: str,
    duration_days: int,
    description: str | None = None,
    created_by: int | None = None,
) -> tuple[int, int]:
    """Record a loan disbursement and its pending loan row in one commit.

    Returns ``(transaction_id, loan_id)``. If either insert fails neither row
    is kept.
    """
    with connect(db_path) as conn:
        txn_id = _insert_txn(
            conn,
            member_id=member_id,
            txn_type="loan",
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            created_by=created_by,
            expense_category_id=None,
            period=None,
        )
        loan_id = _insert_loan(
            conn,
            member_id=member_id,
            amount=amount,
            interest_rate=interest_rate,
            payment_frequency=payment_frequency,
            duration_days=duration_days,
            transaction_id=txn_id,
            status="pending",
        )
        return txn_id, loan_id


def list_loans(db_path, *, member_id: int):
    with connect(db_path) as conn:
        return conn.execute(
            """
            SELECT * FROM loans
            WHERE member_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (member_id,),
        ).fetchall()


def count_active_loans(db_path, *, member_id: int) -> int:
    placeholders = ", ".join("?" for _ in ACTIVE_LOAN_STATUSES)
    with connect(db_path) as conn:
        row = conn.execute(
            f"""
            SELECT COUNT(*) AS c FROM loans
            WHERE member_id = ? AND status IN ({placeholders})
            """,
            (member_id, *ACTIVE_LOAN_STATUSES),
        ).fetchone()
    return int(row["c"])


def get_loan(db_path, loan_id: int):
    with connect(db_path) as conn:
        return conn.execute("SELECT * FROM loans WHERE id = ?", (loan_id,)).fetchone()


def update_loan_status(
    db_path, loan_id: int, status: str, *, changed_by: int | None = None
) -> None:
    with connect(db_path) as conn:
        if status == "approved":
            cur = conn.execute(
                """
                UPDATE loans
                SET status = ?, approved_at = datetime('now'), approved_by = ?
                WHERE id = ?
                """,
                (status, changed_by, loan_id),
            )
        else:
            cur = conn.execute(
                "UPDATE loans SET status = ? WHERE id = ?",
                (status, loan_id),
            )
        if cur.rowcount == 0:
            raise ValueError("loan not found")


def set_loan_due_date(db_path, loan_id: int, due_date: str) -> None:
    with connect(db_path) as conn:
        cur = conn.execute(
            "UPDATE loans SET due_date = ? WHERE id = ?",
            (due_date, loan_id),
        )
        if cur.rowcount == 0:
            raise ValueError("loan not found")


def list_overdue_loans(db_path, *, today: str):
    with connect(db_path) as conn:
        return conn.execute(
            """
            SELECT loans.*,
                   members.member_number, members.full_name, members.phone,
                   CAST(julianday(?) - julianday(substr(loans.due_date, 1, 10)) AS INTEGER)
                     AS days_overdue
            FROM loans
            JOIN members ON members.id = loans.member_id
            WHERE loans.status = 'active'
              AND loans.due_date IS NOT NULL
              AND substr(loans.due_date, 1, 10) < ?
            ORDER BY loans.due_date ASC, loans.id ASC
            """,
            (today, today),
        ).fetchall()


def get_active_loan_config(db_path):
    with connect(db_path) as conn:
        return conn.execute(
            """
            SELECT id, interest_rate, default_duration_days, payment_frequency
            FROM loan_config
            WHERE is_active = 1
            ORDER BY id DESC
            LIMIT 1
            """
        ).fetchone()


def save_loan_config(
    db_path,
    *,
    interest_rate,
    default_duration_days: int,
    payment_frequency: str,
    created_by: int | None = None,
) -> int:
    with connect(db_path) as conn:
        conn.execute("UPDATE loan_config SET is_active = 0 WHERE is_active = 1")
        cur = conn.execute(
            """
            INSERT INTO loan_config(
              interest_rate, default_duration_days, payment_frequency, created_by
            )
            VALUES (?, ?, ?, ?)
            """,
            (str(interest_rate), default_duration_days, payment_frequency, created_by),
        )
        return int(cur.lastrowid)
