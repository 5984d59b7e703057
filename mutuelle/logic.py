from datetime import date as dt_date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .models import (
    LOAN_STATUSES,
    PAYMENT_FREQUENCIES,
    ROLES,
    TELLER_TYPES,
    TRANSACTION_TYPES,
)


def validate_type(s: str, *, allowed=TRANSACTION_TYPES) -> str:
    if s not in allowed:
        raise ValueError("type must be one of " + ", ".join(allowed))
    return s


def validate_teller_type(s: str) -> str:
    return validate_type(s, allowed=TELLER_TYPES)


def validate_role(s: str) -> str:
    if s not in ROLES:
        raise ValueError("role must be one of " + ", ".join(ROLES))
    return s


def validate_frequency(s: str) -> str:
    if s not in PAYMENT_FREQUENCIES:
        raise ValueError("payment frequency must be weekly, biweekly or monthly")
    return s


def validate_loan_status(s: str) -> str:
    if s not in LOAN_STATUSES:
        raise ValueError("loan status invalid")
    return s


def require_role(role: str | None, allowed) -> str:
    if role not in allowed:
        raise PermissionError("role not allowed")
    return role


def parse_amount(s: str) -> Decimal:
    if not isinstance(s, str) or not s.strip():
        raise ValueError("amount required")
    try:
        d = Decimal(s.strip())
    except InvalidOperation as e:
        raise ValueError("amount invalid") from e
    if not d.is_finite():
        raise ValueError("amount invalid")
    if d <= 0:
        raise ValueError("amount must be positive")
    try:
        quantized = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError("amount too large") from e
    if d != quantized:
        raise ValueError("amount supports up to 2 decimals")
    return quantized


def parse_interest_rate(s: str) -> Decimal:
    if not isinstance(s, str) or not s.strip():
        raise ValueError("interest rate required")
    try:
        d = Decimal(s.strip())
    except InvalidOperation as e:
        raise ValueError("interest rate invalid") from e
    if not d.is_finite() or d < 0 or d > 100:
        raise ValueError("interest rate must be between 0 and 100")
    return d


def parse_duration_days(s: str) -> int:
    try:
        days = int(str(s).strip())
    except ValueError as e:
        raise ValueError("duration invalid") from e
    if days <= 0:
        raise ValueError("duration must be positive")
    return days


def parse_transaction_date(s: str | None, today: dt_date | None = None) -> str:
    if not s or not s.strip():
        return (today or dt_date.today()).isoformat()
    try:
        return dt_date.fromisoformat(s.strip()[:10]).isoformat()
    except ValueError as e:
        raise ValueError("date invalid") from e


def default_period(transaction_date: str) -> str:
    return transaction_date[:7]


def parse_due_date(s: str | None) -> str | None:
    if not s or not s.strip():
        return None
    try:
        return dt_date.fromisoformat(s.strip()[:10]).isoformat()
    except ValueError as e:
        raise ValueError("due date invalid") from e


def default_due_date(duration_days: int, start: dt_date | None = None) -> str:
    return ((start or dt_date.today()) + timedelta(days=duration_days)).isoformat()
