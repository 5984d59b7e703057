"""Balance and contribution figures derived from a member's transactions.

Every function here is a pure fold over mapping-like records (``sqlite3.Row``
or ``dict``) exposing ``type``, ``amount`` and ``transaction_date``. Amounts
are parsed leniently, like JavaScript's ``parseFloat``: the leading number
of the text is used (``"12.50 HTG"`` is 12.50, ``"1,000"`` is 1) and text with
no leading number counts as zero. Missing fields never raise.
"""

import re
from decimal import Decimal, InvalidOperation, getcontext

from .models import CREDIT_TYPES, DEBIT_TYPES

ZERO = Decimal("0")
_LEADING_NUMBER = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_amount_lenient(value) -> Decimal:
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        match = _LEADING_NUMBER.match(str(value))
        if match is None:
            return ZERO
        try:
            amount = Decimal(match.group(1))
        except (InvalidOperation, ValueError, OverflowError):
            return ZERO
    # Out-of-range exponents would overflow the running sums.
    if not amount.is_finite() or amount.adjusted() > getcontext().Emax:
        return ZERO
    return amount


def balance_effect(txn_type: str, amount: Decimal) -> Decimal:
    if txn_type in CREDIT_TYPES:
        return amount
    if txn_type in DEBIT_TYPES:
        return -amount
    return ZERO


def _field(txn, name):
    return txn[name] if name in txn.keys() else None


def _effect(txn) -> Decimal:
    return balance_effect(
        _field(txn, "type"), parse_amount_lenient(_field(txn, "amount"))
    )


def _chronological(transactions) -> list:
    # Rows usually arrive most recent first; reversing before the stable sort
    # keeps same-day rows in their insertion order.
    ordered = list(transactions)
    ordered.reverse()
    ordered.sort(key=lambda txn: str(_field(txn, "transaction_date") or ""))
    return ordered


def compute_balance(transactions) -> Decimal:
    return sum((_effect(txn) for txn in transactions), ZERO)


def compute_total_contributions(transactions) -> Decimal:
    return sum(
        (
            parse_amount_lenient(_field(txn, "amount"))
            for txn in transactions
            if _field(txn, "type") == "contribution"
        ),
        ZERO,
    )


def build_contribution_series(transactions) -> list[dict]:
    return [
        {
            "date": _field(txn, "transaction_date"),
            "amount": parse_amount_lenient(_field(txn, "amount")),
        }
        for txn in _chronological(transactions)
        if _field(txn, "type") == "contribution"
    ]


def build_balance_series(transactions) -> list[dict]:
    """Running balance after each transaction, oldest first.

    Every transaction yields one point, including neutral or unknown types,
    which repeat the previous balance.
    """
    series = []
    balance = ZERO
    for txn in _chronological(transactions):
        balance += _effect(txn)
        series.append({"date": _field(txn, "transaction_date"), "balance": balance})
    return series


def summarize(transactions, *, active_loans: int = 0, recent_limit: int = 10) -> dict:
    transactions = list(transactions)
    return {
        "total_balance": compute_balance(transactions),
        "total_contributions": compute_total_contributions(transactions),
        "active_loans": active_loans,
        "recent_transactions": min(len(transactions), recent_limit),
    }
