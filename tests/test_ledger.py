from decimal import Decimal
import itertools
import sqlite3

import pytest

from mutuelle.ledger import (
    balance_effect,
    build_balance_series,
    build_contribution_series,
    compute_balance,
    compute_total_contributions,
    parse_amount_lenient,
    summarize,
)


def txn(txn_type, amount, date="2026-03-01"):
    return {"type": txn_type, "amount": amount, "transaction_date": date}


def test_empty_ledger():
    assert compute_balance([]) == 0
    assert compute_total_contributions([]) == 0
    assert build_balance_series([]) == []
    assert build_contribution_series([]) == []


def test_single_contribution():
    assert compute_balance([txn("contribution", 100)]) == 100


def test_single_loan():
    assert compute_balance([txn("loan", 500)]) == -500


def test_mixed_types():
    transactions = [
        txn("contribution", 100),
        txn("withdrawal", 40),
        txn("expense", 10),
    ]
    assert compute_balance(transactions) == 50


def test_payment_and_interest_increase_balance():
    transactions = [txn("loan", "1000"), txn("payment", "600"), txn("interest", "12.50")]
    assert compute_balance(transactions) == Decimal("-387.50")


def test_balance_is_order_independent():
    transactions = [
        txn("contribution", "100.10"),
        txn("loan", "55"),
        txn("payment", "20.05"),
        txn("withdrawal", "3"),
        txn("bonus", "999"),
    ]
    expected = compute_balance(transactions)
    for permutation in itertools.permutations(transactions):
        assert compute_balance(permutation) == expected


@pytest.mark.parametrize("bad", ["abc", "", None, "NaN", "inf", [], True])
def test_unparsable_amount_counts_as_zero(bad):
    transactions = [txn("contribution", 100), txn("contribution", bad), txn("withdrawal", 30)]
    assert compute_balance(transactions) == 70
    assert compute_total_contributions(transactions) == 100


@pytest.mark.parametrize(
    "value,expected",
    [
        (100, Decimal("100")),
        ("12.34", Decimal("12.34")),
        (" 5 ", Decimal("5")),
        (2.5, Decimal("2.5")),
        (Decimal("7.10"), Decimal("7.10")),
        ("abc", Decimal("0")),
        ("12.50 HTG", Decimal("12.50")),
        ("1,000", Decimal("1")),
        ("-3abc", Decimal("-3")),
        (".5", Decimal("0.5")),
        ("2e3", Decimal("2000")),
        ("HTG 12", Decimal("0")),
        ("1e999999999", Decimal("0")),
    ],
)
def test_parse_amount_lenient(value, expected):
    assert parse_amount_lenient(value) == expected


def test_unknown_type_contributes_nothing():
    assert balance_effect("dividend", Decimal("10")) == 0
    assert compute_balance([txn("dividend", 10), txn("future_type", "5")]) == 0


def test_total_contributions_ignores_other_types():
    transactions = [
        txn("contribution", "100"),
        txn("payment", "50"),
        txn("contribution", "25.50"),
        txn("interest", "3"),
    ]
    assert compute_total_contributions(transactions) == Decimal("125.50")


def test_balance_series_from_descending_input():
    transactions = [
        txn("contribution", 30, "2026-03-03"),
        txn("contribution", 20, "2026-03-02"),
        txn("contribution", 10, "2026-03-01"),
    ]
    assert build_balance_series(transactions) == [
        {"date": "2026-03-01", "balance": Decimal("10")},
        {"date": "2026-03-02", "balance": Decimal("30")},
        {"date": "2026-03-03", "balance": Decimal("60")},
    ]


def test_balance_series_from_ascending_input():
    transactions = [
        txn("contribution", 10, "2026-03-01"),
        txn("loan", 50, "2026-03-02"),
        txn("payment", 20, "2026-03-03"),
    ]
    assert [point["balance"] for point in build_balance_series(transactions)] == [
        Decimal("10"),
        Decimal("-40"),
        Decimal("-20"),
    ]


def test_balance_series_keeps_a_point_per_transaction():
    transactions = [
        txn("withdrawal", 5, "2026-03-04"),
        txn("dividend", 99, "2026-03-03"),
        txn("contribution", "abc", "2026-03-02"),
        txn("contribution", 20, "2026-03-01"),
    ]
    series = build_balance_series(transactions)
    assert [point["date"] for point in series] == [
        "2026-03-01",
        "2026-03-02",
        "2026-03-03",
        "2026-03-04",
    ]
    assert [point["balance"] for point in series] == [
        Decimal("20"),
        Decimal("20"),
        Decimal("20"),
        Decimal("15"),
    ]


def test_all_unknown_types_give_flat_series():
    transactions = [txn("dividend", 5, "2026-03-02"), txn("bonus", 7, "2026-03-01")]
    assert compute_balance(transactions) == 0
    assert [point["balance"] for point in build_balance_series(transactions)] == [0, 0]


def test_contribution_series_only_has_contributions():
    transactions = [
        txn("withdrawal", 5, "2026-03-04"),
        txn("contribution", 30, "2026-03-03"),
        txn("loan", 100, "2026-03-02"),
        txn("contribution", "oops", "2026-03-01"),
    ]
    assert build_contribution_series(transactions) == [
        {"date": "2026-03-01", "amount": Decimal("0")},
        {"date": "2026-03-03", "amount": Decimal("30")},
    ]
    assert len(build_balance_series(transactions)) == 4


def test_same_day_rows_keep_insertion_order():
    # Fetched newest first: the later row for the same day comes first.
    transactions = [
        {"type": "withdrawal", "amount": 10, "transaction_date": "2026-03-01", "id": 2},
        {"type": "contribution", "amount": 50, "transaction_date": "2026-03-01", "id": 1},
    ]
    assert [point["balance"] for point in build_balance_series(transactions)] == [
        Decimal("50"),
        Decimal("40"),
    ]


def test_summarize():
    transactions = [txn("contribution", 100), txn("loan", 30), txn("payment", 10)]
    assert summarize(transactions, active_loans=1, recent_limit=2) == {
        "total_balance": Decimal("80"),
        "total_contributions": Decimal("100"),
        "active_loans": 1,
        "recent_transactions": 2,
    }


def test_amount_with_trailing_text_uses_leading_number():
    transactions = [txn("contribution", "12.50 HTG"), txn("withdrawal", "2.50 HTG")]
    assert compute_balance(transactions) == Decimal("10.00")
    assert compute_total_contributions(transactions) == Decimal("12.50")


def test_missing_fields_do_not_raise():
    transactions = [
        {"type": "contribution", "transaction_date": "2026-03-02"},
        {"amount": "10", "transaction_date": "2026-03-01"},
        {"type": "contribution", "amount": "5"},
    ]
    assert compute_balance(transactions) == Decimal("5")
    assert compute_total_contributions(transactions) == Decimal("5")
    assert [point["balance"] for point in build_balance_series(transactions)] == [
        Decimal("5"),
        Decimal("5"),
        Decimal("5"),
    ]
    assert [point["amount"] for point in build_contribution_series(transactions)] == [
        Decimal("5"),
        Decimal("0"),
    ]


def test_sqlite_rows_without_amount_column(tmp_path):
    conn = sqlite3.connect(str(tmp_path / "rows.sqlite"))
    conn.row_factory = sqlite3.Row
    rows = conn.execute(
        "SELECT 'contribution' AS type, '2026-03-01' AS transaction_date"
    ).fetchall()
    conn.close()
    assert compute_balance(rows) == 0
    assert build_balance_series(rows) == [{"date": "2026-03-01", "balance": Decimal("0")}]
