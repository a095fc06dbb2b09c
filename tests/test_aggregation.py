from datetime import datetime

import pytest

from aggregation import (
    category_breakdown,
    summarize,
    top_categories,
    transactions_in_scope,
)
from models import Transaction, TransactionStatus, TransactionType
from periods import ALL, days_in_month, month_scope, resolve_scope


def _txn(
    txn_id: str,
    amount_cents: int,
    txn_type: TransactionType,
    occurred_at: datetime,
    category: str = "Food",
) -> Transaction:
    return Transaction(
        id=txn_id,
        amount_cents=amount_cents,
        description=txn_id,
        category=category,
        occurred_at=occurred_at,
        type=txn_type,
        status=TransactionStatus.paid,
    )


def _sample() -> list[Transaction]:
    return [
        _txn("salary", 300_000, TransactionType.income, datetime(2024, 3, 1, 9, 0)),
        _txn("rent", 120_000, TransactionType.expense, datetime(2024, 3, 3, 12, 0), "Housing"),
        _txn("lunch", 1_250, TransactionType.expense, datetime(2024, 3, 31, 23, 59)),
        _txn("groceries", 8_740, TransactionType.expense, datetime(2024, 2, 29, 18, 0)),
        _txn("vault", 50_000, TransactionType.savings, datetime(2024, 3, 15, 12, 0)),
        _txn("bonus", 20_000, TransactionType.income, datetime(2024, 4, 1, 0, 0)),
    ]


def test_all_scope_balance_identity() -> None:
    summary = summarize(_sample(), ALL, initial_balance_cents=10_000)

    assert summary.total_income == 320_000
    assert summary.total_expense == 129_990
    assert summary.total_savings == 50_000
    assert summary.balance == 10_000 + 320_000 - 129_990 - 50_000


def test_month_scope_filters_by_calendar_month_only() -> None:
    summary = summarize(_sample(), month_scope(2024, 3), initial_balance_cents=10_000)

    assert summary.total_income == 300_000
    assert summary.total_expense == 121_250
    assert summary.total_savings == 50_000
    assert summary.balance is None


def test_breakdown_groups_expenses_in_scope() -> None:
    breakdown = category_breakdown(_sample(), month_scope(2024, 3))

    assert breakdown == {"Food": 1_250, "Housing": 120_000}


def test_summary_is_independent_of_input_order() -> None:
    forward = summarize(_sample(), ALL, 500)
    backward = summarize(list(reversed(_sample())), ALL, 500)

    assert forward == backward
    assert list(forward.category_breakdown) == list(backward.category_breakdown)


def test_empty_month_has_zero_totals() -> None:
    summary = summarize(_sample(), month_scope(2023, 12))

    assert summary.total_income == 0
    assert summary.total_expense == 0
    assert summary.category_breakdown == {}


def test_top_categories_sorts_and_truncates() -> None:
    breakdown = {"Food": 200, "Housing": 600, "Fun": 200, "Health": 100}

    top = top_categories(breakdown, limit=3)

    assert [row["name"] for row in top] == ["Housing", "Food", "Fun"]
    assert top[0]["percent"] == pytest.approx(600 / 1100 * 100)
    assert top_categories({}, limit=7) == []


def test_transactions_in_scope_newest_first() -> None:
    selected = transactions_in_scope(_sample(), month_scope(2024, 3))

    assert [t.id for t in selected] == ["lunch", "vault", "rent", "salary"]


def test_resolve_scope() -> None:
    assert resolve_scope(None) == ALL
    assert resolve_scope("all") == ALL
    scope = resolve_scope("2024-03")
    assert (scope.year, scope.month) == (2024, 3)
    assert scope.label() == "2024-03"

    with pytest.raises(ValueError):
        resolve_scope("2024-13")
    with pytest.raises(ValueError):
        resolve_scope("March")


def test_days_in_month_handles_leap_years() -> None:
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 12) == 31
