from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from models import Transaction, TransactionType
from periods import ALL, Scope


@dataclass(frozen=True)
class Summary:
    scope: Scope
    total_income: int
    total_expense: int
    total_savings: int
    # only the "all" scope has a standalone balance
    balance: Optional[int]
    category_breakdown: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "scope": self.scope.label(),
            "income": self.total_income,
            "expenses": self.total_expense,
            "savings": self.total_savings,
            "balance": self.balance,
            "category_breakdown": dict(self.category_breakdown),
        }


def transactions_in_scope(
    transactions: Iterable[Transaction], scope: Scope
) -> list[Transaction]:
    selected = [txn for txn in transactions if scope.contains(txn.occurred_at)]
    selected.sort(key=lambda t: (t.occurred_at, t.id), reverse=True)
    return selected


def liquid_balance(
    initial_balance_cents: int, income: int, expense: int, savings: int
) -> int:
    # savings leave the wallet for a separate account
    return initial_balance_cents + income - expense - savings


def category_breakdown(
    transactions: Iterable[Transaction], scope: Scope
) -> dict[str, int]:
    totals: dict[str, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense or not scope.contains(txn.occurred_at):
            continue
        totals[txn.category] = totals.get(txn.category, 0) + txn.amount_cents
    return dict(sorted(totals.items()))


def summarize(
    transactions: Iterable[Transaction],
    scope: Scope,
    initial_balance_cents: int = 0,
) -> Summary:
    in_scope = [txn for txn in transactions if scope.contains(txn.occurred_at)]
    totals = {kind: 0 for kind in TransactionType}
    for txn in in_scope:
        totals[txn.type] += txn.amount_cents

    income = totals[TransactionType.income]
    expense = totals[TransactionType.expense]
    savings = totals[TransactionType.savings]
    balance = (
        liquid_balance(initial_balance_cents, income, expense, savings)
        if scope.is_all
        else None
    )
    return Summary(
        scope=scope,
        total_income=income,
        total_expense=expense,
        total_savings=savings,
        balance=balance,
        category_breakdown=category_breakdown(in_scope, scope),
    )


def top_categories(
    breakdown: dict[str, int], limit: Optional[int] = None
) -> list[dict[str, object]]:
    total = sum(breakdown.values())
    items = sorted(breakdown.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        items = items[:limit]
    return [
        {
            "name": name,
            "amount_cents": amount,
            "percent": (amount / total * 100) if total else 0,
        }
        for name, amount in items
    ]


def totals_by_type(transactions: Sequence[Transaction]) -> tuple[int, int, int]:
    """Global income, expense and savings sums, in that order."""
    summary = summarize(transactions, ALL)
    return summary.total_income, summary.total_expense, summary.total_savings
