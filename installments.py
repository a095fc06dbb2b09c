from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Optional, Sequence

from models import (
    InstallmentPlan,
    Transaction,
    TransactionStatus,
    TransactionType,
    generate_id,
)
from periods import local_today, month_index


@dataclass(frozen=True)
class InstallmentStatus:
    parent: Transaction
    installment_number: int
    paid_count: int
    remaining: int
    paid_this_month: bool


def months_since_start(plan: InstallmentPlan, year: int, month: int) -> int:
    start = plan.start_date
    return month_index(year, month) - month_index(start.year, start.month)


def is_plan_active_in_month(plan: InstallmentPlan, year: int, month: int) -> bool:
    offset = months_since_start(plan, year, month)
    return 0 <= offset < plan.total_installments


def monthly_commitment(
    transactions: Iterable[Transaction], year: int, month: int
) -> int:
    return sum(
        txn.installment_plan.monthly_amount_cents
        for txn in transactions
        if txn.installment_plan is not None
        and is_plan_active_in_month(txn.installment_plan, year, month)
    )


def payments_for(
    transactions: Iterable[Transaction], parent: Transaction
) -> list[Transaction]:
    return [txn for txn in transactions if txn.parent_transaction_id == parent.id]


def count_paid_installments(
    transactions: Iterable[Transaction], parent: Transaction
) -> int:
    """Installments already settled for ``parent``.

    The plan's stored ``paid_installments`` is the count declared when the
    purchase was entered; every generated payment child adds one on top.
    """
    plan = parent.installment_plan
    if plan is None:
        return 0
    generated = len(payments_for(transactions, parent))
    return min(plan.total_installments, (plan.paid_installments or 0) + generated)


def payment_datetime(year: int, month: int, today: Optional[date] = None) -> datetime:
    today = today or local_today()
    if (today.year, today.month) == (year, month):
        day = today.day
    else:
        day = 1
    # noon keeps the calendar day stable across timezone conversions
    return datetime.combine(date(year, month, day), time(12, 0))


def generate_payment_transaction(
    parent: Transaction,
    installment_number: int,
    year: int,
    month: int,
    *,
    today: Optional[date] = None,
) -> Transaction:
    plan = parent.installment_plan
    if plan is None:
        raise ValueError("Transaction has no installment plan")
    number = min(max(installment_number, 1), plan.total_installments)
    return Transaction(
        id=generate_id(),
        amount_cents=plan.monthly_amount_cents,
        description=(
            f"{parent.description} (Installment {number}/{plan.total_installments})"
        ),
        category=parent.category,
        occurred_at=payment_datetime(year, month, today),
        type=TransactionType.expense,
        status=TransactionStatus.paid,
        installment_plan=None,
        parent_transaction_id=parent.id,
    )


def installment_schedule(
    transactions: Sequence[Transaction], year: int, month: int
) -> list[InstallmentStatus]:
    schedule: list[InstallmentStatus] = []
    for parent in transactions:
        plan = parent.installment_plan
        if plan is None or not is_plan_active_in_month(plan, year, month):
            continue
        children = payments_for(transactions, parent)
        paid_count = count_paid_installments(transactions, parent)
        paid_this_month = any(
            (child.occurred_at.year, child.occurred_at.month) == (year, month)
            for child in children
        )
        schedule.append(
            InstallmentStatus(
                parent=parent,
                installment_number=months_since_start(plan, year, month) + 1,
                paid_count=paid_count,
                remaining=plan.total_installments - paid_count,
                paid_this_month=paid_this_month,
            )
        )
    schedule.sort(key=lambda s: (s.parent.installment_plan.start_date, s.parent.id))
    return schedule
