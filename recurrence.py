import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import (
    RecurringRule,
    Transaction,
    TransactionStatus,
    TransactionType,
    generate_id,
)
from periods import (
    days_in_month,
    from_month_index,
    local_today,
    month_index,
    utc_to_local,
)


logger = logging.getLogger(__name__)


class MaterializationState(str, Enum):
    not_due = "not_due"
    due_unmaterialized = "due_unmaterialized"
    materialized = "materialized"


def occurrence_datetime(rule: RecurringRule, year: int, month: int) -> datetime:
    day = min(rule.day_of_month, days_in_month(year, month))
    return datetime.combine(date(year, month, day), time(12, 0))


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    next_year, next_month = from_month_index(month_index(year, month) + 1)
    return datetime(year, month, 1), datetime(next_year, next_month, 1)


def _created_before_or_in(rule: RecurringRule, year: int, month: int) -> bool:
    if rule.created_at is None:
        return True
    # created_at is stored in UTC; months are counted in the configured zone
    created = utc_to_local(rule.created_at)
    return month_index(created.year, created.month) <= month_index(year, month)


def has_instance_in_month(
    rule: RecurringRule, transactions: Iterable[Transaction], year: int, month: int
) -> bool:
    return any(
        txn.recurring_rule_id == rule.id
        and txn.occurred_at.year == year
        and txn.occurred_at.month == month
        for txn in transactions
    )


def rule_state(
    rule: RecurringRule, transactions: Iterable[Transaction], year: int, month: int
) -> MaterializationState:
    if has_instance_in_month(rule, transactions, year, month):
        return MaterializationState.materialized
    if not rule.active or not _created_before_or_in(rule, year, month):
        return MaterializationState.not_due
    return MaterializationState.due_unmaterialized


def materialize_rule(rule: RecurringRule, year: int, month: int) -> Transaction:
    return Transaction(
        id=generate_id(),
        amount_cents=rule.amount_cents,
        description=rule.description,
        category=rule.category,
        occurred_at=occurrence_datetime(rule, year, month),
        type=TransactionType.expense,
        status=TransactionStatus.pending,
        installment_plan=None,
        recurring_rule_id=rule.id,
    )


def materialize_due_rules(
    rules: Iterable[RecurringRule],
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
) -> list[Transaction]:
    """Instances to create for the current month, one per due rule.

    Only the month containing ``today`` is considered; past months are never
    backfilled. Each rule is checked against ``transactions`` alone, so the
    result does not depend on rule order.
    """
    today = today or local_today()
    created: list[Transaction] = []
    seen: set[str] = set()
    for rule in rules:
        if rule.id in seen:
            continue
        seen.add(rule.id)
        state = rule_state(rule, transactions, today.year, today.month)
        if state != MaterializationState.due_unmaterialized:
            continue
        created.append(materialize_rule(rule, today.year, today.month))
    return created


class RecurringEngine:
    def __init__(self, session: Session) -> None:
        self.session = session

    def post_due_rules(self, today: Optional[date] = None) -> list[Transaction]:
        today = today or local_today()
        rules = self.session.scalars(
            select(RecurringRule)
            .where(RecurringRule.active.is_(True))
            .order_by(RecurringRule.id)
        ).all()
        if not rules:
            return []

        start, end = month_bounds(today.year, today.month)
        existing = self.session.scalars(
            select(Transaction).where(
                Transaction.recurring_rule_id.in_([rule.id for rule in rules]),
                Transaction.occurred_at >= start,
                Transaction.occurred_at < end,
            )
        ).all()

        created = materialize_due_rules(rules, existing, today)
        for txn in created:
            self.session.add(txn)
            logger.info(
                f"materialize: rule_id={txn.recurring_rule_id} "
                f"month={today.year:04d}-{today.month:02d} transaction_id={txn.id}"
            )
        self.session.flush()
        return created
