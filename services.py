from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from aggregation import (
    Summary,
    summarize,
    top_categories,
    totals_by_type,
    transactions_in_scope,
)
from balance import BalanceInput, reconcile_initial_balance
from config import get_settings
from installments import (
    InstallmentStatus,
    generate_payment_transaction,
    installment_schedule,
    monthly_commitment,
)
from models import (
    PARENT_LINK_POLICY,
    RECURRING_LINK_POLICY,
    Category,
    InstallmentPlan,
    LinkPolicy,
    RecurringRule,
    Transaction,
    generate_id,
)
from periods import ALL, Scope, local_today, month_scope
from recurrence import MaterializationState, rule_state
from schemas import CategoryIn, RecurringRuleIn, TransactionIn
from store import LedgerStore, NotFoundError, PersistenceError


logger = logging.getLogger(__name__)


def transaction_from_input(data: TransactionIn) -> Transaction:
    plan = None
    if data.installment_plan is not None:
        plan = InstallmentPlan(**data.installment_plan.model_dump())
    return Transaction(
        id=data.id or generate_id(),
        amount_cents=data.amount_cents,
        description=data.description,
        category=data.category.strip(),
        occurred_at=data.occurred_at,
        type=data.type,
        status=data.status,
        installment_plan=plan,
        recurring_rule_id=data.recurring_rule_id,
        parent_transaction_id=data.parent_transaction_id,
    )


def linked_for_delete(
    policy: LinkPolicy, dependents: list[Transaction]
) -> list[Transaction]:
    """Records to delete together with their source under ``policy``.

    ``orphan`` leaves dependents in place, ``cascade`` returns them all and
    ``block`` refuses the delete while any dependent exists.
    """
    if not dependents or policy == LinkPolicy.orphan:
        return []
    if policy == LinkPolicy.block:
        raise ValueError(f"Delete blocked by {len(dependents)} linked transaction(s)")
    return list(dependents)


class LedgerService:
    """In-memory view of the ledger kept in step with the store.

    Every figure is derived on demand from ``transactions``; mutations go
    through the store and then re-read the authoritative collection.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self.store = store
        self.clock = clock or local_today
        self.categories: list[Category] = []
        self.transactions: list[Transaction] = []
        self.initial_balance_cents = 0
        self.loaded = False

    async def load(self) -> None:
        categories = await self.store.list_categories()
        if not categories:
            await self.store.seed_default_categories()
            categories = await self.store.list_categories()
        self.categories = categories

        self.initial_balance_cents = await self.store.get_initial_balance()

        # generated instances must exist before the list is read
        await self.store.materialize_due_recurring_expenses(self.clock())

        self.transactions = await self.store.list_transactions()
        self.loaded = True
        logger.info(
            f"ledger_load: categories={len(self.categories)} "
            f"transactions={len(self.transactions)}"
        )

    async def resync(self) -> None:
        self.categories = await self.store.list_categories()
        self.initial_balance_cents = await self.store.get_initial_balance()
        self.transactions = await self.store.list_transactions()

    async def materialize_recurring(self) -> list[Transaction]:
        created = await self.store.materialize_due_recurring_expenses(self.clock())
        if created:
            self.transactions = await self.store.list_transactions()
        return created

    def get_transaction(self, transaction_id: str) -> Transaction:
        for txn in self.transactions:
            if txn.id == transaction_id:
                return txn
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    async def save_transaction(self, data: TransactionIn) -> Transaction:
        saved = await self.store.upsert_transaction(transaction_from_input(data))
        self.transactions = await self.store.list_transactions()
        return saved

    async def update_transaction(
        self, transaction_id: str, data: TransactionIn
    ) -> Optional[Transaction]:
        self.transactions = await self.store.list_transactions()
        if not any(txn.id == transaction_id for txn in self.transactions):
            logger.warning(f"update_transaction: missing id={transaction_id}")
            return None
        return await self.save_transaction(data.model_copy(update={"id": transaction_id}))

    async def delete_transaction(self, transaction_id: str) -> None:
        children = [
            t for t in self.transactions if t.parent_transaction_id == transaction_id
        ]
        linked = linked_for_delete(PARENT_LINK_POLICY, children)
        removed = {transaction_id} | {t.id for t in linked}
        self.transactions = [t for t in self.transactions if t.id not in removed]
        try:
            await self.store.delete_transaction(transaction_id)
            for child in linked:
                await self.store.delete_transaction(child.id)
        except NotFoundError:
            logger.warning(f"delete_transaction: missing id={transaction_id}")
        except PersistenceError:
            await self._recover_transactions()
            raise
        self.transactions = await self.store.list_transactions()

    async def _recover_transactions(self) -> None:
        try:
            self.transactions = await self.store.list_transactions()
        except PersistenceError:
            logger.exception("recover: re-read failed, keeping local snapshot")

    async def save_category(self, data: CategoryIn) -> Category:
        category = Category(
            id=data.id or generate_id(),
            name=data.name.strip(),
            color=data.color,
            kind=data.kind,
        )
        saved = await self.store.upsert_category(category)
        self.categories = await self.store.list_categories()
        return saved

    async def delete_category(self, category_id: str) -> None:
        # transactions keep the category name as a plain label
        try:
            await self.store.delete_category(category_id)
        except NotFoundError:
            logger.warning(f"delete_category: missing id={category_id}")
        self.categories = await self.store.list_categories()

    async def set_actual_balance(self, value: BalanceInput) -> int:
        income, expense, savings = totals_by_type(self.transactions)
        new_initial = reconcile_initial_balance(value, income, expense, savings)
        await self.store.set_initial_balance(new_initial)
        self.initial_balance_cents = new_initial
        logger.info(f"reconcile: initial_balance_cents={new_initial}")
        return new_initial

    async def pay_installment(
        self, parent_id: str, installment_number: int, year: int, month: int
    ) -> Transaction:
        parent = self.get_transaction(parent_id)
        payment = generate_payment_transaction(
            parent, installment_number, year, month, today=self.clock()
        )
        saved = await self.store.upsert_transaction(payment)
        self.transactions = await self.store.list_transactions()
        return saved

    def summary(self, scope: Scope = ALL) -> Summary:
        return summarize(self.transactions, scope, self.initial_balance_cents)

    def month_summary(self, year: int, month: int) -> Summary:
        return self.summary(month_scope(year, month))

    def balance(self) -> int:
        return self.summary(ALL).balance

    def transactions_for(self, scope: Scope) -> list[Transaction]:
        return transactions_in_scope(self.transactions, scope)

    def top_categories(
        self, scope: Scope, limit: Optional[int] = None
    ) -> list[dict[str, object]]:
        if limit is None:
            limit = get_settings().top_categories
        return top_categories(self.summary(scope).category_breakdown, limit)

    def monthly_commitment(self, year: int, month: int) -> int:
        return monthly_commitment(self.transactions, year, month)

    def installment_schedule(self, year: int, month: int) -> list[InstallmentStatus]:
        return installment_schedule(self.transactions, year, month)

    def recurring_instances(self, rule_id: str) -> list[Transaction]:
        return [t for t in self.transactions if t.recurring_rule_id == rule_id]


class RecurringRuleService:
    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    async def list(self) -> list[RecurringRule]:
        return await self.store.list_recurring_rules()

    async def get(self, rule_id: str) -> RecurringRule:
        for rule in await self.store.list_recurring_rules():
            if rule.id == rule_id:
                return rule
        raise NotFoundError(f"Recurring rule not found: {rule_id}")

    async def save(self, data: RecurringRuleIn) -> RecurringRule:
        rule = RecurringRule(
            id=data.id or generate_id(),
            description=data.description.strip(),
            amount_cents=data.amount_cents,
            category=data.category.strip(),
            day_of_month=data.day_of_month,
            active=data.active,
        )
        return await self.store.upsert_recurring_rule(rule)

    async def toggle(self, rule_id: str, active: bool) -> RecurringRule:
        rule = await self.get(rule_id)
        rule.active = active
        return await self.store.upsert_recurring_rule(rule)

    async def delete(self, rule_id: str) -> None:
        instances = [
            t
            for t in await self.store.list_transactions()
            if t.recurring_rule_id == rule_id
        ]
        linked = linked_for_delete(RECURRING_LINK_POLICY, instances)
        await self.store.delete_recurring_rule(rule_id)
        for txn in linked:
            await self.store.delete_transaction(txn.id)

    async def overview(
        self, transactions: list[Transaction], year: int, month: int
    ) -> list[tuple[RecurringRule, MaterializationState]]:
        rules = await self.store.list_recurring_rules()
        return [(rule, rule_state(rule, transactions, year, month)) for rule in rules]
