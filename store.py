"""Storage collaborator for the ledger.

``LedgerStore`` is the async interface the facade depends on;
``SqlLedgerStore`` backs it with SQLAlchemy sessions. Records are stored
field-for-field as the domain models define them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database import get_session_factory, session_scope
from models import (
    DEFAULT_CATEGORIES,
    Category,
    CategoryKind,
    LedgerBaseline,
    RecurringRule,
    Transaction,
    generate_id,
)
from recurrence import RecurringEngine


logger = logging.getLogger(__name__)

BASELINE_ID = 1


class PersistenceError(RuntimeError):
    """The storage backend failed; nothing is retried."""


class NotFoundError(LookupError):
    """An id is absent from the authoritative collection."""


class LedgerStore(ABC):
    @abstractmethod
    async def list_transactions(self) -> list[Transaction]: ...

    @abstractmethod
    async def upsert_transaction(self, txn: Transaction) -> Transaction: ...

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> None:
        """Raises ``NotFoundError`` if the id is unknown."""

    @abstractmethod
    async def list_categories(self) -> list[Category]: ...

    @abstractmethod
    async def upsert_category(self, category: Category) -> Category: ...

    @abstractmethod
    async def delete_category(self, category_id: str) -> None:
        """Raises ``NotFoundError`` if the id is unknown."""

    @abstractmethod
    async def seed_default_categories(self) -> list[Category]: ...

    @abstractmethod
    async def get_initial_balance(self) -> int: ...

    @abstractmethod
    async def set_initial_balance(self, cents: int) -> None: ...

    @abstractmethod
    async def list_recurring_rules(self) -> list[RecurringRule]: ...

    @abstractmethod
    async def upsert_recurring_rule(self, rule: RecurringRule) -> RecurringRule: ...

    @abstractmethod
    async def delete_recurring_rule(self, rule_id: str) -> None:
        """Raises ``NotFoundError`` if the id is unknown."""

    @abstractmethod
    async def materialize_due_recurring_expenses(
        self, today: Optional[date] = None
    ) -> list[Transaction]:
        """Persist this month's missing recurring instances and return them."""


class SqlLedgerStore(LedgerStore):
    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self.session_factory = session_factory or get_session_factory()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Storage operation failed: {exc}") from exc

    async def list_transactions(self) -> list[Transaction]:
        with self._session() as session:
            stmt = select(Transaction).order_by(
                Transaction.occurred_at.desc(), Transaction.id.desc()
            )
            return list(session.scalars(stmt).all())

    async def upsert_transaction(self, txn: Transaction) -> Transaction:
        if not txn.id:
            txn.id = generate_id()
        if txn.installment_plan is not None:
            # keyed by the parent id so a re-save updates the plan in place
            txn.installment_plan.transaction_id = txn.id
        with self._session() as session:
            merged = session.merge(txn)
            session.flush()
            return merged

    async def delete_transaction(self, transaction_id: str) -> None:
        with self._session() as session:
            txn = session.get(Transaction, transaction_id)
            if txn is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            session.delete(txn)

    async def list_categories(self) -> list[Category]:
        with self._session() as session:
            stmt = select(Category).order_by(Category.kind, Category.name)
            return list(session.scalars(stmt).all())

    async def upsert_category(self, category: Category) -> Category:
        if not category.id:
            category.id = generate_id()
        with self._session() as session:
            merged = session.merge(category)
            session.flush()
            return merged

    async def delete_category(self, category_id: str) -> None:
        with self._session() as session:
            category = session.get(Category, category_id)
            if category is None:
                raise NotFoundError(f"Category not found: {category_id}")
            session.delete(category)

    async def seed_default_categories(self) -> list[Category]:
        with self._session() as session:
            existing = {
                name.lower()
                for name in session.scalars(select(Category.name)).all()
            }
            created = []
            for name, color in DEFAULT_CATEGORIES:
                if name.lower() in existing:
                    continue
                category = Category(
                    id=generate_id(), name=name, color=color, kind=CategoryKind.default
                )
                session.add(category)
                created.append(category)
            session.flush()
            logger.info(f"seed_categories: created={len(created)}")
            return created

    async def get_initial_balance(self) -> int:
        with self._session() as session:
            baseline = session.get(LedgerBaseline, BASELINE_ID)
            return int(baseline.initial_balance_cents) if baseline else 0

    async def set_initial_balance(self, cents: int) -> None:
        with self._session() as session:
            baseline = session.get(LedgerBaseline, BASELINE_ID)
            if baseline is None:
                baseline = LedgerBaseline(id=BASELINE_ID, initial_balance_cents=0)
                session.add(baseline)
            baseline.initial_balance_cents = int(cents)

    async def list_recurring_rules(self) -> list[RecurringRule]:
        with self._session() as session:
            stmt = select(RecurringRule).order_by(
                RecurringRule.day_of_month, RecurringRule.description
            )
            return list(session.scalars(stmt).all())

    async def upsert_recurring_rule(self, rule: RecurringRule) -> RecurringRule:
        if not rule.id:
            rule.id = generate_id()
        with self._session() as session:
            merged = session.merge(rule)
            session.flush()
            return merged

    async def delete_recurring_rule(self, rule_id: str) -> None:
        with self._session() as session:
            rule = session.get(RecurringRule, rule_id)
            if rule is None:
                raise NotFoundError(f"Recurring rule not found: {rule_id}")
            session.delete(rule)

    async def materialize_due_recurring_expenses(
        self, today: Optional[date] = None
    ) -> list[Transaction]:
        with self._session() as session:
            return RecurringEngine(session).post_due_rules(today)
