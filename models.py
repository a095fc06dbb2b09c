from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    savings = "savings"


class TransactionStatus(str, Enum):
    paid = "paid"
    pending = "pending"


class CategoryKind(str, Enum):
    default = "default"
    custom = "custom"


class LinkPolicy(str, Enum):
    """What deleting one side of an id-only link does to the other side."""

    cascade = "cascade"
    orphan = "orphan"
    block = "block"


# Installment parents and their payments, and recurring rules and their
# instances, are linked by id only. Deleting either side leaves the other.
PARENT_LINK_POLICY = LinkPolicy.orphan
RECURRING_LINK_POLICY = LinkPolicy.orphan


DEFAULT_CATEGORIES: list[tuple[str, str]] = [
    ("Food", "orange"),
    ("Transport", "blue"),
    ("Housing", "indigo"),
    ("Entertainment", "pink"),
    ("Shopping", "purple"),
    ("Health", "red"),
    ("Education", "yellow"),
    ("Salary", "emerald"),
    ("Investments", "cyan"),
    ("Other", "slate"),
]


# amounts are stored in SQLite INTEGER columns
MAX_CENTS = 2**63 - 1
MIN_CENTS = -(2**63)


def generate_id() -> str:
    return str(uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="slate")
    kind: Mapped[CategoryKind] = mapped_column(
        SAEnum(CategoryKind), nullable=False, default=CategoryKind.custom
    )


class InstallmentPlan(Base):
    __tablename__ = "installment_plans"

    transaction_id: Mapped[str] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True
    )
    total_installments: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_installments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    monthly_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="installment_plan"
    )

    __table_args__ = (
        CheckConstraint("total_installments > 0", name="ck_plan_total_positive"),
        CheckConstraint(
            "paid_installments >= 0 AND paid_installments <= total_installments",
            name="ck_plan_paid_in_range",
        ),
        CheckConstraint("monthly_amount_cents > 0", name="ck_plan_amount_positive"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # a label copied at creation time, not a reference to categories.id
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), nullable=False, default=TransactionStatus.paid
    )
    recurring_rule_id: Mapped[Optional[str]] = mapped_column(String(36))
    parent_transaction_id: Mapped[Optional[str]] = mapped_column(String(36))

    installment_plan: Mapped[Optional["InstallmentPlan"]] = relationship(
        "InstallmentPlan",
        back_populates="transaction",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )

    __table_args__ = (
        Index("ix_transactions_occurred_at", "occurred_at"),
        Index("ix_transactions_recurring_rule", "recurring_rule_id", "occurred_at"),
        Index("ix_transactions_parent", "parent_transaction_id"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )


class RecurringRule(Base, TimestampMixin):
    __tablename__ = "recurring_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_rule_amount_positive"),
        CheckConstraint(
            "day_of_month >= 1 AND day_of_month <= 31", name="ck_rule_day_in_range"
        ),
    )


class LedgerBaseline(Base, TimestampMixin):
    __tablename__ = "ledger_baseline"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    initial_balance_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
