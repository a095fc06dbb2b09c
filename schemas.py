from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import MAX_CENTS, CategoryKind, TransactionStatus, TransactionType


class CategoryIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=36)
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="slate", min_length=1, max_length=32)
    kind: CategoryKind = CategoryKind.custom


class InstallmentPlanIn(BaseModel):
    total_installments: int = Field(..., gt=0)
    paid_installments: int = Field(default=0, ge=0)
    start_date: date
    monthly_amount_cents: int = Field(..., gt=0, le=MAX_CENTS)

    @model_validator(mode="after")
    def _paid_within_total(self) -> "InstallmentPlanIn":
        if self.paid_installments > self.total_installments:
            raise ValueError("Paid installments cannot exceed total installments")
        return self


class TransactionIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=36)
    amount_cents: int = Field(..., ge=0, le=MAX_CENTS)
    description: str = Field(default="", max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    occurred_at: datetime
    type: TransactionType
    status: TransactionStatus = TransactionStatus.paid
    installment_plan: Optional[InstallmentPlanIn] = None
    recurring_rule_id: Optional[str] = Field(default=None, max_length=36)
    parent_transaction_id: Optional[str] = Field(default=None, max_length=36)


class RecurringRuleIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=36)
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., gt=0, le=MAX_CENTS)
    category: str = Field(..., min_length=1, max_length=100)
    day_of_month: int = Field(..., ge=1, le=31)
    active: bool = True


class BalanceIn(BaseModel):
    actual_balance: Union[str, int, float]


class InstallmentPaymentIn(BaseModel):
    installment_number: int = Field(..., ge=1)
    year: int = Field(..., ge=1970, le=3000)
    month: int = Field(..., ge=1, le=12)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    color: str
    kind: CategoryKind


class InstallmentPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_installments: int
    paid_installments: int
    start_date: date
    monthly_amount_cents: int


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount_cents: int
    description: str
    category: str
    occurred_at: datetime
    type: TransactionType
    status: TransactionStatus
    installment_plan: Optional[InstallmentPlanOut] = None
    recurring_rule_id: Optional[str] = None
    parent_transaction_id: Optional[str] = None


class RecurringRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    description: str
    amount_cents: int
    category: str
    day_of_month: int
    active: bool


class InstallmentStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    parent: TransactionOut
    installment_number: int
    paid_count: int
    remaining: int
    paid_this_month: bool
