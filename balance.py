from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from models import MAX_CENTS, MIN_CENTS

BalanceInput = Union[str, int, float, Decimal]


class BalanceValidationError(ValueError):
    pass


def _check_range(cents: int, value: object) -> int:
    if not MIN_CENTS <= cents <= MAX_CENTS:
        raise BalanceValidationError(f"Balance out of range: {value!r}")
    return cents


def parse_balance(value: BalanceInput) -> int:
    """Parse a user-entered balance into cents.

    Accepts numbers or strings such as ``"1 234,50 €"``; negative balances are
    allowed. Anything that is not a finite number, or does not fit a signed
    64-bit cent amount, raises ``BalanceValidationError``.
    """
    if isinstance(value, bool):
        raise BalanceValidationError("Balance must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        clean = str(value).strip().replace("€", "").replace("$", "").replace(" ", "")
        clean = clean.replace(",", ".")
        if clean.count(".") > 1:
            parts = clean.split(".")
            clean = "".join(parts[:-1]) + "." + parts[-1]
        if not clean:
            raise BalanceValidationError("Balance is required")
        try:
            amount = Decimal(clean)
        except InvalidOperation as exc:
            raise BalanceValidationError(f"Invalid balance: {value!r}") from exc
    if not amount.is_finite():
        raise BalanceValidationError(f"Balance must be finite: {value!r}")
    try:
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise BalanceValidationError(f"Balance out of range: {value!r}") from exc
    return _check_range(cents, value)


def reconcile_initial_balance(
    target_balance: BalanceInput, income: int, expense: int, savings: int
) -> int:
    """Baseline that makes ``initial + income - expense - savings`` hit the target."""
    target_cents = parse_balance(target_balance)
    return _check_range(target_cents - income + expense + savings, target_balance)
