"""Balance sign convention.

Stored balances follow one rule: negative means the user owes money.
Plaid reports liabilities (credit cards, loans) as a positive amount
owed, so those are negated once, at write time, by
:func:`normalize_plaid_balance`.  Reading a stored balance back goes
through :func:`interpret_balance` only.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

_CENT = Decimal("0.01")

LIABILITY_TYPES = frozenset({"credit", "loan"})


class BalanceKind(str, Enum):
    """What a stored balance means for its account type."""

    AVAILABLE = "available"  # asset account, funds on hand
    OVERDRAFT = "overdraft"  # asset account below zero
    OWED = "owed"  # liability account with an outstanding amount
    CREDIT_BALANCE = "credit_balance"  # liability account overpaid in the user's favor
    SETTLED = "settled"  # liability account with nothing owed


@dataclass(frozen=True)
class BalanceInterpretation:
    display_amount: Decimal
    is_owed: bool
    kind: BalanceKind


def is_liability(account_type: str | None) -> bool:
    return (account_type or "").lower() in LIABILITY_TYPES


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_plaid_balance(account_type: str | None, current: Decimal | None) -> Decimal:
    """Convert Plaid's ``balances.current`` to the stored convention.

    A missing balance is stored as zero.
    """
    if current is None:
        return Decimal("0.00")
    amount = Decimal(str(current))
    if is_liability(account_type):
        amount = -amount
    return quantize(amount)


def interpret_balance(account_type: str | None, raw_balance) -> BalanceInterpretation:
    """Interpret a stored balance for display.

    The same negative number means different things per type: on a credit
    account ``-850.25`` is 850.25 owed on the card, on a checking account
    it is an 850.25 overdraft.

    Args:
        account_type: Plaid type (``depository``, ``credit``, ...) or an
            app-level type such as ``checking``.
        raw_balance: The stored balance (Decimal, float or str).

    Returns:
        BalanceInterpretation with a non-negative ``display_amount``.
    """
    amount = quantize(Decimal(str(raw_balance if raw_balance is not None else 0)))
    display = abs(amount)

    if is_liability(account_type):
        if amount > 0:
            return BalanceInterpretation(display, False, BalanceKind.CREDIT_BALANCE)
        if amount == 0:
            return BalanceInterpretation(display, False, BalanceKind.SETTLED)
        return BalanceInterpretation(display, True, BalanceKind.OWED)

    if amount < 0:
        return BalanceInterpretation(display, True, BalanceKind.OVERDRAFT)
    return BalanceInterpretation(display, False, BalanceKind.AVAILABLE)
