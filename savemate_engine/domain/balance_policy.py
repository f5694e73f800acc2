"""Insufficient-balance policy for computed savings"""

from decimal import Decimal
from typing import Optional

from savemate_engine.domain.models import (
    InsufficientBalanceOption,
    SavingsConfiguration,
    Transaction,
    TransactionStatus,
)

ZERO = Decimal("0")


def has_sufficient_balance(saving_amount: Decimal, min_safe_balance: Optional[Decimal]) -> bool:
    """
    Check the saving against the configured safety floor.

    There is no live balance feed: the floor is a locally configured proxy,
    and a saving is "affordable" when it does not exceed it. No floor means
    always affordable.
    """
    return min_safe_balance is None or saving_amount <= min_safe_balance


def resolve_insufficient_balance(transaction: Transaction, config: SavingsConfiguration) -> Transaction:
    """
    Apply the user's insufficient-balance policy to a computed saving.

    Policies:
    - NO_SAVING: drop the saving, the transaction completes
    - PENDING: keep the saving, hold the transaction as PENDING
    - RESPECT_MIN_BALANCE: save only max(0, saving - floor)

    Mutates and returns the transaction; persistence is the caller's job.
    A transaction that is not deferred is left in whatever status the
    caller gave it.
    """
    saving = transaction.saving_amount
    if saving is None or saving <= 0:
        return transaction

    if has_sufficient_balance(saving, config.min_safe_balance):
        return transaction

    option = config.insufficient_balance_option
    if option == InsufficientBalanceOption.NO_SAVING:
        transaction.saving_amount = ZERO
    elif option == InsufficientBalanceOption.PENDING:
        transaction.status = TransactionStatus.PENDING
    elif option == InsufficientBalanceOption.RESPECT_MIN_BALANCE:
        transaction.saving_amount = max(ZERO, saving - config.min_safe_balance)

    return transaction
