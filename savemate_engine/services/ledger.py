"""Transaction lifecycle state machine and ledger mutations"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from savemate_engine.config import settings
from savemate_engine.domain.balance_policy import has_sufficient_balance
from savemate_engine.domain.exceptions import InsufficientSavingsError, TransactionProcessingError
from savemate_engine.domain.models import (
    TERMINAL_STATUSES,
    ReprocessOutcome,
    ReprocessPolicy,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from savemate_engine.infrastructure.database.models import LedgerTransaction
from savemate_engine.infrastructure.database.repositories import TransactionRepository, UserRepository
from savemate_engine.utils.money import from_cents

logger = logging.getLogger(__name__)


def ledger_delta_cents(row: LedgerTransaction) -> int:
    """
    Change to the user's saved total when this transaction completes.

    - EXPENSE: +saving
    - SAVING: +amount
    - WITHDRAWAL: -amount
    - INCOME, FEE: 0
    """
    kind = TransactionType(row.transaction_type)
    if kind == TransactionType.EXPENSE:
        return row.saving_amount_cents or 0
    if kind == TransactionType.SAVING:
        return row.amount_cents
    if kind == TransactionType.WITHDRAWAL:
        return -row.amount_cents
    return 0


class TransactionStateMachine:
    """
    Owns every status transition and every write to total_saved.

    Lifecycle:
        PENDING -> COMPLETED  (ledger delta applied exactly once)
        PENDING -> FAILED     (ledger untouched)

    Finalization is a compare-and-set on status inside a savepoint, so a
    row can be completed at most once no matter how many requests or
    sweeps race on it. Committing is left to the caller.
    """

    def __init__(self, db: Session, reprocess_policy: Optional[str] = None):
        self.db = db
        self.transactions = TransactionRepository(db)
        self.users = UserRepository(db)
        self.reprocess_policy = ReprocessPolicy(reprocess_policy or settings.pending_reprocess_policy)

    def create_and_finalize(self, transaction: Transaction) -> LedgerTransaction:
        """
        Persist a draft transaction and complete it unless it was deferred.

        Raises:
            InsufficientSavingsError: A withdrawal exceeds the saved total
            TransactionProcessingError: Storage failed; the row is left FAILED
        """
        row = self.transactions.create_transaction(transaction)
        if transaction.is_deferred:
            logger.info(
                "Transaction deferred as PENDING",
                extra={"transaction_id": str(row.id), "user_id": row.user_id},
            )
            return row

        self.complete(row)
        return row

    def complete(self, row: LedgerTransaction) -> bool:
        """
        Move a PENDING row to COMPLETED and apply its ledger delta.

        Returns:
            False if the row was no longer PENDING (someone else finalized it)
        """
        delta = ledger_delta_cents(row)
        try:
            with self.db.begin_nested():
                if not self.transactions.compare_and_set_status(
                    row.id, TransactionStatus.PENDING, TransactionStatus.COMPLETED
                ):
                    return False

                if delta and not self.users.apply_saved_delta(row.user_id, delta):
                    if delta < 0:
                        raise InsufficientSavingsError(
                            f"Saved total of user {row.user_id} does not cover {from_cents(-delta)}"
                        )
                    raise TransactionProcessingError(
                        f"Saved total of user {row.user_id} could not be updated", transaction_id=row.id
                    )

        except InsufficientSavingsError:
            raise

        except (SQLAlchemyError, TransactionProcessingError) as e:
            self._mark_failed(row, e)
            raise TransactionProcessingError(
                f"Transaction {row.id} could not be completed", transaction_id=row.id
            ) from e

        self.db.refresh(row)
        return True

    def reprocess_pending(self, row: LedgerTransaction) -> ReprocessOutcome:
        """
        Give a PENDING transaction another chance to complete.

        The reprocess policy decides whether the balance check is re-run
        first. Errors never escape: they are reported as FAILED.
        """
        if TransactionStatus(row.status) in TERMINAL_STATUSES:
            return ReprocessOutcome.ALREADY_FINALIZED

        if self.reprocess_policy == ReprocessPolicy.RECHECK_BALANCE and not self._still_affordable(row):
            return ReprocessOutcome.DEFERRED

        try:
            completed = self.complete(row)
        except InsufficientSavingsError as e:
            # A deferred withdrawal the saved total can no longer cover
            self._mark_failed(row, e)
            return ReprocessOutcome.FAILED
        except TransactionProcessingError:
            return ReprocessOutcome.FAILED

        return ReprocessOutcome.COMPLETED if completed else ReprocessOutcome.ALREADY_FINALIZED

    def _still_affordable(self, row: LedgerTransaction) -> bool:
        if TransactionType(row.transaction_type) != TransactionType.EXPENSE or not row.saving_amount_cents:
            return True
        config = self.users.get_savings_configuration(row.user_id)
        return has_sufficient_balance(from_cents(row.saving_amount_cents), config.min_safe_balance)

    def _mark_failed(self, row: LedgerTransaction, error: Exception) -> None:
        marked = self.transactions.compare_and_set_status(
            row.id, TransactionStatus.PENDING, TransactionStatus.FAILED
        )
        if marked:
            self.db.refresh(row)
        logger.error(
            f"Transaction marked FAILED: {error}",
            extra={"transaction_id": str(row.id), "user_id": row.user_id},
        )
