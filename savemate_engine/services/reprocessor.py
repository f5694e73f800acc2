"""Pending reprocessor - periodic sweep over deferred transactions"""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from savemate_engine.domain.models import ReprocessOutcome, SweepReport, TransactionStatus
from savemate_engine.infrastructure.database.repositories import TransactionRepository
from savemate_engine.infrastructure.observability.logging import log_sweep
from savemate_engine.infrastructure.observability.metrics import pending_reprocessed_counter
from savemate_engine.services.ledger import TransactionStateMachine

logger = logging.getLogger(__name__)


class PendingReprocessor:
    """
    Revisit PENDING transactions and try to finalize them.

    Rows are handled oldest first and each one is committed on its own, so a
    failing row never blocks or undoes the rest of the sweep.
    """

    def __init__(self, db: Session, reprocess_policy: Optional[str] = None):
        self.db = db
        self.transactions = TransactionRepository(db)
        self.state_machine = TransactionStateMachine(db, reprocess_policy)

    def sweep(self, user_id: Optional[int] = None, request_id: str = "sweep") -> SweepReport:
        """
        Reprocess every PENDING transaction, for one user or for all users.

        Args:
            user_id: Restrict the sweep to this user
            request_id: Correlation id for the summary log

        Returns:
            SweepReport listing transaction ids by outcome
        """
        report = SweepReport(user_id=user_id)
        pending_ids = [row.id for row in self.transactions.get_pending_transactions(user_id)]

        for transaction_id in pending_ids:
            outcome = self._reprocess_one(transaction_id)
            pending_reprocessed_counter.labels(outcome=outcome.value).inc()

            if outcome == ReprocessOutcome.COMPLETED:
                report.completed.append(transaction_id)
            elif outcome == ReprocessOutcome.DEFERRED:
                report.deferred.append(transaction_id)
            elif outcome == ReprocessOutcome.ALREADY_FINALIZED:
                report.already_finalized.append(transaction_id)
            else:
                report.failed.append(transaction_id)

        log_sweep(request_id, user_id, len(report.completed), len(report.deferred), len(report.failed))
        return report

    def _reprocess_one(self, transaction_id) -> ReprocessOutcome:
        try:
            row = self.transactions.get_transaction_by_id(transaction_id)
            if row is None:
                return ReprocessOutcome.ALREADY_FINALIZED

            outcome = self.state_machine.reprocess_pending(row)
            self.db.commit()
            return outcome

        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Reprocessing failed: {e}",
                extra={"transaction_id": str(transaction_id)},
            )
            self._force_failed(transaction_id)
            return ReprocessOutcome.FAILED

    def _force_failed(self, transaction_id) -> None:
        try:
            self.transactions.compare_and_set_status(
                transaction_id, TransactionStatus.PENDING, TransactionStatus.FAILED
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Could not mark transaction FAILED: {e}",
                extra={"transaction_id": str(transaction_id)},
            )


async def run_periodic_sweep(
    session_factory: Callable[[], Session],
    interval_seconds: float,
    reprocess_policy: Optional[str] = None,
) -> None:
    """
    Sweep all users every interval_seconds until cancelled.

    Each sweep runs in a worker thread with a fresh session so the event
    loop is never blocked on the database.
    """

    def _sweep_once() -> SweepReport:
        db = session_factory()
        try:
            return PendingReprocessor(db, reprocess_policy).sweep()
        finally:
            db.close()

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(_sweep_once)
        except Exception as e:
            logger.error(f"Scheduled pending sweep failed: {e}")
