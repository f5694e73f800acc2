"""Data access layer for users' savings settings and ledger transactions"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from savemate_engine.infrastructure.database.models import LedgerTransaction, User
from savemate_engine.domain.exceptions import UserNotFoundError
from savemate_engine.domain.models import (
    InsufficientBalanceOption,
    SavingsConfiguration,
    SavingStrategy,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from savemate_engine.utils.money import from_cents, to_cents


class UserRepository:
    """Repository for the engine's view of users"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        """Fetch user or raise UserNotFoundError"""
        user = self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_savings_configuration(self, user_id: int) -> SavingsConfiguration:
        user = self.get_user(user_id)
        return SavingsConfiguration(
            strategy=SavingStrategy(user.saving_type) if user.saving_type else None,
            rounding_multiple=user.rounding_multiple,
            saving_percentage=Decimal(user.saving_percentage) if user.saving_percentage is not None else None,
            min_safe_balance=from_cents(user.min_safe_balance_cents),
            insufficient_balance_option=InsufficientBalanceOption(user.insufficient_balance_option),
        )

    def get_total_saved(self, user_id: int) -> Decimal:
        return from_cents(self.get_user(user_id).total_saved_cents)

    def apply_saved_delta(self, user_id: int, delta_cents: int) -> bool:
        """
        Atomically add delta_cents to the user's saved total.

        Runs as a single UPDATE ... SET total = total + delta so concurrent
        writers for the same user cannot lose updates. Negative deltas only
        apply when the current total covers them.

        Returns:
            True if the row was updated, False if the user is missing or the
            guard rejected a decrement.
        """
        stmt = update(User).where(User.id == user_id)
        if delta_cents < 0:
            stmt = stmt.where(User.total_saved_cents >= -delta_cents)

        result = self.db.execute(
            stmt.values(total_saved_cents=User.total_saved_cents + delta_cents)
        )
        return result.rowcount == 1


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(self, transaction: Transaction) -> LedgerTransaction:
        """Insert a new row in PENDING status; the state machine moves it on"""
        db_transaction = LedgerTransaction(
            user_id=transaction.user_id,
            amount_cents=to_cents(transaction.amount),
            description=transaction.description,
            merchant_name=transaction.merchant_name,
            transaction_date=transaction.transaction_date,
            transaction_type=transaction.transaction_type.value,
            status=TransactionStatus.PENDING.value,
            original_amount_cents=to_cents(transaction.original_amount),
            rounded_amount_cents=to_cents(transaction.rounded_amount),
            saving_amount_cents=to_cents(transaction.saving_amount),
            notification_source=transaction.notification_source,
            bank_reference=transaction.bank_reference,
        )
        self.db.add(db_transaction)
        self.db.flush()  # Get ID without committing
        return db_transaction

    def get_transaction_by_id(self, transaction_id: uuid.UUID) -> Optional[LedgerTransaction]:
        return self.db.query(LedgerTransaction).filter(LedgerTransaction.id == transaction_id).first()

    def get_transactions_by_user(
        self,
        user_id: int,
        transaction_type: Optional[TransactionType] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[LedgerTransaction]:
        """Fetch a user's transactions, newest first; since is inclusive, until exclusive"""
        query = self.db.query(LedgerTransaction).filter(LedgerTransaction.user_id == user_id)
        if transaction_type is not None:
            query = query.filter(LedgerTransaction.transaction_type == transaction_type.value)
        if since is not None:
            query = query.filter(LedgerTransaction.transaction_date >= since)
        if until is not None:
            query = query.filter(LedgerTransaction.transaction_date < until)
        return query.order_by(LedgerTransaction.transaction_date.desc()).limit(limit).all()

    def get_pending_transactions(self, user_id: Optional[int] = None) -> List[LedgerTransaction]:
        """PENDING rows in FIFO order (oldest first), for one user or all"""
        query = self.db.query(LedgerTransaction).filter(
            LedgerTransaction.status == TransactionStatus.PENDING.value
        )
        if user_id is not None:
            query = query.filter(LedgerTransaction.user_id == user_id)
        return query.order_by(LedgerTransaction.created_at.asc()).all()

    def compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: TransactionStatus,
        new: TransactionStatus,
    ) -> bool:
        """
        Move a transaction between statuses only if it is still in `expected`.

        The status check and write happen in one UPDATE, so two concurrent
        finalizers cannot both win.
        """
        result = self.db.execute(
            update(LedgerTransaction)
            .where(LedgerTransaction.id == transaction_id, LedgerTransaction.status == expected.value)
            .values(status=new.value)
        )
        return result.rowcount == 1


def to_domain(row: LedgerTransaction) -> Transaction:
    """Map an ORM row to the domain dataclass"""
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        amount=from_cents(row.amount_cents),
        description=row.description,
        merchant_name=row.merchant_name,
        transaction_date=row.transaction_date,
        transaction_type=TransactionType(row.transaction_type),
        status=TransactionStatus(row.status),
        original_amount=from_cents(row.original_amount_cents),
        rounded_amount=from_cents(row.rounded_amount_cents),
        saving_amount=from_cents(row.saving_amount_cents),
        notification_source=row.notification_source,
        bank_reference=row.bank_reference,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
