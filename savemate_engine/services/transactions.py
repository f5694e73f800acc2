"""Transaction ingestion - validation, savings calculation and balance policy"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from savemate_engine.config import settings
from savemate_engine.domain.balance_policy import resolve_insufficient_balance
from savemate_engine.domain.exceptions import (
    InsufficientSavingsError,
    InvalidTransactionDataError,
    NotificationParseError,
)
from savemate_engine.domain.models import ParsedNotification, Transaction, TransactionType
from savemate_engine.domain.notification_parser import BankPatternTable, default_pattern_table, parse_notification
from savemate_engine.domain.savings import calculate_saving, is_saving_reasonable, validate_configuration
from savemate_engine.infrastructure.database.models import LedgerTransaction
from savemate_engine.infrastructure.database.repositories import TransactionRepository, UserRepository
from savemate_engine.services.ledger import TransactionStateMachine
from savemate_engine.utils.date_utils import at_start_of_day, parse_notification_date
from savemate_engine.utils.money import quantize_money

logger = logging.getLogger(__name__)

DEFAULT_DEPOSIT_DESCRIPTION = "Depósito manual"
WITHDRAWAL_DESCRIPTION = "Retiro a cuenta vinculada"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_cents_amount(amount) -> Decimal:
    """Round to cents, then require a positive result"""
    if amount is None:
        raise InvalidTransactionDataError("Transaction amount must be positive")
    amount = quantize_money(Decimal(amount))
    if amount <= 0:
        raise InvalidTransactionDataError("Transaction amount must be positive")
    return amount


class TransactionService:
    """Entry points that turn incoming money movements into ledger transactions"""

    def __init__(
        self,
        db: Session,
        pattern_table: Optional[BankPatternTable] = None,
        reprocess_policy: Optional[str] = None,
    ):
        self.db = db
        self.users = UserRepository(db)
        self.transactions = TransactionRepository(db)
        self.state_machine = TransactionStateMachine(db, reprocess_policy)
        self.pattern_table = pattern_table or default_pattern_table(settings.bank_patterns_path)

    def create_transaction(self, transaction: Transaction) -> LedgerTransaction:
        """
        Validate, apply savings (EXPENSE only) and hand over to the state machine.

        Raises:
            UserNotFoundError: Unknown user
            InvalidTransactionDataError: Missing or non-positive amount
            InvalidConfigurationError: The user's savings settings are unusable
        """
        self.users.get_user(transaction.user_id)

        transaction.amount = _to_cents_amount(transaction.amount)

        if transaction.transaction_date is None:
            transaction.transaction_date = _utcnow()

        if transaction.transaction_type == TransactionType.EXPENSE:
            self.apply_savings(transaction)

        return self.state_machine.create_and_finalize(transaction)

    def apply_savings(self, transaction: Transaction) -> Transaction:
        """Fill in the saving fields and run the insufficient-balance policy"""
        config = self.users.get_savings_configuration(transaction.user_id)
        validate_configuration(config)

        computation = calculate_saving(transaction.amount, config)
        transaction.original_amount = computation.original_amount
        transaction.rounded_amount = computation.rounded_amount
        transaction.saving_amount = quantize_money(computation.saving_amount)

        # Logs a warning, never rejects
        is_saving_reasonable(transaction.original_amount, transaction.saving_amount)

        return resolve_insufficient_balance(transaction, config)

    def process_notification_transaction(
        self,
        user_id: int,
        amount: Decimal,
        description: str,
        merchant_name: Optional[str] = None,
        notification_source: Optional[str] = None,
        bank_reference: Optional[str] = None,
    ) -> LedgerTransaction:
        """Ingest a notification the client already parsed; always an EXPENSE"""
        return self.create_transaction(
            Transaction(
                user_id=user_id,
                amount=amount,
                description=description,
                merchant_name=merchant_name,
                transaction_type=TransactionType.EXPENSE,
                transaction_date=_utcnow(),
                notification_source=notification_source,
                bank_reference=bank_reference,
            )
        )

    def ingest_notification_text(
        self,
        user_id: int,
        text: str,
        bank_name: Optional[str] = None,
        notification_source: Optional[str] = None,
    ) -> Tuple[ParsedNotification, LedgerTransaction]:
        """
        Parse raw notification text on the server and ingest the result.

        The user's linked bank is used as the parser hint when none is given.
        Income notifications are recorded as INCOME and never produce savings.

        Raises:
            NotificationParseError: No amount could be extracted
        """
        user = self.users.get_user(user_id)
        parsed = parse_notification(text, bank_name or user.bank_name, table=self.pattern_table)
        if not parsed.success:
            logger.info(
                "Notification rejected by parser",
                extra={"user_id": user_id, "bank_key": parsed.bank_key, "error": parsed.error},
            )
            raise NotificationParseError(parsed.error or "Notification could not be parsed", parsed=parsed)

        kind = TransactionType.INCOME if parsed.transaction_type == "INCOME" else TransactionType.EXPENSE
        day = parse_notification_date(parsed.date_string)

        row = self.create_transaction(
            Transaction(
                user_id=user_id,
                amount=parsed.amount,
                description=parsed.description,
                merchant_name=parsed.merchant,
                transaction_type=kind,
                transaction_date=at_start_of_day(day) if day else _utcnow(),
                notification_source=notification_source or parsed.bank_key,
                bank_reference=parsed.reference,
            )
        )
        return parsed, row

    def create_saving_deposit(
        self, user_id: int, amount: Decimal, description: Optional[str] = None
    ) -> LedgerTransaction:
        """Manual top-up of the saved total"""
        return self.create_transaction(
            Transaction(
                user_id=user_id,
                amount=amount,
                description=description or DEFAULT_DEPOSIT_DESCRIPTION,
                transaction_type=TransactionType.SAVING,
                transaction_date=_utcnow(),
            )
        )

    def create_withdrawal(self, user_id: int, amount: Decimal) -> LedgerTransaction:
        """
        Move money out of savings to the user's linked account.

        Raises:
            InvalidTransactionDataError: Missing or non-positive amount
            InsufficientSavingsError: amount exceeds the saved total
        """
        user = self.users.get_user(user_id)
        amount = _to_cents_amount(amount)
        total_saved = self.users.get_total_saved(user_id)
        if amount > total_saved:
            raise InsufficientSavingsError(
                f"Insufficient savings: requested {amount}, available {total_saved}"
            )

        # Racing withdrawals are settled by the guarded decrement on completion
        return self.create_transaction(
            Transaction(
                user_id=user_id,
                amount=amount,
                description=f"{WITHDRAWAL_DESCRIPTION} {user.bank_name or ''}".rstrip(),
                transaction_type=TransactionType.WITHDRAWAL,
                transaction_date=_utcnow(),
            )
        )

    def get_transaction(self, transaction_id) -> Optional[LedgerTransaction]:
        return self.transactions.get_transaction_by_id(transaction_id)

    def list_transactions(
        self,
        user_id: int,
        transaction_type: Optional[TransactionType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[LedgerTransaction]:
        """Newest first; the date range covers whole UTC days, both ends inclusive"""
        self.users.get_user(user_id)
        if start_date and end_date and start_date > end_date:
            raise InvalidTransactionDataError("start_date must not be after end_date")
        return self.transactions.get_transactions_by_user(
            user_id,
            transaction_type,
            since=at_start_of_day(start_date) if start_date else None,
            until=at_start_of_day(end_date + timedelta(days=1)) if end_date else None,
        )
