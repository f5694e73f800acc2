"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer

from savemate_engine.domain.models import ParsedNotification, SweepReport, TransactionType
from savemate_engine.infrastructure.database.models import LedgerTransaction
from savemate_engine.infrastructure.database.repositories import to_domain

# Decimal in Python, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TransactionRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    user_id: int = Field(..., description="User identifier")
    amount: Decimal = Field(..., description="Transaction amount in currency units")
    description: str = Field(..., min_length=1)
    merchant_name: Optional[str] = None
    transaction_type: TransactionType
    transaction_date: Optional[datetime] = None


class NotificationTransactionRequest(BaseModel):
    """Request body for POST /v1/transactions/from-notification (client-side parsed)"""

    user_id: int
    amount: Decimal
    description: str = Field(..., min_length=1)
    merchant_name: Optional[str] = None
    notification_source: Optional[str] = None
    bank_reference: Optional[str] = None


class NotificationTextRequest(BaseModel):
    """Request body for POST /v1/transactions/from-notification-text"""

    user_id: int
    text: str
    bank_name: Optional[str] = Field(None, description="Issuing bank hint; defaults to the user's bank")
    notification_source: Optional[str] = None


class ParseRequest(BaseModel):
    """Request body for POST /v1/notifications/parse"""

    text: str
    bank_name: Optional[str] = None


class SavingDepositRequest(BaseModel):
    """Request body for POST /v1/transactions/saving-deposit"""

    user_id: int
    amount: Decimal
    description: Optional[str] = None


class WithdrawalRequest(BaseModel):
    """Request body for POST /v1/transactions/withdraw"""

    user_id: int
    amount: Decimal


class SimulationRequest(BaseModel):
    """Request body for POST /v1/savings/simulate"""

    amount: Decimal = Field(..., gt=0)


class TransactionResponse(BaseModel):
    """A ledger transaction"""

    id: str
    user_id: int
    amount: Money
    description: str
    merchant_name: Optional[str] = None
    transaction_date: datetime
    transaction_type: TransactionType
    status: str
    original_amount: Optional[Money] = None
    rounded_amount: Optional[Money] = None
    saving_amount: Optional[Money] = None
    notification_source: Optional[str] = None
    bank_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: LedgerTransaction) -> "TransactionResponse":
        transaction = to_domain(row)
        return cls(
            id=str(transaction.id),
            user_id=transaction.user_id,
            amount=transaction.amount,
            description=transaction.description,
            merchant_name=transaction.merchant_name,
            transaction_date=transaction.transaction_date,
            transaction_type=transaction.transaction_type,
            status=transaction.status.value,
            original_amount=transaction.original_amount,
            rounded_amount=transaction.rounded_amount,
            saving_amount=transaction.saving_amount,
            notification_source=transaction.notification_source,
            bank_reference=transaction.bank_reference,
            created_at=transaction.created_at,
        )


class TransactionListResponse(BaseModel):
    """Response for GET /v1/transactions"""

    user_id: int
    transactions: List[TransactionResponse]


class ParsedNotificationResponse(BaseModel):
    """Structured reading of a notification text"""

    success: bool
    error: Optional[str] = None
    bank_name: Optional[str] = None
    bank_key: Optional[str] = None
    amount: Optional[Money] = None
    merchant: Optional[str] = None
    reference: Optional[str] = None
    date_string: Optional[str] = None
    card_last4: Optional[str] = None
    phone_number: Optional[str] = None
    special_type: Optional[str] = None
    transaction_type: str
    description: Optional[str] = None

    @classmethod
    def from_parsed(cls, parsed: ParsedNotification) -> "ParsedNotificationResponse":
        return cls(
            success=parsed.success,
            error=parsed.error,
            bank_name=parsed.bank_name,
            bank_key=parsed.bank_key,
            amount=parsed.amount,
            merchant=parsed.merchant,
            reference=parsed.reference,
            date_string=parsed.date_string,
            card_last4=parsed.card_last4,
            phone_number=parsed.phone_number,
            special_type=parsed.special_type,
            transaction_type=parsed.transaction_type,
            description=parsed.description,
        )


class SweepReportResponse(BaseModel):
    """Response for POST /v1/transactions/process-pending/{user_id}"""

    user_id: Optional[int] = None
    processed: int
    completed: List[str]
    deferred: List[str]
    already_finalized: List[str]
    failed: List[str]

    @classmethod
    def from_report(cls, report: SweepReport) -> "SweepReportResponse":
        return cls(
            user_id=report.user_id,
            processed=report.processed,
            completed=[str(i) for i in report.completed],
            deferred=[str(i) for i in report.deferred],
            already_finalized=[str(i) for i in report.already_finalized],
            failed=[str(i) for i in report.failed],
        )


class RoundingScenario(BaseModel):
    rounded: Money
    saving: Money


class PercentageScenario(BaseModel):
    saving: Money


class SimulationResponse(BaseModel):
    """Response for POST /v1/savings/simulate"""

    original_amount: Money
    rounding_1000: RoundingScenario
    rounding_5000: RoundingScenario
    rounding_10000: RoundingScenario
    percentage_10: PercentageScenario
    optimal_rounding_multiple: int
