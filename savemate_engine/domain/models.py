"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    SAVING = "SAVING"
    FEE = "FEE"
    WITHDRAWAL = "WITHDRAWAL"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    {TransactionStatus.COMPLETED, TransactionStatus.FAILED, TransactionStatus.CANCELLED}
)


class SavingStrategy(str, Enum):
    ROUNDING = "ROUNDING"
    PERCENTAGE = "PERCENTAGE"


class InsufficientBalanceOption(str, Enum):
    NO_SAVING = "NO_SAVING"
    PENDING = "PENDING"
    RESPECT_MIN_BALANCE = "RESPECT_MIN_BALANCE"


class ReprocessPolicy(str, Enum):
    """How a PENDING transaction is treated when the sweep revisits it"""

    COMPLETE_UNCONDITIONALLY = "complete_unconditionally"
    RECHECK_BALANCE = "recheck_balance"


class ReprocessOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    DEFERRED = "DEFERRED"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    FAILED = "FAILED"


@dataclass
class SavingsConfiguration:
    """Read-only view of a user's micro-saving settings"""

    strategy: Optional[SavingStrategy] = SavingStrategy.ROUNDING
    rounding_multiple: Optional[int] = 1000
    saving_percentage: Optional[Decimal] = Decimal("10")
    min_safe_balance: Optional[Decimal] = None  # None = no safety floor
    insufficient_balance_option: InsufficientBalanceOption = InsufficientBalanceOption.NO_SAVING


@dataclass
class SavingComputation:
    """Output of the savings calculator for a single amount"""

    original_amount: Decimal
    saving_amount: Decimal
    rounded_amount: Optional[Decimal] = None


@dataclass
class Transaction:
    """
    A financial event as seen by the engine.

    Before persistence, status is the target status: COMPLETED unless the
    balance policy deferred the transaction to PENDING. The stored row
    always starts as PENDING and is moved on by the state machine.
    """

    user_id: int
    amount: Decimal
    description: str
    transaction_type: TransactionType
    transaction_date: datetime
    merchant_name: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    original_amount: Optional[Decimal] = None
    rounded_amount: Optional[Decimal] = None
    saving_amount: Optional[Decimal] = None
    notification_source: Optional[str] = None
    bank_reference: Optional[str] = None
    id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_deferred(self) -> bool:
        return self.status == TransactionStatus.PENDING


@dataclass
class ParsedNotification:
    """Best-effort structured reading of a bank notification text"""

    original_text: Optional[str]
    bank_name: Optional[str] = None
    success: bool = False
    error: Optional[str] = None
    bank_key: Optional[str] = None
    amount: Optional[Decimal] = None
    merchant: Optional[str] = None
    reference: Optional[str] = None
    date_string: Optional[str] = None
    card_last4: Optional[str] = None
    phone_number: Optional[str] = None
    special_type: Optional[str] = None
    transaction_type: str = "UNKNOWN"
    description: Optional[str] = None


@dataclass
class SweepReport:
    """Result of one pending-reprocessing sweep"""

    user_id: Optional[int] = None
    completed: List[uuid.UUID] = field(default_factory=list)
    deferred: List[uuid.UUID] = field(default_factory=list)
    already_finalized: List[uuid.UUID] = field(default_factory=list)
    failed: List[uuid.UUID] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.completed) + len(self.deferred) + len(self.already_finalized) + len(self.failed)
