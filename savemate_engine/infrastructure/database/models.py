"""SQLAlchemy ORM models for users' savings settings and the transaction ledger"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, BigInteger, DateTime, Integer, ForeignKey, Index, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    User row as seen by the engine.

    Identity and profile live in the user service; the engine only reads the
    savings configuration and owns the total_saved_cents counter.
    """

    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    bank_name = Column(String(100), nullable=True)
    saving_type = Column(Text, nullable=False, default="ROUNDING")
    rounding_multiple = Column(Integer, nullable=True, default=1000)
    saving_percentage = Column(Numeric(5, 2), nullable=True, default=10)
    min_safe_balance_cents = Column(BigInteger, nullable=True)  # NULL = no safety floor
    insufficient_balance_option = Column(Text, nullable=False, default="NO_SAVING")
    total_saved_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    transactions = relationship("LedgerTransaction", back_populates="user")


class LedgerTransaction(Base):
    """One financial event; never hard-deleted by the engine"""

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_user_status", "user_id", "status"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    description = Column(Text, nullable=False)
    merchant_name = Column(Text, nullable=True)
    transaction_date = Column(DateTime(timezone=True), nullable=False)
    transaction_type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="PENDING")
    original_amount_cents = Column(BigInteger, nullable=True)
    rounded_amount_cents = Column(BigInteger, nullable=True)
    saving_amount_cents = Column(BigInteger, nullable=True)
    notification_source = Column(Text, nullable=True)
    bank_reference = Column(Text, nullable=True)
    # Client-side default keeps FIFO order stable below one-second resolution
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    user = relationship("User", back_populates="transactions")
