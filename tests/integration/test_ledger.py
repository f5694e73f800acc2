"""Integration tests for transaction ingestion and the lifecycle state machine"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from savemate_engine.domain.exceptions import (
    InsufficientSavingsError,
    InvalidConfigurationError,
    InvalidTransactionDataError,
    TransactionProcessingError,
    UserNotFoundError,
)
from savemate_engine.domain.models import ReprocessOutcome, Transaction, TransactionType
from savemate_engine.infrastructure.database.models import LedgerTransaction
from savemate_engine.services.ledger import TransactionStateMachine, ledger_delta_cents
from savemate_engine.services.transactions import TransactionService


def _transaction(amount: str, kind: TransactionType = TransactionType.EXPENSE, user_id: int = 1) -> Transaction:
    return Transaction(
        user_id=user_id,
        amount=Decimal(amount),
        description="Compra en Exito",
        merchant_name="Exito",
        transaction_type=kind,
        transaction_date=datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc),
    )


def test_expense_rounding_saves_difference(db, make_user, saved_cents):
    """Test 4500 rounded to 1000 saves 500 and completes"""
    make_user()
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()

    assert row.status == "COMPLETED"
    assert row.original_amount_cents == 450000
    assert row.rounded_amount_cents == 500000
    assert row.saving_amount_cents == 50000
    assert saved_cents() == 50000


def test_expense_exact_multiple_saves_nothing(db, make_user, saved_cents):
    make_user()
    row = TransactionService(db).create_transaction(_transaction("5000"))
    db.commit()

    assert row.status == "COMPLETED"
    assert row.saving_amount_cents == 0
    assert saved_cents() == 0


def test_expense_percentage_strategy(db, make_user, saved_cents):
    """Test 10% of 10000 saves 1000"""
    make_user(saving_type="PERCENTAGE", saving_percentage=Decimal("10"))
    row = TransactionService(db).create_transaction(_transaction("10000"))
    db.commit()

    assert row.saving_amount_cents == 100000
    assert row.rounded_amount_cents is None
    assert saved_cents() == 100000


def test_no_saving_policy_completes_without_saving(db, make_user, saved_cents):
    make_user(min_safe_balance_cents=30000, insufficient_balance_option="NO_SAVING")
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()

    assert row.status == "COMPLETED"
    assert row.saving_amount_cents == 0
    assert saved_cents() == 0


def test_pending_policy_defers_without_touching_ledger(db, make_user, saved_cents):
    """Test PENDING keeps the saving of 500 but leaves the total alone"""
    make_user(min_safe_balance_cents=30000, insufficient_balance_option="PENDING")
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()

    assert row.status == "PENDING"
    assert row.saving_amount_cents == 50000
    assert saved_cents() == 0


def test_respect_min_balance_saves_excess(db, make_user, saved_cents):
    """Test 500 against a 300 floor saves 200"""
    make_user(min_safe_balance_cents=30000, insufficient_balance_option="RESPECT_MIN_BALANCE")
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()

    assert row.status == "COMPLETED"
    assert row.saving_amount_cents == 20000
    assert saved_cents() == 20000


def test_income_never_saves(db, make_user, saved_cents):
    make_user()
    row = TransactionService(db).create_transaction(_transaction("4500", TransactionType.INCOME))
    db.commit()

    assert row.status == "COMPLETED"
    assert row.saving_amount_cents is None
    assert saved_cents() == 0


def test_unknown_user_rejected(db):
    with pytest.raises(UserNotFoundError):
        TransactionService(db).create_transaction(_transaction("4500", user_id=999))


@pytest.mark.parametrize("amount", ["0", "-10"])
def test_non_positive_amount_rejected(db, make_user, amount):
    make_user()
    with pytest.raises(InvalidTransactionDataError):
        TransactionService(db).create_transaction(_transaction(amount))


def test_sub_cent_amount_rejected_before_storing(db, make_user, saved_cents):
    """Test 0.004 rounds to 0.00 and is refused with nothing written"""
    make_user()

    with pytest.raises(InvalidTransactionDataError):
        TransactionService(db).create_transaction(_transaction("0.004", TransactionType.SAVING))
    db.rollback()

    assert db.query(LedgerTransaction).count() == 0
    assert saved_cents() == 0


def test_half_cent_amount_rounds_up(db, make_user, saved_cents):
    make_user()
    row = TransactionService(db).create_saving_deposit(1, Decimal("0.005"))
    db.commit()

    assert row.amount_cents == 1
    assert saved_cents() == 1


def test_invalid_rounding_multiple_rejected(db, make_user):
    make_user(rounding_multiple=0)
    with pytest.raises(InvalidConfigurationError):
        TransactionService(db).create_transaction(_transaction("4500"))


def test_invalid_configuration_ignored_for_income(db, make_user):
    """Test configuration is only validated when a saving is computed"""
    make_user(rounding_multiple=0)
    row = TransactionService(db).create_transaction(_transaction("4500", TransactionType.INCOME))
    assert row.status == "COMPLETED"


def test_saving_deposit_adds_amount(db, make_user, saved_cents):
    make_user()
    row = TransactionService(db).create_saving_deposit(1, Decimal("1000"))
    db.commit()

    assert row.transaction_type == "SAVING"
    assert row.description == "Depósito manual"
    assert saved_cents() == 100000


def test_withdrawal_subtracts_amount(db, make_user, saved_cents):
    make_user(total_saved_cents=100000)
    row = TransactionService(db).create_withdrawal(1, Decimal("400"))
    db.commit()

    assert row.status == "COMPLETED"
    assert row.description == "Retiro a cuenta vinculada Bancolombia"
    assert saved_cents() == 60000


def test_withdrawal_exceeding_total_rejected(db, make_user, saved_cents):
    """Test an over-withdrawal is refused and the ledger is unchanged"""
    make_user(total_saved_cents=10000)

    with pytest.raises(InsufficientSavingsError):
        TransactionService(db).create_withdrawal(1, Decimal("100.01"))
    db.rollback()

    assert saved_cents() == 10000
    assert db.query(LedgerTransaction).count() == 0


def test_sub_cent_withdrawal_rejected(db, make_user, saved_cents):
    make_user(total_saved_cents=10000)

    with pytest.raises(InvalidTransactionDataError):
        TransactionService(db).create_withdrawal(1, Decimal("0.001"))
    db.rollback()

    assert saved_cents() == 10000
    assert db.query(LedgerTransaction).count() == 0


def test_withdrawal_compares_amount_in_cents(db, make_user, saved_cents):
    """Test 100.004 rounds to the full 100.00 saved instead of exceeding it"""
    make_user(total_saved_cents=10000)
    row = TransactionService(db).create_withdrawal(1, Decimal("100.004"))
    db.commit()

    assert row.amount_cents == 10000
    assert saved_cents() == 0


def test_guarded_decrement_blocks_overdraw(db, make_user, saved_cents):
    """Test the decrement guard holds even when the pre-check is bypassed"""
    make_user(total_saved_cents=10000)

    with pytest.raises(InsufficientSavingsError):
        TransactionStateMachine(db).create_and_finalize(_transaction("500", TransactionType.WITHDRAWAL))
    db.rollback()

    assert saved_cents() == 10000
    assert db.query(LedgerTransaction).count() == 0


def test_storage_failure_marks_failed(db, make_user, saved_cents):
    """Test a storage error during finalize leaves a FAILED row and no ledger change"""
    make_user()

    with patch(
        "savemate_engine.infrastructure.database.repositories.UserRepository.apply_saved_delta",
        side_effect=SQLAlchemyError("disk I/O error"),
    ):
        with pytest.raises(TransactionProcessingError) as exc_info:
            TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()
    db.expire_all()

    row = db.query(LedgerTransaction).one()
    assert exc_info.value.transaction_id == row.id
    assert row.status == "FAILED"
    assert saved_cents() == 0


def test_reprocess_is_idempotent(db, make_user, saved_cents):
    """Test a second reprocess of the same transaction changes nothing"""
    make_user(min_safe_balance_cents=30000, insufficient_balance_option="PENDING")
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()

    state_machine = TransactionStateMachine(db)
    assert state_machine.reprocess_pending(row) == ReprocessOutcome.COMPLETED
    db.commit()
    assert state_machine.reprocess_pending(row) == ReprocessOutcome.ALREADY_FINALIZED
    db.commit()

    assert row.status == "COMPLETED"
    assert saved_cents() == 50000


def test_reprocess_loses_race_without_double_credit(db, make_user, saved_cents):
    """Test a row finalized elsewhere is reported ALREADY_FINALIZED"""
    make_user(min_safe_balance_cents=30000, insufficient_balance_option="PENDING")
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()
    assert row.status == "PENDING"

    # Another worker completes the row; the in-memory row still says PENDING
    db.execute(
        update(LedgerTransaction).where(LedgerTransaction.id == row.id).values(status="COMPLETED"),
        execution_options={"synchronize_session": False},
    )

    assert TransactionStateMachine(db).reprocess_pending(row) == ReprocessOutcome.ALREADY_FINALIZED
    db.commit()
    assert saved_cents() == 0


def test_recheck_balance_policy_defers(db, make_user, saved_cents):
    make_user(min_safe_balance_cents=30000, insufficient_balance_option="PENDING")
    row = TransactionService(db).create_transaction(_transaction("4500"))
    db.commit()

    outcome = TransactionStateMachine(db, reprocess_policy="recheck_balance").reprocess_pending(row)

    assert outcome == ReprocessOutcome.DEFERRED
    assert row.status == "PENDING"
    assert saved_cents() == 0


def test_ledger_delta_by_kind():
    def row(kind: str, amount: int, saving: int | None = None) -> LedgerTransaction:
        return LedgerTransaction(transaction_type=kind, amount_cents=amount, saving_amount_cents=saving)

    assert ledger_delta_cents(row("EXPENSE", 450000, 50000)) == 50000
    assert ledger_delta_cents(row("EXPENSE", 450000, None)) == 0
    assert ledger_delta_cents(row("SAVING", 100000)) == 100000
    assert ledger_delta_cents(row("WITHDRAWAL", 40000)) == -40000
    assert ledger_delta_cents(row("INCOME", 450000)) == 0
    assert ledger_delta_cents(row("FEE", 1000)) == 0


def test_list_transactions_by_date_range(db, make_user):
    """Test both ends of the range are whole days and inclusive"""
    make_user()
    service = TransactionService(db)
    for day in (14, 15, 17, 18):
        transaction = _transaction("4500", TransactionType.INCOME)
        transaction.transaction_date = datetime(2026, 10, day, 23, 30, tzinfo=timezone.utc)
        service.create_transaction(transaction)
    db.commit()

    rows = service.list_transactions(1, start_date=date(2026, 10, 15), end_date=date(2026, 10, 17))

    assert [row.transaction_date.day for row in rows] == [17, 15]
    assert len(service.list_transactions(1, start_date=date(2026, 10, 17))) == 2
    assert len(service.list_transactions(1, end_date=date(2026, 10, 14))) == 1


def test_list_transactions_rejects_inverted_range(db, make_user):
    make_user()
    with pytest.raises(InvalidTransactionDataError):
        TransactionService(db).list_transactions(1, start_date=date(2026, 10, 18), end_date=date(2026, 10, 1))
