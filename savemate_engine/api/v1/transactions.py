"""/v1/transactions - ingestion, savings movements, reads and pending reprocessing"""

import time
import uuid
import logging
from datetime import date
from typing import Callable, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from savemate_engine.api.v1.schemas import (
    NotificationTextRequest,
    NotificationTransactionRequest,
    ParsedNotificationResponse,
    SavingDepositRequest,
    SweepReportResponse,
    TransactionListResponse,
    TransactionRequest,
    TransactionResponse,
    WithdrawalRequest,
)
from savemate_engine.api.dependencies import get_pattern_table, get_request_id, get_savings_event_client
from savemate_engine.infrastructure.database.session import get_db
from savemate_engine.infrastructure.database.models import LedgerTransaction
from savemate_engine.infrastructure.database.repositories import to_domain
from savemate_engine.infrastructure.clients.savings_events import SavingsEventClient, build_saving_event
from savemate_engine.domain.models import Transaction, TransactionStatus, TransactionType
from savemate_engine.domain.notification_parser import BankPatternTable
from savemate_engine.domain.exceptions import (
    InsufficientSavingsError,
    InvalidConfigurationError,
    InvalidTransactionDataError,
    NotificationParseError,
    TransactionProcessingError,
    UserNotFoundError,
)
from savemate_engine.services.ledger import ledger_delta_cents
from savemate_engine.services.reprocessor import PendingReprocessor
from savemate_engine.services.transactions import TransactionService
from savemate_engine.infrastructure.observability.metrics import record_parse, record_transaction
from savemate_engine.infrastructure.observability.logging import log_transaction

router = APIRouter()

REJECTED_ERRORS = (
    UserNotFoundError,
    InvalidTransactionDataError,
    InvalidConfigurationError,
    InsufficientSavingsError,
)


def _ingest(
    operation: Callable[[], LedgerTransaction],
    db: Session,
    background_tasks: BackgroundTasks,
    events_client: SavingsEventClient,
    request_id: str,
) -> TransactionResponse:
    """
    Run one ingestion as a single unit of work.

    Flow:
    1. Run the operation (validate, compute saving, finalize)
    2. Commit
    3. Record metrics and logs
    4. Queue a savings event if the saved total changed

    Error mapping:
    - Rejected input or configuration: rollback, 400
    - Unparseable notification: rollback, 422
    - Finalize failure: commit the FAILED row, 500
    - Anything else: rollback, 500
    """
    start_time = time.time()

    try:
        row = operation()
        db.commit()

    except REJECTED_ERRORS as e:
        db.rollback()
        logging.warning(f"Transaction rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except NotificationParseError as e:
        db.rollback()
        logging.warning(f"Notification not parseable: {e}", extra={"request_id": request_id})
        detail = {"message": str(e)}
        if e.parsed is not None:
            detail["parsed"] = ParsedNotificationResponse.from_parsed(e.parsed).model_dump(mode="json")
        raise HTTPException(status_code=422, detail=detail)

    except TransactionProcessingError as e:
        # Keep the FAILED row for audit
        db.commit()
        logging.error(f"Transaction processing failed: {e}", extra={"request_id": request_id})
        raise HTTPException(
            status_code=500,
            detail={"message": str(e), "transaction_id": str(e.transaction_id) if e.transaction_id else None},
        )

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    delta_cents = ledger_delta_cents(row)
    duration_ms = (time.time() - start_time) * 1000
    record_transaction(row.transaction_type, row.status, row.saving_amount_cents)
    log_transaction(
        request_id,
        row.user_id,
        str(row.id),
        row.transaction_type,
        row.status,
        row.saving_amount_cents,
        duration_ms,
    )

    if events_client.enabled and row.status == TransactionStatus.COMPLETED.value and delta_cents:
        background_tasks.add_task(
            events_client.send_saving_event,
            build_saving_event(to_domain(row), delta_cents),
        )

    return TransactionResponse.from_row(row)


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    request_body: TransactionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    events_client: SavingsEventClient = Depends(get_savings_event_client),
):
    """
    Create a transaction of any kind.

    EXPENSE transactions get a micro-saving computed from the user's
    strategy; the insufficient-balance policy may reduce it, drop it or
    defer the whole transaction as PENDING.
    """
    service = TransactionService(db)
    return _ingest(
        lambda: service.create_transaction(
            Transaction(
                user_id=request_body.user_id,
                amount=request_body.amount,
                description=request_body.description,
                merchant_name=request_body.merchant_name,
                transaction_type=request_body.transaction_type,
                transaction_date=request_body.transaction_date,
            )
        ),
        db,
        background_tasks,
        events_client,
        get_request_id(request),
    )


@router.post("/transactions/from-notification", response_model=TransactionResponse, status_code=201)
def create_from_notification(
    request_body: NotificationTransactionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    events_client: SavingsEventClient = Depends(get_savings_event_client),
):
    """Ingest a notification parsed on the device; always recorded as EXPENSE"""
    service = TransactionService(db)
    return _ingest(
        lambda: service.process_notification_transaction(
            user_id=request_body.user_id,
            amount=request_body.amount,
            description=request_body.description,
            merchant_name=request_body.merchant_name,
            notification_source=request_body.notification_source,
            bank_reference=request_body.bank_reference,
        ),
        db,
        background_tasks,
        events_client,
        get_request_id(request),
    )


@router.post("/transactions/from-notification-text", response_model=TransactionResponse, status_code=201)
def create_from_notification_text(
    request_body: NotificationTextRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    events_client: SavingsEventClient = Depends(get_savings_event_client),
    pattern_table: BankPatternTable = Depends(get_pattern_table),
):
    """
    Parse a raw bank notification on the server and ingest it.

    Returns 422 with the partial parse when no amount can be found.
    """
    service = TransactionService(db, pattern_table=pattern_table)

    def operation() -> LedgerTransaction:
        try:
            _, row = service.ingest_notification_text(
                user_id=request_body.user_id,
                text=request_body.text,
                bank_name=request_body.bank_name,
                notification_source=request_body.notification_source,
            )
        except NotificationParseError:
            record_parse(False)
            raise
        record_parse(True)
        return row

    return _ingest(operation, db, background_tasks, events_client, get_request_id(request))


@router.post("/transactions/saving-deposit", response_model=TransactionResponse, status_code=201)
def create_saving_deposit(
    request_body: SavingDepositRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    events_client: SavingsEventClient = Depends(get_savings_event_client),
):
    """Manual deposit into the user's savings"""
    service = TransactionService(db)
    return _ingest(
        lambda: service.create_saving_deposit(
            request_body.user_id, request_body.amount, request_body.description
        ),
        db,
        background_tasks,
        events_client,
        get_request_id(request),
    )


@router.post("/transactions/withdraw", response_model=TransactionResponse, status_code=201)
def withdraw(
    request_body: WithdrawalRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    events_client: SavingsEventClient = Depends(get_savings_event_client),
):
    """Withdraw savings to the linked bank account; 400 if savings fall short"""
    service = TransactionService(db)
    return _ingest(
        lambda: service.create_withdrawal(request_body.user_id, request_body.amount),
        db,
        background_tasks,
        events_client,
        get_request_id(request),
    )


@router.post("/transactions/process-pending/{user_id}", response_model=SweepReportResponse)
def process_pending(user_id: int, request: Request, db: Session = Depends(get_db)):
    """
    Reprocess the user's PENDING transactions now.

    Returns:
        Transaction ids grouped by outcome
    """
    request_id = get_request_id(request)

    try:
        report = PendingReprocessor(db).sweep(user_id=user_id, request_id=request_id)
    except Exception as e:
        db.rollback()
        logging.error(f"Pending sweep failed: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return SweepReportResponse.from_report(report)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: uuid.UUID, db: Session = Depends(get_db)):
    """Fetch a single transaction by id"""
    row = TransactionService(db).get_transaction(transaction_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return TransactionResponse.from_row(row)


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    user_id: int = Query(..., description="User identifier"),
    transaction_type: Optional[TransactionType] = Query(None, description="Filter by kind"),
    start_date: Optional[date] = Query(None, description="First day to include (UTC)"),
    end_date: Optional[date] = Query(None, description="Last day to include (UTC)"),
    db: Session = Depends(get_db),
):
    """
    Retrieve a user's transactions, newest first.

    Returns:
        Up to 100 transactions, optionally filtered by kind and date range
    """
    try:
        rows = TransactionService(db).list_transactions(
            user_id, transaction_type, start_date=start_date, end_date=end_date
        )
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransactionDataError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return TransactionListResponse(
        user_id=user_id,
        transactions=[TransactionResponse.from_row(row) for row in rows],
    )
