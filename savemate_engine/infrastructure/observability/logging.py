"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "savemate-engine"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_transaction(
    request_id: str,
    user_id: int,
    transaction_id: str,
    transaction_type: str,
    status: str,
    saving_amount_cents: int | None,
    duration_ms: float,
) -> None:
    """Log structured ingestion outcome for analysis"""
    logging.info(
        "Transaction processed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "transaction_id": transaction_id,
            "step": "transaction_finalized",
            "transaction_type": transaction_type,
            "status": status,
            "saving_amount_cents": saving_amount_cents,
            "duration_ms": duration_ms,
        },
    )


def log_sweep(request_id: str, user_id: int | None, completed: int, deferred: int, failed: int) -> None:
    """Log a pending-reprocessing sweep summary"""
    logging.info(
        "Pending sweep completed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "pending_sweep",
            "completed": completed,
            "deferred": deferred,
            "failed": failed,
        },
    )
