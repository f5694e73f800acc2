"""Unit tests for the savings-event webhook client"""

import asyncio
import uuid
import httpx
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from savemate_engine.domain.models import Transaction, TransactionType
from savemate_engine.infrastructure.clients.savings_events import SavingsEventClient, build_saving_event

WEBHOOK_URL = "http://ledger.test/events"


def _response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", WEBHOOK_URL))


def _client(max_retries: int = 3) -> SavingsEventClient:
    client = SavingsEventClient(webhook_url=WEBHOOK_URL)
    client.max_retries = max_retries
    client.backoff_base = 0
    return client


def test_build_saving_event():
    transaction_id = uuid.uuid4()
    transaction = Transaction(
        id=transaction_id,
        user_id=7,
        amount=Decimal("4500"),
        description="Compra en Exito",
        transaction_type=TransactionType.EXPENSE,
        transaction_date=datetime.now(timezone.utc),
    )

    assert build_saving_event(transaction, 50000) == {
        "event": "SAVING_REALIZED",
        "transaction_id": str(transaction_id),
        "user_id": 7,
        "amount_cents": 50000,
        "transaction_type": "EXPENSE",
    }


def test_disabled_client_sends_nothing():
    client = SavingsEventClient(webhook_url="")

    with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
        asyncio.run(client.send_saving_event({"event": "SAVING_REALIZED"}))

    assert client.enabled is False
    mock_post.assert_not_called()


def test_retries_server_errors_then_succeeds():
    with patch(
        "httpx.AsyncClient.post",
        new_callable=AsyncMock,
        side_effect=[_response(503), _response(502), _response(200)],
    ) as mock_post:
        asyncio.run(_client().send_saving_event({"event": "SAVING_REALIZED"}))

    assert mock_post.call_count == 3


def test_gives_up_after_max_retries_without_raising():
    with patch(
        "httpx.AsyncClient.post",
        new_callable=AsyncMock,
        side_effect=httpx.ConnectError("connection refused"),
    ) as mock_post:
        asyncio.run(_client(max_retries=2).send_saving_event({"event": "SAVING_REALIZED"}))

    assert mock_post.call_count == 2
