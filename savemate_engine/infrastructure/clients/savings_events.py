"""Outbound savings-event webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Dict, Any
from savemate_engine.config import settings
from savemate_engine.domain.models import Transaction
from savemate_engine.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


def build_saving_event(transaction: Transaction, delta_cents: int) -> Dict[str, Any]:
    """Payload describing a change to a user's saved total"""
    return {
        "event": "SAVING_REALIZED",
        "transaction_id": str(transaction.id),
        "user_id": transaction.user_id,
        "amount_cents": delta_cents,
        "transaction_type": transaction.transaction_type.value,
    }


class SavingsEventClient:
    """Client for notifying downstream consumers (goals, recommendations) of ledger changes"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.savings_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_saving_event(self, payload: Dict[str, Any]) -> None:
        """
        Send a savings event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures
        - Gives up after max_retries attempts and logs the loss

        Args:
            payload: Event data to send
        """
        if not self.enabled:
            return

        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        # Runs as a background task: nothing upstream can handle the error
                        logging.error(
                            f"Savings event delivery failed after {attempt} attempts: {e}",
                            extra={"transaction_id": payload.get("transaction_id")},
                        )
                        return

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
