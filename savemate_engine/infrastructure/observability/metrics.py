"""Prometheus metrics for monitoring ingestion outcomes, realized savings, and webhook performance"""

from prometheus_client import Counter, Histogram

# Transaction metrics
transaction_counter = Counter(
    "savemate_transactions_total",
    "Transactions ingested by the engine",
    ["transaction_type", "status"],  # EXPENSE|INCOME|... x PENDING|COMPLETED|FAILED
)

saving_amount_histogram = Histogram(
    "savemate_saving_amount_cents",
    "Realized micro-saving per transaction, in cents",
    buckets=[0, 5_000, 10_000, 50_000, 100_000, 500_000, 1_000_000],
)

notification_parse_counter = Counter(
    "savemate_notification_parse_total",
    "Notification parse attempts",
    ["outcome"],  # success | failure
)

pending_reprocessed_counter = Counter(
    "savemate_pending_reprocessed_total",
    "PENDING transactions revisited by the reprocessor",
    ["outcome"],  # COMPLETED | DEFERRED | ALREADY_FINALIZED | FAILED
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Savings event webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transaction(transaction_type: str, status: str, saving_amount_cents: int | None) -> None:
    """Record ingestion outcome and, for realized savings, the amount set aside"""
    transaction_counter.labels(transaction_type=transaction_type, status=status).inc()

    if status == "COMPLETED" and saving_amount_cents:
        saving_amount_histogram.observe(saving_amount_cents)


def record_parse(success: bool) -> None:
    notification_parse_counter.labels(outcome="success" if success else "failure").inc()
