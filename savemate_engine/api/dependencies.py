"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from savemate_engine.config import settings
from savemate_engine.domain.notification_parser import BankPatternTable, default_pattern_table
from savemate_engine.infrastructure.clients.savings_events import SavingsEventClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_savings_event_client() -> SavingsEventClient:
    """Provide savings-event webhook client instance"""
    return SavingsEventClient()


def get_pattern_table() -> BankPatternTable:
    """Provide the bank pattern table (loaded once per path)"""
    return default_pattern_table(settings.bank_patterns_path)
