"""Unit tests for money and date helpers"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from savemate_engine.utils.date_utils import at_start_of_day, parse_notification_date
from savemate_engine.utils.money import from_cents, parse_amount_token, quantize_money, to_cents


@pytest.mark.parametrize(
    "token,expected",
    [
        ("45.000", Decimal("45000.00")),  # Colombian thousands
        ("45.000,00", Decimal("45000.00")),
        ("1.234,50", Decimal("1234.50")),
        ("12,500.00", Decimal("12500.00")),  # US style
        ("1.250.000", Decimal("1250000.00")),
        ("12.50", Decimal("12.50")),
        ("45,5", Decimal("45.50")),
        ("$ 8.900", Decimal("8900.00")),
        ("7500", Decimal("7500.00")),
    ],
)
def test_parse_amount_token(token, expected):
    assert parse_amount_token(token) == expected


@pytest.mark.parametrize("token", ["", "$", "abc", "1.2.3"])
def test_parse_amount_token_rejects(token):
    assert parse_amount_token(token) is None


def test_quantize_money_half_up():
    assert quantize_money(Decimal("0.005")) == Decimal("0.01")
    assert quantize_money(Decimal("10.994")) == Decimal("10.99")


def test_cents_conversion():
    assert to_cents(Decimal("45.005")) == 4501
    assert to_cents(Decimal("500")) == 50000
    assert to_cents(None) is None
    assert from_cents(4501) == Decimal("45.01")
    assert from_cents(None) is None


@pytest.mark.parametrize(
    "token,expected",
    [
        ("17/10/2026", date(2026, 10, 17)),
        ("17-10-2026", date(2026, 10, 17)),
        ("17/10/26", date(2026, 10, 17)),
        ("2026-10-17", date(2026, 10, 17)),
        ("2026/10/17", date(2026, 10, 17)),
    ],
)
def test_parse_notification_date(token, expected):
    assert parse_notification_date(token) == expected


@pytest.mark.parametrize("token", [None, "", "32/13/2026", "ayer"])
def test_parse_notification_date_unreadable(token):
    assert parse_notification_date(token) is None


def test_at_start_of_day_is_utc_midnight():
    assert at_start_of_day(date(2026, 10, 17)) == datetime(2026, 10, 17, tzinfo=timezone.utc)
