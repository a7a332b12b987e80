"""Unit tests for CreditBalance and CreditTransaction domain entities

Tests cover:
- Bucket expiration boundary
- Bucket arithmetic consistency
- Transaction breakdown encoding
- Ledger event message shape
"""

import json
from datetime import date, datetime
from decimal import Decimal

from solar_ledger.domain.credit_balance import CreditBalance
from solar_ledger.domain.credit_transaction import CreditTransaction, TransactionType
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType


def make_bucket(**overrides) -> CreditBalance:
    values = dict(
        id=1,
        customer_id="maria@example.com",
        month="2024-01",
        balance_kwh=Decimal("400"),
        accumulated_kwh=Decimal("600"),
        consumed_kwh=Decimal("150"),
        expired_kwh=Decimal("50"),
        expiration_date=date(2028, 12, 31),
    )
    values.update(overrides)
    return CreditBalance(**values)


class TestCreditBalance:
    """Test monthly credit bucket rules"""

    def test_usable_through_expiration_date(self):
        """
        Given: A bucket expiring on 2028-12-31
        When: Checked on and after that day
        Then: It is usable on the day and expired the day after
        """
        bucket = make_bucket()

        assert bucket.is_expired(date(2028, 12, 31)) is False
        assert bucket.is_expired(date(2029, 1, 1)) is True

    def test_bucket_without_expiration_never_expires(self):
        bucket = make_bucket(expiration_date=None)

        assert bucket.is_expired(date(2100, 1, 1)) is False

    def test_consistent_bucket(self):
        assert make_bucket().is_consistent() is True

    def test_inconsistent_bucket(self):
        assert make_bucket(balance_kwh=Decimal("401")).is_consistent() is False

    def test_negative_balance_is_inconsistent(self):
        bucket = make_bucket(
            balance_kwh=Decimal("-10"),
            accumulated_kwh=Decimal("0"),
            consumed_kwh=Decimal("10"),
            expired_kwh=Decimal("0"),
        )

        assert bucket.is_consistent() is False


class TestCreditTransaction:
    """Test per-bucket breakdown storage"""

    def test_breakdown_round_trips_through_json(self):
        # Arrange
        encoded = CreditTransaction.encode_breakdown(
            {"2024-02": Decimal("-100.000000"), "2024-01": Decimal("-300.000000")}
        )
        transaction = CreditTransaction(
            customer_id="maria@example.com",
            ledger_id=1,
            transaction_type=TransactionType.CONSUMPTION,
            amount_kwh=Decimal("-400"),
            balance_before=Decimal("800"),
            balance_after=Decimal("400"),
            breakdown_json=encoded,
        )

        # Assert
        assert list(json.loads(encoded)) == ["2024-01", "2024-02"]
        assert transaction.breakdown == {
            "2024-01": Decimal("-300.000000"),
            "2024-02": Decimal("-100.000000"),
        }


class TestLedgerEvent:
    def test_to_message_merges_payload(self):
        event = LedgerEvent(
            id=7,
            event_type=LedgerEventType.CREDITS_EXPIRED,
            customer_id="maria@example.com",
            payload_json=json.dumps({"amount_kwh": "-500"}),
            created_at=datetime(2029, 1, 1, 0, 0, 0),
        )

        message = event.to_message()

        assert message["id"] == 7
        assert message["type"] == "credits.expired"
        assert message["customer_id"] == "maria@example.com"
        assert message["amount_kwh"] == "-500"
        assert message["timestamp"] == "2029-01-01T00:00:00"
