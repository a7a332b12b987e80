"""Integration tests for ledger and billing API endpoints"""

import pytest
from decimal import Decimal

from tests.fixtures.seed import seed_plant, seed_subscribers

CUSTOMER = "carla@example.com"


@pytest.mark.asyncio
class TestLedgerAPI:
    """Test credit postings over HTTP"""

    async def test_accumulate_consume_and_history(self, client):
        # Arrange
        await client.post(
            "/api/ledger/accumulate",
            json={"customer_id": CUSTOMER, "month": "2024-01", "amount_kwh": "300"},
        )
        await client.post(
            "/api/ledger/accumulate",
            json={"customer_id": CUSTOMER, "month": "2024-02", "amount_kwh": "500"},
        )

        # Act
        response = await client.post(
            "/api/ledger/consume",
            json={"customer_id": CUSTOMER, "amount_kwh": "400", "as_of_date": "2024-06-01"},
        )
        history = await client.get(f"/api/ledger/{CUSTOMER}/transactions", params={"transaction_type": "consumption"})

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["amount_kwh"]) == Decimal("-400")
        assert {month: Decimal(v) for month, v in body["breakdown"].items()} == {
            "2024-01": Decimal("-300"),
            "2024-02": Decimal("-100"),
        }
        assert history.json()["total"] == 1

    async def test_consume_insufficient_balance_returns_402(self, client):
        # Arrange
        await client.post(
            "/api/ledger/accumulate",
            json={"customer_id": CUSTOMER, "month": "2024-01", "amount_kwh": "500"},
        )

        # Act
        response = await client.post(
            "/api/ledger/consume",
            json={"customer_id": CUSTOMER, "amount_kwh": "700", "as_of_date": "2024-06-01"},
        )

        # Assert
        assert response.status_code == 402
        assert response.json()["error"]["code"] == "INSUFFICIENT_BALANCE"

    async def test_balance_of_unknown_customer_is_404(self, client):
        response = await client.get("/api/ledger/nobody@example.com/balance")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "LEDGER_NOT_FOUND"

    async def test_sweep_and_verify(self, client):
        # Arrange
        await client.post(
            "/api/ledger/accumulate",
            json={"customer_id": CUSTOMER, "month": "2019-01", "amount_kwh": "500"},
        )

        # Act
        sweep = await client.post("/api/ledger/expirations/sweep", json={"as_of_date": "2024-01-01"})
        verify = await client.get("/api/ledger/verify")

        # Assert
        assert sweep.status_code == 200
        assert sweep.json()["buckets_expired"] == 1
        assert verify.status_code == 200
        assert verify.json()["discrepancies_found"] == 0


@pytest.mark.asyncio
class TestBillingAPI:
    """Test invoicing over HTTP"""

    async def test_generate_and_pay_invoice(self, client, db_session):
        """
        Given: 6,000 kWh allocated to a subscriber with a 15% discount
        When: The invoice is generated and its payment confirmed
        Then: 4,845.00 is billed and 6,000 kWh of credit consumed
        """
        # Arrange
        plant = await seed_plant(db_session, "6000")
        await seed_subscribers(db_session, plant.id, [(CUSTOMER, "1")])
        await client.post("/api/energy/allocations/run", json={"plant_id": plant.id, "month": "2024-01"})

        # Act
        generated = await client.post(
            "/api/billing/invoices/generate", json={"customer_id": CUSTOMER, "month": "2024-01"}
        )
        paid = await client.post(
            f"/api/billing/invoices/{CUSTOMER}/2024-01/confirm-payment", json={"as_of_date": "2024-02-15"}
        )
        fetched = await client.get(f"/api/billing/invoices/{CUSTOMER}/2024-01")

        # Assert
        assert generated.status_code == 200
        assert Decimal(generated.json()["final_amount"]) == Decimal("4845.00")
        assert paid.status_code == 200
        assert Decimal(paid.json()["consumed_kwh"]) == Decimal("6000")
        assert fetched.json()["status"] == "paid"

        regenerated = await client.post(
            "/api/billing/invoices/generate",
            json={"customer_id": CUSTOMER, "month": "2024-01", "regenerate": True},
        )
        assert regenerated.status_code == 409
        assert regenerated.json()["error"]["code"] == "STALE_INVOICE"

    async def test_invoice_without_allocation_is_404(self, client):
        response = await client.post(
            "/api/billing/invoices/generate", json={"customer_id": CUSTOMER, "month": "2024-01"}
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "INVOICE_SOURCE_NOT_FOUND"
