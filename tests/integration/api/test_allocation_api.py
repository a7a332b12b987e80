"""Integration tests for allocation and plant API endpoints"""

import pytest
from decimal import Decimal

from tests.fixtures.seed import seed_plant, seed_subscribers

ALICE = "alice@example.com"
BRUNO = "bruno@example.com"


@pytest.mark.asyncio
class TestAllocationAPI:
    """Test allocation run and listing over HTTP"""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_run_and_list_allocations(self, client, db_session):
        """
        Given: A 10,000 kWh plant with two subscribers weighted 600/400
        When: The month is allocated and then listed
        Then: 6,000 and 4,000 kWh are returned and credited
        """
        # Arrange
        plant = await seed_plant(db_session, "10000")
        await seed_subscribers(db_session, plant.id, [(ALICE, "600"), (BRUNO, "400")])

        # Act
        run = await client.post("/api/energy/allocations/run", json={"plant_id": plant.id, "month": "2024-01"})
        listed = await client.get("/api/energy/allocations", params={"month": "2024-01", "plant_id": plant.id})

        # Assert
        assert run.status_code == 200
        body = run.json()
        assert body["status"] == "completed"
        assert body["summary"] == "2 of 2 succeeded"

        assert listed.status_code == 200
        shares = {a["customer_id"]: Decimal(a["allocated_kwh"]) for a in listed.json()["allocations"]}
        assert shares == {ALICE: Decimal("6000"), BRUNO: Decimal("4000")}

        balance = await client.get(f"/api/ledger/{ALICE}/balance")
        assert Decimal(balance.json()["balance_kwh"]) == Decimal("6000")

    async def test_duplicate_run_conflicts(self, client, db_session):
        # Arrange
        plant = await seed_plant(db_session, "10000")
        await seed_subscribers(db_session, plant.id, [(ALICE, "1")])
        payload = {"plant_id": plant.id, "month": "2024-01"}
        await client.post("/api/energy/allocations/run", json=payload)

        # Act
        response = await client.post("/api/energy/allocations/run", json=payload)

        # Assert
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_ALLOCATION"

    async def test_unknown_plant_not_found(self, client):
        response = await client.post("/api/energy/allocations/run", json={"plant_id": 404, "month": "2024-01"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PLANT_NOT_FOUND"

    async def test_invalid_month_rejected(self, client):
        response = await client.post("/api/energy/allocations/run", json={"plant_id": 1, "month": "2024-13"})

        assert response.status_code == 422

    async def test_generation_frozen_after_run(self, client, db_session):
        # Arrange
        plant = await seed_plant(db_session, "10000")
        await seed_subscribers(db_session, plant.id, [(ALICE, "1")])
        await client.post("/api/energy/allocations/run", json={"plant_id": plant.id, "month": "2024-01"})

        # Act
        frozen = await client.post(
            f"/api/plants/{plant.id}/generation/2024-01", json={"generation_kwh": "12000"}
        )
        metered = await client.post(
            f"/api/plants/{plant.id}/generation/2024-01", json={"actual_generation_kwh": "9500"}
        )
        reconciled = await client.post(f"/api/plants/{plant.id}/reconcile/2024-01")

        # Assert
        assert frozen.status_code == 409
        assert frozen.json()["error"]["code"] == "GENERATION_FROZEN"
        assert metered.status_code == 200
        assert reconciled.status_code == 200
        assert Decimal(reconciled.json()["delta_kwh"]) == Decimal("-500")
