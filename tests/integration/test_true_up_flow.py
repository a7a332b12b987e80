"""Integration tests for generation reconciliation and true-up

Tests cover:
- Reconciliation of metered against allocated generation
- True-up split by allocation percentage into the following month
- Re-running a true-up never repeats adjustments
"""

import pytest
from decimal import Decimal

from solar_ledger.app.use_cases.allocation import (
    RunAllocation,
    RunAllocationCommandDTO,
    SetMonthlyGeneration,
    SetMonthlyGenerationCommandDTO,
)
from solar_ledger.app.use_cases.ledger import GetBalance, ListTransactions
from solar_ledger.app.use_cases.reconciliation import ApplyTrueUp, ReconcileGeneration
from solar_ledger.domain.credit_transaction import TransactionType
from tests.fixtures.seed import seed_plant, seed_subscribers

MONTH = "2024-01"
ALICE = "alice@example.com"
BRUNO = "bruno@example.com"


async def allocate_and_meter(db_session, uow_factory, locks, actual_kwh):
    plant = await seed_plant(db_session, "10000")
    await seed_subscribers(db_session, plant.id, [(ALICE, "600"), (BRUNO, "400")])
    allocated = await RunAllocation(uow_factory, locks=locks).execute(
        RunAllocationCommandDTO(plant_id=plant.id, month=MONTH)
    )
    assert allocated.is_ok()

    async with uow_factory() as uow:
        metered = await SetMonthlyGeneration(uow, uow.plants).execute(
            SetMonthlyGenerationCommandDTO(
                plant_id=plant.id, month=MONTH, actual_generation_kwh=Decimal(actual_kwh)
            )
        )
    assert metered.is_ok()
    return plant


async def reconcile(uow_factory, plant_id):
    async with uow_factory() as uow:
        return await ReconcileGeneration(uow, uow.plants, uow.reconciliations).execute(plant_id, MONTH)


async def balance_of(uow_factory, customer_id):
    async with uow_factory() as uow:
        result = await GetBalance(uow.ledgers, uow.balances).execute(customer_id)
    return result.value.balance_kwh


@pytest.mark.asyncio
class TestTrueUpIntegration:
    """Integration tests with real database"""

    async def test_reconcile_then_true_up_shortfall(self, db_session, uow_factory, locks):
        """
        Test complete flow: 9,500 kWh metered against 10,000 kWh allocated
        takes back 300 and 200 kWh in 2024-02
        """
        # Arrange
        plant = await allocate_and_meter(db_session, uow_factory, locks, "9500")
        reconciled = await reconcile(uow_factory, plant.id)
        assert reconciled.is_ok()
        assert reconciled.value.efficiency == Decimal("0.95")
        assert reconciled.value.delta_kwh == Decimal("-500")

        # Act
        result = await ApplyTrueUp(uow_factory, locks=locks).execute(plant.id, MONTH)

        # Assert
        assert result.is_ok()
        assert result.value.target_month == "2024-02"
        assert result.value.summary == "2 of 2 succeeded"
        amounts = {a.customer_id: a.amount_kwh for a in result.value.adjustments}
        assert amounts == {ALICE: Decimal("-300"), BRUNO: Decimal("-200")}

        assert await balance_of(uow_factory, ALICE) == Decimal("5700")
        assert await balance_of(uow_factory, BRUNO) == Decimal("3800")

        async with uow_factory() as uow:
            record = await uow.reconciliations.get_by_plant_month(plant.id, MONTH)
            history = await ListTransactions(uow.transactions).execute(
                ALICE, transaction_type=TransactionType.ADJUSTMENT
            )
        assert record.true_up_month == "2024-02"
        adjustment = history.value.transactions[0]
        assert adjustment.month == "2024-02"
        assert adjustment.requires_review is False
        assert adjustment.idempotency_key == f"true-up:{plant.id}:{MONTH}:{ALICE}"

    async def test_true_up_rerun_is_idempotent(self, db_session, uow_factory, locks):
        # Arrange
        plant = await allocate_and_meter(db_session, uow_factory, locks, "9500")
        await reconcile(uow_factory, plant.id)
        use_case = ApplyTrueUp(uow_factory, locks=locks)
        first = await use_case.execute(plant.id, MONTH)

        # Act
        second = await use_case.execute(plant.id, MONTH)

        # Assert
        first_ids = sorted(a.transaction_id for a in first.value.adjustments)
        assert sorted(a.transaction_id for a in second.value.adjustments) == first_ids
        assert await balance_of(uow_factory, ALICE) == Decimal("5700")

        async with uow_factory() as uow:
            history = await ListTransactions(uow.transactions).execute(
                ALICE, transaction_type=TransactionType.ADJUSTMENT
            )
        assert history.value.total == 1

    async def test_surplus_is_credited_into_target_month(self, db_session, uow_factory, locks):
        # Arrange
        plant = await allocate_and_meter(db_session, uow_factory, locks, "11000")
        await reconcile(uow_factory, plant.id)

        # Act
        result = await ApplyTrueUp(uow_factory, locks=locks).execute(plant.id, MONTH, target_month="2024-03")

        # Assert
        amounts = {a.customer_id: a.amount_kwh for a in result.value.adjustments}
        assert amounts == {ALICE: Decimal("600"), BRUNO: Decimal("400")}
        async with uow_factory() as uow:
            balance = await GetBalance(uow.ledgers, uow.balances).execute(ALICE)
        buckets = {b.month: b.balance_kwh for b in balance.value.buckets}
        assert buckets == {"2024-01": Decimal("6000"), "2024-03": Decimal("600")}

    async def test_true_up_requires_reconciliation(self, db_session, uow_factory, locks):
        plant = await allocate_and_meter(db_session, uow_factory, locks, "9500")

        result = await ApplyTrueUp(uow_factory, locks=locks).execute(plant.id, MONTH)

        assert result.is_err()
        assert result.error.code == "RECONCILIATION_DATA_MISSING"
