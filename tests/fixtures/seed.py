"""Database seeding helpers for integration tests"""

from decimal import Decimal
from typing import Dict, Optional, Sequence, Tuple
from sqlmodel.ext.asyncio.session import AsyncSession

from solar_ledger.domain.plant import Plant, PlantStatus
from solar_ledger.domain.subscription import Subscription, SubscriptionStatus


async def seed_plant(
    session: AsyncSession,
    monthly_generation_kwh: str = "10000",
    status: PlantStatus = PlantStatus.ACTIVE,
    name: str = "Usina Norte",
) -> Plant:
    plant = Plant(name=name, monthly_generation_kwh=Decimal(monthly_generation_kwh), status=status)
    session.add(plant)
    await session.commit()
    await session.refresh(plant)
    return plant


async def seed_subscribers(
    session: AsyncSession,
    plant_id: Optional[int],
    subscribers: Sequence[Tuple[str, Optional[str]]],
    discount_percentage: str = "15",
) -> Dict[str, Subscription]:
    """Create one active subscription per (customer_id, weight) pair"""
    created = {}
    for customer_id, weight in subscribers:
        subscription = Subscription(
            customer_id=customer_id,
            plant_id=plant_id,
            status=SubscriptionStatus.ACTIVE,
            weight=Decimal(weight) if weight is not None else None,
            discount_percentage=Decimal(discount_percentage),
        )
        session.add(subscription)
        created[customer_id] = subscription
    await session.commit()
    for subscription in created.values():
        await session.refresh(subscription)
    return created
