"""SQLAlchemy Subscription Repository Implementation

Implements subscription persistence using SQLAlchemy async session.
"""

from typing import Optional, List
from sqlmodel import select, or_
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.subscription_repository import SubscriptionRepository
from solar_ledger.domain.subscription import Subscription, SubscriptionStatus


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    """
    SQLAlchemy implementation of SubscriptionRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_for_plant(self, plant_id: int) -> List[Subscription]:
        """
        Retrieve active subscriptions bound to the plant or unbound

        Args:
            plant_id: Plant ID

        Returns:
            Active subscriptions ordered by ID
        """
        statement = (
            select(Subscription)
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .where(or_(Subscription.plant_id == plant_id, Subscription.plant_id.is_(None)))
            .order_by(Subscription.id)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_by_customer_id(self, customer_id: str) -> Optional[Subscription]:
        statement = (
            select(Subscription)
            .where(Subscription.customer_id == customer_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        statement = select(Subscription).where(Subscription.id == subscription_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def create(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        await self.session.flush()
        await self.session.refresh(subscription)
        return subscription
