from .unit_of_work import UnitOfWork
from .notification_service import NotificationService
from .locks import KeyedLockRegistry, ledger_locks, customer_lock_key, plant_month_lock_key

__all__ = [
    "UnitOfWork",
    "NotificationService",
    "KeyedLockRegistry",
    "ledger_locks",
    "customer_lock_key",
    "plant_month_lock_key",
]
