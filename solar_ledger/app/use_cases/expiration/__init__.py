"""Credit expiration use cases"""
from .sweep_expirations import SweepExpirations
from .list_expiring import ListExpiringWithin, urgency_for
from .dtos import (
    ExpiredBucketDTO,
    SweepResultDTO,
    ExpirationUrgency,
    ExpiringCreditDTO,
    ExpiringCreditsResponseDTO,
)

__all__ = [
    "SweepExpirations",
    "ListExpiringWithin",
    "urgency_for",
    "ExpiredBucketDTO",
    "SweepResultDTO",
    "ExpirationUrgency",
    "ExpiringCreditDTO",
    "ExpiringCreditsResponseDTO",
]
