"""Shared pieces of batch use cases

Batch use cases (allocation runs, expiration sweeps, monthly invoicing,
true-ups) process one customer per unit of work. A failing customer is
recorded and skipped; the batch itself still succeeds and reports the
failures in its summary.
"""

import asyncio
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

PARTIAL_BATCH_FAILURE = "PARTIAL_BATCH_FAILURE"


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    CANCELLED = "cancelled"


class BatchFailureDTO(BaseModel):
    """One customer that could not be processed"""

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    code: str = Field(
        ...,
        description="Error code (e.g., INSUFFICIENT_BALANCE)"
    )

    reason: Optional[str] = Field(
        default=None,
        description="Error detail"
    )


class BatchProgress:
    """Counts successes and failures while a batch runs"""

    def __init__(self, total: int, cancel_event: Optional[asyncio.Event] = None):
        self.total = total
        self.cancel_event = cancel_event
        self.succeeded = 0
        self.failures: List[BatchFailureDTO] = []
        self.cancelled = False

    def should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.cancelled = True
        return self.cancelled

    def record_success(self) -> None:
        self.succeeded += 1

    def record_failure(self, customer_id: str, code: str, reason: Optional[str]) -> None:
        self.failures.append(BatchFailureDTO(customer_id=customer_id, code=code, reason=reason))

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def status(self) -> BatchStatus:
        if self.cancelled:
            return BatchStatus.CANCELLED
        if self.failures:
            return BatchStatus.PARTIAL_FAILURE
        return BatchStatus.COMPLETED

    @property
    def error_code(self) -> Optional[str]:
        return PARTIAL_BATCH_FAILURE if self.failures else None

    @property
    def summary(self) -> str:
        return f"{self.succeeded} of {self.total} succeeded"
