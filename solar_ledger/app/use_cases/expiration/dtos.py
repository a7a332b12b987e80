"""Data Transfer Objects for Expiration Use Cases"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from solar_ledger.app.use_cases.batch import BatchFailureDTO, BatchStatus


class ExpiredBucketDTO(BaseModel):
    customer_id: str = Field(..., description="Customer identifier")
    month: str = Field(..., description="Bucket month (YYYY-MM)")
    expired_kwh: Decimal = Field(..., description="Credit retired")
    expiration_date: date = Field(..., description="Last usable day of the bucket")
    transaction_id: int = Field(..., description="Expiration transaction")


class SweepResultDTO(BaseModel):
    """
    Summary of an expiration sweep

    Re-running a sweep for the same date finds nothing left to expire.
    """

    as_of_date: date = Field(..., description="Buckets with expiration_date before this date were swept")
    buckets_expired: int = Field(..., description="Buckets zeroed")
    total_expired_kwh: Decimal = Field(..., description="Credit retired")
    expired: List[ExpiredBucketDTO] = Field(default_factory=list, description="Expired buckets")
    total_customers: int = Field(..., description="Customers with expired credit")
    succeeded: int = Field(..., description="Customers swept")
    failed: int = Field(..., description="Customers that failed")
    failures: List[BatchFailureDTO] = Field(default_factory=list, description="Per-customer failures")
    status: BatchStatus = Field(..., description="completed, partial_failure or cancelled")
    error_code: Optional[str] = Field(default=None, description="PARTIAL_BATCH_FAILURE when any customer failed")
    summary: str = Field(..., description="'N of M succeeded'")
    cancelled: bool = Field(default=False, description="Sweep stopped before all customers")


class ExpirationUrgency(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExpiringCreditDTO(BaseModel):
    customer_id: str = Field(..., description="Customer identifier")
    month: str = Field(..., description="Bucket month (YYYY-MM)")
    balance_kwh: Decimal = Field(..., description="Credit that will expire")
    expiration_date: date = Field(..., description="Last usable day")
    days_to_expire: int = Field(..., description="Days from as_of_date to expiration_date")
    urgency: ExpirationUrgency = Field(..., description="critical, high, medium or low")


class ExpiringCreditsResponseDTO(BaseModel):
    as_of_date: date = Field(..., description="Reference date")
    days: int = Field(..., description="Window length in days")
    total_kwh: Decimal = Field(..., description="Credit expiring within the window")
    items: List[ExpiringCreditDTO] = Field(default_factory=list, description="Expiring buckets, soonest first")
