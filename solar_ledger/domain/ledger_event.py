"""Ledger Event Domain Entity

Outbox of structured events emitted by ledger mutations. Events are written
in the same database transaction as the mutation and delivered later by the
event dispatcher worker, so no ledger operation waits on the network.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Integer, String, Text
from solar_ledger.domain.base import BaseModel, IdType


class LedgerEventType(str, Enum):
    """Event types published to the notification collaborator"""
    ALLOCATION_CREATED = "allocation.created"
    ALLOCATION_SUPERSEDED = "allocation.superseded"
    CREDITS_ACCUMULATED = "credits.accumulated"
    CREDITS_CONSUMED = "credits.consumed"
    CREDITS_ADJUSTED = "credits.adjusted"
    CREDITS_EXPIRED = "credits.expired"
    INVOICE_GENERATED = "invoice.generated"
    INVOICE_PAID = "invoice.paid"


class LedgerEvent(BaseModel, table=True):
    """
    Ledger Event - Pending or delivered notification

    Domain Rules:
    - Created together with the mutation it describes
    - delivered_at is set once the publisher accepted the event
    - delivery_attempts counts failed deliveries
    """

    __tablename__ = "ledger_events"
    __table_args__ = (
        Index('ix_ledger_events_pending', 'delivered_at', 'id'),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique event identifier (auto-increment)"
    )

    event_type: LedgerEventType = Field(
        description="Event type"
    )

    customer_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, index=True),
        description="Customer the event is about"
    )

    payload_json: str = Field(
        sa_column=Column(Text, nullable=False),
        description="JSON payload (amounts, references)"
    )

    delivery_attempts: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Number of failed delivery attempts"
    )

    delivered_at: Optional[datetime] = Field(
        default=None,
        description="When the event was delivered"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Event timestamp"
    )

    @property
    def payload(self) -> Dict[str, Any]:
        return json.loads(self.payload_json)

    def to_message(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.event_type.value,
            "customer_id": self.customer_id,
            "timestamp": self.created_at.isoformat(),
            **self.payload,
        }
