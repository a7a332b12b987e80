from datetime import datetime
from pydantic import BaseModel, Field


class DispatchResultDTO(BaseModel):
    """Outcome of one outbox delivery pass"""

    pending: int = Field(..., description="Undelivered events picked up")
    delivered: int = Field(..., description="Events accepted by the publisher")
    failed: int = Field(..., description="Events left for a later attempt")
    dispatched_at: datetime = Field(..., description="Pass timestamp")
