"""Request schemas for Allocation API"""

from pydantic import BaseModel, Field

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class RunAllocationRequestSchema(BaseModel):
    """
    Request schema for running a plant month allocation

    Used for POST /energy/allocations/run endpoint.
    """

    plant_id: int = Field(
        ...,
        gt=0,
        description="Plant ID"
    )

    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Month to allocate (YYYY-MM)"
    )

    rerun: bool = Field(
        default=False,
        description="Supersede and compensate existing allocations"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plant_id": 1,
                "month": "2024-01",
                "rerun": False
            }
        }
