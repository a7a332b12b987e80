"""Request schemas for Plant API"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, model_validator

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class MonthlyGenerationRequestSchema(BaseModel):
    """
    Request schema for recording generation figures

    Used for POST /plants/{plant_id}/generation/{month} endpoint.
    """

    generation_kwh: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Committed figure allocation runs use"
    )

    expected_generation_kwh: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Forecasted generation"
    )

    actual_generation_kwh: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Metered generation"
    )

    @model_validator(mode="after")
    def validate_any_figure(self):
        if (
            self.generation_kwh is None
            and self.expected_generation_kwh is None
            and self.actual_generation_kwh is None
        ):
            raise ValueError("At least one generation figure is required")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "generation_kwh": "10000",
                "expected_generation_kwh": "10200",
                "actual_generation_kwh": None
            }
        }


class TrueUpRequestSchema(BaseModel):
    """Used for POST /plants/{plant_id}/true-up/{month} endpoint."""

    target_month: Optional[str] = Field(
        default=None,
        pattern=MONTH_PATTERN,
        description="Month the adjustments are booked in (default the following month)"
    )
