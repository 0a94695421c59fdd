from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from core.enums import DeliveryStatus, Location


class DeliveryItemCreate(BaseModel):
    product_id: int
    ordered_quantity: int = Field(gt=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class DeliveryCreate(BaseModel):
    supplier: str = Field(max_length=255)
    location: Location
    delivery_number: Optional[str] = Field(default=None, max_length=100)
    expected_date: Optional[datetime] = None
    total_cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    items: List[DeliveryItemCreate] = Field(default_factory=list)

    @field_validator("supplier")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus


class DeliveryItemReceipt(BaseModel):
    item_id: int
    received_quantity: int = Field(ge=0)


class DeliveryReceive(BaseModel):
    # Items left out are received in full (received = ordered)
    items: List[DeliveryItemReceipt] = Field(default_factory=list)
    notes: Optional[str] = None
