from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from core.enums import Location


class WarehouseStockUpdate(BaseModel):
    """Either an absolute `quantity` or a relative `adjustment`, never both."""
    quantity: Optional[int] = None
    adjustment: Optional[int] = None

    @model_validator(mode="after")
    def _exactly_one(self):
        if (self.quantity is None) == (self.adjustment is None):
            raise ValueError("Either quantity or adjustment is required (not both)")
        if self.quantity is not None and self.quantity < 0:
            raise ValueError("Quantity cannot be negative")
        return self


class StockTransferCreate(BaseModel):
    product_id: int
    to_location: Location
    quantity: int
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("notes")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None
