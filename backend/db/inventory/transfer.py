from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fastapi_users_db_sqlalchemy.generics import GUID

from core.enums import Location, WAREHOUSE
from ..database import Base, enum_type


class StockTransfer(Base):
    """Immutable warehouse -> bar movement, written with the quantity changes it describes."""
    __tablename__ = "stock_transfers"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_transfers_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    from_location = Column(String(50), nullable=False, default=WAREHOUSE)
    to_location = Column(enum_type(Location, "location"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    transferred_by = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    product = relationship("Product")
    transferred_by_user = relationship("User")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "from_location": self.from_location,
            "to_location": self.to_location,
            "quantity": self.quantity,
            "transferred_by": self.transferred_by,
            "notes": self.notes,
            "created_at": self.created_at,
        }
