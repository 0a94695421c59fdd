from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fastapi_users_db_sqlalchemy.generics import GUID

from core.enums import DeliveryStatus, Location
from .database import Base, enum_type


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(Integer, primary_key=True, index=True)
    delivery_number = Column(String(100), nullable=True, unique=True)
    supplier = Column(String(255), nullable=False)
    location = Column(enum_type(Location, "location"), nullable=False, index=True)
    status = Column(
        enum_type(DeliveryStatus, "delivery_status"),
        nullable=False,
        default=DeliveryStatus.PENDING,
        index=True,
    )
    order_date = Column(DateTime, nullable=False, server_default=func.now())
    expected_date = Column(DateTime, nullable=True)
    received_date = Column(DateTime, nullable=True)
    total_cost = Column(Numeric(10, 2), nullable=True)
    notes = Column(Text, nullable=True)
    received_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_by = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    items = relationship("DeliveryItem", back_populates="delivery", cascade="all, delete-orphan")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "delivery_number": self.delivery_number,
            "supplier": self.supplier,
            "location": self.location,
            "status": self.status,
            "order_date": self.order_date,
            "expected_date": self.expected_date,
            "received_date": self.received_date,
            "total_cost": float(self.total_cost) if self.total_cost is not None else None,
            "notes": self.notes,
            "received_by": self.received_by,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class DeliveryItem(Base):
    __tablename__ = "delivery_items"
    __table_args__ = (
        CheckConstraint("ordered_quantity > 0", name="ck_delivery_items_ordered_positive"),
        CheckConstraint("received_quantity >= 0", name="ck_delivery_items_received_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    delivery_id = Column(Integer, ForeignKey("deliveries.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    ordered_quantity = Column(Integer, nullable=False)
    # NULL until the delivery is received
    received_quantity = Column(Integer, nullable=True)
    unit_cost = Column(Numeric(10, 2), nullable=True)
    notes = Column(Text, nullable=True)

    delivery = relationship("Delivery", back_populates="items")
    product = relationship("Product")
