from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.enums import Location
from ..database import Base, enum_type


class WarehouseInventory(Base):
    """Master stock: one row per product."""
    __tablename__ = "warehouse_inventory"
    __table_args__ = (
        UniqueConstraint("product_id", name="ux_warehouse_inventory_product"),
        CheckConstraint("quantity >= 0", name="ck_warehouse_inventory_quantity_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quantity = Column(Integer, nullable=False, default=0)
    last_restocked = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="warehouse_stock")


class BarInventory(Base):
    """Per-location stock: one row per (product, bar location)."""
    __tablename__ = "bar_inventory"
    __table_args__ = (
        UniqueConstraint("product_id", "location", name="ux_bar_inventory_product_location"),
        CheckConstraint("quantity >= 0", name="ck_bar_inventory_quantity_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location = Column(enum_type(Location, "location"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    last_restocked = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="bar_stocks")
