from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.enums import ProductCategory
from .database import Base, enum_type


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_level_nonneg"),
        CheckConstraint("reorder_point >= 0", name="ck_products_reorder_point_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(enum_type(ProductCategory, "product_category"), nullable=False, index=True)
    barcode = Column(String(100), nullable=True)
    sku = Column(String(100), nullable=True, unique=True)
    unit = Column(String(50), nullable=False, default="pieces")

    # reorder_point is meant to sit above min_stock_level, not enforced
    min_stock_level = Column(Integer, nullable=False, default=0)
    reorder_point = Column(Integer, nullable=False, default=0)

    cost = Column(Numeric(10, 2), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    supplier = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    warehouse_stock = relationship("WarehouseInventory", back_populates="product", uselist=False)
    bar_stocks = relationship("BarInventory", back_populates="product")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "barcode": self.barcode,
            "sku": self.sku,
            "unit": self.unit,
            "min_stock_level": self.min_stock_level,
            "reorder_point": self.reorder_point,
            "cost": float(self.cost) if self.cost is not None else None,
            "price": float(self.price) if self.price is not None else None,
            "supplier": self.supplier,
            "description": self.description,
            "is_active": bool(self.is_active),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
