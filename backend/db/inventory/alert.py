from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class StockAlert(Base):
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    # 'warehouse' or one of the bar location codes
    location = Column(String(50), nullable=True, index=True)
    alert_type = Column(String(50), nullable=False)  # 'low_stock'
    current_quantity = Column(Integer, nullable=False)
    threshold = Column(Integer, nullable=False)
    is_resolved = Column(Boolean, nullable=False, default=False, index=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    product = relationship("Product")
