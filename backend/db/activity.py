from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from fastapi_users_db_sqlalchemy.generics import GUID

from core.enums import ActivityType
from .database import Base, enum_type


class ActivityLog(Base):
    """Append-only audit trail. Rows are inserted, never updated."""
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    activity_type = Column(enum_type(ActivityType, "activity_type"), nullable=False, index=True)
    entity_type = Column(String(100), nullable=True)
    entity_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    ip_address = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "activity_type": self.activity_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "metadata": self.meta,
            "ip_address": self.ip_address,
            "created_at": self.created_at,
        }
