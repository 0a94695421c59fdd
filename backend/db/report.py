from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func
from fastapi_users_db_sqlalchemy.generics import GUID

from core.enums import Location, ReportType
from .database import Base, enum_type


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    report_type = Column(enum_type(ReportType, "report_type"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    location = Column(enum_type(Location, "location"), nullable=True)
    date_from = Column(DateTime, nullable=False)
    date_to = Column(DateTime, nullable=False)
    data = Column(JSON, nullable=False)
    generated_by = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "report_type": self.report_type,
            "title": self.title,
            "location": self.location,
            "date_from": self.date_from,
            "date_to": self.date_to,
            "data": self.data,
            "generated_by": self.generated_by,
            "created_at": self.created_at,
        }
