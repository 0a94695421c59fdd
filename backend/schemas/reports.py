from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from core.enums import Location, ReportType


class ReportCreate(BaseModel):
    report_type: ReportType
    title: str = Field(max_length=255)
    location: Optional[Location] = None
    date_from: datetime
    date_to: datetime
    # Report content is produced by the client; stored as given
    data: Dict[str, Any]

    @field_validator("title")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @model_validator(mode="after")
    def _date_range(self):
        if self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self
