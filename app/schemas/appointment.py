from datetime import datetime
from pydantic import BaseModel, Field, field_serializer
from typing import List, Optional

from ..models.appointment import AppointmentStatus


def _utc_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    department_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time", "cancelled_at")
    def serialize_utc(self, value: Optional[datetime]) -> Optional[str]:
        return _utc_iso(value)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    pagination: Pagination


class CancelRequest(BaseModel):
    reason: str = ""


class RescheduleRequest(BaseModel):
    new_time: str = Field(..., description="ISO 8601 start time")
