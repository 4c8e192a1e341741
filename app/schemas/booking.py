"""
Booking wizard state.

The wizard state is the only thing persisted between wizard requests; it is
serialised to JSON and kept in the booking session store, never in the
database.
"""
import datetime as dt
from enum import IntEnum
from pydantic import BaseModel, Field
from typing import Any, List, Optional


class BookingStep(IntEnum):
    DEPARTMENT = 1
    DOCTOR = 2
    DATETIME = 3
    CONFIRM = 4
    SUCCESS = 5


class DepartmentSummary(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class DoctorSummary(BaseModel):
    id: int
    specialization: Optional[str] = None
    department_id: Optional[int] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    availability: Optional[Any] = None

    class Config:
        from_attributes = True


class Selection(BaseModel):
    department: Optional[DepartmentSummary] = None
    doctor: Optional[DoctorSummary] = None
    date: Optional[dt.date] = None
    time_slot: Optional[str] = None  # ISO 8601, UTC
    reason: str = ""
    notes: str = ""


class WizardState(BaseModel):
    step: BookingStep = BookingStep.DEPARTMENT
    selection: Selection = Field(default_factory=Selection)
    appointment_id: Optional[int] = None
    error: Optional[str] = None


# Requests

class DepartmentChoice(BaseModel):
    department_id: int


class DoctorChoice(BaseModel):
    doctor_id: int


class DateTimeChoice(BaseModel):
    date: dt.date
    time_slot: str


class StepJump(BaseModel):
    step: BookingStep


class ConfirmRequest(BaseModel):
    reason: str = ""
    notes: str = ""


# Responses

class TimeSlot(BaseModel):
    time: str   # HH:MM
    label: str  # 9:00 AM
    iso: str    # 2024-06-01T09:00:00Z


class AvailableDate(BaseModel):
    date: dt.date
    slots_count: int


class StepView(BaseModel):
    step: BookingStep
    options: List[Any] = Field(default_factory=list)
    error: Optional[str] = None
    loading: bool = False


class BookingStateResponse(BaseModel):
    state: WizardState
    can_proceed: bool
    view: Optional[StepView] = None
