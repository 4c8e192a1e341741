import datetime as dt
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ...api.deps import get_data_access
from ...core.config import settings
from ...core.exceptions import ValidationError
from ...schemas.appointment import AppointmentResponse
from ...schemas.booking import AvailableDate, TimeSlot
from ...schemas.doctor import DoctorResponse
from ...services.data_access import DataAccess
from ...services.time_slots import get_available_dates, get_available_slots, parse_iso

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
async def list_doctors(
    department_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    data: DataAccess = Depends(get_data_access)
):
    """List active doctors, newest first, optionally by department or search term."""
    return data.list_doctors(department_id=department_id, search=search)

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: int,
    data: DataAccess = Depends(get_data_access)
):
    """Get a doctor with department and user details."""
    return data.get_doctor(doctor_id)

@router.get("/{doctor_id}/appointments", response_model=List[AppointmentResponse])
async def list_doctor_appointments(
    doctor_id: int,
    start_date: str = Query(..., description="ISO 8601 range start"),
    end_date: str = Query(..., description="ISO 8601 range end"),
    data: DataAccess = Depends(get_data_access)
):
    """Non-cancelled appointments for a doctor in a date range."""
    try:
        start, end = parse_iso(start_date), parse_iso(end_date)
    except ValueError:
        raise ValidationError("Invalid date range", field="start_date")

    if end < start:
        raise ValidationError("end_date must not be before start_date", field="end_date")

    data.get_doctor(doctor_id)
    return data.list_doctor_appointments(doctor_id, start, end)

@router.get("/{doctor_id}/slots", response_model=List[TimeSlot])
async def get_doctor_slots(
    doctor_id: int,
    date: dt.date = Query(...),
    data: DataAccess = Depends(get_data_access)
):
    """Free slots for a doctor on one day."""
    doctor = data.get_doctor(doctor_id)

    day_start = datetime.combine(date, dt.time.min)
    appointments = data.list_doctor_appointments(
        doctor_id, day_start, day_start + timedelta(days=1)
    )
    return get_available_slots(date, doctor.availability, appointments)

@router.get("/{doctor_id}/available-dates", response_model=List[AvailableDate])
async def get_doctor_available_dates(
    doctor_id: int,
    data: DataAccess = Depends(get_data_access)
):
    """Days within the booking window that still have a free slot."""
    doctor = data.get_doctor(doctor_id)

    now = datetime.utcnow()
    appointments = data.list_doctor_appointments(
        doctor_id, now, now + timedelta(days=settings.BOOKING_WINDOW_DAYS)
    )
    return get_available_dates(doctor.availability, appointments, now=now)
