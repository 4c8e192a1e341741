from fastapi import APIRouter, Depends, Query
from typing import Optional
import math

from ...api.deps import get_current_auth, get_data_access, require_role
from ...core.exceptions import ValidationError
from ...core.security import AuthContext, AuthorizationError, UserRole
from ...models.appointment import Appointment, AppointmentStatus
from ...schemas.appointment import (
    AppointmentResponse, AppointmentListResponse, Pagination,
    CancelRequest, RescheduleRequest
)
from ...services.cancel_flow import CancelFlow
from ...services.data_access import DataAccess
from ...services.time_slots import is_slot_in_window, parse_iso

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def _is_treating_doctor(auth: AuthContext, appointment: Appointment) -> bool:
    return (
        auth.role == UserRole.DOCTOR
        and appointment.doctor is not None
        and appointment.doctor.user_id == auth.user_id
    )

def _check_access(auth: AuthContext, appointment: Appointment):
    """Owner, the appointment's doctor, or an admin."""
    if auth.is_admin or appointment.patient_id == auth.user_id:
        return
    if _is_treating_doctor(auth, appointment):
        return
    raise AuthorizationError("Not authorized to access this appointment")

@router.get("", response_model=AppointmentListResponse)
async def list_my_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[AppointmentStatus] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    auth: AuthContext = Depends(get_current_auth),
    data: DataAccess = Depends(get_data_access)
):
    """List the caller's appointments, soonest first."""
    try:
        appointments, total = data.list_patient_appointments(
            auth.user_id,
            status=status,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit
        )
    except ValueError:
        raise ValidationError("Invalid date filter", field="start_date")

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit)
        )
    )

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    auth: AuthContext = Depends(get_current_auth),
    data: DataAccess = Depends(get_data_access)
):
    """Get one appointment."""
    appointment = data.get_appointment(appointment_id)
    _check_access(auth, appointment)
    return appointment

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    body: CancelRequest,
    auth: AuthContext = Depends(get_current_auth),
    data: DataAccess = Depends(get_data_access)
):
    """Cancel an appointment; a reason from the fixed list is required."""
    _check_access(auth, data.get_appointment(appointment_id))

    flow = CancelFlow(
        appointment_id,
        lambda id, reason: data.cancel_appointment(id, reason, cancelled_by=auth.user_id)
    )
    return flow.submit(body.reason)

@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    body: RescheduleRequest,
    auth: AuthContext = Depends(get_current_auth),
    data: DataAccess = Depends(get_data_access)
):
    """Move an appointment to another free slot with the same doctor."""
    appointment = data.get_appointment(appointment_id)
    if not (auth.is_admin or appointment.patient_id == auth.user_id):
        raise AuthorizationError("Not authorized to reschedule this appointment")

    try:
        new_start = parse_iso(body.new_time)
    except ValueError:
        raise ValidationError("Invalid start time", field="new_time")

    doctor = data.get_doctor(appointment.doctor_id)
    if not is_slot_in_window(new_start.date(), body.new_time, doctor.availability):
        raise ValidationError(
            "Selected time is outside the doctor's available hours.",
            field="new_time"
        )

    return data.reschedule_appointment(appointment_id, new_start)

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    auth: AuthContext = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    data: DataAccess = Depends(get_data_access)
):
    """Mark a scheduled appointment as completed."""
    appointment = data.get_appointment(appointment_id)
    if not (auth.is_admin or _is_treating_doctor(auth, appointment)):
        raise AuthorizationError("Only the appointment's doctor can complete it")

    return data.complete_appointment(appointment_id)
