import datetime as dt
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ...api.deps import get_current_auth, get_data_access, get_session_store
from ...core.exceptions import InvalidTransition
from ...core.security import AuthContext
from ...schemas.booking import (
    BookingStep, BookingStateResponse, ConfirmRequest, DateTimeChoice,
    DepartmentChoice, DoctorChoice, StepJump, StepView
)
from ...schemas.doctor import DoctorResponse
from ...services.booking_wizard import BookingWizard
from ...services.data_access import DataAccess
from ...services.session_store import BookingSessionStore
from ...services.step_views import (
    ConfirmStep, DateTimeStep, DepartmentStep, DoctorStep, SuccessStep,
    step_view_for
)

router = APIRouter(prefix="/booking", tags=["Booking"])

def get_wizard(
    auth: AuthContext = Depends(get_current_auth),
    data: DataAccess = Depends(get_data_access),
    store: BookingSessionStore = Depends(get_session_store)
) -> BookingWizard:
    """The caller's wizard, restored from the session store and saved on every change."""
    wizard = BookingWizard(auth, data, store.load(auth.user_id))
    wizard.subscribe(lambda state: store.save(auth.user_id, state))
    return wizard

def _state_response(wizard: BookingWizard) -> BookingStateResponse:
    return BookingStateResponse(
        state=wizard.state,
        can_proceed=wizard.can_proceed(),
        view=step_view_for(wizard).load()
    )

def _enter_step(wizard: BookingWizard, step: BookingStep):
    # Re-selecting an earlier step's choice rewinds the wizard to that step
    if wizard.step == BookingStep.SUCCESS:
        raise InvalidTransition("Booking is already complete. Start a new booking.")
    if wizard.step != step:
        wizard.set_step(step)

@router.get("", response_model=BookingStateResponse)
async def get_booking(wizard: BookingWizard = Depends(get_wizard)):
    """Current wizard state and the options for the current step."""
    return _state_response(wizard)

@router.post("/start", response_model=BookingStateResponse)
async def start_booking(
    doctor_id: Optional[int] = Query(None),
    wizard: BookingWizard = Depends(get_wizard)
):
    """Start a fresh booking, optionally preselecting a doctor."""
    wizard.reset()
    if doctor_id is not None:
        wizard.start_from_doctor(doctor_id)
    return _state_response(wizard)

@router.post("/department", response_model=BookingStateResponse)
async def choose_department(
    choice: DepartmentChoice,
    wizard: BookingWizard = Depends(get_wizard)
):
    """Select a department and advance to the doctor step."""
    _enter_step(wizard, BookingStep.DEPARTMENT)
    DepartmentStep(wizard).select(choice.department_id)
    return _state_response(wizard)

@router.get("/doctors", response_model=List[DoctorResponse])
async def search_doctors(
    search: Optional[str] = Query(None, max_length=100),
    wizard: BookingWizard = Depends(get_wizard)
):
    """Doctors in the selected department, filtered by name or specialization."""
    step = DoctorStep(wizard)
    step.load()
    return step.search(search)

@router.post("/doctor", response_model=BookingStateResponse)
async def choose_doctor(
    choice: DoctorChoice,
    wizard: BookingWizard = Depends(get_wizard)
):
    """Select a doctor and advance to the date and time step."""
    _enter_step(wizard, BookingStep.DOCTOR)
    DoctorStep(wizard).select(choice.doctor_id)
    return _state_response(wizard)

@router.get("/slots", response_model=StepView)
async def get_slots(
    date: dt.date = Query(...),
    wizard: BookingWizard = Depends(get_wizard)
):
    """Free slots with the selected doctor on ``date``."""
    step = DateTimeStep(wizard)
    slots = step.slots_for(date)
    return StepView(step=step.step, options=slots, error=step.error)

@router.post("/datetime", response_model=BookingStateResponse)
async def choose_datetime(
    choice: DateTimeChoice,
    wizard: BookingWizard = Depends(get_wizard)
):
    """Select a date and time slot and advance to the confirm step."""
    _enter_step(wizard, BookingStep.DATETIME)
    DateTimeStep(wizard).select(choice.date, choice.time_slot)
    return _state_response(wizard)

@router.post("/next", response_model=BookingStateResponse)
async def next_step(wizard: BookingWizard = Depends(get_wizard)):
    wizard.next_step()
    return _state_response(wizard)

@router.post("/back", response_model=BookingStateResponse)
async def previous_step(wizard: BookingWizard = Depends(get_wizard)):
    wizard.prev_step()
    return _state_response(wizard)

@router.post("/step", response_model=BookingStateResponse)
async def jump_to_step(
    jump: StepJump,
    wizard: BookingWizard = Depends(get_wizard)
):
    """Jump directly to a step whose earlier selections are complete."""
    wizard.set_step(jump.step)
    return _state_response(wizard)

@router.post("/confirm", response_model=BookingStateResponse)
async def confirm_booking(
    body: ConfirmRequest,
    wizard: BookingWizard = Depends(get_wizard)
):
    """Book the selected slot."""
    ConfirmStep(wizard).confirm(body.reason, body.notes)
    return _state_response(wizard)

@router.post("/finish")
async def finish_booking(
    destination: str = Query("dashboard", pattern="^(dashboard|appointments)$"),
    wizard: BookingWizard = Depends(get_wizard)
):
    """Leave the success step for the dashboard or the appointment list."""
    if wizard.step != BookingStep.SUCCESS:
        raise InvalidTransition("No completed booking to leave.")

    step = SuccessStep(wizard)
    if destination == "appointments":
        redirect = step.view_appointments()
        wizard.reset()
    else:
        redirect = step.go_to_dashboard()
    return {"redirect": redirect}

@router.post("/reset", response_model=BookingStateResponse)
async def reset_booking(wizard: BookingWizard = Depends(get_wizard)):
    """Discard the current selection and start over."""
    wizard.reset()
    return _state_response(wizard)
