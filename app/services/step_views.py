"""
Booking wizard steps.

Each step loads its own options, keeps its own error message and offers one
forward action. Steps never touch the selection directly; every change goes
through the wizard.
"""
import datetime as dt
import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

from ..core.config import settings
from ..core.exceptions import BookingError, FetchError, InvalidTransition, ValidationError
from ..schemas.booking import BookingStep, StepView, TimeSlot
from ..schemas.department import DepartmentOption
from ..schemas.doctor import DoctorResponse
from .booking_wizard import BookingWizard, FetchToken
from .time_slots import get_available_dates, get_available_slots, parse_iso
from ..utils.formatting import department_icon

logger = logging.getLogger(__name__)

NO_SLOTS_MESSAGE = "No slots available on this date. Please try another day."
SLOT_TAKEN_MESSAGE = "This time slot is no longer available. Please select another time."


class WizardStepView:
    step: BookingStep
    load_error_message = "Failed to load data. Please try again."

    def __init__(self, wizard: BookingWizard):
        self.wizard = wizard
        self.options: List[Any] = []
        self.error: Optional[str] = None
        self.loading = False
        self.loaded = False

    def _fetch(self) -> List[Any]:
        return []

    def load(self, force: bool = False) -> StepView:
        """Fetch this step's options; failures become the step's error message."""
        if self.loaded and not force:
            return self.view()

        token = self.wizard.begin_fetch()
        self.loading = True
        self.error = None
        try:
            options = self._fetch()
        except BookingError as e:
            logger.warning(f"{self.step.name} step failed to load: {e.message}")
            if self.wizard.is_current(token):
                self.error = self.load_error_message
            options = None
        finally:
            self.loading = False

        if options is not None:
            self.apply_result(token, options)
        return self.view()

    def apply_result(self, token: FetchToken, options: List[Any]) -> bool:
        """Store fetched options unless the wizard moved on while they loaded."""
        if not self.wizard.is_current(token):
            logger.debug(f"Discarding stale {self.step.name} options")
            return False

        self.options = options
        self.loaded = True
        return True

    def view(self) -> StepView:
        return StepView(
            step=self.step,
            options=self.options,
            error=self.error,
            loading=self.loading
        )


class DepartmentStep(WizardStepView):
    step = BookingStep.DEPARTMENT
    load_error_message = "Failed to load departments. Please try again."

    def _fetch(self):
        return [
            DepartmentOption(
                id=department.id,
                name=department.name,
                description=department.description,
                is_active=department.is_active,
                icon=department_icon(department.name)
            )
            for department in self.wizard.data.list_departments()
        ]

    def select(self, department_id: int):
        """Choose a department and move on to the doctor step."""
        self.load()
        department = next((d for d in self.options if d.id == department_id), None)
        if department is None:
            raise ValidationError("Please select a valid department.", field="department")

        self.wizard.set_department(department.model_dump())
        self.wizard.next_step()


class DoctorStep(WizardStepView):
    step = BookingStep.DOCTOR
    load_error_message = "Failed to load doctors. Please try again."

    def _fetch(self):
        department = self.wizard.selection.department
        if department is None:
            return []
        return [
            DoctorResponse.model_validate(doctor)
            for doctor in self.wizard.data.list_doctors(department_id=department.id)
        ]

    def search(self, query: Optional[str]) -> List[DoctorResponse]:
        """Filter the loaded doctors by name or specialization."""
        if not query:
            return list(self.options)

        needle = query.strip().lower()
        return [
            doctor for doctor in self.options
            if needle in (doctor.full_name or "").lower()
            or needle in (doctor.specialization or "").lower()
        ]

    def select(self, doctor_id: int):
        self.load()
        doctor = next((d for d in self.options if d.id == doctor_id), None)
        if doctor is None:
            raise ValidationError("Please select a valid doctor.", field="doctor")

        self.wizard.set_doctor(doctor.model_dump())
        self.wizard.next_step()


class DateTimeStep(WizardStepView):
    step = BookingStep.DATETIME
    load_error_message = "Failed to load available times. Please try again."

    def __init__(self, wizard: BookingWizard, now: Optional[datetime] = None):
        super().__init__(wizard)
        self.now = now
        self.appointments: List[Any] = []

    def _current_time(self) -> datetime:
        return self.now or datetime.utcnow()

    def _fetch(self):
        doctor = self.wizard.selection.doctor
        if doctor is None:
            return []

        now = self._current_time()
        self.appointments = self.wizard.data.list_doctor_appointments(
            doctor.id,
            now,
            now + timedelta(days=settings.BOOKING_WINDOW_DAYS)
        )
        return get_available_dates(
            doctor.availability, self.appointments, now=now
        )

    def slots_for(self, day: dt.date) -> List[TimeSlot]:
        """Free slots on ``day``; sets the step message when there are none."""
        self.load()
        doctor = self.wizard.selection.doctor
        if doctor is None or not self.loaded:
            return []

        slots = get_available_slots(
            day, doctor.availability, self.appointments, self._current_time()
        )
        self.error = None if slots else NO_SLOTS_MESSAGE
        return slots

    def select(self, day: dt.date, time_slot: str):
        """Pick a free slot and move on to the confirm step."""
        try:
            wanted = parse_iso(time_slot)
        except (TypeError, ValueError):
            raise ValidationError("Invalid time slot.", field="time_slot")

        free = [parse_iso(slot.iso) for slot in self.slots_for(day)]
        if not self.loaded:
            raise FetchError(self.error or self.load_error_message)
        if wanted not in free:
            raise ValidationError(SLOT_TAKEN_MESSAGE, field="time_slot")

        self.wizard.set_date_time(day, time_slot)
        self.wizard.next_step()


class ConfirmStep(WizardStepView):
    step = BookingStep.CONFIRM

    def view(self) -> StepView:
        return StepView(
            step=self.step,
            options=[self.wizard.selection],
            error=self.error or self.wizard.state.error,
            loading=self.loading
        )

    def confirm(self, reason: str, notes: str = ""):
        """Record the visit reason and book the appointment."""
        # Nothing is written unless the wizard is waiting for confirmation
        if self.wizard.step != BookingStep.CONFIRM:
            raise InvalidTransition("Booking can only be confirmed from the confirm step.")

        self.error = None
        self.loading = True
        try:
            self.wizard.set_reason(reason)
            self.wizard.set_notes(notes)
            return self.wizard.confirm_booking()
        except BookingError as e:
            self.error = e.message
            raise
        finally:
            self.loading = False


class SuccessStep(WizardStepView):
    step = BookingStep.SUCCESS

    def view(self) -> StepView:
        return StepView(step=self.step, options=[self.wizard.selection])

    def view_appointments(self) -> str:
        return "/appointments"

    def go_to_dashboard(self) -> str:
        self.wizard.reset()
        return "/dashboard"


STEP_VIEWS = {
    BookingStep.DEPARTMENT: DepartmentStep,
    BookingStep.DOCTOR: DoctorStep,
    BookingStep.DATETIME: DateTimeStep,
    BookingStep.CONFIRM: ConfirmStep,
    BookingStep.SUCCESS: SuccessStep,
}


def step_view_for(wizard: BookingWizard) -> WizardStepView:
    return STEP_VIEWS[wizard.step](wizard)
