"""
Booking wizard controller.

Owns the in-progress booking (``WizardState``) for one session and is its
only writer. Step views read snapshots and request changes through the
methods below.

Steps run in a fixed order:

    DEPARTMENT -> DOCTOR -> DATETIME -> CONFIRM -> SUCCESS

A step is left only once its required selection fields are filled, and
SUCCESS is reached only through ``confirm_booking()``.
"""
import datetime as dt
import logging
from typing import Any, Callable, List, NamedTuple, Optional, Union

from ..core.exceptions import BookingError, InvalidTransition, ValidationError
from ..core.security import AuthContext
from ..schemas.booking import (
    BookingStep, DepartmentSummary, DoctorSummary, WizardState
)
from .data_access import DataAccess
from .time_slots import is_slot_in_window

logger = logging.getLogger(__name__)

# Selection fields that must be set before leaving each step
REQUIRED_FIELDS = {
    BookingStep.DEPARTMENT: ("department",),
    BookingStep.DOCTOR: ("doctor",),
    BookingStep.DATETIME: ("date", "time_slot"),
    BookingStep.CONFIRM: (),
    BookingStep.SUCCESS: (),
}

Listener = Callable[[WizardState], None]


class FetchToken(NamedTuple):
    generation: int


class BookingWizard:
    def __init__(
        self,
        auth: AuthContext,
        data: DataAccess,
        state: Optional[WizardState] = None
    ):
        self.auth = auth
        self.data = data
        self._state = state.model_copy(deep=True) if state else WizardState()
        self._generation = 0
        self._listeners: List[Listener] = []

    # Snapshots

    @property
    def state(self) -> WizardState:
        """A copy of the current state; mutating it has no effect."""
        return self._state.model_copy(deep=True)

    @property
    def step(self) -> BookingStep:
        return self._state.step

    @property
    def selection(self):
        return self._state.selection.model_copy(deep=True)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a fresh snapshot after every change."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self):
        self._generation += 1
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    # Fetch generations

    def begin_fetch(self) -> FetchToken:
        return FetchToken(self._generation)

    def is_current(self, token: FetchToken) -> bool:
        """False once the state has changed since ``token`` was issued."""
        return token.generation == self._generation

    # Setters

    def _ensure_editable(self):
        if self._state.step == BookingStep.SUCCESS:
            raise InvalidTransition("Booking is already complete. Start a new booking.")

    def _rewind_to(self, step: BookingStep):
        # Cleared fields invalidate every step after the one that owns them
        if self._state.step > step:
            self._state.step = step
            self._state.error = None

    def set_department(self, department: Any):
        """Select a department; clears the doctor, date and time slot."""
        self._ensure_editable()
        if department is None:
            raise ValidationError("Please select a department.", field="department")

        selection = self._state.selection
        selection.department = DepartmentSummary.model_validate(department)
        selection.doctor = None
        selection.date = None
        selection.time_slot = None
        self._rewind_to(BookingStep.DOCTOR)
        self._commit()

    def set_doctor(self, doctor: Any):
        """Select a doctor; clears the date and time slot."""
        self._ensure_editable()
        if doctor is None:
            raise ValidationError("Please select a doctor.", field="doctor")

        summary = DoctorSummary.model_validate(doctor)
        selection = self._state.selection
        if (
            selection.department is not None
            and summary.department_id is not None
            and summary.department_id != selection.department.id
        ):
            raise ValidationError(
                "Doctor does not belong to the selected department.", field="doctor"
            )

        selection.doctor = summary
        selection.date = None
        selection.time_slot = None
        self._rewind_to(BookingStep.DATETIME)
        self._commit()

    def set_date_time(self, date: Union[dt.date, str, None], time_slot: Optional[str]):
        self._ensure_editable()
        if not date or not time_slot:
            raise ValidationError("Please select a date and time.", field="time_slot")

        selection = self._state.selection
        if selection.doctor is None:
            raise ValidationError("Please select a doctor first.", field="doctor")

        if isinstance(date, str):
            try:
                date = dt.date.fromisoformat(date)
            except ValueError:
                raise ValidationError("Invalid date.", field="date")

        if not is_slot_in_window(date, time_slot, selection.doctor.availability):
            raise ValidationError(
                "Selected time is outside the doctor's available hours.",
                field="time_slot"
            )

        selection.date = date
        selection.time_slot = time_slot
        self._commit()

    def set_reason(self, text: Optional[str]):
        self._ensure_editable()
        if not text or not text.strip():
            raise ValidationError("Please provide a reason for your visit.", field="reason")

        self._state.selection.reason = text.strip()
        self._commit()

    def set_notes(self, text: Optional[str]):
        self._ensure_editable()
        self._state.selection.notes = (text or "").strip()
        self._commit()

    # Transitions

    def _missing_fields(self, step: BookingStep) -> List[str]:
        selection = self._state.selection
        return [
            name for name in REQUIRED_FIELDS[step]
            if getattr(selection, name) in (None, "")
        ]

    def can_proceed(self) -> bool:
        if self.step == BookingStep.SUCCESS:
            return False
        return not self._missing_fields(self.step)

    def _move_to(self, step: BookingStep):
        self._state.step = step
        self._state.error = None
        self._commit()

    def next_step(self):
        step = self.step
        if step >= BookingStep.CONFIRM:
            raise InvalidTransition("Confirm the booking to continue.")

        missing = self._missing_fields(step)
        if missing:
            raise InvalidTransition(
                f"Cannot continue: {', '.join(missing)} not selected."
            )

        self._move_to(BookingStep(step + 1))

    def prev_step(self):
        if self.step == BookingStep.SUCCESS:
            raise InvalidTransition("Booking is already complete.")
        self._move_to(BookingStep(max(self.step - 1, BookingStep.DEPARTMENT)))

    def set_step(self, step: Union[BookingStep, int]):
        """Jump straight to ``step``; every earlier step must already be satisfied."""
        try:
            target = BookingStep(step)
        except ValueError:
            raise InvalidTransition(f"Unknown step: {step}")

        if target == BookingStep.SUCCESS:
            raise InvalidTransition("Booking can only be completed by confirming it.")

        for earlier in range(BookingStep.DEPARTMENT, target):
            missing = self._missing_fields(BookingStep(earlier))
            if missing:
                raise InvalidTransition(
                    f"Cannot jump to {target.name}: {', '.join(missing)} not selected."
                )

        self._move_to(target)

    def start_from_doctor(self, doctor_id: int):
        """Deep link entry: preselect a doctor and their department, open DATETIME."""
        doctor = self.data.get_doctor(doctor_id)

        self._state = WizardState()
        if doctor.department is not None:
            self.set_department(doctor.department)
        self.set_doctor(doctor)
        self.set_step(BookingStep.DATETIME)

    def reset(self):
        self._state = WizardState()
        self._commit()

    # Booking

    def confirm_booking(self):
        """Create the appointment for the current selection.

        On failure the wizard stays on CONFIRM with the selection untouched,
        so calling this again sends an equivalent request.
        """
        if self.step != BookingStep.CONFIRM:
            raise InvalidTransition("Booking can only be confirmed from the confirm step.")

        selection = self._state.selection
        missing = [
            name for name in ("doctor", "date", "time_slot")
            if getattr(selection, name) is None
        ]
        if missing:
            raise ValidationError(
                f"Missing booking details: {', '.join(missing)}.", field=missing[0]
            )
        if not selection.reason:
            raise ValidationError("Please provide a reason for your visit.", field="reason")

        department_id = (
            selection.department.id if selection.department else selection.doctor.department_id
        )

        try:
            appointment = self.data.create_appointment(
                doctor_id=selection.doctor.id,
                patient_id=self.auth.user_id,
                start_time=selection.time_slot,
                reason=selection.reason,
                notes=selection.notes or None,
                department_id=department_id
            )
        except BookingError as e:
            logger.warning(f"Booking failed for user {self.auth.user_id}: {e.message}")
            self._state.error = e.message or "Failed to book appointment. Please try again."
            self._commit()
            raise

        self._state.step = BookingStep.SUCCESS
        self._state.appointment_id = appointment.id
        self._state.error = None
        self._commit()
        return appointment
