import pytest
from datetime import date, datetime
from types import SimpleNamespace

from app.core.exceptions import FetchError, InvalidTransition, MutationError, ValidationError
from app.core.security import AuthContext
from app.schemas.booking import BookingStep, DepartmentSummary, DoctorSummary, Selection, WizardState
from app.services.booking_wizard import BookingWizard
from app.services.step_views import (
    ConfirmStep, DateTimeStep, DepartmentStep, DoctorStep, SuccessStep,
    NO_SLOTS_MESSAGE, SLOT_TAKEN_MESSAGE, step_view_for
)

SATURDAY_HOURS = {"saturday": ["09:00", "11:00"]}
# Friday before the Saturday used below
NOW = datetime(2024, 5, 31, 12, 0)


class StubData:
    def __init__(self):
        self.departments = [
            SimpleNamespace(id=1, name="Cardiology", description="Heart", is_active=True),
            SimpleNamespace(id=2, name="Podiatry", description=None, is_active=True),
        ]
        self.doctors = [
            SimpleNamespace(id=5, specialization="Cardiologist", department_id=1,
                            full_name="Gregory House", email="house@example.com",
                            availability=SATURDAY_HOURS),
            SimpleNamespace(id=6, specialization="Electrophysiologist", department_id=1,
                            full_name="Lisa Cuddy", email="cuddy@example.com",
                            availability=SATURDAY_HOURS),
        ]
        self.appointments = []
        self.fail_with = None
        self.created = []

    def _maybe_fail(self):
        if self.fail_with:
            raise self.fail_with

    def list_departments(self):
        self._maybe_fail()
        return self.departments

    def list_doctors(self, department_id=None, search=None):
        self._maybe_fail()
        return [d for d in self.doctors if d.department_id == department_id]

    def list_doctor_appointments(self, doctor_id, start_date, end_date):
        self._maybe_fail()
        return self.appointments

    def create_appointment(self, **kwargs):
        self._maybe_fail()
        self.created.append(kwargs)
        return SimpleNamespace(id=99)


def wizard_with(data, state=None):
    return BookingWizard(AuthContext(user_id=7), data, state)


def at_datetime_state():
    return WizardState(
        step=BookingStep.DATETIME,
        selection=Selection(
            department=DepartmentSummary(id=1, name="Cardiology"),
            doctor=DoctorSummary(id=5, department_id=1, availability=SATURDAY_HOURS),
        ),
    )


class TestDepartmentStep:

    def test_options_carry_icons(self):
        view = DepartmentStep(wizard_with(StubData())).load()

        assert [o.name for o in view.options] == ["Cardiology", "Podiatry"]
        assert view.options[0].icon == "heart"
        assert view.options[1].icon == "stethoscope"
        assert view.error is None

    def test_select_sets_department_and_advances(self):
        wizard = wizard_with(StubData())
        DepartmentStep(wizard).select(1)

        assert wizard.selection.department.id == 1
        assert wizard.step == BookingStep.DOCTOR

    def test_select_unknown_department(self):
        wizard = wizard_with(StubData())
        with pytest.raises(ValidationError):
            DepartmentStep(wizard).select(42)
        assert wizard.step == BookingStep.DEPARTMENT

    def test_load_failure_stays_local(self):
        data = StubData()
        data.fail_with = FetchError("boom")
        wizard = wizard_with(data)

        view = DepartmentStep(wizard).load()

        assert view.error == "Failed to load departments. Please try again."
        assert view.loading is False
        assert view.options == []
        assert wizard.state == WizardState()

    def test_retry_after_failure(self):
        data = StubData()
        data.fail_with = FetchError("boom")
        step = DepartmentStep(wizard_with(data))
        step.load()

        data.fail_with = None
        view = step.load()
        assert view.error is None
        assert view.loading is False
        assert len(view.options) == 2

    def test_stale_results_are_discarded(self):
        wizard = wizard_with(StubData())
        step = DepartmentStep(wizard)
        token = wizard.begin_fetch()

        wizard.set_department({"id": 2, "name": "Podiatry"})

        assert step.apply_result(token, ["late"]) is False
        assert step.options == []
        assert step.apply_result(wizard.begin_fetch(), ["fresh"]) is True
        assert step.options == ["fresh"]


class TestDoctorStep:

    def test_lists_doctors_of_selected_department(self):
        wizard = wizard_with(StubData())
        wizard.set_department({"id": 1, "name": "Cardiology"})
        wizard.next_step()

        view = DoctorStep(wizard).load()
        assert {d.id for d in view.options} == {5, 6}

    def test_search_filters_by_name_or_specialization(self):
        wizard = wizard_with(StubData())
        wizard.set_department({"id": 1, "name": "Cardiology"})
        step = DoctorStep(wizard)
        step.load()

        assert [d.id for d in step.search("cuddy")] == [6]
        assert [d.id for d in step.search("CARDIO")] == [5]
        assert len(step.search("")) == 2

    def test_select_advances_to_datetime(self):
        wizard = wizard_with(StubData())
        wizard.set_department({"id": 1, "name": "Cardiology"})
        wizard.next_step()

        DoctorStep(wizard).select(5)

        assert wizard.selection.doctor.full_name == "Gregory House"
        assert wizard.step == BookingStep.DATETIME


class TestDateTimeStep:

    def test_available_dates(self):
        wizard = wizard_with(StubData(), at_datetime_state())
        view = DateTimeStep(wizard, now=NOW).load()

        first = view.options[0]
        assert first.date == date(2024, 6, 1)
        assert first.slots_count == 4

    def test_booked_slots_are_hidden(self):
        data = StubData()
        data.appointments = [
            {"start_time": "2024-06-01T09:00:00Z", "status": "scheduled"},
            {"start_time": "2024-06-01T09:30:00Z", "status": "cancelled"},
        ]
        step = DateTimeStep(wizard_with(data, at_datetime_state()), now=NOW)

        slots = step.slots_for(date(2024, 6, 1))
        assert [s.time for s in slots] == ["09:30", "10:00", "10:30"]
        assert slots[0].label == "9:30 AM"
        assert slots[0].iso == "2024-06-01T09:30:00Z"

    def test_day_without_slots_sets_message(self):
        step = DateTimeStep(wizard_with(StubData(), at_datetime_state()), now=NOW)
        assert step.slots_for(date(2024, 6, 2)) == []
        assert step.error == NO_SLOTS_MESSAGE

    def test_select_moves_to_confirm(self):
        wizard = wizard_with(StubData(), at_datetime_state())
        DateTimeStep(wizard, now=NOW).select(date(2024, 6, 1), "2024-06-01T10:00:00Z")

        assert wizard.selection.time_slot == "2024-06-01T10:00:00Z"
        assert wizard.step == BookingStep.CONFIRM

    def test_select_taken_slot(self):
        data = StubData()
        data.appointments = [{"start_time": "2024-06-01T10:00:00Z", "status": "scheduled"}]
        wizard = wizard_with(data, at_datetime_state())

        with pytest.raises(ValidationError) as exc_info:
            DateTimeStep(wizard, now=NOW).select(date(2024, 6, 1), "2024-06-01T10:00:00Z")
        assert exc_info.value.message == SLOT_TAKEN_MESSAGE
        assert wizard.step == BookingStep.DATETIME

    def test_select_when_loading_failed(self):
        data = StubData()
        data.fail_with = FetchError("down")
        wizard = wizard_with(data, at_datetime_state())

        with pytest.raises(FetchError):
            DateTimeStep(wizard, now=NOW).select(date(2024, 6, 1), "2024-06-01T10:00:00Z")
        assert wizard.selection.time_slot is None


class TestConfirmAndSuccess:

    def confirm_state(self):
        state = at_datetime_state()
        state.step = BookingStep.CONFIRM
        state.selection.date = date(2024, 6, 1)
        state.selection.time_slot = "2024-06-01T10:00:00Z"
        return state

    def test_confirm_books_and_succeeds(self):
        data = StubData()
        wizard = wizard_with(data, self.confirm_state())
        step = ConfirmStep(wizard)

        step.confirm("Checkup", "Bring results")

        assert data.created[0]["notes"] == "Bring results"
        assert wizard.step == BookingStep.SUCCESS
        assert step.loading is False

    def test_confirm_failure_shows_message(self):
        data = StubData()
        data.fail_with = MutationError("Failed to create appointment")
        wizard = wizard_with(data, self.confirm_state())
        step = ConfirmStep(wizard)

        with pytest.raises(MutationError):
            step.confirm("Checkup")

        assert step.error == "Failed to create appointment"
        assert step.loading is False
        assert step.view().error == "Failed to create appointment"
        assert wizard.step == BookingStep.CONFIRM

    def test_confirm_after_success_changes_nothing(self):
        data = StubData()
        wizard = wizard_with(data, self.confirm_state())
        ConfirmStep(wizard).confirm("Checkup")
        seen = []
        wizard.subscribe(seen.append)

        with pytest.raises(InvalidTransition):
            ConfirmStep(wizard).confirm("Tampered", "Tampered")

        assert wizard.selection.reason == "Checkup"
        assert len(data.created) == 1
        assert seen == []

    def test_confirm_before_confirm_step_changes_nothing(self):
        wizard = wizard_with(StubData(), at_datetime_state())

        with pytest.raises(InvalidTransition):
            ConfirmStep(wizard).confirm("Checkup")
        assert wizard.selection.reason == ""

    def test_success_exits(self):
        wizard = wizard_with(StubData(), self.confirm_state())
        ConfirmStep(wizard).confirm("Checkup")

        step = step_view_for(wizard)
        assert isinstance(step, SuccessStep)
        assert step.view_appointments() == "/appointments"
        assert step.go_to_dashboard() == "/dashboard"
        assert wizard.state == WizardState()
