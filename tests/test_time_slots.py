from datetime import date, datetime

from app.services.time_slots import (
    filter_past_slots, format_slot_label, generate_time_grid, get_available_slots,
    is_slot_in_window, normalize_availability, parse_iso
)
from app.utils.formatting import department_icon, format_doctor_name

SATURDAY = date(2024, 6, 1)


class TestAvailability:

    def test_all_layouts_normalize_alike(self):
        expected = {"saturday": ("09:00", "10:30")}
        assert normalize_availability({"saturday": ["09:00", "10:30"]}) == expected
        assert normalize_availability({"saturday": [{"start": "09:00", "end": "10:30"}]}) == expected
        assert normalize_availability(
            [{"dayOfWeek": 6, "slots": [{"startTime": "09:00", "endTime": "10:30"}]}]
        ) == expected

    def test_empty_or_unknown(self):
        assert normalize_availability(None) == {}
        assert normalize_availability({"caturday": ["09:00", "10:00"]}) == {}

    def test_grid_is_end_exclusive(self):
        grid = generate_time_grid(SATURDAY, {"saturday": ["09:00", "10:30"]})
        assert grid == ["09:00", "09:30", "10:00"]

    def test_sunday_is_day_zero(self):
        sunday = date(2024, 6, 2)
        grid = generate_time_grid(sunday, [{"dayOfWeek": 0, "slots": [{"startTime": "08:00", "endTime": "09:00"}]}])
        assert grid == ["08:00", "08:30"]


class TestSlots:

    def test_past_slots_hidden_today_only(self):
        slots = ["09:00", "09:30", "10:00"]
        now = datetime(2024, 6, 1, 9, 15)
        assert filter_past_slots(slots, SATURDAY, now) == ["09:30", "10:00"]
        assert filter_past_slots(slots, date(2024, 6, 8), now) == slots

    def test_available_slots_skip_booked_ones(self):
        appointments = [{"start_time": "2024-06-01T09:30:00Z", "status": "scheduled"}]
        slots = get_available_slots(
            SATURDAY, {"saturday": ["09:00", "10:30"]}, appointments, now=datetime(2024, 5, 1)
        )
        assert [s.iso for s in slots] == ["2024-06-01T09:00:00Z", "2024-06-01T10:00:00Z"]

    def test_window_check(self):
        hours = {"saturday": ["09:00", "17:00"]}
        assert is_slot_in_window(SATURDAY, "2024-06-01T10:00:00Z", hours)
        assert not is_slot_in_window(SATURDAY, "2024-06-01T10:15:00Z", hours)
        assert not is_slot_in_window(SATURDAY, "2024-06-01T17:00:00Z", hours)
        assert not is_slot_in_window(SATURDAY, "not-a-time", hours)

    def test_parse_iso_normalizes_to_naive_utc(self):
        assert parse_iso("2024-06-01T12:00:00+02:00") == datetime(2024, 6, 1, 10, 0)
        assert parse_iso("2024-06-01T10:00:00Z") == datetime(2024, 6, 1, 10, 0)

    def test_labels(self):
        assert format_slot_label("09:00") == "9:00 AM"
        assert format_slot_label("12:30") == "12:30 PM"
        assert format_slot_label("13:30") == "1:30 PM"
        assert format_slot_label("00:00") == "12:00 AM"


class TestFormatting:

    def test_department_icons(self):
        assert department_icon("Cardiology") == "heart"
        assert department_icon(" NEUROLOGY ") == "brain"
        assert department_icon("Radiology") == "stethoscope"
        assert department_icon(None) == "stethoscope"

    def test_doctor_names(self):
        assert format_doctor_name("Gregory House") == "Dr. Gregory House"
        assert format_doctor_name("Dr. Stephen Strange") == "Dr. Stephen Strange"
        assert format_doctor_name("Drake Ramoray") == "Dr. Drake Ramoray"
        assert format_doctor_name(None) == "Unknown Doctor"
