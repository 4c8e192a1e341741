"""
Time slot computation for doctor availability.

Slot times are wall-clock HH:MM values interpreted as UTC; every ISO string
produced here ends in ``Z``.

Three availability layouts are accepted:
1. ``{"monday": ["09:00", "17:00"]}``
2. ``{"monday": [{"start": "09:00", "end": "17:00"}]}``
3. ``[{"dayOfWeek": 1, "slots": [{"startTime": "09:00", "endTime": "17:00"}]}]``
   (0 = Sunday)
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.config import settings
from ..schemas.booking import AvailableDate, TimeSlot

SLOT_DURATION = settings.SLOT_DURATION_MINUTES

# JavaScript-style day numbers (0 = Sunday)
DAY_NAMES = {
    0: "sunday",
    1: "monday",
    2: "tuesday",
    3: "wednesday",
    4: "thursday",
    5: "friday",
    6: "saturday",
}


def normalize_availability(availability: Any) -> Dict[str, Tuple[str, str]]:
    """Normalize any supported availability layout to ``{day: (start, end)}``."""
    if not availability:
        return {}

    normalized = {}

    if isinstance(availability, list):
        for entry in availability:
            if not isinstance(entry, dict):
                continue
            day_name = DAY_NAMES.get(entry.get("dayOfWeek"))
            slots = entry.get("slots") or []
            if day_name and slots:
                first = slots[0]
                normalized[day_name] = (first.get("startTime"), first.get("endTime"))
        return {k: v for k, v in normalized.items() if all(v)}

    if isinstance(availability, dict):
        for key, value in availability.items():
            if key not in DAY_NAMES.values() or not isinstance(value, list) or not value:
                continue
            first = value[0]
            if isinstance(first, dict) and first.get("start") and first.get("end"):
                normalized[key] = (first["start"], first["end"])
            elif isinstance(first, str) and len(value) == 2:
                normalized[key] = (value[0], value[1])
        return normalized

    return {}


def _js_weekday(day: date) -> int:
    # Python: Monday = 0; availability uses Sunday = 0
    return (day.weekday() + 1) % 7


def _parse_hhmm(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def generate_time_grid(day: date, availability: Any) -> List[str]:
    """All HH:MM slots for ``day`` inside the working window, end exclusive."""
    hours = normalize_availability(availability).get(DAY_NAMES[_js_weekday(day)])
    if not hours:
        return []

    start = datetime.combine(day, _parse_hhmm(hours[0]))
    end = datetime.combine(day, _parse_hhmm(hours[1]))

    slots = []
    current = start
    while current < end:
        slots.append(current.strftime("%H:%M"))
        current += timedelta(minutes=SLOT_DURATION)
    return slots


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into a naive UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_iso(day: date, hhmm: str) -> str:
    return datetime.combine(day, _parse_hhmm(hhmm)).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_slot_label(hhmm: str) -> str:
    """``"13:30"`` -> ``"1:30 PM"``."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    period = "PM" if hours >= 12 else "AM"
    display_hour = hours - 12 if hours > 12 else (12 if hours == 0 else hours)
    return f"{display_hour}:{minutes:02d} {period}"


def _appointment_fields(appointment: Any):
    if isinstance(appointment, dict):
        return appointment.get("start_time"), appointment.get("status")
    return getattr(appointment, "start_time", None), getattr(appointment, "status", None)


def filter_booked_slots(slots: List[str], appointments: Iterable[Any], day: date) -> List[str]:
    """Drop slots whose start time is taken by a non-cancelled appointment on ``day``."""
    booked = set()
    for appointment in appointments:
        start_time, status = _appointment_fields(appointment)
        if not start_time:
            continue
        if getattr(status, "value", status) == "cancelled":
            continue
        start = parse_iso(start_time)
        if start.date() == day:
            booked.add(start.strftime("%H:%M"))

    return [slot for slot in slots if slot not in booked]


def filter_past_slots(slots: List[str], day: date, now: Optional[datetime] = None) -> List[str]:
    """When ``day`` is today, keep only slots later than the current time."""
    now = now or datetime.utcnow()
    if day != now.date():
        return slots

    current = now.strftime("%H:%M")
    return [slot for slot in slots if slot > current]


def get_available_slots(
    day: date,
    availability: Any,
    appointments: Iterable[Any] = (),
    now: Optional[datetime] = None,
) -> List[TimeSlot]:
    """Free slots for a doctor on ``day``, ready for display."""
    slots = generate_time_grid(day, availability)
    slots = filter_booked_slots(slots, appointments, day)
    slots = filter_past_slots(slots, day, now)

    return [
        TimeSlot(time=slot, label=format_slot_label(slot), iso=to_iso(day, slot))
        for slot in slots
    ]


def is_slot_in_window(day: date, slot_iso: str, availability: Any) -> bool:
    """True if ``slot_iso`` falls on ``day`` and on the doctor's slot grid."""
    try:
        start = parse_iso(slot_iso)
    except (TypeError, ValueError):
        return False

    if start.date() != day:
        return False
    if start.second or start.microsecond:
        return False

    return start.strftime("%H:%M") in generate_time_grid(day, availability)


def get_available_dates(
    availability: Any,
    appointments: Iterable[Any] = (),
    days_ahead: int = None,
    now: Optional[datetime] = None,
) -> List[AvailableDate]:
    """Dates within the next ``days_ahead`` days that still have a free slot."""
    now = now or datetime.utcnow()
    days_ahead = days_ahead if days_ahead is not None else settings.BOOKING_WINDOW_DAYS
    appointments = list(appointments)

    dates = []
    for offset in range(days_ahead):
        day = now.date() + timedelta(days=offset)
        slots = get_available_slots(day, availability, appointments, now)
        if slots:
            dates.append(AvailableDate(date=day, slots_count=len(slots)))
    return dates
