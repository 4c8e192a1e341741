"""Display helpers shared by the booking steps and API responses."""
import re
from typing import Optional

DEFAULT_DEPARTMENT_ICON = "stethoscope"

# Keys are lower-cased department names
DEPARTMENT_ICONS = {
    "cardiology": "heart",
    "neurology": "brain",
    "orthopedics": "bone",
    "ophthalmology": "eye",
    "pediatrics": "baby",
    "general medicine": "stethoscope",
    "internal medicine": "activity",
    "dermatology": "pill",
}

_DOCTOR_PREFIX = re.compile(r"^dr(\.\s*|\s+)", re.IGNORECASE)


def department_icon(name: Optional[str]) -> str:
    """Icon key for a department name, case-insensitive, with a fallback."""
    if not name:
        return DEFAULT_DEPARTMENT_ICON
    return DEPARTMENT_ICONS.get(name.strip().lower(), DEFAULT_DEPARTMENT_ICON)


def clean_doctor_name(full_name: Optional[str]) -> str:
    if not full_name:
        return "Unknown"
    return _DOCTOR_PREFIX.sub("", full_name).strip()


def format_doctor_name(full_name: Optional[str]) -> str:
    """Prefix a doctor's name with a single "Dr."."""
    if not full_name:
        return "Unknown Doctor"
    return f"Dr. {clean_doctor_name(full_name)}"
