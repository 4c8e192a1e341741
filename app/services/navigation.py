"""
Role-gated navigation.

Pure functions of the caller's profile and the current path; they are
evaluated on every request and nothing is cached between calls.
"""
from typing import List, Optional, Tuple

from ..core.security import AuthContext, UserRole
from ..schemas.navigation import NavItem, VisibleNav

ADMIN_HOME = "/admin"
DOCTOR_HOME = "/doctor"
PATIENT_HOME = "/dashboard"

# (label, path, icon)
BASE_NAV_ITEMS: List[Tuple[str, str, str]] = [
    ("Home", PATIENT_HOME, "home"),
    ("Appointments", "/appointments", "calendar"),
    ("Book", "/book", "plus-circle"),
    ("Doctors", "/doctors", "users"),
    ("Profile", "/settings", "user"),
]

# Portals where the patient chat assistant is never offered
STAFF_ROUTE_PREFIXES = (ADMIN_HOME, DOCTOR_HOME)


def path_matches(pathname: str, path: str) -> bool:
    """True for ``path`` itself and anything below it (``/book/x``, not ``/book123``)."""
    return pathname == path or pathname.startswith(path + "/")


def home_path(profile: Optional[AuthContext]) -> str:
    role = profile.role if profile else None
    if role == UserRole.ADMIN:
        return ADMIN_HOME
    if role == UserRole.DOCTOR:
        return DOCTOR_HOME
    return PATIENT_HOME


def show_chat_affordance(profile: Optional[AuthContext], pathname: str) -> bool:
    if any(path_matches(pathname, prefix) for prefix in STAFF_ROUTE_PREFIXES):
        return False
    return profile is None or profile.role == UserRole.PATIENT


def compute_visible_nav(profile: Optional[AuthContext], pathname: str) -> VisibleNav:
    pathname = pathname or "/"

    items = []
    for label, path, icon in BASE_NAV_ITEMS:
        if path == PATIENT_HOME:
            path = home_path(profile)
        items.append(NavItem(
            label=label,
            path=path,
            icon=icon,
            active=path_matches(pathname, path)
        ))

    return VisibleNav(
        nav_items=items,
        show_chat_affordance=show_chat_affordance(profile, pathname)
    )
