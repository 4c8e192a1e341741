import pytest

from app.core.security import AuthContext, UserRole
from app.services.navigation import compute_visible_nav, home_path, path_matches, show_chat_affordance


def profile(role):
    return AuthContext(user_id=1, role=role)


def active_labels(nav):
    return [item.label for item in nav.nav_items if item.active]


class TestActiveItem:

    @pytest.mark.parametrize("pathname", ["/appointments", "/appointments/123"])
    def test_appointments_prefix_is_active(self, pathname):
        nav = compute_visible_nav(profile(UserRole.PATIENT), pathname)
        assert active_labels(nav) == ["Appointments"]

    def test_no_match_without_separator(self):
        nav = compute_visible_nav(profile(UserRole.PATIENT), "/appointmentsX")
        assert active_labels(nav) == []
        assert not path_matches("/book123", "/book")

    def test_item_order_and_paths(self):
        nav = compute_visible_nav(profile(UserRole.PATIENT), "/")
        assert [(i.label, i.path) for i in nav.nav_items] == [
            ("Home", "/dashboard"),
            ("Appointments", "/appointments"),
            ("Book", "/book"),
            ("Doctors", "/doctors"),
            ("Profile", "/settings"),
        ]


class TestHomeRouting:

    def test_home_depends_on_role(self):
        assert home_path(profile(UserRole.ADMIN)) == "/admin"
        assert home_path(profile(UserRole.DOCTOR)) == "/doctor"
        assert home_path(profile(UserRole.PATIENT)) == "/dashboard"
        assert home_path(None) == "/dashboard"

    def test_admin_home_item_is_active_in_portal(self):
        nav = compute_visible_nav(profile(UserRole.ADMIN), "/admin/users")
        assert nav.nav_items[0].path == "/admin"
        assert active_labels(nav) == ["Home"]


class TestChatAffordance:

    @pytest.mark.parametrize("pathname", ["/admin", "/admin/reports", "/doctor", "/doctor/schedule"])
    def test_hidden_in_staff_portals(self, pathname):
        assert show_chat_affordance(profile(UserRole.PATIENT), pathname) is False

    def test_shown_for_patients_and_anonymous(self):
        assert show_chat_affordance(profile(UserRole.PATIENT), "/dashboard") is True
        assert show_chat_affordance(None, "/") is True

    def test_hidden_for_staff_roles(self):
        assert show_chat_affordance(profile(UserRole.DOCTOR), "/dashboard") is False
        assert show_chat_affordance(profile(UserRole.ADMIN), "/appointments") is False

    def test_doctors_directory_is_not_the_doctor_portal(self):
        assert show_chat_affordance(profile(UserRole.PATIENT), "/doctors") is True
