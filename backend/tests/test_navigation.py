import pytest

from admin_gate.auth.navigation import ADMIN_NAVIGATION, NavItem, filter_navigation
from admin_gate.auth.permissions import AdminPage, Role, get_required_permission


def _pages(items: list[NavItem]) -> list[AdminPage]:
    return [item.page for item in items]


def test_editor_navigation_keeps_declared_order() -> None:
    assert _pages(filter_navigation(Role.EDITOR)) == [
        AdminPage.DASHBOARD,
        AdminPage.BLOG,
        AdminPage.MEDIA,
        AdminPage.HELP,
    ]


def test_super_admin_sees_everything() -> None:
    assert filter_navigation(Role.SUPER_ADMIN) == list(ADMIN_NAVIGATION)


def test_viewer_navigation() -> None:
    assert _pages(filter_navigation("viewer")) == [AdminPage.DASHBOARD, AdminPage.HELP]


@pytest.mark.parametrize("role", [None, "owner", ""])
def test_unknown_role_gets_empty_navigation(role: object) -> None:
    assert filter_navigation(role) == []


def test_custom_item_list_is_filtered() -> None:
    items = [
        NavItem(path="/admin/users", label="Users", icon="users", page=AdminPage.USERS),
        NavItem(path="/admin/help", label="Help", icon="help", page=AdminPage.HELP),
    ]
    assert filter_navigation(Role.ADMIN, items) == [items[1]]


def test_every_entry_path_resolves_to_its_page() -> None:
    for item in ADMIN_NAVIGATION:
        assert get_required_permission(item.path) is item.page
