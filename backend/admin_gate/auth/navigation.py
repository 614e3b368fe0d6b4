"""Admin sidebar navigation, filtered per role."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Iterable

from .permissions import AdminPage, can_access


@dataclass(frozen=True)
class NavItem:
    path: str
    label: str
    icon: str
    page: AdminPage


ADMIN_NAVIGATION: Final[tuple[NavItem, ...]] = (
    NavItem(path="/admin", label="Dashboard", icon="dashboard", page=AdminPage.DASHBOARD),
    NavItem(path="/admin/blog", label="Blog Posts", icon="edit", page=AdminPage.BLOG),
    NavItem(path="/admin/seo", label="SEO Settings", icon="search", page=AdminPage.SEO),
    NavItem(path="/admin/media", label="Media Library", icon="image", page=AdminPage.MEDIA),
    NavItem(path="/admin/transcripts", label="Transcripts", icon="chat", page=AdminPage.TRANSCRIPTS),
    NavItem(path="/admin/help", label="Help Center", icon="help", page=AdminPage.HELP),
    NavItem(path="/admin/users", label="Users", icon="users", page=AdminPage.USERS),
    NavItem(path="/admin/settings", label="Settings", icon="settings", page=AdminPage.SETTINGS),
)


def filter_navigation(
    role: object, items: Iterable[NavItem] = ADMIN_NAVIGATION
) -> list[NavItem]:
    """Keep the entries the role can open, in declared order."""
    return [item for item in items if can_access(role, item.page)]
