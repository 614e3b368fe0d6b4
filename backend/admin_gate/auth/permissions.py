"""
Admin Permission Table - role hierarchy and page-level access decisions.

This module is the single source of truth for which admin screens each role
may open. Every function here is pure and total:
- Unknown or missing roles get no access (fail-closed)
- Unknown pages are never accessible
- No function raises on bad input

Role and page values arrive from the profile store as loose strings. They are
coerced to the closed enums below at lookup time and nowhere else.
"""
from __future__ import annotations

from enum import Enum
from typing import Final


# ============================================================================
# ROLES AND PAGES - CLOSED SETS
# ============================================================================

class Role(str, Enum):
    """Permission tier assigned to an admin user."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class AdminPage(str, Enum):
    """One logical screen of the admin interface, the unit of access control."""
    DASHBOARD = "dashboard"
    BLOG = "blog"
    SEO = "seo"
    SETTINGS = "settings"
    USERS = "users"
    MEDIA = "media"
    TRANSCRIPTS = "transcripts"
    HELP = "help"


# Higher number = more permissions. Unknown roles rank 0.
ROLE_HIERARCHY: Final[dict[Role, int]] = {
    Role.SUPER_ADMIN: 4,
    Role.ADMIN: 3,
    Role.EDITOR: 2,
    Role.VIEWER: 1,
}

ROLE_LABELS: Final[dict[Role, str]] = {
    Role.SUPER_ADMIN: "Super Admin",
    Role.ADMIN: "Admin",
    Role.EDITOR: "Editor",
    Role.VIEWER: "Viewer",
}

ROLE_DESCRIPTIONS: Final[dict[Role, str]] = {
    Role.SUPER_ADMIN: "Full access to all features including user management",
    Role.ADMIN: "Can manage content, SEO, and site settings",
    Role.EDITOR: "Can create and edit blog posts and media",
    Role.VIEWER: "Read-only access to dashboard",
}


# ============================================================================
# PERMISSION TABLE
# ============================================================================

# Canonical configuration: each role's set is a superset of every lower role's
# set. This is NOT enforced here; tests pin it for the shipped table.
ROLE_PERMISSIONS: Final[dict[Role, frozenset[AdminPage]]] = {
    Role.SUPER_ADMIN: frozenset(AdminPage),
    Role.ADMIN: frozenset({
        AdminPage.DASHBOARD,
        AdminPage.BLOG,
        AdminPage.SEO,
        AdminPage.SETTINGS,
        AdminPage.MEDIA,
        AdminPage.TRANSCRIPTS,
        AdminPage.HELP,
    }),
    Role.EDITOR: frozenset({
        AdminPage.DASHBOARD,
        AdminPage.BLOG,
        AdminPage.MEDIA,
        AdminPage.HELP,
    }),
    Role.VIEWER: frozenset({
        AdminPage.DASHBOARD,
        AdminPage.HELP,
    }),
}

ADMIN_ROOT: Final[str] = "/admin"

# URL path -> page. The admin root only ever matches exactly.
PATH_TO_PAGE: Final[dict[str, AdminPage]] = {
    ADMIN_ROOT: AdminPage.DASHBOARD,
    "/admin/blog": AdminPage.BLOG,
    "/admin/blog/new": AdminPage.BLOG,
    "/admin/seo": AdminPage.SEO,
    "/admin/settings": AdminPage.SETTINGS,
    "/admin/users": AdminPage.USERS,
    "/admin/media": AdminPage.MEDIA,
    "/admin/transcripts": AdminPage.TRANSCRIPTS,
    "/admin/help": AdminPage.HELP,
    "/admin/help/manage": AdminPage.HELP,
}

# Longest first, so the first hit is the most specific section.
_PREFIX_PATHS: Final[tuple[str, ...]] = tuple(
    sorted((path for path in PATH_TO_PAGE if path != ADMIN_ROOT), key=len, reverse=True)
)


# ============================================================================
# COERCION
# ============================================================================

def coerce_role(value: object) -> Role | None:
    """Return the Role for ``value``, or None if it is not a known role."""
    if value is None:
        return None
    try:
        return Role(value)
    except (ValueError, TypeError):
        return None


def coerce_page(value: object) -> AdminPage | None:
    """Return the AdminPage for ``value``, or None if it is not a known page."""
    if value is None:
        return None
    try:
        return AdminPage(value)
    except (ValueError, TypeError):
        return None


def role_rank(role: object) -> int:
    resolved = coerce_role(role)
    if resolved is None:
        return 0
    return ROLE_HIERARCHY[resolved]


# ============================================================================
# DECISIONS
# ============================================================================

def can_access(role: object, page: object) -> bool:
    """
    Check whether a role may open an admin page.

    Args:
        role: Role member or raw role string (None allowed)
        page: AdminPage member or raw page string

    Returns:
        bool: True only if the page is in the role's permission set
    """
    resolved_page = coerce_page(page)
    if resolved_page is None:
        return False
    return resolved_page in get_accessible_pages(role)


def has_equal_or_higher_role(user_role: object, required_role: object) -> bool:
    """
    Compare role ranks.

    An unknown ``user_role`` ranks 0 and never satisfies a real role.
    An unknown ``required_role`` is never satisfied.
    """
    required = coerce_role(required_role)
    if required is None:
        return False
    return role_rank(user_role) >= ROLE_HIERARCHY[required]


def get_accessible_pages(role: object) -> frozenset[AdminPage]:
    resolved = coerce_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(resolved, frozenset())


def get_assignable_roles(current_role: object) -> list[Role]:
    """
    Roles the current user may grant to others.

    Only roles strictly below the caller's own rank are returned, highest
    first. This is the privilege-escalation guard for role assignment.
    """
    current_rank = role_rank(current_role)
    assignable = [role for role, rank in ROLE_HIERARCHY.items() if rank < current_rank]
    return sorted(assignable, key=lambda role: ROLE_HIERARCHY[role], reverse=True)


def can_manage_users(role: object) -> bool:
    return coerce_role(role) is Role.SUPER_ADMIN


def can_modify_settings(role: object) -> bool:
    return coerce_role(role) in {Role.SUPER_ADMIN, Role.ADMIN}


def can_edit_content(role: object) -> bool:
    return coerce_role(role) in {Role.SUPER_ADMIN, Role.ADMIN, Role.EDITOR}


def _normalize_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def get_required_permission(path: object) -> AdminPage | None:
    """
    Resolve a URL path to the admin page it belongs to.

    Resolution order:
    1. Exact match against PATH_TO_PAGE
    2. Longest known section path that ``path`` lives under
       (e.g. /admin/blog/edit/123 -> blog)

    Returns:
        AdminPage, or None when no page restriction applies to the path
    """
    if not isinstance(path, str) or not path:
        return None

    normalized = _normalize_path(path)
    page = PATH_TO_PAGE.get(normalized)
    if page is not None:
        return page

    for known_path in _PREFIX_PATHS:
        if normalized.startswith(known_path + "/"):
            return PATH_TO_PAGE[known_path]

    return None


# ============================================================================
# IMPORT-TIME VALIDATION
# ============================================================================

def _validate_table() -> None:
    """Validate the permission table at module import time."""
    errors = []

    for role in Role:
        if role not in ROLE_HIERARCHY:
            errors.append(f"Role '{role.value}' has no rank")
        if role not in ROLE_PERMISSIONS:
            errors.append(f"Role '{role.value}' has no permission set")
        if role not in ROLE_LABELS:
            errors.append(f"Role '{role.value}' has no label")

    for role, pages in ROLE_PERMISSIONS.items():
        if not isinstance(role, Role):
            errors.append(f"Invalid role in permission table: {role!r}")
            continue
        for page in pages:
            if not isinstance(page, AdminPage):
                errors.append(f"Role '{role.value}' has invalid page: {page!r}")

    ranks = list(ROLE_HIERARCHY.values())
    if len(set(ranks)) != len(ranks):
        errors.append("Role ranks must be unique")

    for path, page in PATH_TO_PAGE.items():
        if not path.startswith(ADMIN_ROOT):
            errors.append(f"Path '{path}' is outside {ADMIN_ROOT}")
        if not isinstance(page, AdminPage):
            errors.append(f"Path '{path}' maps to invalid page: {page!r}")

    if errors:
        raise RuntimeError(
            "Admin permission table validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


_validate_table()
