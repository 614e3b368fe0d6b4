"""
Admin Router - navigation, page access and admin account management.

- GET   /admin/navigation        - sidebar entries for the caller's role
- GET   /admin/access            - page gate decision for a path
- GET   /admin/roles/assignable  - roles the caller may grant
- GET   /admin/users             - list admin accounts (users page)
- POST  /admin/users             - create an admin account and email an invite (users page)
- PATCH /admin/users/{user_id}   - update name, role or active flag (users page)
- DELETE /admin/users/{user_id}  - delete an admin account (users page)
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..auth.permissions import (
    ROLE_DESCRIPTIONS,
    ROLE_LABELS,
    AdminPage,
    get_assignable_roles,
    get_required_permission,
)
from ..auth.navigation import filter_navigation
from ..auth.session_gate import AuthState, decide_page_access
from ..dependencies import require_admin_page, require_authenticated
from ..routers.auth import nav_item_response
from ..schemas.admin_user import (
    AdminUserCreate,
    AdminUserCreated,
    AdminUserProfile,
    AdminUserUpdate,
)
from ..schemas.auth import AssignableRoleResponse, NavItemResponse, PageAccessResponse
from ..services.admin.user_service import AdminUserService
from .dependencies import get_admin_user_service

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


@router.get("/navigation", response_model=list[NavItemResponse])
async def navigation(
    state: AuthState = Depends(require_authenticated),
) -> list[NavItemResponse]:
    return [nav_item_response(item) for item in filter_navigation(state.role)]


@router.get("/access", response_model=PageAccessResponse)
async def page_access(
    path: str = Query(..., min_length=1, max_length=2048),
    state: AuthState = Depends(require_authenticated),
) -> PageAccessResponse:
    page = get_required_permission(path)
    access = decide_page_access(state, path)
    return PageAccessResponse(
        path=path,
        page=page.value if page else None,
        access=access.value,
    )


@router.get("/roles/assignable", response_model=list[AssignableRoleResponse])
async def assignable_roles(
    state: AuthState = Depends(require_authenticated),
) -> list[AssignableRoleResponse]:
    return [
        AssignableRoleResponse(
            role=role.value,
            label=ROLE_LABELS[role],
            description=ROLE_DESCRIPTIONS[role],
        )
        for role in get_assignable_roles(state.role)
    ]


@router.get("/users", response_model=list[AdminUserProfile])
async def list_users(
    state: AuthState = Depends(require_admin_page(AdminPage.USERS)),
    service: AdminUserService = Depends(get_admin_user_service),
) -> list[AdminUserProfile]:
    users = await service.list_users(state.profile)
    return [AdminUserProfile.model_validate(user) for user in users]


@router.post(
    "/users", response_model=AdminUserCreated, status_code=status.HTTP_201_CREATED
)
async def create_user(
    payload: AdminUserCreate,
    state: AuthState = Depends(require_admin_page(AdminPage.USERS)),
    service: AdminUserService = Depends(get_admin_user_service),
) -> AdminUserCreated:
    created = await service.create_user(
        state.profile, payload.email, role=payload.role, name=payload.name
    )
    return AdminUserCreated(
        user=AdminUserProfile.model_validate(created.user),
        invite=created.invite,
        warning=created.warning,
    )


@router.patch("/users/{user_id}", response_model=AdminUserProfile)
async def update_user(
    user_id: UUID,
    payload: AdminUserUpdate,
    state: AuthState = Depends(require_admin_page(AdminPage.USERS)),
    service: AdminUserService = Depends(get_admin_user_service),
) -> AdminUserProfile:
    updated = await service.update_user(
        state.profile,
        user_id,
        name=payload.name,
        role=payload.role,
        is_active=payload.is_active,
    )
    return AdminUserProfile.model_validate(updated)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    state: AuthState = Depends(require_admin_page(AdminPage.USERS)),
    service: AdminUserService = Depends(get_admin_user_service),
) -> Response:
    await service.delete_user(state.profile, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
