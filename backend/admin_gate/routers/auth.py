from fastapi import APIRouter, Depends

from ..auth.navigation import NavItem, filter_navigation
from ..auth.session_gate import AuthState, SessionGate
from ..config import settings
from ..dependencies import get_auth_collaborator, get_auth_state
from ..domain.ports.auth import AuthCollaborator
from ..schemas.admin_user import AdminUserProfile
from ..schemas.auth import (
    AuthStateResponse,
    NavItemResponse,
    SignInRequest,
    SignInResponse,
    SignOutResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def nav_item_response(item: NavItem) -> NavItemResponse:
    return NavItemResponse(
        path=item.path, label=item.label, icon=item.icon, page=item.page.value
    )


def auth_state_response(state: AuthState) -> AuthStateResponse:
    profile = (
        AdminUserProfile.model_validate(state.profile)
        if state.profile is not None
        else None
    )
    navigation = filter_navigation(state.role) if state.is_authenticated else []
    return AuthStateResponse(
        status=state.status.value,
        reason=state.reason.value if state.reason else None,
        message=state.message,
        profile=profile,
        navigation=[nav_item_response(item) for item in navigation],
    )


@router.post("/sign-in", response_model=SignInResponse)
async def sign_in(
    payload: SignInRequest,
    collaborator: AuthCollaborator = Depends(get_auth_collaborator),
) -> SignInResponse:
    gate = SessionGate(
        collaborator,
        timeout_seconds=settings.auth_timeout_seconds,
        entry_path=settings.admin_entry_path,
    )
    await gate.mount()
    try:
        session = await collaborator.sign_in(payload.email, payload.password)
        # The sign-in notification drives the gate's next resolution pass
        await gate.wait_until_settled()
        return SignInResponse(session=session, state=auth_state_response(gate.state))
    finally:
        gate.unmount()


@router.post("/sign-out", response_model=SignOutResponse)
async def sign_out(
    collaborator: AuthCollaborator = Depends(get_auth_collaborator),
) -> SignOutResponse:
    gate = SessionGate(
        collaborator,
        timeout_seconds=settings.auth_timeout_seconds,
        entry_path=settings.admin_entry_path,
    )
    redirect_to = await gate.sign_out()
    return SignOutResponse(redirect_to=redirect_to)


@router.get("/state", response_model=AuthStateResponse)
async def auth_state(state: AuthState = Depends(get_auth_state)) -> AuthStateResponse:
    return auth_state_response(state)
