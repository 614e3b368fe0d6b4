import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .auth.permissions import AdminPage, get_required_permission
from .auth.session_gate import (
    AuthErrorReason,
    AuthState,
    AuthStatus,
    PageAccess,
    decide_page_access,
    resolve_once,
)
from .config import settings
from .crud.admin_user import AdminUserRepository
from .database import get_session, get_sessionmaker
from .domain.ports.admin_user import (
    AdminInviter,
    AdminUserRepository as AdminUserRepositoryPort,
    AdminUserRepositoryFactory,
)
from .domain.ports.auth import AuthCollaborator
from .errors import AuthError, AuthUnavailableError, PermissionError
from .infrastructure.supabase_auth import SupabaseAuthClient, SupabaseAuthCollaborator
from .schemas.auth import AuthSession
from .security.token_inspection import (
    ExpiredTokenError,
    InvalidTokenError,
    session_from_access_token,
)

logger = logging.getLogger("admin_gate.auth")

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_admin_user_port(db: AsyncSession = Depends(get_db)) -> AdminUserRepositoryPort:
    return AdminUserRepository(db)


def get_admin_user_port_factory() -> AdminUserRepositoryFactory:
    @asynccontextmanager
    async def factory() -> AsyncIterator[AdminUserRepositoryPort]:
        async with get_sessionmaker()() as session:
            yield AdminUserRepository(session)

    return factory


@lru_cache(maxsize=1)
def get_supabase_auth_client() -> SupabaseAuthClient:
    return SupabaseAuthClient(
        url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
        timeout_seconds=settings.auth_timeout_seconds,
        invite_redirect_to=settings.invite_redirect_url,
    )


def get_admin_inviter() -> AdminInviter:
    return get_supabase_auth_client()


async def get_request_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthSession | None:
    if credentials is None:
        return None
    if credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )

    try:
        return session_from_access_token(credentials.credentials)
    except ExpiredTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired"
        ) from None
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        ) from None


def get_auth_collaborator(
    session: AuthSession | None = Depends(get_request_session),
    profiles: AdminUserRepositoryFactory = Depends(get_admin_user_port_factory),
) -> AuthCollaborator:
    return SupabaseAuthCollaborator(
        get_supabase_auth_client(), profiles, session=session
    )


async def get_auth_state(
    collaborator: AuthCollaborator = Depends(get_auth_collaborator),
) -> AuthState:
    return await resolve_once(
        collaborator, timeout_seconds=settings.auth_timeout_seconds
    )


def raise_for_auth_state(state: AuthState) -> None:
    """Map a non-authenticated AuthState to the matching AppError."""
    if state.status is AuthStatus.AUTHENTICATED:
        return
    if state.status is AuthStatus.UNAUTHENTICATED:
        raise AuthError("Not authenticated")
    if state.reason is AuthErrorReason.NOT_REGISTERED:
        raise PermissionError(state.message, code="ACCOUNT_NOT_REGISTERED")
    if state.reason is AuthErrorReason.DEACTIVATED:
        raise PermissionError(state.message, code="ACCOUNT_DEACTIVATED")
    raise AuthUnavailableError(
        state.message,
        details={"reason": state.reason.value if state.reason else state.status.value},
    )


async def require_authenticated(
    state: AuthState = Depends(get_auth_state),
) -> AuthState:
    raise_for_auth_state(state)
    return state


def require_admin_page(page: AdminPage | None = None) -> Callable:
    """
    Enforce page-level access for an admin endpoint.

    Verifies:
    - A session is present (401 if not)
    - The session has an active admin profile (403/503 if not)
    - The profile's role can open ``page`` (403 if not)

    When ``page`` is None the page is resolved from the request path.
    """
    async def dependency(
        request: Request,
        state: AuthState = Depends(require_authenticated),
    ) -> AuthState:
        required = page if page is not None else get_required_permission(request.url.path)
        access = decide_page_access(state, request.url.path, required)
        if access is not PageAccess.GRANTED:
            logger.warning(
                "Admin page denied role=%s page=%s path=%s",
                state.profile.role if state.profile else None,
                required.value if required else None,
                request.url.path,
            )
            raise PermissionError(
                "You don't have permission to access this page",
                details={"page": required.value if required else None},
            )
        return state

    return dependency
