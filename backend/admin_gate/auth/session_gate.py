"""
Session Gate - turns an identity session into an admin rendering decision.

State machine:
    LOADING --(resolution pass)--> UNAUTHENTICATED | AUTHENTICATED | ERROR

- The first pass runs on mount, from the collaborator's current session.
- Every auth-change notification (sign-in, sign-out, token refresh) runs a
  new full pass with the session it carries. A pass never re-enters LOADING;
  the previous state stays visible until the new one is ready.
- Passes are tagged with a generation number. A finished pass is applied only
  if the gate is still mounted and no later pass has started
  (last-started-wins).
- Each lookup is bounded by a timeout and ends in ERROR on expiry.

Page restrictions are not auth failures: a role that cannot open a page gets
PageAccess.RESTRICTED while the AuthState stays AUTHENTICATED.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Final, Iterable

from ..domain.ports.auth import AdminProfileData, AuthCollaborator, SessionData, Unsubscribe
from .navigation import ADMIN_NAVIGATION, NavItem, filter_navigation
from .permissions import ADMIN_ROOT, AdminPage, Role, can_access, coerce_role, get_required_permission

logger = logging.getLogger("admin_gate.auth")

DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0


class AuthStatus(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class AuthErrorReason(str, Enum):
    NOT_REGISTERED = "not_registered"
    DEACTIVATED = "deactivated"
    COLLABORATOR_FAILURE = "collaborator_failure"
    TIMEOUT = "timeout"


class PageAccess(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    ERROR = "error"
    RESTRICTED = "restricted"
    GRANTED = "granted"


ERROR_MESSAGES: Final[dict[AuthErrorReason, str]] = {
    AuthErrorReason.NOT_REGISTERED: (
        "This account is not registered for admin access. "
        "Please contact an administrator."
    ),
    AuthErrorReason.DEACTIVATED: (
        "Your account has been deactivated. Please contact an administrator."
    ),
    AuthErrorReason.COLLABORATOR_FAILURE: (
        "An error occurred while checking authentication."
    ),
    AuthErrorReason.TIMEOUT: (
        "Checking authentication took too long. Please sign out and try again."
    ),
}


@dataclass(frozen=True)
class AuthState:
    status: AuthStatus
    session: SessionData | None = None
    profile: AdminProfileData | None = None
    reason: AuthErrorReason | None = None
    message: str | None = None

    @classmethod
    def failed(
        cls,
        reason: AuthErrorReason,
        *,
        session: SessionData | None = None,
        profile: AdminProfileData | None = None,
    ) -> "AuthState":
        return cls(
            status=AuthStatus.ERROR,
            session=session,
            profile=profile,
            reason=reason,
            message=ERROR_MESSAGES[reason],
        )

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED

    @property
    def role(self) -> Role | None:
        """Resolved role; None unless authenticated with a known role."""
        if not self.is_authenticated or self.profile is None:
            return None
        return coerce_role(self.profile.role)


LOADING_STATE: Final[AuthState] = AuthState(status=AuthStatus.LOADING)
UNAUTHENTICATED_STATE: Final[AuthState] = AuthState(status=AuthStatus.UNAUTHENTICATED)


# ============================================================================
# SINGLE RESOLUTION PASS
# ============================================================================

async def lookup_auth_state(
    collaborator: AuthCollaborator, session: SessionData | None
) -> AuthState:
    """Session + profile -> AuthState, with no side effects.

    Collaborator exceptions propagate to the caller.
    """
    if session is None:
        return UNAUTHENTICATED_STATE

    profile = await collaborator.get_profile_by_email(session.email)
    if profile is None:
        logger.warning("No admin profile for signed-in user %s", session.user_id)
        return AuthState.failed(AuthErrorReason.NOT_REGISTERED, session=session)

    if not profile.is_active:
        logger.warning("Deactivated admin profile for user %s", session.user_id)
        return AuthState.failed(
            AuthErrorReason.DEACTIVATED, session=session, profile=profile
        )

    return AuthState(status=AuthStatus.AUTHENTICATED, session=session, profile=profile)


async def stamp_last_login_best_effort(
    collaborator: AuthCollaborator,
    email: str,
    *,
    timeout_seconds: float | None = None,
) -> bool:
    """Stamp last_login; failures are logged and never raised."""
    try:
        await asyncio.wait_for(collaborator.stamp_last_login(email), timeout=timeout_seconds)
    except Exception:
        logger.warning("Failed to stamp last_login", exc_info=True)
        return False
    return True


async def resolve_auth_state(
    collaborator: AuthCollaborator, session: SessionData | None
) -> AuthState:
    state = await lookup_auth_state(collaborator, session)
    if state.is_authenticated and state.session is not None:
        await stamp_last_login_best_effort(collaborator, state.session.email)
    return state


def decide_page_access(
    state: AuthState,
    path: str | None = None,
    required_page: AdminPage | str | None = None,
) -> PageAccess:
    """
    Gate decision for a screen.

    The page to check is ``required_page`` when given, else the page the
    path belongs to. A path with no page has no restriction.
    """
    if state.status is AuthStatus.LOADING:
        return PageAccess.LOADING
    if state.status is AuthStatus.UNAUTHENTICATED:
        return PageAccess.UNAUTHENTICATED
    if state.status is AuthStatus.ERROR:
        return PageAccess.ERROR

    page = required_page if required_page is not None else get_required_permission(path)
    if page is None:
        return PageAccess.GRANTED
    if can_access(state.role, page):
        return PageAccess.GRANTED
    return PageAccess.RESTRICTED


# ============================================================================
# STATEFUL GATE
# ============================================================================

SessionSource = Callable[[], Awaitable["SessionData | None"]]
StateListener = Callable[[AuthState], None]


class SessionGate:
    """Auth state holder for one mounted admin surface."""

    def __init__(
        self,
        collaborator: AuthCollaborator,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        navigation: Iterable[NavItem] = ADMIN_NAVIGATION,
        entry_path: str = ADMIN_ROOT,
        on_state_change: StateListener | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be greater than 0")
        self._collaborator = collaborator
        self._timeout_seconds = timeout_seconds
        self._navigation = tuple(navigation)
        self._entry_path = entry_path
        self._on_state_change = on_state_change

        self._state: AuthState = LOADING_STATE
        self._generation = 0
        self._mounted = False
        self._unsubscribe: Unsubscribe | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task[AuthState]] = set()

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    async def mount(self) -> AuthState:
        """Subscribe to auth changes and run the initial resolution.

        Returns the gate's state after the initial pass. If a notification
        overtook the initial pass, that is whatever the newer pass has
        applied so far.
        """
        if self._mounted:
            raise RuntimeError("SessionGate is already mounted")
        self._mounted = True
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self._collaborator.on_auth_change(self._handle_auth_change)
        generation = self._next_generation()
        return await self._run_pass(generation, self._collaborator.get_current_session)

    def unmount(self) -> None:
        """Stop listening; late results from in-flight passes are dropped."""
        if not self._mounted:
            return
        self._mounted = False
        self._generation += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._pending):
            task.cancel()

    async def refresh(self) -> AuthState:
        """Re-run the full resolution from the collaborator's current session."""
        self._ensure_mounted()
        generation = self._next_generation()
        return await self._run_pass(generation, self._collaborator.get_current_session)

    async def wait_until_settled(self) -> None:
        """Wait for every notification-triggered pass scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def sign_out(self) -> str:
        """End the session and return the path to navigate to.

        The collaborator's next auth-change notification moves the gate to
        UNAUTHENTICATED.
        """
        await self._collaborator.sign_out()
        return self._entry_path

    def check_page(
        self, path: str | None = None, required_page: AdminPage | str | None = None
    ) -> PageAccess:
        return decide_page_access(self._state, path, required_page)

    def navigation(self) -> list[NavItem]:
        if not self._state.is_authenticated:
            return []
        return filter_navigation(self._state.role, self._navigation)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _ensure_mounted(self) -> None:
        if not self._mounted:
            raise RuntimeError("SessionGate is not mounted")

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _handle_auth_change(self, session: SessionData | None) -> None:
        if not self._mounted or self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._schedule_pass(session)
        else:
            self._loop.call_soon_threadsafe(self._schedule_pass, session)

    def _schedule_pass(self, session: SessionData | None) -> None:
        if not self._mounted or self._loop is None:
            return

        async def carried_session() -> SessionData | None:
            return session

        generation = self._next_generation()
        task = self._loop.create_task(self._run_pass(generation, carried_session))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_pass(self, generation: int, source: SessionSource) -> AuthState:
        try:
            state = await asyncio.wait_for(
                self._lookup(source), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                "Auth resolution timed out after %.1fs (generation %s)",
                self._timeout_seconds,
                generation,
            )
            state = AuthState.failed(AuthErrorReason.TIMEOUT)
        except Exception:
            logger.exception("Auth resolution failed (generation %s)", generation)
            state = AuthState.failed(AuthErrorReason.COLLABORATOR_FAILURE)

        if state.is_authenticated and state.session is not None and self._is_current(generation):
            await stamp_last_login_best_effort(
                self._collaborator,
                state.session.email,
                timeout_seconds=self._timeout_seconds,
            )

        return self._apply(generation, state)

    async def _lookup(self, source: SessionSource) -> AuthState:
        session = await source()
        return await lookup_auth_state(self._collaborator, session)

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    def _apply(self, generation: int, state: AuthState) -> AuthState:
        if not self._is_current(generation):
            logger.debug(
                "Discarding stale auth resolution (generation %s, current %s)",
                generation,
                self._generation,
            )
            return self._state

        changed = state != self._state
        self._state = state
        if changed and self._on_state_change is not None:
            self._on_state_change(state)
        return state


async def resolve_once(
    collaborator: AuthCollaborator,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> AuthState:
    """Mount a gate, let it settle, and unmount it.

    Settling covers passes triggered while the initial one ran, such as the
    collaborator dropping an expired session.
    """
    gate = SessionGate(collaborator, timeout_seconds=timeout_seconds)
    try:
        await gate.mount()
        await gate.wait_until_settled()
        return gate.state
    finally:
        gate.unmount()
