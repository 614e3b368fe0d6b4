"""Supabase-backed auth collaborator.

SupabaseAuthClient wraps supabase-py's async client for the auth calls this
service makes: password sign-in, sign-out of a bearer session, and the
invite (or recovery) email sent when an admin account is created.
SupabaseAuthCollaborator combines it with the admin profile repository and
an in-process listener list to satisfy the AuthCollaborator port.

Sessions live in memory only. There is no token refresh loop: an expired
session is treated as signed out.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from fastapi import status
from supabase import AsyncClient, AsyncClientOptions, AuthApiError, acreate_client
from supabase import AuthError as SupabaseError

from ..domain.ports.admin_user import AdminUserRepositoryFactory
from ..domain.ports.auth import AuthChangeCallback, Unsubscribe
from ..errors import AuthError, UpstreamError
from ..schemas.admin_user import AdminUserProfile
from ..schemas.auth import AuthSession

logger = logging.getLogger("admin_gate.supabase")

T = TypeVar("T")
ClientFactory = Callable[[str, str], Awaitable[AsyncClient]]

INVALID_CREDENTIAL_STATUSES = {status.HTTP_400_BAD_REQUEST, status.HTTP_401_UNAUTHORIZED}
SESSION_GONE_STATUSES = {
    status.HTTP_401_UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN,
    status.HTTP_404_NOT_FOUND,
}


async def create_supabase_client(url: str, key: str) -> AsyncClient:
    # Server-side client: no background refresh, no session storage between calls
    return await acreate_client(
        url,
        key,
        options=AsyncClientOptions(auto_refresh_token=False, persist_session=False),
    )


class SupabaseAuthClient:
    def __init__(
        self,
        *,
        url: str,
        anon_key: str,
        service_role_key: str | None = None,
        timeout_seconds: float = 5.0,
        invite_redirect_to: str | None = None,
        client_factory: ClientFactory = create_supabase_client,
    ) -> None:
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._timeout_seconds = timeout_seconds
        self._invite_redirect_to = invite_redirect_to
        self._client_factory = client_factory
        self._clients: dict[str, AsyncClient] = {}
        self._clients_lock = asyncio.Lock()

    async def _client(self, key: str) -> AsyncClient:
        async with self._clients_lock:
            if key not in self._clients:
                self._clients[key] = await self._client_factory(self._url, key)
            return self._clients[key]

    async def _call(self, awaitable: Awaitable[T], action: str) -> T:
        """Await a supabase call with the configured timeout.

        API errors are re-raised for the caller to map; transport failures
        and timeouts become UpstreamError.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout_seconds)
        except AuthApiError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error("%s timed out after %.1fs", action, self._timeout_seconds)
            raise UpstreamError() from exc
        except (SupabaseError, httpx.HTTPError) as exc:
            logger.error("%s request failed: %s", action, exc)
            raise UpstreamError() from exc

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        client = await self._client(self._anon_key)
        try:
            response = await self._call(
                client.auth.sign_in_with_password(
                    {"email": email.strip().lower(), "password": password}
                ),
                "Sign-in",
            )
        except AuthApiError as exc:
            if exc.status in INVALID_CREDENTIAL_STATUSES:
                raise AuthError("Invalid email or password") from exc
            logger.error("Sign-in rejected upstream with status %s", exc.status)
            raise UpstreamError() from exc

        return _session_from_auth_response(response)

    async def sign_out(self, access_token: str) -> None:
        client = await self._client(self._anon_key)
        try:
            await self._call(client.auth.admin.sign_out(access_token), "Sign-out")
        except AuthApiError as exc:
            if exc.status in SESSION_GONE_STATUSES:
                # Session already gone upstream
                return
            logger.error("Sign-out rejected upstream with status %s", exc.status)
            raise UpstreamError() from exc

    async def invite_user(self, email: str) -> str:
        """Email a new admin a sign-up link.

        Returns "invite", or "recovery" when the address already has an
        identity account and gets a password reset link instead.
        """
        if not self._service_role_key:
            raise UpstreamError("Invite emails are not configured")
        client = await self._client(self._service_role_key)
        options: dict[str, Any] = {}
        if self._invite_redirect_to:
            options["redirect_to"] = self._invite_redirect_to

        try:
            await self._call(client.auth.admin.invite_user_by_email(email, options), "Invite")
            return "invite"
        except AuthApiError as exc:
            if exc.status != status.HTTP_422_UNPROCESSABLE_ENTITY:
                logger.error("Invite rejected upstream with status %s", exc.status)
                raise UpstreamError() from exc

        try:
            await self._call(client.auth.reset_password_for_email(email, options), "Recovery email")
        except AuthApiError as exc:
            logger.error("Recovery email rejected upstream with status %s", exc.status)
            raise UpstreamError() from exc
        return "recovery"


def _session_from_auth_response(response: Any) -> AuthSession:
    session = getattr(response, "session", None)
    user = getattr(session, "user", None) or getattr(response, "user", None)
    if session is None or user is None or not getattr(user, "email", None):
        raise UpstreamError("Malformed sign-in response")

    expires_at: datetime | None = None
    if session.expires_at:
        expires_at = datetime.fromtimestamp(session.expires_at, tz=timezone.utc)
    elif session.expires_in:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=session.expires_in)

    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        token_type=session.token_type or "bearer",
        user_id=str(user.id),
        email=user.email,
        expires_at=expires_at,
    )


class SupabaseAuthCollaborator:
    def __init__(
        self,
        auth_client: SupabaseAuthClient,
        profiles: AdminUserRepositoryFactory,
        *,
        session: AuthSession | None = None,
    ) -> None:
        self._auth_client = auth_client
        self._profiles = profiles
        self._session = session
        self._listeners: list[AuthChangeCallback] = []

    async def get_current_session(self) -> AuthSession | None:
        if self._session is not None and self._session.is_expired():
            logger.info("Session for user %s has expired", self._session.user_id)
            self._session = None
            self._notify(None)
        return self._session

    def on_auth_change(self, callback: AuthChangeCallback) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def get_profile_by_email(self, email: str) -> AdminUserProfile | None:
        async with self._profiles() as repo:
            admin_user = await repo.get_by_email(email)
        if admin_user is None:
            return None
        return AdminUserProfile.model_validate(admin_user)

    async def stamp_last_login(self, email: str) -> None:
        async with self._profiles() as repo:
            try:
                await repo.stamp_last_login(email)
                await repo.commit()
            except Exception:
                await repo.rollback()
                raise

    async def sign_in(self, email: str, password: str) -> AuthSession:
        session = await self._auth_client.sign_in_with_password(email, password)
        self._session = session
        logger.info("User %s signed in", session.user_id)
        self._notify(session)
        return session

    async def sign_out(self) -> None:
        session, self._session = self._session, None
        try:
            if session is not None:
                await self._auth_client.sign_out(session.access_token)
                logger.info("User %s signed out", session.user_id)
        finally:
            self._notify(None)

    def _notify(self, session: AuthSession | None) -> None:
        for listener in list(self._listeners):
            listener(session)
