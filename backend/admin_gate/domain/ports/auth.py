from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol


class SessionData(Protocol):
    access_token: str
    user_id: str
    email: str
    expires_at: datetime | None


class AdminProfileData(Protocol):
    id: object
    email: str
    name: str | None
    role: str
    is_active: bool
    last_login: datetime | None


AuthChangeCallback = Callable[["SessionData | None"], None]
Unsubscribe = Callable[[], None]


class AuthCollaborator(Protocol):
    """Identity provider plus admin profile store, as seen by the session gate."""

    async def get_current_session(self) -> SessionData | None:
        ...

    def on_auth_change(self, callback: AuthChangeCallback) -> Unsubscribe:
        ...

    async def get_profile_by_email(self, email: str) -> AdminProfileData | None:
        ...

    async def stamp_last_login(self, email: str) -> None:
        ...

    async def sign_in(self, email: str, password: str) -> SessionData:
        ...

    async def sign_out(self) -> None:
        ...
