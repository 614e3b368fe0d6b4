from __future__ import annotations

from typing import AsyncContextManager, Callable
from datetime import datetime
import uuid
from typing import Protocol


class AdminUserData(Protocol):
    id: uuid.UUID
    email: str
    name: str | None
    role: str
    is_active: bool
    last_login: datetime | None
    created_by: uuid.UUID | None


class AdminUserRepository(Protocol):
    async def get_by_email(self, email: str) -> AdminUserData | None:
        ...

    async def get_by_id(self, user_id: uuid.UUID) -> AdminUserData | None:
        ...

    async def list_all(self, include_inactive: bool = True) -> list[AdminUserData]:
        ...

    async def create(
        self,
        email: str,
        role: str,
        name: str | None = None,
        created_by: uuid.UUID | None = None,
    ) -> AdminUserData:
        ...

    async def update(self, admin_user: AdminUserData) -> AdminUserData:
        ...

    async def delete(self, admin_user: AdminUserData) -> None:
        ...

    async def stamp_last_login(self, email: str, when: datetime | None = None) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


class AdminInviter(Protocol):
    async def invite_user(self, email: str) -> str:
        ...


AdminUserRepositoryFactory = Callable[[], AsyncContextManager[AdminUserRepository]]
