import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.admin_user import AdminUser


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AdminUserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> AdminUser | None:
        result = await self.session.execute(
            select(AdminUser).where(func.lower(AdminUser.email) == _normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID) -> AdminUser | None:
        return await self.session.get(AdminUser, user_id)

    async def list_all(self, include_inactive: bool = True) -> list[AdminUser]:
        query = select(AdminUser).order_by(AdminUser.created_at.desc())
        if not include_inactive:
            query = query.where(AdminUser.is_active)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create(
        self,
        email: str,
        role: str,
        name: str | None = None,
        created_by: uuid.UUID | None = None,
    ) -> AdminUser:
        admin_user = AdminUser(
            email=_normalize_email(email),
            name=name,
            role=role,
            is_active=True,
            created_by=created_by,
        )
        self.session.add(admin_user)
        await self.session.flush()
        await self.session.refresh(admin_user)
        return admin_user

    async def update(self, admin_user: AdminUser) -> AdminUser:
        await self.session.flush()
        await self.session.refresh(admin_user)
        return admin_user

    async def delete(self, admin_user: AdminUser) -> None:
        await self.session.delete(admin_user)
        await self.session.flush()

    async def stamp_last_login(self, email: str, when: datetime | None = None) -> None:
        await self.session.execute(
            update(AdminUser)
            .where(func.lower(AdminUser.email) == _normalize_email(email))
            .values(last_login=when or datetime.now(timezone.utc))
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
