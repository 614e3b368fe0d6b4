from datetime import datetime, timezone
from pydantic import BaseModel, Field

from .admin_user import AdminUserProfile


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    user_id: str
    email: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return self.expires_at <= current


class SignInRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class NavItemResponse(BaseModel):
    path: str
    label: str
    icon: str
    page: str


class AuthStateResponse(BaseModel):
    status: str
    reason: str | None = None
    message: str | None = None
    profile: AdminUserProfile | None = None
    navigation: list[NavItemResponse] = Field(default_factory=list)


class SignInResponse(BaseModel):
    session: AuthSession
    state: AuthStateResponse


class SignOutResponse(BaseModel):
    redirect_to: str


class PageAccessResponse(BaseModel):
    path: str
    page: str | None
    access: str


class AssignableRoleResponse(BaseModel):
    role: str
    label: str
    description: str
