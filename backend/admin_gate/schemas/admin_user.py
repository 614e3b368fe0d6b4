import uuid
from datetime import datetime
from pydantic import BaseModel, Field

from ..auth.permissions import Role


class AdminUserProfile(BaseModel):
    id: uuid.UUID
    email: str
    name: str | None = None
    # Stored loosely; coerced with permissions.coerce_role at lookup time
    role: str
    is_active: bool = True
    last_login: datetime | None = None
    created_by: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AdminUserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str | None = Field(None, max_length=255)
    role: Role = Role.VIEWER


class AdminUserUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    role: Role | None = None
    is_active: bool | None = None


class AdminUserCreated(BaseModel):
    user: AdminUserProfile
    # "invite" or "recovery"; None when no email went out
    invite: str | None = None
    warning: str | None = None
