import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ...auth.permissions import (
    Role,
    can_manage_users,
    coerce_role,
    get_assignable_roles,
    role_rank,
)
from ...domain.ports.admin_user import AdminInviter, AdminUserData, AdminUserRepository
from ...domain.ports.auth import AdminProfileData
from ...errors import ConflictError, NotFoundError, PermissionError, ValidationError

logger = logging.getLogger("admin_gate.users")

INVITE_FAILED_WARNING = "User created, but the invite email could not be sent"


@dataclass(frozen=True)
class CreatedAdminUser:
    user: AdminUserData
    invite: str | None = None
    warning: str | None = None


class AdminUserService:
    """Admin account management with role-escalation guards.

    Only super admins manage accounts. Roles can only be granted, and
    accounts only modified or deleted, strictly below the acting user's
    own rank.
    """

    def __init__(self, repository: AdminUserRepository, inviter: AdminInviter | None = None):
        self.repository = repository
        self.inviter = inviter

    def _require_manager(self, actor: AdminProfileData) -> Role:
        role = coerce_role(actor.role)
        if not actor.is_active or not can_manage_users(role):
            raise PermissionError("Only super admins can manage users")
        assert role is not None
        return role

    def _require_assignable(self, actor_role: Role, role: Role) -> None:
        if role not in get_assignable_roles(actor_role):
            raise PermissionError(f"Role '{role.value}' cannot be assigned by '{actor_role.value}'")

    def _require_outranks(self, actor_role: Role, target: AdminUserData, action: str) -> None:
        if role_rank(target.role) >= role_rank(actor_role):
            raise PermissionError(f"Cannot {action} a user with an equal or higher role")

    async def list_users(self, actor: AdminProfileData) -> list[AdminUserData]:
        self._require_manager(actor)
        return await self.repository.list_all()

    async def create_user(
        self,
        actor: AdminProfileData,
        email: str,
        *,
        role: Role,
        name: str | None = None,
    ) -> CreatedAdminUser:
        """Create the account, then email the invite.

        The account is committed before the invite is sent; an invite
        failure is reported as a warning on the result, never rolled back.
        """
        actor_role = self._require_manager(actor)
        self._require_assignable(actor_role, role)

        try:
            existing = await self.repository.get_by_email(email)
            if existing is not None:
                raise ConflictError("A user with this email already exists")

            created = await self.repository.create(
                email=email,
                role=role.value,
                name=name,
                created_by=actor.id if isinstance(actor.id, uuid.UUID) else None,
            )
            await self.repository.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent create for the same address
            await self.repository.rollback()
            raise ConflictError("A user with this email already exists") from exc
        except Exception:
            await self.repository.rollback()
            raise

        logger.info("Admin user %s created with role %s", created.id, role.value)
        invite, warning = await self._send_invite(created.email)
        return CreatedAdminUser(user=created, invite=invite, warning=warning)

    async def _send_invite(self, email: str) -> tuple[str | None, str | None]:
        if self.inviter is None:
            return None, None
        try:
            invite = await self.inviter.invite_user(email)
        except Exception:
            logger.warning("Invite email for %s failed", email, exc_info=True)
            return None, INVITE_FAILED_WARNING
        logger.info("Sent %s email to %s", invite, email)
        return invite, None

    async def update_user(
        self,
        actor: AdminProfileData,
        user_id: uuid.UUID,
        *,
        name: str | None = None,
        role: Role | None = None,
        is_active: bool | None = None,
    ) -> AdminUserData:
        actor_role = self._require_manager(actor)

        try:
            target = await self.repository.get_by_id(user_id)
            if target is None:
                raise NotFoundError("Admin user not found")

            if target.id == actor.id:
                if is_active is False:
                    raise ValidationError("You cannot deactivate your own account")
                if role is not None and role is not actor_role:
                    raise ValidationError("You cannot change your own role")
            else:
                self._require_outranks(actor_role, target, "modify")

            if role is not None and target.id != actor.id:
                self._require_assignable(actor_role, role)
                target.role = role.value
            if name is not None:
                target.name = name
            if is_active is not None:
                target.is_active = is_active

            updated = await self.repository.update(target)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        logger.info("Admin user %s updated", updated.id)
        return updated

    async def delete_user(self, actor: AdminProfileData, user_id: uuid.UUID) -> None:
        actor_role = self._require_manager(actor)

        try:
            target = await self.repository.get_by_id(user_id)
            if target is None:
                raise NotFoundError("Admin user not found")
            if target.id == actor.id:
                raise ValidationError("You cannot delete your own account")
            self._require_outranks(actor_role, target, "delete")

            await self.repository.delete(target)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        logger.info("Admin user %s deleted", user_id)
