from fastapi import Depends

from ..dependencies import get_admin_inviter, get_admin_user_port
from ..domain.ports.admin_user import AdminInviter, AdminUserRepository
from ..services.admin.user_service import AdminUserService


def get_admin_user_service(
    repository: AdminUserRepository = Depends(get_admin_user_port),
    inviter: AdminInviter = Depends(get_admin_inviter),
) -> AdminUserService:
    return AdminUserService(repository, inviter=inviter)
