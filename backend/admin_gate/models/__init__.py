from .base import Base
from .admin_user import AdminUser

__all__ = [
    "Base",
    "AdminUser",
]
