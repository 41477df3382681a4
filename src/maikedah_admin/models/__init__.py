"""SQLAlchemy models for the admin database."""

from maikedah_admin.models.activity_log import AdminActivityLog
from maikedah_admin.models.admin_user import AdminUser
from maikedah_admin.models.base import BaseModel
from maikedah_admin.models.credential import AdminCredential, AdminPasswordReset, AdminSession

__all__ = [
    "AdminActivityLog",
    "AdminCredential",
    "AdminPasswordReset",
    "AdminSession",
    "AdminUser",
    "BaseModel",
]
