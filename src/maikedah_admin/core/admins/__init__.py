"""Admin identity, approval and organization hierarchy domain."""

from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.approval import ApprovalWorkflow
from maikedah_admin.core.admins.capabilities import Capabilities, resolve_capabilities
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.hierarchy import OrganizationHierarchyManager
from maikedah_admin.core.admins.invitation import StaffInvitation, StaffInvitationService
from maikedah_admin.core.admins.repository import (
    ActivityLogRepository,
    AdminBackend,
    AdminDirectoryRepository,
)
from maikedah_admin.core.admins.session import AuthSessionManager, SessionState, SessionStatus
from maikedah_admin.core.admins.types import (
    ActivityAction,
    ActivityLogCreate,
    ActivityLogEntry,
    AdminIdentity,
    AdminRole,
    CascadeDeleteResult,
    OrganizationType,
    StaffCount,
)

__all__ = [
    "ActivityAction",
    "ActivityAuditLog",
    "ActivityLogCreate",
    "ActivityLogEntry",
    "ActivityLogRepository",
    "AdminBackend",
    "AdminDirectoryRepository",
    "AdminDirectoryService",
    "AdminIdentity",
    "AdminRole",
    "ApprovalWorkflow",
    "AuthSessionManager",
    "Capabilities",
    "CascadeDeleteResult",
    "OrganizationHierarchyManager",
    "OrganizationType",
    "SessionState",
    "SessionStatus",
    "StaffCount",
    "StaffInvitation",
    "StaffInvitationService",
    "resolve_capabilities",
]
