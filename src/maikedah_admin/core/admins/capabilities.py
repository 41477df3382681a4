"""Role to capability resolution.

Every authorization decision in the core reads a Capabilities value rather
than comparing role strings.
"""

from __future__ import annotations

from dataclasses import dataclass

from maikedah_admin.core.admins.types import AdminIdentity, AdminRole


@dataclass(frozen=True)
class Capabilities:
    """What an admin is allowed to do.

    Attributes:
        can_approve_admins: Approve or reject pending registration requests.
        can_manage_org_admins: Delete organization admins (with their staff).
        can_manage_own_staff: List and delete staff the admin invited.
        can_manage_any_staff: Delete any staff member regardless of parent.
        can_invite_staff: Invite staff into the admin's own organization.
        can_view_all_activity: Read every entry of the activity log.
        can_manage_content: Use the places, districts and trips screens.
    """

    can_approve_admins: bool = False
    can_manage_org_admins: bool = False
    can_manage_own_staff: bool = False
    can_manage_any_staff: bool = False
    can_invite_staff: bool = False
    can_view_all_activity: bool = False
    can_manage_content: bool = False


NO_CAPABILITIES = Capabilities()

_ROLE_CAPABILITIES: dict[AdminRole, Capabilities] = {
    AdminRole.SUPER_ADMIN: Capabilities(
        can_approve_admins=True,
        can_manage_org_admins=True,
        can_manage_any_staff=True,
        can_view_all_activity=True,
    ),
    AdminRole.ORG_ADMIN: Capabilities(
        can_manage_own_staff=True,
        can_invite_staff=True,
    ),
    AdminRole.ORG_STAFF: Capabilities(
        can_manage_content=True,
    ),
    AdminRole.PENDING: NO_CAPABILITIES,
}


def resolve_capabilities(admin: AdminIdentity | None) -> Capabilities:
    """Resolve the capability set of an admin.

    Unapproved and missing identities get no capabilities at all.

    Args:
        admin: The acting admin, or None when nobody is signed in.

    Returns:
        The capabilities granted to the admin's role.
    """
    if admin is None or not admin.is_active_admin:
        return NO_CAPABILITIES
    return _ROLE_CAPABILITIES[admin.role]
