"""Organization hierarchy: organization admins and the staff they invited."""

from __future__ import annotations

from uuid import UUID

import structlog

from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.capabilities import resolve_capabilities
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.repository import AdminBackend
from maikedah_admin.core.admins.types import ActivityAction, AdminRole, CascadeDeleteResult
from maikedah_admin.core.auth.provider import CredentialProvider
from maikedah_admin.core.exceptions import AuthorizationError, NotFoundError

logger = structlog.get_logger()


class OrganizationHierarchyManager:
    """Deletes organization admins (with their staff) and single staff members.

    Directory deletions and their audit entry commit together. Credentials of
    removed identities are revoked afterwards; a failed revocation is logged
    and never undoes the committed deletion, since a session without an
    identity record is refused at sign-in and hydration anyway.
    """

    def __init__(
        self,
        backend: AdminBackend,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        credentials: CredentialProvider | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            backend: Backend providing atomic units.
            directory: Identity directory.
            audit: Activity log.
            credentials: Provider whose credentials are revoked on deletion.
        """
        self._backend = backend
        self._directory = directory
        self._audit = audit
        self._credentials = credentials

    async def delete_organization_admin(
        self, admin_id: UUID, deleter_id: UUID
    ) -> CascadeDeleteResult:
        """Delete an organization admin together with all of its staff.

        All or nothing: either every staff member and the admin are gone, or
        nothing changed.

        Args:
            admin_id: The organization admin to delete.
            deleter_id: The acting super admin.

        Returns:
            Result carrying the number and IDs of removed staff.

        Raises:
            AuthorizationError: If the deleter is not an approved super admin.
            NotFoundError: If no organization admin has this ID.
        """
        async with self._backend.atomic() as tx:
            directory = self._directory.within(tx)
            deleter = await directory.get_by_id(deleter_id)
            if not resolve_capabilities(deleter).can_manage_org_admins:
                raise AuthorizationError("Only a super admin can delete organization admins")

            target = await directory.lock(admin_id)
            if target is None or target.role is not AdminRole.ORG_ADMIN:
                raise NotFoundError(f"Organization admin {admin_id} not found")

            staff_ids = [staff.id for staff in await directory.list_staff(admin_id)]
            await directory.delete(staff_ids)
            if await directory.delete([admin_id]) != 1:
                raise NotFoundError(f"Organization admin {admin_id} not found")

            await self._audit.within(tx).append(
                deleter_id,
                ActivityAction.DELETE_ORG_ADMIN,
                target_user_id=admin_id,
                details={
                    "action_type": "deletion",
                    "organization_id": str(target.organization_id),
                    "removed_staff_ids": [str(staff_id) for staff_id in staff_ids],
                    "removed_staff_count": len(staff_ids),
                },
            )

        logger.info(
            "org_admin_deleted",
            admin_id=str(admin_id),
            deleter_id=str(deleter_id),
            removed_staff_count=len(staff_ids),
        )
        await self._revoke_credentials([*staff_ids, admin_id])
        return CascadeDeleteResult(
            success=True,
            deleted_staff_count=len(staff_ids),
            removed_staff_ids=staff_ids,
        )

    async def delete_staff_member(self, staff_id: UUID, deleter_id: UUID) -> None:
        """Delete one staff member. No cascade.

        Args:
            staff_id: The staff member to delete.
            deleter_id: A super admin, or the organization admin that invited the staff.

        Raises:
            AuthorizationError: If the deleter may not manage this staff member.
            NotFoundError: If no staff member has this ID.
        """
        async with self._backend.atomic() as tx:
            directory = self._directory.within(tx)
            capabilities = resolve_capabilities(await directory.get_by_id(deleter_id))
            if not (capabilities.can_manage_any_staff or capabilities.can_manage_own_staff):
                raise AuthorizationError("You are not allowed to remove staff members")

            staff = await directory.lock(staff_id)
            if staff is None or staff.role is not AdminRole.ORG_STAFF:
                raise NotFoundError(f"Staff member {staff_id} not found")
            if not capabilities.can_manage_any_staff and staff.parent_admin_id != deleter_id:
                raise AuthorizationError("You can only remove staff from your own organization")

            if await directory.delete([staff_id]) != 1:
                raise NotFoundError(f"Staff member {staff_id} not found")

            await self._audit.within(tx).append(
                deleter_id,
                ActivityAction.DELETE_STAFF,
                target_user_id=staff_id,
                details={
                    "action_type": "deletion",
                    "parent_admin_id": str(staff.parent_admin_id),
                },
            )

        logger.info("staff_deleted", staff_id=str(staff_id), deleter_id=str(deleter_id))
        await self._revoke_credentials([staff_id])

    async def _revoke_credentials(self, admin_ids: list[UUID]) -> None:
        if self._credentials is None:
            return
        for admin_id in admin_ids:
            try:
                await self._credentials.delete_credential(admin_id)
            except Exception as e:
                logger.error("credential_revoke_failed", admin_id=str(admin_id), error=str(e))
