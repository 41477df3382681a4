"""Tests for OrganizationHierarchyManager."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from maikedah_admin.adapters.memory import InMemoryAdminBackend, InMemoryCredentialProvider
from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.hierarchy import OrganizationHierarchyManager
from maikedah_admin.core.admins.types import ActivityAction, AdminIdentity, AdminRole
from maikedah_admin.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    TransientError,
)
from tests.fixtures.admins import PASSWORD, add_admin, add_staff


class TestDeleteOrganizationAdmin:
    """Cascade deletion."""

    async def test_removes_admin_and_all_staff(
        self,
        backend: InMemoryAdminBackend,
        credentials: InMemoryCredentialProvider,
        hierarchy: OrganizationHierarchyManager,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        org_admin: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """Every staff member goes with the admin and one entry lists them all."""
        staff = [
            await add_staff(backend, credentials, org_admin, f"staff{i}@x.com") for i in range(3)
        ]

        result = await hierarchy.delete_organization_admin(org_admin.id, super_admin.id)

        assert result.success is True
        assert result.deleted_staff_count == 3
        assert set(result.removed_staff_ids) == {s.id for s in staff}
        assert await directory.list_staff(org_admin.id) == []
        assert await directory.get_by_id(org_admin.id) is None

        entries = [
            e for e in await audit.query() if e.action is ActivityAction.DELETE_ORG_ADMIN
        ]
        assert len(entries) == 1
        assert entries[0].details is not None
        assert entries[0].details["removed_staff_count"] == 3
        assert set(entries[0].details["removed_staff_ids"]) == {str(s.id) for s in staff}

    async def test_revokes_credentials(
        self,
        credentials: InMemoryCredentialProvider,
        hierarchy: OrganizationHierarchyManager,
        org_admin: AdminIdentity,
        staff_member: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """Removed identities can no longer sign in."""
        await hierarchy.delete_organization_admin(org_admin.id, super_admin.id)

        with pytest.raises(AuthenticationError):
            await credentials.sign_in("alice@x.com", PASSWORD)
        with pytest.raises(AuthenticationError):
            await credentials.sign_in("dave@x.com", PASSWORD)

    async def test_audit_failure_keeps_everything(
        self,
        backend: InMemoryAdminBackend,
        hierarchy: OrganizationHierarchyManager,
        directory: AdminDirectoryService,
        org_admin: AdminIdentity,
        staff_member: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """A failed audit write leaves admin and staff in place."""
        failing = AsyncMock(side_effect=TransientError("log down"))
        backend.activity.append = failing  # type: ignore[method-assign]

        with pytest.raises(TransientError):
            await hierarchy.delete_organization_admin(org_admin.id, super_admin.id)

        assert await directory.get_by_id(org_admin.id) == org_admin
        assert [s.id for s in await directory.list_staff(org_admin.id)] == [staff_member.id]

    async def test_org_admin_cannot_delete_org_admin(
        self,
        backend: InMemoryAdminBackend,
        credentials: InMemoryCredentialProvider,
        hierarchy: OrganizationHierarchyManager,
        directory: AdminDirectoryService,
        org_admin: AdminIdentity,
    ) -> None:
        """Only super admins delete organization admins."""
        other = await add_admin(backend, credentials, AdminRole.ORG_ADMIN, "erin@x.com")

        with pytest.raises(AuthorizationError):
            await hierarchy.delete_organization_admin(other.id, org_admin.id)
        assert await directory.get_by_id(other.id) is not None

    async def test_target_must_be_org_admin(
        self,
        hierarchy: OrganizationHierarchyManager,
        staff_member: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """Unknown IDs and non-admins are NotFound."""
        with pytest.raises(NotFoundError):
            await hierarchy.delete_organization_admin(uuid4(), super_admin.id)
        with pytest.raises(NotFoundError):
            await hierarchy.delete_organization_admin(staff_member.id, super_admin.id)

    async def test_credential_revocation_failure_is_tolerated(
        self,
        backend: InMemoryAdminBackend,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        credentials: InMemoryCredentialProvider,
        org_admin: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """The committed deletion stands when revocation fails."""
        credentials.delete_credential = AsyncMock(  # type: ignore[method-assign]
            side_effect=TransientError("auth down")
        )
        hierarchy = OrganizationHierarchyManager(backend, directory, audit, credentials)

        result = await hierarchy.delete_organization_admin(org_admin.id, super_admin.id)

        assert result.success is True
        assert await directory.get_by_id(org_admin.id) is None


class TestDeleteStaffMember:
    """Single staff deletion."""

    async def test_parent_can_delete_own_staff(
        self,
        hierarchy: OrganizationHierarchyManager,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        org_admin: AdminIdentity,
        staff_member: AdminIdentity,
    ) -> None:
        """The inviting admin removes its staff member."""
        await hierarchy.delete_staff_member(staff_member.id, org_admin.id)

        assert await directory.get_by_id(staff_member.id) is None
        assert await directory.get_by_id(org_admin.id) is not None
        (entry,) = await audit.query(admin_id=org_admin.id)
        assert entry.action is ActivityAction.DELETE_STAFF
        assert entry.target_user_id == staff_member.id

    async def test_super_admin_can_delete_any_staff(
        self,
        hierarchy: OrganizationHierarchyManager,
        directory: AdminDirectoryService,
        staff_member: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """Super admins are not bound to a parent."""
        await hierarchy.delete_staff_member(staff_member.id, super_admin.id)
        assert await directory.get_by_id(staff_member.id) is None

    async def test_other_org_admin_is_refused(
        self,
        backend: InMemoryAdminBackend,
        credentials: InMemoryCredentialProvider,
        hierarchy: OrganizationHierarchyManager,
        directory: AdminDirectoryService,
        staff_member: AdminIdentity,
    ) -> None:
        """An admin of another organization cannot remove the staff member."""
        other = await add_admin(backend, credentials, AdminRole.ORG_ADMIN, "erin@x.com")

        with pytest.raises(AuthorizationError):
            await hierarchy.delete_staff_member(staff_member.id, other.id)
        assert await directory.get_by_id(staff_member.id) is not None

    async def test_staff_cannot_delete_staff(
        self,
        backend: InMemoryAdminBackend,
        credentials: InMemoryCredentialProvider,
        hierarchy: OrganizationHierarchyManager,
        org_admin: AdminIdentity,
        staff_member: AdminIdentity,
    ) -> None:
        """Staff have no staff management capability."""
        colleague = await add_staff(backend, credentials, org_admin, "fay@x.com")

        with pytest.raises(AuthorizationError):
            await hierarchy.delete_staff_member(colleague.id, staff_member.id)

    async def test_target_must_be_staff(
        self,
        hierarchy: OrganizationHierarchyManager,
        org_admin: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """Organization admins are not removed through the staff path."""
        with pytest.raises(NotFoundError):
            await hierarchy.delete_staff_member(org_admin.id, super_admin.id)
