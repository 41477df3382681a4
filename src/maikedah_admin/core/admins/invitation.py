"""Staff invitation by organization admins."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

import structlog

from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.capabilities import resolve_capabilities
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.repository import AdminBackend
from maikedah_admin.core.admins.types import ActivityAction, AdminIdentity, AdminRole
from maikedah_admin.core.admins.validation import check_email, check_full_name, raise_if_invalid
from maikedah_admin.core.auth.provider import CredentialProvider
from maikedah_admin.core.auth.tokens import (
    TEMP_PASSWORD_DEFAULT_LENGTH,
    generate_temporary_password,
)
from maikedah_admin.core.exceptions import AuthorizationError, ConflictError

logger = structlog.get_logger()


@dataclass(frozen=True)
class StaffInvitation:
    """Result of inviting a staff member.

    The temporary password is only ever available here; it is not stored in
    recoverable form and is kept out of the repr.
    """

    staff: AdminIdentity
    temporary_password: str = field(repr=False)


class StaffInvitationService:
    """Creates staff identities under an organization admin.

    Staff are created already approved: the inviting admin vouches for them.
    """

    def __init__(
        self,
        backend: AdminBackend,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        credentials: CredentialProvider,
        temp_password_length: int = TEMP_PASSWORD_DEFAULT_LENGTH,
    ) -> None:
        """Initialize the service.

        Args:
            backend: Backend providing atomic units.
            directory: Identity directory.
            audit: Activity log.
            credentials: Provider the staff credential is created with.
            temp_password_length: Length of generated passwords.
        """
        self._backend = backend
        self._directory = directory
        self._audit = audit
        self._credentials = credentials
        self._temp_password_length = temp_password_length

    def _require_inviter(
        self, parent: AdminIdentity | None, organization_id: UUID | None
    ) -> AdminIdentity:
        if parent is None or not resolve_capabilities(parent).can_invite_staff:
            raise AuthorizationError("Only an organization admin can invite staff")
        if organization_id is not None and organization_id != parent.organization_id:
            raise AuthorizationError("Staff can only be invited into your own organization")
        return parent

    async def invite_staff(
        self,
        email: str,
        full_name: str,
        parent_admin_id: UUID,
        organization_id: UUID | None,
        organization_name: str | None,
    ) -> StaffInvitation:
        """Invite a staff member into the parent admin's organization.

        Args:
            email: The staff member's email.
            full_name: The staff member's display name.
            parent_admin_id: The inviting organization admin.
            organization_id: Must match the parent's organization when given.
            organization_name: Informational; the parent's name is what is stored.

        Returns:
            The new identity and its one-time temporary password.

        Raises:
            ValidationError: If the email or name is malformed.
            AuthorizationError: If the parent is not an organization admin of
                that organization.
            ConflictError: If the email is already registered.
        """
        errors: dict[str, str] = {}
        email = check_email(email, errors)
        full_name = check_full_name(full_name, errors)
        raise_if_invalid(errors)

        parent = self._require_inviter(
            await self._directory.get_by_id(parent_admin_id), organization_id
        )
        if organization_name and organization_name != parent.organization_name:
            logger.warning(
                "invite_organization_name_mismatch",
                parent_admin_id=str(parent_admin_id),
            )
        if await self._directory.get_by_email(email) is not None:
            raise ConflictError("A user with this email is already registered")

        temporary_password = generate_temporary_password(self._temp_password_length)
        credential = await self._credentials.create_credential(email, temporary_password)

        try:
            async with self._backend.atomic() as tx:
                directory = self._directory.within(tx)
                # Re-check under lock so a concurrently deleted parent cannot gain staff.
                parent = self._require_inviter(
                    await directory.lock(parent_admin_id), organization_id
                )

                now = datetime.now(UTC)
                staff = await directory.create(
                    AdminIdentity(
                        id=credential.id,
                        email=email,
                        full_name=full_name,
                        role=AdminRole.ORG_STAFF,
                        is_approved=True,
                        organization_id=parent.organization_id,
                        organization_name=parent.organization_name,
                        organization_type=parent.organization_type,
                        parent_admin_id=parent.id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                await self._audit.within(tx).append(
                    parent.id,
                    ActivityAction.INVITE_STAFF,
                    target_user_id=staff.id,
                    details={
                        "email": email,
                        "full_name": full_name,
                        "organization_id": str(parent.organization_id),
                    },
                )
        except Exception:
            await self._discard_credential(credential.id)
            raise

        logger.info(
            "staff_invited",
            staff_id=str(staff.id),
            parent_admin_id=str(parent_admin_id),
        )
        return StaffInvitation(staff=staff, temporary_password=temporary_password)

    async def _discard_credential(self, credential_id: UUID) -> None:
        try:
            await self._credentials.delete_credential(credential_id)
        except Exception as e:
            logger.error(
                "invite_credential_cleanup_failed",
                credential_id=str(credential_id),
                error=str(e),
            )
