"""Registration approval workflow.

A self-registered request moves from REQUESTED (role=pending) to either
APPROVED (role=org_admin) or REJECTED. Both outcomes are terminal. Rejected
requests are kept so the trail stays meaningful and the email cannot
quietly register again.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import structlog

from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.capabilities import resolve_capabilities
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.repository import AdminBackend
from maikedah_admin.core.admins.types import ActivityAction, AdminIdentity, AdminRole
from maikedah_admin.core.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()


class ApprovalWorkflow:
    """Approve or reject pending registration requests."""

    def __init__(
        self,
        backend: AdminBackend,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
    ) -> None:
        """Initialize the workflow.

        Args:
            backend: Backend providing atomic units.
            directory: Identity directory.
            audit: Activity log.
        """
        self._backend = backend
        self._directory = directory
        self._audit = audit

    async def _require_approver(self, directory: AdminDirectoryService, approver_id: UUID) -> None:
        approver = await directory.get_by_id(approver_id)
        if not resolve_capabilities(approver).can_approve_admins:
            logger.warning("approval_denied", approver_id=str(approver_id))
            raise AuthorizationError("Only a super admin can review registration requests")

    async def _lock_open_request(
        self, directory: AdminDirectoryService, pending_admin_id: UUID
    ) -> AdminIdentity:
        target = await directory.lock(pending_admin_id)
        if target is None:
            raise NotFoundError(f"Admin {pending_admin_id} not found")
        if target.role is not AdminRole.PENDING or target.is_rejected:
            raise InvalidTransitionError("This registration request is no longer pending")
        return target

    async def approve(self, pending_admin_id: UUID, approver_id: UUID) -> AdminIdentity:
        """Turn a pending request into an organization admin.

        Args:
            pending_admin_id: The request to approve.
            approver_id: The acting super admin.

        Returns:
            The approved identity.

        Raises:
            AuthorizationError: If the approver is not an approved super admin.
            NotFoundError: If the request does not exist.
            InvalidTransitionError: If the request was already approved or rejected.
        """
        async with self._backend.atomic() as tx:
            directory = self._directory.within(tx)
            await self._require_approver(directory, approver_id)
            target = await self._lock_open_request(directory, pending_admin_id)
            if not target.organization_name:
                raise InvalidTransitionError("The request has no organization to administer")

            now = datetime.now(UTC)
            approved = await directory.apply_changes(
                pending_admin_id,
                {
                    "role": AdminRole.ORG_ADMIN,
                    "is_approved": True,
                    "approved_by": approver_id,
                    "approved_at": now,
                    "organization_id": target.organization_id or uuid4(),
                },
                expected_role=AdminRole.PENDING,
            )
            if approved is None:
                raise InvalidTransitionError("This registration request is no longer pending")

            await self._audit.within(tx).append(
                approver_id,
                ActivityAction.APPROVE_ADMIN,
                target_user_id=pending_admin_id,
                details={
                    "action_type": "approval",
                    "organization_id": str(approved.organization_id),
                    "organization_name": approved.organization_name,
                },
            )

        logger.info(
            "admin_approved",
            admin_id=str(pending_admin_id),
            approver_id=str(approver_id),
        )
        return approved

    async def reject(self, pending_admin_id: UUID, approver_id: UUID, reason: str) -> AdminIdentity:
        """Close a pending request as rejected.

        The record is retained with the reason; no transition leaves it.

        Args:
            pending_admin_id: The request to reject.
            approver_id: The acting super admin.
            reason: Why the request was rejected; logged for record keeping.

        Returns:
            The rejected identity.

        Raises:
            ValidationError: If no reason is given.
            AuthorizationError: If the approver is not an approved super admin.
            NotFoundError: If the request does not exist.
            InvalidTransitionError: If the request was already approved or rejected.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": "Please provide a reason for rejection"})

        async with self._backend.atomic() as tx:
            directory = self._directory.within(tx)
            await self._require_approver(directory, approver_id)
            await self._lock_open_request(directory, pending_admin_id)

            rejected = await directory.apply_changes(
                pending_admin_id,
                {
                    "rejected_by": approver_id,
                    "rejected_at": datetime.now(UTC),
                    "rejection_reason": reason,
                },
                expected_role=AdminRole.PENDING,
            )
            if rejected is None:
                raise InvalidTransitionError("This registration request is no longer pending")

            await self._audit.within(tx).append(
                approver_id,
                ActivityAction.REJECT_ADMIN,
                target_user_id=pending_admin_id,
                details={"action_type": "rejection", "reason": reason},
            )

        logger.info(
            "admin_rejected",
            admin_id=str(pending_admin_id),
            approver_id=str(approver_id),
        )
        return rejected
