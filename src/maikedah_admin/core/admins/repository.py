"""Repository protocols for admin identity persistence.

Implementations provide actual storage access (PostgreSQL, in-memory).
They enforce record-level uniqueness (id, email) and nothing else: every
authorization and workflow rule lives in the components that call them.
"""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from maikedah_admin.core.admins.types import (
    ActivityLogCreate,
    ActivityLogEntry,
    AdminIdentity,
    AdminRole,
)


@runtime_checkable
class AdminDirectoryRepository(Protocol):
    """Protocol for admin identity records."""

    async def get_admin(self, admin_id: UUID, *, for_update: bool = False) -> AdminIdentity | None:
        """Get an identity by ID, optionally locking it for the current transaction."""
        ...

    async def get_admin_by_email(self, email: str) -> AdminIdentity | None:
        """Get an identity by (lower-cased) email address."""
        ...

    async def list_pending(self) -> list[AdminIdentity]:
        """List open registration requests, most recently requested first."""
        ...

    async def list_by_role(self, role: AdminRole) -> list[AdminIdentity]:
        """List approved identities with a role, newest first."""
        ...

    async def list_staff(self, parent_admin_id: UUID) -> list[AdminIdentity]:
        """List staff under an organization admin, newest first."""
        ...

    async def count_staff(self, parent_admin_id: UUID) -> int:
        """Count staff under an organization admin."""
        ...

    async def insert_admin(self, admin: AdminIdentity) -> AdminIdentity:
        """Insert an identity.

        Idempotent on ``admin.id``: inserting an ID that already exists returns
        the stored record unchanged.

        Raises:
            ConflictError: If another identity already uses the email.
        """
        ...

    async def update_admin(
        self,
        admin_id: UUID,
        changes: dict[str, Any],
        *,
        expected_role: AdminRole | None = None,
    ) -> AdminIdentity | None:
        """Apply field changes and bump ``updated_at``.

        Returns None when the identity does not exist or its role differs
        from ``expected_role``.
        """
        ...

    async def delete_admins(self, admin_ids: list[UUID]) -> int:
        """Delete identities by ID and return how many were removed."""
        ...


@runtime_checkable
class ActivityLogRepository(Protocol):
    """Protocol for the append-only activity log."""

    async def append(self, entry: ActivityLogCreate) -> ActivityLogEntry:
        """Append an entry."""
        ...

    async def list_recent(
        self, admin_id: UUID | None = None, limit: int = 20
    ) -> list[ActivityLogEntry]:
        """List entries most recent first, optionally for one actor."""
        ...

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete entries created before ``cutoff``; retention use only."""
        ...


@runtime_checkable
class AdminBackend(Protocol):
    """Both repositories plus a way to run them in one atomic unit."""

    @property
    def directory(self) -> AdminDirectoryRepository:
        """Identity records."""
        ...

    @property
    def activity(self) -> ActivityLogRepository:
        """Activity log."""
        ...

    def atomic(self) -> AbstractAsyncContextManager["AdminBackend"]:
        """Open an atomic unit.

        Everything done through the yielded backend is committed together when
        the block exits normally and discarded when it raises.
        """
        ...
