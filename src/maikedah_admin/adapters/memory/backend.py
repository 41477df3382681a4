"""In-memory admin backend.

Holds identities and the activity log in process memory. Useful for unit
testing and for running the console without a database. Atomic units are
serialized with a lock and roll back by restoring a snapshot of both tables.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog

from maikedah_admin.core.admins.types import (
    ActivityLogCreate,
    ActivityLogEntry,
    AdminIdentity,
    AdminRole,
)
from maikedah_admin.core.exceptions import ConflictError

logger = structlog.get_logger()


@dataclass
class _Tables:
    admins: dict[UUID, AdminIdentity] = field(default_factory=dict)
    activity: list[ActivityLogEntry] = field(default_factory=list)


def _newest_first(admins: list[AdminIdentity]) -> list[AdminIdentity]:
    return sorted(admins, key=lambda a: a.created_at, reverse=True)


class InMemoryAdminDirectoryRepository:
    """Identity records kept in a dict keyed by ID."""

    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    def _find_email(self, email: str) -> AdminIdentity | None:
        email = email.lower()
        for admin in self._tables.admins.values():
            if admin.email.lower() == email:
                return admin
        return None

    async def get_admin(self, admin_id: UUID, *, for_update: bool = False) -> AdminIdentity | None:
        """Get an identity by ID. Locking is implied by the atomic unit."""
        return self._tables.admins.get(admin_id)

    async def get_admin_by_email(self, email: str) -> AdminIdentity | None:
        """Get an identity by email, case-insensitively."""
        return self._find_email(email)

    async def list_pending(self) -> list[AdminIdentity]:
        """Open registration requests, most recently requested first."""
        pending = [
            a
            for a in self._tables.admins.values()
            if a.role is AdminRole.PENDING and not a.is_rejected
        ]
        return sorted(pending, key=lambda a: a.requested_at or a.created_at, reverse=True)

    async def list_by_role(self, role: AdminRole) -> list[AdminIdentity]:
        """Approved identities with a role, newest first."""
        return _newest_first(
            [a for a in self._tables.admins.values() if a.role is role and a.is_approved]
        )

    async def list_staff(self, parent_admin_id: UUID) -> list[AdminIdentity]:
        """Staff under an organization admin, newest first."""
        return _newest_first(
            [
                a
                for a in self._tables.admins.values()
                if a.role is AdminRole.ORG_STAFF and a.parent_admin_id == parent_admin_id
            ]
        )

    async def count_staff(self, parent_admin_id: UUID) -> int:
        """Count staff under an organization admin."""
        return len(await self.list_staff(parent_admin_id))

    async def insert_admin(self, admin: AdminIdentity) -> AdminIdentity:
        """Insert an identity; idempotent on ID, unique on email."""
        existing = self._tables.admins.get(admin.id)
        if existing is not None:
            return existing
        if self._find_email(admin.email) is not None:
            raise ConflictError("A user with this email is already registered")
        self._tables.admins[admin.id] = admin
        return admin

    async def update_admin(
        self,
        admin_id: UUID,
        changes: dict[str, Any],
        *,
        expected_role: AdminRole | None = None,
    ) -> AdminIdentity | None:
        """Apply changes through model validation so role invariants still hold."""
        current = self._tables.admins.get(admin_id)
        if current is None:
            return None
        if expected_role is not None and current.role is not expected_role:
            return None
        if "email" in changes:
            other = self._find_email(changes["email"])
            if other is not None and other.id != admin_id:
                raise ConflictError("A user with this email is already registered")

        updated = AdminIdentity.model_validate(
            {**current.model_dump(), **changes, "updated_at": datetime.now(UTC)}
        )
        self._tables.admins[admin_id] = updated
        return updated

    async def delete_admins(self, admin_ids: list[UUID]) -> int:
        """Delete identities and return how many existed."""
        removed = 0
        for admin_id in admin_ids:
            if self._tables.admins.pop(admin_id, None) is not None:
                removed += 1
        return removed


class InMemoryActivityLogRepository:
    """Activity log kept as a list in insertion order."""

    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def append(self, entry: ActivityLogCreate) -> ActivityLogEntry:
        """Append an entry and return it as stored."""
        stored = ActivityLogEntry(
            id=uuid4(),
            admin_id=entry.admin_id,
            action=entry.action,
            target_user_id=entry.target_user_id,
            details=dict(entry.details) if entry.details is not None else None,
            created_at=datetime.now(UTC),
        )
        self._tables.activity.append(stored)
        return stored

    async def list_recent(
        self, admin_id: UUID | None = None, limit: int = 20
    ) -> list[ActivityLogEntry]:
        """List entries most recent first, optionally for one actor."""
        entries = [
            e
            for e in reversed(self._tables.activity)
            if admin_id is None or e.admin_id == admin_id
        ]
        return entries[:limit]

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete entries created before ``cutoff``."""
        kept = [e for e in self._tables.activity if e.created_at >= cutoff]
        removed = len(self._tables.activity) - len(kept)
        self._tables.activity[:] = kept
        return removed


class InMemoryAdminBackend:
    """AdminBackend over process memory.

    Atomic units do not nest: opening one inside another deadlocks.
    """

    def __init__(self) -> None:
        """Initialize empty tables."""
        self._tables = _Tables()
        self._directory = InMemoryAdminDirectoryRepository(self._tables)
        self._activity = InMemoryActivityLogRepository(self._tables)
        self._lock = asyncio.Lock()

    @property
    def directory(self) -> InMemoryAdminDirectoryRepository:
        """Identity records."""
        return self._directory

    @property
    def activity(self) -> InMemoryActivityLogRepository:
        """Activity log."""
        return self._activity

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[InMemoryAdminBackend]:
        """Run a block against both tables, restoring them if it raises."""
        async with self._lock:
            saved_admins = dict(self._tables.admins)
            saved_activity = list(self._tables.activity)
            try:
                yield self
            except BaseException:
                self._tables.admins.clear()
                self._tables.admins.update(saved_admins)
                self._tables.activity[:] = saved_activity
                logger.debug("memory_atomic_rolled_back")
                raise
