"""Append-only activity log of privileged actions."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from maikedah_admin.core.admins.repository import ActivityLogRepository, AdminBackend
from maikedah_admin.core.admins.types import ActivityAction, ActivityLogCreate, ActivityLogEntry
from maikedah_admin.core.exceptions import ValidationError

logger = structlog.get_logger()

MAX_QUERY_LIMIT = 100

# Secrets must never reach the log, even if a caller passes them by mistake.
_SECRET_DETAIL_KEYS = frozenset({"password", "temp_password", "temporary_password", "token"})


def _scrub(details: dict[str, Any] | None) -> dict[str, Any] | None:
    if not details:
        return details
    leaked = _SECRET_DETAIL_KEYS.intersection(details)
    if not leaked:
        return details
    logger.warning("activity_details_secret_dropped", keys=sorted(leaked))
    return {k: v for k, v in details.items() if k not in leaked}


class ActivityAuditLog:
    """Accountability trail for admin actions.

    Two write modes:

    - ``append`` is strict. Identity-mutating workflows call it through
      ``within(tx)`` inside their atomic unit, so a failed write rolls the
      mutation back and a committed mutation always has its entry.
    - ``record_best_effort`` is for informational actions (login, logout,
      profile edits). Failures are logged and swallowed.
    """

    def __init__(self, repo: ActivityLogRepository) -> None:
        """Initialize with the activity log repository.

        Args:
            repo: Repository the entries are written to.
        """
        self._repo = repo

    def within(self, tx: AdminBackend) -> ActivityAuditLog:
        """Return a log that writes through an open atomic unit."""
        return ActivityAuditLog(tx.activity)

    async def append(
        self,
        admin_id: UUID,
        action: ActivityAction,
        target_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> ActivityLogEntry:
        """Append an entry, propagating any storage failure.

        Args:
            admin_id: The acting admin.
            action: What was done.
            target_user_id: The identity acted upon, if any.
            details: Extra context. Secret-looking keys are dropped.

        Returns:
            The stored entry.
        """
        entry = await self._repo.append(
            ActivityLogCreate(
                admin_id=admin_id,
                action=action,
                target_user_id=target_user_id,
                details=_scrub(details),
            )
        )
        logger.debug("activity_recorded", action=action.value, admin_id=str(admin_id))
        return entry

    async def record_best_effort(
        self,
        admin_id: UUID,
        action: ActivityAction,
        target_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> ActivityLogEntry | None:
        """Append an entry without ever failing the caller.

        Returns:
            The stored entry, or None when the write failed.
        """
        try:
            return await self.append(admin_id, action, target_user_id, details)
        except Exception as e:
            logger.error(
                "activity_record_failed",
                action=action.value,
                admin_id=str(admin_id),
                error=str(e),
            )
            return None

    async def query(self, admin_id: UUID | None = None, limit: int = 20) -> list[ActivityLogEntry]:
        """List entries, most recent first.

        Args:
            admin_id: Restrict to one actor; None returns every actor's entries.
            limit: Maximum number of entries, capped at MAX_QUERY_LIMIT.

        Raises:
            ValidationError: If ``limit`` is not positive.
        """
        if limit < 1:
            raise ValidationError({"limit": "Limit must be at least 1"})
        return await self._repo.list_recent(admin_id=admin_id, limit=min(limit, MAX_QUERY_LIMIT))

    async def purge_before(self, cutoff: datetime) -> int:
        """Delete entries older than ``cutoff``. Used only by the retention job."""
        count = await self._repo.delete_before(cutoff)
        logger.info("activity_purged", cutoff=cutoff.isoformat(), count=count)
        return count
