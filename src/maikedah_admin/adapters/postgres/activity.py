"""PostgreSQL implementation of ActivityLogRepository."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import asyncpg

from maikedah_admin.adapters.postgres.errors import affected_rows, translate_errors
from maikedah_admin.core.admins.types import ActivityLogCreate, ActivityLogEntry


class PostgresActivityLogRepository:
    """Append-only log in the ``admin_activity_logs`` table."""

    def __init__(
        self,
        pool: asyncpg.Pool | None = None,
        conn: asyncpg.Connection | None = None,
    ) -> None:
        """Initialize with a pool or a transaction's connection.

        Args:
            pool: Database connection pool.
            conn: Connection of an open transaction; takes precedence.
        """
        if pool is None and conn is None:
            raise ValueError("Either a pool or a connection is required")
        self._pool = pool
        self._conn = conn

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[asyncpg.Connection]:
        if self._conn is not None:
            yield self._conn
            return
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            yield conn

    def _row_to_entry(self, row: Any) -> ActivityLogEntry:
        """Convert database row to ActivityLogEntry."""
        details = row["details"]
        # jsonb comes back as text unless a codec is registered on the pool
        if isinstance(details, str):
            details = json.loads(details)
        return ActivityLogEntry(
            id=row["id"],
            admin_id=row["admin_id"],
            action=row["action"],
            target_user_id=row["target_user_id"],
            details=details,
            created_at=row["created_at"],
        )

    async def append(self, entry: ActivityLogCreate) -> ActivityLogEntry:
        """Append an entry."""
        query = """
            INSERT INTO admin_activity_logs (
                id, admin_id, action, target_user_id, details, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
        """
        async with translate_errors("activity_log"), self._acquire() as conn:
            row = await conn.fetchrow(
                query,
                uuid4(),
                entry.admin_id,
                entry.action.value,
                entry.target_user_id,
                json.dumps(entry.details) if entry.details is not None else None,
                datetime.now(UTC),
            )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_entry(row)

    async def list_recent(
        self, admin_id: UUID | None = None, limit: int = 20
    ) -> list[ActivityLogEntry]:
        """List entries most recent first."""
        if admin_id is None:
            query = "SELECT * FROM admin_activity_logs ORDER BY created_at DESC LIMIT $1"
            params: list[Any] = [limit]
        else:
            query = """
                SELECT * FROM admin_activity_logs
                WHERE admin_id = $1
                ORDER BY created_at DESC
                LIMIT $2
            """
            params = [admin_id, limit]

        async with translate_errors("activity_log"), self._acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [self._row_to_entry(row) for row in rows]

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete entries before cutoff date.

        Args:
            cutoff: Delete entries older than this.

        Returns:
            Number of entries deleted.
        """
        async with translate_errors("activity_log"), self._acquire() as conn:
            result = await conn.execute(
                "DELETE FROM admin_activity_logs WHERE created_at < $1",
                cutoff,
            )
        return affected_rows(result)
