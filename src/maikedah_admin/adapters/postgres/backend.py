"""PostgreSQL AdminBackend: both repositories over one asyncpg pool."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
import structlog

from maikedah_admin.adapters.postgres.activity import PostgresActivityLogRepository
from maikedah_admin.adapters.postgres.directory import PostgresAdminDirectoryRepository
from maikedah_admin.adapters.postgres.errors import translate_errors

logger = structlog.get_logger()


class PostgresAdminBackend:
    """AdminBackend backed by PostgreSQL.

    Outside ``atomic`` each repository call runs on its own pooled
    connection. Inside, both repositories share the transaction's
    connection; nesting ``atomic`` opens a savepoint.
    """

    def __init__(self, pool: asyncpg.Pool, conn: asyncpg.Connection | None = None) -> None:
        """Initialize the backend.

        Args:
            pool: Database connection pool.
            conn: Connection of an already open transaction.
        """
        self._pool = pool
        self._conn = conn
        self._directory = PostgresAdminDirectoryRepository(pool=pool, conn=conn)
        self._activity = PostgresActivityLogRepository(pool=pool, conn=conn)

    @property
    def directory(self) -> PostgresAdminDirectoryRepository:
        """Identity records."""
        return self._directory

    @property
    def activity(self) -> PostgresActivityLogRepository:
        """Activity log."""
        return self._activity

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[PostgresAdminBackend]:
        """Run a block in one transaction, committing on normal exit."""
        if self._conn is not None:
            async with translate_errors("atomic"), self._conn.transaction():
                yield self
            return

        async with translate_errors("atomic"), self._pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresAdminBackend(self._pool, conn)
