"""PostgreSQL implementation of AdminDirectoryRepository."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

import asyncpg

from maikedah_admin.adapters.postgres.errors import affected_rows, translate_errors
from maikedah_admin.core.admins.types import AdminIdentity, AdminRole

# Columns a caller may change through update_admin.
UPDATABLE_COLUMNS = frozenset(AdminIdentity.model_fields) - {"id", "created_at", "updated_at"}


class PostgresAdminDirectoryRepository:
    """Identity records in the ``admin_users`` table.

    Bound either to a pool (each call acquires its own connection) or to a
    single connection owned by an open transaction.
    """

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

    def _row_to_admin(self, row: Any) -> AdminIdentity:
        """Convert database row to AdminIdentity."""
        return AdminIdentity.model_validate(dict(row))

    async def _fetch_one(self, query: str, *args: Any) -> AdminIdentity | None:
        async with translate_errors("admin_directory"), self._acquire() as conn:
            row = await conn.fetchrow(query, *args)
        return self._row_to_admin(row) if row else None

    async def _fetch_all(self, query: str, *args: Any) -> list[AdminIdentity]:
        async with translate_errors("admin_directory"), self._acquire() as conn:
            rows = await conn.fetch(query, *args)
        return [self._row_to_admin(row) for row in rows]

    async def get_admin(self, admin_id: UUID, *, for_update: bool = False) -> AdminIdentity | None:
        """Get identity by ID, optionally with a row lock."""
        query = "SELECT * FROM admin_users WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        return await self._fetch_one(query, admin_id)

    async def get_admin_by_email(self, email: str) -> AdminIdentity | None:
        """Get identity by email address."""
        return await self._fetch_one(
            "SELECT * FROM admin_users WHERE lower(email) = lower($1)",
            email,
        )

    async def list_pending(self) -> list[AdminIdentity]:
        """List open registration requests."""
        return await self._fetch_all(
            """
            SELECT * FROM admin_users
            WHERE role = 'pending' AND rejected_at IS NULL
            ORDER BY requested_at DESC NULLS LAST, created_at DESC
            """
        )

    async def list_by_role(self, role: AdminRole) -> list[AdminIdentity]:
        """List approved identities with a role."""
        return await self._fetch_all(
            """
            SELECT * FROM admin_users
            WHERE role = $1 AND is_approved = true
            ORDER BY created_at DESC
            """,
            role.value,
        )

    async def list_staff(self, parent_admin_id: UUID) -> list[AdminIdentity]:
        """List staff under an organization admin."""
        return await self._fetch_all(
            """
            SELECT * FROM admin_users
            WHERE parent_admin_id = $1 AND role = 'org_staff'
            ORDER BY created_at DESC
            """,
            parent_admin_id,
        )

    async def count_staff(self, parent_admin_id: UUID) -> int:
        """Count staff under an organization admin."""
        async with translate_errors("admin_directory"), self._acquire() as conn:
            count = await conn.fetchval(
                """
                SELECT COUNT(*) FROM admin_users
                WHERE parent_admin_id = $1 AND role = 'org_staff'
                """,
                parent_admin_id,
            )
        return int(count or 0)

    async def insert_admin(self, admin: AdminIdentity) -> AdminIdentity:
        """Insert an identity; an existing ID returns the stored row."""
        values = admin.model_dump(mode="python")
        values["role"] = admin.role.value
        columns = list(values)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        query = f"""
            INSERT INTO admin_users ({", ".join(columns)})
            VALUES ({placeholders})
            ON CONFLICT (id) DO NOTHING
            RETURNING *
        """
        inserted = await self._fetch_one(query, *values.values())
        if inserted is not None:
            return inserted
        existing = await self.get_admin(admin.id)
        assert existing is not None, "ON CONFLICT (id) implies the row exists"
        return existing

    async def update_admin(
        self,
        admin_id: UUID,
        changes: dict[str, Any],
        *,
        expected_role: AdminRole | None = None,
    ) -> AdminIdentity | None:
        """Update identity fields."""
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        updates = []
        params: list[Any] = []
        param_idx = 1

        for column, value in changes.items():
            updates.append(f"{column} = ${param_idx}")
            params.append(value.value if isinstance(value, Enum) else value)
            param_idx += 1

        updates.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(UTC))
        param_idx += 1

        params.append(admin_id)
        query = f"""
            UPDATE admin_users SET {", ".join(updates)}
            WHERE id = ${param_idx}
        """
        if expected_role is not None:
            params.append(expected_role.value)
            query += f" AND role = ${param_idx + 1}"
        query += " RETURNING *"
        return await self._fetch_one(query, *params)

    async def delete_admins(self, admin_ids: list[UUID]) -> int:
        """Delete identities by ID."""
        async with translate_errors("admin_directory"), self._acquire() as conn:
            result = await conn.execute(
                "DELETE FROM admin_users WHERE id = ANY($1::uuid[])",
                admin_ids,
            )
        return affected_rows(result)
