"""PostgreSQL credential provider.

Credentials live in ``admin_credentials``; sessions in ``admin_sessions``
keyed by the SHA-256 hash of a random token. The plaintext token only
exists in this client: in memory, and in ``token_path`` when one is given
so a restarted process can resume its session.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import asyncpg
import structlog

from maikedah_admin.adapters.postgres.errors import affected_rows, translate_errors
from maikedah_admin.core.auth.password import hash_password, verify_password
from maikedah_admin.core.auth.tokens import (
    RESET_TOKEN_TTL_HOURS,
    SESSION_TTL_HOURS,
    generate_reset_token,
    generate_session_token,
    get_session_expiry,
    hash_token,
)
from maikedah_admin.core.auth.types import AuthSession, Credential
from maikedah_admin.core.exceptions import AuthenticationError, ConflictError

logger = structlog.get_logger()

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
INVALID_RESET_TOKEN_MESSAGE = "This password reset link is invalid or has expired"


class PostgresCredentialProvider:
    """CredentialProvider backed by PostgreSQL."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        token_path: Path | None = None,
        session_ttl_hours: int = SESSION_TTL_HOURS,
    ) -> None:
        """Initialize the provider.

        Args:
            pool: Database connection pool.
            token_path: File the session token is kept in between runs.
            session_ttl_hours: Lifetime of new sessions.
        """
        self._pool = pool
        self._token_path = token_path
        self._session_ttl_hours = session_ttl_hours
        self._token: str | None = None
        self._token_loaded = False

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[asyncpg.Connection]:
        async with translate_errors("credentials"), self._pool.acquire() as conn:
            yield conn

    # Client-side token

    def _load_token(self) -> str | None:
        if not self._token_loaded:
            self._token_loaded = True
            if self._token_path is not None and self._token_path.exists():
                self._token = self._token_path.read_text(encoding="utf-8").strip() or None
        return self._token

    def _remember_token(self, token: str | None) -> None:
        self._token = token
        self._token_loaded = True
        if self._token_path is None:
            return
        if token is None:
            self._token_path.unlink(missing_ok=True)
            return
        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(token, encoding="utf-8")
        os.chmod(self._token_path, 0o600)

    # Sessions

    async def _open_session(
        self, conn: asyncpg.Connection, credential_id: UUID, email: str
    ) -> AuthSession:
        token = generate_session_token()
        expires_at = get_session_expiry(self._session_ttl_hours)
        await conn.execute(
            """
            INSERT INTO admin_sessions (id, credential_id, token_hash, expires_at, created_at)
            VALUES ($1, $2, $3, $4, $5)
            """,
            uuid4(),
            credential_id,
            hash_token(token),
            expires_at,
            datetime.now(UTC),
        )
        self._remember_token(token)
        return AuthSession(user_id=credential_id, email=email, expires_at=expires_at)

    async def _insert_credential(
        self, conn: asyncpg.Connection, email: str, password: str
    ) -> dict[str, Any]:
        row = await conn.fetchrow(
            """
            INSERT INTO admin_credentials (id, email, password_hash, created_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (email) DO NOTHING
            RETURNING id, email, created_at
            """,
            uuid4(),
            email.strip().lower(),
            hash_password(password),
            datetime.now(UTC),
        )
        if row is None:
            raise ConflictError("An account with this email already exists")
        return dict(row)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Create a credential and open a session for it."""
        async with self._acquire() as conn, conn.transaction():
            row = await self._insert_credential(conn, email, password)
            session = await self._open_session(conn, row["id"], row["email"])
        logger.info("credential_signed_up", user_id=str(session.user_id))
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Open a session for existing credentials."""
        async with self._acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, email, password_hash FROM admin_credentials WHERE email = $1",
                email.strip().lower(),
            )
            if row is None or not verify_password(password, row["password_hash"]):
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
            return await self._open_session(conn, row["id"], row["email"])

    async def current_session(self) -> AuthSession | None:
        """Return the live session of this client, or None."""
        token = self._load_token()
        if token is None:
            return None

        async with self._acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT s.credential_id, s.expires_at, c.email
                FROM admin_sessions s
                JOIN admin_credentials c ON c.id = s.credential_id
                WHERE s.token_hash = $1 AND s.expires_at > NOW()
                """,
                hash_token(token),
            )
        if row is None:
            self._remember_token(None)
            return None
        return AuthSession(
            user_id=row["credential_id"],
            email=row["email"],
            expires_at=row["expires_at"],
        )

    async def sign_out(self) -> None:
        """Delete this client's session row and forget the token."""
        token = self._load_token()
        if token is None:
            return
        try:
            async with self._acquire() as conn:
                await conn.execute(
                    "DELETE FROM admin_sessions WHERE token_hash = $1",
                    hash_token(token),
                )
        finally:
            self._remember_token(None)

    async def create_credential(self, email: str, password: str) -> Credential:
        """Create a credential without opening a session."""
        async with self._acquire() as conn:
            row = await self._insert_credential(conn, email, password)
        return Credential(id=row["id"], email=row["email"], created_at=row["created_at"])

    async def delete_credential(self, credential_id: UUID) -> bool:
        """Delete a credential; its sessions go with it (ON DELETE CASCADE)."""
        async with self._acquire() as conn:
            result = await conn.execute(
                "DELETE FROM admin_credentials WHERE id = $1",
                credential_id,
            )
        return affected_rows(result) == 1

    async def update_password(
        self, credential_id: UUID, current_password: str, new_password: str
    ) -> None:
        """Replace a password after re-verifying the current one."""
        async with self._acquire() as conn:
            row = await conn.fetchrow(
                "SELECT password_hash FROM admin_credentials WHERE id = $1",
                credential_id,
            )
            if row is None or not verify_password(current_password, row["password_hash"]):
                raise AuthenticationError("Current password is incorrect")
            await conn.execute(
                "UPDATE admin_credentials SET password_hash = $1 WHERE id = $2",
                hash_password(new_password),
                credential_id,
            )

    async def issue_password_reset(self, email: str) -> str | None:
        """Issue a reset token; earlier unused tokens of the credential are dropped."""
        token = generate_reset_token()
        async with self._acquire() as conn, conn.transaction():
            credential_id = await conn.fetchval(
                "SELECT id FROM admin_credentials WHERE email = $1",
                email.strip().lower(),
            )
            if credential_id is None:
                return None
            await conn.execute(
                "DELETE FROM admin_password_resets WHERE credential_id = $1 AND used_at IS NULL",
                credential_id,
            )
            await conn.execute(
                """
                INSERT INTO admin_password_resets
                    (id, credential_id, token_hash, expires_at, created_at)
                VALUES ($1, $2, $3, $4, $5)
                """,
                uuid4(),
                credential_id,
                hash_token(token),
                get_session_expiry(RESET_TOKEN_TTL_HOURS),
                datetime.now(UTC),
            )
        logger.info("password_reset_issued", user_id=str(credential_id))
        return token

    async def reset_password(self, token: str, new_password: str) -> UUID:
        """Consume a reset token, set the password and delete every session."""
        if not token:
            raise AuthenticationError(INVALID_RESET_TOKEN_MESSAGE)
        password_hash = hash_password(new_password)
        async with self._acquire() as conn, conn.transaction():
            credential_id = await conn.fetchval(
                """
                UPDATE admin_password_resets SET used_at = NOW()
                WHERE token_hash = $1 AND used_at IS NULL AND expires_at > NOW()
                RETURNING credential_id
                """,
                hash_token(token),
            )
            if credential_id is None:
                raise AuthenticationError(INVALID_RESET_TOKEN_MESSAGE)
            await conn.execute(
                "UPDATE admin_credentials SET password_hash = $1 WHERE id = $2",
                password_hash,
                credential_id,
            )
            await conn.execute(
                "DELETE FROM admin_sessions WHERE credential_id = $1",
                credential_id,
            )
        return credential_id
