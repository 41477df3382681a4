"""Super admin seed.

Run with: python -m maikedah_admin.demo.seed

Super admins cannot register or be approved through the dashboard; this
is the only way to create one. Reads MAIKEDAH_SUPER_ADMIN_EMAIL,
MAIKEDAH_SUPER_ADMIN_PASSWORD and optionally MAIKEDAH_SUPER_ADMIN_NAME.
"""

from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime

import asyncpg
import structlog

from maikedah_admin.adapters.postgres import (
    PostgresAdminBackend,
    PostgresCredentialProvider,
    ensure_schema,
)
from maikedah_admin.config import get_settings
from maikedah_admin.core.admins.repository import AdminBackend
from maikedah_admin.core.admins.types import AdminIdentity, AdminRole
from maikedah_admin.core.admins.validation import (
    check_email,
    check_full_name,
    check_password,
    raise_if_invalid,
)
from maikedah_admin.core.auth.provider import CredentialProvider
from maikedah_admin.core.exceptions import ConflictError

logger = structlog.get_logger()

DEFAULT_SUPER_ADMIN_NAME = "Super Admin"


async def seed_super_admin(
    backend: AdminBackend,
    credentials: CredentialProvider,
    email: str,
    password: str,
    full_name: str = DEFAULT_SUPER_ADMIN_NAME,
) -> AdminIdentity:
    """Create a super admin if not already present.

    Idempotent - safe to run multiple times.

    Args:
        backend: Admin backend to seed.
        credentials: Provider the credential is created with.
        email: Sign-in email.
        password: Sign-in password.
        full_name: Display name.

    Returns:
        The super admin identity.

    Raises:
        ValidationError: If a field is malformed.
        ConflictError: If the email belongs to a non-super-admin identity.
    """
    errors: dict[str, str] = {}
    email = check_email(email, errors)
    check_password(password, errors)
    full_name = check_full_name(full_name, errors)
    raise_if_invalid(errors)

    existing = await backend.directory.get_admin_by_email(email)
    if existing is not None:
        if existing.role is not AdminRole.SUPER_ADMIN:
            raise ConflictError(f"{email} already belongs to a {existing.role.value} account")
        logger.info("super_admin_already_seeded", admin_id=str(existing.id))
        return existing

    try:
        credential_id = (await credentials.create_credential(email, password)).id
    except ConflictError:
        # Credential left behind by an earlier interrupted run
        session = await credentials.sign_in(email, password)
        await credentials.sign_out()
        credential_id = session.user_id

    now = datetime.now(UTC)
    admin = await backend.directory.insert_admin(
        AdminIdentity(
            id=credential_id,
            email=email,
            full_name=full_name,
            role=AdminRole.SUPER_ADMIN,
            is_approved=True,
            approved_at=now,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("super_admin_seeded", admin_id=str(admin.id))
    return admin


async def main() -> None:
    """Seed the configured super admin into PostgreSQL."""
    settings = get_settings()
    email = os.getenv("MAIKEDAH_SUPER_ADMIN_EMAIL", "")
    password = os.getenv("MAIKEDAH_SUPER_ADMIN_PASSWORD", "")
    if not settings.database_url:
        logger.error("database_url_not_set")
        return
    if not email or not password:
        logger.error("super_admin_credentials_not_set")
        return

    pool = await asyncpg.create_pool(settings.database_url)
    try:
        await ensure_schema(pool)
        await seed_super_admin(
            PostgresAdminBackend(pool),
            PostgresCredentialProvider(pool),
            email,
            password,
            os.getenv("MAIKEDAH_SUPER_ADMIN_NAME", DEFAULT_SUPER_ADMIN_NAME),
        )
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
