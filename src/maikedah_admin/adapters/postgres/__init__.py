"""PostgreSQL adapters built on asyncpg."""

from maikedah_admin.adapters.postgres.activity import PostgresActivityLogRepository
from maikedah_admin.adapters.postgres.backend import PostgresAdminBackend
from maikedah_admin.adapters.postgres.credentials import PostgresCredentialProvider
from maikedah_admin.adapters.postgres.directory import PostgresAdminDirectoryRepository
from maikedah_admin.adapters.postgres.schema import ensure_schema, schema_statements

__all__ = [
    "PostgresActivityLogRepository",
    "PostgresAdminBackend",
    "PostgresAdminDirectoryRepository",
    "PostgresCredentialProvider",
    "ensure_schema",
    "schema_statements",
]
