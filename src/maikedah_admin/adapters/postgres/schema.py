"""Schema bootstrap compiled from the SQLAlchemy models."""

import asyncpg
import structlog
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from maikedah_admin.models import BaseModel

logger = structlog.get_logger()


def schema_statements() -> list[str]:
    """DDL for every model table and index, safe to run repeatedly."""
    dialect = postgresql.dialect()
    statements: list[str] = []
    for table in BaseModel.metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)))
        for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)))
    return statements


async def ensure_schema(pool: asyncpg.Pool) -> None:
    """Create missing tables and indexes in one transaction."""
    statements = schema_statements()
    async with pool.acquire() as conn, conn.transaction():
        for statement in statements:
            await conn.execute(statement)
    logger.info("schema_ensured", statements=len(statements))
