"""Activity log retention job.

Run via: python -m maikedah_admin.jobs.activity_retention

Deletes activity entries older than ACTIVITY_RETENTION_DAYS. Without that
variable the log is kept indefinitely and the job does nothing.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import asyncpg
import structlog

from maikedah_admin.adapters.postgres import PostgresActivityLogRepository
from maikedah_admin.config import get_settings
from maikedah_admin.core.admins.activity import ActivityAuditLog

logger = structlog.get_logger()


async def purge_expired(audit: ActivityAuditLog, retention_days: int) -> int:
    """Delete entries older than the retention window.

    Args:
        audit: Activity log to purge.
        retention_days: Entries older than this many days are removed.

    Returns:
        Number of entries deleted.
    """
    if retention_days < 1:
        raise ValueError("Retention must be at least one day")
    cutoff = datetime.now(UTC) - timedelta(days=retention_days)
    return await audit.purge_before(cutoff)


async def main() -> None:
    """Run activity log cleanup."""
    settings = get_settings()
    if settings.activity_retention_days is None:
        logger.info("activity_retention_disabled")
        return
    if not settings.database_url:
        logger.error("database_url_not_set")
        return

    pool = await asyncpg.create_pool(settings.database_url)
    try:
        audit = ActivityAuditLog(PostgresActivityLogRepository(pool=pool))
        count = await purge_expired(audit, settings.activity_retention_days)
        logger.info(
            "activity_retention_completed",
            retention_days=settings.activity_retention_days,
            deleted=count,
        )
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
