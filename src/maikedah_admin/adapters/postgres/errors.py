"""Translation of asyncpg failures into the core error taxonomy."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
import structlog

from maikedah_admin.core.exceptions import ConflictError, TransientError

logger = structlog.get_logger()

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    asyncpg.InterfaceError,
    OSError,
    TimeoutError,
)


@asynccontextmanager
async def translate_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise database failures as core errors.

    Args:
        operation: Name used in log events.

    Raises:
        ConflictError: On a unique constraint violation.
        TransientError: On connection loss, interface errors or timeouts.
    """
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        logger.info("db_unique_violation", operation=operation, constraint=e.constraint_name)
        raise ConflictError("A user with this email is already registered") from e
    except TRANSIENT_ERRORS as e:
        logger.warning("db_unavailable", operation=operation, error=str(e))
        raise TransientError("The database is unreachable. Please try again.") from e


def affected_rows(status: str) -> int:
    """Parse the row count from a command status like ``DELETE 3``."""
    return int(status.split()[-1])
