"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from maikedah_admin.core.auth.tokens import (
    SESSION_TTL_HOURS,
    TEMP_PASSWORD_DEFAULT_LENGTH,
    TEMP_PASSWORD_MIN_LENGTH,
)

DEFAULT_SESSION_KEY = "maikedah-admin-auth"
DEFAULT_HYDRATION_TIMEOUT_SECONDS = 8.0
DEFAULT_AVATAR_MAX_BYTES = 2 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """Process-wide settings.

    Attributes:
        database_url: PostgreSQL DSN; None selects the in-memory backend.
        session_dir: Directory holding the persisted identity snapshot.
        session_key: Namespaced key (file stem) of the snapshot.
        hydration_timeout_seconds: Bounded wait before hydration reports a
            connectivity error.
        session_ttl_hours: Lifetime of a backend session.
        temp_password_length: Length of generated staff passwords.
        avatar_max_bytes: Largest accepted profile picture.
        avatar_dir: Directory profile pictures are written to.
        avatar_base_url: Public URL prefix for stored profile pictures.
        activity_retention_days: Age after which activity entries may be
            purged; None keeps them indefinitely.
    """

    database_url: str | None = None
    session_dir: Path = Path.home() / ".maikedah-admin"
    session_key: str = DEFAULT_SESSION_KEY
    hydration_timeout_seconds: float = DEFAULT_HYDRATION_TIMEOUT_SECONDS
    session_ttl_hours: int = SESSION_TTL_HOURS
    temp_password_length: int = TEMP_PASSWORD_DEFAULT_LENGTH
    avatar_max_bytes: int = DEFAULT_AVATAR_MAX_BYTES
    avatar_dir: Path = Path("./media")
    avatar_base_url: str = "/media"
    activity_retention_days: int | None = None


def _optional_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else None


@lru_cache
def get_settings() -> Settings:
    """Build settings from environment variables.

    Returns:
        Cached Settings instance.
    """
    defaults = Settings()
    session_dir = os.environ.get("MAIKEDAH_SESSION_DIR", "").strip()
    avatar_dir = os.environ.get("MAIKEDAH_AVATAR_DIR", "").strip()
    temp_length = _optional_int("MAIKEDAH_TEMP_PASSWORD_LENGTH") or defaults.temp_password_length

    return Settings(
        database_url=os.environ.get("DATABASE_URL") or None,
        session_dir=Path(session_dir) if session_dir else defaults.session_dir,
        session_key=os.environ.get("MAIKEDAH_SESSION_KEY", "").strip() or defaults.session_key,
        hydration_timeout_seconds=float(
            os.environ.get(
                "MAIKEDAH_HYDRATION_TIMEOUT_SECONDS", str(defaults.hydration_timeout_seconds)
            )
        ),
        session_ttl_hours=_optional_int("MAIKEDAH_SESSION_TTL_HOURS") or defaults.session_ttl_hours,
        temp_password_length=max(temp_length, TEMP_PASSWORD_MIN_LENGTH),
        avatar_max_bytes=_optional_int("MAIKEDAH_AVATAR_MAX_BYTES") or defaults.avatar_max_bytes,
        avatar_dir=Path(avatar_dir) if avatar_dir else defaults.avatar_dir,
        avatar_base_url=os.environ.get("MAIKEDAH_AVATAR_BASE_URL", "").strip()
        or defaults.avatar_base_url,
        activity_retention_days=_optional_int("ACTIVITY_RETENTION_DAYS"),
    )
