"""Session snapshot stores.

The snapshot is a JSON dump of the AdminIdentity under a namespaced key.
It never contains credentials or session tokens.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError as PydanticValidationError

from maikedah_admin.config import DEFAULT_SESSION_KEY
from maikedah_admin.core.admins.types import AdminIdentity

logger = structlog.get_logger()


class FileSnapshotStore:
    """Snapshot kept in ``<directory>/<key>.json``."""

    def __init__(self, directory: Path, key: str = DEFAULT_SESSION_KEY) -> None:
        """Initialize the store.

        Args:
            directory: Directory the snapshot file lives in.
            key: Namespaced key, used as the file stem.
        """
        self._path = directory / f"{key}.json"

    @property
    def path(self) -> Path:
        """Location of the snapshot file."""
        return self._path

    def _read(self) -> AdminIdentity | None:
        if not self._path.exists():
            return None
        raw = self._path.read_text(encoding="utf-8")
        try:
            return AdminIdentity.model_validate_json(raw)
        except PydanticValidationError as e:
            # A corrupt or outdated snapshot is as good as none
            logger.warning("session_snapshot_invalid", path=str(self._path), error=str(e))
            self._path.unlink(missing_ok=True)
            return None

    def _write(self, admin: AdminIdentity) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(admin.model_dump_json(), encoding="utf-8")
        os.chmod(tmp, 0o600)
        tmp.replace(self._path)

    def _delete(self) -> None:
        self._path.unlink(missing_ok=True)

    async def load(self) -> AdminIdentity | None:
        """Load the persisted identity, if any."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read)

    async def save(self, admin: AdminIdentity) -> None:
        """Persist the identity atomically."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, admin)

    async def clear(self) -> None:
        """Remove the persisted identity."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._delete)


class MemorySnapshotStore:
    """Snapshot kept in memory; shares state across managers given the same instance."""

    def __init__(self, admin: AdminIdentity | None = None) -> None:
        self.admin = admin

    async def load(self) -> AdminIdentity | None:
        """Return the stored identity."""
        return self.admin

    async def save(self, admin: AdminIdentity) -> None:
        """Replace the stored identity."""
        self.admin = admin

    async def clear(self) -> None:
        """Forget the stored identity."""
        self.admin = None
