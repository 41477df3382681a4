"""Profile picture storage."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

logger = structlog.get_logger()


class FilesystemAvatarStorage:
    """Writes images below a directory served under ``base_url``."""

    def __init__(self, base_dir: Path, base_url: str) -> None:
        """Initialize the storage.

        Args:
            base_dir: Root directory images are written under.
            base_url: Public URL prefix of ``base_dir``.
        """
        self._base_dir = base_dir
        self._base_url = base_url.rstrip("/")

    def _write(self, path: str, data: bytes) -> None:
        target = (self._base_dir / path).resolve()
        if not target.is_relative_to(self._base_dir.resolve()):
            raise ValueError(f"Avatar path escapes storage root: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store the image and return its public URL."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, path, data)
        logger.debug("avatar_stored", path=path, size=len(data), content_type=content_type)
        return f"{self._base_url}/{path}"


class InMemoryAvatarStorage:
    """Keeps uploads in a dict; for tests and local runs."""

    def __init__(self, base_url: str = "memory://") -> None:
        self.base_url = base_url
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store the image and return a URL naming it."""
        self.objects[path] = (data, content_type)
        return f"{self.base_url}{path}"
