"""In-memory adapters."""

from maikedah_admin.adapters.memory.backend import (
    InMemoryActivityLogRepository,
    InMemoryAdminBackend,
    InMemoryAdminDirectoryRepository,
)
from maikedah_admin.adapters.memory.credentials import InMemoryCredentialProvider

__all__ = [
    "InMemoryActivityLogRepository",
    "InMemoryAdminBackend",
    "InMemoryAdminDirectoryRepository",
    "InMemoryCredentialProvider",
]
