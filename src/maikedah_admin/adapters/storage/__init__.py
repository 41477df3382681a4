"""Client-side storage adapters: session snapshots and profile pictures."""

from maikedah_admin.adapters.storage.avatars import FilesystemAvatarStorage, InMemoryAvatarStorage
from maikedah_admin.adapters.storage.snapshots import FileSnapshotStore, MemorySnapshotStore

__all__ = [
    "FileSnapshotStore",
    "FilesystemAvatarStorage",
    "InMemoryAvatarStorage",
    "MemorySnapshotStore",
]
