"""Protocol interfaces for client-side collaborators.

These define the contracts for the pieces that live next to the session
manager rather than in the storage backend: the persisted identity snapshot
and the object store used for profile pictures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from maikedah_admin.core.admins.types import AdminIdentity


@runtime_checkable
class SessionSnapshotStore(Protocol):
    """Client-local persistence for the signed-in identity.

    Only the AdminIdentity is stored, never credentials or session tokens.
    A missing snapshot is equivalent to "not signed in, pending verification".
    """

    async def load(self) -> AdminIdentity | None:
        """Load the persisted identity, if any."""
        ...

    async def save(self, admin: AdminIdentity) -> None:
        """Persist the identity, replacing any previous snapshot."""
        ...

    async def clear(self) -> None:
        """Remove the persisted identity."""
        ...


@runtime_checkable
class AvatarStorage(Protocol):
    """Object storage for profile pictures."""

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``path`` and return its public URL."""
        ...
