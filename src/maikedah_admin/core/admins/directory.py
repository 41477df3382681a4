"""Read/write access to admin identity records.

The directory validates field shapes and nothing else. Who may read or
change which record is decided by the workflow components and the session
manager.
"""

from __future__ import annotations

import time
from typing import Any
from uuid import UUID

import structlog

from maikedah_admin.config import DEFAULT_AVATAR_MAX_BYTES
from maikedah_admin.core.admins.repository import AdminBackend, AdminDirectoryRepository
from maikedah_admin.core.admins.types import AdminIdentity, AdminRole, StaffCount
from maikedah_admin.core.admins.validation import (
    check_full_name,
    check_phone,
    raise_if_invalid,
    validate_email,
)
from maikedah_admin.core.exceptions import ValidationError
from maikedah_admin.core.interfaces import AvatarStorage

logger = structlog.get_logger()

AVATAR_CONTENT_TYPES: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


class AdminDirectoryService:
    """Directory of admin identities."""

    def __init__(
        self,
        repo: AdminDirectoryRepository,
        avatars: AvatarStorage | None = None,
        avatar_max_bytes: int = DEFAULT_AVATAR_MAX_BYTES,
    ) -> None:
        """Initialize the directory.

        Args:
            repo: Identity repository.
            avatars: Storage for profile pictures; avatar uploads fail without it.
            avatar_max_bytes: Largest accepted profile picture.
        """
        self._repo = repo
        self._avatars = avatars
        self._avatar_max_bytes = avatar_max_bytes

    def within(self, tx: AdminBackend) -> AdminDirectoryService:
        """Return a directory that reads and writes through an open atomic unit."""
        return AdminDirectoryService(tx.directory, self._avatars, self._avatar_max_bytes)

    async def list_pending(self) -> list[AdminIdentity]:
        """Open registration requests, most recent first. Rejected requests are excluded."""
        return await self._repo.list_pending()

    async def list_organization_admins(self) -> list[AdminIdentity]:
        """Approved organization admins, newest first."""
        return await self._repo.list_by_role(AdminRole.ORG_ADMIN)

    async def list_staff(self, parent_id: UUID) -> list[AdminIdentity]:
        """Staff invited by an organization admin, newest first."""
        return await self._repo.list_staff(parent_id)

    async def list_staff_counts(self) -> list[StaffCount]:
        """Organization admins with the size of their staff."""
        admins = await self.list_organization_admins()
        return [
            StaffCount(admin=admin, staff_count=await self._repo.count_staff(admin.id))
            for admin in admins
        ]

    async def get_by_id(self, admin_id: UUID) -> AdminIdentity | None:
        """Get an identity, or None when it does not exist."""
        return await self._repo.get_admin(admin_id)

    async def get_by_email(self, email: str) -> AdminIdentity | None:
        """Get an identity by email, or None when it does not exist.

        Raises:
            ValidationError: If the email is malformed.
        """
        return await self._repo.get_admin_by_email(validate_email(email))

    async def count_staff(self, parent_id: UUID) -> int:
        """Number of staff under an organization admin."""
        return await self._repo.count_staff(parent_id)

    # Raw writes used by the workflow components inside their atomic units

    async def lock(self, admin_id: UUID) -> AdminIdentity | None:
        """Get an identity and lock it until the enclosing atomic unit ends."""
        return await self._repo.get_admin(admin_id, for_update=True)

    async def create(self, admin: AdminIdentity) -> AdminIdentity:
        """Insert an identity; idempotent on its ID.

        Raises:
            ConflictError: If the email is already in use.
        """
        return await self._repo.insert_admin(admin)

    async def apply_changes(
        self,
        admin_id: UUID,
        changes: dict[str, Any],
        expected_role: AdminRole | None = None,
    ) -> AdminIdentity | None:
        """Write fields verbatim; None when missing or the role differs."""
        return await self._repo.update_admin(admin_id, changes, expected_role=expected_role)

    async def delete(self, admin_ids: list[UUID]) -> int:
        """Delete identities and return how many were removed."""
        if not admin_ids:
            return 0
        return await self._repo.delete_admins(admin_ids)

    async def update_profile(
        self,
        admin_id: UUID,
        full_name: str | None = None,
        phone: str | None = None,
    ) -> AdminIdentity | None:
        """Update self-editable profile fields.

        Args:
            admin_id: Identity to update.
            full_name: New display name; None leaves it unchanged.
            phone: New phone number; None leaves it unchanged, "" clears it.

        Returns:
            The updated identity, or None when it does not exist.

        Raises:
            ValidationError: If a supplied field is malformed.
        """
        errors: dict[str, str] = {}
        changes: dict[str, Any] = {}
        if full_name is not None:
            changes["full_name"] = check_full_name(full_name, errors)
        if phone is not None:
            changes["phone"] = check_phone(phone, errors)
        raise_if_invalid(errors)

        if not changes:
            return await self._repo.get_admin(admin_id)

        updated = await self._repo.update_admin(admin_id, changes)
        if updated is not None:
            logger.info("admin_profile_updated", admin_id=str(admin_id), fields=sorted(changes))
        return updated

    async def update_avatar(
        self, admin_id: UUID, image: bytes, content_type: str
    ) -> AdminIdentity | None:
        """Upload a profile picture and point the identity at it.

        Args:
            admin_id: Identity to update.
            image: Raw image bytes.
            content_type: MIME type of the image.

        Returns:
            The updated identity, or None when it does not exist.

        Raises:
            ValidationError: If the image is empty, too large or not an image.
        """
        extension = AVATAR_CONTENT_TYPES.get(content_type.lower())
        if extension is None:
            raise ValidationError({"avatar": "Please upload a PNG, JPEG, WebP or GIF image"})
        if not image:
            raise ValidationError({"avatar": "Image is empty"})
        if len(image) > self._avatar_max_bytes:
            raise ValidationError(
                {"avatar": f"Image must be at most {self._avatar_max_bytes // 1024} KB"}
            )
        if self._avatars is None:
            raise RuntimeError("Avatar storage not configured")

        if await self._repo.get_admin(admin_id) is None:
            return None

        path = f"avatars/{admin_id}-{int(time.time() * 1000)}.{extension}"
        url = await self._avatars.upload(path, image, content_type.lower())
        updated = await self._repo.update_admin(admin_id, {"avatar_url": url})
        if updated is not None:
            logger.info("admin_avatar_updated", admin_id=str(admin_id), path=path)
        return updated
