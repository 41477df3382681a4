"""Append-only log of privileged admin actions."""

from typing import Any
from uuid import UUID

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from maikedah_admin.models.base import BaseModel


class AdminActivityLog(BaseModel):
    """Activity log entry.

    No foreign key to admin_users: entries outlive the identities they name.
    """

    __tablename__ = "admin_activity_logs"

    admin_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # "approve_admin"
    target_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
