"""Sign-in credentials and their sessions."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from maikedah_admin.models.base import BaseModel


class AdminCredential(BaseModel):
    """Email and bcrypt password hash."""

    __tablename__ = "admin_credentials"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)


class AdminSession(BaseModel):
    """A backend session; only the SHA-256 hash of its token is stored."""

    __tablename__ = "admin_sessions"

    credential_id: Mapped[UUID] = mapped_column(
        ForeignKey("admin_credentials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)


class AdminPasswordReset(BaseModel):
    """A one-time password reset token, stored as its SHA-256 hash."""

    __tablename__ = "admin_password_resets"

    credential_id: Mapped[UUID] = mapped_column(
        ForeignKey("admin_credentials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(nullable=True)
