"""Admin identity table."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from maikedah_admin.models.base import BaseModel


class AdminUser(BaseModel):
    """One operator account, keyed on its credential ID."""

    __tablename__ = "admin_users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    is_approved: Mapped[bool] = mapped_column(nullable=False, default=False)

    # Organization
    organization_id: Mapped[UUID | None] = mapped_column(index=True)
    organization_name: Mapped[str | None] = mapped_column(String(200))
    organization_type: Mapped[str | None] = mapped_column(String(50))
    parent_admin_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("admin_users.id", ondelete="RESTRICT"), index=True
    )

    # Registration review
    approved_by: Mapped[UUID | None] = mapped_column()
    approved_at: Mapped[datetime | None] = mapped_column()
    requested_at: Mapped[datetime | None] = mapped_column()
    request_reason: Mapped[str | None] = mapped_column(Text)
    rejected_by: Mapped[UUID | None] = mapped_column()
    rejected_at: Mapped[datetime | None] = mapped_column()
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    # Profile
    avatar_url: Mapped[str | None] = mapped_column(String(500))
    phone: Mapped[str | None] = mapped_column(String(30))
    last_login_at: Mapped[datetime | None] = mapped_column()
    updated_at: Mapped[datetime | None] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('pending', 'org_admin', 'org_staff', 'super_admin')",
            name="role_known",
        ),
        CheckConstraint("role <> 'pending' OR is_approved = false", name="pending_unapproved"),
        CheckConstraint(
            "role <> 'org_staff' OR parent_admin_id IS NOT NULL",
            name="staff_has_parent",
        ),
        CheckConstraint("role = 'pending' OR rejected_at IS NULL", name="only_pending_rejected"),
    )
