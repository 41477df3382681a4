"""Admin identity domain types.

All records are frozen Pydantic models. Mutations go through the directory
repository and come back as new instances.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator


class AdminRole(str, Enum):
    """Operator roles."""

    PENDING = "pending"
    ORG_ADMIN = "org_admin"
    ORG_STAFF = "org_staff"
    SUPER_ADMIN = "super_admin"


class OrganizationType(str, Enum):
    """Kinds of organization that may request dashboard access."""

    GOVERNMENT = "government"
    TOURISM_BOARD = "tourism_board"
    TRAVEL_AGENCY = "travel_agency"
    HOTEL_ASSOCIATION = "hotel_association"
    TOUR_OPERATOR = "tour_operator"
    NGO = "ngo"
    EDUCATIONAL = "educational"
    OTHER = "other"


class ActivityAction(str, Enum):
    """Closed set of actions recorded in the activity log."""

    LOGIN = "login"
    LOGOUT = "logout"
    INVITE_STAFF = "invite_staff"
    APPROVE_ADMIN = "approve_admin"
    REJECT_ADMIN = "reject_admin"
    DELETE_STAFF = "delete_staff"
    DELETE_ORG_ADMIN = "delete_org_admin"
    UPDATE_PROFILE = "update_profile"
    CHANGE_PASSWORD = "change_password"


class AdminIdentity(BaseModel):
    """One operator account.

    The role invariants that can be checked on a single record are enforced
    at construction; the ones that need other records (a staff member's parent
    exists and shares its organization, approved_by is a super admin) are
    enforced by the workflow components that create and mutate identities.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str
    full_name: str | None = None
    role: AdminRole
    is_approved: bool = False
    organization_id: UUID | None = None
    organization_name: str | None = None
    organization_type: str | None = None
    parent_admin_id: UUID | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    requested_at: datetime | None = None
    request_reason: str | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _check_role_invariants(self) -> AdminIdentity:
        if self.role is AdminRole.PENDING:
            if self.is_approved or self.approved_by or self.approved_at:
                raise ValueError("pending identities cannot carry approval fields")
        elif self.rejected_at is not None:
            raise ValueError("only pending identities can be rejected")

        if self.role is AdminRole.ORG_ADMIN:
            if not self.is_approved or self.parent_admin_id is not None:
                raise ValueError("org_admin must be approved and have no parent")
            if self.organization_id is None or not self.organization_name:
                raise ValueError("org_admin must belong to an organization")

        if self.role is AdminRole.ORG_STAFF:
            if not self.is_approved or self.parent_admin_id is None:
                raise ValueError("org_staff must be approved and have a parent admin")

        return self

    @property
    def is_rejected(self) -> bool:
        """Whether the registration request ended in rejection."""
        return self.rejected_at is not None

    @property
    def is_active_admin(self) -> bool:
        """Whether the identity may use the dashboard."""
        return self.is_approved and self.role is not AdminRole.PENDING


class StaffCount(BaseModel):
    """An organization admin together with the number of staff it manages."""

    model_config = ConfigDict(frozen=True)

    admin: AdminIdentity
    staff_count: int


class ActivityLogCreate(BaseModel):
    """Request to append an activity log entry."""

    model_config = ConfigDict(frozen=True)

    admin_id: UUID
    action: ActivityAction
    target_user_id: UUID | None = None
    details: dict[str, Any] | None = None


class ActivityLogEntry(BaseModel):
    """Activity log entry as stored."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    admin_id: UUID
    action: ActivityAction
    target_user_id: UUID | None = None
    details: dict[str, Any] | None = None
    created_at: datetime


class CascadeDeleteResult(BaseModel):
    """Outcome of deleting an organization admin and its staff."""

    model_config = ConfigDict(frozen=True)

    success: bool
    deleted_staff_count: int
    removed_staff_ids: list[UUID] = []
