"""Public operation surface of the admin dashboard.

Every operation returns an OperationResult instead of raising, so a UI can
render ``error`` directly and offer "retry" exactly when ``retryable`` is
set. The acting admin is always the one signed in to the session manager;
callers never pass an actor ID.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar
from uuid import UUID

import asyncpg
import structlog
from pydantic import BaseModel, ConfigDict

from maikedah_admin.adapters.memory import InMemoryAdminBackend, InMemoryCredentialProvider
from maikedah_admin.adapters.postgres import (
    PostgresAdminBackend,
    PostgresCredentialProvider,
    ensure_schema,
)
from maikedah_admin.adapters.storage import FilesystemAvatarStorage, FileSnapshotStore
from maikedah_admin.config import Settings, get_settings
from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.approval import ApprovalWorkflow
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.hierarchy import OrganizationHierarchyManager
from maikedah_admin.core.admins.invitation import StaffInvitationService
from maikedah_admin.core.admins.repository import AdminBackend
from maikedah_admin.core.admins.session import AuthSessionManager
from maikedah_admin.core.admins.types import AdminIdentity
from maikedah_admin.core.auth.provider import CredentialProvider
from maikedah_admin.core.exceptions import (
    AdminCoreError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from maikedah_admin.core.interfaces import AvatarStorage, SessionSnapshotStore

logger = structlog.get_logger()

T = TypeVar("T")


class OperationResult(BaseModel):
    """Uniform ``{success, error?, data?}`` result of a console operation.

    Attributes:
        success: Whether the operation completed.
        data: Operation payload on success.
        error: User-facing message on failure.
        error_code: Stable code of the failure class.
        retryable: Whether re-invoking the same call may succeed.
        field_errors: Per-field messages for validation failures.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None
    retryable: bool = False
    field_errors: dict[str, str] | None = None

    @classmethod
    def ok(cls, data: Any = None) -> OperationResult:
        """Successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: AdminCoreError) -> OperationResult:
        """Failed result describing ``error``."""
        return cls(
            success=False,
            error=str(error),
            error_code=error.code,
            retryable=error.retryable,
            field_errors=error.errors if isinstance(error, ValidationError) else None,
        )


class AdminConsole:
    """Facade over the session manager and the workflow components."""

    def __init__(
        self,
        session: AuthSessionManager,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        approvals: ApprovalWorkflow,
        hierarchy: OrganizationHierarchyManager,
        invitations: StaffInvitationService,
    ) -> None:
        """Initialize the console.

        Args:
            session: Session manager of this client.
            directory: Identity directory.
            audit: Activity log.
            approvals: Registration approval workflow.
            hierarchy: Organization hierarchy manager.
            invitations: Staff invitation service.
        """
        self.session = session
        self._directory = directory
        self._audit = audit
        self._approvals = approvals
        self._hierarchy = hierarchy
        self._invitations = invitations

    @classmethod
    def assemble(
        cls,
        backend: AdminBackend,
        credentials: CredentialProvider,
        snapshots: SessionSnapshotStore,
        avatars: AvatarStorage | None = None,
        settings: Settings | None = None,
    ) -> AdminConsole:
        """Wire the components over one backend and credential provider."""
        settings = settings or Settings()
        directory = AdminDirectoryService(
            backend.directory, avatars=avatars, avatar_max_bytes=settings.avatar_max_bytes
        )
        audit = ActivityAuditLog(backend.activity)
        return cls(
            session=AuthSessionManager(
                credentials,
                directory,
                audit,
                snapshots,
                hydration_timeout=settings.hydration_timeout_seconds,
            ),
            directory=directory,
            audit=audit,
            approvals=ApprovalWorkflow(backend, directory, audit),
            hierarchy=OrganizationHierarchyManager(backend, directory, audit, credentials),
            invitations=StaffInvitationService(
                backend,
                directory,
                audit,
                credentials,
                temp_password_length=settings.temp_password_length,
            ),
        )

    async def _run(self, operation: str, call: Callable[[], Awaitable[T]]) -> OperationResult:
        try:
            data = await call()
        except AdminCoreError as e:
            log = logger.warning if e.retryable else logger.info
            log("console_operation_failed", operation=operation, error_code=e.code)
            return OperationResult.failure(e)
        return OperationResult.ok(data)

    def _actor(self) -> AdminIdentity:
        """The signed-in, approved admin acting through the console."""
        admin = self.session.require_admin()
        if not self.session.state.is_authenticated:
            raise AuthorizationError("Your account is not approved yet")
        return admin

    # Session

    async def hydrate(self) -> OperationResult:
        """Restore the session at startup; data is the resulting SessionState."""
        return await self._run("hydrate", self.session.hydrate)

    async def login(self, email: str, password: str) -> OperationResult:
        """Sign in; data is the AdminIdentity."""
        return await self._run("login", lambda: self.session.login(email, password))

    async def logout(self) -> OperationResult:
        """Sign out. Always succeeds."""
        return await self._run("logout", self.session.logout)

    async def register(
        self,
        email: str,
        password: str,
        full_name: str,
        organization_name: str,
        organization_type: str,
        request_reason: str,
    ) -> OperationResult:
        """Request access for a new organization; data is the pending identity."""
        return await self._run(
            "register",
            lambda: self.session.register(
                email, password, full_name, organization_name, organization_type, request_reason
            ),
        )

    async def refresh(self) -> OperationResult:
        """Re-fetch the signed-in identity; data is the identity or None."""
        return await self._run("refresh", self.session.refresh)

    async def update_profile(
        self, full_name: str | None = None, phone: str | None = None
    ) -> OperationResult:
        """Edit the signed-in admin's name or phone."""
        return await self._run(
            "update_profile",
            lambda: self.session.update_profile(full_name=full_name, phone=phone),
        )

    async def update_avatar(self, image: bytes, content_type: str) -> OperationResult:
        """Replace the signed-in admin's profile picture."""
        return await self._run(
            "update_avatar", lambda: self.session.update_avatar(image, content_type)
        )

    async def change_password(self, current_password: str, new_password: str) -> OperationResult:
        """Change the signed-in admin's password."""
        return await self._run(
            "change_password",
            lambda: self.session.change_password(current_password, new_password),
        )

    async def request_password_reset(self, email: str) -> OperationResult:
        """Issue a reset token; data is the token, or None for an unknown email.

        The token goes to the user out of band. Anything shown on screen must
        not reveal whether the email was known.
        """
        return await self._run(
            "request_password_reset", lambda: self.session.request_password_reset(email)
        )

    async def reset_password(self, token: str, new_password: str) -> OperationResult:
        """Set a new password with a reset token."""
        return await self._run(
            "reset_password", lambda: self.session.reset_password(token, new_password)
        )

    # Directory

    async def list_pending(self) -> OperationResult:
        """Open registration requests. Super admins only."""

        async def call() -> list[AdminIdentity]:
            self._actor()
            if not self.session.capabilities.can_approve_admins:
                raise AuthorizationError("Only a super admin can review registration requests")
            return await self._directory.list_pending()

        return await self._run("list_pending", call)

    async def list_organization_admins(self) -> OperationResult:
        """Organization admins with their staff counts. Super admins only."""

        async def call() -> list[Any]:
            self._actor()
            if not self.session.capabilities.can_manage_org_admins:
                raise AuthorizationError("Only a super admin can list organization admins")
            return await self._directory.list_staff_counts()

        return await self._run("list_organization_admins", call)

    async def list_staff(self, parent_id: UUID | None = None) -> OperationResult:
        """Staff of an organization admin; defaults to the caller's own staff."""

        async def call() -> list[AdminIdentity]:
            actor = self._actor()
            capabilities = self.session.capabilities
            target = parent_id or actor.id
            if not (
                capabilities.can_manage_any_staff
                or (capabilities.can_manage_own_staff and target == actor.id)
            ):
                raise AuthorizationError("You can only view staff of your own organization")
            return await self._directory.list_staff(target)

        return await self._run("list_staff", call)

    async def get_admin(self, admin_id: UUID) -> OperationResult:
        """One identity by ID; not_found when absent."""

        async def call() -> AdminIdentity:
            self._actor()
            admin = await self._directory.get_by_id(admin_id)
            if admin is None:
                raise NotFoundError(f"Admin {admin_id} not found")
            return admin

        return await self._run("get_admin", call)

    # Workflows

    async def approve(self, pending_admin_id: UUID) -> OperationResult:
        """Approve a registration request; data is the new organization admin."""
        return await self._run(
            "approve",
            lambda: self._approvals.approve(pending_admin_id, self._actor().id),
        )

    async def reject(self, pending_admin_id: UUID, reason: str) -> OperationResult:
        """Reject a registration request with a reason."""
        return await self._run(
            "reject",
            lambda: self._approvals.reject(pending_admin_id, self._actor().id, reason),
        )

    async def delete_organization_admin(self, admin_id: UUID) -> OperationResult:
        """Delete an organization admin and its staff; data is a CascadeDeleteResult."""
        return await self._run(
            "delete_organization_admin",
            lambda: self._hierarchy.delete_organization_admin(admin_id, self._actor().id),
        )

    async def delete_staff_member(self, staff_id: UUID) -> OperationResult:
        """Delete one staff member."""
        return await self._run(
            "delete_staff_member",
            lambda: self._hierarchy.delete_staff_member(staff_id, self._actor().id),
        )

    async def invite_staff(
        self,
        email: str,
        full_name: str,
        parent_admin_id: UUID | None = None,
        organization_id: UUID | None = None,
        organization_name: str | None = None,
    ) -> OperationResult:
        """Invite a staff member into the caller's organization.

        The temporary password in ``data`` is shown once and never again.
        """

        async def call() -> Any:
            actor = self._actor()
            if parent_admin_id is not None and parent_admin_id != actor.id:
                raise AuthorizationError("You can only invite staff as yourself")
            return await self._invitations.invite_staff(
                email,
                full_name,
                parent_admin_id=actor.id,
                organization_id=organization_id,
                organization_name=organization_name,
            )

        return await self._run("invite_staff", call)

    async def recent_activity(self, limit: int = 20) -> OperationResult:
        """Latest activity: every actor's for super admins, otherwise the caller's own."""

        async def call() -> list[Any]:
            actor = self._actor()
            if self.session.capabilities.can_view_all_activity:
                return await self._audit.query(limit=limit)
            return await self._audit.query(admin_id=actor.id, limit=limit)

        return await self._run("recent_activity", call)


@asynccontextmanager
async def open_console(settings: Settings | None = None) -> AsyncIterator[AdminConsole]:
    """Build a console from settings and release its resources on exit.

    With ``DATABASE_URL`` set the PostgreSQL backend is used (and its schema
    created if missing); otherwise everything lives in memory.
    """
    settings = settings or get_settings()
    snapshots = FileSnapshotStore(settings.session_dir, settings.session_key)
    avatars = FilesystemAvatarStorage(settings.avatar_dir, settings.avatar_base_url)

    if settings.database_url is None:
        logger.info("console_backend_selected", backend="memory")
        yield AdminConsole.assemble(
            InMemoryAdminBackend(),
            InMemoryCredentialProvider(session_ttl_hours=settings.session_ttl_hours),
            snapshots,
            avatars,
            settings,
        )
        return

    pool = await asyncpg.create_pool(settings.database_url, min_size=1, max_size=5)
    try:
        await ensure_schema(pool)
        logger.info("console_backend_selected", backend="postgres")
        yield AdminConsole.assemble(
            PostgresAdminBackend(pool),
            PostgresCredentialProvider(
                pool,
                token_path=settings.session_dir / f"{settings.session_key}.token",
                session_ttl_hours=settings.session_ttl_hours,
            ),
            snapshots,
            avatars,
            settings,
        )
    finally:
        await pool.close()
