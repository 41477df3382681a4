"""Session management for the signed-in admin.

The manager is the single owner of "who am I". It starts UNINITIALIZED,
hydrates once per process, and from then on moves between AUTHENTICATED,
PENDING_APPROVAL and UNAUTHENTICATED through login, logout, registration
and refresh. Pass the manager to whatever needs the current identity; there
is no module-level current admin.

State diagram::

    UNINITIALIZED -> HYDRATING -> AUTHENTICATED
                                | PENDING_APPROVAL
                                | UNAUTHENTICATED
                                | CONNECTIVITY_ERROR (bounded wait expired)

A verification result that arrives after the bounded wait still updates
the state, so a slow backend never locks the user out for good.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

import structlog

from maikedah_admin.config import DEFAULT_HYDRATION_TIMEOUT_SECONDS
from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.capabilities import Capabilities, resolve_capabilities
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.types import ActivityAction, AdminIdentity, AdminRole
from maikedah_admin.core.admins.validation import (
    check_email,
    check_password,
    raise_if_invalid,
    validate_email,
    validate_registration,
)
from maikedah_admin.core.auth.provider import CredentialProvider
from maikedah_admin.core.auth.types import AuthSession
from maikedah_admin.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PendingApprovalError,
    TransientError,
)
from maikedah_admin.core.interfaces import SessionSnapshotStore

logger = structlog.get_logger()

NOT_AN_ADMIN_MESSAGE = "You are not registered as an admin. Please contact the administrator."
REJECTED_MESSAGE = "Your registration request was rejected."
CONNECTIVITY_MESSAGE = "Unable to reach the server. Check your connection and try again."


class SessionStatus(str, Enum):
    """Lifecycle states of the client session."""

    UNINITIALIZED = "uninitialized"
    HYDRATING = "hydrating"
    AUTHENTICATED = "authenticated"
    PENDING_APPROVAL = "pending_approval"
    UNAUTHENTICATED = "unauthenticated"
    CONNECTIVITY_ERROR = "connectivity_error"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the session as the UI sees it."""

    status: SessionStatus = SessionStatus.UNINITIALIZED
    admin: AdminIdentity | None = None
    is_hydrated: bool = False
    is_loading: bool = False
    error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        """Whether an approved, non-pending admin is signed in."""
        return (
            self.status is SessionStatus.AUTHENTICATED
            and self.admin is not None
            and self.admin.is_active_admin
        )


StateListener = Callable[[SessionState], None]


class AuthSessionManager:
    """Resolves, caches and changes the caller's own identity."""

    def __init__(
        self,
        credentials: CredentialProvider,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        snapshots: SessionSnapshotStore,
        hydration_timeout: float = DEFAULT_HYDRATION_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the manager in the UNINITIALIZED state.

        Args:
            credentials: Provider owning credentials and the backend session.
            directory: Identity directory.
            audit: Activity log for informational entries.
            snapshots: Client-local store for the identity snapshot.
            hydration_timeout: Seconds to wait for hydration before reporting
                a connectivity error.
        """
        self._credentials = credentials
        self._directory = directory
        self._audit = audit
        self._snapshots = snapshots
        self._hydration_timeout = hydration_timeout
        self._state = SessionState()
        self._listeners: list[StateListener] = []
        self._hydration: asyncio.Task[None] | None = None
        # Bumped whenever the user replaces the backend session, so a slow
        # hydration cannot overwrite it.
        self._generation = 0

    # State

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def admin(self) -> AdminIdentity | None:
        """Currently cached identity, if any."""
        return self._state.admin

    @property
    def capabilities(self) -> Capabilities:
        """Capabilities of the signed-in admin; empty unless approved."""
        return resolve_capabilities(self._state.admin)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback invoked on every state change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def require_admin(self) -> AdminIdentity:
        """Return the signed-in identity (approved or pending).

        Raises:
            AuthenticationError: If nobody is signed in.
        """
        admin = self._state.admin
        if admin is None or self._state.status not in (
            SessionStatus.AUTHENTICATED,
            SessionStatus.PENDING_APPROVAL,
        ):
            raise AuthenticationError("Not authenticated")
        return admin

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("session_listener_failed", error=str(e))

    async def _apply(self, admin: AdminIdentity | None) -> None:
        """Settle on an identity (or none) and persist the snapshot accordingly."""
        if admin is None:
            status = SessionStatus.UNAUTHENTICATED
        elif admin.is_active_admin:
            status = SessionStatus.AUTHENTICATED
        else:
            status = SessionStatus.PENDING_APPROVAL

        try:
            if admin is None:
                await self._snapshots.clear()
            else:
                await self._snapshots.save(admin)
        except Exception as e:
            logger.warning("session_snapshot_write_failed", error=str(e))

        self._set_state(SessionState(status=status, admin=admin, is_hydrated=True))

    async def _end_backend_session(self) -> None:
        try:
            await self._credentials.sign_out()
        except Exception as e:
            logger.warning("sign_out_failed", error=str(e))

    async def _resolve_session(self, session: AuthSession | None) -> AdminIdentity | None:
        """Map a backend session to a usable identity.

        A session whose identity is missing or rejected is invalidated, so no
        session outlives the record it belongs to.
        """
        if session is None:
            return None
        admin = await self._directory.get_by_id(session.user_id)
        if admin is None or admin.is_rejected:
            logger.warning(
                "session_without_identity",
                user_id=str(session.user_id),
                rejected=admin is not None,
            )
            await self._end_backend_session()
            return None
        return admin

    # Hydration

    async def hydrate(self) -> SessionState:
        """Reconcile the persisted snapshot with the backend session.

        Runs the verification at most once per manager. Waits at most the
        hydration timeout; when it expires the state becomes
        CONNECTIVITY_ERROR while verification keeps running in the background.

        Returns:
            The state after hydration or after the bounded wait.
        """
        if self._hydration is None:
            self._set_state(replace(self._state, status=SessionStatus.HYDRATING, is_loading=True))
            self._hydration = asyncio.create_task(self._run_hydration())

        done, _ = await asyncio.wait({self._hydration}, timeout=self._hydration_timeout)
        if not done and self._state.status is SessionStatus.HYDRATING:
            logger.warning("session_hydration_timed_out", timeout=self._hydration_timeout)
            self._set_state(
                replace(
                    self._state,
                    status=SessionStatus.CONNECTIVITY_ERROR,
                    is_hydrated=True,
                    is_loading=False,
                    error=CONNECTIVITY_MESSAGE,
                )
            )
        return self._state

    async def _run_hydration(self) -> None:
        generation = self._generation
        verification = asyncio.create_task(self._verify())

        try:
            snapshot = await self._snapshots.load()
        except Exception as e:
            logger.warning("session_snapshot_unreadable", error=str(e))
            snapshot = None
        if snapshot is not None and self._state.status is SessionStatus.HYDRATING:
            # Provisional until verification finishes; never counts as authenticated.
            self._set_state(replace(self._state, admin=snapshot))

        try:
            admin = await verification
        except TransientError as e:
            logger.warning("session_verification_unreachable", error=str(e))
            if generation == self._generation:
                self._set_state(
                    replace(
                        self._state,
                        status=SessionStatus.CONNECTIVITY_ERROR,
                        is_hydrated=True,
                        is_loading=False,
                        error=CONNECTIVITY_MESSAGE,
                    )
                )
            return
        except Exception as e:
            logger.error("session_verification_failed", error=str(e))
            admin = None

        if generation != self._generation:
            logger.info("session_hydration_superseded")
            return
        await self._apply(admin)
        logger.info("session_hydrated", status=self._state.status.value)

    async def _verify(self) -> AdminIdentity | None:
        return await self._resolve_session(await self._credentials.current_session())

    # Sign in / sign out

    async def login(self, email: str, password: str) -> AdminIdentity:
        """Sign in and resolve the admin identity.

        Args:
            email: Account email.
            password: Account password.

        Returns:
            The authenticated identity.

        Raises:
            ValidationError: If the email or password is missing or malformed.
            AuthenticationError: If the credentials are wrong, or no admin
                identity exists for them (the session is then signed out).
            PendingApprovalError: If the account awaits approval. The session
                is kept and the state becomes PENDING_APPROVAL.
        """
        errors: dict[str, str] = {}
        email = check_email(email, errors)
        if not password:
            errors["password"] = "Password is required"
        raise_if_invalid(errors)

        superseded = False
        self._set_state(replace(self._state, is_loading=True))
        try:
            session = await self._credentials.sign_in(email, password)
            # Only a successful sign-in outranks an in-flight hydration.
            self._generation += 1
            superseded = True
            admin = await self._directory.get_by_id(session.user_id)

            if admin is None or admin.is_rejected:
                await self._end_backend_session()
                await self._apply(None)
                logger.warning(
                    "login_refused", user_id=str(session.user_id), rejected=admin is not None
                )
                raise AuthenticationError(REJECTED_MESSAGE if admin else NOT_AN_ADMIN_MESSAGE)

            if not admin.is_active_admin:
                await self._apply(admin)
                logger.info("login_pending_approval", admin_id=str(admin.id))
                raise PendingApprovalError()

            admin = await self._touch_last_login(admin)
            await self._apply(admin)
        except Exception:
            self._settle_failed_action(superseded)
            raise

        await self._audit.record_best_effort(admin.id, ActivityAction.LOGIN)
        logger.info("login_succeeded", admin_id=str(admin.id), role=admin.role.value)
        return admin

    def _settle_failed_action(self, superseded: bool) -> None:
        """Leave no loading flag behind after a failed login or registration.

        When the action already superseded an in-flight hydration, that
        hydration's result will be discarded, so the state settles here.
        """
        if superseded and self._state.status in (
            SessionStatus.UNINITIALIZED,
            SessionStatus.HYDRATING,
        ):
            self._set_state(SessionState(status=SessionStatus.UNAUTHENTICATED, is_hydrated=True))
        elif self._state.is_loading:
            self._set_state(replace(self._state, is_loading=False))

    async def _touch_last_login(self, admin: AdminIdentity) -> AdminIdentity:
        try:
            touched = await self._directory.apply_changes(
                admin.id, {"last_login_at": datetime.now(UTC)}
            )
        except Exception as e:
            logger.warning("last_login_touch_failed", admin_id=str(admin.id), error=str(e))
            return admin
        return touched or admin

    async def logout(self) -> None:
        """Sign out. Always ends UNAUTHENTICATED with no snapshot left behind."""
        self._generation += 1
        admin = self._state.admin
        if admin is not None:
            await self._audit.record_best_effort(admin.id, ActivityAction.LOGOUT)

        await self._end_backend_session()
        try:
            await self._snapshots.clear()
        except Exception as e:
            logger.error("session_snapshot_clear_failed", error=str(e))

        self._set_state(SessionState(status=SessionStatus.UNAUTHENTICATED, is_hydrated=True))
        logger.info("logout_completed", admin_id=str(admin.id) if admin else None)

    # Registration

    async def register(
        self,
        email: str,
        password: str,
        full_name: str,
        organization_name: str,
        organization_type: str,
        request_reason: str,
    ) -> AdminIdentity:
        """Request dashboard access for a new organization.

        Creates the credential, then a pending identity keyed on the
        credential ID. If the second step fails, the credential is signed out
        and deleted so a retry starts clean. A retry after a crash between
        the two steps resumes at the second step.

        Returns:
            The pending identity. The state becomes PENDING_APPROVAL.

        Raises:
            ValidationError: If any field is invalid.
            ConflictError: If the email already belongs to an identity.
        """
        email, password, full_name, organization_name, org_type, request_reason = (
            validate_registration(
                email, password, full_name, organization_name, organization_type, request_reason
            )
        )

        try:
            session = await self._credentials.sign_up(email, password)
        except ConflictError:
            session = await self._resume_registration(email, password)
        self._generation += 1

        now = datetime.now(UTC)
        try:
            admin = await self._directory.create(
                AdminIdentity(
                    id=session.user_id,
                    email=email,
                    full_name=full_name,
                    role=AdminRole.PENDING,
                    is_approved=False,
                    organization_name=organization_name,
                    organization_type=org_type.value,
                    request_reason=request_reason,
                    requested_at=now,
                    created_at=now,
                    updated_at=now,
                )
            )
        except Exception as e:
            logger.error("registration_profile_failed", user_id=str(session.user_id), error=str(e))
            await self._roll_back_registration(session.user_id)
            await self._apply(None)
            raise

        await self._apply(admin)
        logger.info("registration_requested", admin_id=str(admin.id))
        return admin

    async def _resume_registration(self, email: str, password: str) -> AuthSession:
        """Recover from a credential that exists without an identity."""
        try:
            session = await self._credentials.sign_in(email, password)
        except AuthenticationError:
            raise ConflictError("An account with this email already exists") from None

        if await self._directory.get_by_id(session.user_id) is not None:
            await self._end_backend_session()
            # The live session was replaced by this sign-in and is gone now.
            self._generation += 1
            await self._apply(None)
            raise ConflictError("An account with this email already exists")

        logger.info("registration_resumed", user_id=str(session.user_id))
        return session

    async def _roll_back_registration(self, credential_id: UUID) -> None:
        await self._end_backend_session()
        try:
            await self._credentials.delete_credential(credential_id)
        except Exception as e:
            logger.error("registration_rollback_failed", user_id=str(credential_id), error=str(e))
            return
        logger.warning("registration_rolled_back", user_id=str(credential_id))

    # Refresh and self-service profile

    async def refresh(self) -> AdminIdentity | None:
        """Re-fetch the caller's identity and overwrite the cached snapshot.

        Returns:
            The fresh identity, or None when there is no usable session.
        """
        admin = await self._resolve_session(await self._credentials.current_session())
        await self._apply(admin)
        return admin

    async def update_profile(
        self, full_name: str | None = None, phone: str | None = None
    ) -> AdminIdentity:
        """Edit the signed-in admin's own profile.

        Raises:
            AuthenticationError: If nobody is signed in.
            ValidationError: If a field is malformed.
            NotFoundError: If the identity disappeared.
        """
        admin = self.require_admin()
        updated = await self._directory.update_profile(admin.id, full_name=full_name, phone=phone)
        if updated is None:
            raise NotFoundError("Your admin profile no longer exists")

        supplied = {"full_name": full_name, "phone": phone}
        fields = [name for name, value in supplied.items() if value is not None]
        await self._audit.record_best_effort(
            admin.id, ActivityAction.UPDATE_PROFILE, details={"fields": fields}
        )
        return await self._refreshed_or(updated)

    async def update_avatar(self, image: bytes, content_type: str) -> AdminIdentity:
        """Replace the signed-in admin's profile picture.

        Raises:
            AuthenticationError: If nobody is signed in.
            ValidationError: If the image is rejected.
            NotFoundError: If the identity disappeared.
        """
        admin = self.require_admin()
        updated = await self._directory.update_avatar(admin.id, image, content_type)
        if updated is None:
            raise NotFoundError("Your admin profile no longer exists")

        await self._audit.record_best_effort(
            admin.id, ActivityAction.UPDATE_PROFILE, details={"fields": ["avatar_url"]}
        )
        return await self._refreshed_or(updated)

    async def change_password(self, current_password: str, new_password: str) -> None:
        """Change the signed-in admin's password.

        Raises:
            AuthenticationError: If nobody is signed in or the current
                password is wrong.
            ValidationError: If the new password is too short or unchanged.
        """
        admin = self.require_admin()
        errors: dict[str, str] = {}
        if not current_password:
            errors["current_password"] = "Current password is required"
        check_password(new_password, errors, field="new_password")
        if current_password and new_password and current_password == new_password:
            errors["new_password"] = "New password must be different from current"
        raise_if_invalid(errors)

        await self._credentials.update_password(admin.id, current_password, new_password)
        await self._audit.record_best_effort(admin.id, ActivityAction.CHANGE_PASSWORD)
        logger.info("password_changed", admin_id=str(admin.id))

    # Password reset

    async def request_password_reset(self, email: str) -> str | None:
        """Issue a password reset token for an email address.

        The caller delivers the token out of band and must answer the same
        way whether or not the email is known.

        Returns:
            The reset token, or None when no credential has this email.

        Raises:
            ValidationError: If the email is missing or malformed.
        """
        email = validate_email(email)
        token = await self._credentials.issue_password_reset(email)
        logger.info("password_reset_requested", known=token is not None)
        return token

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password with a reset token.

        Every session of the account ends; when it is the cached one the
        state becomes UNAUTHENTICATED and the user signs in again.

        Raises:
            ValidationError: If the token is missing or the password is invalid.
            AuthenticationError: If the token is unknown, used or expired.
        """
        errors: dict[str, str] = {}
        if not token:
            errors["token"] = "Reset token is required"
        check_password(new_password, errors, field="new_password")
        raise_if_invalid(errors)

        credential_id = await self._credentials.reset_password(token, new_password)
        await self._audit.record_best_effort(
            credential_id, ActivityAction.CHANGE_PASSWORD, details={"method": "reset"}
        )
        if self._state.admin is not None and self._state.admin.id == credential_id:
            self._generation += 1
            await self._apply(None)
        logger.info("password_reset_completed", admin_id=str(credential_id))

    async def _refreshed_or(self, fallback: AdminIdentity) -> AdminIdentity:
        try:
            refreshed = await self.refresh()
        except TransientError as e:
            logger.warning("session_refresh_failed", error=str(e))
            await self._apply(fallback)
            return fallback
        if refreshed is None:
            raise AuthenticationError("Your session has ended. Please sign in again.")
        return refreshed
