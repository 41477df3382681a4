"""Tests for AuthSessionManager."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from maikedah_admin.adapters.memory import InMemoryAdminBackend, InMemoryCredentialProvider
from maikedah_admin.adapters.storage import MemorySnapshotStore
from maikedah_admin.core.admins.activity import ActivityAuditLog
from maikedah_admin.core.admins.approval import ApprovalWorkflow
from maikedah_admin.core.admins.directory import AdminDirectoryService
from maikedah_admin.core.admins.session import (
    NOT_AN_ADMIN_MESSAGE,
    AuthSessionManager,
    SessionState,
    SessionStatus,
)
from maikedah_admin.core.admins.types import ActivityAction, AdminIdentity, AdminRole
from maikedah_admin.core.auth.types import AuthSession
from maikedah_admin.core.exceptions import (
    AuthenticationError,
    ConflictError,
    PendingApprovalError,
    TransientError,
    ValidationError,
)
from tests.fixtures.admins import PASSWORD, REQUEST_REASON


async def register_carol(session: AuthSessionManager) -> AdminIdentity:
    """Submit a valid registration request."""
    return await session.register(
        "carol@x.com", PASSWORD, "Carol", "Langkawi Homestays", "travel_agency", REQUEST_REASON
    )


class TestHydrate:
    """Startup hydration."""

    async def test_no_session_is_unauthenticated(self, session: AuthSessionManager) -> None:
        """Without a backend session hydration settles on UNAUTHENTICATED."""
        assert session.state.status is SessionStatus.UNINITIALIZED

        state = await session.hydrate()

        assert state.status is SessionStatus.UNAUTHENTICATED
        assert state.is_hydrated is True
        assert state.is_loading is False
        assert state.admin is None

    async def test_hydration_runs_once(
        self, session: AuthSessionManager, credentials: InMemoryCredentialProvider
    ) -> None:
        """Concurrent and repeated hydrate calls verify the session once."""
        spy = AsyncMock(wraps=credentials.current_session)
        credentials.current_session = spy  # type: ignore[method-assign]

        await asyncio.gather(session.hydrate(), session.hydrate(), session.hydrate())
        await session.hydrate()

        assert spy.await_count == 1

    async def test_restores_approved_admin(
        self,
        credentials: InMemoryCredentialProvider,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
        session: AuthSessionManager,
        org_admin: AdminIdentity,
    ) -> None:
        """A restarted client resumes the live session."""
        await session.login("alice@x.com", PASSWORD)

        restarted = AuthSessionManager(credentials, directory, audit, snapshots)
        state = await restarted.hydrate()

        assert state.status is SessionStatus.AUTHENTICATED
        assert state.is_authenticated
        assert state.admin is not None
        assert state.admin.id == org_admin.id

    async def test_session_without_identity_is_signed_out(
        self,
        backend: InMemoryAdminBackend,
        credentials: InMemoryCredentialProvider,
        session: AuthSessionManager,
        org_admin: AdminIdentity,
    ) -> None:
        """A session never outlives its identity record."""
        await credentials.sign_in("alice@x.com", PASSWORD)
        await backend.directory.delete_admins([org_admin.id])

        state = await session.hydrate()

        assert state.status is SessionStatus.UNAUTHENTICATED
        assert await credentials.current_session() is None

    async def test_stale_snapshot_is_cleared(
        self,
        snapshots: MemorySnapshotStore,
        session: AuthSessionManager,
        org_admin: AdminIdentity,
    ) -> None:
        """A snapshot without a live session does not authenticate."""
        snapshots.admin = org_admin

        state = await session.hydrate()

        assert state.status is SessionStatus.UNAUTHENTICATED
        assert snapshots.admin is None

    async def test_unreachable_backend(
        self, credentials: InMemoryCredentialProvider, session: AuthSessionManager
    ) -> None:
        """A transient verification failure surfaces as a connectivity error."""
        credentials.current_session = AsyncMock(  # type: ignore[method-assign]
            side_effect=TransientError("offline")
        )

        state = await session.hydrate()

        assert state.status is SessionStatus.CONNECTIVITY_ERROR
        assert state.error is not None
        assert not state.is_authenticated

    async def test_timeout_then_late_success(
        self,
        credentials: InMemoryCredentialProvider,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
        org_admin: AdminIdentity,
    ) -> None:
        """The bounded wait reports an error, and a late result still lands."""
        live = await credentials.sign_in("alice@x.com", PASSWORD)
        release = asyncio.Event()

        async def slow_session() -> AuthSession:
            await release.wait()
            return live

        credentials.current_session = slow_session  # type: ignore[method-assign]
        manager = AuthSessionManager(
            credentials, directory, audit, snapshots, hydration_timeout=0.05
        )

        first = await manager.hydrate()
        assert first.status is SessionStatus.CONNECTIVITY_ERROR
        assert first.is_loading is False

        release.set()
        final = await manager.hydrate()

        assert final.status is SessionStatus.AUTHENTICATED
        assert final.error is None

    async def test_login_supersedes_slow_hydration(
        self,
        credentials: InMemoryCredentialProvider,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
        org_admin: AdminIdentity,
    ) -> None:
        """A verification that finishes after a login does not overwrite it."""
        release = asyncio.Event()

        async def slow_session() -> None:
            await release.wait()
            return None

        manager = AuthSessionManager(
            credentials, directory, audit, snapshots, hydration_timeout=0.05
        )
        original = credentials.current_session
        credentials.current_session = slow_session  # type: ignore[method-assign]
        await manager.hydrate()

        credentials.current_session = original  # type: ignore[method-assign]
        await manager.login("alice@x.com", PASSWORD)
        release.set()
        await manager.hydrate()

        assert manager.state.status is SessionStatus.AUTHENTICATED

    async def test_failed_login_does_not_discard_hydration(
        self,
        credentials: InMemoryCredentialProvider,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
        org_admin: AdminIdentity,
    ) -> None:
        """A wrong password during hydration leaves the verification in charge."""
        live = await credentials.sign_in("alice@x.com", PASSWORD)
        release = asyncio.Event()

        async def slow_session() -> AuthSession:
            await release.wait()
            return live

        credentials.current_session = slow_session  # type: ignore[method-assign]
        manager = AuthSessionManager(credentials, directory, audit, snapshots, hydration_timeout=5)
        hydration = asyncio.create_task(manager.hydrate())
        while manager.state.status is not SessionStatus.HYDRATING:
            await asyncio.sleep(0)

        with pytest.raises(AuthenticationError):
            await manager.login("alice@x.com", "wrong-password")
        release.set()
        state = await hydration

        assert state.status is SessionStatus.AUTHENTICATED
        assert state.is_hydrated is True
        assert state.is_loading is False

    async def test_login_failing_after_sign_in_settles_hydration(
        self,
        credentials: InMemoryCredentialProvider,
        directory: AdminDirectoryService,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
        org_admin: AdminIdentity,
    ) -> None:
        """A login that replaced the session but then failed never leaves HYDRATING."""
        release = asyncio.Event()

        async def slow_session() -> None:
            await release.wait()
            return None

        credentials.current_session = slow_session  # type: ignore[method-assign]
        manager = AuthSessionManager(credentials, directory, audit, snapshots, hydration_timeout=5)
        hydration = asyncio.create_task(manager.hydrate())
        while manager.state.status is not SessionStatus.HYDRATING:
            await asyncio.sleep(0)

        directory.get_by_id = AsyncMock(  # type: ignore[method-assign]
            side_effect=TransientError("offline")
        )
        with pytest.raises(TransientError):
            await manager.login("alice@x.com", PASSWORD)
        release.set()
        state = await hydration

        assert state.status is SessionStatus.UNAUTHENTICATED
        assert state.is_hydrated is True
        assert state.is_loading is False


class TestLogin:
    """Sign in."""

    async def test_login_approved_admin(
        self,
        session: AuthSessionManager,
        snapshots: MemorySnapshotStore,
        audit: ActivityAuditLog,
        org_admin: AdminIdentity,
    ) -> None:
        """Approved admins become AUTHENTICATED with a fresh last_login_at."""
        admin = await session.login("ALICE@x.com", PASSWORD)

        assert admin.id == org_admin.id
        assert admin.last_login_at is not None
        assert session.state.status is SessionStatus.AUTHENTICATED
        assert session.capabilities.can_invite_staff
        assert snapshots.admin == admin
        (entry,) = await audit.query(admin_id=org_admin.id)
        assert entry.action is ActivityAction.LOGIN

    async def test_login_pending_keeps_session(
        self,
        session: AuthSessionManager,
        credentials: InMemoryCredentialProvider,
        pending_admin: AdminIdentity,
    ) -> None:
        """Pending accounts get a distinct error and stay signed in."""
        await session.hydrate()

        with pytest.raises(PendingApprovalError):
            await session.login("carol@x.com", PASSWORD)

        assert session.state.status is SessionStatus.PENDING_APPROVAL
        assert not session.state.is_authenticated
        assert session.state.is_loading is False
        assert await credentials.current_session() is not None
        assert not session.capabilities.can_invite_staff

    async def test_wrong_password(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """Bad credentials raise AuthenticationError and leave the state alone."""
        await session.hydrate()

        with pytest.raises(AuthenticationError):
            await session.login("alice@x.com", "wrong-password")

        assert session.state.status is SessionStatus.UNAUTHENTICATED
        assert session.state.is_loading is False

    async def test_credential_without_identity(
        self, session: AuthSessionManager, credentials: InMemoryCredentialProvider
    ) -> None:
        """A credential that is not an admin is signed straight back out."""
        await credentials.create_credential("tourist@x.com", PASSWORD)

        with pytest.raises(AuthenticationError) as exc_info:
            await session.login("tourist@x.com", PASSWORD)

        assert str(exc_info.value) == NOT_AN_ADMIN_MESSAGE
        assert not isinstance(exc_info.value, PendingApprovalError)
        assert await credentials.current_session() is None
        assert session.state.status is SessionStatus.UNAUTHENTICATED

    async def test_rejected_request_cannot_login(
        self,
        session: AuthSessionManager,
        approvals: ApprovalWorkflow,
        credentials: InMemoryCredentialProvider,
        pending_admin: AdminIdentity,
        super_admin: AdminIdentity,
    ) -> None:
        """Rejected requests are refused and signed out."""
        await approvals.reject(pending_admin.id, super_admin.id, "Not eligible")

        with pytest.raises(AuthenticationError) as exc_info:
            await session.login("carol@x.com", PASSWORD)

        assert not isinstance(exc_info.value, PendingApprovalError)
        assert await credentials.current_session() is None

    async def test_missing_fields(self, session: AuthSessionManager) -> None:
        """Empty email and password fail validation."""
        with pytest.raises(ValidationError) as exc_info:
            await session.login("", "")
        assert set(exc_info.value.errors) == {"email", "password"}

    async def test_last_login_touch_failure_is_tolerated(
        self,
        credentials: InMemoryCredentialProvider,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
        org_admin: AdminIdentity,
    ) -> None:
        """A failing last_login_at update does not block sign-in."""
        repo = AsyncMock()
        repo.get_admin = AsyncMock(return_value=org_admin)
        repo.update_admin = AsyncMock(side_effect=TransientError("slow"))
        manager = AuthSessionManager(
            credentials, AdminDirectoryService(repo), audit, snapshots
        )

        admin = await manager.login("alice@x.com", PASSWORD)

        assert admin == org_admin
        assert manager.state.status is SessionStatus.AUTHENTICATED


class TestLogout:
    """Sign out."""

    @pytest.mark.parametrize("email", ["alice@x.com", "carol@x.com", None])
    async def test_logout_from_any_state(
        self,
        session: AuthSessionManager,
        snapshots: MemorySnapshotStore,
        credentials: InMemoryCredentialProvider,
        org_admin: AdminIdentity,
        pending_admin: AdminIdentity,
        email: str | None,
    ) -> None:
        """Logout always ends UNAUTHENTICATED with no snapshot."""
        await session.hydrate()
        if email is not None:
            try:
                await session.login(email, PASSWORD)
            except PendingApprovalError:
                pass

        await session.logout()

        assert session.state.status is SessionStatus.UNAUTHENTICATED
        assert session.state.admin is None
        assert snapshots.admin is None
        assert await credentials.current_session() is None

    async def test_logout_survives_backend_failure(
        self,
        session: AuthSessionManager,
        credentials: InMemoryCredentialProvider,
        snapshots: MemorySnapshotStore,
        org_admin: AdminIdentity,
    ) -> None:
        """A failing sign-out still clears the local session."""
        await session.login("alice@x.com", PASSWORD)
        credentials.sign_out = AsyncMock(  # type: ignore[method-assign]
            side_effect=TransientError("offline")
        )

        await session.logout()

        assert session.state.status is SessionStatus.UNAUTHENTICATED
        assert snapshots.admin is None


class TestRegister:
    """Self registration."""

    async def test_register_creates_pending_request(
        self, session: AuthSessionManager, directory: AdminDirectoryService
    ) -> None:
        """Registration yields a pending identity keyed on the credential."""
        admin = await register_carol(session)

        assert admin.role is AdminRole.PENDING
        assert admin.is_approved is False
        assert admin.organization_type == "travel_agency"
        assert session.state.status is SessionStatus.PENDING_APPROVAL
        assert [a.id for a in await directory.list_pending()] == [admin.id]

    async def test_register_then_login_is_pending(self, session: AuthSessionManager) -> None:
        """Logging in before approval never authenticates."""
        await register_carol(session)

        with pytest.raises(PendingApprovalError):
            await session.login("carol@x.com", PASSWORD)
        assert session.state.status is SessionStatus.PENDING_APPROVAL

    async def test_register_validates(self, session: AuthSessionManager) -> None:
        """Invalid requests fail before any backend call."""
        with pytest.raises(ValidationError):
            await session.register("x", "short", "", "", "", "")

    async def test_existing_identity_conflicts(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """An email already used by an identity cannot register again."""
        with pytest.raises(ConflictError):
            await session.register(
                "alice@x.com", PASSWORD, "Alice", "Another Org", "ngo", REQUEST_REASON
            )

    async def test_resubmitting_while_pending_signs_out(
        self,
        session: AuthSessionManager,
        credentials: InMemoryCredentialProvider,
        snapshots: MemorySnapshotStore,
    ) -> None:
        """A repeated request conflicts and the cached state follows the ended session."""
        await register_carol(session)
        assert session.state.status is SessionStatus.PENDING_APPROVAL

        with pytest.raises(ConflictError):
            await register_carol(session)

        assert await credentials.current_session() is None
        assert session.state.status is SessionStatus.UNAUTHENTICATED
        assert session.admin is None
        assert snapshots.admin is None

    async def test_failed_profile_rolls_back_credential(
        self,
        credentials: InMemoryCredentialProvider,
        audit: ActivityAuditLog,
        snapshots: MemorySnapshotStore,
    ) -> None:
        """When the identity insert fails the credential is removed."""
        repo = AsyncMock()
        repo.insert_admin = AsyncMock(side_effect=TransientError("offline"))
        manager = AuthSessionManager(credentials, AdminDirectoryService(repo), audit, snapshots)

        with pytest.raises(TransientError):
            await register_carol(manager)

        assert await credentials.current_session() is None
        with pytest.raises(AuthenticationError):
            await credentials.sign_in("carol@x.com", PASSWORD)

    async def test_retry_resumes_after_interrupted_registration(
        self,
        session: AuthSessionManager,
        credentials: InMemoryCredentialProvider,
    ) -> None:
        """A credential without an identity is completed on retry."""
        credential = await credentials.create_credential("carol@x.com", PASSWORD)

        admin = await register_carol(session)

        assert admin.id == credential.id
        assert session.state.status is SessionStatus.PENDING_APPROVAL

    async def test_retry_with_wrong_password_conflicts(
        self, session: AuthSessionManager, credentials: InMemoryCredentialProvider
    ) -> None:
        """Somebody else's credential is not hijacked."""
        await credentials.create_credential("carol@x.com", "Other-Passw0rd")

        with pytest.raises(ConflictError):
            await register_carol(session)


class TestSelfService:
    """Refresh and profile edits."""

    async def test_refresh_picks_up_external_changes(
        self,
        session: AuthSessionManager,
        approvals: ApprovalWorkflow,
        snapshots: MemorySnapshotStore,
        super_admin: AdminIdentity,
    ) -> None:
        """After approval a refresh turns the pending session into an authenticated one."""
        pending = await register_carol(session)
        await approvals.approve(pending.id, super_admin.id)

        refreshed = await session.refresh()

        assert refreshed is not None
        assert refreshed.role is AdminRole.ORG_ADMIN
        assert session.state.status is SessionStatus.AUTHENTICATED
        assert snapshots.admin == refreshed

    async def test_update_profile(
        self, session: AuthSessionManager, audit: ActivityAuditLog, org_admin: AdminIdentity
    ) -> None:
        """Profile edits are stored, refreshed and logged."""
        await session.login("alice@x.com", PASSWORD)

        admin = await session.update_profile(full_name="Alice Tan")

        assert admin.full_name == "Alice Tan"
        assert session.admin == admin
        actions = [e.action for e in await audit.query(admin_id=org_admin.id)]
        assert ActivityAction.UPDATE_PROFILE in actions

    async def test_update_avatar(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """The avatar URL lands on the signed-in identity."""
        await session.login("alice@x.com", PASSWORD)

        admin = await session.update_avatar(b"\xff\xd8\xff", "image/jpeg")

        assert admin.avatar_url is not None
        assert admin.avatar_url.endswith(".jpg")

    async def test_profile_requires_sign_in(self, session: AuthSessionManager) -> None:
        """Nobody signed in means no profile to edit."""
        with pytest.raises(AuthenticationError):
            await session.update_profile(full_name="Ghost")

    async def test_change_password(
        self,
        session: AuthSessionManager,
        credentials: InMemoryCredentialProvider,
        org_admin: AdminIdentity,
    ) -> None:
        """The new password works and the old one does not."""
        await session.login("alice@x.com", PASSWORD)

        await session.change_password(PASSWORD, "Fresh-Monsoon-9")

        await credentials.sign_in("alice@x.com", "Fresh-Monsoon-9")
        with pytest.raises(AuthenticationError):
            await credentials.sign_in("alice@x.com", PASSWORD)

    async def test_change_password_validation(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """Short or unchanged passwords are refused before the provider is called."""
        await session.login("alice@x.com", PASSWORD)

        with pytest.raises(ValidationError):
            await session.change_password(PASSWORD, "short")
        with pytest.raises(ValidationError):
            await session.change_password(PASSWORD, PASSWORD)

    async def test_change_password_wrong_current(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """The current password is re-verified."""
        await session.login("alice@x.com", PASSWORD)

        with pytest.raises(AuthenticationError):
            await session.change_password("not-the-password", "Fresh-Monsoon-9")


class TestPasswordReset:
    """Forgotten password recovery."""

    async def test_reset_signs_the_account_out(
        self,
        session: AuthSessionManager,
        credentials: InMemoryCredentialProvider,
        audit: ActivityAuditLog,
        org_admin: AdminIdentity,
    ) -> None:
        """The new password works and the cached session ends."""
        await session.login("alice@x.com", PASSWORD)
        token = await session.request_password_reset(" ALICE@x.com ")
        assert token is not None

        await session.reset_password(token, "Fresh-Monsoon-9")

        assert session.state.status is SessionStatus.UNAUTHENTICATED
        assert await credentials.current_session() is None
        await session.login("alice@x.com", "Fresh-Monsoon-9")
        entries = await audit.query(admin_id=org_admin.id)
        (reset,) = [e for e in entries if e.action is ActivityAction.CHANGE_PASSWORD]
        assert reset.details == {"method": "reset"}

    async def test_reset_of_another_account_keeps_session(
        self,
        session: AuthSessionManager,
        org_admin: AdminIdentity,
        staff_member: AdminIdentity,
    ) -> None:
        """Only the account whose password changed is signed out."""
        await session.login("alice@x.com", PASSWORD)
        token = await session.request_password_reset("dave@x.com")
        assert token is not None

        await session.reset_password(token, "Fresh-Monsoon-9")

        assert session.state.status is SessionStatus.AUTHENTICATED
        assert session.admin is not None
        assert session.admin.id == org_admin.id

    async def test_unknown_email_returns_none(self, session: AuthSessionManager) -> None:
        """Unknown addresses are not an error."""
        assert await session.request_password_reset("nobody@x.com") is None

    async def test_request_validates_email(self, session: AuthSessionManager) -> None:
        """A malformed address fails before the provider is called."""
        with pytest.raises(ValidationError):
            await session.request_password_reset("not-an-email")

    async def test_reset_validates_before_consuming(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """A bad new password keeps the token usable."""
        token = await session.request_password_reset("alice@x.com")
        assert token is not None

        with pytest.raises(ValidationError) as exc_info:
            await session.reset_password("", "short")
        assert set(exc_info.value.errors) == {"token", "new_password"}
        with pytest.raises(ValidationError):
            await session.reset_password(token, "x" * 80)

        await session.reset_password(token, "Fresh-Monsoon-9")

    async def test_used_token_is_refused(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """Tokens work once."""
        token = await session.request_password_reset("alice@x.com")
        assert token is not None
        await session.reset_password(token, "Fresh-Monsoon-9")

        with pytest.raises(AuthenticationError):
            await session.reset_password(token, "Other-Monsoon-9")


class TestListeners:
    """State change notifications."""

    async def test_subscribe_and_unsubscribe(
        self, session: AuthSessionManager, org_admin: AdminIdentity
    ) -> None:
        """Listeners see every transition until they unsubscribe."""
        seen: list[SessionState] = []
        unsubscribe = session.subscribe(seen.append)

        await session.hydrate()
        await session.login("alice@x.com", PASSWORD)
        unsubscribe()
        await session.logout()

        statuses = [s.status for s in seen]
        assert statuses[0] is SessionStatus.HYDRATING
        assert statuses[-1] is SessionStatus.AUTHENTICATED
        assert session.state.status is SessionStatus.UNAUTHENTICATED

    async def test_unsubscribe_twice_is_harmless(self, session: AuthSessionManager) -> None:
        """Removing a listener again is a no-op."""
        seen: list[SessionState] = []
        unsubscribe = session.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        await session.hydrate()

        assert seen == []

    async def test_failing_listener_does_not_break_session(
        self, session: AuthSessionManager
    ) -> None:
        """A raising listener is logged and ignored."""

        def broken(state: SessionState) -> None:
            raise RuntimeError("ui crashed")

        session.subscribe(broken)

        state = await session.hydrate()

        assert state.status is SessionStatus.UNAUTHENTICATED
