"""In-memory credential provider.

Stores bcrypt hashes in a dict and models a single client with at most one
live session. Several session managers sharing one provider behave like
one browser reopened several times.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4

import structlog

from maikedah_admin.core.auth.password import DEFAULT_ROUNDS, hash_password, verify_password
from maikedah_admin.core.auth.tokens import (
    RESET_TOKEN_TTL_HOURS,
    SESSION_TTL_HOURS,
    generate_reset_token,
    get_session_expiry,
    hash_token,
    is_expired,
)
from maikedah_admin.core.auth.types import AuthSession, Credential
from maikedah_admin.core.exceptions import AuthenticationError, ConflictError

logger = structlog.get_logger()

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
INVALID_RESET_TOKEN_MESSAGE = "This password reset link is invalid or has expired"


@dataclass
class _StoredCredential:
    id: UUID
    email: str
    password_hash: str
    created_at: datetime


class InMemoryCredentialProvider:
    """CredentialProvider backed by process memory."""

    def __init__(
        self,
        session_ttl_hours: int = SESSION_TTL_HOURS,
        hash_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        """Initialize an empty provider.

        Args:
            session_ttl_hours: Lifetime of sessions opened by sign-up/sign-in.
            hash_rounds: bcrypt work factor; tests lower it for speed.
        """
        self._session_ttl_hours = session_ttl_hours
        self._hash_rounds = hash_rounds
        self._by_email: dict[str, _StoredCredential] = {}
        self._session: AuthSession | None = None
        # token hash -> (credential ID, expiry); consumed tokens are removed
        self._resets: dict[str, tuple[UUID, datetime]] = {}

    def _by_id(self, credential_id: UUID) -> _StoredCredential | None:
        for stored in self._by_email.values():
            if stored.id == credential_id:
                return stored
        return None

    def _store(self, email: str, password: str) -> _StoredCredential:
        email = email.strip().lower()
        if email in self._by_email:
            raise ConflictError("An account with this email already exists")
        stored = _StoredCredential(
            id=uuid4(),
            email=email,
            password_hash=hash_password(password, rounds=self._hash_rounds),
            created_at=datetime.now(UTC),
        )
        self._by_email[email] = stored
        return stored

    def _open_session(self, stored: _StoredCredential) -> AuthSession:
        self._session = AuthSession(
            user_id=stored.id,
            email=stored.email,
            expires_at=get_session_expiry(self._session_ttl_hours),
        )
        return self._session

    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Create a credential and open a session for it."""
        stored = self._store(email, password)
        logger.info("credential_signed_up", user_id=str(stored.id))
        return self._open_session(stored)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Open a session for existing credentials."""
        stored = self._by_email.get(email.strip().lower())
        if stored is None or not verify_password(password, stored.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
        return self._open_session(stored)

    async def current_session(self) -> AuthSession | None:
        """Return the live session, dropping it once expired or orphaned."""
        session = self._session
        if session is None:
            return None
        if is_expired(session.expires_at) or self._by_id(session.user_id) is None:
            self._session = None
            return None
        return session

    async def sign_out(self) -> None:
        """Forget the session."""
        self._session = None

    async def create_credential(self, email: str, password: str) -> Credential:
        """Create a credential for someone else; the current session is untouched."""
        stored = self._store(email, password)
        return Credential(id=stored.id, email=stored.email, created_at=stored.created_at)

    async def delete_credential(self, credential_id: UUID) -> bool:
        """Delete a credential and end its session if it is the live one."""
        stored = self._by_id(credential_id)
        if stored is None:
            return False
        del self._by_email[stored.email]
        if self._session is not None and self._session.user_id == credential_id:
            self._session = None
        return True

    async def update_password(
        self, credential_id: UUID, current_password: str, new_password: str
    ) -> None:
        """Replace a password after re-verifying the current one."""
        stored = self._by_id(credential_id)
        if stored is None or not verify_password(current_password, stored.password_hash):
            raise AuthenticationError("Current password is incorrect")
        stored.password_hash = hash_password(new_password, rounds=self._hash_rounds)

    async def issue_password_reset(self, email: str) -> str | None:
        """Issue a reset token, replacing any earlier one for the credential."""
        stored = self._by_email.get(email.strip().lower())
        if stored is None:
            return None
        self._resets = {
            token_hash: entry
            for token_hash, entry in self._resets.items()
            if entry[0] != stored.id
        }
        token = generate_reset_token()
        self._resets[hash_token(token)] = (stored.id, get_session_expiry(RESET_TOKEN_TTL_HOURS))
        logger.info("password_reset_issued", user_id=str(stored.id))
        return token

    async def reset_password(self, token: str, new_password: str) -> UUID:
        """Consume a reset token and set the new password."""
        entry = self._resets.pop(hash_token(token), None) if token else None
        stored = self._by_id(entry[0]) if entry is not None else None
        if entry is None or stored is None or is_expired(entry[1]):
            raise AuthenticationError(INVALID_RESET_TOKEN_MESSAGE)
        stored.password_hash = hash_password(new_password, rounds=self._hash_rounds)
        if self._session is not None and self._session.user_id == stored.id:
            self._session = None
        return stored.id
