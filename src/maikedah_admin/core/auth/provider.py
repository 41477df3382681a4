"""Credential provider protocol.

The provider owns credential storage, password hashing and the backend
session of this client. The admin core layers its rules on top and never
touches password hashes itself.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from maikedah_admin.core.auth.types import AuthSession, Credential


@runtime_checkable
class CredentialProvider(Protocol):
    """Protocol for sign-in credentials and the client's backend session."""

    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Create a credential and open a session for it.

        Raises:
            ConflictError: If the email is already registered.
        """
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Open a session for existing credentials.

        Raises:
            AuthenticationError: If the email or password is wrong.
        """
        ...

    async def current_session(self) -> AuthSession | None:
        """Return the live session of this client, or None."""
        ...

    async def sign_out(self) -> None:
        """Invalidate the session of this client. A no-op when signed out."""
        ...

    async def create_credential(self, email: str, password: str) -> Credential:
        """Create a credential without touching the current session.

        Raises:
            ConflictError: If the email is already registered.
        """
        ...

    async def delete_credential(self, credential_id: UUID) -> bool:
        """Delete a credential and all of its sessions."""
        ...

    async def update_password(
        self, credential_id: UUID, current_password: str, new_password: str
    ) -> None:
        """Replace a password after re-verifying the current one.

        Raises:
            AuthenticationError: If ``current_password`` is wrong.
        """
        ...

    async def issue_password_reset(self, email: str) -> str | None:
        """Issue a one-time password reset token.

        Earlier unused tokens of the same credential stop working.

        Returns:
            The plaintext token, or None when no credential has this email.
        """
        ...

    async def reset_password(self, token: str, new_password: str) -> UUID:
        """Consume a reset token, set the new password and end all sessions.

        Returns:
            ID of the credential whose password changed.

        Raises:
            AuthenticationError: If the token is unknown, used or expired.
        """
        ...
