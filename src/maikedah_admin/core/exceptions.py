"""Domain-specific exceptions.

All exceptions raised by the admin core inherit from AdminCoreError, so
callers can catch every core failure with a single except clause while
still telling the classes apart. Only TransientError is worth retrying;
every other class means "fix the input or the permissions and resubmit".
"""

from __future__ import annotations


class AdminCoreError(Exception):
    """Base exception for all admin core errors.

    Attributes:
        code: Stable machine-readable identifier for the error class.
        retryable: Whether re-invoking the same call may succeed.
    """

    code = "admin_core_error"
    retryable = False


class ValidationError(AdminCoreError):
    """Malformed input, rejected before any backend call.

    Attributes:
        errors: Mapping of field name to a user-facing message.
    """

    code = "validation_error"

    def __init__(self, errors: dict[str, str]) -> None:
        """Initialize ValidationError.

        Args:
            errors: Mapping of field name to a user-facing message.
        """
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))


class AuthenticationError(AdminCoreError):
    """Bad credentials, or no usable admin identity behind a session."""

    code = "authentication_error"


class PendingApprovalError(AuthenticationError):
    """The credentials are valid but the account awaits super admin approval.

    Unlike other authentication failures the backend session is kept.
    """

    code = "pending_approval"

    def __init__(
        self,
        message: str = (
            "Your account is pending approval. "
            "Please wait for the administrator to approve your access."
        ),
    ) -> None:
        """Initialize with the user-facing message."""
        super().__init__(message)


class AuthorizationError(AdminCoreError):
    """The acting admin lacks the role required for the action."""

    code = "authorization_error"


class InvalidTransitionError(AuthorizationError):
    """The target record is not in a state the workflow may act on.

    For example approving a request that was already approved or rejected.
    """

    code = "invalid_transition"


class NotFoundError(AdminCoreError):
    """The target identity does not exist."""

    code = "not_found"


class ConflictError(AdminCoreError):
    """The email address is already registered."""

    code = "conflict"


class TransientError(AdminCoreError):
    """Network or connectivity failure talking to the backend.

    The only error class that is meaningfully retryable.
    """

    code = "transient_error"
    retryable = True
