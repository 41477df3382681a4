"""Core domain - business rules layered over the storage and auth provider."""

from .exceptions import (
    AdminCoreError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PendingApprovalError,
    TransientError,
    ValidationError,
)

__all__ = [
    "AdminCoreError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "InvalidTransitionError",
    "NotFoundError",
    "PendingApprovalError",
    "TransientError",
    "ValidationError",
]
