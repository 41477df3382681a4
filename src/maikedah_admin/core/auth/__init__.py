"""Credential, session and secret utilities."""

from maikedah_admin.core.auth.password import hash_password, verify_password
from maikedah_admin.core.auth.provider import CredentialProvider
from maikedah_admin.core.auth.tokens import (
    generate_reset_token,
    generate_session_token,
    generate_temporary_password,
    hash_token,
    meets_temporary_password_policy,
)
from maikedah_admin.core.auth.types import AuthSession, Credential

__all__ = [
    "AuthSession",
    "Credential",
    "CredentialProvider",
    "generate_reset_token",
    "generate_session_token",
    "generate_temporary_password",
    "hash_password",
    "hash_token",
    "meets_temporary_password_policy",
    "verify_password",
]
