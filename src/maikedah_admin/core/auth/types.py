"""Credential and session types shared by the credential providers."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class Credential:
    """A sign-in credential held by the provider.

    The credential ID is the stable key every AdminIdentity is stored under.
    """

    id: UUID
    email: str
    created_at: datetime


@dataclass(frozen=True)
class AuthSession:
    """A live backend session for one credential."""

    user_id: UUID
    email: str
    expires_at: datetime
