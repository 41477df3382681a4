"""Input validation for identity records.

Each helper returns normalised values or raises ValidationError listing every
offending field, so forms can show all problems at once.
"""

from __future__ import annotations

import re

from maikedah_admin.core.admins.types import OrganizationType
from maikedah_admin.core.auth.password import MAX_PASSWORD_BYTES
from maikedah_admin.core.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[+]?[\d\s-]{8,}$")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8
MIN_REQUEST_REASON_LENGTH = 20


def check_email(email: str | None, errors: dict[str, str], field: str = "email") -> str:
    """Validate an email address into ``errors`` and return it normalised."""
    value = (email or "").strip().lower()
    if not value:
        errors[field] = "Email is required"
    elif not EMAIL_PATTERN.match(value):
        errors[field] = "Please enter a valid email"
    return value


def check_full_name(name: str | None, errors: dict[str, str], field: str = "full_name") -> str:
    """Validate a display name into ``errors`` and return it trimmed."""
    value = (name or "").strip()
    if not value:
        errors[field] = "Full name is required"
    elif len(value) < MIN_NAME_LENGTH:
        errors[field] = f"Name must be at least {MIN_NAME_LENGTH} characters"
    return value


def check_password(password: str | None, errors: dict[str, str], field: str = "password") -> str:
    """Validate a password into ``errors``. Passwords are never trimmed."""
    value = password or ""
    if not value:
        errors[field] = "Password is required"
    elif len(value) < MIN_PASSWORD_LENGTH:
        errors[field] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    elif len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors[field] = f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
    return value


def check_phone(phone: str | None, errors: dict[str, str], field: str = "phone") -> str | None:
    """Validate an optional phone number into ``errors``."""
    if phone is None:
        return None
    value = phone.strip()
    if value and not PHONE_PATTERN.match(value):
        errors[field] = "Please enter a valid phone number"
    return value or None


def raise_if_invalid(errors: dict[str, str]) -> None:
    """Raise ValidationError when any field failed."""
    if errors:
        raise ValidationError(errors)


def validate_email(email: str | None) -> str:
    """Validate a single email address.

    Raises:
        ValidationError: If the address is empty or malformed.
    """
    errors: dict[str, str] = {}
    value = check_email(email, errors)
    raise_if_invalid(errors)
    return value


def validate_registration(
    email: str | None,
    password: str | None,
    full_name: str | None,
    organization_name: str | None,
    organization_type: str | None,
    request_reason: str | None,
) -> tuple[str, str, str, str, OrganizationType, str]:
    """Validate a self-registration request.

    Returns:
        Tuple of normalised (email, password, full_name, organization_name,
        organization_type, request_reason).

    Raises:
        ValidationError: If any field is invalid.
    """
    errors: dict[str, str] = {}
    email_value = check_email(email, errors)
    password_value = check_password(password, errors)
    name_value = check_full_name(full_name, errors)

    org_name = (organization_name or "").strip()
    if not org_name:
        errors["organization_name"] = "Organization name is required"

    org_type = OrganizationType.OTHER
    if not organization_type:
        errors["organization_type"] = "Please select organization type"
    else:
        try:
            org_type = OrganizationType(organization_type)
        except ValueError:
            errors["organization_type"] = "Unknown organization type"

    reason = (request_reason or "").strip()
    if not reason:
        errors["request_reason"] = "Please provide a reason for your request"
    elif len(reason) < MIN_REQUEST_REASON_LENGTH:
        errors["request_reason"] = (
            f"Please provide more details (at least {MIN_REQUEST_REASON_LENGTH} characters)"
        )

    raise_if_invalid(errors)
    return email_value, password_value, name_value, org_name, org_type, reason
