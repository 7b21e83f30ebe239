"""Validation utilities for account and course input.

Provides validation for:
- Contact numbers (10 digits)
- Password length
- Usernames
- Image links (http/https URLs)
"""

import re
from typing import NamedTuple
from urllib.parse import urlparse


# ==============================================================================
# Constants for validation rules
# ==============================================================================

CONTACT_DIGIT_LENGTH = 10
PASSWORD_MIN_LENGTH = 8
USERNAME_MAX_LENGTH = 64


class ValidationResult(NamedTuple):
    """Result of a validation check."""

    valid: bool
    message: str | None = None


def validate_contact(contact: str) -> ValidationResult:
    """Validate a contact number.

    Examples:
        >>> validate_contact("9876543210")
        ValidationResult(valid=True, message=None)
        >>> validate_contact("98765")
        ValidationResult(valid=False, message='Contact Number must be 10 digits long')
    """
    if not re.fullmatch(r"\d{%d}" % CONTACT_DIGIT_LENGTH, contact):
        return ValidationResult(False, "Contact Number must be 10 digits long")
    return ValidationResult(True)


def validate_password(password: str) -> ValidationResult:
    """Validate password length."""
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult(
            False, f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    return ValidationResult(True)


def validate_username(username: str) -> ValidationResult:
    """Validate a username: non-blank, bounded, no whitespace inside."""
    if not username:
        return ValidationResult(False, "Username is required")
    if len(username) > USERNAME_MAX_LENGTH:
        return ValidationResult(
            False, f"Username must be at most {USERNAME_MAX_LENGTH} characters"
        )
    if re.search(r"\s", username):
        return ValidationResult(False, "Username must not contain spaces")
    return ValidationResult(True)


def validate_image_link(link: str) -> ValidationResult:
    """Validate that an image link is an absolute http(s) URL."""
    parsed = urlparse(link)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return ValidationResult(False, "Invalid image URL")
    return ValidationResult(True)
