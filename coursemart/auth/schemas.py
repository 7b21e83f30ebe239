"""Pydantic schemas for authentication.

Request and response models for:
- Registration and login
- Token responses
- Profile and password management
"""

from datetime import datetime
from typing import Self
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from coursemart.auth.models import Account
from coursemart.auth.validators import (
    ValidationResult,
    validate_contact,
    validate_password,
    validate_username,
)


def _ensure_valid(result: ValidationResult) -> None:
    if not result.valid:
        raise ValueError(result.message or "Invalid value")


# ==============================================================================
# Request Schemas
# ==============================================================================


class RegisterRequest(BaseModel):
    """Account registration request."""

    username: str = Field(..., description="Unique username")
    email: EmailStr = Field(..., description="Email address")
    contact: str = Field(..., description="10 digit contact number")
    address: str = Field(..., min_length=1, description="Postal address")
    password: str = Field(..., description="Password")
    confirm_password: str = Field(..., description="Password confirmation")

    @field_validator("username")
    @classmethod
    def validate_username_format(cls, v: str) -> str:
        v = v.strip()
        _ensure_valid(validate_username(v))
        return v

    @field_validator("contact")
    @classmethod
    def validate_contact_format(cls, v: str) -> str:
        v = v.strip()
        _ensure_valid(validate_contact(v))
        return v

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        _ensure_valid(validate_password(v))
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode="after")
    def passwords_match(self) -> Self:
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Login with either username or email."""

    username: str | None = Field(None, description="Username")
    email: EmailStr | None = Field(None, description="Email address")
    password: str = Field(..., min_length=1, description="Password")

    @model_validator(mode="after")
    def require_identity(self) -> Self:
        if not self.username and not self.email:
            raise ValueError("Username or email is required")
        return self


class RefreshRequest(BaseModel):
    """Refresh token supplied in the body when no cookie is sent."""

    refresh_token: str | None = Field(None, description="Refresh token")


class UpdateProfileRequest(BaseModel):
    """Profile update; every field is optional."""

    username: str | None = Field(None, description="New username")
    email: EmailStr | None = Field(None, description="New email address")
    contact: str | None = Field(None, description="New contact number")
    address: str | None = Field(None, min_length=1, description="New address")

    @field_validator("username")
    @classmethod
    def validate_username_format(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        _ensure_valid(validate_username(v))
        return v

    @field_validator("contact")
    @classmethod
    def validate_contact_format(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        _ensure_valid(validate_contact(v))
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    @model_validator(mode="after")
    def require_any_field(self) -> Self:
        if all(
            value is None
            for value in (self.username, self.email, self.contact, self.address)
        ):
            raise ValueError("At least one field must be provided")
        return self


class ChangePasswordRequest(BaseModel):
    """Password change request."""

    old_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., description="New password")
    confirm_password: str = Field(..., description="New password confirmation")

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        _ensure_valid(validate_password(v))
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> Self:
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


# ==============================================================================
# Response Schemas
# ==============================================================================


class AccountResponse(BaseModel):
    """Public account profile (no password hash, no refresh token)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    contact: str
    address: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            contact=account.contact,
            address=account.address,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class TokenResponse(BaseModel):
    """Tokens issued on login or refresh (also set as cookies)."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    account: AccountResponse


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
