"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """E-mail registration request."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    display_name: str = Field(..., min_length=2, max_length=128)
    phone: str | None = Field(None, max_length=20)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            msg = "Display name must be at least 2 characters"
            raise ValueError(msg)
        return v


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class UserResponse(BaseModel):
    """Public projection of a user. Never includes the password digest."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: str
    phone: str | None = None
    is_active: bool
    email_verified: bool
    last_login: datetime | None = None
    created_at: datetime


class TokenResponse(BaseModel):
    """Issued token plus the authenticated user."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user: UserResponse | None = None
