"""Request schemas for the /users/me endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ProfileUpdateRequest(BaseModel):
    display_name: str | None = Field(None, max_length=128)
    phone: str | None = Field(None, max_length=20)

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            msg = "Display name must be at least 2 characters"
            raise ValueError(msg)
        return v


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class AccountDeleteRequest(BaseModel):
    """The current password, to confirm an irreversible delete."""

    password: str = Field(..., min_length=1, max_length=128)
