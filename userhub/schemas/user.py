"""
User schemas.

Cached profile responses and the profile edit request.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from userhub.schemas.organization import OrganizationResponse

UI_MODES = ("light", "dark", "system")


class UserResponse(BaseModel):
    """Cached profile of one identity."""

    id: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    time_zone: str
    ui_mode: str
    can_create_organizations: bool
    last_login: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DirectoryUserResponse(BaseModel):
    """Identity from the provider directory, merged with the local profile when one exists."""

    id: str
    email: str
    first_name: str
    last_name: str
    email_verified: bool
    profile: UserResponse | None = None


class UsersListResponse(BaseModel):
    users: list[DirectoryUserResponse]
    total: int


class WhoAmIResponse(BaseModel):
    """Response for GET /whoami."""

    id: str
    email: str
    display_name: str
    email_verified: bool
    profile: UserResponse | None
    organizations: list[OrganizationResponse]


class ProfileUpdateRequest(BaseModel):
    """Request body for PATCH /users/me."""

    first_name: str | None = Field(default=None, max_length=1024)
    last_name: str | None = Field(default=None, max_length=1024)
    time_zone: str | None = Field(default=None, min_length=1, max_length=255)
    ui_mode: str | None = None

    @field_validator("ui_mode")
    @classmethod
    def ui_mode_must_be_known(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if v not in UI_MODES:
            raise ValueError(f"ui_mode must be one of: {', '.join(UI_MODES)}")
        return v

    @field_validator("time_zone")
    @classmethod
    def time_zone_must_exist(cls, v: str | None) -> str | None:
        if v is None:
            return v
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone {v!r}")
        return v
