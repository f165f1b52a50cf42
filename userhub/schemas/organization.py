"""
Organization schemas.

Request/response models for organization and member management endpoints.
Role and type strings are parsed by the services so that unknown values
surface as INVALID_ROLE / INVALID_ORG_TYPE rather than generic validation errors.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(BaseModel):
    """Request body for POST /organizations."""

    name: str = Field(min_length=1, max_length=1024)
    org_type: str = Field(default="organization", alias="type")
    description: str = Field(default="", max_length=10_000)
    data: dict[str, Any] = Field(default_factory=dict)
    domain_id: UUID | None = None
    parent_org_id: UUID | None = None

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class OrganizationUpdateRequest(BaseModel):
    """
    Request body for PUT /organizations/{id}; omitted fields are left unchanged.

    ``domain_id`` and ``parent_org_id`` can be cleared with an explicit null.
    """

    name: str | None = Field(default=None, min_length=1, max_length=1024)
    org_type: str | None = Field(default=None, alias="type")
    description: str | None = Field(default=None, max_length=10_000)
    data: dict[str, Any] | None = None
    domain_id: UUID | None = None
    parent_org_id: UUID | None = None

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class OrganizationResponse(BaseModel):
    """Organization detail response."""

    id: UUID
    org_type: str = Field(serialization_alias="type")
    name: str
    description: str
    data: dict[str, Any]
    owner_id: str | None
    is_default: bool
    domain_id: UUID | None = None
    parent_org_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
    role: str | None = None

    model_config = {"from_attributes": True}

    @field_validator("org_type", mode="before")
    @classmethod
    def enum_to_value(cls, v: Any) -> Any:
        return getattr(v, "value", v)


class OrganizationDetailResponse(OrganizationResponse):
    """Organization with its member list."""

    members: list[MemberResponse] = Field(default_factory=list)


class OrganizationsListResponse(BaseModel):
    organizations: list[OrganizationResponse]
    total: int


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberResponse(BaseModel):
    """Single org member with cached profile and role."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    role: str
    joined_at: datetime


class MembersListResponse(BaseModel):
    """Response for GET /organizations/{id}/members."""

    members: list[MemberResponse]
    total: int


class AddMemberRequest(BaseModel):
    """Request body for POST /organizations/{id}/members."""

    email: EmailStr
    role: str = "member"


class MemberRoleUpdateRequest(BaseModel):
    """Request body for PUT /organizations/{id}/members/{user_id}/role."""

    role: str


OrganizationDetailResponse.model_rebuild()
