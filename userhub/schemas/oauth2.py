"""
Machine-to-machine OAuth2 schemas.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ClientCreateRequest(BaseModel):
    """Request body for POST /oauth2/clients."""

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)
    organization_id: UUID


class ClientResponse(BaseModel):
    """Stored client metadata; never includes the secret."""

    id: UUID
    client_id: str
    user_id: str
    organization_id: UUID
    name: str
    description: str
    scopes: str
    is_active: bool
    last_used_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClientCreatedResponse(ClientResponse):
    """Returned once, on creation: the only time the secret is visible."""

    client_secret: str


class ClientsListResponse(BaseModel):
    clients: list[ClientResponse]
    total: int


class TokenRequest(BaseModel):
    """Request body for POST /oauth2/token."""

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    scope: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    scope: str = ""
    refresh_token: str | None = None


class IntrospectRequest(BaseModel):
    token: str = Field(min_length=1)


class TokenInfoResponse(BaseModel):
    active: bool
    client_id: str | None = None
    subject: str | None = None
    scope: str = ""
    expires_at: datetime | None = None
    issued_at: datetime | None = None
