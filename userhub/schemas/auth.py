"""
Session schemas.

Responses for the session endpoints backed by the identity provider.
"""

from __future__ import annotations

from pydantic import BaseModel


class SessionResponse(BaseModel):
    """Response for GET /auth/session."""

    id: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    email_verified: bool
    session_id: str | None


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
