"""
Identity provider webhook payloads.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class IdentityHookPayload(BaseModel):
    """Body the identity provider posts after registration, login or verification."""

    identity: dict[str, Any]
    flow: dict[str, Any] | str | None = None

    model_config = {"extra": "allow"}


class HookResponse(BaseModel):
    status: str = "ok"
    user_id: str
    bootstrap_organization_id: str | None = None
