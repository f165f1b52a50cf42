"""
Identity provider webhooks.

The provider calls these after registration, login and verification flows.
Any body that is not a usable identity payload is answered with
INVALID_WEBHOOK_PAYLOAD (400).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import SubjectIdentity
from userhub.core.database import get_db
from userhub.core.dependencies import verify_webhook_key
from userhub.core.errors import InvalidWebhookPayload
from userhub.schemas.hooks import HookResponse, IdentityHookPayload
from userhub.services.identity_sync import IdentityEvent, IdentitySyncBridge, parse_identity

router = APIRouter(dependencies=[Depends(verify_webhook_key)])


def get_sync_bridge(db: AsyncSession = Depends(get_db)) -> IdentitySyncBridge:
    """Dependency that constructs IdentitySyncBridge."""
    return IdentitySyncBridge(db=db)


async def read_identity(request: Request) -> SubjectIdentity:
    """Decode and validate the webhook body into an identity."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidWebhookPayload("Body is not valid JSON") from exc
    try:
        payload = IdentityHookPayload.model_validate(body)
    except ValidationError as exc:
        raise InvalidWebhookPayload("Payload must contain an identity object") from exc
    return parse_identity(payload.identity)


@router.post("/after-registration", response_model=HookResponse, summary="Identity registered")
async def after_registration(
    identity: SubjectIdentity = Depends(read_identity),
    bridge: IdentitySyncBridge = Depends(get_sync_bridge),
) -> HookResponse:
    """Cache the new profile; the very first user also gets the default organization."""
    return await bridge.handle(IdentityEvent.after_registration, identity)


@router.post("/after-login", response_model=HookResponse, summary="Identity logged in")
async def after_login(
    identity: SubjectIdentity = Depends(read_identity),
    bridge: IdentitySyncBridge = Depends(get_sync_bridge),
) -> HookResponse:
    return await bridge.handle(IdentityEvent.after_login, identity)


@router.post("/after-verification", response_model=HookResponse, summary="Address verified")
async def after_verification(
    identity: SubjectIdentity = Depends(read_identity),
    bridge: IdentitySyncBridge = Depends(get_sync_bridge),
) -> HookResponse:
    return await bridge.handle(IdentityEvent.after_verification, identity)
