"""
Session endpoints.

The identity provider owns login and registration; these endpoints only
inspect and end the caller's provider session.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from userhub.auth.identity import IdentityClient, SubjectIdentity
from userhub.auth.resolver import CredentialResolver
from userhub.core.config import settings
from userhub.core.dependencies import (
    get_credential_resolver,
    get_current_identity,
    get_identity_client,
)
from userhub.core.errors import CredentialError, ProviderUnreachable
from userhub.schemas.auth import MessageResponse, SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Inspect the current session",
)
async def get_session(
    identity: SubjectIdentity = Depends(get_current_identity),
) -> SessionResponse:
    """Return the identity behind the caller's bearer token or session cookie."""
    return SessionResponse(
        id=identity.id,
        email=identity.email,
        first_name=identity.first_name,
        last_name=identity.last_name,
        display_name=identity.display_name,
        email_verified=identity.email_verified,
        session_id=identity.session_id,
    )


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="End the current session",
)
async def logout(
    request: Request,
    response: Response,
    resolver: CredentialResolver = Depends(get_credential_resolver),
    client: IdentityClient = Depends(get_identity_client),
) -> MessageResponse:
    """
    Revoke the provider session when it can be resolved, and always clear
    the session cookie.
    """
    message = "Logged out successfully"
    try:
        identity = await resolver.resolve(request.headers, request.cookies)
    except CredentialError:
        identity = None
    except ProviderUnreachable:
        logger.warning("Logout could not reach the identity provider; clearing cookie only")
        identity = None
        message = "Session cookie cleared; the session could not be revoked right now"

    if identity is not None and identity.session_id:
        await client.disable_session(identity.session_id)
        logger.info("Session %s of %s revoked", identity.session_id, identity.id)

    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return MessageResponse(message=message)
