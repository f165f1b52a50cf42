"""
FastAPI dependency injection functions.

Provides the identity-provider client, credential resolution, the
verified-email gate and webhook authentication.
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from userhub.auth.identity import IdentityClient, SubjectIdentity
from userhub.auth.resolver import CredentialResolver
from userhub.core.config import settings
from userhub.core.errors import EmailNotVerified, WebhookUnauthorized

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False: the cookie is an alternative)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Identity provider
# ---------------------------------------------------------------------------

_identity_client: IdentityClient | None = None


def get_identity_client() -> IdentityClient:
    """
    Return the shared identity-provider client.

    Module-level so configuration is read once per process.
    """
    global _identity_client
    if _identity_client is None:
        _identity_client = IdentityClient()
    return _identity_client


def get_credential_resolver(
    client: IdentityClient = Depends(get_identity_client),
) -> CredentialResolver:
    return CredentialResolver(client)


# ---------------------------------------------------------------------------
# Current identity
# ---------------------------------------------------------------------------

async def get_current_identity(
    request: Request,
    _credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> SubjectIdentity:
    """
    Resolve the request's session (bearer token or session cookie).

    Raises NoCredential / InvalidCredential (401) or ProviderUnreachable (503).
    """
    return await resolver.resolve(request.headers, request.cookies)


async def get_verified_identity(
    identity: SubjectIdentity = Depends(get_current_identity),
) -> SubjectIdentity:
    """Like get_current_identity, but requires a verified email when configured."""
    if settings.REQUIRE_VERIFIED_EMAIL and not identity.email_verified:
        raise EmailNotVerified()
    return identity


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

async def verify_webhook_key(
    x_webhook_key: str | None = Header(default=None),
) -> None:
    """Check X-Webhook-Key when WEBHOOK_API_KEY is configured."""
    expected = settings.WEBHOOK_API_KEY
    if not expected:
        return
    if x_webhook_key is None or not secrets.compare_digest(x_webhook_key, expected):
        raise WebhookUnauthorized()
