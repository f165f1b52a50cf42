"""
Machine-to-machine OAuth2 endpoints.

Client management requires a session; the token and introspection
endpoints authenticate with client credentials or the token itself.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import SubjectIdentity
from userhub.core.database import get_db
from userhub.core.dependencies import get_verified_identity
from userhub.schemas.oauth2 import (
    ClientCreatedResponse,
    ClientCreateRequest,
    ClientResponse,
    ClientsListResponse,
    IntrospectRequest,
    TokenInfoResponse,
    TokenRequest,
    TokenResponse,
)
from userhub.services.oauth2_service import AuthorizationServerClient, OAuth2Service

router = APIRouter()

_server: AuthorizationServerClient | None = None


def get_authorization_server() -> AuthorizationServerClient:
    global _server
    if _server is None:
        _server = AuthorizationServerClient()
    return _server


def get_oauth2_service(
    db: AsyncSession = Depends(get_db),
    server: AuthorizationServerClient = Depends(get_authorization_server),
) -> OAuth2Service:
    """Dependency that constructs OAuth2Service."""
    return OAuth2Service(db=db, server=server)


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

@router.post(
    "/clients",
    response_model=ClientCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a machine client",
)
async def create_client(
    data: ClientCreateRequest,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OAuth2Service = Depends(get_oauth2_service),
) -> ClientCreatedResponse:
    """
    Register a client-credentials client for an organization you administer.

    The secret is returned only in this response.
    """
    return await service.create_client(identity, data)


@router.get("/clients", response_model=ClientsListResponse, summary="List my machine clients")
async def list_clients(
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OAuth2Service = Depends(get_oauth2_service),
) -> ClientsListResponse:
    return await service.list_clients(identity)


@router.get("/clients/{client_id}", response_model=ClientResponse, summary="Get a machine client")
async def get_client(
    client_id: str,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OAuth2Service = Depends(get_oauth2_service),
) -> ClientResponse:
    return await service.get_client(identity, client_id)


@router.delete(
    "/clients/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Revoke a machine client",
)
async def revoke_client(
    client_id: str,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OAuth2Service = Depends(get_oauth2_service),
) -> Response:
    """Only the user who created the client may revoke it."""
    await service.revoke_client(identity, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

@router.post("/token", response_model=TokenResponse, summary="Client-credentials grant")
async def issue_token(
    data: TokenRequest,
    service: OAuth2Service = Depends(get_oauth2_service),
) -> TokenResponse:
    return await service.issue_token(data.client_id, data.client_secret, data.scope)


@router.post("/introspect", response_model=TokenInfoResponse, summary="Introspect a machine token")
async def introspect(
    data: IntrospectRequest,
    service: OAuth2Service = Depends(get_oauth2_service),
) -> TokenInfoResponse:
    return await service.introspect(data.token)
