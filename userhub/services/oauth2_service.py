"""
Machine-to-machine OAuth2 clients.

Clients are registered at the authorization server (Ory Hydra) and mirrored
locally with a bcrypt hash of their secret. Only organization admins may
create clients for an organization; only the creator may revoke one.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import SubjectIdentity
from userhub.core.config import settings
from userhub.core.errors import (
    AuthorizationServerError,
    ClientNotFound,
    ForbiddenNotClientOwner,
    InvalidCredential,
    StorageFailure,
)
from userhub.models.oauth2_client import OAuth2Client, OAuth2TokenLog
from userhub.schemas.oauth2 import (
    ClientCreatedResponse,
    ClientCreateRequest,
    ClientResponse,
    ClientsListResponse,
    TokenInfoResponse,
    TokenResponse,
)
from userhub.services import access
from userhub.services.membership_store import storage_errors

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Secret hashing
# ---------------------------------------------------------------------------

def hash_secret(secret: str) -> str:
    """Hash a client secret with bcrypt."""
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_secret(secret: str, hashed: str) -> bool:
    """Check a client secret against its bcrypt hash."""
    return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))


def new_client_id(user_id: str) -> str:
    return f"m2m_{user_id[:8]}_{uuid.uuid4().hex[:8]}"


def new_client_secret() -> str:
    return f"{uuid.uuid4()}{uuid.uuid4()}"


def _timestamp(value: Any) -> datetime | None:
    if not isinstance(value, (int, float)) or value <= 0:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class AuthorizationServerClient:
    """Thin httpx wrapper around the authorization server's admin and public APIs."""

    def __init__(
        self,
        public_url: str | None = None,
        admin_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.public_url = (public_url or settings.HYDRA_PUBLIC_URL).rstrip("/")
        self.admin_url = (admin_url or settings.HYDRA_ADMIN_URL).rstrip("/")
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Authorization server call %s %s failed: %s", method, url, exc)
            raise AuthorizationServerError(f"{method} {url}: {type(exc).__name__}") from exc

    async def create_client(self, document: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", f"{self.admin_url}/admin/clients", json=document)
        if response.status_code not in (200, 201):
            logger.error("Client registration answered %s: %s", response.status_code, response.text)
            raise AuthorizationServerError(f"client registration returned {response.status_code}")
        return response.json()

    async def delete_client(self, client_id: str) -> None:
        response = await self._request("DELETE", f"{self.admin_url}/admin/clients/{client_id}")
        if response.status_code not in (204, 404):
            raise AuthorizationServerError(f"client deletion returned {response.status_code}")

    async def client_credentials_token(
        self, client_id: str, client_secret: str, scope: str | None = None
    ) -> dict[str, Any] | None:
        """Run the client-credentials grant; None when the server refuses the client."""
        form = {"grant_type": "client_credentials"}
        if scope:
            form["scope"] = scope
        response = await self._request(
            "POST",
            f"{self.public_url}/oauth2/token",
            data=form,
            auth=(client_id, client_secret),
        )
        if response.status_code in (400, 401, 403):
            return None
        if response.status_code != 200:
            raise AuthorizationServerError(f"token endpoint returned {response.status_code}")
        return response.json()

    async def introspect(self, token: str) -> dict[str, Any]:
        response = await self._request(
            "POST", f"{self.admin_url}/admin/oauth2/introspect", data={"token": token}
        )
        if response.status_code != 200:
            raise AuthorizationServerError(f"introspection returned {response.status_code}")
        return response.json()


class OAuth2Service:
    """Handles machine client lifecycle and token issuance."""

    def __init__(self, db: AsyncSession, server: AuthorizationServerClient) -> None:
        self.db = db
        self.server = server

    # -----------------------------------------------------------------------
    # Clients
    # -----------------------------------------------------------------------

    async def create_client(
        self, actor: SubjectIdentity, data: ClientCreateRequest
    ) -> ClientCreatedResponse:
        """
        Register a client-credentials client for an organization.

        The remote client is deleted again if the local record cannot be stored.
        """
        await access.require_admin(self.db, actor.id, data.organization_id)

        client_id = new_client_id(actor.id)
        client_secret = new_client_secret()
        scopes = " ".join(settings.m2m_scopes)

        await self.server.create_client(
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "client_name": data.name,
                "grant_types": ["client_credentials"],
                "response_types": ["token"],
                "scope": scopes,
                "token_endpoint_auth_method": "client_secret_basic",
                "skip_consent": True,
                "metadata": {
                    "user_id": actor.id,
                    "org_id": str(data.organization_id),
                    "client_type": "machine_to_machine",
                    "description": data.description,
                },
            }
        )

        record = OAuth2Client(
            client_id=client_id,
            client_secret_hash=hash_secret(client_secret),
            user_id=actor.id,
            organization_id=data.organization_id,
            name=data.name,
            description=data.description,
            scopes=scopes,
            is_active=True,
        )
        try:
            self.db.add(record)
            await self.db.flush()
            await self.db.refresh(record)
        except SQLAlchemyError as exc:
            logger.exception("Storing client %s failed; removing it remotely", client_id)
            await self.server.delete_client(client_id)
            raise StorageFailure(str(exc)) from exc

        logger.info(
            "Client %s created for organization %s by %s", client_id, data.organization_id, actor.id
        )
        return ClientCreatedResponse(
            **ClientResponse.model_validate(record).model_dump(),
            client_secret=client_secret,
        )

    @storage_errors
    async def list_clients(self, actor: SubjectIdentity) -> ClientsListResponse:
        result = await self.db.execute(
            select(OAuth2Client)
            .where(OAuth2Client.user_id == actor.id, OAuth2Client.is_active.is_(True))
            .order_by(OAuth2Client.created_at.desc())
        )
        clients = [ClientResponse.model_validate(c) for c in result.scalars().all()]
        return ClientsListResponse(clients=clients, total=len(clients))

    async def get_client(self, actor: SubjectIdentity, client_id: str) -> ClientResponse:
        return ClientResponse.model_validate(await self._owned_client(actor, client_id))

    async def revoke_client(self, actor: SubjectIdentity, client_id: str) -> None:
        """Delete the client remotely, then deactivate the local record."""
        record = await self._owned_client(actor, client_id)
        await self.server.delete_client(client_id)
        record.is_active = False
        await self._flush()
        logger.info("Client %s revoked by %s", client_id, actor.id)

    async def _owned_client(self, actor: SubjectIdentity, client_id: str) -> OAuth2Client:
        record = await self._find(client_id)
        if record is None or not record.is_active:
            raise ClientNotFound()
        if record.user_id != actor.id:
            raise ForbiddenNotClientOwner()
        return record

    @storage_errors
    async def _find(self, client_id: str) -> OAuth2Client | None:
        result = await self.db.execute(
            select(OAuth2Client).where(OAuth2Client.client_id == client_id)
        )
        return result.scalar_one_or_none()

    @storage_errors
    async def _flush(self) -> None:
        await self.db.flush()

    # -----------------------------------------------------------------------
    # Tokens
    # -----------------------------------------------------------------------

    async def issue_token(
        self, client_id: str, client_secret: str, scope: str | None = None
    ) -> TokenResponse:
        """Client-credentials grant for an active, locally known client."""
        record = await self._find(client_id)
        if (
            record is None
            or not record.is_active
            or not verify_secret(client_secret, record.client_secret_hash)
        ):
            raise InvalidCredential("Unknown client or wrong secret")

        grant = await self.server.client_credentials_token(client_id, client_secret, scope)
        if grant is None:
            raise InvalidCredential("The authorization server refused the client")

        if not grant.get("access_token"):
            raise AuthorizationServerError("token response carried no access token")

        expires_in = int(grant.get("expires_in") or 0)
        now = datetime.now(timezone.utc)
        record.last_used_at = now
        self.db.add(
            OAuth2TokenLog(
                client_id=client_id,
                granted_scopes=grant.get("scope") or "",
                expires_at=now + timedelta(seconds=expires_in) if expires_in else None,
            )
        )
        await self._flush()

        logger.info("Issued token for client %s (expires in %ss)", client_id, expires_in)
        return TokenResponse(
            access_token=grant["access_token"],
            token_type=grant.get("token_type") or "bearer",
            expires_in=expires_in,
            scope=grant.get("scope") or "",
            refresh_token=grant.get("refresh_token"),
        )

    async def introspect(self, token: str) -> TokenInfoResponse:
        info = await self.server.introspect(token)
        if not info.get("active"):
            return TokenInfoResponse(active=False)
        return TokenInfoResponse(
            active=True,
            client_id=info.get("client_id"),
            subject=info.get("sub"),
            scope=info.get("scope") or "",
            expires_at=_timestamp(info.get("exp")),
            issued_at=_timestamp(info.get("iat")),
        )
