"""
Identity provider (Ory Kratos) client.

Wraps the two APIs this service consumes:
- Public API: session introspection (``/sessions/whoami``)
- Admin API: identity directory lookups and session revocation

Session checks never raise; they return a classified ``SessionCheck`` so the
credential resolver can decide whether to retry with another representation.
Directory calls raise ``ProviderUnreachable`` when the provider cannot answer.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, Field

from userhub.core.config import settings
from userhub.core.errors import ProviderUnreachable
from userhub.core.logging_config import token_hint

logger = logging.getLogger(__name__)


class SubjectIdentity(BaseModel):
    """Canonical identity as reported by the identity provider."""

    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    verified_addresses: list[str] = Field(default_factory=list)
    session_id: str | None = None
    traits: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.email

    @property
    def email_verified(self) -> bool:
        return bool(self.email) and self.email.lower() in {
            address.lower() for address in self.verified_addresses
        }

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], session_id: str | None = None
    ) -> SubjectIdentity:
        """
        Build from a provider identity document.

        Raises:
            ValueError: If the document has no subject id.
        """
        identity_id = payload.get("id")
        if not isinstance(identity_id, str) or not identity_id:
            raise ValueError("identity document has no id")

        traits = payload.get("traits") or {}
        if not isinstance(traits, dict):
            traits = {}
        name = traits.get("name") or {}
        if isinstance(name, str):
            first, _, last = name.partition(" ")
        else:
            first = str(name.get("first") or "")
            last = str(name.get("last") or "")

        verified = [
            str(address.get("value"))
            for address in payload.get("verifiable_addresses") or []
            if isinstance(address, dict) and address.get("verified") and address.get("value")
        ]

        return cls(
            id=identity_id,
            email=str(traits.get("email") or ""),
            first_name=first.strip(),
            last_name=last.strip(),
            verified_addresses=verified,
            session_id=session_id,
            traits=traits,
        )


class SessionOutcome(str, enum.Enum):
    """How the provider answered one session check."""

    VALID = "valid"
    REJECTED = "rejected"  # definitive: expired, revoked, unknown
    MALFORMED = "malformed"  # provider could not read the credential in this form
    UNREACHABLE = "unreachable"  # timeout, transport error, 5xx


@dataclass(frozen=True)
class SessionCheck:
    outcome: SessionOutcome
    identity: SubjectIdentity | None = None
    detail: str = ""

    @property
    def transient(self) -> bool:
        return self.outcome in (SessionOutcome.MALFORMED, SessionOutcome.UNREACHABLE)


class IdentityClient:
    """Client for the identity provider's public and admin APIs."""

    def __init__(
        self,
        public_url: str | None = None,
        admin_url: str | None = None,
        *,
        cookie_name: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            public_url: Public API base URL. Falls back to settings.
            admin_url: Admin API base URL. Falls back to settings.
            cookie_name: Session cookie name the provider expects.
            timeout: Per-call timeout in seconds.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self.public_url = (public_url or settings.KRATOS_PUBLIC_URL).rstrip("/")
        self.admin_url = (admin_url or settings.KRATOS_ADMIN_URL).rstrip("/")
        self.cookie_name = cookie_name or settings.SESSION_COOKIE_NAME
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=timeout if timeout is not None else self.timeout,
            headers={"Accept": "application/json"},
        )

    # ---------------------------------------------------------------------------
    # Sessions
    # ---------------------------------------------------------------------------

    async def to_session(
        self,
        *,
        token: str | None = None,
        cookie: str | None = None,
        timeout: float | None = None,
    ) -> SessionCheck:
        """
        Ask the provider whether a session credential is valid.

        Exactly one of ``token`` (sent as ``X-Session-Token``) or ``cookie``
        (sent as the session cookie) must be given.
        """
        if (token is None) == (cookie is None):
            raise ValueError("pass exactly one of token or cookie")

        if token is not None:
            headers = {"X-Session-Token": token}
            via, credential = "token", token
        else:
            headers = {"Cookie": f"{self.cookie_name}={cookie}"}
            via, credential = "cookie", cookie

        try:
            async with self._client(timeout) as client:
                response = await client.get(
                    f"{self.public_url}/sessions/whoami", headers=headers
                )
        except httpx.TimeoutException:
            logger.warning("Session check via %s timed out for %s", via, token_hint(credential))
            return SessionCheck(SessionOutcome.UNREACHABLE, detail="timeout")
        except httpx.HTTPError as exc:
            logger.warning(
                "Session check via %s failed for %s: %s", via, token_hint(credential), exc
            )
            return SessionCheck(SessionOutcome.UNREACHABLE, detail=type(exc).__name__)

        return self._classify_session(response, via, credential)

    def _classify_session(
        self, response: httpx.Response, via: str, credential: str
    ) -> SessionCheck:
        status_code = response.status_code

        if status_code in (401, 403, 404):
            logger.debug("Session via %s rejected (%s)", via, status_code)
            return SessionCheck(SessionOutcome.REJECTED, detail=str(status_code))
        if status_code == 400:
            return SessionCheck(SessionOutcome.MALFORMED, detail="400")
        if status_code != 200:
            logger.warning(
                "Identity provider answered %s to session check via %s", status_code, via
            )
            return SessionCheck(SessionOutcome.UNREACHABLE, detail=str(status_code))

        try:
            body = response.json()
        except ValueError:
            logger.warning("Identity provider returned a non-JSON session document")
            return SessionCheck(SessionOutcome.MALFORMED, detail="non-json")

        if not isinstance(body, dict) or not body.get("active", False):
            return SessionCheck(SessionOutcome.REJECTED, detail="inactive")

        try:
            identity = SubjectIdentity.from_payload(
                body.get("identity") or {}, session_id=body.get("id")
            )
        except ValueError:
            logger.warning("Session document without identity for %s", token_hint(credential))
            return SessionCheck(SessionOutcome.MALFORMED, detail="no-identity")

        return SessionCheck(SessionOutcome.VALID, identity=identity)

    async def disable_session(self, session_id: str) -> None:
        """Revoke a session; an already-gone session is not an error."""
        response = await self._admin("DELETE", f"/admin/sessions/{session_id}")
        if response.status_code not in (204, 404):
            logger.warning(
                "Disabling session %s returned %s", session_id, response.status_code
            )

    # ---------------------------------------------------------------------------
    # Directory
    # ---------------------------------------------------------------------------

    async def find_identity_by_email(self, email: str) -> SubjectIdentity | None:
        """Look up an identity by its login identifier (email)."""
        response = await self._admin(
            "GET",
            "/admin/identities",
            params={"credentials_identifier": email.strip().lower()},
        )
        if response.status_code != 200:
            raise ProviderUnreachable(f"identity lookup returned {response.status_code}")
        identities = self._parse_identities(response)
        return identities[0] if identities else None

    async def get_identity(self, identity_id: str) -> SubjectIdentity | None:
        response = await self._admin("GET", f"/admin/identities/{identity_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProviderUnreachable(f"identity fetch returned {response.status_code}")
        try:
            return SubjectIdentity.from_payload(response.json())
        except ValueError as exc:
            raise ProviderUnreachable(f"unreadable identity document: {exc}") from exc

    async def list_identities(self, page_size: int = 250) -> list[SubjectIdentity]:
        response = await self._admin(
            "GET", "/admin/identities", params={"page_size": page_size}
        )
        if response.status_code != 200:
            raise ProviderUnreachable(f"identity listing returned {response.status_code}")
        return self._parse_identities(response)

    async def _admin(
        self, method: str, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(
                    method, f"{self.admin_url}{path}", params=params
                )
        except httpx.HTTPError as exc:
            logger.error("Identity admin call %s %s failed: %s", method, path, exc)
            raise ProviderUnreachable(f"{method} {path}: {type(exc).__name__}") from exc

        if response.status_code >= 500:
            logger.error(
                "Identity admin call %s %s answered %s", method, path, response.status_code
            )
            raise ProviderUnreachable(f"{method} {path}: {response.status_code}")
        return response

    @staticmethod
    def _parse_identities(response: httpx.Response) -> list[SubjectIdentity]:
        try:
            documents = response.json()
        except ValueError as exc:
            raise ProviderUnreachable("identity listing was not JSON") from exc

        identities = []
        for document in documents if isinstance(documents, list) else []:
            try:
                identities.append(SubjectIdentity.from_payload(document))
            except ValueError:
                logger.warning("Skipping identity document without id")
        return identities
