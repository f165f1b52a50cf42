"""
Credential resolver tests.

Verifies that:
- Bearer tokens are tried before the session cookie
- An inconclusive answer is retried with the alternate representation
- Rejections are definitive and map to InvalidCredential
- Timeouts and provider errors map to ProviderUnreachable, never to 401
- All attempts share one time budget
"""

from __future__ import annotations

import json

import httpx
import pytest

from userhub.auth.identity import IdentityClient, SessionOutcome
from userhub.auth.resolver import CredentialResolver, extract_candidates
from userhub.core.errors import InvalidCredential, NoCredential, ProviderUnreachable

COOKIE = "ory_kratos_session"


def session_document(user_id: str = "user-1", email: str = "ada@example.com") -> dict:
    return {
        "id": "session-1",
        "active": True,
        "identity": {
            "id": user_id,
            "traits": {"email": email, "name": {"first": "Ada", "last": "Lovelace"}},
            "verifiable_addresses": [{"value": email, "verified": True, "via": "email"}],
        },
    }


def provider(handler) -> tuple[IdentityClient, list[httpx.Request]]:
    """IdentityClient backed by a MockTransport; returns the client and its request log."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = IdentityClient(
        "http://kratos.test",
        "http://kratos-admin.test",
        cookie_name=COOKIE,
        transport=httpx.MockTransport(record),
    )
    return client, seen


def via(request: httpx.Request) -> tuple[str, str]:
    """Which representation a whoami call used, and the credential value."""
    if "X-Session-Token" in request.headers:
        return "token", request.headers["X-Session-Token"]
    name, _, value = request.headers.get("Cookie", "").partition("=")
    assert name == COOKIE
    return "cookie", value


# ---------------------------------------------------------------------------
# 1. Candidate extraction
# ---------------------------------------------------------------------------

def test_extract_candidates_orders_bearer_before_cookie():
    candidates = extract_candidates(
        {"Authorization": "Bearer tok-1"}, {COOKIE: "cookie-1"}, COOKIE
    )
    assert [(c.source, c.value) for c in candidates] == [
        ("bearer", "tok-1"),
        ("cookie", "cookie-1"),
    ]


def test_extract_candidates_ignores_other_schemes_and_cookies():
    candidates = extract_candidates(
        {"Authorization": "Basic Zm9vOmJhcg=="}, {"other": "x"}, COOKIE
    )
    assert candidates == []


# ---------------------------------------------------------------------------
# 2. Outcomes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_valid_bearer_token_resolves_identity():
    client, seen = provider(lambda r: httpx.Response(200, json=session_document()))

    identity = await CredentialResolver(client).resolve(bearer_headers("tok"), {})

    assert identity.id == "user-1"
    assert identity.email_verified is True
    assert identity.session_id == "session-1"
    assert [via(r) for r in seen] == [("token", "tok")]


@pytest.mark.asyncio
async def test_no_credential():
    client, seen = provider(lambda r: httpx.Response(200, json=session_document()))

    with pytest.raises(NoCredential):
        await CredentialResolver(client).resolve({}, {})
    assert seen == []


@pytest.mark.asyncio
async def test_expired_bearer_without_cookie_is_invalid_not_missing():
    client, seen = provider(lambda r: httpx.Response(401, json={"error": {"code": 401}}))

    with pytest.raises(InvalidCredential):
        await CredentialResolver(client).resolve(bearer_headers("expired"), {})
    # A rejection is definitive: no retry with the alternate representation
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_inactive_session_is_rejected():
    document = session_document()
    document["active"] = False
    client, _ = provider(lambda r: httpx.Response(200, json=document))

    with pytest.raises(InvalidCredential):
        await CredentialResolver(client).resolve(bearer_headers("tok"), {})


@pytest.mark.asyncio
async def test_rejected_bearer_falls_back_to_cookie():
    def handler(request: httpx.Request) -> httpx.Response:
        _, value = via(request)
        if value == "good-cookie":
            return httpx.Response(200, json=session_document("user-2"))
        return httpx.Response(401)

    client, seen = provider(handler)

    identity = await CredentialResolver(client).resolve(
        bearer_headers("stale"), {COOKIE: "good-cookie"}
    )

    assert identity.id == "user-2"
    assert [via(r) for r in seen] == [("token", "stale"), ("cookie", "good-cookie")]


# ---------------------------------------------------------------------------
# 3. Alternate representation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_malformed_token_header_is_retried_as_cookie():
    def handler(request: httpx.Request) -> httpx.Response:
        representation, _ = via(request)
        if representation == "token":
            return httpx.Response(400, json={"error": {"code": 400}})
        return httpx.Response(200, json=session_document())

    client, seen = provider(handler)

    identity = await CredentialResolver(client).resolve(bearer_headers("tok"), {})

    assert identity.id == "user-1"
    assert [via(r) for r in seen] == [("token", "tok"), ("cookie", "tok")]


@pytest.mark.asyncio
async def test_cookie_unreachable_is_retried_as_token():
    def handler(request: httpx.Request) -> httpx.Response:
        representation, _ = via(request)
        if representation == "cookie":
            return httpx.Response(502)
        return httpx.Response(200, json=session_document())

    client, seen = provider(handler)

    identity = await CredentialResolver(client).resolve({}, {COOKIE: "c"})

    assert identity.id == "user-1"
    assert [via(r) for r in seen] == [("cookie", "c"), ("token", "c")]


@pytest.mark.asyncio
async def test_malformed_in_every_representation_is_invalid():
    client, seen = provider(lambda r: httpx.Response(400))

    with pytest.raises(InvalidCredential):
        await CredentialResolver(client).resolve(bearer_headers("garbage"), {})
    assert len(seen) == 2


# ---------------------------------------------------------------------------
# 4. Provider unavailable
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_timeouts_map_to_provider_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client, seen = provider(handler)

    with pytest.raises(ProviderUnreachable):
        await CredentialResolver(client).resolve(bearer_headers("tok"), {COOKIE: "c"})
    # Both credentials, both representations
    assert len(seen) == 4


@pytest.mark.asyncio
async def test_server_error_maps_to_provider_unreachable():
    client, _ = provider(lambda r: httpx.Response(503))

    with pytest.raises(ProviderUnreachable):
        await CredentialResolver(client).resolve(bearer_headers("tok"), {})


@pytest.mark.asyncio
async def test_unreachable_beats_rejection_in_classification():
    def handler(request: httpx.Request) -> httpx.Response:
        _, value = via(request)
        if value == "tok":
            return httpx.Response(401)
        raise httpx.ConnectError("refused", request=request)

    client, _ = provider(handler)

    with pytest.raises(ProviderUnreachable):
        await CredentialResolver(client).resolve(bearer_headers("tok"), {COOKIE: "c"})


@pytest.mark.asyncio
async def test_session_check_classifies_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client, _ = provider(handler)

    check = await client.to_session(token="tok")

    assert check.outcome is SessionOutcome.UNREACHABLE
    assert check.transient is True


# ---------------------------------------------------------------------------
# 5. Shared budget
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_budget_exhaustion_stops_further_attempts():
    ticks = iter([0.0, 0.5, 5.0, 5.0, 5.0])
    client, seen = provider(lambda r: httpx.Response(503))
    resolver = CredentialResolver(
        client, budget_seconds=1.0, call_timeout_seconds=5.0, clock=lambda: next(ticks)
    )

    with pytest.raises(ProviderUnreachable):
        await resolver.resolve(bearer_headers("tok"), {})
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_call_timeout_is_capped_by_remaining_budget():
    client, seen = provider(lambda r: httpx.Response(200, json=session_document()))
    resolver = CredentialResolver(
        client, budget_seconds=2.0, call_timeout_seconds=5.0, clock=lambda: 0.0
    )

    await resolver.resolve(bearer_headers("tok"), {})

    assert seen[0].extensions["timeout"]["read"] == pytest.approx(2.0)


def bearer_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
