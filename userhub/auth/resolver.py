"""
Credential resolver.

Turns an inbound request into a validated ``SubjectIdentity``. Candidate
credentials are taken in order (bearer token, then session cookie); each is
checked in its primary representation and, when the provider's answer is
inconclusive, again in the alternate representation. All attempts of one
resolution share a single time budget.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from userhub.auth.identity import IdentityClient, SessionCheck, SessionOutcome, SubjectIdentity
from userhub.core.config import settings
from userhub.core.errors import InvalidCredential, NoCredential, ProviderUnreachable
from userhub.core.logging_config import token_hint

logger = logging.getLogger(__name__)

BEARER = "bearer"
COOKIE = "cookie"

# Representation order per credential source: primary first, then alternate
REPRESENTATIONS: dict[str, tuple[str, str]] = {
    BEARER: ("token", "cookie"),
    COOKIE: ("cookie", "token"),
}


@dataclass(frozen=True)
class Candidate:
    source: str
    value: str


def extract_candidates(
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    cookie_name: str | None = None,
) -> list[Candidate]:
    """Collect session credentials from a request, bearer token first."""
    candidates: list[Candidate] = []

    authorization = headers.get("authorization") or headers.get("Authorization") or ""
    scheme, _, value = authorization.strip().partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        candidates.append(Candidate(BEARER, value.strip()))

    cookie_value = cookies.get(cookie_name or settings.SESSION_COOKIE_NAME)
    if cookie_value:
        candidates.append(Candidate(COOKIE, cookie_value))

    return candidates


class CredentialResolver:
    """Resolves request credentials against the identity provider."""

    def __init__(
        self,
        client: IdentityClient,
        *,
        budget_seconds: float | None = None,
        call_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.budget_seconds = budget_seconds or settings.SESSION_RESOLUTION_BUDGET_SECONDS
        self.call_timeout_seconds = call_timeout_seconds or settings.PROVIDER_TIMEOUT_SECONDS
        self._clock = clock

    async def resolve(
        self, headers: Mapping[str, str], cookies: Mapping[str, str]
    ) -> SubjectIdentity:
        """
        Validate the request's credentials.

        Raises:
            NoCredential: No bearer token and no session cookie.
            InvalidCredential: Every credential was definitively rejected.
            ProviderUnreachable: At least one credential could not be checked.
        """
        candidates = extract_candidates(headers, cookies, self.client.cookie_name)
        if not candidates:
            raise NoCredential()

        deadline = self._clock() + self.budget_seconds
        inconclusive = False

        for candidate in candidates:
            check = await self._check_candidate(candidate, deadline)
            if check.outcome is SessionOutcome.VALID and check.identity is not None:
                return check.identity
            if check.outcome is SessionOutcome.UNREACHABLE:
                inconclusive = True

        if inconclusive:
            raise ProviderUnreachable()
        raise InvalidCredential()

    async def _check_candidate(self, candidate: Candidate, deadline: float) -> SessionCheck:
        """
        Run one credential through its representations.

        Returns the deciding check: VALID or REJECTED as soon as one arrives,
        MALFORMED when every representation was unreadable, UNREACHABLE when
        any representation went unanswered (including an exhausted budget).
        """
        outcomes: list[SessionOutcome] = []

        for representation in REPRESENTATIONS[candidate.source]:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "Session resolution budget exhausted before %s/%s attempt",
                    candidate.source,
                    representation,
                )
                outcomes.append(SessionOutcome.UNREACHABLE)
                break

            check = await self.client.to_session(
                timeout=min(self.call_timeout_seconds, remaining),
                **{representation: candidate.value},
            )
            logger.debug(
                "Session %s/%s for %s: %s",
                candidate.source,
                representation,
                token_hint(candidate.value),
                check.outcome.value,
            )
            if not check.transient:
                return check
            outcomes.append(check.outcome)

        if SessionOutcome.UNREACHABLE in outcomes:
            return SessionCheck(SessionOutcome.UNREACHABLE)
        return SessionCheck(SessionOutcome.MALFORMED)
