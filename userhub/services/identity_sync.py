"""
Identity sync bridge.

Applies identity-provider lifecycle events to the local profile cache and
bootstraps the first organization when the very first user registers.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import SubjectIdentity
from userhub.core.config import settings
from userhub.core.errors import InvalidWebhookPayload, OrganizationNameTaken
from userhub.schemas.hooks import HookResponse
from userhub.schemas.organization import OrganizationCreateRequest, OrganizationResponse
from userhub.services.organization_service import OrganizationService
from userhub.services.user_service import UserService

logger = logging.getLogger(__name__)


class IdentityEvent(str, enum.Enum):
    after_registration = "after-registration"
    after_login = "after-login"
    after_verification = "after-verification"


def parse_identity(document: Any) -> SubjectIdentity:
    """Validate the identity document of a webhook payload."""
    if not isinstance(document, dict):
        raise InvalidWebhookPayload("identity must be an object")
    try:
        identity = SubjectIdentity.from_payload(document)
    except ValueError as exc:
        raise InvalidWebhookPayload(str(exc)) from exc
    if not identity.email:
        raise InvalidWebhookPayload("identity has no email trait")
    return identity


def bootstrap_organization_name(identity: SubjectIdentity) -> str:
    first = identity.first_name.strip()
    last = identity.last_name.strip()
    if first and last:
        return f"{first} {last}'s Organization"
    if first:
        return f"{first}'s Organization"
    return settings.DEFAULT_ORGANIZATION_LABEL


class IdentitySyncBridge:
    """Consumes after-registration / after-login / after-verification events."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.users = UserService(db)

    async def handle(self, event: IdentityEvent, identity: SubjectIdentity) -> HookResponse:
        # Counted before the upsert and inside the same transaction
        first_user = event is IdentityEvent.after_registration and await self.users.count() == 0

        user = await self.users.upsert_profile(
            identity, login=event is IdentityEvent.after_login
        )
        logger.info("Identity %s synced on %s", identity.id, event.value)

        bootstrap_id: str | None = None
        if first_user:
            bootstrap_id = await self._bootstrap(identity)
            await self.db.refresh(user)
            user.can_create_organizations = True
            await self.db.flush()

        return HookResponse(user_id=identity.id, bootstrap_organization_id=bootstrap_id)

    async def _bootstrap(self, identity: SubjectIdentity) -> str:
        """
        Create the default organization for the first user and make them its owner.

        When the name is already taken (two first registrations racing, or
        two identities with the same name) the short subject id is appended.
        """
        name = bootstrap_organization_name(identity)
        try:
            org = await self._create_default(identity, name)
        except OrganizationNameTaken:
            logger.warning(
                "Bootstrap name %r is taken; retrying with the subject id for %s",
                name,
                identity.id,
            )
            org = await self._create_default(identity, f"{name} ({identity.id[:8]})")
        logger.info("Bootstrapped default organization %s for first user %s", org.id, identity.id)
        return str(org.id)

    async def _create_default(self, identity: SubjectIdentity, name: str) -> OrganizationResponse:
        # Savepoint: a taken name must not roll back the profile sync
        async with self.db.begin_nested():
            return await OrganizationService(self.db).create_organization(
                identity,
                OrganizationCreateRequest(
                    name=name,
                    org_type="organization",
                    description="Default organization",
                ),
                is_default=True,
            )
