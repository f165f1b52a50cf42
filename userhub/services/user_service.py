"""
User profile business logic.

The local ``users`` table caches identity-provider subjects. Rows are written
only by identity sync and by the owner editing their own profile.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import IdentityClient, SubjectIdentity
from userhub.core.config import settings
from userhub.core.errors import UserNotFound
from userhub.models.user import User
from userhub.schemas.organization import OrganizationResponse
from userhub.schemas.user import (
    DirectoryUserResponse,
    ProfileUpdateRequest,
    UserResponse,
    UsersListResponse,
    WhoAmIResponse,
)
from userhub.services.membership_store import MembershipStore, storage_errors

logger = logging.getLogger(__name__)


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        display_name=user.display_name or user.email,
        time_zone=user.time_zone,
        ui_mode=user.ui_mode,
        can_create_organizations=user.can_create_organizations,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class UserService:
    """Handles cached profile reads and writes."""

    def __init__(self, db: AsyncSession, identity_client: IdentityClient | None = None) -> None:
        self.db = db
        self.identity_client = identity_client

    # -----------------------------------------------------------------------
    # Profile cache
    # -----------------------------------------------------------------------

    @storage_errors
    async def get(self, user_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @storage_errors
    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(User))
        return result.scalar_one()

    @storage_errors
    async def upsert_profile(self, identity: SubjectIdentity, *, login: bool = False) -> User:
        """
        Insert or refresh the cached profile for an identity.

        Email and names always follow the provider; time zone and UI mode
        are local preferences and only get defaults on insert.
        """
        user = await self.get(identity.id)
        now = datetime.now(timezone.utc)

        if user is None:
            user = User(
                id=identity.id,
                email=identity.email.lower(),
                first_name=identity.first_name,
                last_name=identity.last_name,
                time_zone=settings.DEFAULT_TIME_ZONE,
                ui_mode=settings.DEFAULT_UI_MODE,
                can_create_organizations=False,
                last_login=now if login else None,
            )
            self.db.add(user)
            logger.info("Cached new profile for identity %s", identity.id)
        else:
            user.email = identity.email.lower() or user.email
            if identity.first_name or identity.last_name:
                user.first_name = identity.first_name
                user.last_name = identity.last_name
            if login:
                user.last_login = now

        await self.db.flush()
        await self.db.refresh(user)
        return user

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserResponse:
        user = await self.get(user_id)
        if user is None:
            raise UserNotFound()
        return user_response(user)

    async def whoami(self, identity: SubjectIdentity) -> WhoAmIResponse:
        """Resolved identity plus its cached profile and memberships."""
        user = await self.get(identity.id)
        memberships = await MembershipStore(self.db).list_for_user(identity.id)
        organizations = [
            OrganizationResponse.model_validate(org).model_copy(update={"role": role.value})
            for org, role in memberships
        ]
        return WhoAmIResponse(
            id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            email_verified=identity.email_verified,
            profile=user_response(user) if user is not None else None,
            organizations=organizations,
        )

    async def list_users(self) -> UsersListResponse:
        """Directory identities merged with the profiles cached locally."""
        if self.identity_client is None:
            raise RuntimeError("UserService.list_users needs an identity client")

        identities = await self.identity_client.list_identities()
        ids = [identity.id for identity in identities]
        cached: dict[str, User] = {}
        if ids:
            result = await self.db.execute(select(User).where(User.id.in_(ids)))
            cached = {user.id: user for user in result.scalars().all()}

        users = [
            DirectoryUserResponse(
                id=identity.id,
                email=identity.email,
                first_name=identity.first_name,
                last_name=identity.last_name,
                email_verified=identity.email_verified,
                profile=user_response(cached[identity.id]) if identity.id in cached else None,
            )
            for identity in identities
        ]
        return UsersListResponse(users=users, total=len(users))

    # -----------------------------------------------------------------------
    # Profile edit
    # -----------------------------------------------------------------------

    async def update_profile(
        self, identity: SubjectIdentity, data: ProfileUpdateRequest
    ) -> UserResponse:
        """Edit the caller's own profile; the row is created first if missing."""
        user = await self.get(identity.id) or await self.upsert_profile(identity)

        for field in ("first_name", "last_name", "time_zone", "ui_mode"):
            value = getattr(data, field)
            if value is not None:
                setattr(user, field, value.strip() if field.endswith("_name") else value)

        await self.db.flush()
        await self.db.refresh(user)
        return user_response(user)
