"""
Organization business logic.

Handles organization lifecycle and member management. Every operation on an
existing organization passes the authorization gate before touching storage.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import IdentityClient, SubjectIdentity
from userhub.core.config import settings
from userhub.core.errors import (
    ForbiddenOwnerDemotion,
    ForbiddenOwnerRemoval,
    InvalidRole,
    MemberNotFound,
    OrganizationNameTaken,
    UserNotFound,
)
from userhub.models.membership import Membership, OrgRole
from userhub.models.organization import Organization, OrgType
from userhub.models.user import User
from userhub.schemas.organization import (
    MemberResponse,
    MembersListResponse,
    OrganizationCreateRequest,
    OrganizationDetailResponse,
    OrganizationResponse,
    OrganizationsListResponse,
    OrganizationUpdateRequest,
)
from userhub.services import access
from userhub.services.membership_store import MembershipStore, storage_errors
from userhub.services.user_service import UserService

logger = logging.getLogger(__name__)


def member_response(membership: Membership, user: User) -> MemberResponse:
    return MemberResponse(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        display_name=user.display_name or user.email,
        role=membership.role.value,
        joined_at=membership.joined_at,
    )


def organization_response(org: Organization, role: OrgRole | None = None) -> OrganizationResponse:
    response = OrganizationResponse.model_validate(org)
    if role is not None:
        response.role = role.value
    return response


class OrganizationService:
    """Handles all organization operations."""

    def __init__(self, db: AsyncSession, identity_client: IdentityClient | None = None) -> None:
        self.db = db
        self.identity_client = identity_client
        self.store = MembershipStore(db)
        self.users = UserService(db, identity_client)

    # -----------------------------------------------------------------------
    # Create Organization
    # -----------------------------------------------------------------------

    async def create_organization(
        self,
        creator: SubjectIdentity,
        data: OrganizationCreateRequest,
        *,
        is_default: bool = False,
    ) -> OrganizationResponse:
        """
        Create a new organization owned by ``creator``.

        - Validates type and name uniqueness
        - Ensures the creator's cached profile exists
        - Inserts the organization and the owner membership in the caller's
          transaction, so either both persist or neither does
        """
        org_type = OrgType.parse(data.org_type)
        await self._ensure_name_free(data.name)
        await self.users.upsert_profile(creator)

        org = Organization(
            org_type=org_type,
            name=data.name,
            description=data.description,
            data=data.data,
            owner_id=creator.id,
            is_default=is_default,
            domain_id=data.domain_id,
            parent_org_id=data.parent_org_id,
        )
        self.db.add(org)
        await self._flush_unique_name()
        await self.store.insert(creator.id, org.id, OrgRole.owner)
        await self.db.refresh(org)

        logger.info(
            "Organization %s (%s) created by %s%s",
            org.id,
            org.name,
            creator.id,
            " [default]" if is_default else "",
        )
        return organization_response(org, OrgRole.owner)

    async def _ensure_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Organization.id).where(Organization.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Organization.id != exclude_id)
        existing = await self.db.execute(stmt)
        if existing.first() is not None:
            raise OrganizationNameTaken()

    @storage_errors
    async def _flush_unique_name(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Lost a race on the unique name
            raise OrganizationNameTaken() from exc

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def list_organizations(self, actor: SubjectIdentity) -> OrganizationsListResponse:
        """Organizations the actor belongs to, with the actor's role in each."""
        rows = await self.store.list_for_user(actor.id)
        organizations = [organization_response(org, role) for org, role in rows]
        return OrganizationsListResponse(organizations=organizations, total=len(organizations))

    async def get_organization(
        self, actor: SubjectIdentity, org_id: UUID
    ) -> OrganizationDetailResponse:
        gate = await access.require_member(self.db, actor.id, org_id)
        members = await self.store.list_members(org_id)
        base = organization_response(gate.organization, gate.role)
        return OrganizationDetailResponse(
            **base.model_dump(),
            members=[member_response(m, u) for m, u in members],
        )

    # -----------------------------------------------------------------------
    # Update / Delete
    # -----------------------------------------------------------------------

    async def update_organization(
        self, actor: SubjectIdentity, org_id: UUID, data: OrganizationUpdateRequest
    ) -> OrganizationResponse:
        """Change name, description, type or metadata; ownership is never touched here."""
        gate = await access.require_admin(self.db, actor.id, org_id)
        org = gate.organization

        if data.org_type is not None:
            org.org_type = OrgType.parse(data.org_type)
        if data.name is not None and data.name != org.name:
            await self._ensure_name_free(data.name, exclude_id=org.id)
            org.name = data.name
        if data.description is not None:
            org.description = data.description
        if data.data is not None:
            org.data = data.data
        for field in ("domain_id", "parent_org_id"):
            if field in data.model_fields_set:
                setattr(org, field, getattr(data, field))

        await self._flush_unique_name()
        await self.db.refresh(org)
        return organization_response(org, gate.role)

    async def delete_organization(self, actor: SubjectIdentity, org_id: UUID) -> None:
        """Delete an organization and all of its memberships. Irreversible."""
        gate = await access.require_owner(self.db, actor.id, org_id)

        removed = await self.store.delete_for_organization(org_id)
        await self.db.delete(gate.organization)
        await self._flush()

        logger.info(
            "Organization %s deleted by %s (%d memberships removed)", org_id, actor.id, removed
        )

    @storage_errors
    async def _flush(self) -> None:
        await self.db.flush()

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def list_members(self, actor: SubjectIdentity, org_id: UUID) -> MembersListResponse:
        await access.require_member(self.db, actor.id, org_id)
        rows = await self.store.list_members(org_id)
        members = [member_response(m, u) for m, u in rows]
        return MembersListResponse(members=members, total=len(members))

    async def add_member(
        self, actor: SubjectIdentity, org_id: UUID, email: str, role: str
    ) -> MemberResponse:
        """
        Add a user to an organization by email, or change the role of an
        existing member (re-invites are upserts).

        Ownership cannot be granted here; it moves only through a transfer.
        """
        new_role = OrgRole.parse(role)
        if new_role is OrgRole.owner:
            raise InvalidRole("Ownership can only be transferred, not granted on invite")

        await access.require_admin(self.db, actor.id, org_id)

        if self.identity_client is None:
            raise RuntimeError("OrganizationService.add_member needs an identity client")
        identity = await self.identity_client.find_identity_by_email(email)
        if identity is None:
            raise UserNotFound(f"No user is registered with {email}")
        user = await self.users.upsert_profile(identity)

        # Directory lookup done; hold the organization lock from here on
        gate = await access.require_admin(self.db, actor.id, org_id, lock=True)
        existing = await self.store.get(identity.id, org_id)
        if existing is not None and existing.role is OrgRole.owner:
            raise ForbiddenOwnerDemotion()

        added = existing is None
        if existing is not None and not await self.store.change_role(
            identity.id, org_id, new_role, rejoin=True
        ):
            if await self.store.get(identity.id, org_id) is not None:
                raise ForbiddenOwnerDemotion()
            added = True
        if added:
            membership = await self.store.insert(identity.id, org_id, new_role)
        else:
            membership = await self.store.get(identity.id, org_id)

        logger.info(
            "%s %s as %s in organization %s by %s",
            "Added" if added else "Updated",
            identity.id,
            new_role.value,
            org_id,
            actor.id,
        )

        if settings.SEND_MEMBERSHIP_EMAILS and added:
            from userhub.workers.email_tasks import send_membership_email

            send_membership_email.delay(
                to_email=user.email,
                org_name=gate.organization.name,
                org_id=str(org_id),
                inviter_name=actor.display_name,
                role=new_role.value,
                frontend_url=settings.FRONTEND_URL,
            )

        return member_response(membership, user)

    async def remove_member(
        self, actor: SubjectIdentity, org_id: UUID, target_user_id: str
    ) -> None:
        """Remove a member. The owner can never be removed this way."""
        await access.require_admin(self.db, actor.id, org_id, lock=True)

        membership = await self.store.get(target_user_id, org_id)
        if membership is None:
            raise MemberNotFound()
        if membership.role is OrgRole.owner:
            raise ForbiddenOwnerRemoval()

        if not await self.store.remove(target_user_id, org_id):
            # The row changed between read and write
            if await self.store.get(target_user_id, org_id) is None:
                raise MemberNotFound()
            raise ForbiddenOwnerRemoval()
        logger.info("Removed %s from organization %s by %s", target_user_id, org_id, actor.id)
