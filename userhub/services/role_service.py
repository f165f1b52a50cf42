"""
Role transitions inside an organization.

Plain role changes between member and admin, and ownership transfer, which
is the only path that moves ``organizations.owner_id`` after creation.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import SubjectIdentity
from userhub.core.errors import ForbiddenNotOwner, ForbiddenOwnerDemotion, MemberNotFound
from userhub.models.membership import Membership, OrgRole
from userhub.models.user import User
from userhub.schemas.organization import MemberResponse
from userhub.services import access
from userhub.services.access import OrganizationAccess
from userhub.services.membership_store import MembershipStore, storage_errors
from userhub.services.organization_service import member_response

logger = logging.getLogger(__name__)


class RoleTransitionEngine:
    """Applies role changes with the owner invariants intact."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.store = MembershipStore(db)

    async def set_role(
        self, actor: SubjectIdentity, org_id: UUID, target_user_id: str, role: str
    ) -> MemberResponse:
        """
        Change ``target_user_id``'s role.

        - ``owner``: only the current owner may name a successor; runs the transfer
        - ``admin`` / ``member``: requires admin; the current owner cannot be demoted

        Both paths lock the organization row before reading the target.
        """
        new_role = OrgRole.parse(role)

        if new_role is OrgRole.owner:
            gate = await access.require_owner(self.db, actor.id, org_id, lock=True)
            target = await self._require_target(target_user_id, org_id)
            await self.transfer_ownership(gate, target)
        else:
            await access.require_admin(self.db, actor.id, org_id, lock=True)
            target = await self._require_target(target_user_id, org_id)
            if target.role is OrgRole.owner:
                raise ForbiddenOwnerDemotion()
            if target.role is not new_role:
                if not await self.store.change_role(target_user_id, org_id, new_role):
                    # The row changed between read and write
                    await self._require_target(target_user_id, org_id)
                    raise ForbiddenOwnerDemotion()
                logger.info(
                    "Role of %s in organization %s set to %s by %s",
                    target_user_id,
                    org_id,
                    new_role.value,
                    actor.id,
                )

        target = await self._require_target(target_user_id, org_id)
        return await self._member(target)

    async def transfer_ownership(self, gate: OrganizationAccess, target: Membership) -> None:
        """
        Move ownership from the gate's actor to ``target`` within the current
        transaction.

        The actor is demoted only if they are still the owner at write time,
        and before the target is promoted, so the single-owner index never
        sees two owner rows. Of two competing transfers exactly one demotes
        the owner; the other fails with ``ForbiddenNotOwner``.
        """
        org = gate.organization
        if target.role is OrgRole.owner and org.owner_id == target.user_id:
            return

        if not await self.store.demote_owner(org.id, gate.user_id):
            raise ForbiddenNotOwner()
        if not await self.store.promote_to_owner(target.user_id, org.id):
            raise MemberNotFound()

        org.owner_id = target.user_id
        await self._flush()

        logger.info(
            "Ownership of organization %s transferred from %s to %s",
            org.id,
            gate.user_id,
            target.user_id,
        )

    async def _require_target(self, user_id: str, org_id: UUID) -> Membership:
        membership = await self.store.get(user_id, org_id)
        if membership is None:
            raise MemberNotFound()
        return membership

    @storage_errors
    async def _flush(self) -> None:
        await self.db.flush()

    @storage_errors
    async def _member(self, membership: Membership) -> MemberResponse:
        result = await self.db.execute(select(User).where(User.id == membership.user_id))
        return member_response(membership, result.scalar_one())
