"""
Authorization gate.

Every per-organization decision goes through here. Each check is a single
query: the organization row left-joined with the actor's membership, read
fresh from the database on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.core.errors import (
    ForbiddenNotAdmin,
    ForbiddenNotMember,
    ForbiddenNotOwner,
    OrganizationNotFound,
)
from userhub.models.membership import Membership, OrgRole
from userhub.models.organization import Organization
from userhub.services.membership_store import storage_errors


@dataclass(frozen=True)
class OrganizationAccess:
    """An organization together with what the actor may do in it."""

    organization: Organization
    user_id: str
    role: OrgRole | None

    @property
    def is_member(self) -> bool:
        return self.role is not None

    @property
    def is_admin(self) -> bool:
        # owner_id is consulted as well so a transient mismatch never locks the owner out
        return (self.role is not None and self.role.is_admin) or (
            self.organization.owner_id == self.user_id
        )

    @property
    def is_owner(self) -> bool:
        return self.role is OrgRole.owner


@storage_errors
async def load_access(
    db: AsyncSession, user_id: str, org_id: UUID, *, lock: bool = False
) -> OrganizationAccess | None:
    """
    Load an organization and the actor's role in it.

    Returns None when the organization does not exist. With ``lock`` the
    organization row is locked FOR UPDATE for the rest of the transaction
    before the role is read, so the role reflects the latest committed state.
    """
    if lock:
        await db.execute(
            select(Organization.id).where(Organization.id == org_id).with_for_update()
        )

    stmt = (
        select(Organization, Membership.role)
        .outerjoin(
            Membership,
            and_(
                Membership.organization_id == Organization.id,
                Membership.user_id == user_id,
            ),
        )
        .where(Organization.id == org_id)
    )
    if lock:
        stmt = stmt.execution_options(populate_existing=True)

    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        return None
    organization, role = row
    return OrganizationAccess(organization=organization, user_id=user_id, role=role)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

async def is_member(db: AsyncSession, user_id: str, org_id: UUID) -> bool:
    access = await load_access(db, user_id, org_id)
    return access is not None and access.is_member


async def is_admin(db: AsyncSession, user_id: str, org_id: UUID) -> bool:
    access = await load_access(db, user_id, org_id)
    return access is not None and access.is_admin


async def is_owner(db: AsyncSession, user_id: str, org_id: UUID) -> bool:
    access = await load_access(db, user_id, org_id)
    return access is not None and access.is_owner


# ---------------------------------------------------------------------------
# Enforcement
# ---------------------------------------------------------------------------

async def _require(
    db: AsyncSession, user_id: str, org_id: UUID, lock: bool = False
) -> OrganizationAccess:
    access = await load_access(db, user_id, org_id, lock=lock)
    if access is None:
        raise OrganizationNotFound()
    return access


async def require_member(db: AsyncSession, user_id: str, org_id: UUID) -> OrganizationAccess:
    access = await _require(db, user_id, org_id)
    if not access.is_member:
        raise ForbiddenNotMember()
    return access


async def require_admin(
    db: AsyncSession, user_id: str, org_id: UUID, *, lock: bool = False
) -> OrganizationAccess:
    access = await _require(db, user_id, org_id, lock=lock)
    if not access.is_admin:
        if not access.is_member:
            raise ForbiddenNotMember()
        raise ForbiddenNotAdmin()
    return access


async def require_owner(
    db: AsyncSession, user_id: str, org_id: UUID, *, lock: bool = False
) -> OrganizationAccess:
    access = await _require(db, user_id, org_id, lock=lock)
    if not access.is_owner:
        if not access.is_member and not access.is_admin:
            raise ForbiddenNotMember()
        raise ForbiddenNotOwner()
    return access
