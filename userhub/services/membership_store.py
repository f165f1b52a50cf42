"""
Membership store: persistence of (user, organization, role) rows.

Every read goes to the database; nothing here is cached in-process.
SQLAlchemy errors are translated to ``StorageFailure``.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import ParamSpec, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.core.errors import StorageFailure
from userhub.models.membership import Membership, OrgRole
from userhub.models.organization import Organization
from userhub.models.user import User

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def storage_errors(fn: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Re-raise database driver errors as ``StorageFailure``."""

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Membership storage call %s failed", fn.__name__)
            raise StorageFailure(str(exc)) from exc

    return wrapper


class MembershipStore:
    """
    Reads and writes ``user_organization_links``.

    Role changes and removals are conditional statements that re-check the
    role at write time: a row that became the owner after it was read is
    never overwritten or deleted. They return False when no row matched.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ---------------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------------

    @storage_errors
    async def get(self, user_id: str, org_id: UUID) -> Membership | None:
        result = await self.db.execute(
            select(Membership)
            .where(
                Membership.user_id == user_id,
                Membership.organization_id == org_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @storage_errors
    async def count_owners(self, org_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Membership)
            .where(
                Membership.organization_id == org_id,
                Membership.role == OrgRole.owner,
            )
        )
        return result.scalar_one()

    @storage_errors
    async def list_members(self, org_id: UUID) -> list[tuple[Membership, User]]:
        """Members of an organization joined with their cached profile, by join date."""
        result = await self.db.execute(
            select(Membership, User)
            .join(User, User.id == Membership.user_id)
            .where(Membership.organization_id == org_id)
            .order_by(Membership.joined_at.asc(), User.email.asc())
        )
        return [(membership, user) for membership, user in result.all()]

    @storage_errors
    async def list_for_user(self, user_id: str) -> list[tuple[Organization, OrgRole]]:
        """Organizations a user belongs to, with the user's role in each."""
        result = await self.db.execute(
            select(Organization, Membership.role)
            .join(Membership, Membership.organization_id == Organization.id)
            .where(Membership.user_id == user_id)
            .order_by(Organization.created_at.asc(), Organization.name.asc())
        )
        return [(org, role) for org, role in result.all()]

    # ---------------------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------------------

    @storage_errors
    async def insert(self, user_id: str, org_id: UUID, role: OrgRole) -> Membership:
        membership = Membership(
            user_id=user_id,
            organization_id=org_id,
            role=role,
            joined_at=datetime.now(timezone.utc),
        )
        self.db.add(membership)
        await self.db.flush()
        return membership

    @storage_errors
    async def change_role(
        self, user_id: str, org_id: UUID, role: OrgRole, *, rejoin: bool = False
    ) -> bool:
        """Set a non-owner member's role; ``rejoin`` also refreshes ``joined_at``."""
        values: dict[str, object] = {"role": role}
        if rejoin:
            values["joined_at"] = datetime.now(timezone.utc)
        return await self._update(
            values,
            Membership.user_id == user_id,
            Membership.organization_id == org_id,
            Membership.role != OrgRole.owner,
        )

    @storage_errors
    async def demote_owner(self, org_id: UUID, user_id: str) -> bool:
        """Turn ``user_id`` from owner into admin, only if they still are the owner."""
        return await self._update(
            {"role": OrgRole.admin},
            Membership.user_id == user_id,
            Membership.organization_id == org_id,
            Membership.role == OrgRole.owner,
        )

    @storage_errors
    async def promote_to_owner(self, user_id: str, org_id: UUID) -> bool:
        return await self._update(
            {"role": OrgRole.owner},
            Membership.user_id == user_id,
            Membership.organization_id == org_id,
        )

    @storage_errors
    async def remove(self, user_id: str, org_id: UUID) -> bool:
        """Delete a non-owner membership."""
        result = await self.db.execute(
            delete(Membership)
            .where(
                Membership.user_id == user_id,
                Membership.organization_id == org_id,
                Membership.role != OrgRole.owner,
            )
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    @storage_errors
    async def delete_for_organization(self, org_id: UUID) -> int:
        result = await self.db.execute(
            delete(Membership).where(Membership.organization_id == org_id)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def _update(self, values: dict[str, object], *criteria: ColumnElement[bool]) -> bool:
        await self.db.flush()
        result = await self.db.execute(
            update(Membership)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)
