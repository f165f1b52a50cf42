"""
Membership ORM model: the (user, organization, role) relation.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from userhub.models.base import Base

if TYPE_CHECKING:
    from userhub.models.organization import Organization
    from userhub.models.user import User


class OrgRole(str, enum.Enum):
    """Organization member role enumeration."""

    owner = "owner"
    admin = "admin"
    member = "member"

    @classmethod
    def parse(cls, value: object) -> OrgRole:
        """Map an external role string onto the closed enumeration."""
        from userhub.core.errors import InvalidRole

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidRole()
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidRole(f"Unknown role {value!r}; expected member, admin or owner")

    @property
    def is_admin(self) -> bool:
        return self in (OrgRole.admin, OrgRole.owner)


OWNER_ROLE_CLAUSE = text("role = 'owner'")


class Membership(Base):
    """Join table linking users to organizations with a role."""

    __tablename__ = "user_organization_links"
    __table_args__ = (
        # At most one owner row per organization, enforced by storage as well
        Index(
            "uq_user_organization_links_owner",
            "organization_id",
            unique=True,
            postgresql_where=OWNER_ROLE_CLAUSE,
            sqlite_where=OWNER_ROLE_CLAUSE,
        ),
        Index("idx_user_org_links_role", "role"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role: Mapped[OrgRole] = mapped_column(
        Enum(OrgRole, name="org_role"), nullable=False, default=OrgRole.member
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    organization: Mapped[Organization] = relationship(
        "Organization", back_populates="members"
    )
    user: Mapped[User] = relationship("User", back_populates="memberships")

    def __repr__(self) -> str:
        return (
            f"<Membership organization_id={self.organization_id} "
            f"user_id={self.user_id} role={self.role}>"
        )
