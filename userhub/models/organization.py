"""
Organization ORM model.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from userhub.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from userhub.models.membership import Membership


class OrgType(str, enum.Enum):
    """Closed set of organization kinds."""

    domain = "domain"
    organization = "organization"
    tenant = "tenant"

    @classmethod
    def parse(cls, value: object) -> OrgType:
        from userhub.core.errors import InvalidOrgType

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidOrgType()
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidOrgType(f"Unknown organization type {value!r}")


class Organization(Base, UUIDMixin, TimestampMixin):
    """Represents an organization; ``owner_id`` mirrors the single owner membership."""

    __tablename__ = "organizations"

    org_type: Mapped[OrgType] = mapped_column(
        Enum(OrgType, name="org_type"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )
    owner_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    domain_id: Mapped[UUID | None] = mapped_column(nullable=True)
    parent_org_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Relationships
    members: Mapped[list[Membership]] = relationship(
        "Membership",
        back_populates="organization",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r} owner_id={self.owner_id}>"
