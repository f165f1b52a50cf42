"""
User ORM model: local cache of an identity-provider subject.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from userhub.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from userhub.models.membership import Membership


class User(Base, TimestampMixin):
    """Cached profile of an identity; the id is the provider's subject id."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    time_zone: Mapped[str] = mapped_column(String(255), nullable=False, default="UTC")
    ui_mode: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    can_create_organizations: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    memberships: Mapped[list[Membership]] = relationship(
        "Membership", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
