"""
Declarative base and shared column mixins.

Every ``datetime`` column is timezone-aware through the base's type map.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all userhub tables."""

    type_annotation_map = {datetime: DateTime(timezone=True)}


class TimestampMixin:
    """Server-side ``created_at`` / ``updated_at``; read them back after a flush."""

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
        doc="When the row was inserted",
    )

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        doc="When the row was last written",
    )


class UUIDMixin:
    """
    Surrogate UUID primary key.

    Used for rows this service mints itself; identities keep the provider's id.
    """

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        doc="Identifier minted by userhub",
    )
