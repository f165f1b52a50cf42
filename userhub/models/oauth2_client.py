"""
Machine-to-machine OAuth2 client metadata and token issuance log.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from userhub.models.base import Base, TimestampMixin, UUIDMixin


class OAuth2Client(Base, UUIDMixin, TimestampMixin):
    """Local record of a client registered at the authorization server."""

    __tablename__ = "oauth2_clients"

    client_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    client_secret_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    scopes: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<OAuth2Client client_id={self.client_id!r} active={self.is_active}>"


class OAuth2TokenLog(Base, UUIDMixin):
    """One row per issued machine token (never the token itself)."""

    __tablename__ = "oauth2_token_logs"

    client_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    granted_scopes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
