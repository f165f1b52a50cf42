"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from userhub.models.base import Base, TimestampMixin, UUIDMixin
from userhub.models.user import User
from userhub.models.organization import Organization, OrgType
from userhub.models.membership import Membership, OrgRole
from userhub.models.oauth2_client import OAuth2Client, OAuth2TokenLog

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "Organization",
    "OrgType",
    "Membership",
    "OrgRole",
    "OAuth2Client",
    "OAuth2TokenLog",
]
