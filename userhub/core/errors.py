"""
Domain error taxonomy.

Every error carries a stable machine-readable code and the HTTP status the
handler boundary maps it to. Server-side errors (5xx) expose only an opaque
message to clients; full context goes to the log.
"""

from __future__ import annotations

from fastapi import status


class UserhubError(Exception):
    """Base class for all errors surfaced through the API."""

    code: str = "ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    def to_detail(self) -> dict[str, str]:
        message = self.default_message if self.is_server_error else self.message
        return {"code": self.code, "message": message}


# ---------------------------------------------------------------------------
# Session resolution
# ---------------------------------------------------------------------------

class CredentialError(UserhubError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NoCredential(CredentialError):
    code = "NO_CREDENTIAL"
    default_message = "No session credential was provided"


class InvalidCredential(CredentialError):
    code = "INVALID_CREDENTIAL"
    default_message = "Session is invalid or expired"


class ProviderUnreachable(UserhubError):
    code = "PROVIDER_UNREACHABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Identity service is temporarily unavailable"


class EmailNotVerified(UserhubError):
    code = "EMAIL_NOT_VERIFIED"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Please verify your email address before accessing this resource"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class Forbidden(UserhubError):
    status_code = status.HTTP_403_FORBIDDEN


class ForbiddenNotMember(Forbidden):
    code = "FORBIDDEN_NOT_MEMBER"
    default_message = "You are not a member of this organization"


class ForbiddenNotAdmin(Forbidden):
    code = "FORBIDDEN_NOT_ADMIN"
    default_message = "Admin role required"


class ForbiddenNotOwner(Forbidden):
    code = "FORBIDDEN_NOT_OWNER"
    default_message = "Only the organization owner can do this"


class ForbiddenOwnerRemoval(Forbidden):
    code = "FORBIDDEN_OWNER_REMOVAL"
    default_message = "The organization owner cannot be removed"


class ForbiddenOwnerDemotion(Forbidden):
    code = "FORBIDDEN_OWNER_DEMOTION"
    default_message = "The organization owner cannot be demoted; transfer ownership instead"


class ForbiddenNotClientOwner(Forbidden):
    code = "FORBIDDEN_NOT_CLIENT_OWNER"
    default_message = "You did not create this client"


# ---------------------------------------------------------------------------
# Validation / lookup
# ---------------------------------------------------------------------------

class NotFound(UserhubError):
    status_code = status.HTTP_404_NOT_FOUND


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


class OrganizationNotFound(NotFound):
    code = "ORGANIZATION_NOT_FOUND"
    default_message = "Organization not found"


class MemberNotFound(NotFound):
    code = "MEMBER_NOT_FOUND"
    default_message = "Member not found"


class ClientNotFound(NotFound):
    code = "CLIENT_NOT_FOUND"
    default_message = "OAuth2 client not found"


class InvalidRole(UserhubError):
    code = "INVALID_ROLE"
    status_code = 422  # Unprocessable Content
    default_message = "Role must be one of: member, admin, owner"


class InvalidOrgType(UserhubError):
    code = "INVALID_ORG_TYPE"
    status_code = 422  # Unprocessable Content
    default_message = "Organization type must be one of: domain, organization, tenant"


class OrganizationNameTaken(UserhubError):
    code = "ORGANIZATION_NAME_TAKEN"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Organization name is already taken"


class InvalidWebhookPayload(UserhubError):
    code = "INVALID_WEBHOOK_PAYLOAD"
    default_message = "Invalid payload"


class WebhookUnauthorized(UserhubError):
    code = "WEBHOOK_UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Webhook key missing or wrong"


# ---------------------------------------------------------------------------
# Server side
# ---------------------------------------------------------------------------

class StorageFailure(UserhubError):
    code = "STORAGE_FAILURE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An unexpected storage error occurred"


class AuthorizationServerError(UserhubError):
    code = "AUTHORIZATION_SERVER_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Authorization server request failed"
