"""
Organization management endpoints.

Create, read, update, delete, member management and role changes.
Authorization is enforced by the services through the access gate.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import IdentityClient, SubjectIdentity
from userhub.core.database import get_db
from userhub.core.dependencies import get_identity_client, get_verified_identity
from userhub.schemas.organization import (
    AddMemberRequest,
    MemberResponse,
    MemberRoleUpdateRequest,
    MembersListResponse,
    OrganizationCreateRequest,
    OrganizationDetailResponse,
    OrganizationResponse,
    OrganizationsListResponse,
    OrganizationUpdateRequest,
)
from userhub.services.organization_service import OrganizationService
from userhub.services.role_service import RoleTransitionEngine

router = APIRouter()


def get_org_service(
    db: AsyncSession = Depends(get_db),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> OrganizationService:
    """Dependency that constructs OrganizationService."""
    return OrganizationService(db=db, identity_client=identity_client)


def get_role_engine(db: AsyncSession = Depends(get_db)) -> RoleTransitionEngine:
    """Dependency that constructs RoleTransitionEngine."""
    return RoleTransitionEngine(db=db)


# ---------------------------------------------------------------------------
# Create / List Organizations
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new organization",
)
async def create_organization(
    data: OrganizationCreateRequest,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    """
    Create a new organization.

    - Name must be unique; type is one of domain, organization, tenant
    - Creator becomes the owner
    """
    return await service.create_organization(identity, data)


@router.get(
    "",
    response_model=OrganizationsListResponse,
    summary="List my organizations",
)
async def list_organizations(
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationsListResponse:
    """Organizations the caller belongs to, with the caller's role."""
    return await service.list_organizations(identity)


# ---------------------------------------------------------------------------
# Get / Update / Delete Organization
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}",
    response_model=OrganizationDetailResponse,
    summary="Get organization with members",
)
async def get_organization(
    org_id: UUID,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationDetailResponse:
    """Get organization details. Must be a member."""
    return await service.get_organization(identity, org_id)


@router.put(
    "/{org_id}",
    response_model=OrganizationResponse,
    summary="Update organization",
)
async def update_organization(
    org_id: UUID,
    data: OrganizationUpdateRequest,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    """Update name, description, type or metadata. Requires Owner or Admin role."""
    return await service.update_organization(identity, org_id, data)


@router.delete(
    "/{org_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete organization",
)
async def delete_organization(
    org_id: UUID,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> Response:
    """Delete the organization and all memberships. Owner only."""
    await service.delete_organization(identity, org_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}/members",
    response_model=MembersListResponse,
    summary="List organization members",
)
async def list_members(
    org_id: UUID,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> MembersListResponse:
    """List all members of the organization."""
    return await service.list_members(identity, org_id)


@router.post(
    "/{org_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a member by email",
)
async def add_member(
    org_id: UUID,
    data: AddMemberRequest,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> MemberResponse:
    """
    Add a registered user to the organization. Requires Owner or Admin role.

    Adding someone who is already a member changes their role.
    """
    return await service.add_member(identity, org_id, str(data.email), data.role)


@router.delete(
    "/{org_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Remove a member",
)
async def remove_member(
    org_id: UUID,
    user_id: str,
    identity: SubjectIdentity = Depends(get_verified_identity),
    service: OrganizationService = Depends(get_org_service),
) -> Response:
    """Remove a member. The owner cannot be removed."""
    await service.remove_member(identity, org_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{org_id}/members/{user_id}/role",
    response_model=MemberResponse,
    summary="Change a member's role or transfer ownership",
)
async def update_member_role(
    org_id: UUID,
    user_id: str,
    data: MemberRoleUpdateRequest,
    identity: SubjectIdentity = Depends(get_verified_identity),
    engine: RoleTransitionEngine = Depends(get_role_engine),
) -> MemberResponse:
    """
    Change a member's role.

    - admin/member: requires Owner or Admin; the owner cannot be demoted
    - owner: current owner only; the previous owner becomes admin
    """
    return await engine.set_role(identity, org_id, user_id, data.role)
