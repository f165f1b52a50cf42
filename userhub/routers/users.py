"""
User endpoints.

Who am I, the user directory, and editing one's own profile.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.identity import IdentityClient, SubjectIdentity
from userhub.core.database import get_db
from userhub.core.dependencies import get_current_identity, get_identity_client
from userhub.schemas.user import (
    ProfileUpdateRequest,
    UserResponse,
    UsersListResponse,
    WhoAmIResponse,
)
from userhub.services.user_service import UserService

router = APIRouter()


def get_user_service(
    db: AsyncSession = Depends(get_db),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> UserService:
    """Dependency that constructs UserService."""
    return UserService(db=db, identity_client=identity_client)


@router.get("/whoami", response_model=WhoAmIResponse, summary="Current identity and memberships")
async def whoami(
    identity: SubjectIdentity = Depends(get_current_identity),
    service: UserService = Depends(get_user_service),
) -> WhoAmIResponse:
    return await service.whoami(identity)


@router.get("/users", response_model=UsersListResponse, summary="List users")
async def list_users(
    _: SubjectIdentity = Depends(get_current_identity),
    service: UserService = Depends(get_user_service),
) -> UsersListResponse:
    """Identities known to the identity provider, merged with local profiles."""
    return await service.list_users()


@router.patch("/users/me", response_model=UserResponse, summary="Edit my profile")
async def update_me(
    data: ProfileUpdateRequest,
    identity: SubjectIdentity = Depends(get_current_identity),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return await service.update_profile(identity, data)


@router.get("/users/{user_id}", response_model=UserResponse, summary="Get a cached profile")
async def get_user(
    user_id: str,
    _: SubjectIdentity = Depends(get_current_identity),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return await service.get_user(user_id)
