"""
Organization lifecycle tests.

Verifies that:
- Creation establishes owner_id and the single owner membership together
- A failure between the two inserts leaves nothing behind
- Update requires admin and never touches ownership
- Delete requires the owner and removes every membership
- add_member resolves through the directory and upserts (no duplicates)
- The owner can never be removed or re-invited into a lesser role
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from conftest import make_identity
from userhub.core.database import session_scope
from userhub.core.errors import (
    ForbiddenNotAdmin,
    ForbiddenNotMember,
    ForbiddenNotOwner,
    ForbiddenOwnerDemotion,
    ForbiddenOwnerRemoval,
    InvalidOrgType,
    InvalidRole,
    MemberNotFound,
    OrganizationNameTaken,
    OrganizationNotFound,
    UserNotFound,
)
from userhub.models.membership import Membership, OrgRole
from userhub.models.organization import Organization, OrgType
from userhub.models.user import User
from userhub.schemas.organization import OrganizationCreateRequest, OrganizationUpdateRequest
from userhub.services.membership_store import MembershipStore
from userhub.services.organization_service import OrganizationService


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ---------------------------------------------------------------------------
# 1. Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_sets_owner_and_owner_membership(db, identity_client):
    owner = make_identity("user-a", first_name="Ada")
    service = OrganizationService(db, identity_client)

    org = await service.create_organization(
        owner,
        OrganizationCreateRequest(name="Acme", type="tenant", description="d", data={"k": 1}),
    )

    assert org.owner_id == owner.id
    assert org.role == "owner"
    assert org.org_type == "tenant"
    assert org.data == {"k": 1}
    membership = await MembershipStore(db).get(owner.id, org.id)
    assert membership.role is OrgRole.owner
    assert await MembershipStore(db).count_owners(org.id) == 1
    # Creator's profile row exists
    assert (await db.get(User, owner.id)).first_name == "Ada"


@pytest.mark.asyncio
async def test_create_rejects_unknown_type(db, identity_client):
    service = OrganizationService(db, identity_client)

    with pytest.raises(InvalidOrgType):
        await service.create_organization(
            make_identity("user-a"), OrganizationCreateRequest(name="Acme", type="guild")
        )
    assert await count(db, Organization) == 0


@pytest.mark.asyncio
async def test_create_rejects_duplicate_name(db, identity_client):
    service = OrganizationService(db, identity_client)
    await service.create_organization(make_identity("user-a"), OrganizationCreateRequest(name="Acme"))

    with pytest.raises(OrganizationNameTaken):
        await service.create_organization(
            make_identity("user-b"), OrganizationCreateRequest(name="Acme")
        )


@pytest.mark.asyncio
async def test_create_is_atomic(session_factory, identity_client, monkeypatch):
    async def fail_insert(self, user_id, org_id, role):
        raise RuntimeError("membership insert failed")

    monkeypatch.setattr(MembershipStore, "insert", fail_insert)

    with pytest.raises(RuntimeError):
        async with session_scope(session_factory) as session:
            await OrganizationService(session, identity_client).create_organization(
                make_identity("user-a"), OrganizationCreateRequest(name="Acme")
            )

    async with session_scope(session_factory) as session:
        assert await count(session, Organization) == 0
        assert await count(session, Membership) == 0


@pytest.mark.asyncio
async def test_domain_and_parent_references_round_trip(db, identity_client):
    owner = make_identity("user-a")
    service = OrganizationService(db, identity_client)
    domain = await service.create_organization(
        owner, OrganizationCreateRequest(name="example.com", type="domain")
    )

    tenant = await service.create_organization(
        owner,
        OrganizationCreateRequest(
            name="Tenant", type="tenant", domain_id=domain.id, parent_org_id=domain.id
        ),
    )
    assert tenant.domain_id == domain.id
    assert tenant.parent_org_id == domain.id

    # Omitted fields stay, an explicit null clears
    updated = await service.update_organization(
        owner, tenant.id, OrganizationUpdateRequest(description="moved", parent_org_id=None)
    )
    assert updated.domain_id == domain.id
    assert updated.parent_org_id is None

    detail = await service.get_organization(owner, tenant.id)
    assert detail.domain_id == domain.id


# ---------------------------------------------------------------------------
# 2. Read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_and_get_are_member_scoped(db, identity_client):
    owner = make_identity("user-a")
    outsider = make_identity("user-b")
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))
    await service.create_organization(outsider, OrganizationCreateRequest(name="Other"))

    listing = await service.list_organizations(owner)
    assert [o.name for o in listing.organizations] == ["Acme"]
    assert listing.organizations[0].role == "owner"

    detail = await service.get_organization(owner, org.id)
    assert [m.user_id for m in detail.members] == [owner.id]

    with pytest.raises(ForbiddenNotMember):
        await service.get_organization(outsider, org.id)
    with pytest.raises(ForbiddenNotMember):
        await service.list_members(outsider, org.id)


# ---------------------------------------------------------------------------
# 3. Update / Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_requires_admin_and_keeps_owner(db, identity_client):
    owner = make_identity("user-a")
    admin = identity_client.register(make_identity("user-b"))
    member = identity_client.register(make_identity("user-c"))
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))
    await service.add_member(owner, org.id, admin.email, "admin")
    await service.add_member(owner, org.id, member.email, "member")

    with pytest.raises(ForbiddenNotAdmin):
        await service.update_organization(member, org.id, OrganizationUpdateRequest(name="Nope"))

    updated = await service.update_organization(
        admin,
        org.id,
        OrganizationUpdateRequest(name="Acme 2", type="domain", data={"plan": "pro"}),
    )

    assert updated.name == "Acme 2"
    assert updated.org_type == OrgType.domain.value
    assert updated.data == {"plan": "pro"}
    assert updated.description == ""
    assert updated.owner_id == owner.id


@pytest.mark.asyncio
async def test_delete_requires_owner_and_cascades(db, identity_client):
    owner = make_identity("user-a")
    admin = identity_client.register(make_identity("user-b"))
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))
    await service.add_member(owner, org.id, admin.email, "admin")

    with pytest.raises(ForbiddenNotOwner):
        await service.delete_organization(admin, org.id)

    await service.delete_organization(owner, org.id)

    assert await count(db, Organization) == 0
    assert await count(db, Membership) == 0
    # Profiles are never deleted by this system
    assert await count(db, User) == 2
    with pytest.raises(OrganizationNotFound):
        await service.get_organization(owner, org.id)


# ---------------------------------------------------------------------------
# 4. Members
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_member_requires_directory_identity(db, identity_client):
    owner = make_identity("user-a")
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))

    with pytest.raises(UserNotFound):
        await service.add_member(owner, org.id, "ghost@example.com", "member")


@pytest.mark.asyncio
async def test_add_member_upserts_role(db, identity_client):
    owner = make_identity("user-a")
    bob = identity_client.register(make_identity("user-b", "Bob@Example.com", "Bob"))
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))

    first = await service.add_member(owner, org.id, "bob@example.com", "member")
    second = await service.add_member(owner, org.id, "bob@example.com", "admin")

    assert first.role == "member"
    assert second.role == "admin"
    assert second.joined_at >= first.joined_at
    members = await service.list_members(owner, org.id)
    assert members.total == 2
    assert [m.role for m in members.members if m.user_id == bob.id] == ["admin"]


@pytest.mark.asyncio
async def test_add_member_cannot_grant_or_touch_owner(db, identity_client):
    owner = identity_client.register(make_identity("user-a"))
    bob = identity_client.register(make_identity("user-b"))
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))

    with pytest.raises(InvalidRole):
        await service.add_member(owner, org.id, bob.email, "owner")
    with pytest.raises(InvalidRole):
        await service.add_member(owner, org.id, bob.email, "superuser")
    with pytest.raises(ForbiddenOwnerDemotion):
        await service.add_member(owner, org.id, owner.email, "member")

    assert (await MembershipStore(db).get(owner.id, org.id)).role is OrgRole.owner


@pytest.mark.asyncio
async def test_add_member_requires_admin(db, identity_client):
    owner = make_identity("user-a")
    member = identity_client.register(make_identity("user-b"))
    carol = identity_client.register(make_identity("user-c"))
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))
    await service.add_member(owner, org.id, member.email, "member")

    with pytest.raises(ForbiddenNotAdmin):
        await service.add_member(member, org.id, carol.email, "member")


@pytest.mark.asyncio
async def test_remove_member_rules(db, identity_client):
    owner = make_identity("user-a")
    admin = identity_client.register(make_identity("user-b"))
    member = identity_client.register(make_identity("user-c"))
    service = OrganizationService(db, identity_client)
    org = await service.create_organization(owner, OrganizationCreateRequest(name="Acme"))
    await service.add_member(owner, org.id, admin.email, "admin")
    await service.add_member(owner, org.id, member.email, "member")

    with pytest.raises(ForbiddenOwnerRemoval):
        await service.remove_member(admin, org.id, owner.id)
    with pytest.raises(ForbiddenOwnerRemoval):
        await service.remove_member(owner, org.id, owner.id)
    with pytest.raises(MemberNotFound):
        await service.remove_member(owner, org.id, "user-zzz")

    await service.remove_member(admin, org.id, member.id)

    assert await MembershipStore(db).get(member.id, org.id) is None
    assert await MembershipStore(db).count_owners(org.id) == 1
