"""create_user_organization_links_table

Revision ID: b7e8f9a0c103
Revises: 8c4d5e6f7a02
Create Date: 2026-10-19 09:10:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = 'b7e8f9a0c103'
down_revision: Union[str, None] = '8c4d5e6f7a02'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user_organization_links with role enum and the single-owner index."""
    op.create_table(
        'user_organization_links',
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('organization_id', UUID(as_uuid=True), nullable=False),
        sa.Column('role', sa.Enum('owner', 'admin', 'member', name='org_role', create_type=True), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'organization_id', name='user_organization_links_pkey'),
    )

    op.create_foreign_key(
        'user_organization_links_user_id_fkey',
        'user_organization_links', 'users',
        ['user_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'user_organization_links_organization_id_fkey',
        'user_organization_links', 'organizations',
        ['organization_id'], ['id'],
        ondelete='CASCADE'
    )

    op.create_index('ix_user_organization_links_user_id', 'user_organization_links', ['user_id'])
    op.create_index('ix_user_organization_links_organization_id', 'user_organization_links', ['organization_id'])
    op.create_index('idx_user_org_links_role', 'user_organization_links', ['role'])
    op.create_index(
        'uq_user_organization_links_owner',
        'user_organization_links',
        ['organization_id'],
        unique=True,
        postgresql_where=sa.text("role = 'owner'"),
    )


def downgrade() -> None:
    """Drop user_organization_links table and role enum."""
    op.drop_index('uq_user_organization_links_owner', table_name='user_organization_links')
    op.drop_index('idx_user_org_links_role', table_name='user_organization_links')
    op.drop_index('ix_user_organization_links_organization_id', table_name='user_organization_links')
    op.drop_index('ix_user_organization_links_user_id', table_name='user_organization_links')
    op.drop_constraint('user_organization_links_organization_id_fkey', 'user_organization_links', type_='foreignkey')
    op.drop_constraint('user_organization_links_user_id_fkey', 'user_organization_links', type_='foreignkey')
    op.drop_table('user_organization_links')
    sa.Enum(name='org_role').drop(op.get_bind(), checkfirst=True)
