"""create_organizations_table

Revision ID: 8c4d5e6f7a02
Revises: 3f1a2b7c9d01
Create Date: 2026-10-19 09:05:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = '8c4d5e6f7a02'
down_revision: Union[str, None] = '3f1a2b7c9d01'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create organizations table with org_type enum."""
    op.create_table(
        'organizations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('org_type', sa.Enum('domain', 'organization', 'tenant', name='org_type', create_type=True), nullable=False),
        sa.Column('name', sa.String(length=1024), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('data', JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('owner_id', sa.String(length=64), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('domain_id', UUID(as_uuid=True), nullable=True),
        sa.Column('parent_org_id', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_foreign_key(
        'organizations_owner_id_fkey',
        'organizations', 'users',
        ['owner_id'], ['id'],
        ondelete='SET NULL'
    )

    op.create_index('ix_organizations_name', 'organizations', ['name'], unique=True)
    op.create_index('ix_organizations_org_type', 'organizations', ['org_type'])
    op.create_index('ix_organizations_owner_id', 'organizations', ['owner_id'])


def downgrade() -> None:
    """Drop organizations table and org_type enum."""
    op.drop_index('ix_organizations_owner_id', table_name='organizations')
    op.drop_index('ix_organizations_org_type', table_name='organizations')
    op.drop_index('ix_organizations_name', table_name='organizations')
    op.drop_constraint('organizations_owner_id_fkey', 'organizations', type_='foreignkey')
    op.drop_table('organizations')
    sa.Enum(name='org_type').drop(op.get_bind(), checkfirst=True)
