"""create_users_table

Revision ID: 3f1a2b7c9d01
Revises: 
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1a2b7c9d01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users table (cached identity profiles)."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('email', sa.String(length=1024), nullable=False),
        sa.Column('first_name', sa.String(length=1024), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=1024), nullable=False, server_default=''),
        sa.Column('time_zone', sa.String(length=255), nullable=False, server_default='UTC'),
        sa.Column('ui_mode', sa.String(length=255), nullable=False, server_default='system'),
        sa.Column('can_create_organizations', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)


def downgrade() -> None:
    """Drop users table."""
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
