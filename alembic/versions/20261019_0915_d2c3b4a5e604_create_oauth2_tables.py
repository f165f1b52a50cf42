"""create_oauth2_tables

Revision ID: d2c3b4a5e604
Revises: b7e8f9a0c103
Create Date: 2026-10-19 09:15:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = 'd2c3b4a5e604'
down_revision: Union[str, None] = 'b7e8f9a0c103'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create oauth2_clients and oauth2_token_logs tables."""
    op.create_table(
        'oauth2_clients',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('client_id', sa.String(length=255), nullable=False),
        sa.Column('client_secret_hash', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('organization_id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('scopes', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='oauth2_clients_user_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], name='oauth2_clients_organization_id_fkey', ondelete='CASCADE'),
    )
    op.create_index('ix_oauth2_clients_client_id', 'oauth2_clients', ['client_id'], unique=True)
    op.create_index('ix_oauth2_clients_user_id', 'oauth2_clients', ['user_id'])
    op.create_index('ix_oauth2_clients_organization_id', 'oauth2_clients', ['organization_id'])
    op.create_index('ix_oauth2_clients_is_active', 'oauth2_clients', ['is_active'])

    op.create_table(
        'oauth2_token_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('client_id', sa.String(length=255), nullable=False),
        sa.Column('granted_scopes', sa.Text(), nullable=False, server_default=''),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_oauth2_token_logs_client_id', 'oauth2_token_logs', ['client_id'])
    op.create_index('ix_oauth2_token_logs_created_at', 'oauth2_token_logs', ['created_at'])


def downgrade() -> None:
    """Drop oauth2 tables."""
    op.drop_index('ix_oauth2_token_logs_created_at', table_name='oauth2_token_logs')
    op.drop_index('ix_oauth2_token_logs_client_id', table_name='oauth2_token_logs')
    op.drop_table('oauth2_token_logs')
    op.drop_index('ix_oauth2_clients_is_active', table_name='oauth2_clients')
    op.drop_index('ix_oauth2_clients_organization_id', table_name='oauth2_clients')
    op.drop_index('ix_oauth2_clients_user_id', table_name='oauth2_clients')
    op.drop_index('ix_oauth2_clients_client_id', table_name='oauth2_clients')
    op.drop_table('oauth2_clients')
