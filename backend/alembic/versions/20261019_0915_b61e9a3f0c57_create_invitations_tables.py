"""create_invitations_tables

Revision ID: b61e9a3f0c57
Revises: 5d7f0e2c6a48
Create Date: 2026-10-19 09:15:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = 'b61e9a3f0c57'
down_revision: Union[str, None] = '5d7f0e2c6a48'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create org_invitations and workspace_invitations tables."""
    op.create_table(
        'org_invitations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('token', sa.String(length=255), nullable=False),
        # org_role already exists, do NOT recreate enum
        sa.Column(
            'role',
            postgresql.ENUM('owner', 'admin', 'member', 'guest', name='org_role', create_type=False),
            nullable=False,
        ),
        sa.Column('can_create_workspaces', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_invite_members', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('invited_by', UUID(as_uuid=True), nullable=False),
        sa.Column('invited_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'accepted', 'declined', 'expired', 'revoked', name='invitation_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_by', UUID(as_uuid=True), nullable=True),
        sa.Column('declined_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('personal_message', sa.Text(), nullable=True),
    )
    op.create_foreign_key(
        'org_invitations_org_id_fkey',
        'org_invitations', 'organizations',
        ['org_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'org_invitations_invited_by_fkey',
        'org_invitations', 'users',
        ['invited_by'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'org_invitations_accepted_by_fkey',
        'org_invitations', 'users',
        ['accepted_by'], ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_org_invitations_org_id', 'org_invitations', ['org_id'])
    op.create_index('ix_org_invitations_email', 'org_invitations', ['email'])
    op.create_index('ix_org_invitations_token', 'org_invitations', ['token'], unique=True)
    op.create_index('ix_org_invitations_invited_by', 'org_invitations', ['invited_by'])
    op.create_index('ix_org_invitations_org_email', 'org_invitations', ['org_id', 'email'])

    op.create_table(
        'workspace_invitations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column(
            'role',
            postgresql.ENUM('admin', 'member', 'viewer', name='workspace_role', create_type=False),
            nullable=False,
        ),
        sa.Column('invited_by', UUID(as_uuid=True), nullable=False),
        sa.Column('invited_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'accepted', 'declined', 'auto_accepted', name='workspace_invitation_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('declined_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('personal_message', sa.Text(), nullable=True),
    )
    op.create_foreign_key(
        'workspace_invitations_workspace_id_fkey',
        'workspace_invitations', 'workspaces',
        ['workspace_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspace_invitations_org_id_fkey',
        'workspace_invitations', 'organizations',
        ['org_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspace_invitations_user_id_fkey',
        'workspace_invitations', 'users',
        ['user_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspace_invitations_invited_by_fkey',
        'workspace_invitations', 'users',
        ['invited_by'], ['id'],
        ondelete='CASCADE'
    )
    op.create_index('ix_workspace_invitations_workspace_id', 'workspace_invitations', ['workspace_id'])
    op.create_index('ix_workspace_invitations_org_id', 'workspace_invitations', ['org_id'])
    op.create_index('ix_workspace_invitations_user_id', 'workspace_invitations', ['user_id'])


def downgrade() -> None:
    """Drop invitation tables and their status enums."""
    op.drop_index('ix_workspace_invitations_user_id', table_name='workspace_invitations')
    op.drop_index('ix_workspace_invitations_org_id', table_name='workspace_invitations')
    op.drop_index('ix_workspace_invitations_workspace_id', table_name='workspace_invitations')
    op.drop_table('workspace_invitations')
    op.drop_index('ix_org_invitations_org_email', table_name='org_invitations')
    op.drop_index('ix_org_invitations_invited_by', table_name='org_invitations')
    op.drop_index('ix_org_invitations_token', table_name='org_invitations')
    op.drop_index('ix_org_invitations_email', table_name='org_invitations')
    op.drop_index('ix_org_invitations_org_id', table_name='org_invitations')
    op.drop_table('org_invitations')
    sa.Enum(name='workspace_invitation_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='invitation_status').drop(op.get_bind(), checkfirst=True)
