"""create_workspaces_table

Revision ID: 5d7f0e2c6a48
Revises: 8c2e5b4a9d31
Create Date: 2026-10-19 09:10:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = '5d7f0e2c6a48'
down_revision: Union[str, None] = '8c2e5b4a9d31'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create workspaces and workspace_members tables."""
    op.create_table(
        'workspaces',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column(
            'type',
            sa.Enum('public', 'private', 'archived', name='workspace_type'),
            nullable=False,
            server_default='public',
        ),
        sa.Column(
            'purpose',
            sa.Enum('general', 'project', 'department', 'client', 'announcement', name='workspace_purpose'),
            nullable=True,
        ),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', UUID(as_uuid=True), nullable=False),
        sa.Column('logo_file_id', UUID(as_uuid=True), nullable=True),
        sa.Column('allow_threads', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('allow_file_uploads', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('retention_days', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('org_id', 'name', name='uq_workspaces_org_name'),
    )
    op.create_foreign_key(
        'workspaces_org_id_fkey',
        'workspaces', 'organizations',
        ['org_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspaces_created_by_fkey',
        'workspaces', 'users',
        ['created_by'], ['id'],
        ondelete='RESTRICT'
    )
    op.create_index('ix_workspaces_org_id', 'workspaces', ['org_id'])

    op.create_table(
        'workspace_members',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('role', sa.Enum('admin', 'member', 'viewer', name='workspace_role'), nullable=False),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('mention_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('added_by', UUID(as_uuid=True), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_members_workspace_user'),
    )
    op.create_foreign_key(
        'workspace_members_workspace_id_fkey',
        'workspace_members', 'workspaces',
        ['workspace_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspace_members_user_id_fkey',
        'workspace_members', 'users',
        ['user_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspace_members_org_id_fkey',
        'workspace_members', 'organizations',
        ['org_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'workspace_members_added_by_fkey',
        'workspace_members', 'users',
        ['added_by'], ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_workspace_members_workspace_id', 'workspace_members', ['workspace_id'])
    op.create_index('ix_workspace_members_user_id', 'workspace_members', ['user_id'])
    op.create_index('ix_workspace_members_org_id', 'workspace_members', ['org_id'])


def downgrade() -> None:
    """Drop workspace_members and workspaces tables with their enums."""
    op.drop_index('ix_workspace_members_org_id', table_name='workspace_members')
    op.drop_index('ix_workspace_members_user_id', table_name='workspace_members')
    op.drop_index('ix_workspace_members_workspace_id', table_name='workspace_members')
    op.drop_table('workspace_members')
    op.drop_index('ix_workspaces_org_id', table_name='workspaces')
    op.drop_table('workspaces')
    for enum_name in ('workspace_role', 'workspace_purpose', 'workspace_type'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
