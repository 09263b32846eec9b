"""create_organizations_table

Revision ID: 8c2e5b4a9d31
Revises: 3f9a1c7d2b10
Create Date: 2026-10-19 09:05:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = '8c2e5b4a9d31'
down_revision: Union[str, None] = '3f9a1c7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create organizations and org_members tables."""
    op.create_table(
        'organizations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('industry', sa.String(length=100), nullable=True),
        sa.Column('logo_file_id', UUID(as_uuid=True), nullable=True),
        sa.Column(
            'plan',
            sa.Enum('free', 'pro', 'enterprise', name='plan_tier'),
            nullable=False,
            server_default='free',
        ),
        sa.Column(
            'subscription_status',
            sa.Enum('active', 'trial', 'suspended', 'cancelled', name='subscription_status'),
            nullable=False,
            server_default='trial',
        ),
        sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_members', sa.Integer(), nullable=True),
        sa.Column('allow_public_join', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_domain', sa.String(length=255), nullable=True),
        sa.Column('created_by', UUID(as_uuid=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'organizations_created_by_fkey',
        'organizations', 'users',
        ['created_by'], ['id'],
        ondelete='RESTRICT'
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=True)
    op.create_index('ix_organizations_email_domain', 'organizations', ['email_domain'])
    op.create_index('ix_organizations_created_by', 'organizations', ['created_by'])

    # SQLAlchemy Enum will create the type automatically, no need for manual CREATE TYPE
    op.create_table(
        'org_members',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('role', sa.Enum('owner', 'admin', 'member', 'guest', name='org_role'), nullable=False),
        sa.Column('can_create_workspaces', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_invite_members', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_manage_billing', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'status',
            sa.Enum('active', 'suspended', 'pending_invitation', name='member_status'),
            nullable=False,
            server_default='active',
        ),
        sa.Column('invited_by', UUID(as_uuid=True), nullable=True),
        sa.Column('invite_accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('org_id', 'user_id', name='uq_org_members_org_user'),
    )
    op.create_foreign_key(
        'org_members_org_id_fkey',
        'org_members', 'organizations',
        ['org_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'org_members_user_id_fkey',
        'org_members', 'users',
        ['user_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'org_members_invited_by_fkey',
        'org_members', 'users',
        ['invited_by'], ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_org_members_org_id', 'org_members', ['org_id'])
    op.create_index('ix_org_members_user_id', 'org_members', ['user_id'])


def downgrade() -> None:
    """Drop org_members and organizations tables with their enums."""
    op.drop_index('ix_org_members_user_id', table_name='org_members')
    op.drop_index('ix_org_members_org_id', table_name='org_members')
    op.drop_table('org_members')
    op.drop_index('ix_organizations_created_by', table_name='organizations')
    op.drop_index('ix_organizations_email_domain', table_name='organizations')
    op.drop_index('ix_organizations_slug', table_name='organizations')
    op.drop_table('organizations')
    for enum_name in ('member_status', 'org_role', 'subscription_status', 'plan_tier'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
