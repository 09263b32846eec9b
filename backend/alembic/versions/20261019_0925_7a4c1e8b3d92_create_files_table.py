"""create_files_table

Revision ID: 7a4c1e8b3d92
Revises: e02b7c9d4f16
Create Date: 2026-10-19 09:25:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = '7a4c1e8b3d92'
down_revision: Union[str, None] = 'e02b7c9d4f16'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create files table."""
    op.create_table(
        'files',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('storage_id', sa.String(length=255), nullable=False),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=True),
        sa.Column(
            'context',
            sa.Enum(
                'profile_picture', 'workspace_logo', 'organization_logo', 'chat_attachment', 'document',
                name='file_context',
            ),
            nullable=False,
        ),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_type', sa.String(length=255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('uploaded_by', UUID(as_uuid=True), nullable=False),
        sa.Column('message_id', UUID(as_uuid=True), nullable=True),
        sa.Column(
            'category',
            sa.Enum('image', 'document', 'video', 'audio', 'other', name='file_category'),
            nullable=False,
        ),
        sa.Column(
            'access_level',
            sa.Enum('organization', 'workspace', 'private', name='access_level'),
            nullable=False,
        ),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='files_org_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], name='files_workspace_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['uploaded_by'], ['users.id'], name='files_uploaded_by_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], name='files_message_id_fkey', ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['deleted_by'], ['users.id'], name='files_deleted_by_fkey', ondelete='SET NULL'),
    )
    op.create_index('ix_files_org_id', 'files', ['org_id'])
    op.create_index('ix_files_workspace_id', 'files', ['workspace_id'])
    op.create_index('ix_files_uploaded_by', 'files', ['uploaded_by'])
    op.create_index('ix_files_message_id', 'files', ['message_id'])
    op.create_index('ix_files_is_deleted', 'files', ['is_deleted'])
    op.create_index('idx_files_org_context', 'files', ['org_id', 'context'])
    op.create_index('idx_files_workspace_context', 'files', ['workspace_id', 'context'])


def downgrade() -> None:
    """Drop files table and its enums."""
    for index_name in (
        'idx_files_workspace_context',
        'idx_files_org_context',
        'ix_files_is_deleted',
        'ix_files_message_id',
        'ix_files_uploaded_by',
        'ix_files_workspace_id',
        'ix_files_org_id',
    ):
        op.drop_index(index_name, table_name='files')
    op.drop_table('files')
    for enum_name in ('access_level', 'file_category', 'file_context'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
