"""create_messages_tables

Revision ID: e02b7c9d4f16
Revises: b61e9a3f0c57
Create Date: 2026-10-19 09:20:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = 'e02b7c9d4f16'
down_revision: Union[str, None] = 'b61e9a3f0c57'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create messages, reactions and message_reads tables."""
    op.create_table(
        'messages',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('author_id', UUID(as_uuid=True), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column(
            'message_type',
            sa.Enum('message', 'announcement', 'system', 'meeting_scheduled', 'file_shared', name='message_type'),
            nullable=False,
            server_default='message',
        ),
        sa.Column('parent_message_id', UUID(as_uuid=True), nullable=True),
        sa.Column('thread_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('mentions', JSONB(), nullable=True),
        sa.Column('attachment_id', UUID(as_uuid=True), nullable=True),
        sa.Column('is_important', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_pinned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_edited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'messages_org_id_fkey',
        'messages', 'organizations',
        ['org_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'messages_workspace_id_fkey',
        'messages', 'workspaces',
        ['workspace_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'messages_author_id_fkey',
        'messages', 'users',
        ['author_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'messages_parent_message_id_fkey',
        'messages', 'messages',
        ['parent_message_id'], ['id'],
        ondelete='SET NULL'
    )
    op.create_foreign_key(
        'messages_deleted_by_fkey',
        'messages', 'users',
        ['deleted_by'], ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_messages_org_id', 'messages', ['org_id'])
    op.create_index('ix_messages_workspace_id', 'messages', ['workspace_id'])
    op.create_index('ix_messages_author_id', 'messages', ['author_id'])
    op.create_index('ix_messages_parent_message_id', 'messages', ['parent_message_id'])
    op.create_index('ix_messages_is_deleted', 'messages', ['is_deleted'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])

    op.create_table(
        'reactions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('message_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('emoji', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('message_id', 'user_id', 'emoji', name='uq_reactions_message_user_emoji'),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], name='reactions_message_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='reactions_user_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='reactions_org_id_fkey', ondelete='CASCADE'),
    )
    op.create_index('ix_reactions_message_id', 'reactions', ['message_id'])
    op.create_index('ix_reactions_user_id', 'reactions', ['user_id'])

    op.create_table(
        'message_reads',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('message_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', UUID(as_uuid=True), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('message_id', 'user_id', name='uq_message_reads_message_user'),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], name='message_reads_message_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='message_reads_user_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='message_reads_org_id_fkey', ondelete='CASCADE'),
    )
    op.create_index('ix_message_reads_message_id', 'message_reads', ['message_id'])
    op.create_index('ix_message_reads_user_id', 'message_reads', ['user_id'])


def downgrade() -> None:
    """Drop message_reads, reactions and messages tables."""
    op.drop_index('ix_message_reads_user_id', table_name='message_reads')
    op.drop_index('ix_message_reads_message_id', table_name='message_reads')
    op.drop_table('message_reads')
    op.drop_index('ix_reactions_user_id', table_name='reactions')
    op.drop_index('ix_reactions_message_id', table_name='reactions')
    op.drop_table('reactions')
    for index_name in (
        'ix_messages_created_at',
        'ix_messages_is_deleted',
        'ix_messages_parent_message_id',
        'ix_messages_author_id',
        'ix_messages_workspace_id',
        'ix_messages_org_id',
    ):
        op.drop_index(index_name, table_name='messages')
    op.drop_table('messages')
    sa.Enum(name='message_type').drop(op.get_bind(), checkfirst=True)
