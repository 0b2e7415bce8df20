"""Create outlet tables: users, outlet_sessions, outlet_messages, outlet_escalations, inbox_items

Revision ID: 001_outlet_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_outlet_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the outlet schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('org_id', sa.String(length=50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_org_id', 'users', ['org_id'], unique=False)

    op.create_table(
        'outlet_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('org_id', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=80), nullable=True),
        sa.Column('visibility', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('risk_level', sa.Integer(), nullable=False),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sender', sa.String(length=10), nullable=True),
        sa.Column('message_count', sa.Integer(), nullable=False),
        sa.Column('resolution_note', sa.Text(), nullable=True),
        sa.Column('resolved_by_user_id', sa.String(length=36), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_outlet_sessions_org_id', 'outlet_sessions', ['org_id'], unique=False)
    op.create_index('ix_outlet_sessions_user_id', 'outlet_sessions', ['user_id'], unique=False)
    op.create_index('ix_outlet_sessions_status', 'outlet_sessions', ['status'], unique=False)
    op.create_index('ix_outlet_sessions_org_visibility', 'outlet_sessions', ['org_id', 'visibility'], unique=False)
    op.create_index('ix_outlet_sessions_org_last_message', 'outlet_sessions', ['org_id', 'last_message_at'], unique=False)

    op.create_table(
        'outlet_messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('org_id', sa.String(length=50), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('sender', sa.String(length=10), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('client_message_id', sa.String(length=64), nullable=True),
        sa.Column('risk_level', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'seq', name='uq_outlet_messages_session_seq'),
        sa.UniqueConstraint('session_id', 'client_message_id', name='uq_outlet_messages_client_id'),
    )
    op.create_index('ix_outlet_messages_org_id', 'outlet_messages', ['org_id'], unique=False)
    op.create_index('ix_outlet_messages_session_id', 'outlet_messages', ['session_id'], unique=False)

    op.create_table(
        'outlet_escalations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('org_id', sa.String(length=50), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('escalated_to_role', sa.String(length=20), nullable=False),
        sa.Column('assigned_to_user_id', sa.String(length=36), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('escalated_by_user_id', sa.String(length=36), nullable=True),
        sa.Column('automatic', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'seq', name='uq_outlet_escalations_session_seq'),
    )
    op.create_index('ix_outlet_escalations_org_id', 'outlet_escalations', ['org_id'], unique=False)
    op.create_index('ix_outlet_escalations_session_created', 'outlet_escalations', ['session_id', 'created_at'], unique=False)
    op.create_index('ix_outlet_escalations_role_assignee', 'outlet_escalations', ['escalated_to_role', 'assigned_to_user_id'], unique=False)

    op.create_table(
        'inbox_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('org_id', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=40), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('severity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ack_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_inbox_items_org_id', 'inbox_items', ['org_id'], unique=False)
    op.create_index('ix_inbox_items_user_id', 'inbox_items', ['user_id'], unique=False)


def downgrade() -> None:
    """Drop the outlet schema."""
    op.drop_index('ix_inbox_items_user_id', table_name='inbox_items')
    op.drop_index('ix_inbox_items_org_id', table_name='inbox_items')
    op.drop_table('inbox_items')
    op.drop_index('ix_outlet_escalations_role_assignee', table_name='outlet_escalations')
    op.drop_index('ix_outlet_escalations_session_created', table_name='outlet_escalations')
    op.drop_index('ix_outlet_escalations_org_id', table_name='outlet_escalations')
    op.drop_table('outlet_escalations')
    op.drop_index('ix_outlet_messages_session_id', table_name='outlet_messages')
    op.drop_index('ix_outlet_messages_org_id', table_name='outlet_messages')
    op.drop_table('outlet_messages')
    op.drop_index('ix_outlet_sessions_org_last_message', table_name='outlet_sessions')
    op.drop_index('ix_outlet_sessions_org_visibility', table_name='outlet_sessions')
    op.drop_index('ix_outlet_sessions_status', table_name='outlet_sessions')
    op.drop_index('ix_outlet_sessions_user_id', table_name='outlet_sessions')
    op.drop_index('ix_outlet_sessions_org_id', table_name='outlet_sessions')
    op.drop_table('outlet_sessions')
    op.drop_index('ix_users_org_id', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
