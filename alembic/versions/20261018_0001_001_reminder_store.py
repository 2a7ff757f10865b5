"""Reminder store - repositories, reminders and audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-18

Creates:
- repositories: delivery targets (GitHub installation or GitLab token)
- reminders: the delivery queue with retry bookkeeping and claim timestamp
- audit_logs: append-only state transitions
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# SQLModel stores enum members by name
provider_enum = sa.Enum('GITHUB', 'GITLAB', name='provider')
reminder_status_enum = sa.Enum('PENDING', 'PROCESSING', 'SENT', 'FAILED', 'DEAD', name='reminderstatus')


def upgrade() -> None:
    op.create_table(
        'repositories',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('provider', provider_enum, nullable=False, server_default='GITHUB'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('installation_id', sa.String(64), nullable=True),
        sa.Column('access_token', sa.String(512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'reminders',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('repo_id', sa.String(255), sa.ForeignKey('repositories.id'), nullable=False),
        sa.Column('issue_number', sa.Integer(), nullable=False),
        sa.Column('message', sa.String(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('status', reminder_status_enum, nullable=False, server_default='PENDING'),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('last_retry_at', sa.DateTime(), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_reminders_repo_id', 'reminders', ['repo_id'])
    op.create_index('ix_reminders_status', 'reminders', ['status'])
    op.create_index('ix_reminders_scheduled_at', 'reminders', ['scheduled_at'])
    # Due-reminder poll: status filter ordered by scheduled_at
    op.create_index('ix_reminders_status_scheduled_at', 'reminders', ['status', 'scheduled_at'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('repo_id', sa.String(255), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('details', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_repo_id', 'audit_logs', ['repo_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_index('ix_audit_logs_repo_id', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_reminders_status_scheduled_at', table_name='reminders')
    op.drop_index('ix_reminders_scheduled_at', table_name='reminders')
    op.drop_index('ix_reminders_status', table_name='reminders')
    op.drop_index('ix_reminders_repo_id', table_name='reminders')
    op.drop_table('reminders')
    op.drop_table('repositories')

    reminder_status_enum.drop(op.get_bind(), checkfirst=True)
    provider_enum.drop(op.get_bind(), checkfirst=True)
