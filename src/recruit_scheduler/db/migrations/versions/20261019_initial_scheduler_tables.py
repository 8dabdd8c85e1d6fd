"""initial scheduler tables

Revision ID: 6f1c2a9d4b10
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

from recruit_scheduler.models.automation import AutomationRule
from recruit_scheduler.models.notification import NotificationImportance
from recruit_scheduler.models.scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTaskStatus,
    ScheduledTaskType,
)
from recruit_scheduler.models.task import (
    RelatedEntityType,
    TaskPriority,
    TaskStatus,
    TaskType,
)

# revision identifiers, used by Alembic.
revision: str = '6f1c2a9d4b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'scheduled_tasks',
        sa.Column('id', UUID(as_uuid=False), primary_key=True),
        sa.Column('task_type', sa.Enum(ScheduledTaskType, name='scheduled_task_type', create_constraint=True), nullable=False),
        sa.Column('status', sa.Enum(ScheduledTaskStatus, name='scheduled_task_status', create_constraint=True), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('interval_type', sa.Enum(IntervalType, name='interval_type', create_constraint=True), nullable=False),
        sa.Column('interval_value', sa.Integer(), nullable=True),
        sa.Column('interval_unit', sa.Enum(IntervalUnit, name='interval_unit', create_constraint=True), nullable=True),
        sa.Column('custom_schedule', sa.String(255), nullable=True),
        sa.Column('config', JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('entity_id', sa.String(255), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('result', JSONB(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('run_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_scheduled_tasks_status_scheduled_for', 'scheduled_tasks', ['status', 'scheduled_for'])
    op.create_index('ix_scheduled_tasks_entity', 'scheduled_tasks', ['entity_type', 'entity_id'])

    op.create_table(
        'tasks',
        sa.Column('id', UUID(as_uuid=False), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('priority', sa.Enum(TaskPriority, name='task_priority', create_constraint=True), nullable=False),
        sa.Column('status', sa.Enum(TaskStatus, name='task_status', create_constraint=True), nullable=False),
        sa.Column('task_type', sa.Enum(TaskType, name='task_type', create_constraint=True), nullable=False),
        sa.Column('assigned_to', sa.String(255), nullable=True),
        sa.Column('related_entity_type', sa.Enum(RelatedEntityType, name='related_entity_type', create_constraint=True), nullable=True),
        sa.Column('related_entity_id', sa.String(255), nullable=True),
        sa.Column('is_automated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_tasks_related_entity', 'tasks', ['task_type', 'related_entity_type', 'related_entity_id'])
    op.create_index('ix_tasks_status_due_date', 'tasks', ['status', 'due_date'])

    op.create_table(
        'notifications',
        sa.Column('id', UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.String(255), nullable=True),
        sa.Column('action', sa.String(50), nullable=True),
        sa.Column('sender_id', sa.String(255), nullable=False, server_default='system'),
        sa.Column('importance', sa.Enum(NotificationImportance, name='notification_importance', create_constraint=True), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'read'])

    op.create_table(
        'automation_rules',
        sa.Column('rule', sa.Enum(AutomationRule, name='automation_rule', create_constraint=True), primary_key=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('days_threshold', sa.Integer(), nullable=False),
        sa.Column('notify', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'scheduler_logs',
        sa.Column('log_id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('task_id', UUID(as_uuid=False), nullable=False),
        sa.Column('task_type', sa.String(50), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('details', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_scheduler_logs_task_id', 'scheduler_logs', ['task_id'])


def downgrade() -> None:
    op.drop_table('scheduler_logs')
    op.drop_table('automation_rules')
    op.drop_table('notifications')
    op.drop_table('tasks')
    op.drop_table('scheduled_tasks')
    for enum_name in (
        'automation_rule',
        'notification_importance',
        'related_entity_type',
        'task_type',
        'task_status',
        'task_priority',
        'interval_unit',
        'interval_type',
        'scheduled_task_status',
        'scheduled_task_type',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
