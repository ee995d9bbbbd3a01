"""initial educonnect schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None


INDEXES = {
    'users': [
        ('ix_users_id', ['id'], False),
        ('ix_users_email', ['email'], True),
        ('ix_users_role', ['role'], False),
        ('ix_users_approved', ['approved'], False),
        ('ix_users_subject', ['subject'], False),
        ('ix_users_on_leave', ['on_leave'], False),
        ('ix_users_created_at', ['created_at'], False),
        ('ix_users_role_approved', ['role', 'approved'], False),
    ],
    'teacher_availability': [
        ('ix_teacher_availability_id', ['id'], False),
        ('ix_teacher_availability_teacher_id', ['teacher_id'], False),
    ],
    'appointments': [
        ('ix_appointments_id', ['id'], False),
        ('ix_appointments_student_id', ['student_id'], False),
        ('ix_appointments_teacher_id', ['teacher_id'], False),
        ('ix_appointments_status', ['status'], False),
        ('ix_appointments_created_at', ['created_at'], False),
        ('ix_appointments_teacher_slot', ['teacher_id', 'date', 'time'], False),
        ('ix_appointments_student_status', ['student_id', 'status'], False),
    ],
    'messages': [
        ('ix_messages_id', ['id'], False),
        ('ix_messages_sender_id', ['sender_id'], False),
        ('ix_messages_receiver_id', ['receiver_id'], False),
        ('ix_messages_timestamp', ['timestamp'], False),
        ('ix_messages_receiver_read', ['receiver_id', 'read'], False),
    ],
    'rate_limit_states': [
        ('ix_rate_limit_states_id', ['id'], False),
        ('ix_rate_limit_states_scope_type', ['scope_type'], False),
        ('ix_rate_limit_states_scope_key', ['scope_key'], False),
        ('ix_rate_limit_states_action_name', ['action_name'], False),
        ('ix_rate_limit_states_window_start', ['window_start'], False),
    ],
}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('phone', sa.String(length=30), nullable=False, server_default=''),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
            sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('password_hash', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('subject', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('experience', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('qualification', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('bio', sa.Text(), nullable=True),
            sa.Column('on_leave', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sqlite_autoincrement=True,
        )

    if 'teacher_availability' not in tables:
        op.create_table(
            'teacher_availability',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('day', sa.String(length=10), nullable=False),
            sa.Column('start_time', sa.String(length=5), nullable=False, server_default='09:00'),
            sa.Column('end_time', sa.String(length=5), nullable=False, server_default='17:00'),
            sa.Column('available', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.UniqueConstraint('teacher_id', 'day', name='uq_teacher_availability_teacher_day'),
        )

    if 'appointments' not in tables:
        op.create_table(
            'appointments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('student_id', sa.Integer(), nullable=False),
            sa.Column('teacher_id', sa.Integer(), nullable=False),
            sa.Column('student_name', sa.String(length=120), nullable=False, server_default='Student'),
            sa.Column('teacher_name', sa.String(length=120), nullable=False, server_default='Teacher'),
            sa.Column('date', sa.String(length=20), nullable=False),
            sa.Column('time', sa.String(length=20), nullable=False),
            sa.Column('subject', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('message', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sqlite_autoincrement=True,
        )

    if 'messages' not in tables:
        op.create_table(
            'messages',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('sender_id', sa.Integer(), nullable=False),
            sa.Column('receiver_id', sa.Integer(), nullable=False),
            sa.Column('sender_name', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('timestamp', sa.DateTime(), nullable=False),
            sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
            sqlite_autoincrement=True,
        )

    if 'system_settings' not in tables:
        op.create_table(
            'system_settings',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('site_name', sa.String(length=120), nullable=False, server_default='Student-Teacher System'),
            sa.Column('site_description', sa.Text(), nullable=False, server_default=''),
            sa.Column('contact_email', sa.String(length=255), nullable=False, server_default='admin@example.com'),
            sa.Column('welcome_message', sa.Text(), nullable=False, server_default=''),
            sa.Column('allow_registration', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('require_approval', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('max_appointments_per_student', sa.Integer(), nullable=False, server_default='5'),
            sa.Column('appointment_duration', sa.Integer(), nullable=False, server_default='60'),
            sa.Column('email_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('sms_notifications', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('maintenance_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )

    if 'rate_limit_states' not in tables:
        op.create_table(
            'rate_limit_states',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('scope_type', sa.String(length=20), nullable=False, server_default='user'),
            sa.Column('scope_key', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('action_name', sa.String(length=80), nullable=False, server_default=''),
            sa.Column('window_start', sa.DateTime(), nullable=False),
            sa.Column('request_count', sa.Integer(), nullable=False, server_default='0'),
            sa.UniqueConstraint('scope_type', 'scope_key', 'action_name', name='uq_rate_limit_scope_action'),
        )

    for table, specs in INDEXES.items():
        existing = {idx['name'] for idx in inspector.get_indexes(table)}
        for name, columns, unique in specs:
            if name not in existing:
                op.create_index(name, table, columns, unique=unique)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    for table in ('rate_limit_states', 'system_settings', 'messages', 'appointments', 'teacher_availability', 'users'):
        if table not in tables:
            continue
        existing = {idx['name'] for idx in inspector.get_indexes(table)}
        for name, _, _ in reversed(INDEXES.get(table, [])):
            if name in existing:
                op.drop_index(name, table_name=table)
        op.drop_table(table)
