"""Initial schema: users, refresh tokens, profiles, sessions, kids, calendar

Revision ID: growfit_001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'growfit_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        'user',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=False),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('phone_verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('two_factor_enabled', sa.Boolean(), nullable=False),
        sa.Column('kids_data_completed', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('email', name='uq_user_email'),
        sa.CheckConstraint("role IN ('admin', 'team', 'coach', 'client')", name='ck_user_role'),
        sa.CheckConstraint("status IN ('active', 'inactive', 'suspended')", name='ck_user_status'),
    )
    op.create_index('ix_user_role_status', 'user', ['role', 'status'])

    op.create_table(
        'refresh_token',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('token_hash', name='uq_refresh_token_hash'),
    )
    op.create_index('ix_refresh_token_user_expires', 'refresh_token', ['user_id', 'expires_at'])
    op.create_index('ix_refresh_token_expires_at', 'refresh_token', ['expires_at'])

    op.create_table(
        'coach',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('specialties', sa.JSON(), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('certifications', sa.JSON(), nullable=False),
        sa.Column('years_of_experience', sa.Integer(), nullable=True),
        sa.Column('education', sa.Text(), nullable=True),
        sa.Column('availability_rules', sa.JSON(), nullable=False),
        sa.Column('kpis_cache', sa.JSON(), nullable=True),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('session_types', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('accepting_new_clients', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('social_media', sa.JSON(), nullable=True),
        sa.Column('portfolio_images', sa.JSON(), nullable=False),
        sa.Column('email_notifications', sa.Boolean(), nullable=False),
        sa.Column('sms_notifications', sa.Boolean(), nullable=False),
        sa.Column('preferred_language', sa.String(8), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', name='uq_coach_user_id'),
    )
    op.create_index('ix_coach_status_accepting', 'coach', ['status', 'accepting_new_clients'])

    op.create_table(
        'client',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(16), nullable=True),
        sa.Column('address', sa.JSON(), nullable=True),
        sa.Column('goals', sa.JSON(), nullable=False),
        sa.Column('fitness_level', sa.String(16), nullable=True),
        sa.Column('medical_conditions', sa.JSON(), nullable=False),
        sa.Column('dietary_restrictions', sa.JSON(), nullable=False),
        sa.Column('preferred_workout_times', sa.JSON(), nullable=False),
        sa.Column('preferred_workout_types', sa.JSON(), nullable=False),
        sa.Column('terms_accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('privacy_policy_accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assigned_coach_id', sa.Uuid(), sa.ForeignKey('coach.id', ondelete='SET NULL'), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('files', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('emergency_contact', sa.JSON(), nullable=True),
        sa.Column('email_notifications', sa.Boolean(), nullable=False),
        sa.Column('sms_notifications', sa.Boolean(), nullable=False),
        sa.Column('preferred_language', sa.String(8), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', name='uq_client_user_id'),
    )
    op.create_index('ix_client_assigned_coach', 'client', ['assigned_coach_id'])
    op.create_index('ix_client_status', 'client', ['status'])

    op.create_table(
        'coaching_session',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('client.id'), nullable=False),
        sa.Column('coach_id', sa.Uuid(), sa.ForeignKey('coach.id'), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('session_type', sa.String(32), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('payment_status', sa.String(16), nullable=False),
        sa.Column('google_event_id', sa.Text(), nullable=True),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_by', sa.Uuid(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('feedback_rating', sa.Integer(), nullable=True),
        sa.Column('feedback_comments', sa.Text(), nullable=True),
        sa.Column('feedback_submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('starts_at < ends_at', name='ck_coaching_session_time_order'),
        sa.CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'canceled', 'no_show')",
            name='ck_coaching_session_status',
        ),
        sa.CheckConstraint(
            'feedback_rating IS NULL OR (feedback_rating BETWEEN 1 AND 5)',
            name='ck_coaching_session_rating',
        ),
    )
    op.create_index('ix_coaching_session_coach_starts', 'coaching_session', ['coach_id', 'starts_at'])
    op.create_index('ix_coaching_session_client_starts', 'coaching_session', ['client_id', 'starts_at'])
    op.create_index('ix_coaching_session_status', 'coaching_session', ['status'])
    op.create_index('ix_coaching_session_window', 'coaching_session', ['starts_at', 'ends_at'])

    op.create_table(
        'kid',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('gender', sa.String(8), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False),
        sa.Column('location', sa.Text(), nullable=False),
        sa.Column('is_in_sports', sa.Boolean(), nullable=False),
        sa.Column('preferred_training_style', sa.String(16), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('age BETWEEN 1 AND 18', name='ck_kid_age'),
    )
    op.create_index('ix_kid_parent', 'kid', ['parent_id'])

    op.create_table(
        'calendar_account',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider', sa.String(16), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('calendar_id', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sync_state', sa.JSON(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('name', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'provider', name='uq_calendar_account_user_provider'),
    )

    op.create_table(
        'calendar_event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('coaching_session.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider_event_id', sa.Text(), nullable=False),
        sa.Column('provider', sa.String(16), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sync_metadata', sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('session_id', name='uq_calendar_event_session_id'),
        sa.UniqueConstraint('provider_event_id', 'provider', name='uq_calendar_event_provider_event'),
    )


def downgrade() -> None:
    op.drop_table('calendar_event')
    op.drop_table('calendar_account')
    op.drop_index('ix_kid_parent', table_name='kid')
    op.drop_table('kid')
    op.drop_index('ix_coaching_session_window', table_name='coaching_session')
    op.drop_index('ix_coaching_session_status', table_name='coaching_session')
    op.drop_index('ix_coaching_session_client_starts', table_name='coaching_session')
    op.drop_index('ix_coaching_session_coach_starts', table_name='coaching_session')
    op.drop_table('coaching_session')
    op.drop_index('ix_client_status', table_name='client')
    op.drop_index('ix_client_assigned_coach', table_name='client')
    op.drop_table('client')
    op.drop_index('ix_coach_status_accepting', table_name='coach')
    op.drop_table('coach')
    op.drop_index('ix_refresh_token_expires_at', table_name='refresh_token')
    op.drop_index('ix_refresh_token_user_expires', table_name='refresh_token')
    op.drop_table('refresh_token')
    op.drop_index('ix_user_role_status', table_name='user')
    op.drop_table('user')
