"""habit engine schema

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-16 09:12:41.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('mood_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('habit_streak', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'user_badges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('icon', sa.String(), nullable=True),
        sa.Column('earned_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'name', name='uq_user_badge_name'),
    )
    op.create_index('ix_user_badges_id', 'user_badges', ['id'])

    op.create_table(
        'habits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=False, server_default='health'),
        sa.Column('icon', sa.String(10), nullable=False),
        sa.Column('color', sa.String(7), nullable=False, server_default='#48BB78'),
        sa.Column('frequency', sa.String(), nullable=False, server_default='daily'),
        sa.Column('custom_days', sa.JSON(), nullable=True),
        sa.Column('times_per_week', sa.Integer(), nullable=True),
        sa.Column('target_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit', sa.String(20), nullable=False, server_default='times'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_completions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('mood_booster', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recommended_moods', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('weekly_completion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('monthly_completion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('average_completion_time', sa.String(5), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_habits_id', 'habits', ['id'])
    op.create_index('ix_habits_user_active', 'habits', ['user_id', 'is_active'])
    op.create_index('ix_habits_user_category', 'habits', ['user_id', 'category'])

    op.create_table(
        'habit_reminders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('time', sa.String(5), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('message', sa.String(200), nullable=True),
    )
    op.create_index('ix_habit_reminders_id', 'habit_reminders', ['id'])

    op.create_table(
        'habit_completions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('habit_id', sa.Integer(), sa.ForeignKey('habits.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('completion_date', sa.String(10), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('target_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('mood_at_time', sa.String(), nullable=True),
        sa.Column('mood_after_completion', sa.String(), nullable=True),
        sa.Column('effort_level', sa.Integer(), nullable=True),
        sa.Column('satisfaction_level', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='manual'),
        sa.Column('streak_at_completion', sa.Integer(), nullable=False, server_default='0'),
        # one ledger row per habit per calendar day
        sa.UniqueConstraint('habit_id', 'completion_date', name='uq_habit_completion_per_day'),
    )
    op.create_index('ix_habit_completions_id', 'habit_completions', ['id'])
    op.create_index('ix_completions_user_date', 'habit_completions', ['user_id', 'completion_date'])

    op.create_table(
        'pending_awards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'completion_id', sa.Integer(),
            sa.ForeignKey('habit_completions.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('completion_id', name='uq_pending_award_completion'),
    )
    op.create_index('ix_pending_awards_id', 'pending_awards', ['id'])


def downgrade() -> None:
    op.drop_table('pending_awards')
    op.drop_table('habit_completions')
    op.drop_table('habit_reminders')
    op.drop_table('habits')
    op.drop_table('user_badges')
    op.drop_table('users')
