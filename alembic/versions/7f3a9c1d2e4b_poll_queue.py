"""poll queue tables

Revision ID: 7f3a9c1d2e4b
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '7f3a9c1d2e4b'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_code', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_sessions_session_code', 'sessions', ['session_code'], unique=True)

    op.create_table(
        'generated_mcqs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('question', sa.String(), nullable=False),
        sa.Column('options', postgresql.JSONB(), nullable=False),
        sa.Column('correct_answer', sa.Integer(), nullable=True),
        sa.Column('justification', sa.String(), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=True),
        sa.Column('sent_to_students', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_generated_mcqs_session_id', 'generated_mcqs', ['session_id'])

    op.create_table(
        'polls',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('question', sa.String(), nullable=False),
        sa.Column('options', postgresql.JSONB(), nullable=False),
        sa.Column('correct_answer', sa.Integer(), nullable=True),
        sa.Column('justification', sa.String(), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('queue_status', sa.String(), nullable=False, server_default='queued'),
        sa.Column('queue_position', sa.Integer(), nullable=False),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_polls_session_id', 'polls', ['session_id'])
    op.create_index('ix_polls_queue_status', 'polls', ['queue_status'])
    op.create_index('ix_polls_session_position', 'polls', ['session_id', 'queue_position'])
    op.create_index(
        'uq_polls_one_active_per_session',
        'polls',
        ['session_id'],
        unique=True,
        postgresql_where=sa.text("queue_status = 'active'"),
    )

    op.create_table(
        'poll_responses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('poll_id', sa.Integer(), sa.ForeignKey('polls.id'), nullable=False),
        sa.Column('student_id', sa.String(), nullable=False),
        sa.Column('selected_option', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('response_time', sa.Float(), nullable=False, server_default='0'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('poll_id', 'student_id', name='uq_poll_responses_student'),
    )
    op.create_index('ix_poll_responses_poll_id', 'poll_responses', ['poll_id'])

    op.create_table(
        'poll_queue_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('auto_advance', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('poll_duration', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('break_between_polls', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_poll_queue_settings_session_id', 'poll_queue_settings', ['session_id'], unique=True)

    op.create_table(
        'poll_queue_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('poll_id', sa.Integer(), sa.ForeignKey('polls.id'), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('previous_status', sa.String(), nullable=True),
        sa.Column('new_status', sa.String(), nullable=True),
        sa.Column('triggered_by', sa.String(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_poll_queue_history_session_id', 'poll_queue_history', ['session_id'])


def downgrade() -> None:
    op.drop_table('poll_queue_history')
    op.drop_table('poll_queue_settings')
    op.drop_table('poll_responses')
    op.drop_index('uq_polls_one_active_per_session', table_name='polls')
    op.drop_table('polls')
    op.drop_table('generated_mcqs')
    op.drop_table('sessions')
