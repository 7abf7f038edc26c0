"""Speaker queue schema

Revision ID: q001_speaker_queue
Revises:
Create Date: 2026-10-19

Creates the tables behind the speaker queue:
- moderators and their login sessions
- registered attendees
- events with their join codes
- speaking requests with status and queue position
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'q001_speaker_queue'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'moderators',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_moderators_email', 'moderators', ['email'], unique=True)

    op.create_table(
        'attendees',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('attendee_code', sa.String(), nullable=False),
        sa.Column('verification_token', sa.String(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_attendees_email', 'attendees', ['email'], unique=True)
    op.create_index('ix_attendees_attendee_code', 'attendees', ['attendee_code'], unique=True)

    op.create_table(
        'events',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('event_code', sa.String(), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=True),
        sa.Column('accepting_requests', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('moderator_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['moderator_id'], ['moderators.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_events_event_code', 'events', ['event_code'], unique=True)
    op.create_index('ix_events_moderator_id', 'events', ['moderator_id'])

    op.create_table(
        'moderator_sessions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('moderator_id', sa.String(), nullable=False),
        sa.Column('current_event_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['moderator_id'], ['moderators.id']),
        sa.ForeignKeyConstraint(['current_event_id'], ['events.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_moderator_sessions_moderator_id', 'moderator_sessions', ['moderator_id'])

    op.create_table(
        'speaking_requests',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('attendee_id', sa.String(), nullable=True),
        sa.Column('attendee_name', sa.String(), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('queue_position', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
        sa.ForeignKeyConstraint(['attendee_id'], ['attendees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'dismissed', 'completed', 'rejected')",
            name='check_speaking_request_status',
        ),
    )
    op.create_index('ix_speaking_requests_event_id', 'speaking_requests', ['event_id'])
    op.create_index('ix_speaking_requests_attendee_id', 'speaking_requests', ['attendee_id'])
    op.create_index('ix_speaking_requests_status', 'speaking_requests', ['status'])

    # At most one approved request per event
    op.create_index(
        'uq_speaking_requests_one_speaker',
        'speaking_requests',
        ['event_id'],
        unique=True,
        postgresql_where=sa.text("status = 'approved'"),
        sqlite_where=sa.text("status = 'approved'"),
    )


def downgrade() -> None:
    op.drop_index('uq_speaking_requests_one_speaker', table_name='speaking_requests')
    op.drop_table('speaking_requests')
    op.drop_table('moderator_sessions')
    op.drop_table('events')
    op.drop_table('attendees')
    op.drop_table('moderators')
