"""Pipeline CRM schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Organizations, users, deals with their stage history, activities and AI
summaries, the event log and notifications.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

ID = sa.String(36)


def upgrade() -> None:
    # Organizations table
    op.create_table('organizations',
        sa.Column('id', ID, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('settings', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )

    # Users table
    op.create_table('users',
        sa.Column('id', ID, nullable=False),
        sa.Column('organization_id', ID, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255)),
        sa.Column('role', sa.String(50)),
        sa.Column('manager_id', ID),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['manager_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('username')
    )
    op.create_index('ix_users_organization', 'users', ['organization_id'])

    # Deals table
    op.create_table('deals',
        sa.Column('id', ID, nullable=False),
        sa.Column('organization_id', ID, nullable=False),
        sa.Column('assigned_agent_id', ID),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('business_type', sa.String(100)),
        sa.Column('business_address', sa.Text()),
        sa.Column('contact_name', sa.String(255)),
        sa.Column('contact_phone', sa.String(50)),
        sa.Column('contact_email', sa.String(255)),
        sa.Column('current_stage', sa.String(50), nullable=False),
        sa.Column('stage_entered_at', sa.DateTime()),
        sa.Column('temperature', sa.String(10)),
        sa.Column('priority', sa.String(10)),
        sa.Column('status', sa.String(20)),
        sa.Column('estimated_monthly_volume', sa.Float()),
        sa.Column('estimated_commission', sa.Float()),
        sa.Column('deal_probability', sa.Integer()),
        sa.Column('appointment_date', sa.DateTime()),
        sa.Column('next_follow_up_at', sa.DateTime()),
        sa.Column('last_follow_up_at', sa.DateTime()),
        sa.Column('follow_up_attempt_count', sa.Integer()),
        sa.Column('last_activity_at', sa.DateTime()),
        sa.Column('closed_at', sa.DateTime()),
        sa.Column('lost_reason', sa.Text()),
        sa.Column('next_quarterly_checkin_at', sa.DateTime()),
        sa.Column('last_quarterly_checkin_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        sa.Column('voice_transcript', sa.Text()),
        sa.Column('extra_data', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['assigned_agent_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_deals_organization', 'deals', ['organization_id'])
    op.create_index('ix_deals_stage', 'deals', ['current_stage'])
    op.create_index('ix_deals_agent', 'deals', ['assigned_agent_id'])
    op.create_index('ix_deals_next_follow_up', 'deals', ['next_follow_up_at'])
    op.create_index('ix_deals_created_at_id', 'deals', ['created_at', 'id'])

    # Deal stage history
    op.create_table('deal_stage_history',
        sa.Column('id', ID, nullable=False),
        sa.Column('deal_id', ID, nullable=False),
        sa.Column('from_stage', sa.String(50)),
        sa.Column('to_stage', sa.String(50), nullable=False),
        sa.Column('changed_by_id', ID),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.Column('seconds_in_previous_stage', sa.Integer()),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_deal_stage_history_deal', 'deal_stage_history', ['deal_id'])

    # Deal activities (follow-ups, check-ins, notes)
    op.create_table('deal_activities',
        sa.Column('id', ID, nullable=False),
        sa.Column('deal_id', ID, nullable=False),
        sa.Column('user_id', ID),
        sa.Column('activity_type', sa.String(30), nullable=False),
        sa.Column('method', sa.String(30)),
        sa.Column('outcome', sa.String(50)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime()),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_deal_activities_deal', 'deal_activities', ['deal_id'])

    # AI summaries
    op.create_table('deal_summaries',
        sa.Column('id', ID, nullable=False),
        sa.Column('deal_id', ID, nullable=False),
        sa.Column('created_by_id', ID),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('key_takeaways', postgresql.JSONB),
        sa.Column('objections', postgresql.JSONB),
        sa.Column('next_steps', postgresql.JSONB),
        sa.Column('sentiment', sa.String(20)),
        sa.Column('hot_lead', sa.Boolean()),
        sa.Column('model', sa.String(100)),
        sa.Column('created_at', sa.DateTime()),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_deal_summaries_deal', 'deal_summaries', ['deal_id'])

    # Event log (append-only audit trail)
    op.create_table('event_log',
        sa.Column('id', ID, nullable=False),
        sa.Column('organization_id', ID),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_id', ID),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', ID, nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('extra_data', postgresql.JSONB),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_organization', 'event_log', ['organization_id'])
    op.create_index('ix_event_log_entity', 'event_log', ['entity_type', 'entity_id'])
    op.create_index('ix_event_log_timestamp', 'event_log', ['timestamp'])

    # Notifications
    op.create_table('notifications',
        sa.Column('id', ID, nullable=False),
        sa.Column('organization_id', ID, nullable=False),
        sa.Column('user_id', ID),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text()),
        sa.Column('notification_type', sa.String(50)),
        sa.Column('priority', sa.String(20)),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', ID),
        sa.Column('is_read', sa.Boolean()),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('extra_data', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime()),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_organization', 'notifications', ['organization_id'])
    op.create_index('ix_notifications_user', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('event_log')
    op.drop_table('deal_summaries')
    op.drop_table('deal_activities')
    op.drop_table('deal_stage_history')
    op.drop_table('deals')
    op.drop_table('users')
    op.drop_table('organizations')
