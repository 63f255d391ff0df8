"""
SQLAlchemy models for the Pipeline CRM.
Defines organizations, users, deals and their stage history, activities,
AI summaries, the event log and notifications.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, JSON, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def iso(value):
    """Serialize an optional datetime."""
    return value.isoformat() if value else None


# =============================================================================
# ORGANIZATION (Multi-tenant foundation)
# =============================================================================

class Organization(Base):
    """
    Organization/Company owning a sales pipeline.
    """
    __tablename__ = 'organizations'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    settings = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    users = relationship("User", back_populates="organization")
    deals = relationship("Deal", back_populates="organization")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'settings': self.settings or {},
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


# =============================================================================
# USERS & AUTHENTICATION
# =============================================================================

class User(Base):
    """Pipeline users: agents, relationship managers and admins."""
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    username = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255))
    role = Column(String(50), default='agent')  # agent, relationship_manager, master_admin
    manager_id = Column(String(36), ForeignKey('users.id'))
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="users")

    __table_args__ = (
        Index('ix_users_organization', 'organization_id'),
    )

    def to_dict(self, include_sensitive=False):
        data = {
            'id': self.id,
            'organizationId': self.organization_id,
            'email': self.email,
            'username': self.username,
            'displayName': self.display_name,
            'role': self.role,
            'managerId': self.manager_id,
            'isActive': self.is_active,
            'lastLogin': iso(self.last_login),
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }
        if include_sensitive:
            data['passwordHash'] = self.password_hash
        return data


# =============================================================================
# PIPELINE - DEALS
# =============================================================================

class Deal(Base):
    """A merchant prospect moving through the sales pipeline."""
    __tablename__ = 'deals'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    assigned_agent_id = Column(String(36), ForeignKey('users.id'))

    business_name = Column(String(255), nullable=False)
    business_type = Column(String(100))
    business_address = Column(Text)
    contact_name = Column(String(255))
    contact_phone = Column(String(50))
    contact_email = Column(String(255))

    current_stage = Column(String(50), default='prospect', nullable=False)
    stage_entered_at = Column(DateTime, default=datetime.utcnow)
    temperature = Column(String(10), default='warm')  # hot, warm, cold
    priority = Column(String(10), default='medium')  # low, medium, high
    status = Column(String(20), default='active')  # active, won, lost

    estimated_monthly_volume = Column(Float, default=0)
    estimated_commission = Column(Float, default=0)
    deal_probability = Column(Integer, default=10)

    appointment_date = Column(DateTime)
    next_follow_up_at = Column(DateTime)
    last_follow_up_at = Column(DateTime)
    follow_up_attempt_count = Column(Integer, default=0)
    last_activity_at = Column(DateTime, default=datetime.utcnow)
    closed_at = Column(DateTime)
    lost_reason = Column(Text)
    next_quarterly_checkin_at = Column(DateTime)
    last_quarterly_checkin_at = Column(DateTime)

    notes = Column(Text)
    voice_transcript = Column(Text)
    extra_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="deals")
    assigned_agent = relationship("User", foreign_keys=[assigned_agent_id])
    stage_history = relationship("DealStageHistory", back_populates="deal",
                                 cascade="all, delete-orphan", order_by="DealStageHistory.changed_at")
    activities = relationship("DealActivity", back_populates="deal", cascade="all, delete-orphan")
    summaries = relationship("DealSummary", back_populates="deal", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_deals_organization', 'organization_id'),
        Index('ix_deals_stage', 'current_stage'),
        Index('ix_deals_agent', 'assigned_agent_id'),
        Index('ix_deals_next_follow_up', 'next_follow_up_at'),
        Index('ix_deals_created_at_id', 'created_at', 'id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'organizationId': self.organization_id,
            'assignedAgentId': self.assigned_agent_id,
            'businessName': self.business_name,
            'businessType': self.business_type,
            'businessAddress': self.business_address,
            'contactName': self.contact_name,
            'contactPhone': self.contact_phone,
            'contactEmail': self.contact_email,
            'currentStage': self.current_stage,
            'stageEnteredAt': iso(self.stage_entered_at),
            'temperature': self.temperature,
            'priority': self.priority,
            'status': self.status,
            'estimatedMonthlyVolume': self.estimated_monthly_volume or 0,
            'estimatedCommission': self.estimated_commission or 0,
            'dealProbability': self.deal_probability,
            'appointmentDate': iso(self.appointment_date),
            'nextFollowUpAt': iso(self.next_follow_up_at),
            'lastFollowUpAt': iso(self.last_follow_up_at),
            'followUpAttemptCount': self.follow_up_attempt_count or 0,
            'lastActivityAt': iso(self.last_activity_at),
            'closedAt': iso(self.closed_at),
            'lostReason': self.lost_reason,
            'nextQuarterlyCheckinAt': iso(self.next_quarterly_checkin_at),
            'lastQuarterlyCheckinAt': iso(self.last_quarterly_checkin_at),
            'notes': self.notes,
            'voiceTranscript': self.voice_transcript,
            'metadata': self.extra_data or {},
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


class DealStageHistory(Base):
    """One row per stage transition; feeds time-in-stage analytics."""
    __tablename__ = 'deal_stage_history'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    deal_id = Column(String(36), ForeignKey('deals.id', ondelete='CASCADE'), nullable=False)
    from_stage = Column(String(50))
    to_stage = Column(String(50), nullable=False)
    changed_by_id = Column(String(36), ForeignKey('users.id'))
    changed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    seconds_in_previous_stage = Column(Integer)

    deal = relationship("Deal", back_populates="stage_history")

    __table_args__ = (
        Index('ix_deal_stage_history_deal', 'deal_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'dealId': self.deal_id,
            'fromStage': self.from_stage,
            'toStage': self.to_stage,
            'changedById': self.changed_by_id,
            'changedAt': iso(self.changed_at),
            'secondsInPreviousStage': self.seconds_in_previous_stage
        }


class DealActivity(Base):
    """Follow-ups, check-ins and notes logged against a deal."""
    __tablename__ = 'deal_activities'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    deal_id = Column(String(36), ForeignKey('deals.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id'))
    activity_type = Column(String(30), nullable=False)  # follow_up, check_in, note
    method = Column(String(30))  # call, email, text, visit
    outcome = Column(String(50))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    deal = relationship("Deal", back_populates="activities")

    __table_args__ = (
        Index('ix_deal_activities_deal', 'deal_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'dealId': self.deal_id,
            'userId': self.user_id,
            'activityType': self.activity_type,
            'method': self.method,
            'outcome': self.outcome,
            'notes': self.notes,
            'createdAt': iso(self.created_at)
        }


class DealSummary(Base):
    """AI-generated meeting summary for a deal."""
    __tablename__ = 'deal_summaries'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    deal_id = Column(String(36), ForeignKey('deals.id', ondelete='CASCADE'), nullable=False)
    created_by_id = Column(String(36), ForeignKey('users.id'))
    summary = Column(Text, nullable=False)
    key_takeaways = Column(JSONType, default=list)
    objections = Column(JSONType, default=list)
    next_steps = Column(JSONType, default=list)
    sentiment = Column(String(20), default='neutral')
    hot_lead = Column(Boolean, default=False)
    model = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)

    deal = relationship("Deal", back_populates="summaries")

    __table_args__ = (
        Index('ix_deal_summaries_deal', 'deal_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'dealId': self.deal_id,
            'createdById': self.created_by_id,
            'summary': self.summary,
            'keyTakeaways': self.key_takeaways or [],
            'objections': self.objections or [],
            'nextSteps': self.next_steps or [],
            'sentiment': self.sentiment,
            'hotLead': bool(self.hot_lead),
            'model': self.model,
            'createdAt': iso(self.created_at)
        }


# =============================================================================
# EVENT LOG
# =============================================================================

class EventLog(Base):
    """
    Event log for tracking pipeline activity.
    Powers reminders and the activity feed.
    """
    __tablename__ = 'event_log'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'))
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    actor_type = Column(String(50))  # user, system
    actor_id = Column(String(36))
    entity_type = Column(String(50), nullable=False)  # deal, user, ...
    entity_id = Column(String(36), nullable=False)
    event_type = Column(String(100), nullable=False)  # CREATED, UPDATED, STAGE_CHANGED, etc.
    description = Column(Text)
    extra_data = Column(JSONType, default=dict)

    __table_args__ = (
        Index('ix_event_log_organization', 'organization_id'),
        Index('ix_event_log_entity', 'entity_type', 'entity_id'),
        Index('ix_event_log_timestamp', 'timestamp'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'organizationId': self.organization_id,
            'timestamp': iso(self.timestamp),
            'actorType': self.actor_type,
            'actorId': self.actor_id,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'eventType': self.event_type,
            'description': self.description,
            'metadata': self.extra_data or {}
        }


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class Notification(Base):
    """User notifications for follow-up reminders and system messages."""
    __tablename__ = 'notifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id'))  # None = broadcast to all
    title = Column(String(255), nullable=False)
    message = Column(Text)
    notification_type = Column(String(50), default='info')  # info, warning, reminder, success
    priority = Column(String(20), default='normal')  # low, normal, high, urgent
    entity_type = Column(String(50))
    entity_id = Column(String(36))
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    extra_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_notifications_organization', 'organization_id'),
        Index('ix_notifications_user', 'user_id'),
        Index('ix_notifications_is_read', 'is_read'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'organizationId': self.organization_id,
            'userId': self.user_id,
            'title': self.title,
            'message': self.message,
            'notificationType': self.notification_type,
            'priority': self.priority,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'isRead': self.is_read,
            'readAt': iso(self.read_at),
            'metadata': self.extra_data or {},
            'createdAt': iso(self.created_at)
        }
