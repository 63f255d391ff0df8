"""
Event Logger Service - audit trail for the pipeline CRM and the auto shop.

Pipeline changes go to the organization-scoped ``event_log`` table; shop
actions go to ``auto_activity_log``. Both feed the activity feeds and the
reminder sweep.
"""

import logging
from typing import Dict, Optional, List, Any
from datetime import datetime, timedelta

from sqlalchemy import func

logger = logging.getLogger(__name__)

# Event types for pipeline operations
EVENT_TYPES = {
    # CRUD Operations
    'CREATED': 'Entity was created',
    'UPDATED': 'Entity was updated',
    'DELETED': 'Entity was deleted',

    # Deal lifecycle
    'STAGE_CHANGED': 'Deal moved to a new stage',
    'ASSIGNED': 'Deal was assigned to an agent',
    'DEAL_WON': 'Deal was won',
    'DEAL_LOST': 'Deal was lost',
    'FOLLOW_UP_LOGGED': 'Follow-up was logged',
    'CHECK_IN_LOGGED': 'Quarterly check-in was logged',

    # AI events
    'AI_SUMMARY_CREATED': 'AI meeting summary was generated',

    # User events
    'USER_LOGIN': 'User logged in',
    'USER_LOGOUT': 'User logged out',
}

# Shop activity actions
SHOP_ACTIONS = (
    'created', 'updated', 'status_changed', 'payment_received', 'payment_voided',
    'invited', 'approved', 'declined', 'question', 'clock_in', 'clock_out',
)


class EventLogger:
    """Service for logging pipeline events to the database."""

    def __init__(self, session, organization_id: str, actor_type: str = 'system', actor_id: str = None):
        """
        Args:
            session: SQLAlchemy database session
            organization_id: The organization ID for multi-tenancy
            actor_type: Type of actor (user, system)
            actor_id: ID of the actor (user ID if user, None if system)
        """
        self.session = session
        self.organization_id = organization_id
        self.actor_type = actor_type
        self.actor_id = actor_id

    def log(self, entity_type: str, entity_id: str, event_type: str,
            description: str = None, metadata: Dict = None) -> Optional[Dict]:
        """
        Log an event to the database.

        Returns:
            The created event log entry as a dict, or None on failure
        """
        try:
            from database.models import EventLog

            event = EventLog(
                organization_id=self.organization_id,
                timestamp=datetime.utcnow(),
                actor_type=self.actor_type,
                actor_id=self.actor_id,
                entity_type=entity_type,
                entity_id=str(entity_id),
                event_type=event_type,
                description=description or EVENT_TYPES.get(event_type, event_type),
                extra_data=metadata or {}
            )

            self.session.add(event)
            self.session.flush()

            logger.debug(f"Event logged: {event_type} on {entity_type}:{entity_id}")
            return event.to_dict()

        except Exception as e:
            logger.error(f"Failed to log event: {e}")
            return None

    def log_stage_change(self, deal_id: str, old_stage: str, new_stage: str) -> Optional[Dict]:
        """Log a deal stage transition."""
        return self.log(
            entity_type='deal',
            entity_id=deal_id,
            event_type='STAGE_CHANGED',
            description=f"Deal moved from '{old_stage}' to '{new_stage}'",
            metadata={'old_stage': old_stage, 'new_stage': new_stage}
        )

    def get_entity_history(self, entity_type: str, entity_id: str,
                           limit: int = 50) -> List[Dict]:
        """Get the event history for a specific entity, newest first."""
        from database.models import EventLog

        events = self.session.query(EventLog).filter(
            EventLog.organization_id == self.organization_id,
            EventLog.entity_type == entity_type,
            EventLog.entity_id == str(entity_id)
        ).order_by(EventLog.timestamp.desc()).limit(limit).all()

        return [e.to_dict() for e in events]

    def get_recent_events(self, hours: int = 24, event_types: List[str] = None,
                          limit: int = 100) -> List[Dict]:
        """Get recent events, optionally limited to some event types."""
        from database.models import EventLog

        since = datetime.utcnow() - timedelta(hours=hours)
        query = self.session.query(EventLog).filter(
            EventLog.organization_id == self.organization_id,
            EventLog.timestamp >= since
        )
        if event_types:
            query = query.filter(EventLog.event_type.in_(event_types))

        events = query.order_by(EventLog.timestamp.desc()).limit(limit).all()
        return [e.to_dict() for e in events]

    def get_activity_summary(self, days: int = 7) -> Dict[str, Any]:
        """Count events by type over the last ``days`` days."""
        from database.models import EventLog

        since = datetime.utcnow() - timedelta(days=days)
        event_counts = self.session.query(
            EventLog.event_type,
            func.count(EventLog.id).label('count')
        ).filter(
            EventLog.organization_id == self.organization_id,
            EventLog.timestamp >= since
        ).group_by(EventLog.event_type).all()

        return {
            'periodDays': days,
            'eventTypeCounts': {e[0]: e[1] for e in event_counts},
            'totalEvents': sum(e[1] for e in event_counts),
        }


class ShopActivityLogger:
    """Writes ``auto_activity_log`` rows for one shop and acting user."""

    def __init__(self, session, shop_id: int, user_id: int = None):
        self.session = session
        self.shop_id = shop_id
        self.user_id = user_id

    def log(self, entity_type: str, entity_id: int, action: str, details: Dict = None):
        from database.auto_models import AutoActivityLog

        entry = AutoActivityLog(
            shop_id=self.shop_id,
            user_id=self.user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            details=details or {}
        )
        self.session.add(entry)
        self.session.flush()
        logger.debug(f"Shop {self.shop_id} activity: {action} on {entity_type}:{entity_id}")
        return entry

    def recent(self, limit: int = 50) -> List[Dict]:
        from database.auto_models import AutoActivityLog

        rows = self.session.query(AutoActivityLog).filter(
            AutoActivityLog.shop_id == self.shop_id
        ).order_by(AutoActivityLog.created_at.desc(), AutoActivityLog.id.desc()).limit(limit).all()
        return [r.to_dict() for r in rows]


def get_event_logger(session, organization_id: str, user_id: str = None) -> EventLogger:
    """
    Factory function to create an EventLogger instance.

    Args:
        session: SQLAlchemy database session
        organization_id: Organization ID
        user_id: Optional user ID if the actor is a user
    """
    actor_type = 'user' if user_id else 'system'
    return EventLogger(session, organization_id, actor_type, user_id)
