"""
Notification Service - In-app notifications for pipeline users.

Notifications are created by the reminder sweep (follow-ups due, stale
deals, quarterly check-ins) and read from the notifications API.
A notification with no ``user_id`` is broadcast to the whole organization.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_

from database.models import Notification

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ('info', 'warning', 'reminder', 'success')
PRIORITIES = ('low', 'normal', 'high', 'urgent')


class NotificationService:
    """Service for managing notifications of one organization."""

    def __init__(self, session, organization_id: str):
        self.session = session
        self.organization_id = organization_id

    def _query(self, user_id: str = None):
        query = self.session.query(Notification).filter(
            Notification.organization_id == self.organization_id
        )
        if user_id:
            # The user's own notifications plus broadcasts
            query = query.filter(or_(
                Notification.user_id == user_id,
                Notification.user_id.is_(None)
            ))
        return query

    def create_notification(self, title: str, message: str,
                            notification_type: str = 'info',
                            priority: str = 'normal',
                            user_id: str = None,
                            entity_type: str = None,
                            entity_id: str = None,
                            metadata: Dict = None) -> Dict:
        """
        Create a new notification.

        Args:
            title: Notification title
            message: Notification message
            notification_type: info, warning, reminder or success
            priority: low, normal, high or urgent
            user_id: Specific user to notify (None = all users)
            entity_type: Related entity type
            entity_id: Related entity ID
            metadata: Additional data

        Returns:
            Created notification dict
        """
        notification = Notification(
            organization_id=self.organization_id,
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type if notification_type in NOTIFICATION_TYPES else 'info',
            priority=priority if priority in PRIORITIES else 'normal',
            entity_type=entity_type,
            entity_id=entity_id,
            extra_data=metadata or {},
            is_read=False
        )
        self.session.add(notification)
        self.session.flush()

        logger.info(f"Created notification: {title}")
        return notification.to_dict()

    def exists_since(self, entity_type: str, entity_id: str, reminder_type: str,
                     since: datetime) -> bool:
        """True when the same reminder was already raised for the entity after ``since``."""
        rows = self.session.query(Notification).filter(
            Notification.organization_id == self.organization_id,
            Notification.entity_type == entity_type,
            Notification.entity_id == entity_id,
            Notification.created_at >= since
        ).all()
        return any((n.extra_data or {}).get('reminderType') == reminder_type for n in rows)

    def get_notifications(self, user_id: str = None, unread_only: bool = False,
                          limit: int = 50) -> List[Dict]:
        """Get notifications for a user (including broadcasts) or all users."""
        query = self._query(user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        notifications = query.order_by(
            Notification.created_at.desc()
        ).limit(limit).all()
        return [n.to_dict() for n in notifications]

    def get_unread_count(self, user_id: str = None) -> int:
        query = self.session.query(func.count(Notification.id)).filter(
            Notification.organization_id == self.organization_id,
            Notification.is_read == False  # noqa: E712
        )
        if user_id:
            query = query.filter(or_(
                Notification.user_id == user_id,
                Notification.user_id.is_(None)
            ))
        return query.scalar() or 0

    def mark_as_read(self, notification_id: str, user_id: str = None) -> Optional[Dict]:
        """Mark a notification as read. Returns None when it is not visible to the user."""
        notification = self._query(user_id).filter(
            Notification.id == notification_id
        ).first()
        if not notification:
            return None

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.session.flush()
        return notification.to_dict()

    def mark_all_as_read(self, user_id: str = None) -> int:
        """Mark all unread notifications as read; returns how many changed."""
        unread = self._query(user_id).filter(
            Notification.is_read == False  # noqa: E712
        ).all()

        now = datetime.utcnow()
        for notification in unread:
            notification.is_read = True
            notification.read_at = now
        self.session.flush()
        return len(unread)

    def delete_notification(self, notification_id: str, user_id: str = None) -> bool:
        notification = self._query(user_id).filter(
            Notification.id == notification_id
        ).first()
        if not notification:
            return False

        self.session.delete(notification)
        self.session.flush()
        return True

    def cleanup_old_notifications(self, days: int = 30, now: datetime = None) -> int:
        """Delete read notifications older than ``days``."""
        cutoff = (now or datetime.utcnow()) - timedelta(days=days)
        count = self.session.query(Notification).filter(
            Notification.organization_id == self.organization_id,
            Notification.is_read == True,  # noqa: E712
            Notification.created_at < cutoff
        ).delete(synchronize_session=False)
        self.session.flush()
        return count
