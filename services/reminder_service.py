"""
Reminder Service - Turns the pipeline worklist into notifications.

For every organization the sweep looks at the same lists an agent sees on
the "today" screen (follow-ups due, stale deals, quarterly check-ins,
appointments today) and raises one notification per deal and reminder type
per day, addressed to the deal's assigned agent.
"""

import logging
from datetime import datetime
from typing import Dict, List, Any

from sqlalchemy.orm import Session

from database.models import Organization
from services.deal_repository import DealRepository
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


# Worklist key -> reminder configuration
REMINDER_CONFIGS = {
    'followUpsDue': {
        'type': 'follow_up_due',
        'title': 'Follow up with {name}',
        'message': 'Follow-up was due {when}',
        'field': 'nextFollowUpAt',
        'priority': 'high',
    },
    'staleDeals': {
        'type': 'stale_deal',
        'title': '{name} has gone quiet',
        'message': 'No activity since {when}',
        'field': 'lastActivityAt',
        'priority': 'normal',
    },
    'checkInsDue': {
        'type': 'quarterly_checkin',
        'title': 'Quarterly check-in: {name}',
        'message': 'Check-in due {when}',
        'field': 'nextQuarterlyCheckinAt',
        'priority': 'normal',
    },
    'appointmentsToday': {
        'type': 'appointment_today',
        'title': 'Appointment today with {name}',
        'message': 'Appointment at {when}',
        'field': 'appointmentDate',
        'priority': 'high',
    },
}


def _when(value) -> str:
    if not value:
        return 'unknown'
    return value.replace('T', ' ')[:16]


class ReminderService:
    """Builds reminders for one organization."""

    def __init__(self, session: Session, organization_id: str,
                 stale_days: int = 7, checkin_window_days: int = 7):
        self.session = session
        self.organization_id = organization_id
        self.stale_days = stale_days
        self.checkin_window_days = checkin_window_days

    def check_all_reminders(self, now: datetime = None) -> Dict[str, List[Dict]]:
        """
        Reminder items grouped by worklist key; empty groups are dropped.
        """
        worklist = DealRepository(self.session, self.organization_id).get_today(
            now=now,
            stale_days=self.stale_days,
            checkin_window_days=self.checkin_window_days
        )

        reminders = {}
        for key, config in REMINDER_CONFIGS.items():
            items = [{
                'type': config['type'],
                'entity_type': 'deal',
                'entity_id': deal['id'],
                'user_id': deal.get('assignedAgentId'),
                'title': config['title'].format(name=deal['businessName']),
                'description': config['message'].format(when=_when(deal.get(config['field']))),
                'temperature': deal.get('temperature'),
                'stage': deal.get('currentStage'),
                'priority': config['priority'],
            } for deal in worklist.get(key, [])]
            if items:
                reminders[key] = items
        return reminders

    def create_notifications(self, now: datetime = None) -> int:
        """
        Raise a notification for each reminder not already raised today.

        Returns:
            Number of notifications created
        """
        now = now or datetime.utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        notifications = NotificationService(self.session, self.organization_id)

        created = 0
        for items in self.check_all_reminders(now).values():
            for item in items:
                if notifications.exists_since('deal', item['entity_id'], item['type'], start_of_day):
                    continue
                notifications.create_notification(
                    title=item['title'],
                    message=item['description'],
                    notification_type='reminder',
                    priority=item['priority'],
                    user_id=item['user_id'],
                    entity_type='deal',
                    entity_id=item['entity_id'],
                    metadata={'reminderType': item['type'], 'stage': item['stage']}
                )
                created += 1
        return created

    def get_summary(self, now: datetime = None) -> Dict[str, Any]:
        reminders = self.check_all_reminders(now)
        return {
            'checkedAt': (now or datetime.utcnow()).isoformat(),
            'totalItems': sum(len(items) for items in reminders.values()),
            'byType': {k: len(v) for k, v in reminders.items()},
        }


def run_reminder_sweep(session: Session, stale_days: int = 7, checkin_window_days: int = 7,
                       now: datetime = None) -> Dict[str, int]:
    """
    Run the reminder sweep across every organization.

    Returns:
        organization id -> notifications created
    """
    results = {}
    for org in session.query(Organization).all():
        service = ReminderService(session, org.id, stale_days, checkin_window_days)
        results[org.id] = service.create_notifications(now)
    total = sum(results.values())
    if total:
        logger.info(f"Reminder sweep created {total} notification(s)")
    return results
