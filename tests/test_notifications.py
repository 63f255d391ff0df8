"""
Tests for deal reminders and the notifications API
"""
import pytest
from datetime import datetime, timedelta
from services.notification_service import NotificationService
from services.reminder_service import ReminderService, run_reminder_sweep


def _deal(db_session, seeded, name, **fields):
    from database.models import Deal

    deal = Deal(
        organization_id=seeded['org_id'],
        assigned_agent_id=seeded['agent_id'],
        business_name=name,
        **fields
    )
    db_session.add(deal)
    db_session.flush()
    return deal


@pytest.mark.integration
class TestReminderSweep:
    """Tests for turning the worklist into notifications"""

    def test_reminder_groups(self, db_session, seeded):
        """Test each worklist group becomes reminder items"""
        now = datetime.utcnow()
        _deal(db_session, seeded, 'Overdue Bakery', next_follow_up_at=now - timedelta(hours=1))
        _deal(db_session, seeded, 'Quiet Garage',
              last_activity_at=now - timedelta(days=10), stage_entered_at=now - timedelta(days=10))
        _deal(db_session, seeded, 'Loyal Diner', current_stage='active_merchant',
              next_quarterly_checkin_at=now + timedelta(days=2))
        _deal(db_session, seeded, 'Demo Deli', appointment_date=now.replace(hour=15, minute=0))

        reminders = ReminderService(db_session, seeded['org_id']).check_all_reminders(now)

        assert reminders['followUpsDue'][0]['title'] == 'Follow up with Overdue Bakery'
        assert reminders['followUpsDue'][0]['priority'] == 'high'
        assert reminders['staleDeals'][0]['title'] == 'Quiet Garage has gone quiet'
        assert reminders['checkInsDue'][0]['type'] == 'quarterly_checkin'
        assert reminders['appointmentsToday'][0]['description'].endswith('15:00')
        assert all(item['user_id'] == seeded['agent_id'] for items in reminders.values() for item in items)

    def test_empty_groups_are_dropped(self, db_session, seeded):
        """Test an organization with nothing due has no reminders"""
        _deal(db_session, seeded, 'Fresh Lead')
        assert ReminderService(db_session, seeded['org_id']).check_all_reminders() == {}

    def test_sweep_dedupes_per_day(self, db_session, seeded):
        """Test a reminder is raised once per deal and type per day"""
        now = datetime.utcnow()
        deal = _deal(db_session, seeded, 'Overdue Bakery', next_follow_up_at=now - timedelta(hours=1),
                     last_activity_at=now - timedelta(days=10))

        assert run_reminder_sweep(db_session, now=now) == {seeded['org_id']: 2}
        assert run_reminder_sweep(db_session, now=now) == {seeded['org_id']: 0}

        notifications = NotificationService(db_session, seeded['org_id']).get_notifications(seeded['agent_id'])
        assert {n['metadata']['reminderType'] for n in notifications} == {'follow_up_due', 'stale_deal'}
        assert all(n['entityId'] == deal.id for n in notifications)
        assert all(n['notificationType'] == 'reminder' for n in notifications)

    def test_summary(self, db_session, seeded):
        """Test the reminder summary counts by group"""
        _deal(db_session, seeded, 'Overdue Bakery', next_follow_up_at=datetime.utcnow() - timedelta(hours=1))

        summary = ReminderService(db_session, seeded['org_id']).get_summary()
        assert summary['totalItems'] == 1
        assert summary['byType'] == {'followUpsDue': 1}


@pytest.fixture
def notifications(db_session, seeded):
    """One notification each for agent and agent2, plus a broadcast"""
    service = NotificationService(db_session, seeded['org_id'])
    mine = service.create_notification('For agent', 'Call back', user_id=seeded['agent_id'], priority='high')
    other = service.create_notification('For agent2', 'Call back', user_id=seeded['agent2_id'])
    broadcast = service.create_notification('Everyone', 'Team meeting', notification_type='bogus')
    db_session.commit()
    return {'mine': mine, 'other': other, 'broadcast': broadcast}


@pytest.mark.integration
class TestNotificationsApi:
    """Tests for /api/notifications"""

    def test_unknown_type_falls_back(self, notifications):
        """Test unknown notification types are stored as info"""
        assert notifications['broadcast']['notificationType'] == 'info'
        assert notifications['mine']['priority'] == 'high'

    def test_list_own_and_broadcast(self, agent_client, notifications):
        """Test users see their own notifications and broadcasts"""
        data = agent_client.get('/api/notifications').get_json()

        assert {n['title'] for n in data['notifications']} == {'For agent', 'Everyone'}
        assert data['unreadCount'] == 2

    def test_requires_login(self, client, notifications):
        """Test anonymous callers are rejected"""
        assert client.get('/api/notifications').status_code == 401

    def test_mark_read(self, agent_client, notifications):
        """Test marking one notification read"""
        url = f"/api/notifications/{notifications['mine']['id']}/read"
        data = agent_client.post(url).get_json()

        assert data['notification']['isRead'] is True
        assert data['notification']['readAt'] is not None
        assert agent_client.get('/api/notifications/unread-count').get_json()['count'] == 1

        unread = agent_client.get('/api/notifications?unreadOnly=true').get_json()['notifications']
        assert [n['title'] for n in unread] == ['Everyone']

    def test_cannot_touch_others(self, agent_client, notifications):
        """Test another user's notification is invisible"""
        other_id = notifications['other']['id']
        assert agent_client.post(f'/api/notifications/{other_id}/read').status_code == 404
        assert agent_client.delete(f'/api/notifications/{other_id}').status_code == 404

    def test_read_all(self, agent_client, agent2_client, notifications):
        """Test marking everything read only touches visible notifications"""
        assert agent_client.post('/api/notifications/read-all').get_json()['updated'] == 2
        assert agent_client.get('/api/notifications/unread-count').get_json()['count'] == 0
        assert agent2_client.get('/api/notifications/unread-count').get_json()['count'] == 1

    def test_delete(self, agent_client, notifications):
        """Test deleting a notification"""
        url = f"/api/notifications/{notifications['mine']['id']}"
        assert agent_client.delete(url).status_code == 200
        assert agent_client.delete(url).status_code == 404

    def test_cleanup_old_read(self, db_session, seeded, notifications):
        """Test cleanup only removes read notifications past retention"""
        service = NotificationService(db_session, seeded['org_id'])
        service.mark_as_read(notifications['mine']['id'])
        later = datetime.utcnow() + timedelta(days=31)

        assert service.cleanup_old_notifications(days=30, now=later) == 1
        assert service.get_unread_count() == 2
