"""
Notifications Blueprint (pipeline users)

- GET    /api/notifications                 - param: unreadOnly, limit
- GET    /api/notifications/unread-count
- POST   /api/notifications/<id>/read
- POST   /api/notifications/read-all
- DELETE /api/notifications/<id>
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, current_user_context
from app.utils.helpers import not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
notifications_bp = Blueprint('notifications_bp', __name__)


def get_service(session):
    from services.notification_service import NotificationService
    org_id, _, _ = current_user_context()
    return NotificationService(session, org_id)


@notifications_bp.route('/api/notifications', methods=['GET'])
@login_required
def list_notifications():
    try:
        from database.connection import get_db_session

        _, user_id, _ = current_user_context()
        unread_only = request.args.get('unreadOnly', 'false').lower() == 'true'
        limit = min(request.args.get('limit', 50, type=int) or 50, 200)
        with get_db_session() as session:
            service = get_service(session)
            return jsonify({
                'success': True,
                'notifications': service.get_notifications(user_id, unread_only, limit),
                'unreadCount': service.get_unread_count(user_id)
            })

    except Exception as e:
        return handle_service_error(e, 'listing notifications')


@notifications_bp.route('/api/notifications/unread-count', methods=['GET'])
@login_required
def unread_count():
    try:
        from database.connection import get_db_session

        _, user_id, _ = current_user_context()
        with get_db_session() as session:
            return jsonify({'success': True, 'count': get_service(session).get_unread_count(user_id)})

    except Exception as e:
        return handle_service_error(e, 'counting notifications')


@notifications_bp.route('/api/notifications/<notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    try:
        from database.connection import get_db_session

        _, user_id, _ = current_user_context()
        with get_db_session() as session:
            notification = get_service(session).mark_as_read(notification_id, user_id)
            if not notification:
                return not_found('Notification')
            return jsonify({'success': True, 'notification': notification})

    except Exception as e:
        return handle_service_error(e, f'marking notification {notification_id} read')


@notifications_bp.route('/api/notifications/read-all', methods=['POST'])
@login_required
def mark_all_read():
    try:
        from database.connection import get_db_session

        _, user_id, _ = current_user_context()
        with get_db_session() as session:
            return jsonify({'success': True, 'updated': get_service(session).mark_all_as_read(user_id)})

    except Exception as e:
        return handle_service_error(e, 'marking notifications read')


@notifications_bp.route('/api/notifications/<notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    try:
        from database.connection import get_db_session

        _, user_id, _ = current_user_context()
        with get_db_session() as session:
            if not get_service(session).delete_notification(notification_id, user_id):
                return not_found('Notification')
            return jsonify({'success': True})

    except Exception as e:
        return handle_service_error(e, f'deleting notification {notification_id}')
