"""
Technician Clock Sessions Blueprint

- POST /api/auto/tech-sessions/clock-in        - body: repairOrderId, serviceLineId
- POST /api/auto/tech-sessions/<id>/clock-out  - body: notes
- GET  /api/auto/tech-sessions/active
- GET  /api/auto/tech-sessions/history         - param: techId (managers)
"""

import logging
from flask import Blueprint, request, jsonify

from auth import auto_login_required, current_auto_context, AUTO_MANAGER_ROLES
from app.utils.helpers import get_json, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
tech_sessions_bp = Blueprint('tech_sessions_bp', __name__)


def get_service(session):
    from services.tech_sessions import TechSessionService
    shop_id, user_id, role = current_auto_context()
    return TechSessionService(session, shop_id, user_id, role)


@tech_sessions_bp.route('/api/auto/tech-sessions/clock-in', methods=['POST'])
@auto_login_required
def clock_in():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            tech_session = get_service(session).clock_in(get_json())
            return jsonify({'success': True, 'session': tech_session}), 201

    except Exception as e:
        return handle_service_error(e, 'clocking in')


@tech_sessions_bp.route('/api/auto/tech-sessions/<int:session_id>/clock-out', methods=['POST'])
@auto_login_required
def clock_out(session_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            tech_session = get_service(session).clock_out(session_id, get_json().get('notes'))
            if not tech_session:
                return not_found('Session')
            return jsonify({'success': True, 'session': tech_session})

    except Exception as e:
        return handle_service_error(e, f'clocking out session {session_id}')


@tech_sessions_bp.route('/api/auto/tech-sessions/active', methods=['GET'])
@auto_login_required
def active_sessions():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'sessions': get_service(session).active_sessions()})

    except Exception as e:
        return handle_service_error(e, 'listing active sessions')


@tech_sessions_bp.route('/api/auto/tech-sessions/history', methods=['GET'])
@auto_login_required
def session_history():
    try:
        from database.connection import get_db_session

        _, user_id, role = current_auto_context()
        tech_id = request.args.get('techId', type=int) if role in AUTO_MANAGER_ROLES else None
        with get_db_session() as session:
            return jsonify({'success': True, 'sessions': get_service(session).history(tech_id or user_id)})

    except Exception as e:
        return handle_service_error(e, 'loading session history')
