"""
Authentication Routes Blueprint

Pipeline user login/logout and the current-user endpoint:
- POST /api/auth/login
- POST /api/auth/logout
- GET  /api/auth/me
"""

import logging
from flask import Blueprint, jsonify

from app.utils.helpers import get_json, error_response, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth_bp', __name__)


def get_auth():
    """Get auth module - imported lazily to avoid circular imports"""
    import auth
    return auth


# ============================================================================
# LOGIN/LOGOUT ROUTES
# ============================================================================

@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """Log in with a username or email and a password"""
    auth = get_auth()
    try:
        from database.connection import get_db_session

        data = get_json()
        identifier = data.get('username') or data.get('email')

        with get_db_session() as session:
            user, error = auth.authenticate_user(session, identifier, data.get('password'))
            if error:
                status = 400 if 'required' in error else 401
                return error_response(error, status)

            auth.login_user(user)
            return jsonify({'success': True, 'user': user.to_dict()})

    except Exception as e:
        return handle_service_error(e, 'logging in')


@auth_bp.route('/api/auth/logout', methods=['POST'])
def api_logout():
    auth = get_auth()
    auth.logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/me', methods=['GET'])
def get_current_user_api():
    """Get current logged-in user info"""
    auth = get_auth()
    if not auth.is_authenticated():
        return error_response('Not authenticated', 401)

    try:
        from database.connection import get_db_session
        from database.models import User

        _, user_id, _ = auth.current_user_context()
        with get_db_session() as session:
            user = session.query(User).filter(User.id == user_id).first()
            if not user or not user.is_active:
                auth.logout_user()
                return error_response('Not authenticated', 401)
            return jsonify({'success': True, 'user': user.to_dict()})

    except Exception as e:
        return handle_service_error(e, 'loading current user')
