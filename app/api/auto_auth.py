"""
Auto Shop Authentication Routes Blueprint

- POST /api/auto/auth/login
- POST /api/auto/auth/logout
- GET  /api/auto/auth/me
- GET  /api/auto/auth/invitation/<token>
- POST /api/auto/auth/register   (invitation token)
"""

import logging
from flask import Blueprint, jsonify

import auth
from app.utils.helpers import get_json, error_response, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_auth_bp = Blueprint('auto_auth_bp', __name__)


@auto_auth_bp.route('/api/auto/auth/login', methods=['POST'])
def auto_login():
    try:
        from database.connection import get_db_session

        data = get_json()
        with get_db_session() as session:
            user, error = auth.authenticate_auto_user(session, data.get('email'), data.get('password'))
            if error:
                status = 400 if 'required' in error else 401
                return error_response(error, status)

            auth.login_auto_user(user)
            return jsonify({'success': True, 'user': user.to_dict(), 'shop': user.shop.to_dict()})

    except Exception as e:
        return handle_service_error(e, 'logging in shop user')


@auto_auth_bp.route('/api/auto/auth/logout', methods=['POST'])
def auto_logout():
    auth.logout_auto_user()
    return jsonify({'success': True})


@auto_auth_bp.route('/api/auto/auth/me', methods=['GET'])
@auth.auto_login_required
def auto_me():
    try:
        from database.connection import get_db_session
        from database.auto_models import AutoUser

        _, user_id, _ = auth.current_auto_context()
        with get_db_session() as session:
            user = session.get(AutoUser, user_id)
            if not user or not user.is_active:
                auth.logout_auto_user()
                return error_response('Not authenticated', 401)
            return jsonify({'success': True, 'user': user.to_dict(), 'shop': user.shop.to_dict()})

    except Exception as e:
        return handle_service_error(e, 'loading shop user')


@auto_auth_bp.route('/api/auto/auth/invitation/<token>', methods=['GET'])
def get_invitation(token):
    """Invitation details for the registration page"""
    try:
        from database.connection import get_db_session
        from services.shop_repository import get_invitation as lookup_invitation

        with get_db_session() as session:
            return jsonify({'success': True, **lookup_invitation(session, token)})

    except Exception as e:
        return handle_service_error(e, 'loading invitation')


@auto_auth_bp.route('/api/auto/auth/register', methods=['POST'])
def register():
    """Accept an invitation: token, firstName, lastName, password, phone"""
    try:
        from database.connection import get_db_session
        from services.shop_repository import register_from_invitation

        with get_db_session() as session:
            user = register_from_invitation(session, get_json())
            auth.login_auto_user(user)
            return jsonify({'success': True, 'user': user.to_dict()}), 201

    except Exception as e:
        return handle_service_error(e, 'registering shop user')
