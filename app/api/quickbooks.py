"""
QuickBooks Online Sync Blueprint (owners and managers)

- GET   /api/auto/quickbooks/connect         - OAuth2 authorization URL
- GET   /api/auto/quickbooks/callback        - OAuth2 redirect target
- GET   /api/auto/quickbooks/sync-log        - param: status, limit
- GET   /api/auto/quickbooks/summary
- GET/PATCH /api/auto/quickbooks/mappings
- POST  /api/auto/quickbooks/sync-log/<id>/retry
- POST  /api/auto/quickbooks/push            - push everything that is due
"""

import logging
import secrets
from flask import Blueprint, request, jsonify, current_app, session as flask_session

from auth import auto_role_required, current_auto_context, AUTO_MANAGER_ROLES
from app.utils.helpers import get_json, error_response, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
quickbooks_bp = Blueprint('quickbooks_bp', __name__)

OAUTH_STATE_KEY = 'qbo_oauth_state'


def get_service(session):
    from services.qbo_sync import QboSyncService
    shop_id, _, _ = current_auto_context()
    return QboSyncService(session, shop_id, current_app.config)


# ============================================================================
# CONNECTION
# ============================================================================

@quickbooks_bp.route('/api/auto/quickbooks/connect', methods=['GET'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def connect():
    from services.qbo_sync import authorization_url

    if not current_app.config.get('QBO_CLIENT_ID'):
        return error_response('QuickBooks is not configured', 503)

    state = secrets.token_urlsafe(24)
    flask_session[OAUTH_STATE_KEY] = state
    return jsonify({'success': True, 'authorizationUrl': authorization_url(current_app.config, state)})


@quickbooks_bp.route('/api/auto/quickbooks/callback', methods=['GET'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def callback():
    expected = flask_session.pop(OAUTH_STATE_KEY, None)
    if not expected or request.args.get('state') != expected:
        return error_response('Invalid OAuth state', 400)

    realm_id = request.args.get('realmId')
    if not realm_id:
        return error_response('realmId is required', 400)

    try:
        from database.connection import get_db_session
        from services.qbo_sync import complete_authorization

        shop_id, _, _ = current_auto_context()
        with get_db_session() as session:
            integration = complete_authorization(session, current_app.config, shop_id, request.url, realm_id)
            return jsonify({'success': True, 'integration': integration})

    except Exception as e:
        return handle_service_error(e, 'completing QuickBooks authorization')


# ============================================================================
# SYNC LOG
# ============================================================================

@quickbooks_bp.route('/api/auto/quickbooks/sync-log', methods=['GET'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def sync_log():
    try:
        from database.connection import get_db_session

        status = request.args.get('status')
        limit = min(request.args.get('limit', 100, type=int) or 100, 500)
        with get_db_session() as session:
            return jsonify({'success': True, 'logs': get_service(session).list_log(status, limit)})

    except Exception as e:
        return handle_service_error(e, 'loading sync log')


@quickbooks_bp.route('/api/auto/quickbooks/summary', methods=['GET'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def sync_summary():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'summary': get_service(session).summary()})

    except Exception as e:
        return handle_service_error(e, 'loading sync summary')


@quickbooks_bp.route('/api/auto/quickbooks/mappings', methods=['GET', 'PATCH'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def handle_mappings():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            service = get_service(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'mappings': service.get_mappings()})
            return jsonify({'success': True, 'mappings': service.update_mappings(get_json())})

    except Exception as e:
        return handle_service_error(e, 'handling account mappings')


@quickbooks_bp.route('/api/auto/quickbooks/sync-log/<int:log_id>/retry', methods=['POST'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def retry_sync(log_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            entry = get_service(session).retry(log_id)
            if not entry:
                return not_found('Sync log entry')
            return jsonify({'success': True, 'log': entry})

    except Exception as e:
        return handle_service_error(e, f'retrying sync {log_id}')


@quickbooks_bp.route('/api/auto/quickbooks/push', methods=['POST'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def push_pending():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, **get_service(session).push_pending()})

    except Exception as e:
        return handle_service_error(e, 'pushing pending syncs')
