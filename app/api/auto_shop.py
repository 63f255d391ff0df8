"""
Auto Shop Configuration Routes Blueprint

Settings, integrations, staff, bays, appointments, canned services and the
dashboard for the logged in user's shop:
- /api/auto/shop/settings
- /api/auto/integrations (also under /api/auto/shop)
- /api/auto/staff, /api/auto/staff/invite, /api/auto/staff/<id> (also under /api/auto/shop)
- /api/auto/bays, /api/auto/bays/<id>
- /api/auto/appointments, /api/auto/appointments/<id>
- /api/auto/canned-services, /api/auto/canned-services/<id>
- /api/auto/dashboard/stats, /api/auto/dashboard/activity
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from auth import auto_login_required, auto_role_required, current_auto_context, AUTO_MANAGER_ROLES
from app.utils.helpers import get_json, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_shop_bp = Blueprint('auto_shop_bp', __name__)


def get_repository(session):
    from services.shop_repository import ShopRepository
    shop_id, user_id, role = current_auto_context()
    return ShopRepository(session, shop_id, user_id, role)


# ============================================================================
# SETTINGS & INTEGRATIONS
# ============================================================================

@auto_shop_bp.route('/api/auto/shop/settings', methods=['GET'])
@auto_login_required
def get_settings():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'shop': get_repository(session).get_settings()})

    except Exception as e:
        return handle_service_error(e, 'loading shop settings')


@auto_shop_bp.route('/api/auto/shop/settings', methods=['PATCH', 'PUT'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def update_settings():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            shop = get_repository(session).update_settings(get_json())
            return jsonify({'success': True, 'shop': shop})

    except Exception as e:
        return handle_service_error(e, 'updating shop settings')


@auto_shop_bp.route('/api/auto/integrations', methods=['GET', 'PATCH'])
@auto_shop_bp.route('/api/auto/shop/integrations', methods=['GET', 'PATCH'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def handle_integrations():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'integrations': repo.get_integrations()})
            return jsonify({'success': True, 'integrations': repo.update_integrations(get_json())})

    except Exception as e:
        return handle_service_error(e, 'handling integrations')


# ============================================================================
# STAFF
# ============================================================================

@auto_shop_bp.route('/api/auto/staff', methods=['GET'])
@auto_shop_bp.route('/api/auto/shop/staff', methods=['GET'])
@auto_login_required
def list_staff():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, **get_repository(session).list_staff()})

    except Exception as e:
        return handle_service_error(e, 'listing staff')


@auto_shop_bp.route('/api/auto/staff/invite', methods=['POST'])
@auto_shop_bp.route('/api/auto/shop/staff/invite', methods=['POST'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def invite_staff():
    """Body: email, role. Only owners may invite managers."""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            result = get_repository(session).invite_staff(
                get_json(), expiry_days=current_app.config.get('INVITATION_EXPIRY_DAYS', 7)
            )
            return jsonify({'success': True, **result}), 201

    except Exception as e:
        return handle_service_error(e, 'inviting staff')


@auto_shop_bp.route('/api/auto/staff/<int:staff_id>', methods=['PATCH'])
@auto_shop_bp.route('/api/auto/shop/staff/<int:staff_id>', methods=['PATCH'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def update_staff(staff_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            user = get_repository(session).update_staff(staff_id, get_json())
            if not user:
                return not_found('User')
            return jsonify({'success': True, 'user': user})

    except Exception as e:
        return handle_service_error(e, f'updating staff {staff_id}')


# ============================================================================
# BAYS
# ============================================================================

@auto_shop_bp.route('/api/auto/bays', methods=['GET'])
@auto_login_required
def list_bays():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'bays': get_repository(session).list_bays()})

    except Exception as e:
        return handle_service_error(e, 'listing bays')


@auto_shop_bp.route('/api/auto/bays', methods=['POST'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def create_bay():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'bay': get_repository(session).create_bay(get_json())}), 201

    except Exception as e:
        return handle_service_error(e, 'creating bay')


@auto_shop_bp.route('/api/auto/bays/<int:bay_id>', methods=['PATCH', 'DELETE'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def handle_bay(bay_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'DELETE':
                if not repo.delete_bay(bay_id):
                    return not_found('Bay')
                return jsonify({'success': True})

            bay = repo.update_bay(bay_id, get_json())
            if not bay:
                return not_found('Bay')
            return jsonify({'success': True, 'bay': bay})

    except Exception as e:
        return handle_service_error(e, f'handling bay {bay_id}')


# ============================================================================
# APPOINTMENTS
# ============================================================================

@auto_shop_bp.route('/api/auto/appointments', methods=['GET', 'POST'])
@auto_login_required
def handle_appointments():
    """GET filters: start, end, bayId, technicianId"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'appointments': repo.list_appointments(request.args.to_dict())})

            appointment = repo.create_appointment(get_json())
            return jsonify({'success': True, 'appointment': appointment}), 201

    except Exception as e:
        return handle_service_error(e, 'handling appointments')


@auto_shop_bp.route('/api/auto/appointments/<int:appointment_id>', methods=['PATCH', 'DELETE'])
@auto_login_required
def handle_appointment(appointment_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'DELETE':
                if not repo.delete_appointment(appointment_id):
                    return not_found('Appointment')
                return jsonify({'success': True})

            appointment = repo.update_appointment(appointment_id, get_json())
            if not appointment:
                return not_found('Appointment')
            return jsonify({'success': True, 'appointment': appointment})

    except Exception as e:
        return handle_service_error(e, f'handling appointment {appointment_id}')


# ============================================================================
# CANNED SERVICES
# ============================================================================

@auto_shop_bp.route('/api/auto/canned-services', methods=['GET'])
@auto_login_required
def list_canned_services():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'cannedServices': get_repository(session).list_canned_services()})

    except Exception as e:
        return handle_service_error(e, 'listing canned services')


@auto_shop_bp.route('/api/auto/canned-services', methods=['POST'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def create_canned_service():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            service = get_repository(session).create_canned_service(get_json())
            return jsonify({'success': True, 'cannedService': service}), 201

    except Exception as e:
        return handle_service_error(e, 'creating canned service')


@auto_shop_bp.route('/api/auto/canned-services/<int:service_id>', methods=['PATCH', 'DELETE'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def handle_canned_service(service_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'DELETE':
                if not repo.delete_canned_service(service_id):
                    return not_found('Canned service')
                return jsonify({'success': True})

            service = repo.update_canned_service(service_id, get_json())
            if not service:
                return not_found('Canned service')
            return jsonify({'success': True, 'cannedService': service})

    except Exception as e:
        return handle_service_error(e, f'handling canned service {service_id}')


# ============================================================================
# DASHBOARD
# ============================================================================

@auto_shop_bp.route('/api/auto/dashboard/stats', methods=['GET'])
@auto_login_required
def dashboard_stats():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'stats': get_repository(session).dashboard_stats()})

    except Exception as e:
        return handle_service_error(e, 'loading dashboard stats')


@auto_shop_bp.route('/api/auto/dashboard/activity', methods=['GET'])
@auto_login_required
def recent_activity():
    """Latest activity log entries; ``limit`` defaults to 20"""
    try:
        from database.connection import get_db_session
        from services.event_logger import ShopActivityLogger

        shop_id, user_id, _ = current_auto_context()
        limit = min(request.args.get('limit', 20, type=int) or 20, 100)
        with get_db_session() as session:
            activity = ShopActivityLogger(session, shop_id, user_id).recent(limit)
            return jsonify({'success': True, 'activity': activity})

    except Exception as e:
        return handle_service_error(e, 'loading activity')
