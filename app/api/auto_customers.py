"""
Auto Shop Customers Routes Blueprint

- /api/auto/customers, /api/auto/customers/<id>
- /api/auto/vehicles, /api/auto/vehicles/<id>, /api/auto/vehicles/vin-decode/<vin> (alias decode-vin)
- /api/auto/communication/log, /api/auto/communication/customer/<id>
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from auth import auto_login_required, current_auto_context
from app.utils.helpers import get_json, error_response, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_customers_bp = Blueprint('auto_customers_bp', __name__)


def get_repository(session):
    from services.customer_repository import CustomerRepository
    shop_id, user_id, _ = current_auto_context()
    return CustomerRepository(session, shop_id, user_id)


# ============================================================================
# CUSTOMERS
# ============================================================================

@auto_customers_bp.route('/api/auto/customers', methods=['GET', 'POST'])
@auto_login_required
def handle_customers():
    """GET params: search, page, limit"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, **repo.list_customers(request.args.to_dict())})

            return jsonify({'success': True, 'customer': repo.create_customer(get_json())}), 201

    except Exception as e:
        return handle_service_error(e, 'handling customers')


@auto_customers_bp.route('/api/auto/customers/<int:customer_id>', methods=['GET', 'PATCH'])
@auto_login_required
def handle_customer(customer_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                detail = repo.get_customer(customer_id)
                if not detail:
                    return not_found('Customer')
                return jsonify({'success': True, **detail})

            customer = repo.update_customer(customer_id, get_json())
            if not customer:
                return not_found('Customer')
            return jsonify({'success': True, 'customer': customer})

    except Exception as e:
        return handle_service_error(e, f'handling customer {customer_id}')


# ============================================================================
# VEHICLES
# ============================================================================

@auto_customers_bp.route('/api/auto/vehicles', methods=['GET', 'POST'])
@auto_login_required
def handle_vehicles():
    """GET param: customerId"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                vehicles = repo.list_vehicles(request.args.get('customerId', type=int))
                return jsonify({'success': True, 'vehicles': vehicles})

            return jsonify({'success': True, 'vehicle': repo.create_vehicle(get_json())}), 201

    except Exception as e:
        return handle_service_error(e, 'handling vehicles')


@auto_customers_bp.route('/api/auto/vehicles/<int:vehicle_id>', methods=['PATCH'])
@auto_login_required
def update_vehicle(vehicle_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            vehicle = get_repository(session).update_vehicle(vehicle_id, get_json())
            if not vehicle:
                return not_found('Vehicle')
            return jsonify({'success': True, 'vehicle': vehicle})

    except Exception as e:
        return handle_service_error(e, f'updating vehicle {vehicle_id}')


@auto_customers_bp.route('/api/auto/vehicles/decode-vin/<vin>', methods=['GET'])
@auto_customers_bp.route('/api/auto/vehicles/vin-decode/<vin>', methods=['GET'])
@auto_login_required
def decode_vin(vin):
    """Year, make, model, trim and drivetrain details from NHTSA vPIC"""
    from services.vin_decoder import decode_vin as vpic_decode, VinDecodeError

    try:
        decoded = vpic_decode(vin, current_app.config.get('NHTSA_VIN_URL'))
        return jsonify({'success': True, 'vehicle': decoded})

    except VinDecodeError as e:
        return error_response(str(e), 502)
    except Exception as e:
        return handle_service_error(e, f'decoding VIN {vin}')


# ============================================================================
# COMMUNICATION LOG
# ============================================================================

@auto_customers_bp.route('/api/auto/communication/log', methods=['POST'])
@auto_login_required
def log_communication():
    """Body: customerId, channel (sms, email, phone), body, subject, repairOrderId, ..."""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            entry = get_repository(session).log_communication(get_json())
            return jsonify({'success': True, 'communication': entry}), 201

    except Exception as e:
        return handle_service_error(e, 'logging communication')


@auto_customers_bp.route('/api/auto/communication/customer/<int:customer_id>', methods=['GET'])
@auto_login_required
def communication_history(customer_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            history = get_repository(session).communication_history(customer_id)
            return jsonify({'success': True, 'communications': history})

    except Exception as e:
        return handle_service_error(e, f'loading communications for customer {customer_id}')
