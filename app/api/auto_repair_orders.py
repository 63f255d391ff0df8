"""
Auto Shop Repair Orders Routes Blueprint

- /api/auto/repair-orders                           - list, create
- /api/auto/repair-orders/<id>                      - get, patch
- /api/auto/repair-orders/<id>/recalculate
- /api/auto/repair-orders/<id>/line-items[/<line_id>], /api/auto/line-items/<line_id>
- /api/auto/repair-orders/<id>/apply-canned-service[/<service_id>]
- /api/auto/repair-orders/<id>/payments[/<payment_id>/void], /api/auto/payments/<payment_id>/void
- /api/auto/repair-orders/<id>/pdf?type=estimate|work_order|invoice
"""

import io
import logging
from flask import Blueprint, request, jsonify, send_file

from auth import auto_login_required, current_auto_context
from app.utils.helpers import get_json, error_response, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_repair_orders_bp = Blueprint('auto_repair_orders_bp', __name__)


def get_repository(session):
    from services.repair_order_repository import RepairOrderRepository
    shop_id, user_id, role = current_auto_context()
    return RepairOrderRepository(session, shop_id, user_id, role)


# ============================================================================
# REPAIR ORDERS
# ============================================================================

@auto_repair_orders_bp.route('/api/auto/repair-orders', methods=['GET', 'POST'])
@auto_login_required
def handle_repair_orders():
    """GET params: status, page, limit"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, **repo.list_repair_orders(request.args.to_dict())})

            ro = repo.create_repair_order(get_json())
            return jsonify({'success': True, 'repairOrder': ro}), 201

    except Exception as e:
        return handle_service_error(e, 'handling repair orders')


@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>', methods=['GET', 'PATCH'])
@auto_login_required
def handle_repair_order(ro_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                detail = repo.get_repair_order(ro_id)
                if not detail:
                    return not_found('Repair order')
                return jsonify({'success': True, **detail})

            ro = repo.update_repair_order(ro_id, get_json())
            if not ro:
                return not_found('Repair order')
            return jsonify({'success': True, 'repairOrder': ro})

    except Exception as e:
        return handle_service_error(e, f'handling repair order {ro_id}')


@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/recalculate', methods=['POST'])
@auto_login_required
def recalculate(ro_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'repairOrder': get_repository(session).recalculate(ro_id)})

    except Exception as e:
        return handle_service_error(e, f'recalculating repair order {ro_id}')


# ============================================================================
# LINE ITEMS
# ============================================================================

@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/line-items', methods=['POST'])
@auto_login_required
def add_line_item(ro_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            result = get_repository(session).add_line_item(ro_id, get_json())
            return jsonify({'success': True, **result}), 201

    except Exception as e:
        return handle_service_error(e, f'adding line item to repair order {ro_id}')


def _line_item_response(repo, ro_id, line_id):
    if request.method == 'DELETE':
        ro = repo.delete_line_item(ro_id, line_id)
        if ro is None:
            return not_found('Line item')
        return jsonify({'success': True, 'repairOrder': ro})

    result = repo.update_line_item(ro_id, line_id, get_json())
    if result is None:
        return not_found('Line item')
    return jsonify({'success': True, **result})


@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/line-items/<int:line_id>',
                             methods=['PATCH', 'DELETE'])
@auto_login_required
def handle_line_item(ro_id, line_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return _line_item_response(get_repository(session), ro_id, line_id)

    except Exception as e:
        return handle_service_error(e, f'handling line item {line_id}')


@auto_repair_orders_bp.route('/api/auto/line-items/<int:line_id>', methods=['PATCH', 'DELETE'])
@auto_login_required
def handle_line_item_by_id(line_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            ro_id = repo.line_item_owner(line_id)
            if ro_id is None:
                return not_found('Line item')
            return _line_item_response(repo, ro_id, line_id)

    except Exception as e:
        return handle_service_error(e, f'handling line item {line_id}')


@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/apply-canned-service', methods=['POST'])
@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/apply-canned-service/<int:service_id>',
                             methods=['POST'])
@auto_login_required
def apply_canned_service(ro_id, service_id=None):
    """Service id from the path, or body: cannedServiceId"""
    try:
        from database.connection import get_db_session

        service_id = service_id or get_json().get('cannedServiceId')
        if not service_id:
            return error_response('cannedServiceId is required', 400)
        try:
            service_id = int(service_id)
        except (TypeError, ValueError):
            return error_response('cannedServiceId must be an integer', 400)

        with get_db_session() as session:
            result = get_repository(session).apply_canned_service(ro_id, service_id)
            return jsonify({'success': True, **result})

    except Exception as e:
        return handle_service_error(e, f'applying canned service to repair order {ro_id}')


# ============================================================================
# PAYMENTS
# ============================================================================

@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/payments', methods=['GET', 'POST'])
@auto_login_required
def handle_payments(ro_id):
    """POST body: amount, method, referenceNumber, tipAmount, notes"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, **repo.list_payments(ro_id)})

            return jsonify({'success': True, **repo.record_payment(ro_id, get_json())}), 201

    except Exception as e:
        return handle_service_error(e, f'handling payments for repair order {ro_id}')


@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/payments/<int:payment_id>/void',
                             methods=['POST'])
@auto_login_required
def void_payment(ro_id, payment_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, **get_repository(session).void_payment(ro_id, payment_id)})

    except Exception as e:
        return handle_service_error(e, f'voiding payment {payment_id}')


@auto_repair_orders_bp.route('/api/auto/payments/<int:payment_id>/void', methods=['POST'])
@auto_login_required
def void_payment_by_id(payment_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            ro_id = repo.payment_owner(payment_id)
            if ro_id is None:
                return not_found('Payment')
            return jsonify({'success': True, **repo.void_payment(ro_id, payment_id)})

    except Exception as e:
        return handle_service_error(e, f'voiding payment {payment_id}')


# ============================================================================
# PDF EXPORT
# ============================================================================

@auto_repair_orders_bp.route('/api/auto/repair-orders/<int:ro_id>/pdf', methods=['GET'])
@auto_login_required
def export_pdf(ro_id):
    try:
        from database.connection import get_db_session
        from services.pdf_service import render_repair_order_pdf
        from services.repair_order_repository import PDF_TYPES

        pdf_type = request.args.get('type', 'estimate')
        if pdf_type not in PDF_TYPES:
            return error_response(f"type must be one of: {', '.join(PDF_TYPES)}", 400)

        with get_db_session() as session:
            ctx = get_repository(session).document_context(ro_id)
            if not ctx:
                return not_found('Repair order')
            pdf_bytes = render_repair_order_pdf(ctx, pdf_type)
            filename = f"{ctx['repair_order'].ro_number}-{pdf_type}.pdf"

        return send_file(
            io.BytesIO(pdf_bytes),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=filename
        )

    except Exception as e:
        return handle_service_error(e, f'exporting PDF for repair order {ro_id}')
