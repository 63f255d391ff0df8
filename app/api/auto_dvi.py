"""
Auto Shop Digital Vehicle Inspection Routes

- GET       /api/auto/dvi/templates
- GET/POST  /api/auto/dvi/inspections
- GET       /api/auto/dvi/inspections/<id>
- PATCH     /api/auto/dvi/items/<item_id>
- POST      /api/auto/dvi/inspections/<id>/complete
- POST      /api/auto/dvi/inspections/<id>/send
- GET       /api/auto/dvi/inspections/<id>/pdf
"""

import io
import logging
from flask import Blueprint, request, jsonify, send_file

from auth import auto_login_required, current_auto_context
from app.utils.helpers import get_json, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_dvi_bp = Blueprint('auto_dvi_bp', __name__)


def get_repository(session):
    from services.dvi_repository import DviRepository
    shop_id, user_id, _ = current_auto_context()
    return DviRepository(session, shop_id, user_id)


@auto_dvi_bp.route('/api/auto/dvi/templates', methods=['GET'])
@auto_login_required
def list_templates():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'templates': get_repository(session).list_templates()})

    except Exception as e:
        return handle_service_error(e, 'listing inspection templates')


@auto_dvi_bp.route('/api/auto/dvi/inspections', methods=['GET', 'POST'])
@auto_login_required
def handle_inspections():
    """POST body: repairOrderId, templateId, vehicleMileage, notes"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'inspections': repo.list_inspections()})

            inspection = repo.create_inspection(get_json())
            return jsonify({'success': True, 'inspection': inspection}), 201

    except Exception as e:
        return handle_service_error(e, 'handling inspections')


@auto_dvi_bp.route('/api/auto/dvi/inspections/<int:inspection_id>', methods=['GET'])
@auto_login_required
def get_inspection(inspection_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            detail = get_repository(session).get_inspection(inspection_id)
            if not detail:
                return not_found('Inspection')
            return jsonify({'success': True, **detail})

    except Exception as e:
        return handle_service_error(e, f'loading inspection {inspection_id}')


@auto_dvi_bp.route('/api/auto/dvi/items/<int:item_id>', methods=['PATCH'])
@auto_login_required
def update_item(item_id):
    """Body: condition, notes, photoUrls"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            item = get_repository(session).update_item(item_id, get_json())
            if not item:
                return not_found('Inspection item')
            return jsonify({'success': True, 'item': item})

    except Exception as e:
        return handle_service_error(e, f'updating inspection item {item_id}')


@auto_dvi_bp.route('/api/auto/dvi/inspections/<int:inspection_id>/complete', methods=['POST'])
@auto_login_required
def complete_inspection(inspection_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            inspection = get_repository(session).complete(inspection_id)
            if not inspection:
                return not_found('Inspection')
            return jsonify({'success': True, 'inspection': inspection})

    except Exception as e:
        return handle_service_error(e, f'completing inspection {inspection_id}')


@auto_dvi_bp.route('/api/auto/dvi/inspections/<int:inspection_id>/send', methods=['POST'])
@auto_login_required
def send_inspection(inspection_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            inspection = get_repository(session).send(inspection_id)
            if not inspection:
                return not_found('Inspection')
            return jsonify({'success': True, 'inspection': inspection})

    except Exception as e:
        return handle_service_error(e, f'sending inspection {inspection_id}')


@auto_dvi_bp.route('/api/auto/dvi/inspections/<int:inspection_id>/pdf', methods=['GET'])
@auto_login_required
def export_pdf(inspection_id):
    try:
        from database.connection import get_db_session
        from services.pdf_service import render_inspection_pdf

        with get_db_session() as session:
            ctx = get_repository(session).report_context(inspection_id)
            if not ctx:
                return not_found('Inspection')
            pdf_bytes = render_inspection_pdf(ctx)

        return send_file(
            io.BytesIO(pdf_bytes),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=f"inspection-{inspection_id}.pdf"
        )

    except Exception as e:
        return handle_service_error(e, f'exporting PDF for inspection {inspection_id}')
