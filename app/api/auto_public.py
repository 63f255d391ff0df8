"""
Auto Shop Public Routes Blueprint

Customer-facing links. No login; the token in the URL is the credential.
- GET  /api/auto/public/estimate/<token>
- GET  /api/auto/public/estimate/<token>/lines
- GET  /api/auto/public/estimate/<token>/pdf
- POST /api/auto/public/estimate/<token>/approve
- POST /api/auto/public/estimate/<token>/decline
- POST /api/auto/public/estimate/<token>/question
- POST /api/auto/public/estimate/<token>/line-approval
- GET  /api/auto/public/pay/<token>
- GET  /api/auto/public/dvi/<token> (also /api/auto/dvi/public/<token>)
- GET  /api/auto/dvi/public/<token>/pdf
"""

import io
import logging
from flask import Blueprint, jsonify, send_file

from app.utils.helpers import get_json, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_public_bp = Blueprint('auto_public_bp', __name__)


# ============================================================================
# ESTIMATE APPROVAL
# ============================================================================

@auto_public_bp.route('/api/auto/public/estimate/<token>', methods=['GET'])
def get_estimate(token):
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import get_public_estimate

        with get_db_session() as session:
            return jsonify({'success': True, **get_public_estimate(session, token)})

    except Exception as e:
        return handle_service_error(e, 'loading public estimate')


@auto_public_bp.route('/api/auto/public/estimate/<token>/lines', methods=['GET'])
def get_estimate_lines(token):
    """Pending and approved lines only"""
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import get_public_lines

        with get_db_session() as session:
            return jsonify({'success': True, 'lineItems': get_public_lines(session, token)})

    except Exception as e:
        return handle_service_error(e, 'loading estimate lines')


@auto_public_bp.route('/api/auto/public/estimate/<token>/pdf', methods=['GET'])
def estimate_pdf(token):
    try:
        from database.connection import get_db_session
        from services.pdf_service import render_repair_order_pdf
        from services.repair_order_repository import public_estimate_document

        with get_db_session() as session:
            ctx = public_estimate_document(session, token)
            pdf_bytes = render_repair_order_pdf(ctx, 'estimate')
            filename = f"{ctx['repair_order'].ro_number}-estimate.pdf"

        return send_file(
            io.BytesIO(pdf_bytes),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=filename
        )

    except Exception as e:
        return handle_service_error(e, 'exporting public estimate PDF')


@auto_public_bp.route('/api/auto/public/estimate/<token>/approve', methods=['POST'])
def approve(token):
    """Body: customerName, approvedItemIds"""
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import approve_estimate

        with get_db_session() as session:
            return jsonify(approve_estimate(session, token, get_json()))

    except Exception as e:
        return handle_service_error(e, 'approving estimate')


@auto_public_bp.route('/api/auto/public/estimate/<token>/decline', methods=['POST'])
def decline(token):
    """Body: reason"""
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import decline_estimate

        with get_db_session() as session:
            return jsonify(decline_estimate(session, token, get_json()))

    except Exception as e:
        return handle_service_error(e, 'declining estimate')


@auto_public_bp.route('/api/auto/public/estimate/<token>/question', methods=['POST'])
def question(token):
    """Body: question"""
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import ask_question

        with get_db_session() as session:
            return jsonify(ask_question(session, token, get_json()))

    except Exception as e:
        return handle_service_error(e, 'submitting estimate question')


@auto_public_bp.route('/api/auto/public/estimate/<token>/line-approval', methods=['POST'])
def line_approval(token):
    """Body: lineItems [{id, approved, declinedReason}], customerName"""
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import apply_line_approvals

        with get_db_session() as session:
            return jsonify(apply_line_approvals(session, token, get_json()))

    except Exception as e:
        return handle_service_error(e, 'applying line approvals')


# ============================================================================
# PAYMENT & INSPECTION LINKS
# ============================================================================

@auto_public_bp.route('/api/auto/public/pay/<token>', methods=['GET'])
def get_payment(token):
    try:
        from database.connection import get_db_session
        from services.repair_order_repository import get_public_payment

        with get_db_session() as session:
            return jsonify({'success': True, **get_public_payment(session, token)})

    except Exception as e:
        return handle_service_error(e, 'loading payment link')


@auto_public_bp.route('/api/auto/public/dvi/<token>', methods=['GET'])
@auto_public_bp.route('/api/auto/dvi/public/<token>', methods=['GET'])
def get_inspection(token):
    """Inspection report; the first view is recorded"""
    try:
        from database.connection import get_db_session
        from services.dvi_repository import get_public_inspection

        with get_db_session() as session:
            report = get_public_inspection(session, token)
            if not report:
                return not_found('Inspection')
            return jsonify({'success': True, **report})

    except Exception as e:
        return handle_service_error(e, 'loading public inspection')


@auto_public_bp.route('/api/auto/dvi/public/<token>/pdf', methods=['GET'])
def inspection_pdf(token):
    try:
        from database.connection import get_db_session
        from services.dvi_repository import public_report_context
        from services.pdf_service import render_inspection_pdf

        with get_db_session() as session:
            ctx = public_report_context(session, token)
            if not ctx:
                return not_found('Inspection')
            pdf_bytes = render_inspection_pdf(ctx)
            filename = f"inspection-{ctx['inspection'].id}.pdf"

        return send_file(
            io.BytesIO(pdf_bytes),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=filename
        )

    except Exception as e:
        return handle_service_error(e, 'exporting public inspection PDF')
