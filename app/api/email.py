"""
Email Assistant Routes Blueprint

- POST /api/email/polish   - tidy up an agent's draft
- POST /api/email/generate - write an email from a purpose and key points
"""

import logging
from flask import Blueprint, jsonify, current_app

from auth import login_required
from app.utils.helpers import get_json, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
email_bp = Blueprint('email_bp', __name__)


def get_deal_ai():
    from services.deal_ai_service import DealAIService
    return DealAIService(current_app.ai_service)


@email_bp.route('/api/email/polish', methods=['POST'])
@login_required
def polish_email():
    """Body: draft (required), tone, context"""
    try:
        data = get_json()
        polished = get_deal_ai().polish_email(data.get('draft'), data.get('tone'), data.get('context'))
        return jsonify({'success': True, 'polishedEmail': polished})

    except Exception as e:
        return handle_service_error(e, 'polishing email')


@email_bp.route('/api/email/generate', methods=['POST'])
@login_required
def generate_email():
    """Body: businessName and purpose (required), contactName, keyPoints, tone, businessType, agentNotes"""
    try:
        email = get_deal_ai().generate_email(get_json())
        return jsonify({'success': True, 'email': email})

    except Exception as e:
        return handle_service_error(e, 'generating email')
