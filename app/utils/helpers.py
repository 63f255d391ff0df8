"""
Helper functions shared by the API blueprints.
"""

import logging

from flask import jsonify, request

from ai_service import AIServiceUnavailable, AIServiceError
from validators import ValidationError, PermissionDenied

logger = logging.getLogger(__name__)


def get_json():
    """Request body as a dict; an empty or non-JSON body yields ``{}``."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(message, status_code, **extra):
    payload = {'success': False, 'error': message}
    payload.update(extra)
    return jsonify(payload), status_code


def not_found(entity):
    return error_response(f'{entity} not found', 404)


def handle_service_error(e, action):
    """
    Map a service exception to a JSON error response.

    ValidationError -> 400, PermissionDenied -> 403, LookupError -> 404,
    AI not configured -> 503, AI failure -> 502, anything else -> 500.
    """
    if isinstance(e, ValidationError):
        extra = {'field': e.field} if e.field else {}
        return error_response(e.message, 400, **extra)
    if isinstance(e, PermissionDenied):
        return error_response(e.message, 403)
    if isinstance(e, LookupError) and not isinstance(e, (KeyError, IndexError)):
        return error_response(str(e), 404)
    if isinstance(e, AIServiceUnavailable):
        return error_response(str(e), 503)
    if isinstance(e, AIServiceError):
        logger.error(f"AI error {action}: {e}")
        return error_response(str(e), 502)

    logger.error(f"Error {action}: {e}")
    return error_response(str(e), 500)
