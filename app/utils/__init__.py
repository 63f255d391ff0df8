"""
Utilities Package

Shared helper functions used across the route blueprints.
"""

from app.utils.helpers import (
    get_json,
    error_response,
    not_found,
    handle_service_error,
)

__all__ = [
    'get_json',
    'error_response',
    'not_found',
    'handle_service_error',
]
