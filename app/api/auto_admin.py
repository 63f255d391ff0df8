"""
Auto Shop Platform Administration Blueprint

Creating and inspecting shops. Requires a pipeline master admin session
or the ``X-Admin-Key`` header.
- GET/POST /api/auto/admin/shops
- GET      /api/auto/admin/shops/<shop_id>
"""

import logging
from flask import Blueprint, request, jsonify

from auth import admin_key_or_master_required
from app.utils.helpers import get_json, not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_admin_bp = Blueprint('auto_admin_bp', __name__)


@auto_admin_bp.route('/api/auto/admin/shops', methods=['GET', 'POST'])
@admin_key_or_master_required
def handle_shops():
    """List shops, or create a shop with its owner, bays and inspection template"""
    try:
        from database.connection import get_db_session
        from services.shop_repository import create_shop, list_shops

        with get_db_session() as session:
            if request.method == 'GET':
                return jsonify({'success': True, 'shops': list_shops(session)})

            result = create_shop(session, get_json())
            return jsonify({'success': True, **result}), 201

    except Exception as e:
        return handle_service_error(e, 'handling shops')


@auto_admin_bp.route('/api/auto/admin/shops/<int:shop_id>', methods=['GET'])
@admin_key_or_master_required
def get_shop(shop_id):
    try:
        from database.connection import get_db_session
        from services.shop_repository import get_shop_detail

        with get_db_session() as session:
            detail = get_shop_detail(session, shop_id)
            if not detail:
                return not_found('Shop')
            return jsonify({'success': True, **detail})

    except Exception as e:
        return handle_service_error(e, f'loading shop {shop_id}')
