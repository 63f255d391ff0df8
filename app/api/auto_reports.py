"""
Auto Shop Reports Blueprint (owners and managers)

All reports accept ``startDate`` and ``endDate`` (YYYY-MM-DD); without both
the range is month to date.
- GET /api/auto/reports/job-profitability
- GET /api/auto/reports/sales-tax
- GET /api/auto/reports/tech-productivity
- GET /api/auto/reports/approval-conversion
"""

import logging
from flask import Blueprint, request, jsonify

from auth import auto_role_required, current_auto_context, AUTO_MANAGER_ROLES
from app.utils.helpers import not_found, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
auto_reports_bp = Blueprint('auto_reports_bp', __name__)

REPORTS = {
    'job-profitability': 'job_profitability',
    'sales-tax': 'sales_tax',
    'tech-productivity': 'tech_productivity',
    'approval-conversion': 'approval_conversion',
}


@auto_reports_bp.route('/api/auto/reports/<report_name>', methods=['GET'])
@auto_role_required(*AUTO_MANAGER_ROLES)
def run_report(report_name):
    method_name = REPORTS.get(report_name)
    if not method_name:
        return not_found('Report')

    try:
        from database.connection import get_db_session
        from services.reports import ShopReports, parse_date_range

        start, end = parse_date_range(request.args.get('startDate'), request.args.get('endDate'))
        shop_id, _, _ = current_auto_context()
        with get_db_session() as session:
            report = getattr(ShopReports(session, shop_id), method_name)(start, end)
            return jsonify({
                'success': True,
                'report': report,
                'startDate': start.isoformat(),
                'endDate': end.isoformat()
            })

    except Exception as e:
        return handle_service_error(e, f'running {report_name} report')
