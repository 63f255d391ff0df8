"""
Scheduler Routes Blueprint

Background job control for platform admins:
- /api/scheduler/status: Get scheduler status
- /api/scheduler/jobs/<job_id>/run: Manually trigger a job
- /api/scheduler/jobs/<job_id>/enable, /disable
"""

import logging
from flask import Blueprint, jsonify

from auth import admin_key_or_master_required
from app.utils.helpers import error_response, handle_service_error

logger = logging.getLogger(__name__)

# Create blueprint
scheduler_bp = Blueprint('scheduler_bp', __name__)


# ============================================================================
# SCHEDULER API
# ============================================================================

@scheduler_bp.route('/api/scheduler/status', methods=['GET'])
@admin_key_or_master_required
def get_scheduler_status():
    """Get the status of background jobs."""
    from services.scheduler import get_scheduler

    scheduler = get_scheduler()
    return jsonify({
        'success': True,
        'running': scheduler.running,
        'jobs': scheduler.get_job_status()
    })


@scheduler_bp.route('/api/scheduler/jobs/<job_id>/run', methods=['POST'])
@admin_key_or_master_required
def run_scheduler_job(job_id):
    """Manually trigger a scheduled job."""
    try:
        from services.scheduler import get_scheduler

        scheduler = get_scheduler()
        result = scheduler.run_job_now(job_id)
        if result is None:
            return error_response('Job not found', 404)

        status = scheduler.get_job_status().get(job_id, {})
        return jsonify({
            'success': result,
            'message': f'Job {job_id} executed' if result else f'Job {job_id} failed',
            'job': status
        })

    except Exception as e:
        return handle_service_error(e, f'running job {job_id}')


@scheduler_bp.route('/api/scheduler/jobs/<job_id>/<action>', methods=['POST'])
@admin_key_or_master_required
def toggle_scheduler_job(job_id, action):
    from services.scheduler import get_scheduler

    scheduler = get_scheduler()
    if action == 'enable':
        found = scheduler.enable_job(job_id)
    elif action == 'disable':
        found = scheduler.disable_job(job_id)
    else:
        return error_response('action must be enable or disable', 400)

    if not found:
        return error_response('Job not found', 404)
    return jsonify({'success': True, 'job': scheduler.get_job_status()[job_id]})
