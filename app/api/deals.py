"""
Deals API Routes Blueprint

Sales pipeline endpoints:
- /api/deals                    - cursor-paginated list, create
- /api/deals/kanban             - per-stage board pages
- /api/deals/stage/<stage>      - one more page of a board column
- /api/deals/today              - follow-ups, stale deals, check-ins, appointments
- /api/deals/analytics          - pipeline analytics
- /api/deals/events             - recent audit events and counts (managers)
- /api/deals/stages             - stage labels, order and follow-up presets
- /api/deals/agents             - users deals can be assigned to
- /api/deals/<id>               - get, update, delete
- /api/deals/<id>/stage|swipe|follow-up|check-in|history|events|activities|summary
"""

import json
import logging
from flask import Blueprint, request, jsonify, current_app

from auth import login_required, current_user_context
from app.utils.helpers import get_json, error_response, not_found, handle_service_error
from validators import ValidationError, validate_deal_request

logger = logging.getLogger(__name__)

# Create blueprint
deals_bp = Blueprint('deals_bp', __name__)


def get_repository(session):
    """DealRepository scoped to the logged in user"""
    from services.deal_repository import DealRepository
    organization_id, user_id, role = current_user_context()
    return DealRepository(session, organization_id, user_id, role)


def _kanban_params():
    params = request.args.to_dict()
    if params.get('stages'):
        params['stages'] = [s for s in params['stages'].split(',') if s]
    if params.get('cursors'):
        try:
            params['cursors'] = json.loads(params['cursors'])
        except ValueError:
            raise ValidationError('cursors must be a JSON object', 'cursors')
        if not isinstance(params['cursors'], dict):
            raise ValidationError('cursors must be a JSON object', 'cursors')
    return params


# ============================================================================
# DEAL LIST / BOARD
# ============================================================================

@deals_bp.route('/api/deals', methods=['GET', 'POST'])
@login_required
def handle_deals():
    """List deals with cursor pagination, or create a deal"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                result = repo.list_deals(request.args.to_dict())
                return jsonify({'success': True, **result})

            data = get_json()
            is_valid, error = validate_deal_request(data)
            if not is_valid:
                return error_response(error, 400)
            deal = repo.create_deal(data)
            return jsonify({'success': True, 'deal': deal}), 201

    except Exception as e:
        return handle_service_error(e, 'handling deals')


@deals_bp.route('/api/deals/kanban', methods=['GET'])
@login_required
def get_kanban():
    """Board columns; ``stages`` is comma separated, ``cursors`` a JSON stage->cursor map"""
    try:
        from database.connection import get_db_session

        params = _kanban_params()
        with get_db_session() as session:
            result = get_repository(session).kanban(params)
            return jsonify({'success': True, **result})

    except Exception as e:
        return handle_service_error(e, 'loading kanban')


@deals_bp.route('/api/deals/stage/<stage>', methods=['GET'])
@login_required
def get_stage_deals(stage):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            result = get_repository(session).deals_for_stage(stage, request.args.to_dict())
            return jsonify({'success': True, 'stage': stage, **result})

    except Exception as e:
        return handle_service_error(e, f'loading stage {stage}')


@deals_bp.route('/api/deals/today', methods=['GET'])
@login_required
def get_today():
    """The logged in agent's worklist for today"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            result = get_repository(session).get_today(
                stale_days=current_app.config.get('STALE_DEAL_DAYS', 7),
                checkin_window_days=current_app.config.get('CHECKIN_WINDOW_DAYS', 7)
            )
            return jsonify({'success': True, **result})

    except Exception as e:
        return handle_service_error(e, 'loading today list')


@deals_bp.route('/api/deals/analytics', methods=['GET'])
@login_required
def get_analytics():
    """Analytics for ``range`` (week, month, quarter, year, all); agents see their own deals"""
    try:
        from database.connection import get_db_session
        from services.deal_analytics import DealAnalytics
        from services.deal_repository import PIPELINE_MANAGER_ROLES

        organization_id, user_id, role = current_user_context()
        agent_id = None if role in PIPELINE_MANAGER_ROLES else user_id
        if role in PIPELINE_MANAGER_ROLES and request.args.get('agentId'):
            agent_id = request.args['agentId']

        with get_db_session() as session:
            result = DealAnalytics(session, organization_id, agent_id).compute(
                request.args.get('range', 'month')
            )
            return jsonify({'success': True, **result})

    except Exception as e:
        return handle_service_error(e, 'computing analytics')


@deals_bp.route('/api/deals/events', methods=['GET'])
@login_required
def get_organization_events():
    """GET params: hours (default 24), days (summary window, default 7), types (comma separated)"""
    try:
        from database.connection import get_db_session

        try:
            hours = int(request.args.get('hours', 24))
            days = int(request.args.get('days', 7))
        except ValueError:
            return error_response('hours and days must be integers', 400)
        types = [t for t in request.args.get('types', '').split(',') if t] or None

        with get_db_session() as session:
            result = get_repository(session).get_organization_events(hours=hours, event_types=types, days=days)
            return jsonify({'success': True, **result})

    except Exception as e:
        return handle_service_error(e, 'loading pipeline events')


@deals_bp.route('/api/deals/stages', methods=['GET'])
@login_required
def get_stages():
    from services.deal_stages import (
        STAGES, STAGE_ORDER, STAGE_LABELS, STAGE_SHORT_LABELS, TERMINAL_STAGES,
        TEMPERATURES, follow_up_presets
    )
    return jsonify({
        'success': True,
        'stages': [
            {
                'key': stage,
                'label': STAGE_LABELS[stage],
                'shortLabel': STAGE_SHORT_LABELS[stage],
                'terminal': stage in TERMINAL_STAGES,
            }
            for stage in STAGES
        ],
        'stageOrder': STAGE_ORDER,
        'temperatures': list(TEMPERATURES),
        'followUpPresets': follow_up_presets(),
    })


@deals_bp.route('/api/deals/agents', methods=['GET'])
@login_required
def get_agents():
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            return jsonify({'success': True, 'agents': get_repository(session).list_agents()})

    except Exception as e:
        return handle_service_error(e, 'listing agents')


# ============================================================================
# SINGLE DEAL
# ============================================================================

@deals_bp.route('/api/deals/<deal_id>', methods=['GET', 'PUT', 'PATCH', 'DELETE'])
@login_required
def handle_deal(deal_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                deal = repo.get_deal(deal_id)
                if not deal:
                    return not_found('Deal')
                return jsonify({'success': True, 'deal': deal})

            if request.method == 'DELETE':
                if not repo.delete_deal(deal_id):
                    return not_found('Deal')
                return jsonify({'success': True})

            data = get_json()
            is_valid, error = validate_deal_request(data, partial=True)
            if not is_valid:
                return error_response(error, 400)
            deal = repo.update_deal(deal_id, data)
            if not deal:
                return not_found('Deal')
            return jsonify({'success': True, 'deal': deal})

    except Exception as e:
        return handle_service_error(e, f'handling deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/stage', methods=['POST'])
@login_required
def change_deal_stage(deal_id):
    try:
        from database.connection import get_db_session

        data = get_json()
        if not data.get('stage'):
            return error_response('stage is required', 400)

        with get_db_session() as session:
            deal = get_repository(session).change_stage(deal_id, data['stage'], data.get('lostReason'))
            if not deal:
                return not_found('Deal')
            return jsonify({'success': True, 'deal': deal})

    except Exception as e:
        return handle_service_error(e, f'changing stage of deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/swipe', methods=['POST'])
@login_required
def swipe_deal(deal_id):
    """Swipe right advances one stage, left steps back one"""
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            deal = get_repository(session).swipe(deal_id, get_json().get('direction'))
            if not deal:
                return not_found('Deal')
            return jsonify({'success': True, 'deal': deal})

    except Exception as e:
        return handle_service_error(e, f'swiping deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/follow-up', methods=['POST'])
@login_required
def record_follow_up(deal_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            result = get_repository(session).record_follow_up(deal_id, get_json())
            if not result:
                return not_found('Deal')
            return jsonify({'success': True, **result}), 201

    except Exception as e:
        return handle_service_error(e, f'recording follow-up on deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/check-in', methods=['POST'])
@login_required
def record_check_in(deal_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            result = get_repository(session).record_check_in(deal_id, get_json().get('notes'))
            if not result:
                return not_found('Deal')
            return jsonify({'success': True, **result}), 201

    except Exception as e:
        return handle_service_error(e, f'recording check-in on deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/history', methods=['GET'])
@login_required
def get_deal_history(deal_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            history = get_repository(session).get_stage_history(deal_id)
            if history is None:
                return not_found('Deal')
            return jsonify({'success': True, 'history': history})

    except Exception as e:
        return handle_service_error(e, f'loading history of deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/events', methods=['GET'])
@login_required
def get_deal_events(deal_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            events = get_repository(session).get_events(deal_id)
            if events is None:
                return not_found('Deal')
            return jsonify({'success': True, 'events': events})

    except Exception as e:
        return handle_service_error(e, f'loading events of deal {deal_id}')


@deals_bp.route('/api/deals/<deal_id>/activities', methods=['GET'])
@login_required
def get_deal_activities(deal_id):
    try:
        from database.connection import get_db_session

        with get_db_session() as session:
            activities = get_repository(session).get_activities(deal_id)
            if activities is None:
                return not_found('Deal')
            return jsonify({'success': True, 'activities': activities})

    except Exception as e:
        return handle_service_error(e, f'loading activities of deal {deal_id}')


# ============================================================================
# AI SUMMARY
# ============================================================================

@deals_bp.route('/api/deals/<deal_id>/summary', methods=['GET', 'POST'])
@login_required
def handle_deal_summary(deal_id):
    """GET the latest summary (or null); POST generates a new one"""
    try:
        from database.connection import get_db_session
        from services.deal_ai_service import DealAIService

        with get_db_session() as session:
            repo = get_repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'summary': repo.latest_summary(deal_id)})

            deal = repo.get_deal(deal_id)
            if not deal:
                return not_found('Deal')

            ai_service = current_app.ai_service
            result = DealAIService(ai_service).summarize_deal(deal)
            summary = repo.save_summary(deal_id, result, model=ai_service.model_name())
            return jsonify({'success': True, 'summary': summary}), 201

    except Exception as e:
        return handle_service_error(e, f'summarizing deal {deal_id}')
