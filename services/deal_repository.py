"""
Deal Repository - Database access layer for the sales pipeline.
Handles deals, stage changes, swipes, follow-ups, quarterly check-ins,
the "today" worklist and cursor-paginated lists.
All mutations are logged to the event_log table.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any

from sqlalchemy import or_, and_, func
from sqlalchemy.orm import Session

from database.models import Deal, DealStageHistory, DealActivity, DealSummary, User
from services.deal_stages import (
    STAGES, TERMINAL_STAGES, STAGE_STATUS, TEMPERATURES, DEFAULT_TEMPERATURE,
    DEFAULT_FOLLOW_UP_DAYS, is_valid_stage, apply_swipe, follow_up_date, temperature_rank
)
from services.event_logger import get_event_logger
from services.pagination import normalize_pagination_params, paginate, paginate_by_stage
from validators import ValidationError, PermissionDenied, parse_datetime, parse_number

logger = logging.getLogger(__name__)

# API sort key -> Deal attribute
DEAL_SORT_FIELDS = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'estimatedMonthlyVolume': 'estimated_monthly_volume',
    'businessName': 'business_name',
    'stage': 'current_stage',
    'dealProbability': 'deal_probability',
}

# Roles that see every deal in the organization
PIPELINE_MANAGER_ROLES = ('master_admin', 'relationship_manager')

FOLLOW_UP_METHODS = ('call', 'email', 'text', 'visit', 'other')


class DealRepository:
    """Repository for pipeline deals with event logging."""

    # Map API field names to database column names
    FIELD_MAPPING = {
        'businessName': 'business_name',
        'businessType': 'business_type',
        'businessAddress': 'business_address',
        'contactName': 'contact_name',
        'contactPhone': 'contact_phone',
        'contactEmail': 'contact_email',
        'temperature': 'temperature',
        'priority': 'priority',
        'estimatedMonthlyVolume': 'estimated_monthly_volume',
        'estimatedCommission': 'estimated_commission',
        'dealProbability': 'deal_probability',
        'assignedAgentId': 'assigned_agent_id',
        'appointmentDate': 'appointment_date',
        'nextFollowUpAt': 'next_follow_up_at',
        'lostReason': 'lost_reason',
        'notes': 'notes',
        'voiceTranscript': 'voice_transcript',
        'metadata': 'extra_data',
    }
    DATE_FIELDS = ('appointmentDate', 'nextFollowUpAt')
    NUMBER_FIELDS = ('estimatedMonthlyVolume', 'estimatedCommission')

    def __init__(self, session: Session, organization_id: str, user_id: str = None, role: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.role = role
        self.events = get_event_logger(session, organization_id, user_id)

    def _map_field(self, key: str) -> str:
        """Map API field name to database column name."""
        return self.FIELD_MAPPING.get(key, key)

    @property
    def sees_all_deals(self) -> bool:
        return self.role is None or self.role in PIPELINE_MANAGER_ROLES

    def _base_query(self):
        query = self.session.query(Deal).filter(Deal.organization_id == self.organization_id)
        if not self.sees_all_deals:
            query = query.filter(Deal.assigned_agent_id == self.user_id)
        return query

    def _get(self, deal_id: str) -> Optional[Deal]:
        """
        Load a deal in this organization.

        Raises:
            PermissionDenied: when an agent asks for another agent's deal
        """
        deal = self.session.query(Deal).filter(
            Deal.id == deal_id,
            Deal.organization_id == self.organization_id
        ).first()
        if deal and not self.sees_all_deals and deal.assigned_agent_id != self.user_id:
            raise PermissionDenied('Access denied')
        return deal

    def _coerce(self, key: str, value: Any) -> Any:
        if key in self.DATE_FIELDS:
            return parse_datetime(value, key)
        if key in self.NUMBER_FIELDS:
            return parse_number(value, key, default=0)
        if key == 'dealProbability' and value is not None:
            return int(parse_number(value, key))
        if key == 'temperature' and value not in TEMPERATURES:
            raise ValidationError(f"temperature must be one of: {', '.join(TEMPERATURES)}", key)
        return value

    # =========================================================================
    # DEALS
    # =========================================================================

    def list_deals(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Cursor-paginated deal list.

        Filters: stage, status, search, dateFrom, dateTo, minValue, maxValue,
        assignedTo, priority, temperature.
        """
        page_params = normalize_pagination_params(params, DEAL_SORT_FIELDS)
        sort_attr = DEAL_SORT_FIELDS[page_params['sortBy']]
        query = self._apply_filters(self._base_query(), params)

        page = paginate(
            query,
            page_params,
            getattr(Deal, sort_attr),
            Deal.id,
            lambda deal: getattr(deal, sort_attr),
            include_total_count=str(params.get('includeCount', '')).lower() == 'true',
        )
        return {
            'deals': [d.to_dict() for d in page['items']],
            'pagination': page['pagination'],
        }

    def _apply_filters(self, query, params: Dict[str, Any]):
        if params.get('stage'):
            query = query.filter(Deal.current_stage == params['stage'])
        if params.get('status'):
            query = query.filter(Deal.status == params['status'])
        if params.get('search'):
            query = query.filter(Deal.business_name.ilike(f"%{params['search']}%"))
        if params.get('dateFrom'):
            query = query.filter(Deal.created_at >= parse_datetime(params['dateFrom'], 'dateFrom'))
        if params.get('dateTo'):
            query = query.filter(Deal.created_at <= parse_datetime(params['dateTo'], 'dateTo'))
        if params.get('minValue') not in (None, ''):
            query = query.filter(Deal.estimated_monthly_volume >= parse_number(params['minValue'], 'minValue'))
        if params.get('maxValue') not in (None, ''):
            query = query.filter(Deal.estimated_monthly_volume <= parse_number(params['maxValue'], 'maxValue'))
        if params.get('assignedTo'):
            query = query.filter(Deal.assigned_agent_id == params['assignedTo'])
        if params.get('priority'):
            query = query.filter(Deal.priority == params['priority'])
        if params.get('temperature'):
            query = query.filter(Deal.temperature == params['temperature'])
        return query

    def get_deal(self, deal_id: str) -> Optional[Dict]:
        """Get a deal by ID."""
        deal = self._get(deal_id)
        return deal.to_dict() if deal else None

    def create_deal(self, data: Dict) -> Dict:
        """Create a new deal in the prospect stage unless a stage is given."""
        stage = data.get('currentStage') or 'prospect'
        if not is_valid_stage(stage):
            raise ValidationError(f"Invalid stage: {stage}", 'currentStage')

        now = datetime.utcnow()
        deal = Deal(
            organization_id=self.organization_id,
            assigned_agent_id=data.get('assignedAgentId') or self.user_id,
            current_stage=stage,
            stage_entered_at=now,
            status=STAGE_STATUS.get(stage, 'active'),
            temperature=DEFAULT_TEMPERATURE,
            priority='medium',
            last_activity_at=now,
            extra_data={}
        )
        for key, value in data.items():
            if key in self.FIELD_MAPPING:
                setattr(deal, self._map_field(key), self._coerce(key, value))
        if not deal.temperature:
            deal.temperature = DEFAULT_TEMPERATURE

        self.session.add(deal)
        self.session.flush()

        self.session.add(DealStageHistory(
            deal_id=deal.id, from_stage=None, to_stage=stage,
            changed_by_id=self.user_id, changed_at=now
        ))
        self.events.log(
            entity_type='deal',
            entity_id=deal.id,
            event_type='CREATED',
            description=f"Deal '{deal.business_name}' was created",
            metadata={'business_name': deal.business_name, 'stage': stage}
        )

        logger.info(f"Created deal: {deal.id}")
        return deal.to_dict()

    def update_deal(self, deal_id: str, data: Dict) -> Optional[Dict]:
        """Update editable deal fields; stage changes go through change_stage."""
        deal = self._get(deal_id)
        if not deal:
            return None

        changes = {}
        for key, value in data.items():
            if key not in self.FIELD_MAPPING:
                continue
            attr = self._map_field(key)
            new_value = self._coerce(key, value)
            old_value = getattr(deal, attr)
            if old_value != new_value:
                changes[key] = {
                    'old': old_value.isoformat() if isinstance(old_value, datetime) else old_value,
                    'new': new_value.isoformat() if isinstance(new_value, datetime) else new_value,
                }
            setattr(deal, attr, new_value)

        if data.get('currentStage') and data['currentStage'] != deal.current_stage:
            old_stage = deal.current_stage
            self._transition(deal, data['currentStage'])
            changes['currentStage'] = {'old': old_stage, 'new': data['currentStage']}

        deal.updated_at = datetime.utcnow()
        deal.last_activity_at = deal.updated_at
        self.session.flush()

        if changes:
            self.events.log(
                entity_type='deal',
                entity_id=deal_id,
                event_type='UPDATED',
                description=f"Deal '{deal.business_name}' was updated",
                metadata={'changes': changes}
            )

        logger.info(f"Updated deal: {deal_id}")
        return deal.to_dict()

    def delete_deal(self, deal_id: str) -> bool:
        """Delete a deal and its history."""
        deal = self._get(deal_id)
        if not deal:
            return False

        business_name = deal.business_name
        self.session.delete(deal)
        self.session.flush()
        self.events.log(
            entity_type='deal',
            entity_id=deal_id,
            event_type='DELETED',
            description=f"Deal '{business_name}' was deleted"
        )
        logger.info(f"Deleted deal: {deal_id}")
        return True

    # =========================================================================
    # STAGES
    # =========================================================================

    def _transition(self, deal: Deal, new_stage: str, now: datetime = None):
        """Apply a stage change to a loaded deal and record its history."""
        if not is_valid_stage(new_stage):
            raise ValidationError(f"Invalid stage: {new_stage}", 'stage')

        now = now or datetime.utcnow()
        old_stage = deal.current_stage
        seconds = None
        if deal.stage_entered_at:
            seconds = max(0, int((now - deal.stage_entered_at).total_seconds()))

        self.session.add(DealStageHistory(
            deal_id=deal.id,
            from_stage=old_stage,
            to_stage=new_stage,
            changed_by_id=self.user_id,
            changed_at=now,
            seconds_in_previous_stage=seconds
        ))

        deal.current_stage = new_stage
        deal.stage_entered_at = now
        deal.last_activity_at = now
        deal.status = STAGE_STATUS.get(new_stage, 'active')

        if new_stage in ('sold', 'dead'):
            deal.closed_at = now
        elif new_stage not in TERMINAL_STAGES and new_stage != 'installation_scheduled':
            deal.closed_at = None

        if new_stage == 'active_merchant' and not deal.next_quarterly_checkin_at:
            deal.next_quarterly_checkin_at = now + timedelta(days=self._checkin_interval_days())

        self.events.log_stage_change(deal.id, old_stage, new_stage)
        if new_stage == 'sold':
            self.events.log('deal', deal.id, 'DEAL_WON', f"Deal '{deal.business_name}' was won")
        elif new_stage == 'dead':
            self.events.log('deal', deal.id, 'DEAL_LOST', f"Deal '{deal.business_name}' was lost")

    def _checkin_interval_days(self) -> int:
        from flask import current_app, has_app_context
        if has_app_context():
            return current_app.config.get('QUARTERLY_CHECKIN_DAYS', 90)
        return 90

    def change_stage(self, deal_id: str, stage: str, lost_reason: str = None) -> Optional[Dict]:
        """Move a deal to any stage."""
        deal = self._get(deal_id)
        if not deal:
            return None
        if stage == deal.current_stage:
            return deal.to_dict()

        self._transition(deal, stage)
        if stage == 'dead' and lost_reason:
            deal.lost_reason = lost_reason
        deal.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Deal {deal_id} moved to stage {stage}")
        return deal.to_dict()

    def swipe(self, deal_id: str, direction: str) -> Optional[Dict]:
        """
        Advance (right) or step back (left) one stage.

        Raises:
            ValidationError: unknown direction, or the deal cannot move that way
        """
        if direction not in ('left', 'right'):
            raise ValidationError("direction must be 'left' or 'right'", 'direction')

        deal = self._get(deal_id)
        if not deal:
            return None

        target = apply_swipe(deal.current_stage, direction)
        if target is None:
            raise ValidationError(f"Deal in stage '{deal.current_stage}' cannot move {direction}", 'direction')

        self._transition(deal, target)
        deal.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Deal {deal_id} swiped {direction} to {target}")
        return deal.to_dict()

    def get_stage_history(self, deal_id: str) -> Optional[List[Dict]]:
        deal = self._get(deal_id)
        if not deal:
            return None
        return [h.to_dict() for h in deal.stage_history]

    def get_events(self, deal_id: str, limit: int = 50) -> Optional[List[Dict]]:
        """Audit trail of one deal, newest first."""
        deal = self._get(deal_id)
        if not deal:
            return None
        return self.events.get_entity_history('deal', deal.id, limit=limit)

    def get_organization_events(self, hours: int = 24, event_types: List[str] = None,
                                days: int = 7) -> Dict[str, Any]:
        """
        Recent pipeline events and per-type counts for the organization.

        Raises:
            PermissionDenied: agents only see their own deals' history
        """
        if not self.sees_all_deals:
            raise PermissionDenied('Only managers can view organization activity')
        return {
            'events': self.events.get_recent_events(hours=hours, event_types=event_types),
            'summary': self.events.get_activity_summary(days=days),
        }

    # =========================================================================
    # FOLLOW-UPS & CHECK-INS
    # =========================================================================

    def record_follow_up(self, deal_id: str, data: Dict) -> Optional[Dict]:
        """
        Log a follow-up attempt and schedule the next one.

        ``nextFollowUpDays`` (default 3) picks the preset; ``nextFollowUpAt``
        overrides it with an explicit date.
        """
        deal = self._get(deal_id)
        if not deal:
            return None

        method = data.get('method') or 'call'
        if method not in FOLLOW_UP_METHODS:
            raise ValidationError(f"method must be one of: {', '.join(FOLLOW_UP_METHODS)}", 'method')

        now = datetime.utcnow()
        activity = DealActivity(
            deal_id=deal.id,
            user_id=self.user_id,
            activity_type='follow_up',
            method=method,
            outcome=data.get('outcome'),
            notes=data.get('notes'),
            created_at=now
        )
        self.session.add(activity)

        deal.follow_up_attempt_count = (deal.follow_up_attempt_count or 0) + 1
        deal.last_follow_up_at = now
        deal.last_activity_at = now
        if data.get('nextFollowUpAt'):
            deal.next_follow_up_at = parse_datetime(data['nextFollowUpAt'], 'nextFollowUpAt')
        elif data.get('nextFollowUpDays') is not None or not data.get('clearNextFollowUp'):
            days = int(parse_number(data.get('nextFollowUpDays'), 'nextFollowUpDays', DEFAULT_FOLLOW_UP_DAYS))
            deal.next_follow_up_at = follow_up_date(days, now)
        else:
            deal.next_follow_up_at = None
        if data.get('temperature'):
            deal.temperature = self._coerce('temperature', data['temperature'])
        self.session.flush()

        self.events.log(
            entity_type='deal',
            entity_id=deal.id,
            event_type='FOLLOW_UP_LOGGED',
            description=f"Follow-up #{deal.follow_up_attempt_count} via {method}",
            metadata={'method': method, 'outcome': data.get('outcome')}
        )

        logger.info(f"Recorded follow-up on deal {deal_id}")
        return {'deal': deal.to_dict(), 'activity': activity.to_dict()}

    def record_check_in(self, deal_id: str, notes: str = None) -> Optional[Dict]:
        """Log a quarterly check-in with an active merchant and schedule the next."""
        deal = self._get(deal_id)
        if not deal:
            return None

        now = datetime.utcnow()
        activity = DealActivity(
            deal_id=deal.id,
            user_id=self.user_id,
            activity_type='check_in',
            notes=notes,
            created_at=now
        )
        self.session.add(activity)

        deal.last_quarterly_checkin_at = now
        deal.next_quarterly_checkin_at = now + timedelta(days=self._checkin_interval_days())
        deal.last_activity_at = now
        self.session.flush()

        self.events.log('deal', deal.id, 'CHECK_IN_LOGGED', metadata={'notes': notes} if notes else None)
        logger.info(f"Recorded quarterly check-in on deal {deal_id}")
        return {'deal': deal.to_dict(), 'activity': activity.to_dict()}

    def get_activities(self, deal_id: str) -> Optional[List[Dict]]:
        deal = self._get(deal_id)
        if not deal:
            return None
        rows = self.session.query(DealActivity).filter(
            DealActivity.deal_id == deal.id
        ).order_by(DealActivity.created_at.desc()).all()
        return [a.to_dict() for a in rows]

    def get_today(self, now: datetime = None, stale_days: int = 7, checkin_window_days: int = 7) -> Dict[str, Any]:
        """
        The agent's worklist for today.

        Returns:
            followUpsDue, staleDeals, checkInsDue and appointmentsToday lists
        """
        now = now or datetime.utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        open_deals = self._base_query().filter(~Deal.current_stage.in_(TERMINAL_STAGES))

        follow_ups = open_deals.filter(
            Deal.next_follow_up_at.isnot(None),
            Deal.next_follow_up_at < end_of_day
        ).all()
        follow_ups.sort(key=lambda d: (
            temperature_rank(d.temperature),
            d.last_follow_up_at or datetime.min,
        ))

        stale_cutoff = now - timedelta(days=stale_days)
        stale = open_deals.filter(
            or_(
                Deal.last_activity_at < stale_cutoff,
                and_(Deal.last_activity_at.is_(None), Deal.stage_entered_at < stale_cutoff)
            )
        ).order_by(Deal.last_activity_at.asc()).all()

        check_ins = self._base_query().filter(
            Deal.current_stage == 'active_merchant',
            Deal.next_quarterly_checkin_at.isnot(None),
            Deal.next_quarterly_checkin_at <= now + timedelta(days=checkin_window_days)
        ).order_by(Deal.next_quarterly_checkin_at.asc()).all()

        appointments = self._base_query().filter(
            Deal.appointment_date >= start_of_day,
            Deal.appointment_date < end_of_day
        ).order_by(Deal.appointment_date.asc()).all()

        return {
            'followUpsDue': [d.to_dict() for d in follow_ups],
            'staleDeals': [d.to_dict() for d in stale],
            'checkInsDue': [d.to_dict() for d in check_ins],
            'appointmentsToday': [d.to_dict() for d in appointments],
        }

    # =========================================================================
    # KANBAN
    # =========================================================================

    def kanban(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Per-stage pages for the board plus per-stage totals."""
        sort_by = params.get('sortBy') if params.get('sortBy') in DEAL_SORT_FIELDS else 'updatedAt'
        sort_order = params.get('sortOrder') if params.get('sortOrder') in ('asc', 'desc') else 'desc'
        sort_attr = DEAL_SORT_FIELDS[sort_by]
        stages = [s for s in (params.get('stages') or STAGES) if is_valid_stage(s)]
        filtered = self._apply_filters(self._base_query(), {k: v for k, v in params.items() if k != 'stage'})

        columns = paginate_by_stage(
            lambda stage: filtered.filter(Deal.current_stage == stage),
            stages,
            {
                'limitPerStage': params.get('limitPerStage'),
                'cursors': params.get('cursors') or {},
                'sortBy': sort_by,
                'sortOrder': sort_order,
            },
            getattr(Deal, sort_attr),
            Deal.id,
            lambda deal: getattr(deal, sort_attr),
        )
        for column in columns.values():
            column['items'] = [d.to_dict() for d in column['items']]

        return {'stages': columns, 'stageCounts': self.stage_counts(filtered)}

    def deals_for_stage(self, stage: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """One more page of a single kanban column."""
        if not is_valid_stage(stage):
            raise ValidationError(f"Invalid stage: {stage}", 'stage')
        merged = dict(params)
        merged['stage'] = stage
        merged.setdefault('sortBy', 'updatedAt')
        merged['limit'] = merged.get('limit') or merged.get('limitPerStage') or 10
        return self.list_deals(merged)

    def stage_counts(self, query=None) -> Dict[str, int]:
        query = query if query is not None else self._base_query()
        rows = query.with_entities(Deal.current_stage, func.count(Deal.id)).group_by(Deal.current_stage).all()
        counts = {stage: 0 for stage in STAGES}
        for stage, count in rows:
            counts[stage] = count
        return counts

    # =========================================================================
    # AI SUMMARIES
    # =========================================================================

    def latest_summary(self, deal_id: str) -> Optional[Dict]:
        """Latest summary dict, or None. Raises LookupError if the deal is missing."""
        deal = self._get(deal_id)
        if not deal:
            raise LookupError('Deal not found')
        summary = self.session.query(DealSummary).filter(
            DealSummary.deal_id == deal.id
        ).order_by(DealSummary.created_at.desc()).first()
        return summary.to_dict() if summary else None

    def save_summary(self, deal_id: str, result: Dict[str, Any], model: str = None) -> Dict:
        deal = self._get(deal_id)
        if not deal:
            raise LookupError('Deal not found')
        summary = DealSummary(
            deal_id=deal.id,
            created_by_id=self.user_id,
            summary=result.get('summary') or '',
            key_takeaways=result.get('keyTakeaways') or [],
            objections=result.get('objections') or [],
            next_steps=result.get('nextSteps') or [],
            sentiment=result.get('sentiment') or 'neutral',
            hot_lead=bool(result.get('hotLead')),
            model=model
        )
        self.session.add(summary)
        if summary.hot_lead:
            deal.temperature = 'hot'
        deal.last_activity_at = datetime.utcnow()
        self.session.flush()

        self.events.log('deal', deal.id, 'AI_SUMMARY_CREATED', metadata={'sentiment': summary.sentiment})
        logger.info(f"Saved AI summary for deal {deal_id}")
        return summary.to_dict()

    # =========================================================================
    # AGENTS
    # =========================================================================

    def list_agents(self) -> List[Dict]:
        users = self.session.query(User).filter(
            User.organization_id == self.organization_id,
            User.is_active == True  # noqa: E712
        ).order_by(User.display_name).all()
        return [u.to_dict() for u in users]
