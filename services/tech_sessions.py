"""
Technician clock sessions on repair order service lines.

A technician has at most one active session. Sessions left open longer
than ``TECH_AUTO_CLOCK_OUT_HOURS`` are closed by the scheduler and flagged
``auto_clock_out``.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from database.auto_models import AutoTechSession, AutoRepairOrder, AutoLineItem
from services.event_logger import ShopActivityLogger
from validators import ValidationError, PermissionDenied

logger = logging.getLogger(__name__)

SESSION_MANAGER_ROLES = ('owner', 'manager')
HISTORY_LIMIT = 100


def format_elapsed(seconds) -> str:
    """Running timer text, ``HH:MM:SS``."""
    seconds = max(int(seconds or 0), 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration(minutes) -> str:
    """``"2h 15m"``, ``"45m"``, or ``"--"`` when unknown."""
    if minutes is None:
        return '--'
    minutes = max(int(minutes), 0)
    hours, mins = divmod(minutes, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def duration_minutes(clock_in: datetime, clock_out: datetime) -> int:
    return max(int(round((clock_out - clock_in).total_seconds() / 60)), 0)


class TechSessionService:
    """Clock in/out for one shop."""

    def __init__(self, session, shop_id: int, user_id: int = None, role: str = None):
        self.session = session
        self.shop_id = shop_id
        self.user_id = user_id
        self.role = role
        self.activity = ShopActivityLogger(session, shop_id, user_id)

    def _active_for_tech(self, tech_id: int) -> Optional[AutoTechSession]:
        return self.session.query(AutoTechSession).filter(
            AutoTechSession.shop_id == self.shop_id,
            AutoTechSession.tech_employee_id == tech_id,
            AutoTechSession.is_active == True  # noqa: E712
        ).first()

    def clock_in(self, data: Dict) -> Dict:
        """
        Start a session on a service line.

        Raises:
            ValidationError: missing ids or already clocked in
            LookupError: unknown RO or a line that is not on it
        """
        ro_id = data.get('repairOrderId')
        line_id = data.get('serviceLineId')
        if not ro_id or not line_id:
            raise ValidationError('repairOrderId and serviceLineId are required')

        tech_id = data.get('techEmployeeId') or self.user_id
        if tech_id != self.user_id and self.role not in SESSION_MANAGER_ROLES:
            raise PermissionDenied('Only owners and managers can clock in other technicians')

        ro = self.session.query(AutoRepairOrder).filter(
            AutoRepairOrder.id == ro_id,
            AutoRepairOrder.shop_id == self.shop_id
        ).first()
        if not ro:
            raise LookupError('Repair order not found')
        line = self.session.query(AutoLineItem).filter(
            AutoLineItem.id == line_id,
            AutoLineItem.repair_order_id == ro.id
        ).first()
        if not line:
            raise LookupError('Service line not found on this repair order')

        if self._active_for_tech(tech_id):
            raise ValidationError('Technician is already clocked in')

        tech_session = AutoTechSession(
            shop_id=self.shop_id,
            repair_order_id=ro.id,
            service_line_id=line.id,
            tech_employee_id=tech_id,
            clock_in=datetime.utcnow(),
            is_active=True,
            notes=data.get('notes')
        )
        self.session.add(tech_session)
        self.session.flush()

        self.activity.log('tech_session', tech_session.id, 'clock_in', {
            'repairOrderId': ro.id, 'serviceLineId': line.id,
        })
        logger.info(f"Tech {tech_id} clocked in on {ro.ro_number} line {line.id}")
        return tech_session.to_dict()

    def clock_out(self, session_id: int, notes: str = None, now: datetime = None) -> Optional[Dict]:
        tech_session = self.session.query(AutoTechSession).filter(
            AutoTechSession.id == session_id,
            AutoTechSession.shop_id == self.shop_id
        ).first()
        if not tech_session:
            return None
        if tech_session.tech_employee_id != self.user_id and self.role not in SESSION_MANAGER_ROLES:
            raise PermissionDenied('Only the technician or a manager can clock out this session')
        if not tech_session.is_active:
            raise ValidationError('Session is already clocked out')

        now = now or datetime.utcnow()
        tech_session.clock_out = now
        tech_session.duration_minutes = duration_minutes(tech_session.clock_in, now)
        tech_session.is_active = False
        if notes:
            tech_session.notes = notes
        self.session.flush()

        self.activity.log('tech_session', tech_session.id, 'clock_out', {
            'durationMinutes': tech_session.duration_minutes,
        })
        logger.info(f"Tech {tech_session.tech_employee_id} clocked out after {tech_session.duration_minutes}m")
        return tech_session.to_dict()

    def active_sessions(self, now: datetime = None) -> List[Dict]:
        """
        Active sessions with RO number, service description and tech name.
        ``lineActiveByOther`` is set when another tech is on the same line.
        """
        now = now or datetime.utcnow()
        rows = self.session.query(AutoTechSession).filter(
            AutoTechSession.shop_id == self.shop_id,
            AutoTechSession.is_active == True  # noqa: E712
        ).order_by(AutoTechSession.clock_in).all()

        techs_by_line: Dict[int, set] = {}
        for row in rows:
            techs_by_line.setdefault(row.service_line_id, set()).add(row.tech_employee_id)

        result = []
        for row in rows:
            data = row.to_dict()
            elapsed = (now - row.clock_in).total_seconds()
            data['roNumber'] = row.repair_order.ro_number if row.repair_order else None
            data['serviceDescription'] = row.service_line.description if row.service_line else None
            data['techName'] = row.tech.full_name if row.tech else None
            data['elapsed'] = format_elapsed(elapsed)
            data['lineActiveByOther'] = bool(techs_by_line[row.service_line_id] - {self.user_id})
            result.append(data)
        return result

    def history(self, tech_id: int = None) -> List[Dict]:
        tech_id = tech_id or self.user_id
        rows = self.session.query(AutoTechSession).filter(
            AutoTechSession.shop_id == self.shop_id,
            AutoTechSession.tech_employee_id == tech_id
        ).order_by(AutoTechSession.clock_in.desc(), AutoTechSession.id.desc()).limit(HISTORY_LIMIT).all()

        result = []
        for row in rows:
            data = row.to_dict()
            data['roNumber'] = row.repair_order.ro_number if row.repair_order else None
            data['serviceDescription'] = row.service_line.description if row.service_line else None
            data['durationFormatted'] = format_duration(row.duration_minutes)
            result.append(data)
        return result


def auto_clock_out(session, max_hours: int, now: datetime = None) -> int:
    """Close every session open longer than ``max_hours``; returns the count."""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=max_hours)
    stale = session.query(AutoTechSession).filter(
        AutoTechSession.is_active == True,  # noqa: E712
        AutoTechSession.clock_in <= cutoff
    ).all()

    for row in stale:
        row.clock_out = now
        row.duration_minutes = duration_minutes(row.clock_in, now)
        row.is_active = False
        row.auto_clock_out = True
        ShopActivityLogger(session, row.shop_id).log('tech_session', row.id, 'auto_clock_out', {
            'techEmployeeId': row.tech_employee_id, 'durationMinutes': row.duration_minutes,
        })
    if stale:
        session.flush()
        logger.info(f"Auto clocked out {len(stale)} tech session(s) older than {max_hours}h")
    return len(stale)
