"""
Pipeline analytics: win rates, stage distribution, time in stage and
per-agent performance for a date range.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func

from database.models import Deal, DealStageHistory, User
from services.deal_stages import STAGE_ORDER

logger = logging.getLogger(__name__)

RANGES = ('week', 'month', 'quarter', 'year', 'all')
TOP_PERFORMER_COUNT = 5


def range_start(range_name: str, now: datetime) -> Optional[datetime]:
    """Start of the named period containing ``now``; None for 'all'."""
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if range_name == 'week':
        return day - timedelta(days=day.weekday())
    if range_name == 'month':
        return day.replace(day=1)
    if range_name == 'quarter':
        return day.replace(month=3 * ((day.month - 1) // 3) + 1, day=1)
    if range_name == 'year':
        return day.replace(month=1, day=1)
    return None


def win_rate(won: int, lost: int) -> int:
    closed = won + lost
    return round(won / closed * 100) if closed else 0


class DealAnalytics:
    """Aggregates deal data for one organization."""

    def __init__(self, session, organization_id: str, agent_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.agent_id = agent_id

    def _deals(self, since: Optional[datetime] = None):
        query = self.session.query(Deal).filter(Deal.organization_id == self.organization_id)
        if self.agent_id:
            query = query.filter(Deal.assigned_agent_id == self.agent_id)
        if since:
            query = query.filter(Deal.created_at >= since)
        return query

    def compute(self, range_name: str = 'month', now: datetime = None) -> Dict[str, Any]:
        """
        Full analytics payload.

        Returns:
            summary, stageCounts, avgTimeByStage, agentStats, topPerformers
        """
        if range_name not in RANGES:
            range_name = 'month'
        now = now or datetime.utcnow()
        since = range_start(range_name, now)
        deals = self._deals(since).all()

        won = [d for d in deals if d.status == 'won']
        lost = [d for d in deals if d.status == 'lost']
        active = [d for d in deals if d.status == 'active']

        month_start = range_start('month', now)
        quarter_start = range_start('quarter', now)
        all_won = self._deals().filter(Deal.status == 'won', Deal.closed_at.isnot(None))
        won_this_month = all_won.filter(Deal.closed_at >= month_start).count()
        won_this_quarter = all_won.filter(Deal.closed_at >= quarter_start).count()

        won_value = sum(d.estimated_monthly_volume or 0 for d in won)
        summary = {
            'totalDeals': len(deals),
            'activeDeals': len(active),
            'wonDeals': len(won),
            'lostDeals': len(lost),
            'wonThisMonth': won_this_month,
            'wonThisQuarter': won_this_quarter,
            'totalPipelineValue': round(sum(d.estimated_monthly_volume or 0 for d in active), 2),
            'avgDealSize': round(won_value / len(won)) if won else 0,
            'winRate': win_rate(len(won), len(lost)),
        }

        stage_counts = {stage: 0 for stage in STAGE_ORDER}
        for deal in deals:
            if deal.current_stage in stage_counts:
                stage_counts[deal.current_stage] += 1

        agent_stats = self._agent_stats(deals)
        top_performers = sorted(
            (a for a in agent_stats if a['won'] > 0),
            key=lambda a: (-a['won'], -a['value'])
        )[:TOP_PERFORMER_COUNT]

        return {
            'range': range_name,
            'summary': summary,
            'stageCounts': stage_counts,
            'avgTimeByStage': self.avg_time_by_stage(since),
            'agentStats': agent_stats,
            'topPerformers': top_performers,
        }

    def avg_time_by_stage(self, since: Optional[datetime] = None) -> Dict[str, float]:
        """Average days spent in each STAGE_ORDER stage before leaving it."""
        query = self.session.query(
            DealStageHistory.from_stage,
            func.avg(DealStageHistory.seconds_in_previous_stage)
        ).join(Deal, Deal.id == DealStageHistory.deal_id).filter(
            Deal.organization_id == self.organization_id,
            DealStageHistory.from_stage.isnot(None),
            DealStageHistory.seconds_in_previous_stage.isnot(None)
        )
        if self.agent_id:
            query = query.filter(Deal.assigned_agent_id == self.agent_id)
        if since:
            query = query.filter(DealStageHistory.changed_at >= since)

        result = {}
        for stage, avg_seconds in query.group_by(DealStageHistory.from_stage).all():
            if stage in STAGE_ORDER and avg_seconds is not None:
                result[stage] = round(float(avg_seconds) / 86400, 1)
        return result

    def _agent_stats(self, deals) -> list:
        per_agent = defaultdict(lambda: {'won': 0, 'lost': 0, 'active': 0, 'value': 0.0})
        for deal in deals:
            if not deal.assigned_agent_id:
                continue
            stats = per_agent[deal.assigned_agent_id]
            stats[deal.status if deal.status in ('won', 'lost') else 'active'] += 1
            if deal.status == 'won':
                stats['value'] += deal.estimated_monthly_volume or 0

        if not per_agent:
            return []

        names = {
            u.id: u.display_name or u.username
            for u in self.session.query(User).filter(User.id.in_(list(per_agent.keys()))).all()
        }
        return sorted(
            (
                {
                    'agentId': agent_id,
                    'name': names.get(agent_id, 'Unknown'),
                    'won': stats['won'],
                    'lost': stats['lost'],
                    'active': stats['active'],
                    'value': round(stats['value'], 2),
                }
                for agent_id, stats in per_agent.items()
            ),
            key=lambda a: -a['value']
        )
