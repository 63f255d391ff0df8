"""
Shop reports: job profitability, sales tax, technician productivity and
estimate approval conversion.

Every report covers ``[start, end]`` on repair order creation time.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from database.auto_models import AutoRepairOrder, AutoLineItem, AutoUser
from services.pricing import round_money
from validators import ValidationError

logger = logging.getLogger(__name__)

PROFITABILITY_STATUSES = ('paid', 'invoiced', 'completed')
TAX_STATUSES = ('invoiced', 'paid')


def parse_date_range(start_date: Optional[str], end_date: Optional[str],
                     now: datetime = None) -> Tuple[datetime, datetime]:
    """
    Both dates given (``YYYY-MM-DD``) cover whole days; otherwise the range
    is the start of the current month until now.
    """
    if start_date and end_date:
        try:
            start = datetime.strptime(start_date, '%Y-%m-%d')
            end = datetime.strptime(end_date, '%Y-%m-%d').replace(hour=23, minute=59, second=59)
        except ValueError:
            raise ValidationError('Dates must be formatted YYYY-MM-DD')
        return start, end

    now = now or datetime.utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), now


def _pct(part: float, whole: float) -> float:
    return round_money(part / whole * 100) if whole > 0 else 0


class ShopReports:
    """Report queries for one shop."""

    def __init__(self, session, shop_id: int):
        self.session = session
        self.shop_id = shop_id

    def _repair_orders(self, start: datetime, end: datetime, statuses=None):
        query = self.session.query(AutoRepairOrder).filter(
            AutoRepairOrder.shop_id == self.shop_id,
            AutoRepairOrder.created_at >= start,
            AutoRepairOrder.created_at <= end
        )
        if statuses:
            query = query.filter(AutoRepairOrder.status.in_(statuses))
        return query.order_by(AutoRepairOrder.created_at.desc(), AutoRepairOrder.id.desc())

    def job_profitability(self, start: datetime, end: datetime) -> Dict[str, Any]:
        """Revenue is the sum of line cash totals; cost the sum of line cost prices."""
        total_revenue = total_cost = 0.0
        details = []
        for ro in self._repair_orders(start, end, PROFITABILITY_STATUSES).all():
            revenue = sum(item.total_cash or 0 for item in ro.line_items)
            cost = sum(item.cost_price or 0 for item in ro.line_items)
            profit = revenue - cost
            total_revenue += revenue
            total_cost += cost

            customer = ro.customer
            vehicle = ro.vehicle
            details.append({
                'roId': ro.id,
                'roNumber': ro.ro_number,
                'customerName': customer.full_name if customer else '',
                'vehicleInfo': vehicle.display_name if vehicle else '',
                'revenue': round_money(revenue),
                'cost': round_money(cost),
                'profit': round_money(profit),
                'margin': _pct(profit, revenue),
                'date': ro.created_at.isoformat() if ro.created_at else None,
            })

        total_profit = total_revenue - total_cost
        return {
            'details': details,
            'summary': {
                'totalRevenue': round_money(total_revenue),
                'totalCost': round_money(total_cost),
                'totalProfit': round_money(total_profit),
                'avgMargin': _pct(total_profit, total_revenue),
            },
        }

    def sales_tax(self, start: datetime, end: datetime) -> Dict[str, Any]:
        total_parts = total_labor = 0.0
        details = []
        rows = self._repair_orders(start, end, TAX_STATUSES).all()
        for ro in rows:
            parts_tax = ro.tax_parts_amount or 0
            labor_tax = ro.tax_labor_amount or 0
            total_parts += parts_tax
            total_labor += labor_tax
            details.append({
                'roNumber': ro.ro_number,
                'date': ro.created_at.isoformat() if ro.created_at else None,
                'subtotal': round_money(ro.subtotal_cash),
                'partsTax': round_money(parts_tax),
                'laborTax': round_money(labor_tax),
                'totalTax': round_money(parts_tax + labor_tax),
                'total': round_money(ro.total_cash),
            })

        return {
            'totalPartsTax': round_money(total_parts),
            'totalLaborTax': round_money(total_labor),
            'totalTax': round_money(total_parts + total_labor),
            'roCount': len(rows),
            'details': details,
        }

    def tech_productivity(self, start: datetime, end: datetime) -> Dict[str, Any]:
        """Labor lines grouped by the RO's assigned technician."""
        rows = self.session.query(AutoLineItem, AutoRepairOrder, AutoUser).join(
            AutoRepairOrder, AutoRepairOrder.id == AutoLineItem.repair_order_id
        ).outerjoin(
            AutoUser, AutoUser.id == AutoRepairOrder.technician_id
        ).filter(
            AutoRepairOrder.shop_id == self.shop_id,
            AutoRepairOrder.created_at >= start,
            AutoRepairOrder.created_at <= end,
            AutoRepairOrder.technician_id.isnot(None),
            AutoLineItem.type == 'labor'
        ).all()

        techs = OrderedDict()
        for item, ro, tech in rows:
            entry = techs.setdefault(ro.technician_id, {
                'id': ro.technician_id,
                'name': tech.full_name if tech else 'Unknown',
                'hours': 0.0,
                'revenue': 0.0,
                'ros': set(),
            })
            entry['hours'] += item.labor_hours or 0
            entry['revenue'] += item.total_cash or 0
            entry['ros'].add(ro.id)

        return {
            'technicians': [
                {
                    'id': t['id'],
                    'name': t['name'],
                    'totalHours': round_money(t['hours']),
                    'totalRevenue': round_money(t['revenue']),
                    'roCount': len(t['ros']),
                    'effectiveRate': round_money(t['revenue'] / t['hours']) if t['hours'] > 0 else 0,
                }
                for t in techs.values()
            ]
        }

    def approval_conversion(self, start: datetime, end: datetime) -> Dict[str, Any]:
        rows = self._repair_orders(start, end).all()
        approved = declined = pending = 0
        approval_hours = []
        for ro in rows:
            if ro.approved_at:
                approved += 1
                if ro.created_at:
                    approval_hours.append((ro.approved_at - ro.created_at).total_seconds() / 3600)
            elif ro.approval_declined_at:
                declined += 1
            elif ro.status == 'estimate':
                pending += 1

        return {
            'totalEstimates': len(rows),
            'approved': approved,
            'declined': declined,
            'pending': pending,
            'conversionRate': _pct(approved, len(rows)),
            'avgApprovalTimeHours': round_money(sum(approval_hours) / len(approval_hours)) if approval_hours else 0,
        }
