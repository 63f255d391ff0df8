"""
Repair Order Repository - repair orders, line items, dual-pricing totals,
canned services, payments and the customer-facing estimate/payment links.

Totals are always recomputed through ``services.pricing.compute_ro_totals``
after line items or payments change.
"""

import logging
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from database.auto_models import (
    AutoShop, AutoCustomer, AutoVehicle, AutoRepairOrder, AutoLineItem,
    AutoPayment, AutoDviInspection, AutoCannedService
)
from services.event_logger import ShopActivityLogger
from services.pricing import (
    compute_ro_totals, line_prices, round_money, balance_after_payments, is_paid_in_full,
    SHOP_SUPPLY_SORT_ORDER, SHOP_SUPPLY_DESCRIPTION
)
from services.qbo_sync import queue_sync
from validators import (
    ValidationError, PermissionDenied, parse_number, parse_datetime,
    validate_line_item_request, validate_payment_request
)

logger = logging.getLogger(__name__)

RO_STATUSES = ('estimate', 'approved', 'in_progress', 'completed', 'invoiced', 'paid', 'declined')
PDF_TYPES = ('estimate', 'work_order', 'invoice')
PAYMENT_MANAGER_ROLES = ('owner', 'manager')
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

RO_FIELDS = {
    'technicianId': 'technician_id',
    'serviceAdvisorId': 'service_advisor_id',
    'bayId': 'bay_id',
    'customerConcern': 'customer_concern',
    'internalNotes': 'internal_notes',
    'promisedDate': 'promised_date',
    'mileageIn': 'mileage_in',
    'mileageOut': 'mileage_out',
}

LINE_FIELDS = {
    'type': 'type',
    'description': 'description',
    'partNumber': 'part_number',
    'laborHours': 'labor_hours',
    'laborRate': 'labor_rate',
    'vendorId': 'vendor_id',
    'isTaxable': 'is_taxable',
    'costPrice': 'cost_price',
    'sortOrder': 'sort_order',
    'status': 'status',
    'discountPercent': 'discount_percent',
    'discountReason': 'discount_reason',
}
LINE_NUMBER_FIELDS = ('labor_hours', 'labor_rate', 'cost_price', 'discount_percent')
PRICE_KEYS = ('quantity', 'unitPriceCash', 'unitPriceCard', 'isAdjustable', 'isNtnf')


def _customer_brief(customer: Optional[AutoCustomer]) -> Optional[Dict]:
    if not customer:
        return None
    return {
        'id': customer.id, 'firstName': customer.first_name, 'lastName': customer.last_name,
        'phone': customer.phone, 'email': customer.email,
    }


def _vehicle_brief(vehicle: Optional[AutoVehicle]) -> Optional[Dict]:
    if not vehicle:
        return None
    return {
        'id': vehicle.id, 'year': vehicle.year, 'make': vehicle.make, 'model': vehicle.model,
        'licensePlate': vehicle.license_plate, 'vin': vehicle.vin,
    }


def _shop_public(shop: Optional[AutoShop]) -> Optional[Dict]:
    if not shop:
        return None
    return {
        'name': shop.name, 'phone': shop.phone, 'email': shop.email,
        'address': shop.address, 'city': shop.city, 'state': shop.state, 'zip': shop.zip,
        'logoUrl': shop.logo_url, 'cardFeePercent': shop.card_fee_percent or 0,
    }


def completed_payments_total(session, ro_id: int) -> float:
    total = session.query(func.coalesce(func.sum(AutoPayment.amount), 0)).filter(
        AutoPayment.repair_order_id == ro_id,
        AutoPayment.status == 'completed'
    ).scalar()
    return round_money(total or 0)


def recalculate_totals(session, ro: AutoRepairOrder) -> AutoRepairOrder:
    """
    Recompute and store an RO's totals, per-line discount amounts and the
    shop-supply line.
    """
    shop = session.get(AutoShop, ro.shop_id)
    items = session.query(AutoLineItem).filter(AutoLineItem.repair_order_id == ro.id).all()
    paid = completed_payments_total(session, ro.id)
    totals = compute_ro_totals(items, shop, paid)

    for item, cash, card in totals.pop('line_discounts'):
        item.discount_amount_cash = cash
        item.discount_amount_card = card

    shop_supply = totals.pop('shop_supply')
    supply_line = next((i for i in items if i.is_shop_supply), None)
    if shop_supply and shop_supply['cash'] > 0:
        if not supply_line:
            supply_line = AutoLineItem(
                repair_order_id=ro.id,
                type='fee',
                description=SHOP_SUPPLY_DESCRIPTION,
                is_shop_supply=True,
                sort_order=SHOP_SUPPLY_SORT_ORDER
            )
            session.add(supply_line)
        supply_line.quantity = 1
        supply_line.unit_price_cash = shop_supply['cash']
        supply_line.unit_price_card = shop_supply['card']
        supply_line.total_cash = shop_supply['cash']
        supply_line.total_card = shop_supply['card']
        supply_line.is_taxable = shop_supply['is_taxable']
        supply_line.is_adjustable = True
        supply_line.status = 'approved'
        supply_line.approval_status = 'approved'
    elif supply_line:
        session.delete(supply_line)

    for column, value in totals.items():
        setattr(ro, column, value)
    ro.updated_at = datetime.utcnow()
    session.flush()
    session.expire(ro, ['line_items'])
    return ro


class RepairOrderRepository:
    """Repair order access for one shop."""

    def __init__(self, session, shop_id: int, user_id: int = None, role: str = None):
        self.session = session
        self.shop_id = shop_id
        self.user_id = user_id
        self.role = role
        self.activity = ShopActivityLogger(session, shop_id, user_id)

    def _shop(self) -> AutoShop:
        return self.session.get(AutoShop, self.shop_id)

    def _get(self, ro_id: int) -> Optional[AutoRepairOrder]:
        return self.session.query(AutoRepairOrder).filter(
            AutoRepairOrder.id == ro_id,
            AutoRepairOrder.shop_id == self.shop_id
        ).first()

    def _require(self, ro_id: int) -> AutoRepairOrder:
        ro = self._get(ro_id)
        if not ro:
            raise LookupError('Repair order not found')
        return ro

    # =========================================================================
    # REPAIR ORDERS
    # =========================================================================

    def list_repair_orders(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            page = max(1, int(params.get('page') or 1))
            limit = max(1, min(int(params.get('limit') or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE))
        except (TypeError, ValueError):
            raise ValidationError('page and limit must be integers')

        query = self.session.query(AutoRepairOrder).filter(AutoRepairOrder.shop_id == self.shop_id)
        if params.get('status'):
            query = query.filter(AutoRepairOrder.status == params['status'])

        total = query.count()
        rows = query.order_by(
            AutoRepairOrder.created_at.desc(), AutoRepairOrder.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        repair_orders = []
        for ro in rows:
            data = ro.to_dict()
            data['customer'] = _customer_brief(ro.customer)
            data['vehicle'] = _vehicle_brief(ro.vehicle)
            repair_orders.append(data)
        return {'repairOrders': repair_orders, 'total': total, 'page': page}

    def next_ro_number(self) -> str:
        count = self.session.query(AutoRepairOrder).filter(AutoRepairOrder.shop_id == self.shop_id).count()
        return f"RO-{count + 1:05d}"

    def create_repair_order(self, data: Dict) -> Dict:
        if not data.get('customerId') or not data.get('vehicleId'):
            raise ValidationError('customerId and vehicleId are required')

        customer = self.session.query(AutoCustomer).filter(
            AutoCustomer.id == data['customerId'], AutoCustomer.shop_id == self.shop_id
        ).first()
        if not customer:
            raise LookupError('Customer not found')
        vehicle = self.session.query(AutoVehicle).filter(
            AutoVehicle.id == data['vehicleId'], AutoVehicle.shop_id == self.shop_id
        ).first()
        if not vehicle:
            raise LookupError('Vehicle not found')

        ro = AutoRepairOrder(
            shop_id=self.shop_id,
            ro_number=self.next_ro_number(),
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            status='estimate',
            service_advisor_id=self.user_id,
            technician_id=data.get('technicianId'),
            bay_id=data.get('bayId'),
            customer_concern=data.get('customerConcern'),
            internal_notes=data.get('internalNotes'),
            promised_date=parse_datetime(data.get('promisedDate'), 'promisedDate'),
            mileage_in=data.get('mileageIn'),
            approval_token=secrets.token_hex(32)
        )
        self.session.add(ro)
        self.session.flush()

        self.activity.log('repair_order', ro.id, 'created', {'roNumber': ro.ro_number})
        logger.info(f"Created repair order: {ro.ro_number} (id {ro.id})")
        return ro.to_dict()

    def get_repair_order(self, ro_id: int) -> Optional[Dict]:
        ro = self._get(ro_id)
        if not ro:
            return None
        payments = self.session.query(AutoPayment).filter(
            AutoPayment.repair_order_id == ro.id
        ).order_by(AutoPayment.created_at).all()
        inspections = self.session.query(AutoDviInspection).filter(
            AutoDviInspection.repair_order_id == ro.id
        ).order_by(AutoDviInspection.created_at.desc()).all()
        return {
            'repairOrder': ro.to_dict(),
            'customer': ro.customer.to_dict() if ro.customer else None,
            'vehicle': ro.vehicle.to_dict() if ro.vehicle else None,
            'lineItems': [i.to_dict() for i in ro.line_items],
            'payments': [p.to_dict() for p in payments],
            'inspections': [i.to_dict() for i in inspections],
            'serviceAdvisor': ro.service_advisor.to_brief() if ro.service_advisor else None,
            'technician': ro.technician.to_brief() if ro.technician else None,
        }

    def update_repair_order(self, ro_id: int, data: Dict) -> Optional[Dict]:
        ro = self._get(ro_id)
        if not ro:
            return None

        for key, column in RO_FIELDS.items():
            if key not in data:
                continue
            value = data[key]
            if column == 'promised_date':
                value = parse_datetime(value, key)
            setattr(ro, column, value)

        if data.get('status') and data['status'] != ro.status:
            self._set_status(ro, data['status'])

        ro.updated_at = datetime.utcnow()
        self.session.flush()
        return ro.to_dict()

    def _set_status(self, ro: AutoRepairOrder, status: str):
        """Move an RO to ``status``, stamping timestamps and queueing syncs."""
        if status not in RO_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(RO_STATUSES)}", 'status')

        old_status = ro.status
        ro.status = status
        now = datetime.utcnow()
        if status == 'approved' and not ro.approved_at:
            ro.approved_at = now
        elif status == 'completed':
            ro.completed_at = now
        elif status == 'invoiced':
            ro.invoiced_at = now
            if not ro.invoice_number:
                ro.invoice_number = ro.ro_number.replace('RO-', 'INV-', 1)
            self.session.flush()
            queue_sync(self.session, self.shop_id, 'invoice', ro.id)
        elif status == 'paid' and not ro.paid_at:
            ro.paid_at = now

        self.activity.log('repair_order', ro.id, 'status_changed', {
            'oldStatus': old_status, 'newStatus': status,
        })
        logger.info(f"Repair order {ro.ro_number}: {old_status} -> {status}")

    def recalculate(self, ro_id: int) -> Dict:
        ro = self._require(ro_id)
        return recalculate_totals(self.session, ro).to_dict()

    # =========================================================================
    # LINE ITEMS
    # =========================================================================

    def _line(self, ro: AutoRepairOrder, line_id: int) -> Optional[AutoLineItem]:
        return self.session.query(AutoLineItem).filter(
            AutoLineItem.id == line_id,
            AutoLineItem.repair_order_id == ro.id
        ).first()

    def _apply_line_fields(self, item: AutoLineItem, data: Dict):
        for key, column in LINE_FIELDS.items():
            if key not in data:
                continue
            value = data[key]
            if column in LINE_NUMBER_FIELDS:
                value = parse_number(value, key)
            setattr(item, column, value)

    def _price_line(self, item: AutoLineItem, data: Dict):
        shop = self._shop()
        prices = line_prices(
            data.get('quantity', item.quantity),
            data.get('unitPriceCash', item.unit_price_cash),
            shop.card_fee_percent if shop else 0,
            unit_price_card=data.get('unitPriceCard'),
            is_ntnf=bool(data.get('isNtnf', item.is_ntnf)),
            is_adjustable=bool(data.get('isAdjustable', True if item.is_adjustable is None else item.is_adjustable))
        )
        for column, value in prices.items():
            setattr(item, column, value)
        if 'isNtnf' in data:
            item.is_ntnf = bool(data['isNtnf'])
        if 'isAdjustable' in data:
            item.is_adjustable = bool(data['isAdjustable'])

    def add_line_item(self, ro_id: int, data: Dict) -> Dict:
        ro = self._require(ro_id)
        is_valid, error = validate_line_item_request(data)
        if not is_valid:
            raise ValidationError(error)

        item = AutoLineItem(repair_order_id=ro.id, is_ntnf=False, is_adjustable=True, quantity=1)
        self._apply_line_fields(item, data)
        if item.sort_order is None:
            item.sort_order = len([i for i in ro.line_items if not i.is_shop_supply]) + 1
        self._price_line(item, data)
        self.session.add(item)
        self.session.flush()

        recalculate_totals(self.session, ro)
        self.activity.log('line_item', item.id, 'created', {'repairOrderId': ro.id, 'type': item.type})
        logger.info(f"Added line item {item.id} to {ro.ro_number}")
        return {'lineItem': item.to_dict(), 'repairOrder': ro.to_dict()}

    def update_line_item(self, ro_id: int, line_id: int, data: Dict) -> Optional[Dict]:
        ro = self._require(ro_id)
        item = self._line(ro, line_id)
        if not item:
            return None
        is_valid, error = validate_line_item_request(data, partial=True)
        if not is_valid:
            raise ValidationError(error)

        self._apply_line_fields(item, data)
        if any(key in data for key in PRICE_KEYS):
            self._price_line(item, data)
        self.session.flush()

        recalculate_totals(self.session, ro)
        return {'lineItem': item.to_dict(), 'repairOrder': ro.to_dict()}

    def line_item_owner(self, line_id: int) -> Optional[int]:
        """RO id of a line item in this shop, or None."""
        row = self.session.query(AutoLineItem.repair_order_id).join(
            AutoRepairOrder, AutoRepairOrder.id == AutoLineItem.repair_order_id
        ).filter(
            AutoLineItem.id == line_id,
            AutoRepairOrder.shop_id == self.shop_id
        ).first()
        return row[0] if row else None

    def delete_line_item(self, ro_id: int, line_id: int) -> Optional[Dict]:
        ro = self._require(ro_id)
        item = self._line(ro, line_id)
        if not item:
            return None
        self.session.delete(item)
        self.session.flush()
        self.session.expire(ro, ['line_items'])

        recalculate_totals(self.session, ro)
        self.activity.log('line_item', line_id, 'deleted', {'repairOrderId': ro.id})
        return ro.to_dict()

    def apply_canned_service(self, ro_id: int, service_id: int) -> Dict:
        """Copy a canned service's items onto the RO as pending lines."""
        ro = self._require(ro_id)
        service = self.session.query(AutoCannedService).filter(
            AutoCannedService.id == service_id,
            AutoCannedService.shop_id == self.shop_id
        ).first()
        if not service:
            raise LookupError('Canned service not found')

        shop = self._shop()
        sort_base = len([i for i in ro.line_items if not i.is_shop_supply]) + 1
        for index, source in enumerate(service.items):
            prices = line_prices(
                source.quantity, source.unit_price_cash,
                shop.card_fee_percent if shop else 0,
                unit_price_card=source.unit_price_card,
                is_adjustable=bool(source.is_adjustable)
            )
            self.session.add(AutoLineItem(
                repair_order_id=ro.id,
                type=source.type,
                description=source.description,
                part_number=source.part_number,
                labor_hours=source.labor_hours,
                labor_rate=source.labor_rate,
                cost_price=source.cost_price,
                is_taxable=source.is_taxable,
                is_adjustable=source.is_adjustable,
                is_ntnf=False,
                status='pending',
                sort_order=sort_base + index,
                **prices
            ))
        self.session.flush()
        self.session.expire(ro, ['line_items'])

        recalculate_totals(self.session, ro)
        self.activity.log('repair_order', ro.id, 'canned_service_applied', {
            'cannedServiceId': service.id, 'name': service.name,
        })
        logger.info(f"Applied canned service {service.id} to {ro.ro_number}")
        return {'repairOrder': ro.to_dict(), 'lineItems': [i.to_dict() for i in ro.line_items]}

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def _payment_summary(self, ro: AutoRepairOrder) -> Dict[str, float]:
        paid = completed_payments_total(self.session, ro.id)
        return {
            'totalPaid': paid,
            'balanceDue': balance_after_payments(ro.total_cash, paid),
            'totalCash': round_money(ro.total_cash),
            'totalCard': round_money(ro.total_card),
        }

    def list_payments(self, ro_id: int) -> Dict[str, Any]:
        ro = self._require(ro_id)
        payments = self.session.query(AutoPayment).filter(
            AutoPayment.repair_order_id == ro.id
        ).order_by(AutoPayment.created_at.desc(), AutoPayment.id.desc()).all()
        return {'payments': [p.to_dict() for p in payments], **self._payment_summary(ro)}

    def record_payment(self, ro_id: int, data: Dict) -> Dict:
        """
        Record a completed payment; the RO becomes paid once payments
        cover the cash total.
        """
        ro = self._require(ro_id)
        is_valid, error = validate_payment_request(data)
        if not is_valid:
            raise ValidationError(error)

        now = datetime.utcnow()
        payment = AutoPayment(
            repair_order_id=ro.id,
            shop_id=self.shop_id,
            amount=round_money(parse_number(data['amount'], 'amount')),
            method=data['method'],
            status='completed',
            transaction_id=data.get('referenceNumber') or data.get('transactionId'),
            tip_amount=parse_number(data.get('tipAmount'), 'tipAmount'),
            payment_token=secrets.token_hex(32),
            notes=data.get('notes'),
            processed_at=now
        )
        self.session.add(payment)
        self.session.flush()

        self.activity.log('repair_order', ro.id, 'payment_received', {
            'paymentId': payment.id, 'amount': payment.amount, 'method': payment.method,
        })
        queue_sync(self.session, self.shop_id, 'payment', payment.id)

        summary = self._payment_summary(ro)
        if is_paid_in_full(ro.total_cash, summary['totalPaid']) and ro.status != 'paid':
            self._set_status(ro, 'paid')
            ro.paid_at = now
        recalculate_totals(self.session, ro)

        logger.info(f"Recorded {payment.method} payment {payment.id} on {ro.ro_number}: {payment.amount}")
        return {'payment': payment.to_dict(), **summary}

    def payment_owner(self, payment_id: int) -> Optional[int]:
        """RO id of a payment in this shop, or None."""
        payment = self.session.query(AutoPayment).filter(
            AutoPayment.id == payment_id,
            AutoPayment.shop_id == self.shop_id
        ).first()
        return payment.repair_order_id if payment else None

    def void_payment(self, ro_id: int, payment_id: int) -> Dict:
        """
        Raises:
            PermissionDenied: caller is not an owner or manager
            LookupError: unknown payment
            ValidationError: payment already voided
        """
        if self.role not in PAYMENT_MANAGER_ROLES:
            raise PermissionDenied('Only owners and managers can void payments')

        ro = self._require(ro_id)
        payment = self.session.query(AutoPayment).filter(
            AutoPayment.id == payment_id,
            AutoPayment.repair_order_id == ro.id
        ).first()
        if not payment:
            raise LookupError('Payment not found')
        if payment.status == 'voided':
            raise ValidationError('Payment already voided')

        payment.status = 'voided'
        payment.voided_at = datetime.utcnow()
        self.session.flush()

        remaining = completed_payments_total(self.session, ro.id)
        if ro.status == 'paid' and remaining < round_money(ro.total_cash):
            ro.status = 'invoiced'
            ro.paid_at = None
        recalculate_totals(self.session, ro)

        self.activity.log('repair_order', ro.id, 'payment_voided', {
            'paymentId': payment.id, 'amount': payment.amount,
        })
        logger.info(f"Voided payment {payment.id} on {ro.ro_number}")
        return {'payment': payment.to_dict(), **self._payment_summary(ro)}

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def document_context(self, ro_id: int) -> Optional[Dict]:
        """ORM rows needed to render an estimate, work order or invoice."""
        ro = self._get(ro_id)
        if not ro:
            return None
        return {
            'repair_order': ro,
            'shop': self._shop(),
            'customer': ro.customer,
            'vehicle': ro.vehicle,
            'line_items': [i for i in ro.line_items if i.status in ('pending', 'approved')],
            'payments': [p for p in ro.payments if p.status == 'completed'],
        }


# =============================================================================
# PUBLIC ESTIMATE & PAYMENT LINKS
# =============================================================================

def _ro_by_token(session, token: str) -> AutoRepairOrder:
    ro = session.query(AutoRepairOrder).filter(AutoRepairOrder.approval_token == token).first()
    if not ro:
        raise LookupError('Estimate not found')
    return ro


def _public_activity(session, ro: AutoRepairOrder) -> ShopActivityLogger:
    return ShopActivityLogger(session, ro.shop_id, None)


def _line_id(value) -> Optional[int]:
    """Line ids posted by the public page; anything unparseable is None."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _approver(data: Dict) -> str:
    return data.get('customerName') or data.get('approvedBy') or 'Online'


def public_estimate_document(session, token: str) -> Dict:
    """Document context for the customer-facing estimate PDF."""
    ro = _ro_by_token(session, token)
    return {
        'repair_order': ro,
        'shop': session.get(AutoShop, ro.shop_id),
        'customer': ro.customer,
        'vehicle': ro.vehicle,
        'line_items': [i for i in ro.line_items if i.status in ('pending', 'approved')],
        'payments': [p for p in ro.payments if p.status == 'completed'],
    }


def get_public_estimate(session, token: str) -> Dict:
    ro = _ro_by_token(session, token)
    return {
        'repairOrder': ro.to_dict(),
        'customer': _customer_brief(ro.customer),
        'vehicle': _vehicle_brief(ro.vehicle),
        'shop': _shop_public(session.get(AutoShop, ro.shop_id)),
        'lineItems': [i.to_dict() for i in ro.line_items],
    }


def get_public_lines(session, token: str) -> List[Dict]:
    ro = _ro_by_token(session, token)
    return [i.to_dict() for i in ro.line_items if i.status in ('pending', 'approved')]


def approve_estimate(session, token: str, data: Dict) -> Dict:
    """Approve the whole estimate, or only ``approvedItemIds`` when given."""
    ro = _ro_by_token(session, token)
    if ro.status not in ('estimate', 'declined'):
        raise ValidationError('This estimate has already been approved')

    now = datetime.utcnow()
    approved_ids = data.get('approvedItemIds')
    if approved_ids:
        wanted = {_line_id(i) for i in approved_ids} - {None}
        for item in ro.line_items:
            if item.id in wanted:
                item.status = 'approved'
                item.approval_status = 'approved'
                item.approved_at = now

    ro.status = 'approved'
    ro.approved_at = now
    ro.approved_by = _approver(data)
    ro.approval_declined_at = None
    ro.approval_declined_reason = None
    recalculate_totals(session, ro)

    _public_activity(session, ro).log('repair_order', ro.id, 'estimate_approved', {
        'approvedBy': ro.approved_by, 'approvedItemIds': approved_ids or [],
    })
    logger.info(f"Estimate {ro.ro_number} approved by {ro.approved_by}")
    return {'success': True, 'repairOrder': ro.to_dict()}


def decline_estimate(session, token: str, data: Dict) -> Dict:
    ro = _ro_by_token(session, token)
    if ro.status != 'estimate':
        raise ValidationError('This estimate cannot be declined in its current state')

    ro.approval_declined_at = datetime.utcnow()
    ro.approval_declined_reason = data.get('reason')
    session.flush()

    _public_activity(session, ro).log('repair_order', ro.id, 'estimate_declined', {'reason': ro.approval_declined_reason})
    logger.info(f"Estimate {ro.ro_number} declined")
    return {'success': True, 'repairOrder': ro.to_dict()}


def ask_question(session, token: str, data: Dict) -> Dict:
    question = (data.get('question') or '').strip()
    if not question:
        raise ValidationError('Question is required', 'question')

    ro = _ro_by_token(session, token)
    ro.approval_question = question
    ro.approval_question_at = datetime.utcnow()
    session.flush()

    _public_activity(session, ro).log('repair_order', ro.id, 'estimate_question', {'question': question})
    return {'success': True}


def apply_line_approvals(session, token: str, data: Dict) -> Dict:
    """
    Per-line decisions from the customer. Lines that were already decided
    are left alone.
    """
    decisions = data.get('lineItems')
    if not isinstance(decisions, list) or not decisions:
        raise ValidationError('lineItems array is required', 'lineItems')

    ro = _ro_by_token(session, token)
    if ro.status not in ('estimate', 'declined'):
        raise ValidationError('This estimate cannot be modified in its current state')

    now = datetime.utcnow()
    lines = {item.id: item for item in ro.line_items}
    approved = declined = 0
    for decision in decisions:
        if not isinstance(decision, dict):
            continue
        item = lines.get(_line_id(decision.get('id')))
        if not item or item.approval_status in ('approved', 'declined'):
            continue
        if decision.get('approved'):
            item.approval_status = 'approved'
            item.status = 'approved'
            item.approved_at = now
            approved += 1
        else:
            item.approval_status = 'declined'
            item.status = 'voided'
            item.declined_at = now
            item.declined_reason = decision.get('declinedReason')
            declined += 1

    if approved:
        ro.status = 'approved'
        ro.approved_at = now
        ro.approved_by = _approver(data)
    elif declined:
        ro.status = 'declined'
        ro.approval_declined_at = now
    recalculate_totals(session, ro)

    _public_activity(session, ro).log('repair_order', ro.id, 'line_approvals', {
        'approved': approved, 'declined': declined,
    })
    logger.info(f"Estimate {ro.ro_number}: {approved} lines approved, {declined} declined")
    return {'success': True, 'repairOrder': ro.to_dict()}


def get_public_payment(session, token: str) -> Dict:
    payment = session.query(AutoPayment).filter(AutoPayment.payment_token == token).first()
    if not payment:
        raise LookupError('Payment not found')
    ro = session.get(AutoRepairOrder, payment.repair_order_id)
    return {
        'payment': payment.to_dict(),
        'repairOrder': {
            'roNumber': ro.ro_number, 'totalCash': round_money(ro.total_cash),
            'totalCard': round_money(ro.total_card), 'status': ro.status,
        } if ro else None,
        'shop': _shop_public(session.get(AutoShop, payment.shop_id)),
    }
