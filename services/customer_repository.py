"""
Customer Repository - customers, vehicles and the communication log for
one shop.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from database.auto_models import (
    AutoCustomer, AutoVehicle, AutoRepairOrder, AutoCommunicationLog
)
from services.event_logger import ShopActivityLogger
from validators import ValidationError, sanitize_string, validate_email, validate_phone

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
BODY_PREVIEW_LENGTH = 200
HISTORY_LIMIT = 50
COMMUNICATION_CHANNELS = ('sms', 'email', 'phone')

CUSTOMER_FIELDS = {
    'firstName': 'first_name',
    'lastName': 'last_name',
    'email': 'email',
    'phone': 'phone',
    'address': 'address',
    'city': 'city',
    'state': 'state',
    'zip': 'zip',
    'notes': 'notes',
    'tags': 'tags',
    'preferredContactMethod': 'preferred_contact_method',
    'isActive': 'is_active',
}

VEHICLE_FIELDS = {
    'customerId': 'customer_id',
    'year': 'year',
    'make': 'make',
    'model': 'model',
    'trim': 'trim',
    'vin': 'vin',
    'licensePlate': 'license_plate',
    'color': 'color',
    'engineSize': 'engine_size',
    'transmission': 'transmission',
    'mileage': 'mileage',
    'notes': 'notes',
}
VEHICLE_INT_FIELDS = ('year', 'mileage', 'customer_id')


def _page_params(params: Dict[str, Any]):
    try:
        page = max(1, int(params.get('page') or 1))
        limit = int(params.get('limit') or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        raise ValidationError('page and limit must be integers')
    return page, max(1, min(limit, MAX_PAGE_SIZE))


class CustomerRepository:
    """Repository for shop customers and their vehicles."""

    def __init__(self, session, shop_id: int, user_id: int = None):
        self.session = session
        self.shop_id = shop_id
        self.user_id = user_id
        self.activity = ShopActivityLogger(session, shop_id, user_id)

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def list_customers(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Page of customers, most recently updated first, with optional search."""
        page, limit = _page_params(params)
        query = self.session.query(AutoCustomer).filter(AutoCustomer.shop_id == self.shop_id)

        search = (params.get('search') or '').strip()
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                AutoCustomer.first_name.ilike(pattern),
                AutoCustomer.last_name.ilike(pattern),
                AutoCustomer.email.ilike(pattern),
                AutoCustomer.phone.ilike(pattern)
            ))

        total = query.count()
        rows = query.order_by(
            AutoCustomer.updated_at.desc(), AutoCustomer.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return {'customers': [c.to_dict() for c in rows], 'total': total, 'page': page}

    def _get_customer(self, customer_id: int) -> Optional[AutoCustomer]:
        return self.session.query(AutoCustomer).filter(
            AutoCustomer.id == customer_id,
            AutoCustomer.shop_id == self.shop_id
        ).first()

    def get_customer(self, customer_id: int) -> Optional[Dict]:
        """Customer with vehicles and repair orders (newest first)."""
        customer = self._get_customer(customer_id)
        if not customer:
            return None
        vehicles = self.session.query(AutoVehicle).filter(
            AutoVehicle.customer_id == customer.id
        ).order_by(AutoVehicle.created_at.desc()).all()
        repair_orders = self.session.query(AutoRepairOrder).filter(
            AutoRepairOrder.customer_id == customer.id,
            AutoRepairOrder.shop_id == self.shop_id
        ).order_by(AutoRepairOrder.created_at.desc(), AutoRepairOrder.id.desc()).all()
        return {
            'customer': customer.to_dict(),
            'vehicles': [v.to_dict() for v in vehicles],
            'repairOrders': [ro.to_dict() for ro in repair_orders],
        }

    def _check_customer(self, data: Dict):
        if data.get('email'):
            is_valid, error = validate_email(data['email'])
            if not is_valid:
                raise ValidationError(error, 'email')
        if data.get('phone'):
            is_valid, error = validate_phone(data['phone'])
            if not is_valid:
                raise ValidationError(error, 'phone')
        for name_field in ('firstName', 'lastName'):
            if data.get(name_field):
                data[name_field] = sanitize_string(data[name_field], max_length=100)

    def create_customer(self, data: Dict) -> Dict:
        if not data.get('firstName') or not data.get('lastName'):
            raise ValidationError('First and last name are required')
        self._check_customer(data)

        customer = AutoCustomer(shop_id=self.shop_id)
        for key, column in CUSTOMER_FIELDS.items():
            if key in data:
                setattr(customer, column, data[key])
        if customer.email:
            customer.email = customer.email.strip().lower()
        self.session.add(customer)
        self.session.flush()

        self.activity.log('customer', customer.id, 'created', {'name': customer.full_name})
        logger.info(f"Created customer: {customer.id}")
        return customer.to_dict()

    def update_customer(self, customer_id: int, data: Dict) -> Optional[Dict]:
        customer = self._get_customer(customer_id)
        if not customer:
            return None
        self._check_customer(data)

        changes = {}
        for key, value in data.items():
            column = CUSTOMER_FIELDS.get(key)
            if not column:
                continue
            old = getattr(customer, column)
            if old != value:
                changes[key] = {'old': old, 'new': value}
                setattr(customer, column, value)

        if changes:
            customer.updated_at = datetime.utcnow()
            self.session.flush()
            self.activity.log('customer', customer.id, 'updated', {'changes': list(changes.keys())})
            logger.info(f"Updated customer {customer.id}: {list(changes.keys())}")
        return customer.to_dict()

    # =========================================================================
    # VEHICLES
    # =========================================================================

    def list_vehicles(self, customer_id: Optional[int] = None) -> List[Dict]:
        query = self.session.query(AutoVehicle).filter(AutoVehicle.shop_id == self.shop_id)
        if customer_id:
            query = query.filter(AutoVehicle.customer_id == customer_id)
        return [v.to_dict() for v in query.order_by(AutoVehicle.created_at.desc(), AutoVehicle.id.desc()).all()]

    def _vehicle_value(self, column: str, value):
        if column in VEHICLE_INT_FIELDS and value not in (None, ''):
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{column} must be a whole number", column)
        if column == 'vin' and value:
            return value.strip().upper()
        return value if value != '' else None

    def create_vehicle(self, data: Dict) -> Dict:
        if not data.get('customerId'):
            raise ValidationError('customerId is required', 'customerId')
        if not self._get_customer(data['customerId']):
            raise LookupError('Customer not found')

        vehicle = AutoVehicle(shop_id=self.shop_id)
        for key, column in VEHICLE_FIELDS.items():
            if key in data:
                setattr(vehicle, column, self._vehicle_value(column, data[key]))
        self.session.add(vehicle)
        self.session.flush()

        self.activity.log('vehicle', vehicle.id, 'created', {'customerId': vehicle.customer_id})
        logger.info(f"Created vehicle: {vehicle.id}")
        return vehicle.to_dict()

    def update_vehicle(self, vehicle_id: int, data: Dict) -> Optional[Dict]:
        vehicle = self.session.query(AutoVehicle).filter(
            AutoVehicle.id == vehicle_id,
            AutoVehicle.shop_id == self.shop_id
        ).first()
        if not vehicle:
            return None
        if data.get('customerId') and not self._get_customer(data['customerId']):
            raise LookupError('Customer not found')

        for key, column in VEHICLE_FIELDS.items():
            if key in data:
                setattr(vehicle, column, self._vehicle_value(column, data[key]))
        vehicle.updated_at = datetime.utcnow()
        self.session.flush()
        self.activity.log('vehicle', vehicle.id, 'updated', {'fields': list(data.keys())})
        return vehicle.to_dict()

    # =========================================================================
    # COMMUNICATION LOG
    # =========================================================================

    def log_communication(self, data: Dict) -> Dict:
        """Record an outbound message; the body is kept as a short preview."""
        if not data.get('customerId') or not data.get('channel'):
            raise ValidationError('customerId and channel are required')
        if data['channel'] not in COMMUNICATION_CHANNELS:
            raise ValidationError(f"channel must be one of: {', '.join(COMMUNICATION_CHANNELS)}", 'channel')
        if not self._get_customer(data['customerId']):
            raise LookupError('Customer not found')

        body = data.get('body') or data.get('bodyPreview') or ''
        entry = AutoCommunicationLog(
            shop_id=self.shop_id,
            customer_id=data['customerId'],
            repair_order_id=data.get('repairOrderId'),
            channel=data['channel'],
            direction='outbound',
            template_used=data.get('templateUsed'),
            recipient_phone=data.get('recipientPhone'),
            recipient_email=data.get('recipientEmail'),
            subject=data.get('subject'),
            body_preview=body[:BODY_PREVIEW_LENGTH] if body else None,
            invoice_url=data.get('invoiceUrl'),
            initiated_by=self.user_id
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(f"Logged {entry.channel} communication: {entry.id}")
        return entry.to_dict()

    def communication_history(self, customer_id: int) -> List[Dict]:
        rows = self.session.query(AutoCommunicationLog).filter(
            AutoCommunicationLog.shop_id == self.shop_id,
            AutoCommunicationLog.customer_id == customer_id
        ).order_by(
            AutoCommunicationLog.created_at.desc(), AutoCommunicationLog.id.desc()
        ).limit(HISTORY_LIMIT).all()

        result = []
        for row in rows:
            data = row.to_dict()
            data['userName'] = row.initiator.full_name if row.initiator else None
            result.append(data)
        return result
