"""
Digital vehicle inspections (DVI): templates, inspections, checklist items
and the public customer view.
"""

import logging
import secrets
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import or_

from database.auto_models import (
    AutoDviTemplate, AutoDviInspection, AutoDviItem, AutoRepairOrder,
    AutoCustomer, AutoVehicle, AutoShop, AutoUser
)
from services.event_logger import ShopActivityLogger
from validators import ValidationError

logger = logging.getLogger(__name__)

CONDITIONS = ('good', 'fair', 'poor')

# Seeded for every new shop
STANDARD_TEMPLATE_NAME = 'Standard Multi-Point Inspection'
STANDARD_TEMPLATE_CATEGORIES = [
    ('Under Hood', [
        'Engine Oil Level & Condition', 'Transmission Fluid', 'Brake Fluid',
        'Power Steering Fluid', 'Coolant Level & Condition', 'Windshield Washer Fluid',
        'Air Filter', 'Cabin Air Filter', 'Serpentine Belt', 'Battery & Terminals',
        'Hoses & Clamps',
    ]),
    ('Under Vehicle', [
        'Engine Oil Leaks', 'Transmission Leaks', 'Exhaust System', 'CV Joints/Boots',
        'Suspension Components', 'Steering Linkage', 'Differential Fluid',
    ]),
    ('Brakes', [
        'Front Brake Pads', 'Rear Brake Pads/Shoes', 'Front Rotors', 'Rear Rotors/Drums',
        'Brake Lines & Hoses', 'Parking Brake',
    ]),
    ('Tires & Wheels', [
        'Left Front Tire', 'Right Front Tire', 'Left Rear Tire', 'Right Rear Tire',
        'Tire Pressure (all)', 'Spare Tire', 'Wheel Alignment',
    ]),
    ('Exterior', [
        'Headlights', 'Tail Lights', 'Brake Lights', 'Turn Signals', 'Windshield',
        'Wiper Blades', 'Horn', 'Mirrors',
    ]),
    ('Interior', [
        'Dashboard Warning Lights', 'HVAC System', 'Seat Belts', 'Power Windows',
        'Door Locks',
    ]),
]


def standard_template_categories() -> List[Dict]:
    """Template categories in the stored JSON shape."""
    return [
        {
            'name': name,
            'sortOrder': index,
            'items': [{'name': item, 'sortOrder': n} for n, item in enumerate(items, start=1)],
        }
        for index, (name, items) in enumerate(STANDARD_TEMPLATE_CATEGORIES, start=1)
    ]


def condition_counts(items) -> Dict[str, int]:
    """good/fair/poor tallies; anything else counts as not inspected."""
    counts = {'good': 0, 'fair': 0, 'poor': 0, 'not_inspected': 0, 'total': 0}
    for item in items:
        condition = item.condition if hasattr(item, 'condition') else item.get('condition')
        counts[condition if condition in CONDITIONS else 'not_inspected'] += 1
        counts['total'] += 1
    return counts


class DviRepository:
    """Inspection access for one shop."""

    def __init__(self, session, shop_id: int, user_id: int = None):
        self.session = session
        self.shop_id = shop_id
        self.user_id = user_id
        self.activity = ShopActivityLogger(session, shop_id, user_id)

    def _get(self, inspection_id: int) -> Optional[AutoDviInspection]:
        return self.session.query(AutoDviInspection).filter(
            AutoDviInspection.id == inspection_id,
            AutoDviInspection.shop_id == self.shop_id
        ).first()

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    def list_templates(self) -> List[Dict]:
        """Shop templates plus global ones, defaults first."""
        rows = self.session.query(AutoDviTemplate).filter(
            or_(AutoDviTemplate.shop_id == self.shop_id, AutoDviTemplate.shop_id.is_(None)),
            AutoDviTemplate.is_active == True  # noqa: E712
        ).order_by(AutoDviTemplate.is_default.desc(), AutoDviTemplate.id).all()
        return [t.to_dict() for t in rows]

    def create_standard_template(self) -> AutoDviTemplate:
        template = AutoDviTemplate(
            shop_id=self.shop_id,
            name=STANDARD_TEMPLATE_NAME,
            categories=standard_template_categories(),
            is_default=True
        )
        self.session.add(template)
        self.session.flush()
        return template

    # =========================================================================
    # INSPECTIONS
    # =========================================================================

    def list_inspections(self) -> List[Dict]:
        """Inspections newest first, with RO, customer, vehicle and condition counts."""
        rows = self.session.query(AutoDviInspection).filter(
            AutoDviInspection.shop_id == self.shop_id
        ).order_by(AutoDviInspection.created_at.desc(), AutoDviInspection.id.desc()).all()

        result = []
        for inspection in rows:
            data = inspection.to_dict()
            ro = self.session.get(AutoRepairOrder, inspection.repair_order_id) if inspection.repair_order_id else None
            customer = self.session.get(AutoCustomer, ro.customer_id) if ro else None
            vehicle = self.session.get(AutoVehicle, ro.vehicle_id) if ro else None
            technician = self.session.get(AutoUser, inspection.technician_id) if inspection.technician_id else None

            data['repairOrder'] = {'roNumber': ro.ro_number, 'status': ro.status} if ro else None
            data['customer'] = {
                'id': customer.id, 'firstName': customer.first_name,
                'lastName': customer.last_name, 'phone': customer.phone,
            } if customer else None
            data['vehicle'] = {
                'id': vehicle.id, 'year': vehicle.year, 'make': vehicle.make,
                'model': vehicle.model, 'licensePlate': vehicle.license_plate,
            } if vehicle else None
            data['technician'] = technician.to_brief() if technician else None
            data['conditionCounts'] = condition_counts(inspection.items)
            result.append(data)
        return result

    def create_inspection(self, data: Dict) -> Dict:
        """
        Start an inspection, copying the template's checklist as ``good`` items.
        """
        ro = None
        if data.get('repairOrderId'):
            ro = self.session.query(AutoRepairOrder).filter(
                AutoRepairOrder.id == data['repairOrderId'],
                AutoRepairOrder.shop_id == self.shop_id
            ).first()
            if not ro:
                raise LookupError('Repair order not found')

        inspection = AutoDviInspection(
            repair_order_id=ro.id if ro else None,
            shop_id=self.shop_id,
            template_id=data.get('templateId'),
            technician_id=self.user_id,
            customer_id=ro.customer_id if ro else data.get('customerId'),
            vehicle_id=ro.vehicle_id if ro else data.get('vehicleId'),
            vehicle_mileage=data.get('vehicleMileage'),
            public_token=secrets.token_hex(32),
            notes=data.get('notes')
        )
        self.session.add(inspection)
        self.session.flush()

        if data.get('templateId'):
            template = self.session.get(AutoDviTemplate, data['templateId'])
            if not template or template.shop_id not in (None, self.shop_id):
                raise LookupError('Template not found')
            for category in template.categories or []:
                for item in category.get('items') or []:
                    self.session.add(AutoDviItem(
                        inspection_id=inspection.id,
                        category_name=category.get('name'),
                        item_name=item.get('name'),
                        condition='good',
                        sort_order=item.get('sortOrder') or 0
                    ))
            self.session.flush()

        self.activity.log('dvi_inspection', inspection.id, 'created', {'repairOrderId': inspection.repair_order_id})
        logger.info(f"Created DVI inspection: {inspection.id}")
        return inspection.to_dict()

    def get_inspection(self, inspection_id: int) -> Optional[Dict]:
        inspection = self._get(inspection_id)
        if not inspection:
            return None
        return {
            'inspection': inspection.to_dict(),
            'items': [i.to_dict() for i in inspection.items],
            'conditionCounts': condition_counts(inspection.items),
        }

    def update_item(self, item_id: int, data: Dict) -> Optional[Dict]:
        item = self.session.query(AutoDviItem).join(
            AutoDviInspection, AutoDviInspection.id == AutoDviItem.inspection_id
        ).filter(
            AutoDviItem.id == item_id,
            AutoDviInspection.shop_id == self.shop_id
        ).first()
        if not item:
            return None

        if 'condition' in data:
            if not data['condition']:
                raise ValidationError('condition is required', 'condition')
            item.condition = data['condition']
        if 'notes' in data:
            item.notes = data['notes']
        if 'photoUrls' in data:
            if data['photoUrls'] is not None and not isinstance(data['photoUrls'], list):
                raise ValidationError('photoUrls must be a list', 'photoUrls')
            item.photo_urls = data['photoUrls'] or []
        self.session.flush()
        return item.to_dict()

    def complete(self, inspection_id: int) -> Optional[Dict]:
        inspection = self._get(inspection_id)
        if not inspection:
            return None
        inspection.status = 'completed'
        inspection.completed_at = datetime.utcnow()
        inspection.updated_at = inspection.completed_at
        self.session.flush()
        self.activity.log('dvi_inspection', inspection.id, 'status_changed', {'newStatus': 'completed'})
        return inspection.to_dict()

    def send(self, inspection_id: int) -> Optional[Dict]:
        inspection = self._get(inspection_id)
        if not inspection:
            return None
        inspection.status = 'sent'
        inspection.sent_to_customer_at = datetime.utcnow()
        inspection.updated_at = inspection.sent_to_customer_at
        self.session.flush()
        self.activity.log('dvi_inspection', inspection.id, 'status_changed', {'newStatus': 'sent'})
        return inspection.to_dict()

    def report_context(self, inspection_id: int) -> Optional[Dict]:
        """Everything the PDF report needs."""
        inspection = self._get(inspection_id)
        if not inspection:
            return None
        return build_report_context(self.session, inspection)


def build_report_context(session, inspection: AutoDviInspection) -> Dict:
    ro = session.get(AutoRepairOrder, inspection.repair_order_id) if inspection.repair_order_id else None
    customer_id = ro.customer_id if ro else inspection.customer_id
    vehicle_id = ro.vehicle_id if ro else inspection.vehicle_id
    return {
        'inspection': inspection,
        'items': list(inspection.items),
        'repair_order': ro,
        'shop': session.get(AutoShop, inspection.shop_id),
        'customer': session.get(AutoCustomer, customer_id) if customer_id else None,
        'vehicle': session.get(AutoVehicle, vehicle_id) if vehicle_id else None,
        'technician': session.get(AutoUser, inspection.technician_id) if inspection.technician_id else None,
    }


def get_public_inspection(session, token: str) -> Optional[Dict]:
    """
    Customer-facing inspection report; the first view stamps customer_viewed_at.
    """
    inspection = session.query(AutoDviInspection).filter(
        AutoDviInspection.public_token == token
    ).first()
    if not inspection:
        return None

    if not inspection.customer_viewed_at:
        inspection.customer_viewed_at = datetime.utcnow()
        session.flush()

    ctx = build_report_context(session, inspection)
    shop, customer, vehicle, technician, ro = (
        ctx['shop'], ctx['customer'], ctx['vehicle'], ctx['technician'], ctx['repair_order']
    )
    return {
        'inspection': inspection.to_dict(),
        'items': [i.to_dict() for i in ctx['items']],
        'conditionCounts': condition_counts(ctx['items']),
        'shop': {
            'name': shop.name, 'phone': shop.phone, 'address': shop.address,
            'city': shop.city, 'state': shop.state, 'zip': shop.zip,
            'logoUrl': shop.logo_url,
        } if shop else None,
        'customer': {'firstName': customer.first_name} if customer else None,
        'vehicle': {
            'year': vehicle.year, 'make': vehicle.make, 'model': vehicle.model,
            'color': vehicle.color, 'licensePlate': vehicle.license_plate,
        } if vehicle else None,
        'technician': {'firstName': technician.first_name, 'lastName': technician.last_name} if technician else None,
        'repairOrder': {'roNumber': ro.ro_number} if ro else None,
    }


def public_report_context(session, token: str) -> Optional[Dict]:
    """PDF context for the customer link; viewing the PDF does not count as a view."""
    inspection = session.query(AutoDviInspection).filter(
        AutoDviInspection.public_token == token
    ).first()
    if not inspection:
        return None
    return build_report_context(session, inspection)
