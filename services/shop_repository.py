"""
Shop Repository - tenancy, staff, settings, bays, appointments, canned
services and dashboard figures for the auto shop suite.
Mutations are written to the auto_activity_log table.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from auth import safe_generate_password_hash, AUTO_ROLES
from database.auto_models import (
    AutoShop, AutoUser, AutoInvitation, AutoBay, AutoIntegrationConfig,
    AutoAppointment, AutoCustomer, AutoVehicle, AutoRepairOrder, AutoPayment,
    AutoCannedService, AutoCannedServiceItem
)
from services.dvi_repository import DviRepository
from services.event_logger import ShopActivityLogger
from validators import ValidationError, PermissionDenied, parse_datetime, parse_number, validate_slug

logger = logging.getLogger(__name__)

OPEN_RO_STATUSES = ('estimate', 'approved', 'in_progress')
DEFAULT_BAY_COUNT = 4
MIN_PASSWORD_LENGTH = 8

# API field -> AutoShop column for the settings patch
SHOP_SETTINGS_FIELDS = {
    'name': 'name',
    'address': 'address',
    'city': 'city',
    'state': 'state',
    'zip': 'zip',
    'phone': 'phone',
    'email': 'email',
    'website': 'website',
    'timezone': 'timezone',
    'taxRate': 'tax_rate',
    'partsTaxRate': 'parts_tax_rate',
    'laborTaxRate': 'labor_tax_rate',
    'laborTaxable': 'labor_taxable',
    'laborRate': 'labor_rate',
    'cardFeePercent': 'card_fee_percent',
    'shopSupplyEnabled': 'shop_supply_enabled',
    'shopSupplyRatePct': 'shop_supply_rate_pct',
    'shopSupplyMaxAmount': 'shop_supply_max_amount',
    'shopSupplyTaxable': 'shop_supply_taxable',
    'invoiceFooter': 'invoice_footer',
    'logoUrl': 'logo_url',
    'brandingColors': 'branding_colors',
    'settings': 'settings',
}
SHOP_NUMBER_FIELDS = {
    'tax_rate', 'parts_tax_rate', 'labor_tax_rate', 'labor_rate', 'card_fee_percent',
    'shop_supply_rate_pct', 'shop_supply_max_amount',
}
PROTECTED_SHOP_FIELDS = ('id', 'slug', 'createdAt')

STAFF_FIELDS = {
    'role': 'role',
    'isActive': 'is_active',
    'phone': 'phone',
    'pin': 'pin',
    'payType': 'pay_type',
    'payRate': 'pay_rate',
}

BAY_FIELDS = {
    'name': 'name',
    'description': 'description',
    'isActive': 'is_active',
    'sortOrder': 'sort_order',
    'sellableHoursPerDay': 'sellable_hours_per_day',
}

APPOINTMENT_FIELDS = {
    'customerId': 'customer_id',
    'vehicleId': 'vehicle_id',
    'repairOrderId': 'repair_order_id',
    'bayId': 'bay_id',
    'technicianId': 'technician_id',
    'title': 'title',
    'description': 'description',
    'status': 'status',
    'startTime': 'start_time',
    'endTime': 'end_time',
    'estimatedDuration': 'estimated_duration',
    'color': 'color',
}

CANNED_SERVICE_FIELDS = {
    'name': 'name',
    'description': 'description',
    'category': 'category',
    'isActive': 'is_active',
    'defaultLaborHours': 'default_labor_hours',
    'defaultLaborRate': 'default_labor_rate',
    'isTaxable': 'is_taxable',
    'isAdjustable': 'is_adjustable',
    'sortOrder': 'sort_order',
}


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class ShopRepository:
    """Repository for one shop's configuration and staff."""

    def __init__(self, session, shop_id: int, user_id: int = None, role: str = None):
        self.session = session
        self.shop_id = shop_id
        self.user_id = user_id
        self.role = role
        self.activity = ShopActivityLogger(session, shop_id, user_id)

    def _shop(self) -> AutoShop:
        shop = self.session.get(AutoShop, self.shop_id)
        if not shop:
            raise LookupError('Shop not found')
        return shop

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_settings(self) -> Dict:
        return self._shop().to_dict()

    def update_settings(self, data: Dict) -> Dict:
        """Patch shop settings; id, slug and createdAt are never written."""
        shop = self._shop()
        changed = []
        for key, value in data.items():
            if key in PROTECTED_SHOP_FIELDS or key not in SHOP_SETTINGS_FIELDS:
                continue
            column = SHOP_SETTINGS_FIELDS[key]
            if column in SHOP_NUMBER_FIELDS:
                value = parse_number(value, key, 0)
            setattr(shop, column, value)
            changed.append(key)

        shop.updated_at = datetime.utcnow()
        self.session.flush()
        if changed:
            self.activity.log('shop', shop.id, 'settings_updated', {'fields': changed})
            logger.info(f"Updated shop settings {shop.id}: {changed}")
        return shop.to_dict()

    def get_integrations(self) -> Dict:
        config = self._integration_config()
        return config.to_dict()

    def update_integrations(self, data: Dict) -> Dict:
        config = self._integration_config()
        if 'quickbooksEnabled' in data:
            config.quickbooks_enabled = bool(data['quickbooksEnabled'])
        if 'quickbooksRealmId' in data:
            config.quickbooks_realm_id = data['quickbooksRealmId']
        config.updated_at = datetime.utcnow()
        self.session.flush()
        self.activity.log('integration_config', config.id, 'updated', {'fields': list(data.keys())})
        return config.to_dict()

    def _integration_config(self) -> AutoIntegrationConfig:
        config = self.session.query(AutoIntegrationConfig).filter(
            AutoIntegrationConfig.shop_id == self.shop_id
        ).first()
        if not config:
            config = AutoIntegrationConfig(shop_id=self.shop_id)
            self.session.add(config)
            self.session.flush()
        return config

    # =========================================================================
    # STAFF
    # =========================================================================

    def list_staff(self) -> Dict[str, List[Dict]]:
        """Active and inactive users plus pending invitations."""
        users = self.session.query(AutoUser).filter(
            AutoUser.shop_id == self.shop_id
        ).order_by(AutoUser.first_name, AutoUser.last_name).all()
        invitations = self.session.query(AutoInvitation).filter(
            AutoInvitation.shop_id == self.shop_id,
            AutoInvitation.status == 'pending'
        ).order_by(AutoInvitation.created_at.desc()).all()
        return {
            'users': [u.to_dict() for u in users],
            'invitations': [i.to_dict() for i in invitations],
        }

    def invite_staff(self, data: Dict, expiry_days: int = 7) -> Dict:
        """
        Invite a staff member by email.

        Raises:
            ValidationError: missing fields, bad role, existing user or pending invite
            PermissionDenied: a non-owner inviting a manager
        """
        email = (data.get('email') or '').strip().lower()
        role = data.get('role')
        if not email or not role:
            raise ValidationError('Email and role required')
        if role not in AUTO_ROLES or role == 'owner':
            raise ValidationError("role must be one of: manager, advisor, technician", 'role')
        if role == 'manager' and self.role != 'owner':
            raise PermissionDenied('Only owners can invite managers')

        existing = self.session.query(AutoUser).filter(
            AutoUser.shop_id == self.shop_id,
            AutoUser.email == email
        ).first()
        if existing:
            raise ValidationError('User already exists in this shop')

        pending = self.session.query(AutoInvitation).filter(
            AutoInvitation.shop_id == self.shop_id,
            AutoInvitation.email == email,
            AutoInvitation.status == 'pending'
        ).first()
        if pending:
            raise ValidationError('Invitation already pending for this email')

        invitation = AutoInvitation(
            shop_id=self.shop_id,
            email=email,
            role=role,
            invited_by_id=self.user_id,
            token=secrets.token_hex(32),
            expires_at=datetime.utcnow() + timedelta(days=expiry_days)
        )
        self.session.add(invitation)
        self.session.flush()

        self.activity.log('invitation', invitation.id, 'created', {'email': email, 'role': role})
        logger.info(f"Created invitation: {invitation.id} ({role})")
        return {
            'invitation': invitation.to_dict(),
            'inviteUrl': f"/auto/register?token={invitation.token}",
        }

    def update_staff(self, staff_id: int, data: Dict) -> Optional[Dict]:
        user = self.session.query(AutoUser).filter(
            AutoUser.id == staff_id,
            AutoUser.shop_id == self.shop_id
        ).first()
        if not user:
            return None

        if user.role == 'owner' and self.role != 'owner':
            raise PermissionDenied('Cannot modify owner account')
        if data.get('role') and data['role'] not in AUTO_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(AUTO_ROLES)}", 'role')

        changes = {}
        for key, column in STAFF_FIELDS.items():
            if key not in data:
                continue
            value = data[key]
            if column == 'pay_rate':
                value = parse_number(value, key)
            elif column == 'is_active':
                value = bool(value)
            old = getattr(user, column)
            if old != value:
                changes[key] = {'old': old if column != 'pin' else None, 'new': value if column != 'pin' else None}
                setattr(user, column, value)

        if changes:
            user.updated_at = datetime.utcnow()
            self.session.flush()
            self.activity.log('user', user.id, 'updated', {'fields': list(changes.keys())})
            logger.info(f"Updated staff {user.id}: {list(changes.keys())}")
        return user.to_dict()

    # =========================================================================
    # BAYS
    # =========================================================================

    def list_bays(self) -> List[Dict]:
        bays = self.session.query(AutoBay).filter(
            AutoBay.shop_id == self.shop_id
        ).order_by(AutoBay.sort_order, AutoBay.id).all()
        return [b.to_dict() for b in bays]

    def create_bay(self, data: Dict) -> Dict:
        if not data.get('name'):
            raise ValidationError('Bay name is required', 'name')
        bay = AutoBay(
            shop_id=self.shop_id,
            name=data['name'],
            description=data.get('description'),
            sort_order=data.get('sortOrder') or 0,
            sellable_hours_per_day=parse_number(data.get('sellableHoursPerDay'), 'sellableHoursPerDay', 8)
        )
        self.session.add(bay)
        self.session.flush()
        self.activity.log('bay', bay.id, 'created', {'name': bay.name})
        logger.info(f"Created bay: {bay.id}")
        return bay.to_dict()

    def _get_bay(self, bay_id: int) -> Optional[AutoBay]:
        return self.session.query(AutoBay).filter(
            AutoBay.id == bay_id,
            AutoBay.shop_id == self.shop_id
        ).first()

    def update_bay(self, bay_id: int, data: Dict) -> Optional[Dict]:
        bay = self._get_bay(bay_id)
        if not bay:
            return None
        for key, column in BAY_FIELDS.items():
            if key in data:
                value = data[key]
                if column == 'sellable_hours_per_day':
                    value = parse_number(value, key, 8)
                setattr(bay, column, value)
        self.session.flush()
        return bay.to_dict()

    def delete_bay(self, bay_id: int) -> bool:
        """Bays are referenced by ROs and appointments, so deleting deactivates."""
        bay = self._get_bay(bay_id)
        if not bay:
            return False
        bay.is_active = False
        self.session.flush()
        self.activity.log('bay', bay.id, 'deleted')
        logger.info(f"Deactivated bay: {bay.id}")
        return True

    # =========================================================================
    # APPOINTMENTS
    # =========================================================================

    def list_appointments(self, params: Dict[str, Any]) -> List[Dict]:
        """
        Appointments ordered by start time.

        Filters: ``start`` (start_time >=), ``end`` (end_time <=), ``bayId``,
        ``technicianId``.
        """
        query = self.session.query(AutoAppointment).filter(AutoAppointment.shop_id == self.shop_id)
        start = parse_datetime(params.get('start'), 'start')
        end = parse_datetime(params.get('end'), 'end')
        if start:
            query = query.filter(AutoAppointment.start_time >= start)
        if end:
            query = query.filter(AutoAppointment.end_time <= end)
        if params.get('bayId'):
            query = query.filter(AutoAppointment.bay_id == int(params['bayId']))
        if params.get('technicianId'):
            query = query.filter(AutoAppointment.technician_id == int(params['technicianId']))

        result = []
        for appt in query.order_by(AutoAppointment.start_time).all():
            data = appt.to_dict()
            customer = self.session.get(AutoCustomer, appt.customer_id) if appt.customer_id else None
            vehicle = self.session.get(AutoVehicle, appt.vehicle_id) if appt.vehicle_id else None
            data['customer'] = {
                'id': customer.id, 'firstName': customer.first_name,
                'lastName': customer.last_name, 'phone': customer.phone,
            } if customer else None
            data['vehicle'] = {
                'id': vehicle.id, 'year': vehicle.year, 'make': vehicle.make, 'model': vehicle.model,
            } if vehicle else None
            result.append(data)
        return result

    def _appointment_values(self, data: Dict) -> Dict:
        values = {}
        for key, column in APPOINTMENT_FIELDS.items():
            if key not in data:
                continue
            value = data[key]
            if column in ('start_time', 'end_time'):
                value = parse_datetime(value, key)
            values[column] = value
        return values

    def create_appointment(self, data: Dict) -> Dict:
        if not data.get('title') or not data.get('startTime') or not data.get('endTime'):
            raise ValidationError('title, startTime and endTime are required')
        values = self._appointment_values(data)
        if values['end_time'] < values['start_time']:
            raise ValidationError('endTime must be after startTime', 'endTime')
        values.setdefault('status', 'scheduled')
        values['status'] = values['status'] or 'scheduled'

        appt = AutoAppointment(shop_id=self.shop_id, **values)
        self.session.add(appt)
        self.session.flush()
        self.activity.log('appointment', appt.id, 'created', {'title': appt.title})
        logger.info(f"Created appointment: {appt.id}")
        return appt.to_dict()

    def _get_appointment(self, appointment_id: int) -> Optional[AutoAppointment]:
        return self.session.query(AutoAppointment).filter(
            AutoAppointment.id == appointment_id,
            AutoAppointment.shop_id == self.shop_id
        ).first()

    def update_appointment(self, appointment_id: int, data: Dict) -> Optional[Dict]:
        appt = self._get_appointment(appointment_id)
        if not appt:
            return None
        for column, value in self._appointment_values(data).items():
            setattr(appt, column, value)
        appt.updated_at = datetime.utcnow()
        self.session.flush()
        self.activity.log('appointment', appt.id, 'updated', {'fields': list(data.keys())})
        return appt.to_dict()

    def delete_appointment(self, appointment_id: int) -> bool:
        appt = self._get_appointment(appointment_id)
        if not appt:
            return False
        self.activity.log('appointment', appt.id, 'deleted', {'title': appt.title})
        self.session.delete(appt)
        self.session.flush()
        logger.info(f"Deleted appointment: {appointment_id}")
        return True

    # =========================================================================
    # CANNED SERVICES
    # =========================================================================

    def list_canned_services(self) -> List[Dict]:
        services = self.session.query(AutoCannedService).filter(
            AutoCannedService.shop_id == self.shop_id,
            AutoCannedService.is_active == True  # noqa: E712
        ).order_by(AutoCannedService.sort_order, AutoCannedService.name).all()
        return [s.to_dict() for s in services]

    def _get_canned_service(self, service_id: int) -> Optional[AutoCannedService]:
        return self.session.query(AutoCannedService).filter(
            AutoCannedService.id == service_id,
            AutoCannedService.shop_id == self.shop_id
        ).first()

    def _build_canned_item(self, item: Dict, index: int) -> AutoCannedServiceItem:
        if not item.get('type') or not item.get('description'):
            raise ValidationError('Each item needs a type and description')
        return AutoCannedServiceItem(
            type=item['type'],
            description=item['description'],
            part_number=item.get('partNumber'),
            quantity=parse_number(item.get('quantity'), 'quantity', 1),
            unit_price_cash=parse_number(item.get('unitPriceCash'), 'unitPriceCash', 0),
            unit_price_card=parse_number(item.get('unitPriceCard'), 'unitPriceCard'),
            labor_hours=parse_number(item.get('laborHours'), 'laborHours'),
            labor_rate=parse_number(item.get('laborRate'), 'laborRate'),
            cost_price=parse_number(item.get('costPrice'), 'costPrice'),
            is_taxable=item.get('isTaxable', True),
            is_adjustable=item.get('isAdjustable', True),
            sort_order=item.get('sortOrder', index)
        )

    def create_canned_service(self, data: Dict) -> Dict:
        if not data.get('name'):
            raise ValidationError('Service name is required', 'name')
        service = AutoCannedService(shop_id=self.shop_id)
        for key, column in CANNED_SERVICE_FIELDS.items():
            if key in data:
                setattr(service, column, data[key])
        for index, item in enumerate(data.get('items') or []):
            service.items.append(self._build_canned_item(item, index))
        self.session.add(service)
        self.session.flush()
        self.activity.log('canned_service', service.id, 'created', {'name': service.name})
        logger.info(f"Created canned service: {service.id}")
        return service.to_dict()

    def update_canned_service(self, service_id: int, data: Dict) -> Optional[Dict]:
        """Patch fields; an ``items`` list replaces all items."""
        service = self._get_canned_service(service_id)
        if not service:
            return None
        for key, column in CANNED_SERVICE_FIELDS.items():
            if key in data:
                setattr(service, column, data[key])
        if 'items' in data:
            service.items.clear()
            for index, item in enumerate(data['items'] or []):
                service.items.append(self._build_canned_item(item, index))
        service.updated_at = datetime.utcnow()
        self.session.flush()
        self.activity.log('canned_service', service.id, 'updated', {'fields': list(data.keys())})
        return service.to_dict()

    def delete_canned_service(self, service_id: int) -> bool:
        service = self._get_canned_service(service_id)
        if not service:
            return False
        self.activity.log('canned_service', service.id, 'deleted', {'name': service.name})
        self.session.delete(service)
        self.session.flush()
        logger.info(f"Deleted canned service: {service_id}")
        return True

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def dashboard_stats(self, now: datetime = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        ro_query = self.session.query(AutoRepairOrder).filter(AutoRepairOrder.shop_id == self.shop_id)
        month_revenue = self.session.query(func.coalesce(func.sum(AutoPayment.amount), 0)).filter(
            AutoPayment.shop_id == self.shop_id,
            AutoPayment.status == 'completed',
            AutoPayment.created_at >= _month_start(now)
        ).scalar()

        return {
            'totalRepairOrders': ro_query.count(),
            'openRepairOrders': ro_query.filter(AutoRepairOrder.status.in_(OPEN_RO_STATUSES)).count(),
            'totalCustomers': self.session.query(AutoCustomer).filter(
                AutoCustomer.shop_id == self.shop_id
            ).count(),
            'todayAppointments': self.session.query(AutoAppointment).filter(
                AutoAppointment.shop_id == self.shop_id,
                AutoAppointment.start_time >= today
            ).count(),
            'monthRevenue': round(float(month_revenue or 0), 2),
        }


# =============================================================================
# PLATFORM ADMINISTRATION
# =============================================================================

def create_shop(session, data: Dict) -> Dict:
    """
    Create a shop with its owner, four bays, the standard inspection
    template and an empty integration config.

    Raises:
        ValidationError: missing fields or a taken slug
    """
    required = ('name', 'slug', 'ownerEmail', 'ownerPassword', 'ownerFirstName', 'ownerLastName')
    if any(not data.get(key) for key in required):
        raise ValidationError('Shop name, slug, owner details required')

    slug = data['slug'].strip().lower()
    is_valid, error = validate_slug(slug)
    if not is_valid:
        raise ValidationError(error, 'slug')
    if len(data['ownerPassword']) < MIN_PASSWORD_LENGTH:
        raise ValidationError('Password must be at least 8 characters', 'ownerPassword')
    if session.query(AutoShop).filter(AutoShop.slug == slug).first():
        raise ValidationError('Shop URL slug already taken', 'slug')

    shop = AutoShop(
        name=data['name'],
        slug=slug,
        address=data.get('address'),
        city=data.get('city'),
        state=data.get('state'),
        zip=data.get('zip'),
        phone=data.get('phone'),
        email=data.get('email'),
        tax_rate=parse_number(data.get('taxRate'), 'taxRate', 0),
        parts_tax_rate=parse_number(data.get('partsTaxRate'), 'partsTaxRate', 0),
        labor_tax_rate=parse_number(data.get('laborTaxRate'), 'laborTaxRate', 0),
        labor_rate=parse_number(data.get('laborRate'), 'laborRate', 0),
        card_fee_percent=parse_number(data.get('cardFeePercent'), 'cardFeePercent', 0)
    )
    session.add(shop)
    session.flush()

    owner = AutoUser(
        shop_id=shop.id,
        email=data['ownerEmail'].strip().lower(),
        password_hash=safe_generate_password_hash(data['ownerPassword']),
        first_name=data['ownerFirstName'],
        last_name=data['ownerLastName'],
        phone=data.get('ownerPhone'),
        role='owner'
    )
    session.add(owner)
    session.flush()

    for index in range(1, DEFAULT_BAY_COUNT + 1):
        session.add(AutoBay(shop_id=shop.id, name=f"Bay {index}", sort_order=index))

    DviRepository(session, shop.id, owner.id).create_standard_template()
    session.add(AutoIntegrationConfig(shop_id=shop.id))
    session.flush()

    ShopActivityLogger(session, shop.id, owner.id).log('shop', shop.id, 'created', {'slug': slug})
    logger.info(f"Created shop: {shop.id} ({slug})")
    return {'shop': shop.to_dict(), 'owner': owner.to_dict()}


def list_shops(session) -> List[Dict]:
    shops = session.query(AutoShop).order_by(AutoShop.created_at.desc(), AutoShop.id.desc()).all()
    return [s.to_dict() for s in shops]


def get_shop_detail(session, shop_id: int) -> Optional[Dict]:
    shop = session.get(AutoShop, shop_id)
    if not shop:
        return None
    users = session.query(AutoUser).filter(AutoUser.shop_id == shop.id).all()
    return {
        'shop': shop.to_dict(),
        'users': [u.to_dict() for u in users],
        'bays': [b.to_dict() for b in shop.bays],
    }


# =============================================================================
# INVITATIONS
# =============================================================================

def _pending_invitation(session, token: str) -> AutoInvitation:
    invitation = session.query(AutoInvitation).filter(
        AutoInvitation.token == token,
        AutoInvitation.status == 'pending'
    ).first()
    if not invitation:
        raise LookupError('Invalid or expired invitation')
    if invitation.expires_at < datetime.utcnow():
        raise ValidationError('Invitation has expired')
    return invitation


def get_invitation(session, token: str) -> Dict:
    """
    Public invitation lookup for the registration page.

    Raises:
        LookupError: unknown or already used token
        ValidationError: the invitation expired
    """
    invitation = _pending_invitation(session, token)
    shop = session.get(AutoShop, invitation.shop_id)
    return {
        'email': invitation.email,
        'role': invitation.role,
        'shopName': shop.name if shop else None,
    }


def register_from_invitation(session, data: Dict) -> AutoUser:
    """Create the invited user and mark the invitation accepted."""
    token = data.get('token')
    first_name = data.get('firstName')
    last_name = data.get('lastName')
    password = data.get('password')
    if not token or not first_name or not last_name or not password:
        raise ValidationError('All fields required')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError('Password must be at least 8 characters', 'password')

    invitation = _pending_invitation(session, token)
    existing = session.query(AutoUser).filter(
        AutoUser.shop_id == invitation.shop_id,
        AutoUser.email == invitation.email
    ).first()
    if existing:
        raise ValidationError('Account already exists for this email')

    user = AutoUser(
        shop_id=invitation.shop_id,
        email=invitation.email,
        password_hash=safe_generate_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        phone=data.get('phone'),
        role=invitation.role
    )
    session.add(user)
    invitation.status = 'accepted'
    invitation.accepted_at = datetime.utcnow()
    session.flush()

    ShopActivityLogger(session, invitation.shop_id, user.id).log(
        'user', user.id, 'registered', {'role': user.role}
    )
    logger.info(f"Registered shop user: {user.id} (shop {user.shop_id})")
    return user
