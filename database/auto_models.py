"""
SQLAlchemy models for the Auto Shop suite.
Shops, staff, customers, vehicles, repair orders with dual pricing,
payments, inspections, scheduling, tech clock sessions and QuickBooks sync.
"""

from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database.connection import Base
from database.models import JSONType, iso


def money(value):
    """Round an optional float to cents for API payloads."""
    return round(value or 0, 2)


# =============================================================================
# SHOPS & STAFF
# =============================================================================

class AutoShop(Base):
    """A repair shop tenant and its pricing/tax settings."""
    __tablename__ = 'auto_shops'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(2))
    zip = Column(String(10))
    phone = Column(String(20))
    email = Column(String(255))
    website = Column(String(255))
    timezone = Column(String(50), default='America/New_York')

    # Rates are fractions (0.0825 = 8.25%)
    tax_rate = Column(Float, default=0)
    parts_tax_rate = Column(Float, default=0)
    labor_tax_rate = Column(Float, default=0)
    labor_taxable = Column(Boolean, default=False)
    labor_rate = Column(Float, default=0)
    card_fee_percent = Column(Float, default=0)
    shop_supply_enabled = Column(Boolean, default=False)
    shop_supply_rate_pct = Column(Float, default=0)
    shop_supply_max_amount = Column(Float, default=0)
    shop_supply_taxable = Column(Boolean, default=True)

    invoice_footer = Column(Text)
    logo_url = Column(Text)
    branding_colors = Column(JSONType, default=dict)
    settings = Column(JSONType, default=dict)
    qbo_account_mappings = Column(JSONType, default=dict)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("AutoUser", back_populates="shop")
    bays = relationship("AutoBay", back_populates="shop", order_by="AutoBay.sort_order")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'zip': self.zip,
            'phone': self.phone,
            'email': self.email,
            'website': self.website,
            'timezone': self.timezone,
            'taxRate': self.tax_rate or 0,
            'partsTaxRate': self.parts_tax_rate or 0,
            'laborTaxRate': self.labor_tax_rate or 0,
            'laborTaxable': bool(self.labor_taxable),
            'laborRate': self.labor_rate or 0,
            'cardFeePercent': self.card_fee_percent or 0,
            'shopSupplyEnabled': bool(self.shop_supply_enabled),
            'shopSupplyRatePct': self.shop_supply_rate_pct or 0,
            'shopSupplyMaxAmount': self.shop_supply_max_amount or 0,
            'shopSupplyTaxable': bool(self.shop_supply_taxable),
            'invoiceFooter': self.invoice_footer,
            'logoUrl': self.logo_url,
            'brandingColors': self.branding_colors or {},
            'settings': self.settings or {},
            'isActive': self.is_active,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


class AutoUser(Base):
    """Shop staff member (owner, manager, advisor or technician)."""
    __tablename__ = 'auto_users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(Text, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20))
    role = Column(String(50), nullable=False)
    pin = Column(String(10))
    pay_type = Column(String(20), default='hourly')
    pay_rate = Column(Float)
    is_active = Column(Boolean, default=True)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    shop = relationship("AutoShop", back_populates="users")

    __table_args__ = (
        UniqueConstraint('shop_id', 'email', name='uq_auto_users_shop_email'),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phone': self.phone,
            'role': self.role,
            'payType': self.pay_type,
            'payRate': self.pay_rate,
            'hasPin': bool(self.pin),
            'isActive': self.is_active,
            'lastLoginAt': iso(self.last_login_at),
            'createdAt': iso(self.created_at)
        }

    def to_brief(self):
        return {'id': self.id, 'firstName': self.first_name, 'lastName': self.last_name}


class AutoInvitation(Base):
    """Pending staff invitation redeemed through /auth/register."""
    __tablename__ = 'auto_invitations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    email = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)
    invited_by_id = Column(Integer, ForeignKey('auto_users.id'), nullable=False)
    token = Column(String(255), unique=True, nullable=False)
    status = Column(String(20), default='pending')  # pending, accepted, expired
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'email': self.email,
            'role': self.role,
            'invitedById': self.invited_by_id,
            'status': self.status,
            'expiresAt': iso(self.expires_at),
            'acceptedAt': iso(self.accepted_at),
            'createdAt': iso(self.created_at)
        }


class AutoBay(Base):
    __tablename__ = 'auto_bays'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    name = Column(String(50), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    sellable_hours_per_day = Column(Float, default=8)
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("AutoShop", back_populates="bays")

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'name': self.name,
            'description': self.description,
            'isActive': self.is_active,
            'sortOrder': self.sort_order,
            'sellableHoursPerDay': self.sellable_hours_per_day,
            'createdAt': iso(self.created_at)
        }


class AutoIntegrationConfig(Base):
    """Per-shop third-party integration settings (QuickBooks tokens)."""
    __tablename__ = 'auto_integration_configs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), unique=True, nullable=False)
    quickbooks_enabled = Column(Boolean, default=False)
    quickbooks_realm_id = Column(String(100))
    quickbooks_access_token = Column(Text)
    quickbooks_refresh_token = Column(Text)
    quickbooks_token_expires_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        # Tokens never leave the server
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'quickbooksEnabled': bool(self.quickbooks_enabled),
            'quickbooksRealmId': self.quickbooks_realm_id,
            'quickbooksConnected': bool(self.quickbooks_refresh_token),
            'updatedAt': iso(self.updated_at)
        }


# =============================================================================
# CUSTOMERS & VEHICLES
# =============================================================================

class AutoCustomer(Base):
    __tablename__ = 'auto_customers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255))
    phone = Column(String(20))
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(2))
    zip = Column(String(10))
    notes = Column(Text)
    tags = Column(JSONType, default=list)
    preferred_contact_method = Column(String(20))
    qbo_customer_id = Column(String(50))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vehicles = relationship("AutoVehicle", back_populates="customer")

    __table_args__ = (
        Index('ix_auto_customers_shop', 'shop_id'),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'zip': self.zip,
            'notes': self.notes,
            'tags': self.tags or [],
            'preferredContactMethod': self.preferred_contact_method,
            'isActive': self.is_active,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


class AutoVehicle(Base):
    __tablename__ = 'auto_vehicles'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    customer_id = Column(Integer, ForeignKey('auto_customers.id'), nullable=False)
    year = Column(Integer)
    make = Column(String(100))
    model = Column(String(100))
    trim = Column(String(100))
    vin = Column(String(17))
    license_plate = Column(String(20))
    color = Column(String(50))
    engine_size = Column(String(20))
    transmission = Column(String(20))
    mileage = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("AutoCustomer", back_populates="vehicles")

    __table_args__ = (
        Index('ix_auto_vehicles_customer', 'customer_id'),
    )

    @property
    def display_name(self):
        return ' '.join(str(part) for part in (self.year, self.make, self.model) if part)

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'customerId': self.customer_id,
            'year': self.year,
            'make': self.make,
            'model': self.model,
            'trim': self.trim,
            'vin': self.vin,
            'licensePlate': self.license_plate,
            'color': self.color,
            'engineSize': self.engine_size,
            'transmission': self.transmission,
            'mileage': self.mileage,
            'notes': self.notes,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


# =============================================================================
# REPAIR ORDERS
# =============================================================================

class AutoRepairOrder(Base):
    """Repair order with cash/card totals maintained by the pricing engine."""
    __tablename__ = 'auto_repair_orders'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    ro_number = Column(String(20), nullable=False)
    customer_id = Column(Integer, ForeignKey('auto_customers.id'), nullable=False)
    vehicle_id = Column(Integer, ForeignKey('auto_vehicles.id'), nullable=False)
    status = Column(String(20), default='estimate', nullable=False)
    service_advisor_id = Column(Integer, ForeignKey('auto_users.id'))
    technician_id = Column(Integer, ForeignKey('auto_users.id'))
    bay_id = Column(Integer, ForeignKey('auto_bays.id'))
    customer_concern = Column(Text)
    internal_notes = Column(Text)
    promised_date = Column(DateTime)
    mileage_in = Column(Integer)
    mileage_out = Column(Integer)

    subtotal_cash = Column(Float, default=0)
    subtotal_card = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    tax_parts_amount = Column(Float, default=0)
    tax_labor_amount = Column(Float, default=0)
    total_cash = Column(Float, default=0)
    total_card = Column(Float, default=0)
    total_adjustable = Column(Float, default=0)
    total_non_adjustable = Column(Float, default=0)
    fee_amount = Column(Float, default=0)
    paid_amount = Column(Float, default=0)
    balance_due = Column(Float, default=0)
    shop_supply_amount_cash = Column(Float, default=0)
    shop_supply_amount_card = Column(Float, default=0)
    discount_amount_cash = Column(Float, default=0)
    discount_amount_card = Column(Float, default=0)

    approval_token = Column(String(100), unique=True)
    approved_at = Column(DateTime)
    approved_by = Column(String(100))
    estimate_sent_at = Column(DateTime)
    approval_declined_at = Column(DateTime)
    approval_declined_reason = Column(Text)
    approval_question = Column(Text)
    approval_question_at = Column(DateTime)

    invoice_number = Column(String(20))
    invoiced_at = Column(DateTime)
    completed_at = Column(DateTime)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("AutoCustomer")
    vehicle = relationship("AutoVehicle")
    service_advisor = relationship("AutoUser", foreign_keys=[service_advisor_id])
    technician = relationship("AutoUser", foreign_keys=[technician_id])
    line_items = relationship("AutoLineItem", back_populates="repair_order",
                              cascade="all, delete-orphan", order_by="AutoLineItem.sort_order")
    payments = relationship("AutoPayment", back_populates="repair_order")

    __table_args__ = (
        UniqueConstraint('shop_id', 'ro_number', name='uq_auto_ro_shop_number'),
        Index('ix_auto_repair_orders_shop_status', 'shop_id', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'roNumber': self.ro_number,
            'customerId': self.customer_id,
            'vehicleId': self.vehicle_id,
            'status': self.status,
            'serviceAdvisorId': self.service_advisor_id,
            'technicianId': self.technician_id,
            'bayId': self.bay_id,
            'customerConcern': self.customer_concern,
            'internalNotes': self.internal_notes,
            'promisedDate': iso(self.promised_date),
            'mileageIn': self.mileage_in,
            'mileageOut': self.mileage_out,
            'subtotalCash': money(self.subtotal_cash),
            'subtotalCard': money(self.subtotal_card),
            'taxAmount': money(self.tax_amount),
            'taxPartsAmount': money(self.tax_parts_amount),
            'taxLaborAmount': money(self.tax_labor_amount),
            'totalCash': money(self.total_cash),
            'totalCard': money(self.total_card),
            'totalAdjustable': money(self.total_adjustable),
            'totalNonAdjustable': money(self.total_non_adjustable),
            'feeAmount': money(self.fee_amount),
            'paidAmount': money(self.paid_amount),
            'balanceDue': money(self.balance_due),
            'shopSupplyAmountCash': money(self.shop_supply_amount_cash),
            'shopSupplyAmountCard': money(self.shop_supply_amount_card),
            'discountAmountCash': money(self.discount_amount_cash),
            'discountAmountCard': money(self.discount_amount_card),
            'approvalToken': self.approval_token,
            'approvedAt': iso(self.approved_at),
            'approvedBy': self.approved_by,
            'estimateSentAt': iso(self.estimate_sent_at),
            'approvalDeclinedAt': iso(self.approval_declined_at),
            'approvalDeclinedReason': self.approval_declined_reason,
            'approvalQuestion': self.approval_question,
            'approvalQuestionAt': iso(self.approval_question_at),
            'invoiceNumber': self.invoice_number,
            'invoicedAt': iso(self.invoiced_at),
            'completedAt': iso(self.completed_at),
            'paidAt': iso(self.paid_at),
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


class AutoLineItem(Base):
    """Labor, parts, sublet, fee or discount line on a repair order."""
    __tablename__ = 'auto_line_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    repair_order_id = Column(Integer, ForeignKey('auto_repair_orders.id'), nullable=False)
    type = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)
    part_number = Column(String(100))
    quantity = Column(Float, default=1)
    unit_price_cash = Column(Float, nullable=False, default=0)
    unit_price_card = Column(Float, nullable=False, default=0)
    total_cash = Column(Float, nullable=False, default=0)
    total_card = Column(Float, nullable=False, default=0)
    labor_hours = Column(Float)
    labor_rate = Column(Float)
    vendor_id = Column(String(100))
    is_taxable = Column(Boolean, default=True)
    is_adjustable = Column(Boolean, default=True)
    is_ntnf = Column(Boolean, default=False)
    is_shop_supply = Column(Boolean, default=False)
    cost_price = Column(Float)
    sort_order = Column(Integer, default=0)
    status = Column(String(20), default='pending')  # pending, approved, declined, voided
    discount_percent = Column(Float)
    discount_amount_cash = Column(Float, default=0)
    discount_amount_card = Column(Float, default=0)
    discount_reason = Column(Text)
    approval_status = Column(String(20), default='pending')
    approved_at = Column(DateTime)
    declined_at = Column(DateTime)
    declined_reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    repair_order = relationship("AutoRepairOrder", back_populates="line_items")

    __table_args__ = (
        Index('ix_auto_line_items_ro', 'repair_order_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'repairOrderId': self.repair_order_id,
            'type': self.type,
            'description': self.description,
            'partNumber': self.part_number,
            'quantity': self.quantity,
            'unitPriceCash': money(self.unit_price_cash),
            'unitPriceCard': money(self.unit_price_card),
            'totalCash': money(self.total_cash),
            'totalCard': money(self.total_card),
            'laborHours': self.labor_hours,
            'laborRate': self.labor_rate,
            'vendorId': self.vendor_id,
            'isTaxable': bool(self.is_taxable),
            'isAdjustable': bool(self.is_adjustable),
            'isNtnf': bool(self.is_ntnf),
            'isShopSupply': bool(self.is_shop_supply),
            'costPrice': self.cost_price,
            'sortOrder': self.sort_order,
            'status': self.status,
            'discountPercent': self.discount_percent,
            'discountAmountCash': money(self.discount_amount_cash),
            'discountAmountCard': money(self.discount_amount_card),
            'discountReason': self.discount_reason,
            'approvalStatus': self.approval_status,
            'approvedAt': iso(self.approved_at),
            'declinedAt': iso(self.declined_at),
            'declinedReason': self.declined_reason,
            'createdAt': iso(self.created_at)
        }


class AutoPayment(Base):
    __tablename__ = 'auto_payments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    repair_order_id = Column(Integer, ForeignKey('auto_repair_orders.id'), nullable=False)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    amount = Column(Float, nullable=False)
    method = Column(String(20), nullable=False)
    status = Column(String(20), default='pending')  # pending, completed, voided
    transaction_id = Column(String(255))
    tip_amount = Column(Float)
    payment_token = Column(String(100), unique=True)
    notes = Column(Text)
    processed_at = Column(DateTime)
    voided_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    repair_order = relationship("AutoRepairOrder", back_populates="payments")

    def to_dict(self):
        return {
            'id': self.id,
            'repairOrderId': self.repair_order_id,
            'shopId': self.shop_id,
            'amount': money(self.amount),
            'method': self.method,
            'status': self.status,
            'transactionId': self.transaction_id,
            'tipAmount': self.tip_amount,
            'paymentToken': self.payment_token,
            'notes': self.notes,
            'processedAt': iso(self.processed_at),
            'voidedAt': iso(self.voided_at),
            'createdAt': iso(self.created_at)
        }


class AutoCannedService(Base):
    """Reusable bundle of line items (e.g. "Front brake job")."""
    __tablename__ = 'auto_canned_services'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    name = Column(String(150), nullable=False)
    description = Column(Text)
    category = Column(String(50))
    is_active = Column(Boolean, default=True)
    default_labor_hours = Column(Float)
    default_labor_rate = Column(Float)
    is_taxable = Column(Boolean, default=True)
    is_adjustable = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("AutoCannedServiceItem", back_populates="canned_service",
                         cascade="all, delete-orphan", order_by="AutoCannedServiceItem.sort_order")

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'shopId': self.shop_id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'isActive': self.is_active,
            'defaultLaborHours': self.default_labor_hours,
            'defaultLaborRate': self.default_labor_rate,
            'isTaxable': bool(self.is_taxable),
            'isAdjustable': bool(self.is_adjustable),
            'sortOrder': self.sort_order,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data


class AutoCannedServiceItem(Base):
    __tablename__ = 'auto_canned_service_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    canned_service_id = Column(Integer, ForeignKey('auto_canned_services.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)
    part_number = Column(String(100))
    quantity = Column(Float, default=1)
    unit_price_cash = Column(Float, nullable=False, default=0)
    unit_price_card = Column(Float)
    labor_hours = Column(Float)
    labor_rate = Column(Float)
    cost_price = Column(Float)
    is_taxable = Column(Boolean, default=True)
    is_adjustable = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    canned_service = relationship("AutoCannedService", back_populates="items")

    def to_dict(self):
        return {
            'id': self.id,
            'cannedServiceId': self.canned_service_id,
            'type': self.type,
            'description': self.description,
            'partNumber': self.part_number,
            'quantity': self.quantity,
            'unitPriceCash': money(self.unit_price_cash),
            'unitPriceCard': self.unit_price_card,
            'laborHours': self.labor_hours,
            'laborRate': self.labor_rate,
            'costPrice': self.cost_price,
            'isTaxable': bool(self.is_taxable),
            'isAdjustable': bool(self.is_adjustable),
            'sortOrder': self.sort_order
        }


# =============================================================================
# DIGITAL VEHICLE INSPECTIONS
# =============================================================================

class AutoDviTemplate(Base):
    """Checklist template; categories is [{name, items: [{name, sortOrder}]}]."""
    __tablename__ = 'auto_dvi_templates'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'))  # None = global template
    name = Column(String(255), nullable=False)
    description = Column(Text)
    categories = Column(JSONType, nullable=False, default=list)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'name': self.name,
            'description': self.description,
            'categories': self.categories or [],
            'isDefault': bool(self.is_default),
            'isActive': self.is_active,
            'createdAt': iso(self.created_at)
        }


class AutoDviInspection(Base):
    __tablename__ = 'auto_dvi_inspections'

    id = Column(Integer, primary_key=True, autoincrement=True)
    repair_order_id = Column(Integer, ForeignKey('auto_repair_orders.id'))
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    template_id = Column(Integer, ForeignKey('auto_dvi_templates.id'))
    technician_id = Column(Integer, ForeignKey('auto_users.id'), nullable=False)
    customer_id = Column(Integer, ForeignKey('auto_customers.id'))
    vehicle_id = Column(Integer, ForeignKey('auto_vehicles.id'))
    vehicle_mileage = Column(Integer)
    overall_condition = Column(String(20))
    public_token = Column(String(100), unique=True)
    status = Column(String(20), default='in_progress')  # in_progress, completed, sent
    completed_at = Column(DateTime)
    sent_to_customer_at = Column(DateTime)
    customer_viewed_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("AutoDviItem", back_populates="inspection",
                         cascade="all, delete-orphan", order_by="AutoDviItem.sort_order")

    def to_dict(self):
        return {
            'id': self.id,
            'repairOrderId': self.repair_order_id,
            'shopId': self.shop_id,
            'templateId': self.template_id,
            'technicianId': self.technician_id,
            'customerId': self.customer_id,
            'vehicleId': self.vehicle_id,
            'vehicleMileage': self.vehicle_mileage,
            'overallCondition': self.overall_condition,
            'publicToken': self.public_token,
            'status': self.status,
            'completedAt': iso(self.completed_at),
            'sentToCustomerAt': iso(self.sent_to_customer_at),
            'customerViewedAt': iso(self.customer_viewed_at),
            'notes': self.notes,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


class AutoDviItem(Base):
    __tablename__ = 'auto_dvi_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id = Column(Integer, ForeignKey('auto_dvi_inspections.id'), nullable=False)
    category_name = Column(String(255), nullable=False)
    item_name = Column(String(255), nullable=False)
    condition = Column(String(20), nullable=False, default='good')  # good, fair, poor
    notes = Column(Text)
    photo_urls = Column(JSONType, default=list)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    inspection = relationship("AutoDviInspection", back_populates="items")

    def to_dict(self):
        return {
            'id': self.id,
            'inspectionId': self.inspection_id,
            'categoryName': self.category_name,
            'itemName': self.item_name,
            'condition': self.condition,
            'notes': self.notes,
            'photoUrls': self.photo_urls or [],
            'sortOrder': self.sort_order,
            'createdAt': iso(self.created_at)
        }


# =============================================================================
# SCHEDULING
# =============================================================================

class AutoAppointment(Base):
    __tablename__ = 'auto_appointments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    customer_id = Column(Integer, ForeignKey('auto_customers.id'))
    vehicle_id = Column(Integer, ForeignKey('auto_vehicles.id'))
    repair_order_id = Column(Integer, ForeignKey('auto_repair_orders.id'))
    bay_id = Column(Integer, ForeignKey('auto_bays.id'))
    technician_id = Column(Integer, ForeignKey('auto_users.id'))
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(20), default='scheduled')
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    estimated_duration = Column(Integer)
    color = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_auto_appointments_shop_start', 'shop_id', 'start_time'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'customerId': self.customer_id,
            'vehicleId': self.vehicle_id,
            'repairOrderId': self.repair_order_id,
            'bayId': self.bay_id,
            'technicianId': self.technician_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'startTime': iso(self.start_time),
            'endTime': iso(self.end_time),
            'estimatedDuration': self.estimated_duration,
            'color': self.color,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at)
        }


# =============================================================================
# ACTIVITY & COMMUNICATION
# =============================================================================

class AutoActivityLog(Base):
    """Audit trail of shop actions (created, status_changed, payment_received...)."""
    __tablename__ = 'auto_activity_log'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('auto_users.id'))
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_auto_activity_log_entity', 'entity_type', 'entity_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'userId': self.user_id,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'action': self.action,
            'details': self.details or {},
            'createdAt': iso(self.created_at)
        }


class AutoCommunicationLog(Base):
    __tablename__ = 'auto_communication_log'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    customer_id = Column(Integer, ForeignKey('auto_customers.id'), nullable=False)
    repair_order_id = Column(Integer, ForeignKey('auto_repair_orders.id'))
    channel = Column(String(20), nullable=False)  # sms, email, phone
    direction = Column(String(20), default='outbound')
    template_used = Column(String(50))
    recipient_phone = Column(String(30))
    recipient_email = Column(String(255))
    subject = Column(Text)
    body_preview = Column(Text)
    invoice_url = Column(Text)
    initiated_by = Column(Integer, ForeignKey('auto_users.id'))
    created_at = Column(DateTime, default=datetime.utcnow)

    initiator = relationship("AutoUser")

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'customerId': self.customer_id,
            'repairOrderId': self.repair_order_id,
            'channel': self.channel,
            'direction': self.direction,
            'templateUsed': self.template_used,
            'recipientPhone': self.recipient_phone,
            'recipientEmail': self.recipient_email,
            'subject': self.subject,
            'bodyPreview': self.body_preview,
            'invoiceUrl': self.invoice_url,
            'initiatedBy': self.initiated_by,
            'createdAt': iso(self.created_at)
        }


# =============================================================================
# TECH CLOCK SESSIONS
# =============================================================================

class AutoTechSession(Base):
    """Time a technician spends clocked in on one repair order line."""
    __tablename__ = 'auto_tech_sessions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    repair_order_id = Column(Integer, ForeignKey('auto_repair_orders.id'), nullable=False)
    service_line_id = Column(Integer, ForeignKey('auto_line_items.id'), nullable=False)
    tech_employee_id = Column(Integer, ForeignKey('auto_users.id'), nullable=False)
    clock_in = Column(DateTime, default=datetime.utcnow, nullable=False)
    clock_out = Column(DateTime)
    duration_minutes = Column(Integer)
    is_active = Column(Boolean, default=True)
    auto_clock_out = Column(Boolean, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    repair_order = relationship("AutoRepairOrder")
    service_line = relationship("AutoLineItem")
    tech = relationship("AutoUser")

    __table_args__ = (
        Index('ix_auto_tech_sessions_active', 'shop_id', 'is_active'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'repairOrderId': self.repair_order_id,
            'serviceLineId': self.service_line_id,
            'techEmployeeId': self.tech_employee_id,
            'clockIn': iso(self.clock_in),
            'clockOut': iso(self.clock_out),
            'durationMinutes': self.duration_minutes,
            'isActive': bool(self.is_active),
            'autoClockOut': bool(self.auto_clock_out),
            'notes': self.notes,
            'createdAt': iso(self.created_at)
        }


# =============================================================================
# QUICKBOOKS SYNC
# =============================================================================

class AutoQboSyncLog(Base):
    """One push (or pull) of a shop entity to QuickBooks Online."""
    __tablename__ = 'auto_qbo_sync_log'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, ForeignKey('auto_shops.id'), nullable=False)
    entity_type = Column(String(30), nullable=False)  # invoice, payment, customer
    entity_id = Column(Integer, nullable=False)
    qbo_entity_id = Column(String(50))
    direction = Column(String(10), nullable=False, default='push')
    status = Column(String(20), nullable=False, default='pending')  # synced, pending, error
    attempt_count = Column(Integer, default=0)
    error_message = Column(Text)
    request_payload = Column(JSONType)
    response_payload = Column(JSONType)
    next_retry_at = Column(DateTime)
    synced_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_auto_qbo_sync_log_shop_status', 'shop_id', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'shopId': self.shop_id,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'qboEntityId': self.qbo_entity_id,
            'direction': self.direction,
            'status': self.status,
            'attemptCount': self.attempt_count or 0,
            'errorMessage': self.error_message,
            'requestPayload': self.request_payload,
            'responsePayload': self.response_payload,
            'nextRetryAt': iso(self.next_retry_at),
            'syncedAt': iso(self.synced_at),
            'createdAt': iso(self.created_at)
        }
