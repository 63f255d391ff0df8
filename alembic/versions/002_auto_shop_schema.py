"""Auto shop schema

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

Shops, staff and invitations, bays, customers and vehicles, repair orders
with line items and payments, canned services, inspections, appointments,
activity and communication logs, tech sessions and the QuickBooks sync log.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.Integer(), autoincrement=True, nullable=False)


def _shop_fk():
    return sa.Column('shop_id', sa.Integer(), sa.ForeignKey('auto_shops.id'), nullable=False)


def upgrade() -> None:
    # Shops
    op.create_table('auto_shops',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(100)),
        sa.Column('state', sa.String(2)),
        sa.Column('zip', sa.String(10)),
        sa.Column('phone', sa.String(20)),
        sa.Column('email', sa.String(255)),
        sa.Column('website', sa.String(255)),
        sa.Column('timezone', sa.String(50)),
        sa.Column('tax_rate', sa.Float()),
        sa.Column('parts_tax_rate', sa.Float()),
        sa.Column('labor_tax_rate', sa.Float()),
        sa.Column('labor_taxable', sa.Boolean()),
        sa.Column('labor_rate', sa.Float()),
        sa.Column('card_fee_percent', sa.Float()),
        sa.Column('shop_supply_enabled', sa.Boolean()),
        sa.Column('shop_supply_rate_pct', sa.Float()),
        sa.Column('shop_supply_max_amount', sa.Float()),
        sa.Column('shop_supply_taxable', sa.Boolean()),
        sa.Column('invoice_footer', sa.Text()),
        sa.Column('logo_url', sa.Text()),
        sa.Column('branding_colors', postgresql.JSONB),
        sa.Column('settings', postgresql.JSONB),
        sa.Column('qbo_account_mappings', postgresql.JSONB),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )

    # Staff
    op.create_table('auto_users',
        _id(),
        _shop_fk(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(20)),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('pin', sa.String(10)),
        sa.Column('pay_type', sa.String(20)),
        sa.Column('pay_rate', sa.Float()),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('last_login_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'email', name='uq_auto_users_shop_email')
    )

    op.create_table('auto_invitations',
        _id(),
        _shop_fk(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('invited_by_id', sa.Integer(), sa.ForeignKey('auto_users.id'), nullable=False),
        sa.Column('token', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20)),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token')
    )

    op.create_table('auto_bays',
        _id(),
        _shop_fk(),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('sort_order', sa.Integer()),
        sa.Column('sellable_hours_per_day', sa.Float()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('auto_integration_configs',
        _id(),
        _shop_fk(),
        sa.Column('quickbooks_enabled', sa.Boolean()),
        sa.Column('quickbooks_realm_id', sa.String(100)),
        sa.Column('quickbooks_access_token', sa.Text()),
        sa.Column('quickbooks_refresh_token', sa.Text()),
        sa.Column('quickbooks_token_expires_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id')
    )

    # Customers & vehicles
    op.create_table('auto_customers',
        _id(),
        _shop_fk(),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(20)),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(100)),
        sa.Column('state', sa.String(2)),
        sa.Column('zip', sa.String(10)),
        sa.Column('notes', sa.Text()),
        sa.Column('tags', postgresql.JSONB),
        sa.Column('preferred_contact_method', sa.String(20)),
        sa.Column('qbo_customer_id', sa.String(50)),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_customers_shop', 'auto_customers', ['shop_id'])

    op.create_table('auto_vehicles',
        _id(),
        _shop_fk(),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('auto_customers.id'), nullable=False),
        sa.Column('year', sa.Integer()),
        sa.Column('make', sa.String(100)),
        sa.Column('model', sa.String(100)),
        sa.Column('trim', sa.String(100)),
        sa.Column('vin', sa.String(17)),
        sa.Column('license_plate', sa.String(20)),
        sa.Column('color', sa.String(50)),
        sa.Column('engine_size', sa.String(20)),
        sa.Column('transmission', sa.String(20)),
        sa.Column('mileage', sa.Integer()),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_vehicles_customer', 'auto_vehicles', ['customer_id'])

    # Repair orders
    money = [
        'subtotal_cash', 'subtotal_card', 'tax_amount', 'tax_parts_amount', 'tax_labor_amount',
        'total_cash', 'total_card', 'total_adjustable', 'total_non_adjustable', 'fee_amount',
        'paid_amount', 'balance_due', 'shop_supply_amount_cash', 'shop_supply_amount_card',
        'discount_amount_cash', 'discount_amount_card',
    ]
    op.create_table('auto_repair_orders',
        _id(),
        _shop_fk(),
        sa.Column('ro_number', sa.String(20), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('auto_customers.id'), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), sa.ForeignKey('auto_vehicles.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('service_advisor_id', sa.Integer(), sa.ForeignKey('auto_users.id')),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('auto_users.id')),
        sa.Column('bay_id', sa.Integer(), sa.ForeignKey('auto_bays.id')),
        sa.Column('customer_concern', sa.Text()),
        sa.Column('internal_notes', sa.Text()),
        sa.Column('promised_date', sa.DateTime()),
        sa.Column('mileage_in', sa.Integer()),
        sa.Column('mileage_out', sa.Integer()),
        *[sa.Column(name, sa.Float()) for name in money],
        sa.Column('approval_token', sa.String(100)),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('approved_by', sa.String(100)),
        sa.Column('estimate_sent_at', sa.DateTime()),
        sa.Column('approval_declined_at', sa.DateTime()),
        sa.Column('approval_declined_reason', sa.Text()),
        sa.Column('approval_question', sa.Text()),
        sa.Column('approval_question_at', sa.DateTime()),
        sa.Column('invoice_number', sa.String(20)),
        sa.Column('invoiced_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('approval_token'),
        sa.UniqueConstraint('shop_id', 'ro_number', name='uq_auto_ro_shop_number')
    )
    op.create_index('ix_auto_repair_orders_shop_status', 'auto_repair_orders', ['shop_id', 'status'])

    op.create_table('auto_line_items',
        _id(),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('auto_repair_orders.id'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('part_number', sa.String(100)),
        sa.Column('quantity', sa.Float()),
        sa.Column('unit_price_cash', sa.Float(), nullable=False),
        sa.Column('unit_price_card', sa.Float(), nullable=False),
        sa.Column('total_cash', sa.Float(), nullable=False),
        sa.Column('total_card', sa.Float(), nullable=False),
        sa.Column('labor_hours', sa.Float()),
        sa.Column('labor_rate', sa.Float()),
        sa.Column('vendor_id', sa.String(100)),
        sa.Column('is_taxable', sa.Boolean()),
        sa.Column('is_adjustable', sa.Boolean()),
        sa.Column('is_ntnf', sa.Boolean()),
        sa.Column('is_shop_supply', sa.Boolean()),
        sa.Column('cost_price', sa.Float()),
        sa.Column('sort_order', sa.Integer()),
        sa.Column('status', sa.String(20)),
        sa.Column('discount_percent', sa.Float()),
        sa.Column('discount_amount_cash', sa.Float()),
        sa.Column('discount_amount_card', sa.Float()),
        sa.Column('discount_reason', sa.Text()),
        sa.Column('approval_status', sa.String(20)),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('declined_at', sa.DateTime()),
        sa.Column('declined_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_line_items_ro', 'auto_line_items', ['repair_order_id'])

    op.create_table('auto_payments',
        _id(),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('auto_repair_orders.id'), nullable=False),
        _shop_fk(),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('method', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20)),
        sa.Column('transaction_id', sa.String(255)),
        sa.Column('tip_amount', sa.Float()),
        sa.Column('payment_token', sa.String(100)),
        sa.Column('notes', sa.Text()),
        sa.Column('processed_at', sa.DateTime()),
        sa.Column('voided_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_token')
    )

    # Canned services
    op.create_table('auto_canned_services',
        _id(),
        _shop_fk(),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('category', sa.String(50)),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('default_labor_hours', sa.Float()),
        sa.Column('default_labor_rate', sa.Float()),
        sa.Column('is_taxable', sa.Boolean()),
        sa.Column('is_adjustable', sa.Boolean()),
        sa.Column('sort_order', sa.Integer()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('auto_canned_service_items',
        _id(),
        sa.Column('canned_service_id', sa.Integer(),
                  sa.ForeignKey('auto_canned_services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('part_number', sa.String(100)),
        sa.Column('quantity', sa.Float()),
        sa.Column('unit_price_cash', sa.Float(), nullable=False),
        sa.Column('unit_price_card', sa.Float()),
        sa.Column('labor_hours', sa.Float()),
        sa.Column('labor_rate', sa.Float()),
        sa.Column('cost_price', sa.Float()),
        sa.Column('is_taxable', sa.Boolean()),
        sa.Column('is_adjustable', sa.Boolean()),
        sa.Column('sort_order', sa.Integer()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )

    # Inspections
    op.create_table('auto_dvi_templates',
        _id(),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('auto_shops.id')),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('categories', postgresql.JSONB, nullable=False),
        sa.Column('is_default', sa.Boolean()),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('auto_dvi_inspections',
        _id(),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('auto_repair_orders.id')),
        _shop_fk(),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('auto_dvi_templates.id')),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('auto_users.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('auto_customers.id')),
        sa.Column('vehicle_id', sa.Integer(), sa.ForeignKey('auto_vehicles.id')),
        sa.Column('vehicle_mileage', sa.Integer()),
        sa.Column('overall_condition', sa.String(20)),
        sa.Column('public_token', sa.String(100)),
        sa.Column('status', sa.String(20)),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('sent_to_customer_at', sa.DateTime()),
        sa.Column('customer_viewed_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('public_token')
    )

    op.create_table('auto_dvi_items',
        _id(),
        sa.Column('inspection_id', sa.Integer(), sa.ForeignKey('auto_dvi_inspections.id'), nullable=False),
        sa.Column('category_name', sa.String(255), nullable=False),
        sa.Column('item_name', sa.String(255), nullable=False),
        sa.Column('condition', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('photo_urls', postgresql.JSONB),
        sa.Column('sort_order', sa.Integer()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )

    # Scheduling
    op.create_table('auto_appointments',
        _id(),
        _shop_fk(),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('auto_customers.id')),
        sa.Column('vehicle_id', sa.Integer(), sa.ForeignKey('auto_vehicles.id')),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('auto_repair_orders.id')),
        sa.Column('bay_id', sa.Integer(), sa.ForeignKey('auto_bays.id')),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('auto_users.id')),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.String(20)),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('estimated_duration', sa.Integer()),
        sa.Column('color', sa.String(20)),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_appointments_shop_start', 'auto_appointments', ['shop_id', 'start_time'])

    # Logs
    op.create_table('auto_activity_log',
        _id(),
        _shop_fk(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('auto_users.id')),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('details', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_activity_log_entity', 'auto_activity_log', ['entity_type', 'entity_id'])

    op.create_table('auto_communication_log',
        _id(),
        _shop_fk(),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('auto_customers.id'), nullable=False),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('auto_repair_orders.id')),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('direction', sa.String(20)),
        sa.Column('template_used', sa.String(50)),
        sa.Column('recipient_phone', sa.String(30)),
        sa.Column('recipient_email', sa.String(255)),
        sa.Column('subject', sa.Text()),
        sa.Column('body_preview', sa.Text()),
        sa.Column('invoice_url', sa.Text()),
        sa.Column('initiated_by', sa.Integer(), sa.ForeignKey('auto_users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('auto_tech_sessions',
        _id(),
        _shop_fk(),
        sa.Column('repair_order_id', sa.Integer(), sa.ForeignKey('auto_repair_orders.id'), nullable=False),
        sa.Column('service_line_id', sa.Integer(), sa.ForeignKey('auto_line_items.id'), nullable=False),
        sa.Column('tech_employee_id', sa.Integer(), sa.ForeignKey('auto_users.id'), nullable=False),
        sa.Column('clock_in', sa.DateTime(), nullable=False),
        sa.Column('clock_out', sa.DateTime()),
        sa.Column('duration_minutes', sa.Integer()),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('auto_clock_out', sa.Boolean()),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_tech_sessions_active', 'auto_tech_sessions', ['shop_id', 'is_active'])

    op.create_table('auto_qbo_sync_log',
        _id(),
        _shop_fk(),
        sa.Column('entity_type', sa.String(30), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('qbo_entity_id', sa.String(50)),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempt_count', sa.Integer()),
        sa.Column('error_message', sa.Text()),
        sa.Column('request_payload', postgresql.JSONB),
        sa.Column('response_payload', postgresql.JSONB),
        sa.Column('next_retry_at', sa.DateTime()),
        sa.Column('synced_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_qbo_sync_log_shop_status', 'auto_qbo_sync_log', ['shop_id', 'status'])


def downgrade() -> None:
    for table in (
        'auto_qbo_sync_log', 'auto_tech_sessions', 'auto_communication_log', 'auto_activity_log',
        'auto_appointments', 'auto_dvi_items', 'auto_dvi_inspections', 'auto_dvi_templates',
        'auto_canned_service_items', 'auto_canned_services', 'auto_payments', 'auto_line_items',
        'auto_repair_orders', 'auto_vehicles', 'auto_customers', 'auto_integration_configs',
        'auto_bays', 'auto_invitations', 'auto_users', 'auto_shops',
    ):
        op.drop_table(table)
