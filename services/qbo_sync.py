"""
QuickBooks Online sync.

Invoices and payments are queued as ``auto_qbo_sync_log`` rows when an RO
is invoiced or paid. The scheduler (or the manual retry endpoint) pushes
pending rows through ``QuickBooksClient`` once the shop has connected
QuickBooks. Failures back off for 2^attempt minutes up to
``QBO_MAX_SYNC_ATTEMPTS``.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from requests_oauthlib import OAuth2Session
from sqlalchemy import func

from database.auto_models import (
    AutoShop, AutoIntegrationConfig, AutoQboSyncLog, AutoRepairOrder, AutoPayment, AutoCustomer
)
from services.pricing import round_money

logger = logging.getLogger(__name__)

SYNC_ENTITY_TYPES = ('invoice', 'payment', 'customer')
SYNC_STATUSES = ('synced', 'pending', 'error')
DEFAULT_MAX_ATTEMPTS = 5
QBO_SCOPES = ['com.intuit.quickbooks.accounting']
QBO_MINOR_VERSION = '65'

DEFAULT_ACCOUNT_MAPPINGS = {
    'labor': 'Service Revenue - Labor',
    'parts': 'Service Revenue - Parts',
    'dualPricing': 'Dual Pricing Income',
    'shopSupplies': 'Shop Supply Revenue',
    'salesTax': 'Sales Tax Payable',
    'tips': 'Tips Payable',
    'partsCogs': 'Parts COGS',
    'deposit': 'Checking',
    'ar': 'Accounts Receivable',
    'undeposited': 'Undeposited Funds',
}


class QuickBooksError(Exception):
    """QuickBooks rejected a request or is not connected."""


def next_retry_delay(attempt_count: int) -> timedelta:
    """Backoff after the given number of failed attempts."""
    return timedelta(minutes=2 ** max(attempt_count, 0))


def queue_sync(session, shop_id: int, entity_type: str, entity_id: int) -> AutoQboSyncLog:
    """Add a pending push for an entity; an existing pending row is reused."""
    if entity_type not in SYNC_ENTITY_TYPES:
        raise ValueError(f"Unknown sync entity type: {entity_type}")

    existing = session.query(AutoQboSyncLog).filter(
        AutoQboSyncLog.shop_id == shop_id,
        AutoQboSyncLog.entity_type == entity_type,
        AutoQboSyncLog.entity_id == entity_id,
        AutoQboSyncLog.status == 'pending'
    ).first()
    if existing:
        return existing

    entry = AutoQboSyncLog(
        shop_id=shop_id,
        entity_type=entity_type,
        entity_id=entity_id,
        direction='push',
        status='pending',
        attempt_count=0
    )
    session.add(entry)
    session.flush()
    logger.info(f"Queued QuickBooks {entity_type} sync for {entity_id} (shop {shop_id})")
    return entry


# =============================================================================
# PAYLOADS
# =============================================================================

def build_invoice_payload(ro: AutoRepairOrder, customer: Optional[AutoCustomer],
                          mappings: Dict[str, str]) -> Dict[str, Any]:
    """QBO Invoice body; the card-minus-cash amount goes to its own line."""
    lines = []
    for item in ro.line_items:
        if item.status not in ('pending', 'approved'):
            continue
        if item.is_shop_supply:
            account = mappings.get('shopSupplies')
        elif item.type == 'labor':
            account = mappings.get('labor')
        else:
            account = mappings.get('parts')
        lines.append({
            'DetailType': 'SalesItemLineDetail',
            'Amount': round_money(item.total_cash),
            'Description': item.description,
            'SalesItemLineDetail': {
                'Qty': item.quantity or 1,
                'UnitPrice': round_money(item.unit_price_cash),
                'ItemAccountRef': {'name': account},
            },
        })

    payload = {
        'DocNumber': ro.invoice_number or ro.ro_number,
        'TxnDate': (ro.invoiced_at or datetime.utcnow()).strftime('%Y-%m-%d'),
        'Line': lines,
        'TxnTaxDetail': {'TotalTax': round_money(ro.tax_amount)},
        'PrivateNote': f"Repair order {ro.ro_number}",
        'CustomField': [{'Name': 'DualPricingAmount', 'StringValue': str(round_money(ro.fee_amount))}],
    }
    if customer:
        payload['CustomerRef'] = {
            'value': customer.qbo_customer_id,
            'name': customer.full_name,
        } if customer.qbo_customer_id else {'name': customer.full_name}
    return payload


def build_payment_payload(payment: AutoPayment, ro: Optional[AutoRepairOrder],
                          mappings: Dict[str, str]) -> Dict[str, Any]:
    account = mappings.get('undeposited') if payment.method == 'card' else mappings.get('deposit')
    payload = {
        'TotalAmt': round_money(payment.amount),
        'TxnDate': (payment.processed_at or payment.created_at or datetime.utcnow()).strftime('%Y-%m-%d'),
        'PaymentRefNum': payment.transaction_id,
        'DepositToAccountRef': {'name': account},
        'PrivateNote': f"{payment.method} payment",
    }
    if ro:
        payload['PrivateNote'] = f"{payment.method} payment for {ro.ro_number}"
    if payment.tip_amount:
        payload['CustomField'] = [{'Name': 'Tip', 'StringValue': str(round_money(payment.tip_amount))}]
    return payload


# =============================================================================
# CLIENT
# =============================================================================

class QuickBooksClient:
    """Thin OAuth2 client for the QuickBooks Online accounting API."""

    def __init__(self, config, integration: AutoIntegrationConfig, session=None):
        self.config = config
        self.integration = integration
        self.db_session = session
        token = {
            'access_token': integration.quickbooks_access_token,
            'refresh_token': integration.quickbooks_refresh_token,
            'token_type': 'Bearer',
        }
        if integration.quickbooks_token_expires_at:
            token['expires_in'] = max(
                int((integration.quickbooks_token_expires_at - datetime.utcnow()).total_seconds()), 0
            )
        self.oauth = OAuth2Session(
            config.get('QBO_CLIENT_ID'),
            token=token,
            auto_refresh_url=config.get('QBO_TOKEN_URL'),
            auto_refresh_kwargs={
                'client_id': config.get('QBO_CLIENT_ID'),
                'client_secret': config.get('QBO_CLIENT_SECRET'),
            },
            token_updater=self._save_token
        )

    def _save_token(self, token: Dict[str, Any]):
        self.integration.quickbooks_access_token = token.get('access_token')
        if token.get('refresh_token'):
            self.integration.quickbooks_refresh_token = token['refresh_token']
        if token.get('expires_in'):
            self.integration.quickbooks_token_expires_at = datetime.utcnow() + timedelta(seconds=int(token['expires_in']))
        if self.db_session is not None:
            self.db_session.flush()
        logger.info(f"Refreshed QuickBooks token for shop {self.integration.shop_id}")

    @property
    def base_url(self) -> str:
        bases = self.config.get('QBO_API_BASE') or {}
        environment = self.config.get('QBO_ENVIRONMENT', 'sandbox')
        return f"{bases.get(environment)}/v3/company/{self.integration.quickbooks_realm_id}"

    def create(self, entity: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST an entity (``invoice``, ``payment``, ``customer``) and return the created object."""
        response = self.oauth.post(
            f"{self.base_url}/{entity}",
            params={'minorversion': QBO_MINOR_VERSION},
            json=payload,
            headers={'Accept': 'application/json'},
            timeout=30
        )
        if response.status_code >= 400:
            raise QuickBooksError(f"QuickBooks {entity} failed ({response.status_code}): {response.text[:500]}")
        return response.json()


def authorization_url(config, state: str) -> str:
    oauth = OAuth2Session(config.get('QBO_CLIENT_ID'), redirect_uri=config.get('QBO_REDIRECT_URI'), scope=QBO_SCOPES)
    url, _ = oauth.authorization_url(config.get('QBO_AUTHORIZATION_URL'), state=state)
    return url


def complete_authorization(session, config, shop_id: int, authorization_response: str, realm_id: str) -> Dict:
    """Exchange the callback code for tokens and enable the integration."""
    oauth = OAuth2Session(config.get('QBO_CLIENT_ID'), redirect_uri=config.get('QBO_REDIRECT_URI'), scope=QBO_SCOPES)
    token = oauth.fetch_token(
        config.get('QBO_TOKEN_URL'),
        authorization_response=authorization_response,
        client_secret=config.get('QBO_CLIENT_SECRET')
    )

    integration = session.query(AutoIntegrationConfig).filter(AutoIntegrationConfig.shop_id == shop_id).first()
    if not integration:
        integration = AutoIntegrationConfig(shop_id=shop_id)
        session.add(integration)
    integration.quickbooks_enabled = True
    integration.quickbooks_realm_id = realm_id
    integration.quickbooks_access_token = token.get('access_token')
    integration.quickbooks_refresh_token = token.get('refresh_token')
    integration.quickbooks_token_expires_at = datetime.utcnow() + timedelta(seconds=int(token.get('expires_in', 3600)))
    session.flush()
    logger.info(f"QuickBooks connected for shop {shop_id} (realm {realm_id})")
    return integration.to_dict()


# =============================================================================
# SYNC SERVICE
# =============================================================================

class QboSyncService:
    """Sync log, account mappings and pushes for one shop."""

    def __init__(self, session, shop_id: int, config=None, client_factory=QuickBooksClient):
        self.session = session
        self.shop_id = shop_id
        self.config = config or {}
        self.client_factory = client_factory

    @property
    def max_attempts(self) -> int:
        return int(self.config.get('QBO_MAX_SYNC_ATTEMPTS', DEFAULT_MAX_ATTEMPTS))

    def _integration(self) -> Optional[AutoIntegrationConfig]:
        return self.session.query(AutoIntegrationConfig).filter(
            AutoIntegrationConfig.shop_id == self.shop_id
        ).first()

    # ---- mappings -------------------------------------------------------

    def get_mappings(self) -> Dict[str, str]:
        shop = self.session.get(AutoShop, self.shop_id)
        stored = (shop.qbo_account_mappings if shop else None) or {}
        return {key: stored.get(key, default) for key, default in DEFAULT_ACCOUNT_MAPPINGS.items()}

    def update_mappings(self, data: Dict[str, Any]) -> Dict[str, str]:
        shop = self.session.get(AutoShop, self.shop_id)
        mappings = self.get_mappings()
        for key, value in data.items():
            if key in DEFAULT_ACCOUNT_MAPPINGS:
                mappings[key] = value
        shop.qbo_account_mappings = mappings
        self.session.flush()
        logger.info(f"Updated QuickBooks account mappings for shop {self.shop_id}")
        return mappings

    # ---- log ------------------------------------------------------------

    def list_log(self, status: Optional[str] = None, limit: int = 100) -> List[Dict]:
        query = self.session.query(AutoQboSyncLog).filter(AutoQboSyncLog.shop_id == self.shop_id)
        if status:
            query = query.filter(AutoQboSyncLog.status == status)
        rows = query.order_by(AutoQboSyncLog.created_at.desc(), AutoQboSyncLog.id.desc()).limit(limit).all()
        return [r.to_dict() for r in rows]

    def summary(self, now: datetime = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        week_start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        logs = self.session.query(AutoQboSyncLog).filter(AutoQboSyncLog.shop_id == self.shop_id)
        synced = logs.filter(AutoQboSyncLog.status == 'synced')
        last_sync = self.session.query(func.max(AutoQboSyncLog.synced_at)).filter(
            AutoQboSyncLog.shop_id == self.shop_id,
            AutoQboSyncLog.status == 'synced'
        ).scalar()

        synced_invoice_ids = [
            row.entity_id for row in synced.filter(
                AutoQboSyncLog.entity_type == 'invoice',
                AutoQboSyncLog.synced_at >= month_start
            ).all()
        ]
        revenue = dual_pricing = 0.0
        if synced_invoice_ids:
            for ro in self.session.query(AutoRepairOrder).filter(AutoRepairOrder.id.in_(synced_invoice_ids)).all():
                revenue += ro.total_cash or 0
                dual_pricing += ro.fee_amount or 0

        pending_invoices = self.session.query(AutoRepairOrder).filter(
            AutoRepairOrder.shop_id == self.shop_id,
            AutoRepairOrder.status == 'invoiced'
        ).count()

        integration = self._integration()
        return {
            'connected': bool(integration and integration.quickbooks_enabled and integration.quickbooks_refresh_token),
            'totalSynced': synced.count(),
            'thisWeek': synced.filter(AutoQboSyncLog.synced_at >= week_start).count(),
            'lastSync': last_sync.isoformat() if last_sync else None,
            'totalRevenue': round_money(revenue),
            'totalDualPricing': round_money(dual_pricing),
            'pendingInvoices': pending_invoices,
            'errors': logs.filter(AutoQboSyncLog.status == 'error').count(),
        }

    # ---- pushes ---------------------------------------------------------

    def _payload(self, entry: AutoQboSyncLog) -> Tuple[str, Dict[str, Any]]:
        mappings = self.get_mappings()
        if entry.entity_type == 'invoice':
            ro = self.session.get(AutoRepairOrder, entry.entity_id)
            if not ro:
                raise QuickBooksError('Repair order no longer exists')
            return 'invoice', build_invoice_payload(ro, ro.customer, mappings)
        if entry.entity_type == 'payment':
            payment = self.session.get(AutoPayment, entry.entity_id)
            if not payment:
                raise QuickBooksError('Payment no longer exists')
            return 'payment', build_payment_payload(payment, payment.repair_order, mappings)
        customer = self.session.get(AutoCustomer, entry.entity_id)
        if not customer:
            raise QuickBooksError('Customer no longer exists')
        return 'customer', {
            'DisplayName': customer.full_name,
            'PrimaryEmailAddr': {'Address': customer.email} if customer.email else None,
            'PrimaryPhone': {'FreeFormNumber': customer.phone} if customer.phone else None,
        }

    def push(self, entry: AutoQboSyncLog, now: datetime = None) -> AutoQboSyncLog:
        """
        Push one log row. Without a connected integration the row stays
        pending and no attempt is counted.
        """
        now = now or datetime.utcnow()
        integration = self._integration()
        if not integration or not integration.quickbooks_enabled or not integration.quickbooks_refresh_token:
            return entry

        entry.attempt_count = (entry.attempt_count or 0) + 1
        try:
            entity, payload = self._payload(entry)
            entry.request_payload = payload
            client = self.client_factory(self.config, integration, self.session)
            response = client.create(entity, payload)
        except Exception as e:
            entry.error_message = str(e)
            if entry.attempt_count >= self.max_attempts:
                entry.status = 'error'
                entry.next_retry_at = None
            else:
                entry.status = 'pending'
                entry.next_retry_at = now + next_retry_delay(entry.attempt_count)
            logger.error(f"QuickBooks sync {entry.id} failed (attempt {entry.attempt_count}): {e}")
        else:
            created = next(iter(response.values()), {}) if isinstance(response, dict) else {}
            entry.response_payload = response
            entry.qbo_entity_id = str(created.get('Id')) if isinstance(created, dict) and created.get('Id') else None
            entry.status = 'synced'
            entry.synced_at = now
            entry.error_message = None
            entry.next_retry_at = None
            if entry.entity_type == 'customer' and entry.qbo_entity_id:
                customer = self.session.get(AutoCustomer, entry.entity_id)
                if customer:
                    customer.qbo_customer_id = entry.qbo_entity_id
            logger.info(f"QuickBooks sync {entry.id} ({entry.entity_type} {entry.entity_id}) synced")
        self.session.flush()
        return entry

    def push_pending(self, now: datetime = None) -> Dict[str, int]:
        """Push every pending row whose retry time has come."""
        now = now or datetime.utcnow()
        due = self.session.query(AutoQboSyncLog).filter(
            AutoQboSyncLog.shop_id == self.shop_id,
            AutoQboSyncLog.status == 'pending',
            (AutoQboSyncLog.next_retry_at.is_(None)) | (AutoQboSyncLog.next_retry_at <= now)
        ).order_by(AutoQboSyncLog.created_at).all()

        counts = {'attempted': 0, 'synced': 0, 'failed': 0}
        for entry in due:
            before = entry.attempt_count or 0
            self.push(entry, now)
            if (entry.attempt_count or 0) == before:
                continue
            counts['attempted'] += 1
            counts['synced' if entry.status == 'synced' else 'failed'] += 1
        return counts

    def retry(self, log_id: int, now: datetime = None) -> Optional[Dict]:
        """Manual retry: an errored row gets a fresh set of attempts."""
        entry = self.session.query(AutoQboSyncLog).filter(
            AutoQboSyncLog.id == log_id,
            AutoQboSyncLog.shop_id == self.shop_id
        ).first()
        if not entry:
            return None
        if entry.status == 'synced':
            return entry.to_dict()
        if entry.status == 'error':
            entry.attempt_count = 0
        entry.status = 'pending'
        entry.next_retry_at = None
        self.push(entry, now)
        return entry.to_dict()


def sweep_all_shops(session, config, now: datetime = None) -> Dict[str, int]:
    """Scheduler job: push due rows for every shop with pending work."""
    shop_ids = [
        row[0] for row in session.query(AutoQboSyncLog.shop_id).filter(
            AutoQboSyncLog.status == 'pending'
        ).distinct().all()
    ]
    totals = {'shops': len(shop_ids), 'attempted': 0, 'synced': 0, 'failed': 0}
    for shop_id in shop_ids:
        counts = QboSyncService(session, shop_id, config).push_pending(now)
        for key in ('attempted', 'synced', 'failed'):
            totals[key] += counts[key]
    return totals
