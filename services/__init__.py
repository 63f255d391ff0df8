"""
Services package for the Pipeline CRM and Auto Shop API.
Contains repository classes for database access and the business logic
behind the route blueprints.
"""

from services.deal_repository import DealRepository
from services.notification_service import NotificationService
from services.customer_repository import CustomerRepository
from services.shop_repository import ShopRepository
from services.repair_order_repository import RepairOrderRepository
from services.dvi_repository import DviRepository

__all__ = [
    'DealRepository',
    'NotificationService',
    'CustomerRepository',
    'ShopRepository',
    'RepairOrderRepository',
    'DviRepository',
]
