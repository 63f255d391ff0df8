"""
Database seeding for Pipeline & Auto Shop.
Creates the default organization, a master admin and optionally a demo shop
when the database is empty.
"""

import logging
import os
from database.connection import get_db_session
from database.models import Organization, User
from database.auto_models import AutoShop

logger = logging.getLogger(__name__)

DEFAULT_ORG_NAME = "Pipeline"
DEFAULT_ORG_SLUG = "pipeline"
DEFAULT_ADMIN_EMAIL = os.environ.get('SEED_ADMIN_EMAIL', 'admin@pipeline.local')
DEFAULT_ADMIN_USERNAME = os.environ.get('SEED_ADMIN_USERNAME', 'admin')
DEFAULT_ADMIN_PASSWORD = os.environ.get('SEED_ADMIN_PASSWORD', 'changeme123')

DEMO_SHOP = {
    'name': 'Demo Auto Repair',
    'slug': 'demo-auto',
    'ownerEmail': 'owner@demo-auto.local',
    'ownerPassword': DEFAULT_ADMIN_PASSWORD,
    'ownerFirstName': 'Demo',
    'ownerLastName': 'Owner',
    'taxRate': 0.0825,
    'laborRate': 120,
    'cardFeePercent': 0.035,
}


def seed_default_organization(session):
    """Create default organization if none exists."""
    org = session.query(Organization).first()
    if org:
        logger.info(f"Organization already exists: {org.name}")
        return org

    org = Organization(
        name=DEFAULT_ORG_NAME,
        slug=DEFAULT_ORG_SLUG,
        settings={'timezone': 'America/Chicago', 'currency': 'USD'}
    )
    session.add(org)
    session.flush()
    logger.info(f"Created default organization: {org.name}")
    return org


def seed_default_admin(session, organization_id):
    """Create the master admin if none exists."""
    from auth import safe_generate_password_hash

    admin = session.query(User).filter_by(role='master_admin').first()
    if admin:
        logger.info(f"Master admin already exists: {admin.username}")
        return admin

    admin = User(
        organization_id=organization_id,
        email=DEFAULT_ADMIN_EMAIL,
        username=DEFAULT_ADMIN_USERNAME,
        password_hash=safe_generate_password_hash(DEFAULT_ADMIN_PASSWORD),
        display_name="Administrator",
        role='master_admin',
        is_active=True
    )
    session.add(admin)
    session.flush()
    logger.info(f"Created master admin: {admin.username}")
    return admin


def seed_demo_shop(session):
    """Create the demo shop (owner, bays, inspection template) if there are no shops."""
    from services.shop_repository import create_shop

    if session.query(AutoShop).first():
        return None
    result = create_shop(session, DEMO_SHOP)
    logger.info(f"Created demo shop: {result['shop']['slug']}")
    return result


def seed_database(include_demo_shop=False):
    """
    Seed the database with default data if empty.
    Call this at application startup.
    """
    try:
        with get_db_session() as session:
            org = seed_default_organization(session)
            seed_default_admin(session, org.id)
            if include_demo_shop:
                seed_demo_shop(session)
        logger.info("Database seeding completed successfully")
        return True
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        raise


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    from database.connection import init_db
    init_db()
    seed_database(include_demo_shop=os.environ.get('SEED_DEMO_SHOP', 'false').lower() == 'true')
