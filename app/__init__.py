"""
Pipeline & Auto Shop - Application Package

This package contains the modular backend structure:
- api/: HTTP route handlers (Flask Blueprints)
- utils/: Shared request/response helpers

Business logic lives in services/ and persistence in database/ at the
project root. The app factory is create_app() in app_init.py.
"""

import logging

logger = logging.getLogger(__name__)

# Import blueprints
from app.api.auth_routes import auth_bp
from app.api.deals import deals_bp
from app.api.email import email_bp
from app.api.notifications import notifications_bp
from app.api.scheduler import scheduler_bp
from app.api.auto_auth import auto_auth_bp
from app.api.auto_admin import auto_admin_bp
from app.api.auto_shop import auto_shop_bp
from app.api.auto_customers import auto_customers_bp
from app.api.auto_repair_orders import auto_repair_orders_bp
from app.api.auto_dvi import auto_dvi_bp
from app.api.auto_public import auto_public_bp
from app.api.auto_reports import auto_reports_bp
from app.api.tech_sessions import tech_sessions_bp
from app.api.quickbooks import quickbooks_bp

BLUEPRINTS = [
    # Pipeline CRM
    auth_bp,
    deals_bp,
    email_bp,
    notifications_bp,
    scheduler_bp,
    # Auto shop
    auto_auth_bp,
    auto_admin_bp,
    auto_shop_bp,
    auto_customers_bp,
    auto_repair_orders_bp,
    auto_dvi_bp,
    auto_public_bp,
    auto_reports_bp,
    tech_sessions_bp,
    quickbooks_bp,
]


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from create_app() after config, security and the database are set up.
    """
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.info(f"Registered {len(BLUEPRINTS)} blueprints")


__all__ = ['register_blueprints', 'BLUEPRINTS', 'app']


# ==============================================================================
# WSGI APP EXPORT FOR GUNICORN
# ==============================================================================
# Allows gunicorn to run with: gunicorn app:app
# The Flask app is created in application.py; __getattr__ loads it lazily to
# avoid circular imports.
# ==============================================================================

_flask_app = None

def __getattr__(name):
    """Lazy load the Flask app to avoid circular imports."""
    global _flask_app
    if name == 'app':
        if _flask_app is None:
            from application import app as flask_app
            _flask_app = flask_app
        return _flask_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
