"""
Application Initialization Module
Builds the Flask app with config, logging, security, database, AI service,
blueprints and the background scheduler
"""
import os
from flask import Flask
from config import get_config
from logging_config import setup_logging
from ai_service import AIService
from security import setup_security
from health_checks import register_health_checks
import logging

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """
    Application factory that creates and configures Flask app with all infrastructure

    Args:
        config_name: 'development', 'production' or 'testing'; defaults to FLASK_ENV

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("🚀 Initializing Pipeline & Auto Shop API")
    logger.info("=" * 60)
    logger.info(f"Config: {config_class.__name__}")
    logger.info(f"Debug mode: {app.debug}")

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    create_required_directories(app)

    app.ai_service = initialize_ai_service(app)

    initialize_database(app)

    from app import register_blueprints
    register_blueprints(app)

    register_health_checks(app)

    if app.config.get('SCHEDULER_ENABLED'):
        from services.scheduler import init_scheduler
        init_scheduler(app)

    logger.info("✅ Application initialization complete")
    logger.info("=" * 60)

    return app


def create_required_directories(app):
    """Create the log and output directories"""
    directories = [
        app.config['LOG_FOLDER'],
        app.config['OUTPUT_FOLDER'],
    ]

    for directory in directories:
        try:
            os.makedirs(directory, exist_ok=True)
            logger.debug(f"Directory ensured: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")


def initialize_ai_service(app):
    """
    Initialize centralized AI service manager

    Args:
        app: Flask application instance

    Returns:
        AIService instance
    """
    ai_service = AIService(app.config)

    available_services = []
    if ai_service.is_available('claude'):
        available_services.append('Claude')
    if ai_service.is_available('gpt'):
        available_services.append('GPT')

    if available_services:
        logger.info(f"✅ AI Services initialized: {', '.join(available_services)}")
    else:
        logger.warning("⚠️  No AI services configured - summaries and email drafting will return 503")

    return ai_service


def initialize_database(app):
    """
    Bind the database module to the configured URL; create tables and seed
    defaults when AUTO_INIT_DB is set
    """
    from database.connection import configure_database, init_db

    configure_database(app.config['DATABASE_URL'])

    if app.config.get('AUTO_INIT_DB'):
        from database.seed import seed_database
        init_db()
        if not app.testing:
            seed_database(include_demo_shop=os.environ.get('SEED_DEMO_SHOP', 'false').lower() == 'true')
