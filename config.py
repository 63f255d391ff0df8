"""
Centralized Configuration for the Pipeline CRM and Auto Shop API
Manages environment-specific settings, secrets, and service configurations.
"""
import os
from datetime import timedelta

class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max request body

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With', 'X-Admin-Key']

    # Database Settings
    DATABASE_URL = os.environ.get('DATABASE_URL', 'postgresql://localhost/pipeline_auto')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    AUTO_INIT_DB = os.environ.get('AUTO_INIT_DB', 'true').lower() == 'true'

    # File Storage Paths
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    LOG_FOLDER = 'logs'
    OUTPUT_FOLDER = 'outputs'

    # AI Service API Keys
    ANTHROPIC_API_KEY = os.environ.get('ANTHROPIC_API_KEY')
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')

    # AI Model Configuration
    AI_MODELS = {
        'claude': {
            'model': 'claude-sonnet-4-20250514',
            'max_tokens': 4000,
            'temperature': 0.7,
        },
        'gpt': {
            'model': os.environ.get('OPENAI_MODEL', 'gpt-4o'),
            'max_tokens': 1000,
            'temperature': 0.7,
        },
    }
    # Which provider handles email and summary requests ('gpt' or 'claude')
    AI_DEFAULT_PROVIDER = os.environ.get('AI_DEFAULT_PROVIDER', 'gpt')

    # AI Retry Configuration
    AI_RETRY_ATTEMPTS = int(os.environ.get('AI_RETRY_ATTEMPTS', '3'))
    AI_RETRY_DELAY = int(os.environ.get('AI_RETRY_DELAY', '2'))  # seconds
    AI_TIMEOUT = int(os.environ.get('AI_TIMEOUT', '120'))  # seconds

    # Pipeline tuning
    STALE_DEAL_DAYS = int(os.environ.get('STALE_DEAL_DAYS', '7'))
    QUARTERLY_CHECKIN_DAYS = int(os.environ.get('QUARTERLY_CHECKIN_DAYS', '90'))
    CHECKIN_WINDOW_DAYS = 7

    # Auto shop
    PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', 'http://localhost:5000')
    INVITATION_EXPIRY_DAYS = int(os.environ.get('INVITATION_EXPIRY_DAYS', '7'))
    ADMIN_API_KEY = os.environ.get('ADMIN_API_KEY')
    NHTSA_VIN_URL = os.environ.get(
        'NHTSA_VIN_URL', 'https://vpic.nhtsa.dot.gov/api/vehicles/decodevin/{vin}?format=json'
    )
    TECH_AUTO_CLOCK_OUT_HOURS = int(os.environ.get('TECH_AUTO_CLOCK_OUT_HOURS', '12'))

    # QuickBooks Online
    QBO_CLIENT_ID = os.environ.get('QBO_CLIENT_ID')
    QBO_CLIENT_SECRET = os.environ.get('QBO_CLIENT_SECRET')
    QBO_REDIRECT_URI = os.environ.get('QBO_REDIRECT_URI', 'http://localhost:5000/api/auto/quickbooks/callback')
    QBO_ENVIRONMENT = os.environ.get('QBO_ENVIRONMENT', 'sandbox')
    QBO_AUTHORIZATION_URL = 'https://appcenter.intuit.com/connect/oauth2'
    QBO_TOKEN_URL = 'https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer'
    QBO_API_BASE = {
        'sandbox': 'https://sandbox-quickbooks.api.intuit.com',
        'production': 'https://quickbooks.api.intuit.com',
    }
    QBO_MAX_SYNC_ATTEMPTS = int(os.environ.get('QBO_MAX_SYNC_ATTEMPTS', '5'))

    # Background scheduler
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')

    # Session Configuration
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://pipeline.example.com').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = 'sqlite://'
    SECRET_KEY = 'testing-secret-key'
    SCHEDULER_ENABLED = False
    AI_RETRY_ATTEMPTS = 1
    AI_RETRY_DELAY = 0
    ANTHROPIC_API_KEY = None
    OPENAI_API_KEY = None
    ADMIN_API_KEY = 'test-admin-key'


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config(name=None):
    """Get configuration by name, falling back to the FLASK_ENV environment variable"""
    env = name or os.environ.get('FLASK_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)
