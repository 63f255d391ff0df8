"""
Tests for configuration system
"""
import os
import pytest
from unittest.mock import patch
from config import (
    Config,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config
)


@pytest.mark.unit
class TestBaseConfig:
    """Tests for base configuration"""

    def test_base_config_has_secret_key(self):
        """Test that base config has a secret key"""
        config = Config()
        assert hasattr(config, 'SECRET_KEY')
        assert config.SECRET_KEY is not None

    def test_base_config_has_max_content_length(self):
        """Test that base config caps request bodies at 16MB"""
        config = Config()
        assert config.MAX_CONTENT_LENGTH == 16 * 1024 * 1024

    def test_base_config_has_cors_settings(self):
        """Test that base config has CORS settings"""
        config = Config()
        assert 'GET' in config.CORS_METHODS
        assert 'PATCH' in config.CORS_METHODS
        assert 'X-Admin-Key' in config.CORS_ALLOW_HEADERS

    def test_base_config_has_ai_models(self):
        """Test that both AI providers are configured"""
        config = Config()
        assert 'claude' in config.AI_MODELS
        assert 'gpt' in config.AI_MODELS
        assert config.AI_MODELS['claude']['model'] == 'claude-sonnet-4-20250514'

    def test_base_config_defaults_to_gpt(self):
        """Test that GPT handles email and summary requests by default"""
        assert Config.AI_DEFAULT_PROVIDER in ('gpt', 'claude')

    def test_base_config_has_retry_settings(self):
        """Test that base config has retry settings"""
        config = Config()
        assert config.AI_RETRY_ATTEMPTS >= 1
        assert config.AI_TIMEOUT > 0

    def test_base_config_has_pipeline_tuning(self):
        """Test stale deal and check-in windows"""
        config = Config()
        assert config.STALE_DEAL_DAYS > 0
        assert config.QUARTERLY_CHECKIN_DAYS > 0
        assert config.CHECKIN_WINDOW_DAYS == 7

    def test_base_config_has_qbo_endpoints(self):
        """Test QuickBooks sandbox and production hosts"""
        config = Config()
        assert set(config.QBO_API_BASE) == {'sandbox', 'production'}
        assert config.QBO_MAX_SYNC_ATTEMPTS >= 1


@pytest.mark.unit
class TestDevelopmentConfig:
    """Tests for development configuration"""

    def test_development_config_has_debug(self):
        """Test that development config has debug enabled"""
        assert DevelopmentConfig.DEBUG is True
        assert DevelopmentConfig.TESTING is False

    def test_development_config_has_debug_log_level(self):
        """Test that development config has DEBUG log level"""
        assert DevelopmentConfig.LOG_LEVEL == 'DEBUG'

    def test_development_config_allows_all_cors(self):
        """Test that development config allows all CORS origins"""
        assert DevelopmentConfig.CORS_ORIGINS == ['*']


@pytest.mark.unit
class TestProductionConfig:
    """Tests for production configuration"""

    def test_production_config_disables_debug(self):
        """Test that production config has debug disabled"""
        assert ProductionConfig.DEBUG is False
        assert ProductionConfig.TESTING is False

    def test_production_config_secures_cookies(self):
        """Test that production cookies are secure and http-only"""
        assert ProductionConfig.SESSION_COOKIE_SECURE is True
        assert ProductionConfig.SESSION_COOKIE_HTTPONLY is True
        assert ProductionConfig.PREFERRED_URL_SCHEME == 'https'


@pytest.mark.unit
class TestTestingConfig:
    """Tests for testing configuration"""

    def test_testing_config_uses_in_memory_sqlite(self):
        """Test that tests run against in-memory SQLite"""
        assert TestingConfig.TESTING is True
        assert TestingConfig.DATABASE_URL == 'sqlite://'

    def test_testing_config_disables_scheduler_and_ai(self):
        """Test that background jobs and AI keys are off in tests"""
        assert TestingConfig.SCHEDULER_ENABLED is False
        assert TestingConfig.ANTHROPIC_API_KEY is None
        assert TestingConfig.OPENAI_API_KEY is None
        assert TestingConfig.AI_RETRY_DELAY == 0

    def test_testing_config_has_admin_key(self):
        """Test that tests have a platform admin key"""
        assert TestingConfig.ADMIN_API_KEY == 'test-admin-key'


@pytest.mark.unit
class TestGetConfig:
    """Tests for the config selector"""

    def test_get_config_by_name(self):
        """Test selecting each config by name"""
        assert get_config('development') is DevelopmentConfig
        assert get_config('production') is ProductionConfig
        assert get_config('testing') is TestingConfig

    def test_get_config_unknown_name_falls_back(self):
        """Test that an unknown name selects development"""
        assert get_config('staging') is DevelopmentConfig

    def test_get_config_reads_flask_env(self):
        """Test that FLASK_ENV picks the config when no name is given"""
        with patch.dict(os.environ, {'FLASK_ENV': 'production'}):
            assert get_config() is ProductionConfig
