"""
Tests for configuration system
"""
import os
import pytest
from config import (
    Config,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
    normalize_database_url,
)


@pytest.mark.unit
class TestBaseConfig:
    """Tests for base configuration"""

    def test_base_config_has_storage_settings(self):
        """Test that base config names a backend and a key prefix"""
        config = Config()
        assert config.STORAGE_BACKEND in ('json', 'database', 'memory')
        assert config.STORAGE_KEY_PREFIX == '@tourops_'

    def test_base_config_has_business_rules(self):
        """Test that base config has invoice and dashboard defaults"""
        config = Config()
        assert config.INVOICE_DUE_DAYS == 14
        assert config.UPCOMING_TRIP_DAYS == 7
        assert config.DASHBOARD_LIMIT == 5

    def test_base_config_serializes_mutations(self):
        """Test that mutations are serialized unless disabled"""
        config = Config()
        assert config.SERIALIZE_MUTATIONS is True
        assert config.ENFORCE_TASK_ADJACENCY is False

    def test_base_config_has_logging_settings(self):
        """Test that base config has logging settings"""
        config = Config()
        assert config.LOG_LEVEL == 'INFO'
        assert config.LOG_FILE == 'tourops.log'


@pytest.mark.unit
class TestDevelopmentConfig:
    """Tests for development configuration"""

    def test_development_config_has_debug(self):
        """Test that development config has debug enabled"""
        config = DevelopmentConfig()
        assert config.DEBUG is True

    def test_development_config_has_testing_disabled(self):
        """Test that development config has testing disabled"""
        config = DevelopmentConfig()
        assert config.TESTING is False

    def test_development_config_has_debug_log_level(self):
        """Test that development config has DEBUG log level"""
        config = DevelopmentConfig()
        assert config.LOG_LEVEL == 'DEBUG'


@pytest.mark.unit
class TestProductionConfig:
    """Tests for production configuration"""

    def test_production_config_has_debug_disabled(self):
        """Test that production config has debug disabled"""
        config = ProductionConfig()
        assert config.DEBUG is False
        assert config.TESTING is False


@pytest.mark.unit
class TestTestingConfig:
    """Tests for testing configuration"""

    def test_testing_config_has_testing_enabled(self):
        """Test that testing config has testing enabled"""
        config = TestingConfig()
        assert config.TESTING is True

    def test_testing_config_uses_memory_storage(self):
        """Test that testing config never touches disk"""
        config = TestingConfig()
        assert config.STORAGE_BACKEND == 'memory'
        assert config.DATABASE_URL == 'sqlite://'


@pytest.mark.unit
class TestGetConfig:
    """Tests for configuration selector"""

    def test_get_config_returns_development_by_default(self, test_env_vars):
        """Test that get_config returns development config by default"""
        del os.environ['TOUROPS_ENV']
        assert get_config() == DevelopmentConfig

    def test_get_config_returns_production_when_set(self, test_env_vars):
        """Test that get_config returns production config when env is production"""
        os.environ['TOUROPS_ENV'] = 'production'
        assert get_config() == ProductionConfig

    def test_get_config_returns_testing_when_set(self, test_env_vars):
        """Test that get_config returns testing config when env is testing"""
        assert get_config() == TestingConfig

    def test_get_config_unknown_env_falls_back(self, test_env_vars):
        os.environ['TOUROPS_ENV'] = 'staging'
        assert get_config() == DevelopmentConfig


@pytest.mark.unit
class TestDatabaseUrl:
    """Tests for hosted database URL handling"""

    def test_postgres_scheme_is_rewritten(self):
        assert normalize_database_url('postgres://u:p@host/db') == 'postgresql://u:p@host/db'

    def test_other_urls_unchanged(self):
        assert normalize_database_url('sqlite:///tourops.db') == 'sqlite:///tourops.db'
        assert normalize_database_url(None) is None
