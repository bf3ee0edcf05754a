"""
Centralized Configuration for the TourOps back-office data core
Manages environment-specific settings for storage, logging and business rules.
"""
import os


def _env_bool(name, default):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    """Base configuration with defaults"""

    # Storage Settings
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'json')  # json, database, memory
    DATA_FOLDER = os.environ.get('DATA_FOLDER', 'tourops_data')
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///tourops.db')
    STORAGE_KEY_PREFIX = os.environ.get('STORAGE_KEY_PREFIX', '@tourops_')

    # Business Rules
    INVOICE_DUE_DAYS = int(os.environ.get('INVOICE_DUE_DAYS', '14'))
    UPCOMING_TRIP_DAYS = int(os.environ.get('UPCOMING_TRIP_DAYS', '7'))
    DASHBOARD_LIMIT = int(os.environ.get('DASHBOARD_LIMIT', '5'))

    # Mutation Handling
    SERIALIZE_MUTATIONS = _env_bool('SERIALIZE_MUTATIONS', 'true')
    ENFORCE_TASK_ADJACENCY = _env_bool('ENFORCE_TASK_ADJACENCY', 'false')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'tourops.log')
    LOG_FOLDER = os.environ.get('LOG_FOLDER', 'logs')


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'database')


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    STORAGE_BACKEND = 'memory'  # Nothing touches disk in tests
    DATABASE_URL = 'sqlite://'
    LOG_LEVEL = 'DEBUG'


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config():
    """Get configuration based on TOUROPS_ENV environment variable"""
    env = os.environ.get('TOUROPS_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)


def normalize_database_url(url):
    """Handle hosted postgres:// vs postgresql:// URL format"""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url
