# =============================================================================
# AgriMarket Backend
# config.py - Configuration Management
#
# Environment-based configuration for development, testing, and production.
# Uses python-dotenv to load environment variables from .env file.
# =============================================================================

import os
from datetime import timedelta
from dotenv import load_dotenv

from constants import (
    RATE_LIMIT_PRESETS,
    RATE_LIMIT_CLEANUP_INTERVAL,
    DEFAULT_LOCKOUT_THRESHOLD,
    DEFAULT_LOCKOUT_MINUTES,
    DEFAULT_PASSWORD_EXPIRY_DAYS
)

# Load environment variables from .env file
load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, str(default)).lower() == 'true'


class Config:
    """
    Base configuration class with default settings.
    All other configuration classes inherit from this.
    """

    # ==========================================================================
    # Flask Core Settings
    # ==========================================================================
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = False
    TESTING = False

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///agrimarket.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # Connection pooling for production performance
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
        'max_overflow': 20,
        'pool_timeout': 30
    }

    # ==========================================================================
    # JWT Authentication Configuration
    # ==========================================================================
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)
    JWT_TOKEN_LOCATION = ['headers']
    JWT_HEADER_NAME = 'Authorization'
    JWT_HEADER_TYPE = 'Bearer'

    # ==========================================================================
    # Route-level Rate Limiting (Flask-Limiter)
    # ==========================================================================
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', True)
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_STRATEGY = os.getenv('RATELIMIT_STRATEGY', 'fixed-window')
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '200 per hour')
    RATELIMIT_HEADERS_ENABLED = False

    # Number of reverse proxies whose X-Forwarded-For hop is trusted
    PROXY_FIX_X_FOR = int(os.getenv('PROXY_FIX_X_FOR', 0))

    # ==========================================================================
    # Per-action Rate Limiting (in-memory buckets keyed by action + IP)
    # ==========================================================================
    RATE_LIMIT_ENABLED = _env_bool('RATE_LIMIT_ENABLED', True)
    RATE_LIMIT_CLEANUP_ENABLED = True
    RATE_LIMIT_CLEANUP_INTERVAL = int(
        os.getenv('RATE_LIMIT_CLEANUP_INTERVAL', RATE_LIMIT_CLEANUP_INTERVAL)
    )

    RATE_LIMIT_STRICT_INTERVAL = RATE_LIMIT_PRESETS['strict']['interval']
    RATE_LIMIT_STRICT_MAX = RATE_LIMIT_PRESETS['strict']['max_requests']
    RATE_LIMIT_NORMAL_INTERVAL = RATE_LIMIT_PRESETS['normal']['interval']
    RATE_LIMIT_NORMAL_MAX = RATE_LIMIT_PRESETS['normal']['max_requests']
    RATE_LIMIT_RELAXED_INTERVAL = RATE_LIMIT_PRESETS['relaxed']['interval']
    RATE_LIMIT_RELAXED_MAX = RATE_LIMIT_PRESETS['relaxed']['max_requests']

    # ==========================================================================
    # Account Security
    # ==========================================================================
    LOCKOUT_THRESHOLD = int(os.getenv('LOCKOUT_THRESHOLD', DEFAULT_LOCKOUT_THRESHOLD))
    LOCKOUT_DURATION = timedelta(
        minutes=int(os.getenv('LOCKOUT_MINUTES', DEFAULT_LOCKOUT_MINUTES))
    )
    PASSWORD_EXPIRY_DAYS = int(os.getenv('PASSWORD_EXPIRY_DAYS', DEFAULT_PASSWORD_EXPIRY_DAYS))
    SECURITY_NOTIFICATIONS_ENABLED = _env_bool('SECURITY_NOTIFICATIONS_ENABLED', True)

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    LOG_FILE = os.getenv('LOG_FILE', 'agrimarket.log')
    SECURITY_LOG_FILE = os.getenv('SECURITY_LOG_FILE', 'security.log')
    LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB
    LOG_BACKUP_COUNT = 5
    LOG_TO_FILE = _env_bool('LOG_TO_FILE', True)

    # ==========================================================================
    # CORS Configuration
    # ==========================================================================
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    CORS_SUPPORTS_CREDENTIALS = True

    # ==========================================================================
    # Request Limits
    # ==========================================================================
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # 2MB max JSON body


class DevelopmentConfig(Config):
    """
    Development configuration with debug mode enabled.
    Uses SQLite database for easy local development.
    """
    DEBUG = True
    SQLALCHEMY_ECHO = True  # Log SQL queries for debugging

    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///agrimarket_dev.db'
    )

    # Relaxed rate limiting for development
    RATELIMIT_DEFAULT = '1000 per hour'


class TestingConfig(Config):
    """
    Testing configuration for automated tests.
    Uses in-memory SQLite database for fast test execution.
    """
    TESTING = True
    DEBUG = True

    # In-memory database for testing
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SQLALCHEMY_ECHO = False

    # Route-level limits off; per-action limits stay on so they can be tested
    RATELIMIT_ENABLED = False
    RATE_LIMIT_CLEANUP_ENABLED = False

    LOG_TO_FILE = False

    # Fast hashing for tests
    BCRYPT_LOG_ROUNDS = 4


class ProductionConfig(Config):
    """
    Production configuration with security hardening.
    Requires all secrets to be set via environment variables.
    """
    DEBUG = False
    TESTING = False

    # Production requires proper DATABASE_URL
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')

    # Use Redis for route-level rate limiting in production
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL', 'memory://')

    # Stricter rate limits for production
    RATELIMIT_DEFAULT = '100 per hour'

    # Secure cookie settings for production
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Strict'


# =============================================================================
# Configuration Dictionary
# Maps environment names to configuration classes
# =============================================================================
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config():
    """
    Get the appropriate configuration based on FLASK_ENV environment variable.

    Returns:
        Config: Configuration class for the current environment
    """
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
