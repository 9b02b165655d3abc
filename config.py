"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Session cookie holds the storefront cart (signed, client-side)
    SESSION_COOKIE_NAME = os.getenv('SESSION_COOKIE_NAME', 'ev_cart')
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 60 * 60 * 24 * 7  # 7 days

    # Identity tokens (verified on every request)
    IDENTITY_TOKEN_SECRET = os.getenv('IDENTITY_TOKEN_SECRET', SECRET_KEY)
    IDENTITY_TOKEN_ALGORITHMS = os.getenv('IDENTITY_TOKEN_ALGORITHMS', 'HS256').split(',')
    IDENTITY_TOKEN_AUDIENCE = os.getenv('IDENTITY_TOKEN_AUDIENCE') or None
    IDENTITY_COOKIE_NAME = os.getenv('IDENTITY_COOKIE_NAME', 'session')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'commerce')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'commerce')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'commerce')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Tenant resolution
    TENANT_RESOLVE_ATTEMPTS = int(os.getenv('TENANT_RESOLVE_ATTEMPTS', '3'))
    TENANT_RESOLVE_BACKOFF = float(os.getenv('TENANT_RESOLVE_BACKOFF', '0.05'))  # seconds

    # Commerce
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'KWD')
    RESTOCK_ON_CANCEL = os.getenv('RESTOCK_ON_CANCEL', 'true').lower() == 'true'

    # Payments
    PAYMENT_PROVIDERS = os.getenv('PAYMENT_PROVIDERS', 'mock').split(',')
    PAYMENT_GATEWAY_URL = os.getenv('PAYMENT_GATEWAY_URL', '')
    PAYMENT_GATEWAY_API_KEY = os.getenv('PAYMENT_GATEWAY_API_KEY', '')
    PAYMENT_TIMEOUT_SECONDS = float(os.getenv('PAYMENT_TIMEOUT_SECONDS', '15'))

    # Redis Cache Configuration
    # Read-mostly tenant/catalog lookups; never used on the checkout path
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_PRODUCTS_TTL = int(os.getenv('CACHE_PRODUCTS_TTL', '60'))
    CACHE_TENANTS_TTL = int(os.getenv('CACHE_TENANTS_TTL', '300'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'commerce')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    ENV = 'testing'
    SECRET_KEY = 'test-secret-key'
    IDENTITY_TOKEN_SECRET = 'test-identity-secret'
    IDENTITY_TOKEN_ALGORITHMS = ['HS256']
    IDENTITY_TOKEN_AUDIENCE = None
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///commerce-test.db')
    SQLALCHEMY_ECHO = False
    TENANT_RESOLVE_BACKOFF = 0
    CACHE_ENABLED = False
    PAYMENT_PROVIDERS = ['mock']
