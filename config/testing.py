"""Testing configuration."""
from datetime import timedelta

class TestingConfig:
    """Testing configuration class."""
    
    # Basic Flask config
    DEBUG = False
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    
    # Database (in-memory SQLite for testing)
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False
    
    # Redis disabled; reorder relies on the database constraints alone
    REDIS_URL = None
    
    # JWT Configuration
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(hours=1)
    
    CORS_ORIGINS = ["*"]
    
    # Rate Limiting (disabled for testing)
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'
    
    # Scan tokens
    SCAN_TOKEN_TTL_SECONDS = 60
    SCAN_TOKEN_REFRESH_SECONDS = 55
    SCAN_TOKEN_QR_IMAGE = False
    
    # Round reordering
    REORDER_LOCK_TIMEOUT = 5
    REORDER_LOCK_WAIT = 1
    
    # Pagination
    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 200
    
    # Logging
    LOG_LEVEL = 'WARNING'
