"""Production configuration."""
import os
from datetime import timedelta

class ProductionConfig:
    """Production configuration class."""
    
    # Basic Flask config
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv('SECRET_KEY')  # Must be set in production
    
    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False
    
    # Redis (required for reorder locks and rate limit storage)
    REDIS_URL = os.getenv('REDIS_URL')
    
    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    
    # CORS
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '').split(',') if os.getenv('CORS_ORIGINS') else []
    
    # Rate Limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL')
    RATELIMIT_DEFAULT = "600/hour"
    
    # Scan tokens
    SCAN_TOKEN_TTL_SECONDS = int(os.getenv('SCAN_TOKEN_TTL_SECONDS', 60))
    SCAN_TOKEN_REFRESH_SECONDS = int(os.getenv('SCAN_TOKEN_REFRESH_SECONDS', 55))
    SCAN_TOKEN_QR_IMAGE = True
    
    # Round reordering
    REORDER_LOCK_TIMEOUT = 5
    REORDER_LOCK_WAIT = 3
    
    # Pagination
    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 200
    
    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = '/app/logs/app.log'
