"""Development configuration."""
import os
from datetime import timedelta

class DevelopmentConfig:
    """Development configuration class."""
    
    # Basic Flask config
    DEBUG = True
    TESTING = False
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    
    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DEV_DATABASE_URL', 'sqlite:///drive_engine_dev.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False
    
    # Redis (optional in dev)
    REDIS_URL = os.getenv('REDIS_URL')
    
    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=8)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    
    # CORS
    CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
    
    # Rate Limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = "1000 per hour"
    
    # Scan tokens
    SCAN_TOKEN_TTL_SECONDS = 60
    SCAN_TOKEN_REFRESH_SECONDS = 55
    SCAN_TOKEN_QR_IMAGE = True
    
    # Round reordering
    REORDER_LOCK_TIMEOUT = 5
    REORDER_LOCK_WAIT = 3
    
    # Pagination
    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 200
    
    # Logging
    LOG_LEVEL = 'DEBUG'
    LOG_FILE = 'logs/app.log'
