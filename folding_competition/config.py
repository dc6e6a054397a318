import os

import pytz
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Team competition configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///competition.db')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Stats provider settings
    STATS_API_URL = os.getenv('STATS_API_URL', 'https://api2.foldingathome.org').rstrip('/')
    STATS_REQUEST_TIMEOUT_SECONDS = int(os.getenv('STATS_REQUEST_TIMEOUT_SECONDS', 30))
    
    # Ingestion settings
    INGESTION_CONCURRENCY = int(os.getenv('INGESTION_CONCURRENCY', 8))
    STATS_POLL_MINUTES = int(os.getenv('STATS_POLL_MINUTES', 60))
    
    # Competition settings
    MONTHLY_RESET_ENABLED = os.getenv('MONTHLY_RESET_ENABLED', 'True').lower() == 'true'
    TIMEZONE = os.getenv('TIMEZONE', 'UTC')
    USERS_PER_CATEGORY = int(os.getenv('USERS_PER_CATEGORY', 1))
    
    # Hardware multiplier settings
    MINIMUM_MULTIPLIER = 1.0
    MULTIPLIER_DECIMAL_PLACES = 2
    
    @classmethod
    def get_async_database_url(cls) -> str:
        """Get the database URL with an async driver"""
        database_url = cls.DATABASE_URL
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return database_url
    
    @classmethod
    def validate(cls):
        """Validate that configuration values are usable"""
        if cls.INGESTION_CONCURRENCY < 1:
            raise ValueError("INGESTION_CONCURRENCY must be a positive integer")
        if cls.STATS_POLL_MINUTES < 1:
            raise ValueError("STATS_POLL_MINUTES must be a positive integer")
        if cls.STATS_REQUEST_TIMEOUT_SECONDS < 1:
            raise ValueError("STATS_REQUEST_TIMEOUT_SECONDS must be a positive integer")
        try:
            pytz.timezone(cls.TIMEZONE)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"TIMEZONE '{cls.TIMEZONE}' is not a known timezone")
