import os
from sqlalchemy.pool import QueuePool
from urllib.parse import urlparse
import pymysql
pymysql.install_as_MySQLdb()

class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change_this_secret_key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": QueuePool,
        "pool_size": 5,
        "max_overflow": 2,
        "pool_timeout": 10
    }

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = [origin.strip() for origin in os.getenv(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if origin.strip()]

    # Gamification
    LESSON_COMPLETION_XP = int(os.getenv('LESSON_COMPLETION_XP', 50))
    XP_PER_LEVEL = int(os.getenv('XP_PER_LEVEL', 1000))
    QUIZ_XP_MULTIPLIER = float(os.getenv('QUIZ_XP_MULTIPLIER', 1.0))
    LAB_XP_MULTIPLIER = float(os.getenv('LAB_XP_MULTIPLIER', 1.5))

    # Optimistic save retries for the progress aggregate
    PROGRESS_SAVE_RETRIES = int(os.getenv('PROGRESS_SAVE_RETRIES', 3))

class DevConfig(Config):
    """Development Configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'mysql+pymysql://root:@localhost/lms_progress')

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    # SQLite in-memory databases cannot use a QueuePool
    SQLALCHEMY_ENGINE_OPTIONS = {}

class ProdConfig(Config):
    """Production Configuration (Heroku deployment)"""
    DEBUG = False

    raw_db_url = os.getenv('DATABASE_URL')

    if raw_db_url:
        if raw_db_url.startswith("mysql://"):
            raw_db_url = raw_db_url.replace("mysql://", "mysql+pymysql://", 1)

        parsed_url = urlparse(raw_db_url)
        SQLALCHEMY_DATABASE_URI = f"{parsed_url.scheme}://{parsed_url.netloc}{parsed_url.path}"
    else:
        SQLALCHEMY_DATABASE_URI = os.getenv('JAWSDB_URL', 'sqlite:///:memory:')

ENV = os.getenv('FLASK_ENV', 'production').lower()

config_dict = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProdConfig
}

CurrentConfig = config_dict.get(ENV, ProdConfig)
