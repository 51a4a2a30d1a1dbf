import os
from datetime import timedelta
from sqlalchemy.pool import QueuePool
from urllib.parse import urlparse
from cachelib import SimpleCache
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

    SESSION_TYPE = 'cachelib'
    SESSION_FILE_DIR = os.getenv("SESSION_FILE_DIR", "flask_session")
    SESSION_PERMANENT = True
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "False") == "True" if os.getenv('FLASK_ENV', 'production').lower() == 'production' else False
    SESSION_COOKIE_PATH = "/"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    PERMANENT_SESSION_LIFETIME = timedelta(days=1)

    JWT_EXPIRATION = timedelta(hours=24)
    CSRF_HEADER = "X-CSRF-Token"
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

    MAIL_SERVER = os.getenv("MAIL_SERVER", "live.smtp.mailtrap.io")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "hello@1think2wins.com")

    # Critical transactions
    TRANSACTION_TIMEOUT = float(os.getenv("TRANSACTION_TIMEOUT", "8"))
    TRANSACTION_MAX_RETRIES = int(os.getenv("TRANSACTION_MAX_RETRIES", "2"))
    TRANSACTION_RETRY_DELAY = float(os.getenv("TRANSACTION_RETRY_DELAY", "0.5"))

    HISTORY_CACHE_TTL = int(os.getenv("HISTORY_CACHE_TTL", "180"))
    HISTORY_CACHE_THRESHOLD = 50

    DAILY_ACCESS_HOURS = 24
    WALLET_MIN_DEPOSIT = 5
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

class DevConfig(Config):
    """Development Configuration"""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'mysql+pymysql://root:@localhost/think2wins_db')
    LOG_LEVEL = "DEBUG"

class TestConfig(Config):
    DEBUG = False
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_CACHELIB = SimpleCache()
    SESSION_COOKIE_SECURE = False
    MAIL_SUPPRESS_SEND = True
    TRANSACTION_RETRY_DELAY = 0
    LOG_LEVEL = "WARNING"

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
        SQLALCHEMY_DATABASE_URI = os.getenv('JAWSDB_URL', 'sqlite:///think2wins.db')
        SQLALCHEMY_ENGINE_OPTIONS = {}

config_dict = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProdConfig
}
