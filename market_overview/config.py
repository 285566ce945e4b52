import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _memory_session_store():
    from market_overview.sessions import MemorySessionStore
    return MemorySessionStore()


class Config:
    # Database configuration, SQLite unless DATABASE_URL is set
    basedir = os.path.abspath(os.path.dirname(__file__))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'market_overview.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sessions
    SESSION_LIFETIME = timedelta(hours=24)
    SESSION_TOKEN_LIFETIME = timedelta(hours=24)
    AUTH_COOKIE_NAME = 'market_session'
    AUTH_COOKIE_SECURE = os.environ.get('AUTH_COOKIE_SECURE', '0') == '1'
    AUTH_COOKIE_SAMESITE = 'Lax'
    SESSION_STORE_FACTORY = staticmethod(_memory_session_store)

    # Security configuration
    MAX_LOGIN_ATTEMPTS = 4  # failures before the account is locked
    ACCOUNT_LOCKOUT_DURATION = timedelta(minutes=15)

    # Input policy
    EMAIL_PATTERN = r'^[\w\.+-]+@[\w\.-]+\.\w+$'
    USERNAME_PATTERN = r'^[A-Za-z0-9_]{3,20}$'
    PASSWORD_MIN_LENGTH = 8
    PASSWORD_MAX_BYTES = 72  # bcrypt input limit
    SYMBOL_PATTERN = r'^[A-Z0-9.\-]{1,10}$'

    # CORS
    CORS_ALLOWED_ORIGIN = os.environ.get('CORS_ALLOWED_ORIGIN') or 'http://localhost:63342'
    CORS_MAX_AGE = 86400

    # Logging
    LOG_TO_FILE = True
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'
    LOG_FILE = 'market_overview.log'
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_TO_FILE = False
