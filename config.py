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

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'segvenc')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'segvenc')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'segvenc')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Public URL of the panel (linked from digest emails)
    APP_URL = os.getenv('APP_URL', 'https://plenum-gestao-vencimentos.vercel.app')

    # Daily digest
    DIGEST_DAYS_THRESHOLD = int(os.getenv('DIGEST_DAYS_THRESHOLD', '30'))
    DIGEST_SUBJECT = os.getenv('DIGEST_SUBJECT', 'Resumo diário de vencimentos')
    CRON_SECRET = os.getenv('CRON_SECRET')

    # Payment gateway webhooks (Kiwify)
    KIWIFY_WEBHOOK_SECRET = os.getenv('KIWIFY_WEBHOOK_SECRET')
    SUBSCRIPTION_DEFAULT_DAYS = int(os.getenv('SUBSCRIPTION_DEFAULT_DAYS', '30'))
    DEFAULT_COMPANY_NAME = os.getenv('DEFAULT_COMPANY_NAME', 'Nova Empresa')
    DEFAULT_PLAN_NAME = os.getenv('DEFAULT_PLAN_NAME', 'Plano Kiwify')

    # Email configuration
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'Gestão de Vencimentos <alertas@segvenc.app>'
    )
    MAIL_DEBUG = False
    MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'

    # CSV uploads
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_UPLOAD_SIZE', 2 * 1024 * 1024))  # 2MB


class TestConfig(Config):
    """Configuration used by the test suite (in-memory SQLite, no SMTP)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    SQLALCHEMY_ECHO = False
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    KIWIFY_WEBHOOK_SECRET = None
    CRON_SECRET = None
