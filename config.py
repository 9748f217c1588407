import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

SECRET_KEY = os.getenv("SECRET_KEY", "portal-secret-key")

# Local SQLite by default, DATABASE_URL switches to PostgreSQL etc.
DEFAULT_DB = f"sqlite:///{os.path.join(BASE_DIR, 'portal.db')}"


def _flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", DEFAULT_DB)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = SECRET_KEY

    JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", 24))
    RESET_TOKEN_MINUTES = int(os.getenv("RESET_TOKEN_MINUTES", 15))

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_FROM = os.getenv("MAIL_FROM", "MCA Notification <no-reply@mca.edu>")
    MAIL_ENABLED = _flag("MAIL_ENABLED", True)
    NOTIFICATIONS_ASYNC = _flag("NOTIFICATIONS_ASYNC", True)

    PORTAL_BASE_URL = os.getenv("PORTAL_BASE_URL", "http://localhost:3000")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_MB", 10)) * 1024 * 1024


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret-key"
    MAIL_ENABLED = False
    NOTIFICATIONS_ASYNC = False
    LOG_LEVEL = "WARNING"
