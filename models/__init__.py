# models/__init__.py
from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    # Naive UTC, matching what SQLite hands back for DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Import all models
from .user import User
from .audit_log import AuditLog
