from datetime import timedelta
import secrets

from werkzeug.security import generate_password_hash, check_password_hash

from models import db, utcnow

SUPER_ADMIN = "SUPER_ADMIN"
ADMIN = "ADMIN"
STUDENT = "STUDENT"

ROLES = (SUPER_ADMIN, ADMIN, STUDENT)
ADMIN_ROLES = (SUPER_ADMIN, ADMIN)


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=STUDENT)
    is_active = db.Column(db.Boolean, default=True)

    reset_token = db.Column(db.String(64), nullable=True)
    reset_token_expiry = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def set_password(self, password):
        self.password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password, password)

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    def generate_reset_token(self, minutes=15):
        self.reset_token = secrets.token_urlsafe(32)
        self.reset_token_expiry = utcnow() + timedelta(minutes=minutes)
        return self.reset_token

    def clear_reset_token(self):
        self.reset_token = None
        self.reset_token_expiry = None

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
