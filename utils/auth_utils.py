import jwt
import datetime
from dataclasses import dataclass

from flask import current_app

from models.user import ADMIN_ROLES


@dataclass(frozen=True)
class Actor:
    """Identity of whoever is calling a service: threaded through every workflow call."""
    id: int
    role: str

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, role=user.role)


def generate_token(user_id, email, role):
    payload = {
        "user_id": user_id,
        "email": email,
        "role": role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=current_app.config.get("JWT_EXPIRY_HOURS", 24)),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm="HS256")


def decode_token(token):
    return jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=["HS256"])
