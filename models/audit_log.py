from models import db, utcnow

LEVELS = ("INFO", "WARN", "ERROR")


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    level = db.Column(db.String(10), nullable=False, default="INFO", index=True)
    category = db.Column(db.String(50), nullable=False, default="SYSTEM", index=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete="SET NULL"), nullable=True, index=True)
    role = db.Column(db.String(20), nullable=True)

    action = db.Column(db.String(100), nullable=False)
    entity = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    method = db.Column(db.String(10), nullable=True)
    path = db.Column(db.String(255), nullable=True)
    status_code = db.Column(db.Integer, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    request_id = db.Column(db.String(64), nullable=True)

    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship('User', lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "level": self.level,
            "category": self.category,
            "user_id": self.user_id,
            "user": {"name": self.user.name, "email": self.user.email} if self.user else None,
            "role": self.role,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "method": self.method,
            "path": self.path,
            "status_code": self.status_code,
            "ip_address": self.ip_address,
            "request_id": self.request_id,
            "meta": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
