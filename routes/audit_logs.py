from flask import Blueprint, request
from sqlalchemy import or_

from models.audit_log import AuditLog, LEVELS
from models.user import ADMIN_ROLES
from utils.decorators import token_required, role_required
from utils.errors import ValidationError
from utils.responses import ok

audit_bp = Blueprint("audit", __name__)

MAX_LIMIT = 100


def _positive_int(name, default):
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None
    if value < 1:
        raise ValidationError(f"{name} must be positive")
    return value


# 🔹 Admin / Super Admin
@audit_bp.route("/logs", methods=["GET"])
@token_required
@role_required(ADMIN_ROLES)
def get_audit_logs():
    """
    GET /api/admin/logs
      level, category  (ALL or absent = no filter)
      action, user_id, search (action / path / IP substring)
      page, limit
    """
    query = AuditLog.query

    level = request.args.get("level")
    if level and level != "ALL":
        if level not in LEVELS:
            raise ValidationError(f"Invalid level '{level}'")
        query = query.filter(AuditLog.level == level)

    category = request.args.get("category")
    if category and category != "ALL":
        query = query.filter(AuditLog.category == category)

    if request.args.get("action"):
        query = query.filter(AuditLog.action == request.args["action"])
    if request.args.get("user_id"):
        query = query.filter(AuditLog.user_id == _positive_int("user_id", None))

    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            AuditLog.action.ilike(pattern),
            AuditLog.path.ilike(pattern),
            AuditLog.ip_address.ilike(pattern),
        ))

    page = _positive_int("page", 1)
    limit = min(_positive_int("limit", 20), MAX_LIMIT)

    pagination = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()) \
                      .paginate(page=page, per_page=limit, error_out=False)

    return ok("Logs fetched", data={
        "logs": [l.to_dict() for l in pagination.items],
        "pagination": {
            "total": pagination.total,
            "page": page,
            "limit": limit,
            "total_pages": pagination.pages,
        },
    })
