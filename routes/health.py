from flask import Blueprint
from sqlalchemy import text

from models import db
from utils.responses import ok, fail

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        db.session.rollback()
        return fail("Database unavailable", 503, data={"status": "down"})
    return ok("Portal is healthy", data={"status": "up"})
