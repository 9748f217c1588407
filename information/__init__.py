from flask import Blueprint

information_bp = Blueprint("information", __name__)
change_requests_bp = Blueprint("change_requests", __name__)

from . import routes, review_routes  # noqa: E402,F401
