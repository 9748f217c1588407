from flask import request, g

from models.user import ADMIN_ROLES
from utils.audit_logger import log_action
from utils.decorators import token_required, role_required
from utils.responses import ok
from . import change_requests_bp
from . import services
from .filters import ByInformation, ByRequester, ByStatus, parse_int
from .models import PENDING

CATEGORY = "CHANGE_REQUEST"


def _filters_from_args(args):
    """?status=pending (default) | all, ?tableId=, ?requestedBy="""
    filters = []
    status = args.get("status", PENDING)
    if status and status != "all":
        filters.append(ByStatus(status))
    table_id = parse_int(args.get("tableId"), "tableId")
    if table_id is not None:
        filters.append(ByInformation(table_id))
    requested_by = parse_int(args.get("requestedBy"), "requestedBy")
    if requested_by is not None:
        filters.append(ByRequester(requested_by))
    return filters


@change_requests_bp.route("", methods=["GET"])
@token_required
@role_required(ADMIN_ROLES)
def list_change_requests():
    items = services.list_change_requests(_filters_from_args(request.args))
    return _ok_list(items)


@change_requests_bp.route("/mine", methods=["GET"])
@token_required
def my_change_requests():
    args = request.args.to_dict()
    args.setdefault("status", "all")
    args.pop("requestedBy", None)
    filters = _filters_from_args(args) + [ByRequester(g.actor.id)]
    return _ok_list(services.list_change_requests(filters))


@change_requests_bp.route("/<int:request_id>/<string:action>", methods=["POST"])
@token_required
@role_required(ADMIN_ROLES)
def review_change_request(request_id, action):
    """POST /api/change-requests/<id>/approve | /reject, body {reviewNotes?}"""
    data = request.get_json(silent=True) or {}
    notes = data.get("reviewNotes")

    change_request = services.review_change_request(g.actor, request_id, action, review_notes=notes)
    log_action(f"CHANGE_REQUEST_{change_request.status.upper()}", "change_request", request_id,
               category=CATEGORY,
               meta={"row_id": change_request.row_id, "information_id": change_request.information_id})
    return ok(f"Change request {change_request.status}", data=change_request.to_dict(populate=True))


def _ok_list(items):
    return ok("Change requests fetched", data=[cr.to_dict(populate=True) for cr in items])


