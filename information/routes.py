import os

from flask import request, g

from models.user import ADMIN_ROLES
from utils.audit_logger import log_action
from utils.decorators import token_required, role_required
from utils.errors import ValidationError
from utils.responses import ok, csv_attachment
from utils.validators import require_fields, require_json
from . import information_bp
from . import services
from .csv_codec import parse_upload
from .filters import parse_int

CATEGORY = "INFORMATION"

# request body key -> Information attribute
FIELD_NAMES = {
    "title": "title",
    "description": "description",
    "permissionMode": "permission_mode",
    "active": "active",
}


def _update_fields(data):
    unknown = [k for k in data if k not in FIELD_NAMES and k != "id"]
    if unknown:
        raise ValidationError("Unknown fields", errors={"unknown_fields": unknown})
    return {FIELD_NAMES[k]: v for k, v in data.items() if k in FIELD_NAMES}


# ==============================================================================
# Table definitions
# ==============================================================================

@information_bp.route("", methods=["GET"])
@token_required
def list_tables():
    """Admins see every table, students only active ones. Newest first."""
    items = services.list_information(include_inactive=g.actor.is_admin)
    return ok("Information fetched", data=[i.to_dict(with_creator=True) for i in items])


@information_bp.route("", methods=["POST"])
@token_required
@role_required(ADMIN_ROLES)
def create_table():
    data = require_json(request.get_json(silent=True))
    require_fields(data, ["title", "columns", "rows"])

    info = services.create_information(
        g.actor,
        title=data.get("title"),
        columns=data.get("columns"),
        rows=data.get("rows"),
        description=data.get("description"),
        permission_mode=data.get("permissionMode"),
    )
    log_action("INFORMATION_CREATED", "information", info.id, status_code=201, category=CATEGORY,
               meta={"title": info.title, "rows": len(data["rows"]), "permission_mode": info.permission_mode})
    return ok("Information created successfully", data=info.to_dict(), code=201)


@information_bp.route("/import", methods=["POST"])
@token_required
@role_required(ADMIN_ROLES)
def import_table():
    """
    POST /api/tables/import (multipart)
      file: .csv or .xlsx, first row is the header
      title (defaults to the file name), description, permissionMode
    """
    upload = request.files.get("file")
    if not upload or not upload.filename:
        raise ValidationError("No file uploaded")

    parsed = parse_upload(upload.filename, upload.stream)
    title = request.form.get("title") or os.path.splitext(upload.filename)[0]

    info = services.import_information(
        g.actor,
        title=title,
        parsed=parsed,
        description=request.form.get("description"),
        permission_mode=request.form.get("permissionMode"),
    )
    log_action("INFORMATION_IMPORTED", "information", info.id, status_code=201, category=CATEGORY,
               meta={"title": info.title, "file": upload.filename, "rows": len(parsed.rows)})
    return ok("Information imported successfully", data=info.to_dict(), code=201)


@information_bp.route("/<int:information_id>", methods=["PUT"])
@token_required
@role_required(ADMIN_ROLES)
def update_table(information_id):
    data = require_json(request.get_json(silent=True))
    info, diff = services.update_information(g.actor, information_id, _update_fields(data))
    if diff:
        log_action("INFORMATION_UPDATED", "information", info.id, category=CATEGORY, meta={"changes": diff})
    return ok("Information updated successfully", data=info.to_dict())


@information_bp.route("/<int:information_id>", methods=["DELETE"])
@token_required
@role_required(ADMIN_ROLES)
def delete_table(information_id):
    result = services.delete_information(g.actor, information_id)
    log_action("INFORMATION_DELETED", "information", information_id, level="WARN", category=CATEGORY,
               meta=result)
    return ok("Information deleted successfully", data=result)


# ==============================================================================
# Rows
# ==============================================================================

@information_bp.route("/<int:information_id>/rows", methods=["GET"])
@token_required
def list_rows(information_id):
    info, rows = services.get_information_rows(information_id, include_inactive=g.actor.is_admin)
    return ok("Rows fetched", data={"table": info.to_dict(), "rows": [r.to_dict() for r in rows]})


@information_bp.route("/<int:information_id>/rows/<int:row_id>", methods=["PUT"])
@token_required
def edit_row(information_id, row_id):
    """
    Behaviour depends on the table's permission mode:
      view-only       -> 403
      editable        -> 200, row updated
      edit-with-proof -> 201, change request queued (proofImages required)
    """
    data = require_json(request.get_json(silent=True))
    require_fields(data, ["data"])

    outcome = services.submit_row_edit(
        g.actor, information_id, row_id, data["data"], proof_images=data.get("proofImages")
    )

    if outcome.requires_approval:
        cr = outcome.change_request
        log_action("CHANGE_REQUEST_SUBMITTED", "change_request", cr.id, status_code=201,
                   category="CHANGE_REQUEST", meta={"information_id": information_id, "row_id": row_id})
        return ok("Change submitted for approval",
                  data={"changeRequest": cr.to_dict(), "requiresApproval": True}, code=201)

    log_action("ROW_EDITED", "information_row", row_id, category=CATEGORY,
               meta={"information_id": information_id})
    return ok("Row updated successfully", data={"row": outcome.row.to_dict(), "requiresApproval": False})


@information_bp.route("/<int:information_id>/rows/<int:row_id>", methods=["PATCH"])
@token_required
@role_required(ADMIN_ROLES)
def overwrite_row(information_id, row_id):
    data = require_json(request.get_json(silent=True))
    require_fields(data, ["data"])

    row = services.overwrite_row(g.actor, information_id, row_id, data["data"])
    log_action("ROW_OVERWRITTEN", "information_row", row_id, category=CATEGORY,
               meta={"information_id": information_id})
    return ok("Row updated successfully", data=row.to_dict())


@information_bp.route("/<int:information_id>/rows", methods=["DELETE"])
@token_required
@role_required(ADMIN_ROLES)
def delete_row(information_id):
    row_id = parse_int(request.args.get("rowId"), "rowId")
    if row_id is None:
        raise ValidationError("Row ID is required")

    services.delete_row(g.actor, information_id, row_id)
    log_action("ROW_DELETED", "information_row", row_id, level="WARN", category=CATEGORY,
               meta={"information_id": information_id})
    return ok("Row deleted successfully", data={"id": row_id})


# ==============================================================================
# Export
# ==============================================================================

@information_bp.route("/<int:information_id>/export", methods=["GET"])
@token_required
def export_table(information_id):
    filename, content = services.export_information(information_id, include_inactive=g.actor.is_admin)
    return csv_attachment(content, filename)
