import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import db, utcnow
from information.csv_codec import ParsedCSV, generate_csv, validate_csv
from information.filters import ActiveOnly, ByInformation, ByRow, ByStatus, apply_filters
from information.models import (
    Information, InformationRow, ChangeRequest,
    PERMISSION_MODES, VIEW_ONLY, EDITABLE, EDIT_WITH_PROOF,
    PENDING, APPROVED, REJECTED,
)
from utils.errors import (
    PortalError, ValidationError, PermissionDeniedError, NotFoundError, ConflictError, InternalError,
)
from utils.audit_logger import get_diff
from utils.notification_utils import broadcast_information

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {"approve": APPROVED, "reject": REJECTED}
UPDATABLE_FIELDS = ("title", "description", "permission_mode", "active")
SCALAR_TYPES = (str, int, float, bool, type(None))
# path separators, quotes and control characters; letters in any script are kept
_UNSAFE_FILENAME = re.compile(r"[\x00-\x1f\x7f/\\:*?\"<>|]+")


class EditOutcome(NamedTuple):
    row: Optional[InformationRow] = None
    change_request: Optional[ChangeRequest] = None

    @property
    def requires_approval(self):
        return self.change_request is not None


# -----------------------------
# Helpers
# -----------------------------
@contextmanager
def atomic():
    """One commit for the block; any failure rolls the whole block back."""
    try:
        yield
        db.session.commit()
    except PortalError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Database error, transaction rolled back")
        raise InternalError() from e


def _require_admin(actor):
    if actor is None or not actor.is_admin:
        raise PermissionDeniedError("Administrator access required")


def _validate_mode(mode):
    if mode not in PERMISSION_MODES:
        raise ValidationError(
            f"Invalid permission mode '{mode}'", errors={"allowed": list(PERMISSION_MODES)}
        )
    return mode


def _validate_row_data(columns: List[str], data) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Row data must be an object keyed by column name")
    unknown = [k for k in data if k not in columns]
    if unknown:
        raise ValidationError("Row data has unknown columns", errors={"unknown_columns": unknown})
    bad = [k for k, v in data.items() if not isinstance(v, SCALAR_TYPES)]
    if bad:
        raise ValidationError("Row values must be plain values", errors={"invalid_columns": bad})
    return dict(data)


def _get_information(information_id, include_inactive=True) -> Information:
    info = db.session.get(Information, information_id)
    if not info or (not info.active and not include_inactive):
        raise NotFoundError("Information not found")
    return info


def _get_row(info: Information, row_id) -> InformationRow:
    row = apply_filters(InformationRow.query, InformationRow, [ByInformation(info.id), ByRow(row_id)]).first()
    if not row:
        raise NotFoundError("Row not found")
    return row


def _apply_row_data(row_id, data, editor_id) -> int:
    # single UPDATE by id; concurrent edits are last-writer-wins
    return InformationRow.query.filter_by(id=row_id).update(
        {"data": data, "last_edited_by": editor_id, "last_edited_at": utcnow()},
        synchronize_session=False,
    )


def _close_pending(filters, actor, notes):
    return apply_filters(ChangeRequest.query, ChangeRequest, [ByStatus(PENDING), *filters]).update(
        {
            "status": REJECTED,
            "reviewed_by": actor.id,
            "reviewed_at": utcnow(),
            "review_notes": notes,
        },
        synchronize_session=False,
    )


def _snapshot(info: Information):
    return {
        "title": info.title,
        "description": info.description,
        "permission_mode": info.permission_mode,
        "active": info.active,
    }


# ==============================================================================
# Table definitions
# ==============================================================================

def create_information(actor, title, columns, rows, description=None, permission_mode=None) -> Information:
    _require_admin(actor)

    title = (title or "").strip() if isinstance(title, str) else ""
    if not title:
        raise ValidationError("Title is required")
    if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
        raise ValidationError("Columns must be a list of column names")
    if not isinstance(rows, list):
        raise ValidationError("Rows must be a list")
    validate_csv(ParsedCSV(columns, rows))
    mode = _validate_mode(permission_mode or VIEW_ONLY)
    clean_rows = [_validate_row_data(columns, r) for r in rows]

    with atomic():
        info = Information(
            title=title,
            description=description,
            columns=list(columns),
            permission_mode=mode,
            created_by=actor.id,
        )
        db.session.add(info)
        db.session.flush()
        db.session.add_all([InformationRow(information_id=info.id, data=r) for r in clean_rows])

    logger.info("Information %s '%s' created with %d rows", info.id, info.title, len(clean_rows))

    try:
        broadcast_information(info.title, info.description)
    except Exception:
        logger.exception("Could not start broadcast for information %s", info.id)

    return info


def import_information(actor, title, parsed: ParsedCSV, description=None, permission_mode=None) -> Information:
    validate_csv(parsed)
    return create_information(actor, title, parsed.columns, parsed.rows, description, permission_mode)


def update_information(actor, information_id, fields: Dict[str, Any]):
    """Returns (information, diff) where diff is None when nothing changed."""
    _require_admin(actor)
    info = _get_information(information_id)

    unknown = [k for k in fields if k not in UPDATABLE_FIELDS]
    if unknown:
        raise ValidationError("Unknown fields", errors={"unknown_fields": unknown})

    changes = dict(fields)
    if "title" in changes:
        title = changes["title"]
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title cannot be empty")
        changes["title"] = title.strip()
    if "description" in changes and changes["description"] is not None \
            and not isinstance(changes["description"], str):
        raise ValidationError("description must be text")
    if "permission_mode" in changes:
        _validate_mode(changes["permission_mode"])
    if "active" in changes and not isinstance(changes["active"], bool):
        raise ValidationError("active must be true or false")

    before = _snapshot(info)
    with atomic():
        for field, value in changes.items():
            setattr(info, field, value)

    return info, get_diff(before, _snapshot(info))


def delete_information(actor, information_id) -> Dict[str, Any]:
    """
    Deletes the table and all of its rows in one transaction.
    Change requests are kept as history: references are cleared and
    still-pending ones are closed as rejected.
    """
    _require_admin(actor)
    info = _get_information(information_id)
    title = info.title

    with atomic():
        closed = _close_pending([ByInformation(info.id)], actor, "Table deleted")
        ChangeRequest.query.filter_by(information_id=info.id).update(
            {"information_id": None, "row_id": None}, synchronize_session=False
        )
        removed = InformationRow.query.filter_by(information_id=info.id).delete(synchronize_session=False)
        Information.query.filter_by(id=info.id).delete(synchronize_session=False)

    logger.info("Information %s '%s' deleted (%d rows, %d pending requests closed)",
                information_id, title, removed, closed)
    return {"id": information_id, "title": title, "rows_deleted": removed, "requests_closed": closed}


def list_information(include_inactive=False) -> List[Information]:
    query = Information.query
    if not include_inactive:
        query = apply_filters(query, Information, [ActiveOnly()])
    return query.order_by(Information.created_at.desc(), Information.id.desc()).all()


def get_information_rows(information_id, include_inactive=False):
    info = _get_information(information_id, include_inactive=include_inactive)
    rows = apply_filters(InformationRow.query, InformationRow, [ByInformation(info.id)]) \
        .order_by(InformationRow.created_at.asc(), InformationRow.id.asc()) \
        .all()
    return info, rows


# ==============================================================================
# Rows
# ==============================================================================

def delete_row(actor, information_id, row_id):
    _require_admin(actor)
    info = _get_information(information_id)
    row = _get_row(info, row_id)

    with atomic():
        _close_pending([ByRow(row.id)], actor, "Row deleted")
        ChangeRequest.query.filter_by(row_id=row.id).update({"row_id": None}, synchronize_session=False)
        db.session.delete(row)
    return row_id


def overwrite_row(actor, information_id, row_id, data) -> InformationRow:
    """Administrative edit: bypasses the permission mode."""
    _require_admin(actor)
    info = _get_information(information_id)
    row = _get_row(info, row_id)
    clean = _validate_row_data(info.columns, data)

    with atomic():
        if not _apply_row_data(row.id, clean, actor.id):
            raise NotFoundError("Row not found")
    return db.session.get(InformationRow, row.id)


# ==============================================================================
# Change-control workflow
# ==============================================================================

def submit_row_edit(actor, information_id, row_id, data, proof_images=None) -> EditOutcome:
    """
    view-only       -> PermissionDeniedError, nothing written
    editable        -> row updated in place
    edit-with-proof -> pending ChangeRequest, row untouched
    """
    info = _get_information(information_id, include_inactive=actor.is_admin)
    if info.permission_mode == VIEW_ONLY:
        raise PermissionDeniedError("This information is view-only")

    row = _get_row(info, row_id)
    clean = _validate_row_data(info.columns, data)

    if info.permission_mode == EDITABLE:
        with atomic():
            if not _apply_row_data(row.id, clean, actor.id):
                raise NotFoundError("Row not found")
        logger.info("Row %s of information %s edited by user %s", row.id, info.id, actor.id)
        return EditOutcome(row=db.session.get(InformationRow, row.id))

    if info.permission_mode == EDIT_WITH_PROOF:
        if proof_images is None:
            proof_images = []
        if not isinstance(proof_images, list) or not all(isinstance(p, str) and p.strip() for p in proof_images):
            raise ValidationError("Proof images must be a list of URLs")
        if not proof_images:
            raise ValidationError("Proof images are required")

        with atomic():
            change_request = ChangeRequest(
                information_id=info.id,
                row_id=row.id,
                information_title=info.title,
                proposed_changes=clean,
                proof_images=[p.strip() for p in proof_images],
                requested_by=actor.id,
                status=PENDING,
            )
            db.session.add(change_request)
        logger.info("Change request %s opened on row %s by user %s", change_request.id, row.id, actor.id)
        return EditOutcome(change_request=change_request)

    raise ValidationError("Invalid permission mode")


def review_change_request(actor, request_id, action, review_notes=None) -> ChangeRequest:
    """
    pending -> approved (proposed changes applied to the row) | rejected.
    The pending -> X transition is one conditional UPDATE, so two reviewers
    racing on the same request cannot both win.
    """
    _require_admin(actor)
    new_status = REVIEW_ACTIONS.get(action)
    if new_status is None:
        raise ValidationError("Invalid action", errors={"allowed": list(REVIEW_ACTIONS)})
    if review_notes is not None and not isinstance(review_notes, str):
        raise ValidationError("reviewNotes must be text")

    change_request = db.session.get(ChangeRequest, request_id)
    if not change_request:
        raise NotFoundError("Change request not found")
    row_id = change_request.row_id
    proposed = dict(change_request.proposed_changes or {})
    requester = change_request.requested_by

    with atomic():
        claimed = ChangeRequest.query.filter_by(id=request_id, status=PENDING).update(
            {
                "status": new_status,
                "reviewed_by": actor.id,
                "reviewed_at": utcnow(),
                "review_notes": review_notes,
            },
            synchronize_session=False,
        )
        if not claimed:
            raise ConflictError("Change request already processed")

        if new_status == APPROVED:
            if row_id is None or not _apply_row_data(row_id, proposed, requester):
                raise ConflictError("The row this request targets no longer exists")

    db.session.refresh(change_request)
    logger.info("Change request %s %s by user %s", request_id, new_status, actor.id)
    return change_request


def list_change_requests(filters) -> List[ChangeRequest]:
    return apply_filters(ChangeRequest.query, ChangeRequest, filters) \
        .order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc()) \
        .all()


# ==============================================================================
# Export
# ==============================================================================

def export_filename(title):
    """Title as a download name: unsafe characters dropped, whitespace runs as "_"."""
    name = "_".join(_UNSAFE_FILENAME.sub("", title or "").split()).strip("._")
    return f"{name or 'information'}.csv"


def export_information(information_id, include_inactive=True):
    """Returns (filename, csv_text) for the whole table, no pagination."""
    info, rows = get_information_rows(information_id, include_inactive=include_inactive)
    return export_filename(info.title), generate_csv(info.columns, [r.data or {} for r in rows])
