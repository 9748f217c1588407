import json
import logging

from flask import request, g, has_request_context

from models import db
from models.audit_log import AuditLog
from utils.middleware import get_request_id

logger = logging.getLogger(__name__)

# Bookkeeping columns that never count as a user-visible change
_DIFF_SKIP = {"id", "created_at", "updated_at", "information_id", "created_by"}


def get_diff(previous: dict, current: dict):
    """
    Field-level diff of two snapshots: {field: {"from": old, "to": new}}.
    Returns None when nothing changed.
    """
    changes = {}
    for key in set(previous) | set(current):
        if key in _DIFF_SKIP:
            continue
        before = previous.get(key)
        after = current.get(key)
        if json.dumps(before, sort_keys=True, default=str) != json.dumps(after, sort_keys=True, default=str):
            changes[key] = {"from": before, "to": after}
    return changes or None


def log_action(action, entity, entity_id=None, status_code=200, meta=None,
               level="INFO", category="SYSTEM", actor=None):
    """
    Creates an audit log row in its own commit.
    Safe logging: never store passwords/tokens in meta.
    """
    try:
        if actor is None and has_request_context():
            actor = g.get('actor')

        log = AuditLog(
            level=level,
            category=category,
            user_id=getattr(actor, "id", None),
            role=getattr(actor, "role", None) or "SYSTEM",

            action=action,
            entity=entity,
            entity_id=entity_id,
            status_code=status_code,
            meta=meta,
        )
        if has_request_context():
            log.method = request.method
            log.path = request.path
            log.ip_address = request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip() or None
            log.user_agent = (request.headers.get("User-Agent") or "")[:255] or None
            log.request_id = get_request_id()

        db.session.add(log)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to write audit log %s %s/%s", action, entity, entity_id)
