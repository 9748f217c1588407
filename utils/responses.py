import os
from urllib.parse import quote

from flask import jsonify, make_response
from werkzeug.utils import secure_filename


def ok(message="OK", data=None, code=200, **extra):
    payload = {"success": True, "message": message, "data": data}
    payload.update(extra)
    return jsonify(payload), code


def fail(message="Bad Request", code=400, errors=None, **extra):
    payload = {"success": False, "message": message}
    if errors is not None:
        payload["errors"] = errors
    payload.update(extra)
    return jsonify(payload), code


def from_error(err):
    """Render a PortalError through fail()."""
    return fail(err.message, err.status_code, errors=err.errors)


def _content_disposition(filename):
    if filename.isascii():
        return f'attachment; filename="{filename}"'
    # RFC 5987: ASCII fallback for old clients, UTF-8 name for the rest
    stem, ext = os.path.splitext(filename)
    fallback = f"{secure_filename(stem) or 'export'}{ext}"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def csv_attachment(content, filename):
    output = make_response(content)
    output.headers["Content-Disposition"] = _content_disposition(filename)
    output.headers["Content-Type"] = "text/csv; charset=utf-8"
    return output
