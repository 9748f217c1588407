"""Error taxonomy shared by services and route handlers.

Services raise these; the handler registered in ``app.create_app`` turns
them into ``fail()`` responses. ``message`` is what the caller sees.
"""


class PortalError(Exception):
    status_code = 500
    default_message = "An internal server error occurred"

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(PortalError):
    status_code = 400
    default_message = "Validation failed"


class ParseError(ValidationError):
    default_message = "Could not parse CSV"


class PermissionDeniedError(PortalError):
    status_code = 403
    default_message = "Permission denied"


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Not found"


class ConflictError(PortalError):
    status_code = 409
    default_message = "Conflict"


class InternalError(PortalError):
    status_code = 500
