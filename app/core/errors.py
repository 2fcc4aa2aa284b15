"""
Tracking error taxonomy.

Each error carries the HTTP status it maps to and a message that is safe to
show the caller. Rendered by the handler registered in app.main as
{"status": "error", "message": ...}.
"""


class TrackingError(Exception):
    status_code: int = 500
    message: str = "Internal error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class SlugNotFound(TrackingError):
    """Unknown or inactive slug. Both look identical to the visitor."""
    status_code = 404
    message = "Link not found or is inactive."


class Unauthorized(TrackingError):
    status_code = 401
    message = "Unauthorized"


class PayloadError(TrackingError):
    """Postback body couldn't be mapped to a conversion."""
    status_code = 400
    message = "Invalid payload"


class OfferUnresolved(PayloadError):
    message = "Cannot determine product offer"


class StorageFailure(TrackingError):
    status_code = 500
    message = "Storage failure"


class InvalidRequest(TrackingError):
    status_code = 400
    message = "Invalid request"


class NotFound(TrackingError):
    status_code = 404
    message = "Not found"


class Conflict(TrackingError):
    status_code = 409
    message = "Conflict"
