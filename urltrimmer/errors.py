"""Error taxonomy shared by the store, the services and the HTTP layer.

Every service-level failure derives from ``LinkServiceError`` and carries the
HTTP status the API layer answers with, so route handlers never translate
errors by hand.
"""

__all__ = [
    "LinkServiceError",
    "InvalidInputError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "UnavailableError",
]


class LinkServiceError(Exception):
    """Base class for all link service errors."""

    status_code: int = 500
    default_detail: str = "Server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInputError(LinkServiceError):
    """Malformed URL or metadata outside its bounds."""

    status_code = 400
    default_detail = "Invalid input"


class NotFoundError(LinkServiceError):
    """No such record, or the redirect target is inactive or expired."""

    status_code = 404
    default_detail = "Short URL not found"


class ForbiddenError(LinkServiceError):
    """The caller does not own the record."""

    status_code = 403
    default_detail = "User not authorized"


class ConflictError(LinkServiceError):
    """A storage-level unique constraint rejected an insert.

    Raised by the store only; the management service retries or translates it
    before anything reaches a caller.
    """

    status_code = 409
    default_detail = "Conflicting record"

    def __init__(self, detail: str | None = None, constraint: str | None = None) -> None:
        super().__init__(detail)
        self.constraint = constraint


class UnavailableError(LinkServiceError):
    """Storage unreachable, or short code allocation exhausted its budget."""

    status_code = 503
    default_detail = "Service unavailable"
