"""Error taxonomy for the engagement endpoints.

Every error carries a stable ``code`` that is returned to clients alongside a
human-readable message. ``Conflict`` never leaves the service layer.
"""


class EngagementError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ArticleNotFound(EngagementError):
    status_code = 404
    code = "article_not_found"
    default_message = "Article not found"


class Unauthorized(EngagementError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class Conflict(EngagementError):
    """Raised inside a write transaction when a competing writer got there first; handled by the service."""

    default_message = "Concurrent write conflict"


class StoreFailure(EngagementError):
    status_code = 500
    code = "store_failure"
    default_message = "Storage failure"
