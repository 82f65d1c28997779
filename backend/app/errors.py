# backend/app/errors.py
"""Error kinds raised by the review core and mapped to HTTP status codes in main."""


class ReviewAppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ReviewAppError):
    status_code = 400
    default_message = "Invalid input"


class Unauthenticated(ReviewAppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ReviewAppError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(ReviewAppError):
    status_code = 404
    default_message = "Not found"


class Conflict(ReviewAppError):
    status_code = 409
    default_message = "Already exists"


class Unavailable(ReviewAppError):
    """A store or classifier dependency failed; the cause is logged, never shown."""

    status_code = 500
    default_message = "Server error"
