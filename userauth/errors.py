"""Error taxonomy shared by services and the HTTP error handler.

Every error that may reach a client is an ``ApiError`` carrying the HTTP
status and a user-safe message. The exception handler in ``userauth.main``
turns it into the error envelope.
"""


class ApiError(Exception):
    """Base class for errors rendered as an error envelope."""

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    """Missing or empty request fields, missing avatar."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(ApiError):
    """Bad credentials or missing/invalid tokens."""

    status_code = 401
    default_message = "Unauthorized request"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    """Duplicate username or email."""

    status_code = 409
    default_message = "Resource already exists"


class InternalError(ApiError):
    status_code = 500
    default_message = "Internal server error"
