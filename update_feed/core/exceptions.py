"""Domain errors shared by the token, feed and telemetry services.

Every error carries the HTTP status and machine-readable code it is
rendered with. Messages are safe to return to callers.
"""


class UpdateFeedError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(UpdateFeedError):
    """Malformed input."""

    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request"


class InvalidPayloadError(ValidationError):
    """Telemetry body that cannot be accepted."""

    code = "invalid_json"
    default_message = "Invalid JSON payload"


class AuthError(UpdateFeedError):
    """Missing or invalid credentials."""

    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired authentication token."


class MissingTokenError(AuthError):
    """No credential supplied."""

    code = "missing_token"
    default_message = (
        "Authentication token is required. "
        "Provide via Authorization header or token query parameter."
    )


class InvalidTokenFormatError(AuthError):
    """Credential does not have the expected shape."""


class RateLimitedError(AuthError):
    """Too many attempts from one source."""

    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class ForbiddenError(UpdateFeedError):
    """Authenticated, but not allowed."""

    status_code = 403
    code = "forbidden"
    default_message = "Admin role required"


class NoValidOrderError(ForbiddenError):
    """Caller holds no grant for the requested package."""

    code = "no_valid_order"
    default_message = "You do not have a valid order for this package."


class NotFoundError(UpdateFeedError):
    """Unknown entity."""

    status_code = 404
    code = "not_found"
    default_message = "Not found"


class TokenNotFoundError(NotFoundError):
    """No active token matches the presented secret."""

    code = "invalid_token"
    default_message = "Invalid or expired authentication token."


class QuotaExceededError(UpdateFeedError):
    """Owner already holds the maximum number of active tokens."""

    status_code = 400
    code = "quota_exceeded"
    default_message = "Maximum number of tokens reached. Please revoke an existing token first."


class StorageError(UpdateFeedError):
    """Persistence failed."""

    status_code = 500
    code = "storage_error"
    default_message = "Failed to store data"
