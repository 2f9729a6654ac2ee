"""Application exceptions rendered as JSON error bodies at the HTTP boundary."""


class EvaError(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class InvalidRequestError(EvaError):
    """Raised when the inbound request is malformed or incomplete."""

    status_code = 400


class AuthenticationError(EvaError):
    """Raised when the caller cannot be identified."""

    status_code = 401


class PermissionDeniedError(EvaError):
    """Raised when the caller's role is not allowed to use an endpoint."""

    status_code = 403


class NotFoundError(EvaError):
    """Raised when a tenant-scoped record does not exist for the caller."""

    status_code = 404


class RateLimitExceededError(EvaError):
    """Raised when the caller exhausted the assistant quota for the window."""

    status_code = 429


class StoreError(EvaError):
    """Raised when a data store operation fails."""

    status_code = 500


class ConfigurationError(EvaError):
    """Raised when configuration is invalid or missing."""

    status_code = 500
