"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """A keyed lookup matched no row."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class EmptyResultException(AppException):
    """A multi-row query matched nothing."""

    def __init__(self, message: str = "No results"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class StoreException(AppException):
    """The database rejected an operation."""

    def __init__(self, message: str = "Database operation failed", operation: str | None = None):
        """Initialize with 500 status code."""
        self.operation = operation
        super().__init__(message, status_code=500)


class AuthException(AppException):
    """The identity provider rejected a sign-in or registration attempt."""

    def __init__(self, message: str = "Authentication failed"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class SessionInvalidException(AppException):
    """The joining session is missing, expired or already completed."""

    def __init__(self, message: str = "Session not found or has expired", status_code: int = 404):
        """Initialize with 404 (missing) or 410 (ended) status code."""
        super().__init__(message, status_code=status_code)


class ServiceUnavailableException(AppException):
    """An external collaborator is not configured or reachable."""

    def __init__(self, message: str = "Service unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
