# clipshare/errors.py
# Application error taxonomy.
# Each error carries the HTTP status and machine-readable code it maps to.


class AppError(Exception):
    """Base application error with structured response."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class ValidationError(AppError):
    """Required input missing or empty."""
    def __init__(self, message: str = "Validation failed", details: dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class NotFoundError(AppError):
    """Code absent or expired."""
    def __init__(self, message: str = "Clipboard not found or expired", details: dict = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details
        )


class ForbiddenError(AppError):
    """Ownership check failed."""
    def __init__(self, message: str = "You do not have permission to edit this clipboard"):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
        )


class ServiceUnavailableError(AppError):
    """Underlying store unreachable, timed out, or circuit open."""
    def __init__(
        self,
        message: str = "Service temporarily unavailable: database connection error",
        details: dict = None
    ):
        super().__init__(
            message=message,
            error_code="SERVICE_UNAVAILABLE",
            status_code=503,
            details=details
        )


class InternalError(AppError):
    """Unexpected failure; callers only see a generic message."""
    def __init__(self, message: str = "An internal error occurred", details: dict = None):
        super().__init__(
            message=message,
            error_code="INTERNAL_ERROR",
            status_code=500,
            details=details
        )
