"""
Error taxonomy shared by the engine, the store, and the scripts.

Every error carries a stable ``error_code`` so callers can render the same
``{"error_code": ..., "message": ...}`` payload regardless of where it was raised.
"""


class AppError(Exception):
    error_code = "SERVER_ERROR"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error_code": self.error_code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    """Client input or requirement data failed a structural check."""

    error_code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    """Plan, program, program association, or section does not exist."""

    error_code = "NOT_FOUND"


class CatalogUnavailableError(AppError):
    """The course catalog backing filter queries cannot be read."""

    error_code = "CATALOG_UNAVAILABLE"
