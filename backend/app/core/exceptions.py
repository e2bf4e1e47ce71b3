"""
Domain Exceptions
Errors raised by the service layer.

Services never build HTTP responses. They raise one of these and the
handler registered in app.main turns it into {"detail": message} with the
attached status code.
"""


class AppError(Exception):
    """Base class for all expected application errors."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Missing or malformed input."""
    status_code = 400


class DuplicateError(AppError):
    """A unique business key is already taken."""
    status_code = 400


class NotFoundError(AppError):
    """Requested record does not exist or is not visible to the caller."""
    status_code = 404


class PermissionDeniedError(AppError):
    status_code = 403


class InvalidTransitionError(AppError):
    """A workflow operation is not allowed from the store's current status."""
    status_code = 400

    def __init__(self, message: str, action=None, current=None):
        super().__init__(message)
        self.action = action
        self.current = current


class StoreIdUnavailableError(AppError):
    status_code = 400

    def __init__(self, message: str = "Cannot generate Store ID. Missing city or district information."):
        super().__init__(message)


class StorageError(AppError):
    """File could not be written to any storage backend."""
    status_code = 502
