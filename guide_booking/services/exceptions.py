"""Domain errors raised by the booking and review services.

Routes never see SQLAlchemy errors for expected failures; the services
translate them into one of these and ``main.py`` maps each class to an
HTTP status code.
"""


class ServiceError(Exception):
    """Base class for expected, caller-visible failures."""

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailedError(ServiceError):
    """Input passed schema checks but violates a domain rule."""


class NotFoundError(ServiceError):
    """A referenced booking, review, destination or guide does not exist."""


class ConflictError(ServiceError):
    """Dates unavailable, duplicate review or duplicate report."""


class PermissionDeniedError(ServiceError):
    """The caller is not allowed to perform the operation."""


class BookingStateError(PermissionDeniedError):
    """The booking's current status forbids the operation for this caller."""
