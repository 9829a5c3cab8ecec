# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Error taxonomy shared by services, repositories and controllers.

Every error carries an HTTP status and a human-readable message; the
exception handlers in ``main.py`` turn them into ``{message, data}`` envelopes.
"""

from typing import Any, Optional


class ServiceError(Exception):
    status_code: int = 400

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data


class ValidationError(ServiceError):
    """A required field is missing or a field value is invalid."""


class ConflictError(ServiceError):
    """A unique constraint would be violated."""


class ReferenceNotFound(ServiceError):
    """A referenced foreign id does not exist."""


class InvalidQuery(ServiceError):
    """A structured query parameter could not be parsed."""


class NotFound(ServiceError):
    """The primary target id does not exist."""

    status_code = 404


class StoreError(ServiceError):
    """Unexpected persistence failure. The message never leaks driver details."""

    status_code = 500

    def __init__(self, message: str = "Internal storage error", data: Optional[Any] = None):
        super().__init__(message, data)
