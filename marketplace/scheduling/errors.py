"""Errors raised by the scheduling engine.

Each error carries the HTTP status the API layer reports for it, so routes
can translate any ``SchedulingError`` without inspecting its type.
"""

from fastapi import status


class SchedulingError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SchedulingError):
    """Missing or malformed input, or a time outside the working window."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(SchedulingError):
    """The requested interval overlaps an accepted appointment."""
    status_code = status.HTTP_409_CONFLICT


class StorageError(SchedulingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
