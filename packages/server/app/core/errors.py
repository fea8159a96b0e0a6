"""
Typed errors raised by the service layer.

Each error is an HTTPException so FastAPI renders it directly; the detail body
carries a machine-readable code next to the message.
"""

from __future__ import annotations

from fastapi import HTTPException


class TrackerError(HTTPException):
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str):
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": message},
        )
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotAuthenticated(TrackerError):
    status_code = 401
    code = "NOT_AUTHENTICATED"


class PermissionDenied(TrackerError):
    status_code = 403
    code = "PERMISSION_DENIED"


class NotFound(TrackerError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(TrackerError):
    status_code = 409
    code = "CONFLICT"


class ValidationFailed(TrackerError):
    status_code = 422
    code = "VALIDATION_FAILED"


class InvalidTransition(TrackerError):
    status_code = 422
    code = "INVALID_TRANSITION"


class StorageFailure(TrackerError):
    status_code = 502
    code = "STORAGE_FAILURE"


class PersistenceFailure(TrackerError):
    status_code = 500
    code = "PERSISTENCE_FAILURE"
