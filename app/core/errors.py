# app/core/errors.py
from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """
    Base class for business-rule failures.

    Services raise these where they would otherwise raise a bare
    HTTPException. The detail is a flat dict:

        {"error": "<message>", **context}

    and `app.main` renders it as the response body unchanged, so clients
    get e.g. {"error": ..., "allowedStates": [...]} for retry logic.
    """

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(
            status_code=self.http_status,
            detail={"error": message, **context},
        )


class ValidationError(AppError):
    """Malformed or missing input (empty cart, below minimum order)."""

    http_status = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    http_status = status.HTTP_404_NOT_FOUND


class ForbiddenError(AppError):
    """Role or ownership mismatch, unapproved/unavailable driver."""

    http_status = status.HTTP_403_FORBIDDEN


class ConflictError(AppError):
    """Record is not in the expected state (closed store, already assigned...)."""

    http_status = status.HTTP_409_CONFLICT


class InvalidTransitionError(ConflictError):
    pass


class InternalError(AppError):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
