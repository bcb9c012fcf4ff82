"""
Custom exception hierarchy for the Classroom Insights service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Store-client errors (MissingCredentialError, StoreUnauthorizedError,
StoreUnreachableError) are raised by the persistence gateway's transport
and normally never reach an HTTP handler: the gateway and the apply
recorder translate them into outcomes.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from app.schemas.common import FieldError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class InsightsException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ArtifactNotFoundError(InsightsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ARTIFACT_NOT_FOUND"

    def __init__(self, artifact_id: int | str):
        super().__init__(
            message=f"Artifact {artifact_id} not found.",
            details={"artifact_id": str(artifact_id)},
        )


class ActionRecordNotFoundError(InsightsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ACTION_RECORD_NOT_FOUND"

    def __init__(self, record_id: int):
        super().__init__(
            message=f"Action record {record_id} not found.",
            details={"action_record_id": record_id},
        )


class NotAuthenticatedError(InsightsException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"

    def __init__(self):
        super().__init__(
            message="Authentication required. Provide Bearer token in Authorization header.",
        )


class InvalidTokenError(InsightsException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_TOKEN"

    def __init__(self):
        super().__init__(message="Invalid authentication token.")


class ArtifactHasNoActionsError(InsightsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "ARTIFACT_HAS_NO_ACTIONS"

    def __init__(self, artifact_id: int):
        super().__init__(
            message=f"Artifact {artifact_id} has no actions; pass chosen_action explicitly.",
            details={"artifact_id": artifact_id},
        )


class ArtifactNotPersistedError(InsightsException):
    http_status = status.HTTP_409_CONFLICT
    code = "ARTIFACT_NOT_PERSISTED"

    def __init__(self, artifact_id: str):
        super().__init__(
            message=f"Artifact {artifact_id} only exists locally and cannot be applied.",
            details={"artifact_id": artifact_id},
        )


class MissingCredentialError(InsightsException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "MISSING_CREDENTIAL"

    def __init__(self):
        super().__init__(message="No bearer token available for the artifact store.")


class StoreUnauthorizedError(InsightsException):
    """The artifact store rejected the bearer token (session invalid)."""
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "SESSION_INVALID"

    def __init__(self, path: str):
        super().__init__(
            message="Artifact store rejected the credential. Re-authenticate.",
            details={"path": path},
        )


class StoreUnreachableError(InsightsException):
    """Transport failure, non-auth error status or malformed store response."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "STORE_UNREACHABLE"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            message=message,
            details={"status_code": status_code} if status_code else {},
        )
        self.status_code = status_code


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def insights_exception_handler(request: Request, exc: InsightsException) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == 401 else None
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append(FieldError(
            field=".".join(str(loc) for loc in error["loc"] if loc != "body"),
            message=error["msg"],
            type=error["type"],
        ).model_dump())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
