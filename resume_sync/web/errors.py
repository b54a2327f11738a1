"""API error helpers and exception handlers."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import (
    AdmissionDenied,
    AuthenticationRequired,
    ConfigError,
    ExtractionFailed,
    JobParseFailed,
    ReconciliationPartialFailure,
    ResumeSyncError,
    TailoringFailed,
    TaskNotFound,
    TaskSubmissionError,
    UnsupportedInput,
)

# Domain error -> HTTP status; anything unlisted is a 500.
STATUS_BY_ERROR = (
    (AdmissionDenied, 429),
    (AuthenticationRequired, 401),
    (UnsupportedInput, 400),
    (ExtractionFailed, 422),
    (JobParseFailed, 422),
    (TailoringFailed, 502),
    (TaskNotFound, 404),
    (TaskSubmissionError, 502),
    (ReconciliationPartialFailure, 500),
    (ConfigError, 500),
)


class APIError(Exception):
    """Application-level API error with status/code mapping."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}
        self.headers = headers or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": jsonable_encoder(self.details),
            }
        }

    @classmethod
    def from_domain(cls, exc: ResumeSyncError) -> "APIError":
        status_code = next((status for kind, status in STATUS_BY_ERROR if isinstance(exc, kind)), 500)
        headers = exc.decision.headers() if isinstance(exc, AdmissionDenied) else None
        return cls(status_code, exc.code, exc.message, exc.details, headers=headers)


def api_error_response(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    err = APIError(status_code=status_code, code=code, message=message, details=details)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def api_error_handler(_: Request, exc: APIError) -> JSONResponse:
    """Render contract-compliant error response."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers or None)


async def domain_error_handler(request: Request, exc: ResumeSyncError) -> JSONResponse:
    """Domain errors that escape an endpoint render through the same envelope."""
    return await api_error_handler(request, APIError.from_domain(exc))


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Normalize FastAPI validation errors to API contract shape."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "BAD_REQUEST",
                "message": "Invalid request payload",
                "details": {"errors": jsonable_encoder(exc.errors())},
            }
        },
    )
