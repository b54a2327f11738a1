"""Domain error taxonomy shared by the pipeline, the task clients and the web layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .admission import AdmissionDecision


class ResumeSyncError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(ResumeSyncError):
    code = "SERVER_MISCONFIGURED"


class AdmissionDenied(ResumeSyncError):
    """Caller exhausted its token bucket and must back off."""

    code = "RATE_LIMITED"

    def __init__(self, decision: "AdmissionDecision", limiter_name: str = "ai") -> None:
        super().__init__(
            "Too many requests. Please try again later.",
            {"retry_after": decision.retry_after, "limiter": limiter_name},
        )
        self.decision = decision
        self.limiter_name = limiter_name

    @property
    def retry_after(self) -> int:
        return self.decision.retry_after


class AuthenticationRequired(ResumeSyncError):
    code = "UNAUTHORIZED"


class UnsupportedInput(ResumeSyncError):
    code = "UNSUPPORTED_INPUT"


class ExtractionFailed(ResumeSyncError):
    code = "EXTRACTION_FAILED"


class StructuringDegraded(ResumeSyncError):
    """Structuring could not produce a trusted document.

    Only raised and caught inside the ingestion pipeline; callers see the
    fallback document instead.
    """

    code = "STRUCTURING_DEGRADED"


class ReconciliationPartialFailure(ResumeSyncError):
    """A single profile entity could not be written."""

    code = "RECONCILIATION_PARTIAL_FAILURE"

    def __init__(self, entity: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.entity = entity


class TaskSubmissionError(ResumeSyncError):
    """Submission failed before the backend produced a task id."""

    code = "TASK_SUBMISSION_FAILED"


class TaskNotFound(ResumeSyncError):
    code = "TASK_NOT_FOUND"


class JobParseFailed(ResumeSyncError):
    code = "JOB_PARSE_FAILED"


class TailoringFailed(ResumeSyncError):
    code = "TAILORING_FAILED"
