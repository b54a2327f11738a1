"""Dependency providers for v1 API."""

from __future__ import annotations

from typing import Callable

from fastapi import Request, Response

from ....admission import AdmissionController, derive_identifier
from ....config import Settings
from ....errors import AdmissionDenied, ResumeSyncError
from ....ingestion.pipeline import IngestionPipeline
from ....jobs import JobParser
from ....providers.base import TaskClient
from ....reconciliation.engine import ReconciliationEngine
from ....reconciliation.project_merge import ProjectMergePlanner
from ....reconciliation.store import ProfileStore
from ....tailoring import ResumeTailor
from ...auth import Authenticator
from ...errors import APIError


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ProfileStore:
    """Access shared profile store from app state."""
    return request.app.state.profile_store


def get_task_client(request: Request) -> TaskClient:
    return request.app.state.task_client


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def get_engine(request: Request) -> ReconciliationEngine:
    return request.app.state.reconciliation_engine


def get_merge_planner(request: Request) -> ProjectMergePlanner:
    return request.app.state.merge_planner


def get_job_parser(request: Request) -> JobParser:
    return request.app.state.job_parser


def get_tailor(request: Request) -> ResumeTailor:
    return request.app.state.tailor


def get_user_id(request: Request) -> str:
    """Resolve the caller's user id; request bodies never carry it."""
    authenticator: Authenticator = request.app.state.authenticator
    try:
        return authenticator.resolve(request.headers)
    except ResumeSyncError as exc:
        raise APIError.from_domain(exc) from exc


def require_admission(name: str) -> Callable[[Request, Response], None]:
    """Dependency that spends one token from the named limiter.

    Denied callers get 429 plus rate-limit headers before the endpoint runs;
    admitted responses carry the same headers.
    """

    def _check(request: Request, response: Response) -> None:
        admission: AdmissionController = request.app.state.admission
        identifier = derive_identifier(request.headers, request.client.host if request.client else None)
        decision = admission.check(name, identifier)
        if not decision.admitted:
            raise APIError.from_domain(AdmissionDenied(decision, name))
        for header, value in decision.headers().items():
            response.headers[header] = value

    return _check
