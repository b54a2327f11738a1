"""FastAPI app entrypoint for the resume sync API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from .. import __version__
from ..admission import AdmissionController
from ..config import Settings, load_settings
from ..errors import ResumeSyncError
from ..ingestion.pipeline import IngestionPipeline
from ..jobs import JobParser
from ..providers import get_task_client, reset_task_client
from ..providers.base import TaskClient
from ..reconciliation.engine import ReconciliationEngine
from ..reconciliation.project_merge import ProjectMergePlanner
from ..reconciliation.sqlite_store import SQLiteProfileStore
from ..reconciliation.store import InMemoryProfileStore, ProfileStore
from ..tailoring import ResumeTailor
from .api.v1.router import api_v1_router
from .auth import Authenticator
from .errors import APIError, api_error_handler, domain_error_handler, validation_error_handler

logger = logging.getLogger("resume_sync.web.api")


def build_store(settings: Settings) -> ProfileStore:
    if settings.store == "sqlite":
        return SQLiteProfileStore(settings.db_path)
    return InMemoryProfileStore()


def create_app(
    settings: Optional[Settings] = None,
    *,
    task_client: Optional[TaskClient] = None,
    store: Optional[ProfileStore] = None,
    admission: Optional[AdmissionController] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to what ``settings`` describes; tests pass their own.
    """
    settings = settings or load_settings()
    store = store if store is not None else build_store(settings)
    task_client = task_client if task_client is not None else get_task_client(settings)
    admission = admission or AdmissionController.from_settings(
        settings.rate_limits,
        sweep_interval_seconds=settings.rate_limit_sweep_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await store.start()
        try:
            yield
        finally:
            await store.stop()
            aclose = getattr(task_client, "aclose", None)
            try:
                if aclose is not None:
                    await aclose()
            finally:
                reset_task_client()

    app = FastAPI(title="Resume Sync API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.profile_store = store
    app.state.task_client = task_client
    app.state.admission = admission
    app.state.authenticator = Authenticator(settings.auth_mode, settings.api_tokens)
    app.state.pipeline = IngestionPipeline(
        task_client,
        engine=settings.engine,
        poll_interval=settings.poll_interval_seconds,
        max_wait=settings.structuring_max_wait_seconds,
        allowed_mime_types=settings.allowed_upload_mime_types,
    )
    app.state.reconciliation_engine = ReconciliationEngine(store)
    app.state.merge_planner = ProjectMergePlanner(
        task_client,
        store,
        engine=settings.engine,
        poll_interval=settings.poll_interval_seconds,
        max_wait=settings.merge_max_wait_seconds,
    )
    app.state.job_parser = JobParser(
        task_client,
        engine=settings.engine,
        poll_interval=settings.poll_interval_seconds,
        max_wait=settings.job_parse_max_wait_seconds,
    )
    app.state.tailor = ResumeTailor(
        task_client,
        store,
        engine=settings.engine,
        poll_interval=settings.poll_interval_seconds,
        max_wait=settings.tailor_max_wait_seconds,
    )
    app.include_router(api_v1_router)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - start) * 1000
            logger.info(
                "api_request method=%s path=%s status=%s duration_ms=%.2f provider=%s engine=%s",
                request.method,
                request.url.path,
                500,
                duration_ms,
                task_client.name,
                settings.engine,
            )
            raise

        duration_ms = (perf_counter() - start) * 1000
        logger.info(
            "api_request method=%s path=%s status=%s duration_ms=%.2f provider=%s engine=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            task_client.name,
            settings.engine,
        )
        return response

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict:
        return {"status": "ok", "provider": task_client.name, "store": settings.store}

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(ResumeSyncError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    return app
