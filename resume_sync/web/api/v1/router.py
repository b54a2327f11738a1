"""Top-level v1 API router."""

from __future__ import annotations

from fastapi import APIRouter

from .endpoints.jobs import router as jobs_router
from .endpoints.profile import router as profile_router
from .endpoints.projects import router as projects_router
from .endpoints.resumes import router as resumes_router
from .endpoints.tailor import router as tailor_router
from .endpoints.tasks import router as tasks_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(resumes_router)
api_v1_router.include_router(profile_router)
api_v1_router.include_router(projects_router)
api_v1_router.include_router(jobs_router)
api_v1_router.include_router(tailor_router)
api_v1_router.include_router(tasks_router)
