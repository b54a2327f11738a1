"""Profile sync and snapshot endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from .....domain.documents import StructuredDocument
from .....reconciliation.engine import ReconciliationEngine
from .....reconciliation.store import ProfileStore
from ..deps import get_engine, get_store, get_user_id

router = APIRouter(prefix="/profile", tags=["profile"])
audit_logger = logging.getLogger("resume_sync.web.audit")


class SyncProfileRequest(BaseModel):
    structured_document: StructuredDocument = Field(alias="structuredDocument")

    model_config = ConfigDict(populate_by_name=True)


class SyncProfileResponse(BaseModel):
    success: bool
    message: str
    result: Dict[str, Any]


@router.post("/sync", response_model=SyncProfileResponse)
async def sync_profile(
    request: SyncProfileRequest,
    user_id: str = Depends(get_user_id),
    engine: ReconciliationEngine = Depends(get_engine),
) -> SyncProfileResponse:
    report = await engine.reconcile(user_id, request.structured_document)
    audit_logger.info(
        "profile_synced user_id=%s experience_added=%d education_added=%d skills_added=%d projects_added=%d skipped=%d",
        user_id,
        report.experience.added,
        report.education.added,
        report.skills.added,
        report.projects.added,
        report.total_skipped,
    )
    return SyncProfileResponse(success=True, message=report.summary(), result=report.to_dict())


@router.get("")
async def get_profile(
    user_id: str = Depends(get_user_id),
    store: ProfileStore = Depends(get_store),
) -> Dict[str, Any]:
    snapshot = await store.snapshot(user_id)
    return snapshot.to_dict()
