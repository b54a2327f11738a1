"""Project merge endpoint."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from .....domain.documents import ProjectEntry
from .....reconciliation.project_merge import ProjectMergePlanner
from ..deps import get_merge_planner, get_user_id, require_admission

router = APIRouter(prefix="/projects", tags=["projects"])


class MergeProjectsRequest(BaseModel):
    projects: List[ProjectEntry] = Field(default_factory=list)
    auto_apply: bool = Field(default=True, alias="autoApply")

    model_config = ConfigDict(populate_by_name=True)


@router.post("/merge", dependencies=[Depends(require_admission("ai"))])
async def merge_projects(
    request: MergeProjectsRequest,
    user_id: str = Depends(get_user_id),
    planner: ProjectMergePlanner = Depends(get_merge_planner),
) -> Dict[str, Any]:
    outcome = await planner.plan_and_apply(user_id, request.projects, auto_apply=request.auto_apply)
    return outcome.to_dict()
