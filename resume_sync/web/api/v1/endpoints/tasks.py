"""Raw task status lookup."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .....errors import TaskNotFound
from .....providers.base import TaskClient
from ..deps import get_task_client, get_user_id
from ....errors import APIError

router = APIRouter(prefix="/tasks", tags=["tasks"])


class GetTaskResponse(BaseModel):
    task_id: str
    engine: str
    status: str
    answer: Optional[Any] = None
    error: Optional[str] = None


@router.get("/{task_id}", response_model=GetTaskResponse)
async def get_task(
    task_id: str,
    _user_id: str = Depends(get_user_id),
    client: TaskClient = Depends(get_task_client),
) -> GetTaskResponse:
    try:
        task = await client.get(task_id)
    except TaskNotFound as exc:
        raise APIError(404, exc.code, exc.message, exc.details) from exc
    return GetTaskResponse(
        task_id=task.task_id,
        engine=task.engine,
        status=task.status,
        answer=task.answer,
        error=task.error,
    )
