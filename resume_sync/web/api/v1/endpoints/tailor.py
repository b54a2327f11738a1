"""Resume tailoring endpoints."""

from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .....tailoring import JobTarget, ResumeTailor
from ..deps import get_tailor, get_user_id, require_admission

router = APIRouter(prefix="/tailor", tags=["tailor"])


class TailorRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_description: JobTarget = Field(alias="jobDescription")


@router.post("", dependencies=[Depends(require_admission("streaming"))])
async def tailor_resume(
    request: TailorRequest,
    user_id: str = Depends(get_user_id),
    tailor: ResumeTailor = Depends(get_tailor),
) -> Dict[str, Any]:
    candidate = await tailor.load_candidate(user_id)
    result = await tailor.generate(candidate, request.job_description)
    return {"result": result.to_wire(), "originalResume": candidate.to_wire()}


@router.post("/stream", dependencies=[Depends(require_admission("streaming"))])
async def stream_tailored_resume(
    request: TailorRequest,
    user_id: str = Depends(get_user_id),
    tailor: ResumeTailor = Depends(get_tailor),
) -> StreamingResponse:
    async def event_stream():
        async for event in tailor.stream(user_id, request.job_description):
            yield format_sse_event(event)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


def format_sse_event(event: dict) -> str:
    """Render one event using SSE framing."""
    payload = json.dumps(event, separators=(",", ":"), ensure_ascii=False)
    return f"id: {event['event_id']}\nevent: {event['type']}\ndata: {payload}\n\n"
