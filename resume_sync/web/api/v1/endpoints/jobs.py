"""Job posting parse/fetch endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .....errors import JobParseFailed, UnsupportedInput
from .....jobs import JobParser
from ..deps import get_job_parser, get_user_id, require_admission
from ....errors import APIError

router = APIRouter(prefix="/jobs", tags=["jobs"])


class ParseJobRequest(BaseModel):
    text: str
    title: Optional[str] = None
    company: Optional[str] = None


class FetchJobRequest(BaseModel):
    url: str = Field(min_length=1)


@router.post("/parse", dependencies=[Depends(require_admission("ai"))])
async def parse_job(
    request: ParseJobRequest,
    _user_id: str = Depends(get_user_id),
    parser: JobParser = Depends(get_job_parser),
) -> Dict[str, Any]:
    try:
        job = await parser.parse_text(request.text, title=request.title, company=request.company)
    except UnsupportedInput as exc:
        raise APIError(400, "BAD_REQUEST", exc.message, exc.details) from exc
    except JobParseFailed as exc:
        raise APIError(422, exc.code, exc.message, exc.details) from exc
    return {**job.to_wire(), "text": request.text}


@router.post("/fetch", dependencies=[Depends(require_admission("fetch"))])
async def fetch_job(
    request: FetchJobRequest,
    _user_id: str = Depends(get_user_id),
    parser: JobParser = Depends(get_job_parser),
) -> Dict[str, Any]:
    try:
        job = await parser.fetch_url(request.url)
    except UnsupportedInput as exc:
        raise APIError(400, "BAD_REQUEST", exc.message, exc.details) from exc
    except JobParseFailed as exc:
        raise APIError(422, exc.code, exc.message, exc.details) from exc
    return {**job.to_wire(), "text": job.full_text(), "sourceUrl": request.url}
