"""Resume parsing endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from .....config import Settings
from .....errors import ExtractionFailed, UnsupportedInput
from .....ingestion.pipeline import IngestionPipeline
from .....observability import redact_text
from ..deps import get_pipeline, get_settings, get_user_id, require_admission
from ..upload import read_upload_with_limit
from ....errors import APIError

router = APIRouter(prefix="/resumes", tags=["resumes"])
logger = logging.getLogger("resume_sync.web.api")


class ParseTextRequest(BaseModel):
    text: str = Field(min_length=1)


@router.post("/parse", dependencies=[Depends(require_admission("ai"))])
async def parse_resume(
    file: UploadFile = File(...),
    target_description: Optional[str] = Form(default=None),
    _user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    content = await read_upload_with_limit(file=file, max_bytes=settings.max_upload_bytes)
    try:
        result = await pipeline.ingest_file(content, file.content_type, filename=file.filename)
    except UnsupportedInput as exc:
        raise APIError(400, exc.code, exc.message, exc.details) from exc
    except ExtractionFailed as exc:
        raise APIError(422, exc.code, exc.message, exc.details) from exc

    logger.info(
        "resume_parsed filename=%s size=%d degraded=%s task_id=%s",
        redact_text(file.filename or "-"),
        len(content),
        result.degraded,
        result.task_id or "-",
    )
    payload = result.to_response()
    payload["raw_text"] = result.raw_text
    if target_description:
        payload["targetDescription"] = target_description
    return payload


@router.post("/parse-text", dependencies=[Depends(require_admission("ai"))])
async def parse_resume_text(
    request: ParseTextRequest,
    _user_id: str = Depends(get_user_id),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    if not request.text.strip():
        raise APIError(400, "BAD_REQUEST", "Resume text must not be blank")
    result = await pipeline.ingest_text(request.text)
    logger.info(
        "resume_parsed source=text characters=%d degraded=%s task_id=%s",
        len(request.text),
        result.degraded,
        result.task_id or "-",
    )
    return result.to_response()
