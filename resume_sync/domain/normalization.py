"""Turning raw task answers into validated domain objects."""

from __future__ import annotations

import json
import re
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import StructuringDegraded

M = TypeVar("M", bound=BaseModel)

_FENCE_OPEN_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?\s*```\s*$")


def strip_code_fences(answer: str) -> str:
    """Remove a leading ```json (or bare ```) fence and a trailing ``` fence."""
    cleaned = _FENCE_OPEN_RE.sub("", answer.strip(), count=1)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def decode_answer(answer: Any) -> Any:
    """Decode a JSON answer; already-decoded values pass through."""
    if answer is None:
        raise StructuringDegraded("Task returned no answer")
    if not isinstance(answer, str):
        return answer
    cleaned = strip_code_fences(answer)
    if not cleaned:
        raise StructuringDegraded("Task returned an empty answer")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise StructuringDegraded(f"Answer is not valid JSON: {exc.msg}", {"position": exc.pos}) from exc


def parse_answer(answer: Any, model: Type[M]) -> M:
    """Decode ``answer`` and validate it against ``model``."""
    decoded = decode_answer(answer)
    if not isinstance(decoded, dict):
        raise StructuringDegraded(
            f"Answer must be a JSON object, got {type(decoded).__name__}",
        )
    try:
        return model.model_validate(decoded)
    except ValidationError as exc:
        raise StructuringDegraded(
            "Answer does not match the expected schema",
            {
                "errors": [
                    {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                    for error in exc.errors(include_url=False)[:5]
                ]
            },
        ) from exc
