"""Provider-agnostic task types shared by every task backend."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Final, List, Literal, Optional

from typing_extensions import TypeAlias

TaskStatus: TypeAlias = Literal[
    "queued",
    "running",
    "succeeded",
    "failed",
    "canceled",
    "timed_out",
]

TERMINAL_TASK_STATES: Final[frozenset] = frozenset({"succeeded", "failed", "canceled", "timed_out"})
ACTIVE_TASK_STATES: Final[frozenset] = frozenset({"queued", "running"})

DEFAULT_ENGINE: Final[str] = "tim-large"

ENGINE_TO_OPENAI_MODEL: Final[Dict[str, str]] = {
    "tim-small-preview": "gpt-4o-mini",
    "tim-large": "gpt-4o",
    "tim-gpt-heavy": "gpt-4o",
    "timini": "gpt-4o-mini",
}

ENGINE_TO_GEMINI_MODEL: Final[Dict[str, str]] = {
    "tim-small-preview": "gemini-2.5-flash",
    "tim-large": "gemini-2.5-pro",
    "tim-gpt-heavy": "gemini-2.5-pro",
    "timini": "gemini-2.5-flash",
}

# Platform tools understood by the remote task API; other backends ignore them.
PLATFORM_SEARCH_TOOLS: Final[List[Dict[str, Any]]] = [
    {"type": "platform", "id": "parallel_search", "options": {}},
    {"type": "platform", "id": "web_search", "options": {}},
]
PLATFORM_EXTRACT_TOOLS: Final[List[Dict[str, Any]]] = [
    {"type": "platform", "id": "parallel_extract", "options": {}},
]


@dataclass(frozen=True)
class TaskResult:
    answer: Any = None
    reasoning: Any = None


@dataclass(frozen=True)
class AITask:
    """Snapshot of one delegated unit of AI work.

    Instances are frozen; a status change produces a new snapshot, and
    terminal snapshots are never replaced.
    """

    task_id: str
    engine: str
    status: TaskStatus = "queued"
    result: Optional[TaskResult] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATES

    @property
    def answer(self) -> Any:
        return self.result.answer if self.result is not None else None

    def with_status(self, status: TaskStatus, result: Optional[TaskResult] = None, error: Optional[str] = None) -> "AITask":
        if self.is_terminal:
            raise ValueError(f"Task {self.task_id} is already terminal ({self.status})")
        return replace(self, status=status, result=result if result is not None else self.result, error=error)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "task_id": self.task_id,
            "engine": self.engine,
            "status": self.status,
            "result": None,
        }
        if self.result is not None:
            payload["result"] = {"answer": self.result.answer, "reasoning": self.result.reasoning}
        if self.error:
            payload["error"] = self.error
        return payload


def make_task_id(prefix: str) -> str:
    """Opaque id in the ``<provider>-<epoch ms>-<random>`` style."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def engine_to_model(engine: str, mapping: Dict[str, str], default: str) -> str:
    return mapping.get(engine, default)
