"""Resume ingestion: extract, structure through a task, normalize, fall back."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple, Union

from ..domain.documents import StructuredDocument, fallback_document
from ..domain.normalization import parse_answer
from ..errors import StructuringDegraded, TaskNotFound, TaskSubmissionError
from ..providers.base import TaskClient
from ..providers.polling import wait_for_task
from ..providers.types import DEFAULT_ENGINE
from .extraction import SUPPORTED_MIME_TYPES, ExtractedText, extract_text
from .prompts import structuring_instructions

logger = logging.getLogger("resume_sync.ingestion")


@dataclass(frozen=True)
class Structured:
    document: StructuredDocument


@dataclass(frozen=True)
class Degraded:
    raw_text: str
    reason: str


StructuringOutcome = Union[Structured, Degraded]


def to_document(outcome: StructuringOutcome) -> StructuredDocument:
    """The single place a structuring outcome becomes a document."""
    if isinstance(outcome, Structured):
        return outcome.document
    return fallback_document(outcome.raw_text)


@dataclass
class IngestionResult:
    document: StructuredDocument
    raw_text: str
    degraded: bool = False
    reason: Optional[str] = None
    task_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        payload = self.document.to_wire()
        payload.setdefault("contactInfo", {})
        for key in ("experience", "education", "projects", "sections"):
            payload.setdefault(key, [])
        payload.setdefault("skills", [])
        payload["text"] = self.raw_text
        payload["fullText"] = self.raw_text
        payload["degraded"] = self.degraded
        return payload


class IngestionPipeline:
    """Turns uploaded documents or pasted text into ``StructuredDocument``s.

    Extraction failures propagate. Everything that can go wrong after the
    raw text exists degrades to the fallback document instead.
    """

    def __init__(
        self,
        client: TaskClient,
        *,
        engine: str = DEFAULT_ENGINE,
        poll_interval: float = 2.0,
        max_wait: float = 120.0,
        allowed_mime_types: Iterable[str] = SUPPORTED_MIME_TYPES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client = client
        self.engine = engine
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.allowed_mime_types = tuple(allowed_mime_types)
        self._sleep = sleep
        self._clock = clock

    async def ingest_file(
        self,
        content: bytes,
        mime_type: Optional[str],
        *,
        filename: Optional[str] = None,
    ) -> IngestionResult:
        extracted: ExtractedText = await extract_text(
            content,
            mime_type,
            filename=filename,
            allowed_mime_types=self.allowed_mime_types,
        )
        result = await self.ingest_text(extracted.text)
        result.metadata.update(extracted.metadata)
        result.metadata["mime_type"] = extracted.mime_type
        return result

    async def ingest_text(self, raw_text: str) -> IngestionResult:
        outcome, task_id = await self.structure(raw_text)
        if isinstance(outcome, Degraded):
            logger.warning(
                "structuring_degraded task_id=%s reason=%s characters=%d",
                task_id or "-",
                outcome.reason,
                len(raw_text),
            )
        return IngestionResult(
            document=to_document(outcome),
            raw_text=raw_text,
            degraded=isinstance(outcome, Degraded),
            reason=outcome.reason if isinstance(outcome, Degraded) else None,
            task_id=task_id,
        )

    async def structure(self, raw_text: str) -> Tuple[StructuringOutcome, Optional[str]]:
        """Run one structuring task; returns ``(outcome, task_id)``."""
        task_id: Optional[str] = None
        try:
            task = await self.client.run(self.engine, structuring_instructions(raw_text))
            task_id = task.task_id
            outcome = await wait_for_task(
                self.client,
                task,
                poll_interval=self.poll_interval,
                max_wait=self.max_wait,
                sleep=self._sleep,
                clock=self._clock,
            )
            if outcome.timed_out:
                raise StructuringDegraded(f"Task did not finish within {self.max_wait:.0f}s")
            if outcome.task.status != "succeeded":
                raise StructuringDegraded(f"Task ended with status {outcome.task.status}")
            answer = outcome.task.answer
            if answer is None or (isinstance(answer, str) and not answer.strip()):
                raise StructuringDegraded("Task succeeded without an answer")
            document = parse_answer(answer, StructuredDocument).assign_ids()
        except StructuringDegraded as exc:
            return Degraded(raw_text=raw_text, reason=exc.message), task_id
        except (TaskSubmissionError, TaskNotFound) as exc:
            return Degraded(raw_text=raw_text, reason=f"{exc.code}: {exc.message}"), task_id
        except Exception as exc:
            # Backend transport errors while polling; the raw text is still usable.
            logger.exception("structuring_error task_id=%s", task_id or "-")
            return Degraded(raw_text=raw_text, reason=f"{type(exc).__name__}: {exc}"), task_id
        return Structured(document=document), task_id
