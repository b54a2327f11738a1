"""Task client protocol and the in-process table used by synchronous backends."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from typing_extensions import Protocol, runtime_checkable

from ..errors import TaskNotFound, TaskSubmissionError
from ..observability import redact_text
from ..retry import RetryConfig, retry_with_backoff
from .types import AITask, TaskResult, make_task_id

logger = logging.getLogger("resume_sync.tasks")


@runtime_checkable
class TaskClient(Protocol):
    """Run/get/wait over one AI backend.

    ``run`` returns a terminal task for synchronous backends and a queued or
    running task for asynchronous ones. ``get`` has no side effects. ``wait``
    polls until a terminal status or the client's own timeout, in which case
    the last observed task is returned unchanged.
    """

    name: str

    async def run(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        output_schema: Optional[Dict[str, Any]] = None,
    ) -> AITask: ...

    async def get(self, task_id: str) -> AITask: ...

    async def wait(self, task_id: str) -> AITask: ...


class InProcessTaskTable:
    """Task snapshots keyed by id, for backends without server-side run ids.

    Entries live until process exit; nothing evicts them.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, AITask] = {}

    def put(self, task: AITask) -> None:
        current = self._tasks.get(task.task_id)
        if current is not None and current.is_terminal and current != task:
            raise ValueError(f"Task {task.task_id} is terminal and cannot change")
        self._tasks[task.task_id] = task

    def get(self, task_id: str) -> AITask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFound(f"Run not found: {task_id}", {"task_id": task_id})
        return task

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)


class SynchronousTaskClient:
    """Base for backends that finish the work inside ``run``.

    Subclasses implement ``_complete`` and return the raw answer. The task id
    is generated before the backend call, so any failure from that point on is
    recorded as a ``failed`` task instead of raised.
    """

    name = "sync"
    id_prefix = "task"
    system_prompt = (
        "You are a helpful AI assistant. Follow the instructions carefully and "
        "provide accurate, well-structured responses."
    )

    def __init__(
        self,
        *,
        table: Optional[InProcessTaskTable] = None,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self.table = table if table is not None else InProcessTaskTable()
        self.retry = retry or RetryConfig()

    async def run(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        output_schema: Optional[Dict[str, Any]] = None,
    ) -> AITask:
        if not (instructions or "").strip():
            raise TaskSubmissionError("Task instructions must not be empty", {"provider": self.name})

        task = AITask(task_id=make_task_id(self.id_prefix), engine=engine, status="running")
        self.table.put(task)
        logger.info("task_submitted provider=%s task_id=%s engine=%s", self.name, task.task_id, engine)

        try:
            answer = await retry_with_backoff(
                self._complete,
                self.retry,
                engine,
                instructions,
                tools,
                output_schema,
            )
        except Exception as exc:
            failed = task.with_status("failed", error=str(exc))
            self.table.put(failed)
            logger.warning(
                "task_failed provider=%s task_id=%s error=%s",
                self.name,
                task.task_id,
                redact_text(str(exc)),
            )
            return failed

        done = task.with_status("succeeded", result=TaskResult(answer=answer))
        self.table.put(done)
        logger.info("task_succeeded provider=%s task_id=%s", self.name, task.task_id)
        return done

    async def get(self, task_id: str) -> AITask:
        return self.table.get(task_id)

    async def wait(self, task_id: str) -> AITask:
        return self.table.get(task_id)

    async def _complete(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]],
        output_schema: Optional[Dict[str, Any]],
    ) -> Any:
        raise NotImplementedError
