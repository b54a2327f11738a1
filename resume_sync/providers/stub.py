"""Deterministic task backend for local development and tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..errors import TaskNotFound, TaskSubmissionError
from .types import AITask, TaskResult, TaskStatus, make_task_id

Responder = Callable[[str, Optional[Dict[str, Any]]], Any]


@dataclass
class StubCall:
    engine: str
    instructions: str
    tools: Optional[List[Dict[str, Any]]]
    output_schema: Optional[Dict[str, Any]]


class StubTaskClient:
    """Scripted task client.

    Without a script every run fails, so callers exercise their fallback
    paths. ``answer`` or ``responder`` makes runs succeed synchronously;
    ``status_script`` turns the client asynchronous: ``run`` returns the first
    status and each ``get`` advances one step, holding at the last entry.
    """

    name = "stub"

    def __init__(
        self,
        answer: Any = None,
        *,
        responder: Optional[Responder] = None,
        status_script: Optional[Sequence[TaskStatus]] = None,
        submit_error: Optional[Exception] = None,
    ) -> None:
        self._answer = answer
        self._responder = responder
        self._status_script = list(status_script or [])
        self._submit_error = submit_error
        self._tasks: Dict[str, AITask] = {}
        self._answers: Dict[str, Any] = {}
        self._steps: Dict[str, int] = {}
        self.calls: List[StubCall] = []

    async def run(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        output_schema: Optional[Dict[str, Any]] = None,
    ) -> AITask:
        self.calls.append(StubCall(engine, instructions, tools, output_schema))
        if self._submit_error is not None:
            raise TaskSubmissionError(str(self._submit_error), {"provider": self.name}) from self._submit_error

        task_id = make_task_id("stub")
        answer = self._responder(instructions, output_schema) if self._responder else self._answer
        self._answers[task_id] = answer

        if self._status_script:
            self._steps[task_id] = 0
            task = self._snapshot(task_id, engine, self._status_script[0])
        elif answer is None:
            task = AITask(task_id=task_id, engine=engine, status="failed", error="stub has no scripted answer")
        else:
            task = AITask(task_id=task_id, engine=engine, status="succeeded", result=TaskResult(answer=answer))
        self._tasks[task_id] = task
        return task

    async def get(self, task_id: str) -> AITask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFound(f"Run not found: {task_id}", {"task_id": task_id})
        if task.is_terminal or task_id not in self._steps:
            return task
        step = min(self._steps[task_id] + 1, len(self._status_script) - 1)
        self._steps[task_id] = step
        task = self._snapshot(task_id, task.engine, self._status_script[step])
        self._tasks[task_id] = task
        return task

    async def wait(self, task_id: str) -> AITask:
        task = await self.get(task_id)
        for _ in range(len(self._status_script)):
            if task.is_terminal:
                break
            task = await self.get(task_id)
        return task

    def _snapshot(self, task_id: str, engine: str, status: TaskStatus) -> AITask:
        result = TaskResult(answer=self._answers.get(task_id)) if status == "succeeded" else None
        return AITask(task_id=task_id, engine=engine, status=status, result=result)
