"""Caller-side deadline for task completion."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .base import TaskClient
from .types import AITask

logger = logging.getLogger("resume_sync.tasks")


@dataclass(frozen=True)
class TaskOutcome:
    """Last observed task plus whether the caller gave up waiting.

    ``timed_out`` is decided by the caller's deadline alone. The provider may
    still finish the task afterwards; nothing is cancelled remotely and a
    later ``get`` can show ``succeeded`` for an abandoned task.
    """

    task: AITask
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.task.status == "succeeded"

    @property
    def answer(self):
        return self.task.answer if self.succeeded else None


async def wait_for_task(
    client: TaskClient,
    task: AITask,
    *,
    poll_interval: float = 2.0,
    max_wait: float = 120.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Optional[Callable[[], float]] = None,
) -> TaskOutcome:
    """Poll ``client.get`` until ``task`` is terminal or ``max_wait`` elapses."""
    clock = clock or time.monotonic
    deadline = clock() + max_wait
    current = task

    while not current.is_terminal:
        if clock() >= deadline:
            logger.warning(
                "task_abandoned task_id=%s status=%s max_wait_s=%.1f",
                current.task_id,
                current.status,
                max_wait,
            )
            return TaskOutcome(task=current, timed_out=True)
        await sleep(poll_interval)
        current = await client.get(current.task_id)

    return TaskOutcome(task=current, timed_out=False)
