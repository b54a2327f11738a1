"""Asynchronous task backend for a run-based task API over HTTP.

``POST /runs`` accepts ``{engine, input: {instructions, tools, answerFormat}}``
and returns ``{runId, status, result?}``; ``GET /runs/{runId}`` returns the
same shape. Runs are executed remotely, so ``run`` usually comes back
``queued`` or ``running``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import TaskNotFound, TaskSubmissionError
from ..retry import RetryConfig, is_transient_error, retry_with_backoff
from .polling import wait_for_task
from .types import TERMINAL_TASK_STATES, AITask, TaskResult

logger = logging.getLogger("resume_sync.tasks")

DEFAULT_BASE_URL = "https://api.subconscious.dev/v1"
_KNOWN_STATES = TERMINAL_TASK_STATES | {"queued", "running"}


class RemoteTaskClient:
    name = "subconscious"

    def __init__(
        self,
        api_key: str,
        base_url: str = "",
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        retry: Optional[RetryConfig] = None,
        poll_interval: float = 2.0,
        wait_timeout: float = 300.0,
        request_timeout: float = 30.0,
    ) -> None:
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.retry = retry or RetryConfig()
        self.poll_interval = poll_interval
        self.wait_timeout = wait_timeout
        self._http = http_client or httpx.AsyncClient(timeout=request_timeout)
        self._headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    async def aclose(self) -> None:
        await self._http.aclose()

    async def run(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        output_schema: Optional[Dict[str, Any]] = None,
    ) -> AITask:
        body: Dict[str, Any] = {
            "engine": engine,
            "input": {"instructions": instructions, "tools": tools or []},
            "options": {"awaitCompletion": False},
        }
        if output_schema:
            body["input"]["answerFormat"] = output_schema

        try:
            payload = await retry_with_backoff(self._post_run, self.retry, body)
        except Exception as exc:
            # No run id exists yet, so there is nothing to record.
            raise TaskSubmissionError(
                f"Task submission failed: {exc}",
                {"provider": self.name, "transient": is_transient_error(exc)},
            ) from exc

        task = self._to_task(payload, engine)
        logger.info("task_submitted provider=%s task_id=%s status=%s", self.name, task.task_id, task.status)
        return task

    async def get(self, task_id: str) -> AITask:
        response = await self._http.get(f"{self.base_url}/runs/{task_id}", headers=self._headers)
        if response.status_code == 404:
            raise TaskNotFound(f"Run not found: {task_id}", {"task_id": task_id})
        response.raise_for_status()
        return self._to_task(response.json())

    async def wait(self, task_id: str) -> AITask:
        outcome = await wait_for_task(
            self,
            await self.get(task_id),
            poll_interval=self.poll_interval,
            max_wait=self.wait_timeout,
        )
        return outcome.task

    async def _post_run(self, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._http.post(f"{self.base_url}/runs", json=body, headers=self._headers)
        response.raise_for_status()
        return response.json()

    def _to_task(self, payload: Dict[str, Any], engine: str = "") -> AITask:
        task_id = payload.get("runId") or payload.get("run_id")
        if not task_id:
            raise TaskSubmissionError("Task API response has no run id", {"provider": self.name})
        status = payload.get("status") or "queued"
        if status not in _KNOWN_STATES:
            status = "running"
        raw_result = payload.get("result")
        result = None
        if isinstance(raw_result, dict):
            result = TaskResult(answer=raw_result.get("answer"), reasoning=raw_result.get("reasoning"))
        return AITask(
            task_id=str(task_id),
            engine=payload.get("engine") or engine,
            status=status,
            result=result,
            error=payload.get("error") if isinstance(payload.get("error"), str) else None,
        )
