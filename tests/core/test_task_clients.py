"""Task client backends, polling deadline and factory."""

from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from resume_sync.config import Settings
from resume_sync.errors import ConfigError, TaskNotFound, TaskSubmissionError
from resume_sync.providers import (
    StubTaskClient,
    create_task_client,
    get_task_client,
    reset_task_client,
    wait_for_task,
)
from resume_sync.providers.base import InProcessTaskTable, SynchronousTaskClient, TaskClient
from resume_sync.providers.gemini import GeminiTaskClient
from resume_sync.providers.openai_compat import OpenAICompatibleTaskClient
from resume_sync.providers.subconscious import RemoteTaskClient
from resume_sync.providers.types import AITask, TaskResult
from resume_sync.retry import RetryConfig


# ---------------------------------------------------------------------------
# Stub and polling
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stub_without_answer_fails_runs() -> None:
    client = StubTaskClient()
    task = await client.run("tim-large", "structure this")
    assert task.status == "failed"
    assert task.answer is None
    assert (await client.get(task.task_id)).status == "failed"


@pytest.mark.asyncio
async def test_stub_status_script_advances_on_get() -> None:
    client = StubTaskClient(answer='{"ok": true}', status_script=["queued", "running", "succeeded"])
    task = await client.run("tim-large", "do work")
    assert task.status == "queued"

    assert (await client.get(task.task_id)).status == "running"
    done = await client.get(task.task_id)
    assert done.status == "succeeded"
    assert done.answer == '{"ok": true}'
    # terminal snapshots stay put
    assert (await client.get(task.task_id)) == done


@pytest.mark.asyncio
async def test_stub_unknown_task_is_not_found() -> None:
    with pytest.raises(TaskNotFound):
        await StubTaskClient(answer="x").get("stub-missing")


@pytest.mark.asyncio
async def test_wait_for_task_returns_terminal_task(fake_clock) -> None:
    client = StubTaskClient(answer="done", status_script=["queued", "running", "succeeded"])
    task = await client.run("tim-large", "do work")

    outcome = await wait_for_task(client, task, poll_interval=2.0, max_wait=60.0, sleep=fake_clock.sleep, clock=fake_clock)

    assert outcome.succeeded
    assert outcome.timed_out is False
    assert outcome.answer == "done"
    assert fake_clock.sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_wait_for_task_abandons_at_deadline_without_cancelling(fake_clock) -> None:
    client = StubTaskClient(answer="late", status_script=["running"] * 100 + ["succeeded"])
    task = await client.run("tim-large", "slow work")

    outcome = await wait_for_task(client, task, poll_interval=2.0, max_wait=10.0, sleep=fake_clock.sleep, clock=fake_clock)

    assert outcome.timed_out is True
    assert outcome.succeeded is False
    assert outcome.answer is None
    assert outcome.task.status == "running"
    assert sum(fake_clock.sleeps) == pytest.approx(10.0)
    # the task itself is still observable after the caller gave up
    assert (await client.get(task.task_id)).status == "running"


def test_in_process_table_refuses_to_rewrite_terminal_tasks() -> None:
    table = InProcessTaskTable()
    task = AITask(task_id="t-1", engine="tim-large", status="running")
    table.put(task)
    done = task.with_status("succeeded", result=TaskResult(answer="x"))
    table.put(done)

    with pytest.raises(ValueError):
        table.put(AITask(task_id="t-1", engine="tim-large", status="failed"))
    with pytest.raises(ValueError):
        done.with_status("failed")
    assert table.get("t-1").answer == "x"
    with pytest.raises(TaskNotFound):
        table.get("t-2")


def test_backends_satisfy_task_client_protocol() -> None:
    assert isinstance(StubTaskClient(), TaskClient)
    assert isinstance(OpenAICompatibleTaskClient(api_key="k", client=SimpleNamespace()), TaskClient)


# ---------------------------------------------------------------------------
# Synchronous backends
# ---------------------------------------------------------------------------


class _EchoClient(SynchronousTaskClient):
    name = "echo"
    id_prefix = "echo"

    def __init__(self, error: Exception = None) -> None:
        super().__init__(retry=RetryConfig(max_attempts=1))
        self.error = error

    async def _complete(self, engine, instructions, tools, output_schema):
        if self.error is not None:
            raise self.error
        return instructions[::-1]


@pytest.mark.asyncio
async def test_synchronous_client_records_success_and_failure() -> None:
    ok = _EchoClient()
    task = await ok.run("tim-large", "abc")
    assert task.status == "succeeded"
    assert task.task_id.startswith("echo-")
    assert (await ok.wait(task.task_id)).answer == "cba"

    broken = _EchoClient(error=ValueError("model exploded"))
    failed = await broken.run("tim-large", "abc")
    assert failed.status == "failed"
    assert failed.error == "model exploded"
    assert (await broken.get(failed.task_id)).status == "failed"


@pytest.mark.asyncio
async def test_synchronous_client_rejects_empty_instructions() -> None:
    with pytest.raises(TaskSubmissionError):
        await _EchoClient().run("tim-large", "   ")


def _openai_fake(calls: list, content: str = '{"a": 1}', error: Exception = None):
    async def create(**kwargs):
        calls.append(kwargs)
        if error is not None and len(calls) == 1:
            raise error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


@pytest.mark.asyncio
async def test_openai_client_maps_engine_and_schema() -> None:
    calls: list = []
    client = OpenAICompatibleTaskClient(api_key="k", client=_openai_fake(calls))

    task = await client.run("tim-small-preview", "extract", output_schema={"type": "object"})

    assert task.status == "succeeded"
    assert task.answer == '{"a": 1}'
    assert calls[0]["model"] == "gpt-4o-mini"
    assert calls[0]["response_format"] == {"type": "json_object"}
    assert calls[0]["messages"][1] == {"role": "user", "content": "extract"}
    assert "JSON schema" in calls[0]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_openai_client_retries_with_allowed_temperature() -> None:
    calls: list = []
    error = Exception("Invalid temperature: only 1 is allowed for this model")
    client = OpenAICompatibleTaskClient(api_key="k", client=_openai_fake(calls, error=error))

    task = await client.run("tim-large", "extract")

    assert task.status == "succeeded"
    assert calls[0]["temperature"] == 0.7
    assert calls[1]["temperature"] == 1.0


@pytest.mark.asyncio
async def test_openai_client_fails_task_on_empty_choices() -> None:
    async def create(**_):
        return SimpleNamespace(choices=[])

    fake = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client = OpenAICompatibleTaskClient(api_key="k", client=fake)

    task = await client.run("tim-large", "extract")
    assert task.status == "failed"
    assert "no choices" in task.error


@pytest.mark.asyncio
async def test_gemini_client_joins_text_parts() -> None:
    seen = {}

    def generate_content(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(
            candidates=[
                SimpleNamespace(
                    content=SimpleNamespace(parts=[SimpleNamespace(text="{\"a\":"), SimpleNamespace(text=" 1}")])
                )
            ]
        )

    fake = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    client = GeminiTaskClient(api_key="k", client=fake)

    task = await client.run("timini", "extract", output_schema={"type": "object"})

    assert task.status == "succeeded"
    assert task.answer == '{"a": 1}'
    assert seen["model"] == "gemini-2.5-flash"
    assert seen["contents"] == "extract"


@pytest.mark.asyncio
async def test_gemini_client_fails_task_without_candidates() -> None:
    fake = SimpleNamespace(models=SimpleNamespace(generate_content=lambda **_: SimpleNamespace(candidates=[])))
    task = await GeminiTaskClient(api_key="k", client=fake).run("tim-large", "extract")
    assert task.status == "failed"
    assert "no candidates" in task.error


# ---------------------------------------------------------------------------
# Remote run API
# ---------------------------------------------------------------------------


def _remote_client(handler) -> RemoteTaskClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteTaskClient(
        api_key="secret",
        base_url="https://runs.test/v1",
        http_client=http_client,
        retry=RetryConfig(max_attempts=1),
    )


@pytest.mark.asyncio
async def test_remote_client_submits_and_polls_runs() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(200, json={"runId": "run-1", "status": "queued"})
        return httpx.Response(
            200,
            json={"runId": "run-1", "status": "succeeded", "result": {"answer": "{}", "reasoning": None}},
        )

    client = _remote_client(handler)
    task = await client.run("tim-large", "go", tools=[{"type": "platform", "id": "web_search"}], output_schema={"type": "object"})
    assert task.task_id == "run-1"
    assert task.status == "queued"

    done = await client.get("run-1")
    assert done.status == "succeeded"
    assert done.answer == "{}"

    body = json.loads(requests[0].content)
    assert body["engine"] == "tim-large"
    assert body["input"]["answerFormat"] == {"type": "object"}
    assert body["input"]["tools"][0]["id"] == "web_search"
    assert requests[0].headers["authorization"] == "Bearer secret"
    assert str(requests[1].url) == "https://runs.test/v1/runs/run-1"
    await client.aclose()


@pytest.mark.asyncio
async def test_remote_client_unknown_run_is_not_found() -> None:
    client = _remote_client(lambda request: httpx.Response(404, json={"error": "missing"}))
    with pytest.raises(TaskNotFound):
        await client.get("run-404")
    await client.aclose()


@pytest.mark.asyncio
async def test_remote_client_submission_failure_has_no_task() -> None:
    client = _remote_client(lambda request: httpx.Response(400, json={"error": "bad"}))
    with pytest.raises(TaskSubmissionError) as exc_info:
        await client.run("tim-large", "go")
    assert exc_info.value.details["transient"] is False
    await client.aclose()


@pytest.mark.asyncio
async def test_remote_client_maps_unknown_status_to_running() -> None:
    client = _remote_client(lambda request: httpx.Response(200, json={"runId": "run-2", "status": "thinking"}))
    task = await client.run("tim-large", "go")
    assert task.status == "running"
    await client.aclose()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def test_factory_defaults_to_stub() -> None:
    assert isinstance(create_task_client(Settings()), StubTaskClient)


def test_factory_rejects_unknown_provider() -> None:
    with pytest.raises(ConfigError):
        create_task_client(Settings(provider="mystery"))


def test_factory_requires_api_key() -> None:
    with pytest.raises(ConfigError) as exc_info:
        create_task_client(Settings(provider="openai"))
    assert "OPENAI_API_KEY" in exc_info.value.message


def test_factory_resolves_placeholder_and_env_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MY_OPENAI_KEY", "sk-placeholder")
    client = create_task_client(Settings(provider="openai", api_key="${MY_OPENAI_KEY}"))
    assert isinstance(client, OpenAICompatibleTaskClient)

    monkeypatch.setenv("SUBCONSCIOUS_API_KEY", "sub-key")
    monkeypatch.setenv("SUBCONSCIOUS_BASE_URL", "https://override.test/v1/")
    remote = create_task_client(Settings(provider="subconscious", poll_interval_seconds=1.0))
    assert isinstance(remote, RemoteTaskClient)
    assert remote.base_url == "https://override.test/v1"
    assert remote.poll_interval == 1.0


def test_get_task_client_caches_per_provider() -> None:
    first = get_task_client(Settings())
    assert get_task_client(Settings()) is first
    reset_task_client()
    assert get_task_client(Settings()) is not first
