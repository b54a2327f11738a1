"""Global pytest fixtures for deterministic test environment."""

from __future__ import annotations

import pytest

from resume_sync.providers import reset_task_client


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch):
    """Clear local runtime env that can leak into tests on developer machines."""
    for key in (
        "RESUME_SYNC_PROVIDER",
        "RESUME_SYNC_ENGINE",
        "RESUME_SYNC_API_KEY",
        "RESUME_SYNC_API_BASE",
        "RESUME_SYNC_STORE",
        "RESUME_SYNC_DB_PATH",
        "RESUME_SYNC_AUTH_MODE",
        "RESUME_SYNC_API_TOKENS",
        "RESUME_SYNC_MAX_UPLOAD_BYTES",
        "RESUME_SYNC_TAILOR_MAX_WAIT_SECONDS",
        "RESUME_SYNC_RATE_LIMIT_AI",
        "RESUME_SYNC_RATE_LIMIT_FETCH",
        "RESUME_SYNC_RATE_LIMIT_STREAMING",
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "SUBCONSCIOUS_API_KEY",
        "SUBCONSCIOUS_BASE_URL",
    ):
        monkeypatch.delenv(key, raising=False)
    reset_task_client()
    yield
    reset_task_client()


class FakeClock:
    """Manually advanced clock usable as both ``clock`` and ``sleep``."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
