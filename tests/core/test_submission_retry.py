"""Submission retry classification and backoff."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from resume_sync.config import RetrySettings
from resume_sync.retry import (
    PermanentError,
    RetryConfig,
    TransientError,
    is_transient_error,
    retry_with_backoff,
)


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def test_is_transient_error_classification() -> None:
    assert is_transient_error(TransientError("x"))
    assert is_transient_error(ConnectionError("reset"))
    assert is_transient_error(asyncio.TimeoutError())
    assert is_transient_error(_StatusError(503))
    assert is_transient_error(_StatusError(429))
    assert not is_transient_error(_StatusError(400))
    assert not is_transient_error(PermanentError("Request timed out"))
    assert not is_transient_error(ValueError("bad input"))


def test_status_code_is_read_from_response_attribute() -> None:
    error = Exception("boom")
    error.response = SimpleNamespace(status_code=502)
    assert is_transient_error(error)

    error.response = SimpleNamespace(status_code=404)
    assert not is_transient_error(error)


def test_message_markers_without_status() -> None:
    assert is_transient_error(RuntimeError("upstream temporarily unavailable"))
    assert is_transient_error(RuntimeError("Read timed out"))


def test_delay_grows_and_is_capped() -> None:
    config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter_factor=0.0)
    assert [config.delay_for(attempt) for attempt in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_from_settings_keeps_at_least_one_attempt() -> None:
    config = RetryConfig.from_settings(RetrySettings(max_attempts=0, base_delay_seconds=0.5, max_delay_seconds=2.0))
    assert config.max_attempts == 1
    assert config.base_delay == 0.5
    assert config.max_delay == 2.0


@pytest.mark.asyncio
async def test_retry_recovers_after_transient_failures() -> None:
    attempts = {"count": 0}
    delays = []

    async def flaky(value: str) -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise TransientError("try again")
        return value.upper()

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    result = await retry_with_backoff(flaky, RetryConfig(max_attempts=3, jitter_factor=0.0), "ok", sleep=fake_sleep)

    assert result == "OK"
    assert attempts["count"] == 3
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_raises_last_transient_error_when_exhausted() -> None:
    async def always_down() -> None:
        raise _StatusError(503)

    async def fake_sleep(_: float) -> None:
        return None

    with pytest.raises(_StatusError):
        await retry_with_backoff(always_down, RetryConfig(max_attempts=2), sleep=fake_sleep)


@pytest.mark.asyncio
async def test_permanent_errors_are_not_retried() -> None:
    calls = []

    async def broken() -> None:
        calls.append(1)
        raise ValueError("bad request")

    with pytest.raises(ValueError):
        await retry_with_backoff(broken, RetryConfig(max_attempts=5))
    assert calls == [1]
