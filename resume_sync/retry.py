"""Backoff for task submissions that fail before a task id exists."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .config import RetrySettings

logger = logging.getLogger("resume_sync.tasks")

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.2

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryConfig":
        return cls(
            max_attempts=max(1, settings.max_attempts),
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        base = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        jitter = base * self.jitter_factor * (2 * random.random() - 1)
        return max(base + jitter, 0.0)


class TransientError(Exception):
    """Raised by backends for failures worth another attempt."""


class PermanentError(Exception):
    """Raised when a submission must not be retried."""


def _status_code_of(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_transient_error(error: BaseException) -> bool:
    """Classify an SDK or transport error as retryable."""
    if isinstance(error, PermanentError):
        return False
    if isinstance(error, (TransientError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    status = _status_code_of(error)
    if status is not None:
        return status in RETRYABLE_STATUS_CODES

    # httpx and openai connection errors carry no status code
    name = type(error).__name__
    if name in {"ConnectError", "ReadTimeout", "WriteTimeout", "PoolTimeout", "RemoteProtocolError",
                "APIConnectionError", "APITimeoutError"}:
        return True

    message = str(error).lower()
    return any(
        marker in message
        for marker in ("timed out", "timeout", "connection reset", "rate limit", "temporarily unavailable")
    )


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    config: RetryConfig,
    *args: Any,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """Await ``func`` until it succeeds, retrying transient failures.

    Non-transient errors propagate unchanged on the first occurrence; the last
    transient error propagates once ``config.max_attempts`` are used up.
    """
    for attempt in range(config.max_attempts):
        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            if attempt == config.max_attempts - 1:
                logger.error("task_submit_exhausted attempts=%d error=%s", config.max_attempts, exc)
                raise
            delay = config.delay_for(attempt)
            logger.warning(
                "task_submit_retry attempt=%d/%d delay_s=%.2f error=%s",
                attempt + 1,
                config.max_attempts,
                delay,
                exc,
            )
            await sleep(delay)
        else:
            if attempt > 0:
                logger.info("task_submit_recovered attempt=%d", attempt + 1)
            return result

    raise RuntimeError("retry_with_backoff called with max_attempts < 1")
