"""Task client factory and defaults."""

from __future__ import annotations

import os
from typing import Dict, Optional

from ..config import Settings
from ..errors import ConfigError
from ..retry import RetryConfig
from .base import InProcessTaskTable, SynchronousTaskClient, TaskClient
from .polling import TaskOutcome, wait_for_task
from .stub import StubTaskClient
from .types import (
    DEFAULT_ENGINE,
    ENGINE_TO_GEMINI_MODEL,
    ENGINE_TO_OPENAI_MODEL,
    PLATFORM_EXTRACT_TOOLS,
    PLATFORM_SEARCH_TOOLS,
    TERMINAL_TASK_STATES,
    AITask,
    TaskResult,
    TaskStatus,
)

PROVIDER_DEFAULTS: Dict[str, Dict[str, str]] = {
    "openai": {"api_base": "", "env_key": "OPENAI_API_KEY"},
    "gemini": {"api_base": "", "env_key": "GEMINI_API_KEY"},
    "subconscious": {"api_base": "https://api.subconscious.dev/v1", "env_key": "SUBCONSCIOUS_API_KEY"},
    "stub": {"api_base": "", "env_key": ""},
}

_cached_client: Optional[TaskClient] = None
_cached_key: Optional[tuple] = None


def create_task_client(settings: Settings) -> TaskClient:
    """Build the backend named by ``settings.provider``."""
    provider_name = (settings.provider or "stub").lower()
    if provider_name == "stub":
        return StubTaskClient()

    if provider_name not in PROVIDER_DEFAULTS:
        raise ConfigError(f"Unknown provider: {settings.provider}", {"provider": settings.provider})

    api_key = _resolve_api_key(provider_name, settings.api_key)
    api_base = settings.api_base or PROVIDER_DEFAULTS[provider_name]["api_base"]
    retry = RetryConfig.from_settings(settings.retry)

    if provider_name == "openai":
        from .openai_compat import OpenAICompatibleTaskClient

        return OpenAICompatibleTaskClient(api_key=api_key, api_base=api_base, retry=retry)

    if provider_name == "gemini":
        from .gemini import GeminiTaskClient

        return GeminiTaskClient(api_key=api_key, retry=retry)

    from .subconscious import RemoteTaskClient

    return RemoteTaskClient(
        api_key=api_key,
        base_url=os.environ.get("SUBCONSCIOUS_BASE_URL", "") or api_base,
        retry=retry,
        poll_interval=settings.poll_interval_seconds,
        wait_timeout=settings.task_wait_timeout_seconds,
    )


def get_task_client(settings: Settings) -> TaskClient:
    """Return the process-wide client, rebuilt only when the provider changes."""
    global _cached_client, _cached_key
    key = (settings.provider, settings.api_base)
    if _cached_client is None or _cached_key != key:
        _cached_client = create_task_client(settings)
        _cached_key = key
    return _cached_client


def reset_task_client() -> None:
    global _cached_client, _cached_key
    _cached_client = None
    _cached_key = None


def _resolve_api_key(provider: str, api_key: str) -> str:
    defaults = PROVIDER_DEFAULTS.get(provider, {})
    env_key = defaults.get("env_key", "")

    if env_key:
        env_value = os.environ.get(env_key, "")
        if env_value:
            return env_value

    if api_key and not api_key.startswith("${"):
        return api_key

    if api_key.startswith("${") and api_key.endswith("}"):
        resolved = os.environ.get(api_key[2:-1], "")
        if resolved:
            return resolved

    if env_key:
        raise ConfigError(
            f"{env_key} not set. Please set the env var or add api_key to config/config.local.yaml",
            {"provider": provider},
        )
    raise ConfigError("API key not set", {"provider": provider})


__all__ = [
    "AITask",
    "DEFAULT_ENGINE",
    "ENGINE_TO_GEMINI_MODEL",
    "ENGINE_TO_OPENAI_MODEL",
    "InProcessTaskTable",
    "PLATFORM_EXTRACT_TOOLS",
    "PLATFORM_SEARCH_TOOLS",
    "PROVIDER_DEFAULTS",
    "StubTaskClient",
    "SynchronousTaskClient",
    "TERMINAL_TASK_STATES",
    "TaskClient",
    "TaskOutcome",
    "TaskResult",
    "TaskStatus",
    "create_task_client",
    "get_task_client",
    "reset_task_client",
    "wait_for_task",
]
