"""OpenAI-compatible task backend (chat completions, synchronous)."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from ..retry import PermanentError, RetryConfig
from .base import InProcessTaskTable, SynchronousTaskClient
from .types import ENGINE_TO_OPENAI_MODEL, engine_to_model


class OpenAICompatibleTaskClient(SynchronousTaskClient):
    """Completes each task with one chat completion call."""

    name = "openai"
    id_prefix = "openai"

    def __init__(
        self,
        api_key: str,
        api_base: str = "",
        *,
        client: Optional[Any] = None,
        max_tokens: int = 16000,
        temperature: Optional[float] = 0.7,
        table: Optional[InProcessTaskTable] = None,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        super().__init__(table=table, retry=retry)
        self.api_base = api_base or ""
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._forced_temperature: Optional[float] = None
        self.client = client if client is not None else AsyncOpenAI(api_key=api_key, base_url=api_base or None)

    def model_for(self, engine: str) -> str:
        return engine_to_model(engine, ENGINE_TO_OPENAI_MODEL, "gpt-4o")

    async def _complete(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]],
        output_schema: Optional[Dict[str, Any]],
    ) -> Any:
        kwargs = self._build_chat_kwargs(engine, instructions, output_schema)
        completion = await self._create_with_temperature_retry(kwargs)
        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise PermanentError("Empty completion: no choices")
        message = getattr(choices[0], "message", None)
        return (getattr(message, "content", None) or "") if message is not None else ""

    def _build_chat_kwargs(
        self,
        engine: str,
        instructions: str,
        output_schema: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        system_prompt = self.system_prompt
        if output_schema:
            system_prompt += (
                "\nRespond with a single JSON object matching this JSON schema:\n"
                + json.dumps(output_schema)
            )
        kwargs: Dict[str, Any] = {
            "model": self.model_for(engine),
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": instructions},
            ],
        }
        if self.max_tokens and self.max_tokens > 0:
            kwargs["max_tokens"] = self.max_tokens
        temperature = self._forced_temperature if self._forced_temperature is not None else self.temperature
        if temperature is not None:
            kwargs["temperature"] = temperature
        if output_schema:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def _create_with_temperature_retry(self, kwargs: Dict[str, Any]):
        try:
            return await self.client.chat.completions.create(**kwargs)
        except Exception as error:
            allowed = self._extract_allowed_temperature(error)
            if allowed is None or kwargs.get("temperature") == allowed:
                raise
            self._forced_temperature = allowed
            return await self.client.chat.completions.create(**dict(kwargs, temperature=allowed))

    def _extract_allowed_temperature(self, error: Exception) -> Optional[float]:
        message = str(error).lower()
        if "invalid temperature" not in message:
            return None
        # "invalid temperature: only 1 is allowed for this model"
        match = re.search(r"only\s+([0-9]+(?:\.[0-9]+)?)\s+is allowed", message)
        return float(match.group(1)) if match else None
