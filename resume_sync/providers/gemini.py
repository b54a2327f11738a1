"""Gemini task backend using the google-genai SDK (synchronous)."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from ..retry import PermanentError, RetryConfig
from .base import InProcessTaskTable, SynchronousTaskClient
from .types import ENGINE_TO_GEMINI_MODEL, engine_to_model


class GeminiTaskClient(SynchronousTaskClient):
    """Completes each task with one ``generate_content`` call."""

    name = "gemini"
    id_prefix = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        client: Optional[Any] = None,
        max_output_tokens: int = 16000,
        temperature: Optional[float] = 0.7,
        table: Optional[InProcessTaskTable] = None,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        super().__init__(table=table, retry=retry)
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.client = client if client is not None else genai.Client(api_key=api_key)

    def model_for(self, engine: str) -> str:
        return engine_to_model(engine, ENGINE_TO_GEMINI_MODEL, "gemini-2.5-pro")

    async def _complete(
        self,
        engine: str,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]],
        output_schema: Optional[Dict[str, Any]],
    ) -> Any:
        config = types.GenerateContentConfig(
            system_instruction=self.system_prompt,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
            response_mime_type="application/json" if output_schema else None,
        )
        # The SDK call is blocking; keep it off the event loop.
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model_for(engine),
            contents=instructions,
            config=config,
        )
        return self._answer_text(response)

    def _answer_text(self, response: Any) -> str:
        candidates = getattr(response, "candidates", None)
        if not candidates:
            raise PermanentError("Empty LLM response: no candidates")
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        return "".join(part.text for part in parts if getattr(part, "text", None)).strip()
