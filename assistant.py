from __future__ import annotations

import asyncio
import logging
from typing import Any

from openai import OpenAI

from config import (
    AI_MODEL,
    OPENAI_API_KEY,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    SYSTEM_HINT,
)

LOGGER = logging.getLogger(__name__)


class AssistantError(RuntimeError):
    """Chat completion failed or returned nothing usable."""


def _extract_text(response: Any) -> str:
    choices = getattr(response, "choices", None)
    if not choices:
        raise AssistantError("completion returned no choices")
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str) or not content.strip():
        raise AssistantError("completion returned empty text")
    return content.strip()


class Assistant:
    """Black-box `send(prompt) -> text` over an OpenAI-compatible API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str | None = None,
        system_prompt: str = SYSTEM_HINT,
        max_tokens: int = 2000,
    ) -> None:
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self._client = OpenAI(api_key=api_key, base_url=base_url)

    def _send_sync(self, prompt: str) -> str:
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
        )
        return _extract_text(response)

    async def send(self, prompt: str) -> str:
        return await asyncio.to_thread(self._send_sync, prompt)


def build_assistant() -> Assistant | None:
    if OPENROUTER_API_KEY:
        return Assistant(api_key=OPENROUTER_API_KEY, model=AI_MODEL, base_url=OPENROUTER_BASE_URL)
    if OPENAI_API_KEY:
        return Assistant(api_key=OPENAI_API_KEY, model=AI_MODEL)
    LOGGER.warning("no OPENROUTER_API_KEY or OPENAI_API_KEY; general replies use a fixed hint")
    return None


def build_prompt(username: str, text: str) -> str:
    return f"User (@{username}): {text}"
