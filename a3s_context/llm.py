"""
Chat-completion client for OpenAI-compatible APIs.

Used for LLM-generated digests and pointwise reranking.
"""

import os
from typing import Optional, Type

import structlog

from a3s_context.errors import A3SError, ConfigError, DigestGenerationError
from a3s_context.http import JSONHTTPClient

log = structlog.get_logger()

DEFAULT_API_BASE = "https://api.openai.com/v1"


class ChatClient:
    """
    Minimal ``/chat/completions`` client.

    Args:
        api_base: API root (default OpenAI)
        api_key: Bearer key, falls back to ``OPENAI_API_KEY``
        model: Model name sent with every request
        temperature: Sampling temperature
        max_tokens: Default completion budget
        error_cls: Error raised on failure
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        max_tokens: int = 1000,
        timeout: float = 60.0,
        error_cls: Type[A3SError] = DigestGenerationError,
    ):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigError("No API key provided for LLM client")

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.error_cls = error_cls
        self.http = JSONHTTPClient(
            api_base or DEFAULT_API_BASE,
            api_key=api_key,
            timeout=timeout,
            error_cls=error_cls,
        )

    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Send a single user message and return the assistant's text."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        log.debug(f"Chat completion with {self.model} ({len(prompt)} prompt chars)")
        data = await self.http.post("/chat/completions", payload)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self.error_cls(f"unexpected completion response: {e}") from e

        return (content or "").strip()

    async def close(self):
        await self.http.close()
