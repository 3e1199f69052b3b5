"""
OpenAI-compatible chat completion backend.

Works against any server exposing ``/chat/completions`` (OpenAI, Groq,
OpenRouter, vLLM...).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..base import CloudService
from ..protocols import Message

logger = logging.getLogger("speechai.llm.openai")


class OpenAIChatLLM(CloudService):
    """Chat service using an OpenAI-compatible API."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str = "",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.7,
        max_tokens: int = 512,
        default_instructions: Optional[str] = None,
        timeout: float = 60.0,
    ) -> None:
        """
        Initialize the chat backend.

        Args:
            model: Model name (e.g., "gpt-4o")
            api_key: Bearer token for the API
            base_url: API base URL
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            default_instructions: System instructions used when a call passes none
            timeout: HTTP timeout in seconds
        """
        super().__init__(
            name="llm",
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )
        if not api_key:
            logger.warning("No API key configured for chat backend at %s", base_url)
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.default_instructions = default_instructions

    def _build_payload(self, prompt: str, instructions: Optional[str]) -> dict[str, Any]:
        messages = []
        system = instructions if instructions is not None else self.default_instructions
        if system:
            messages.append(Message(role="system", content=system))
        messages.append(Message(role="user", content=prompt))
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def complete(self, prompt: str, instructions: Optional[str] = None) -> str:
        """
        Async chat completion.

        Args:
            prompt: User message
            instructions: System instructions for this call only

        Returns:
            Generated response text
        """
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            self._build_payload(prompt, instructions),
        )
        choice = (data.get("choices") or [{}])[0]
        content = (choice.get("message") or {}).get("content") or ""
        logger.info("Chat completion: tokens=%s, content_len=%d", data.get("usage", {}), len(content))
        return content.strip()
