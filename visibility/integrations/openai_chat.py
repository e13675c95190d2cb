"""
ChatGPT adapter (OpenAI Chat Completions).
"""

import logging
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from visibility.errors import ProviderError
from .base import ChatMessage, ProviderAdapter

logger = logging.getLogger(__name__)


class OpenAIChatProvider(ProviderAdapter):
    """
    Async ChatGPT adapter.

    Usage:
        provider = OpenAIChatProvider(api_key="sk-...", model="gpt-4o-mini")
        text = await provider.complete([ChatMessage("user", "Hi")], temperature=0.7)
    """

    name = "chatgpt"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or self.DEFAULT_MODEL
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def complete(self, messages: List[ChatMessage], temperature: float) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=temperature,
            )
        except OpenAIError as e:
            raise ProviderError(f"OpenAI request failed: {e}", provider=self.name,
                                status_code=getattr(e, "status_code", None)) from e

        if not response.choices:
            return ""
        content = response.choices[0].message.content
        return (content or "").strip()

    async def close(self) -> None:
        await self._client.close()
