"""
Claude adapter (Anthropic Messages API).
"""

import logging
from typing import Any, Dict, List, Optional

import anthropic

from visibility.errors import ProviderError
from .base import ChatMessage, ProviderAdapter, split_messages

logger = logging.getLogger(__name__)


class ClaudeProvider(ProviderAdapter):
    """Async Claude adapter."""

    name = "claude"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    MAX_TOKENS = 2048

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.model = model or self.DEFAULT_MODEL
        self.async_client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(self, messages: List[ChatMessage], temperature: float) -> str:
        system, _ = split_messages(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.MAX_TOKENS,
            "temperature": temperature,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system"
            ],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self.async_client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise ProviderError(f"Claude API error: {e}", provider=self.name,
                                status_code=getattr(e, "status_code", None)) from e

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        logger.debug(
            f"Claude call: {response.usage.input_tokens} in, {response.usage.output_tokens} out"
        )
        return content.strip()

    async def close(self) -> None:
        await self.async_client.close()
