"""
Perplexity adapter

Perplexity answers with live web search, which makes it the provider most
likely to put brand URLs into an answer.

API: https://docs.perplexity.ai/
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from visibility.errors import ProviderError
from .base import ChatMessage, ProviderAdapter

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for rate-limit and server-error retry behavior."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


class PerplexityProvider(ProviderAdapter):
    """
    Async adapter for the Perplexity chat completions API.

    Usage:
        provider = PerplexityProvider(api_key="pplx-...")
        answer = await provider.query([ChatMessage("user", "Best coffee chains?")])
        await provider.close()
    """

    name = "perplexity"
    BASE_URL = "https://api.perplexity.ai"
    DEFAULT_MODEL = "sonar"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.retry_config = retry_config or RetryConfig()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    async def complete(self, messages: List[ChatMessage], temperature: float) -> str:
        return await self.query(messages, temperature=temperature)

    async def query(
        self,
        messages: List[ChatMessage],
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> str:
        """
        Query Perplexity.

        Returns:
            Answer text; '' when the reply carries no usable message
        """
        if self._closed:
            raise ProviderError("Client has been closed", provider=self.name)

        payload = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        response = await self._request_with_retry(payload)
        return self._extract_text(response)

    @staticmethod
    def _extract_text(data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return content.strip() if isinstance(content, str) else ""

    async def _request_with_retry(self, payload: Dict[str, Any]) -> Any:
        """Make request, retrying rate limits and 5xx responses."""
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                response = await self._client.post("/chat/completions", json=payload)
            except httpx.TimeoutException as e:
                raise ProviderError(f"Request timed out: {e}", provider=self.name) from e
            except httpx.RequestError as e:
                raise ProviderError(f"Request failed: {e}", provider=self.name) from e

            if response.status_code < 400:
                try:
                    return response.json()
                except ValueError as e:
                    raise ProviderError(
                        f"Non-JSON response body: {response.text[:200]}",
                        provider=self.name,
                        status_code=response.status_code,
                    ) from e

            if response.status_code not in config.retryable_status_codes:
                try:
                    error_data = response.json() if response.content else {}
                except ValueError:
                    error_data = {}
                detail = error_data.get("error", {}) if isinstance(error_data, dict) else {}
                message = detail.get("message", response.status_code) if isinstance(detail, dict) else detail
                raise ProviderError(
                    f"API error: {message}",
                    provider=self.name,
                    status_code=response.status_code,
                )

            last_exception = ProviderError(
                f"API error: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
            )
            if attempt < config.max_retries:
                delay = min(
                    config.initial_delay * (config.exponential_base**attempt),
                    config.max_delay,
                )
                logger.warning(
                    f"Perplexity returned {response.status_code}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self) -> None:
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True
