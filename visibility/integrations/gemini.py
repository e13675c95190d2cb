"""
Gemini adapter (Generative Language REST API).

Gemini takes a single user turn here, so system instructions are folded
into the prompt text.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from visibility.errors import ProviderError
from .base import ChatMessage, ProviderAdapter, split_messages

logger = logging.getLogger(__name__)


class GeminiProvider(ProviderAdapter):
    """Async Gemini adapter over httpx."""

    name = "gemini"
    BASE_URL = "https://generativelanguage.googleapis.com/v1"
    DEFAULT_MODEL = "gemini-1.5-flash"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def complete(self, messages: List[ChatMessage], temperature: float) -> str:
        system, user = split_messages(messages)
        combined = f"{system}\n{user}" if system else user

        payload = {
            "contents": [{"role": "user", "parts": [{"text": combined}]}],
            "generationConfig": {"temperature": temperature, "candidateCount": 1},
        }

        try:
            response = await self._client.post(
                f"/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=payload,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(f"Gemini request timed out: {e}", provider=self.name) from e
        except httpx.RequestError as e:
            raise ProviderError(f"Gemini request failed: {e}", provider=self.name) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"Gemini returned non-JSON body (HTTP {response.status_code}): {response.text[:200]}",
                provider=self.name,
                status_code=response.status_code,
            ) from e

        if response.status_code >= 400:
            message = data.get("error", {}).get("message", "") if isinstance(data, dict) else ""
            raise ProviderError(
                f"Gemini HTTP error {response.status_code}: {message}",
                provider=self.name,
                status_code=response.status_code,
            )

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        if not isinstance(parts, list):
            return ""
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()

    async def close(self) -> None:
        await self._client.aclose()
