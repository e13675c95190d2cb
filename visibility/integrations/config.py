"""
Provider Configuration and Routing

Builds provider adapters from settings and routes calls by provider id.

Required environment variables (per provider you want to run):
- OPENAI_API_KEY: chatgpt
- GEMINI_API_KEY: gemini
- PERPLEXITY_API_KEY: perplexity
- ANTHROPIC_API_KEY: claude
"""

import logging
from typing import Callable, Dict, List, Optional

from visibility.errors import ProviderError
from visibility.utils.config import Settings, get_settings
from .base import ChatMessage, ProviderAdapter

logger = logging.getLogger(__name__)


PROVIDERS = ("chatgpt", "gemini", "perplexity", "claude")
DEFAULT_REPORT_PROVIDERS = ("chatgpt", "gemini", "perplexity")


def locale_prompt(location: str) -> str:
    """System instruction pinning answers to the configured location."""
    return (
        f"You are an AI assistant. From now on, assume the user is located in {location} "
        f"and tailor all examples, regulations, pricing, date formats (MM/DD/YYYY), "
        f"currency (local), etc. accordingly."
    )


class ProviderConfig:
    """Credentials and models for every provider."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.api_keys: Dict[str, Optional[str]] = {
            "chatgpt": settings.OPENAI_API_KEY,
            "gemini": settings.GEMINI_API_KEY,
            "perplexity": settings.PERPLEXITY_API_KEY,
            "claude": settings.ANTHROPIC_API_KEY,
        }
        self.models: Dict[str, str] = {
            "chatgpt": settings.LLM_MODEL,
            "gemini": settings.GEMINI_MODEL,
            "perplexity": settings.PERPLEXITY_MODEL,
            "claude": settings.CLAUDE_MODEL,
        }
        self.answer_temperature = settings.ANSWER_TEMPERATURE

    def has(self, provider: str) -> bool:
        return bool(self.api_keys.get(provider))

    def log_status(self) -> None:
        status = ", ".join(f"{p}={'enabled' if self.has(p) else 'disabled'}" for p in PROVIDERS)
        logger.info(f"Provider status: {status}")


def _build_adapter(provider: str, config: ProviderConfig) -> ProviderAdapter:
    key = config.api_keys[provider]
    model = config.models[provider]

    if provider == "chatgpt":
        from .openai_chat import OpenAIChatProvider
        return OpenAIChatProvider(api_key=key, model=model)
    if provider == "gemini":
        from .gemini import GeminiProvider
        return GeminiProvider(api_key=key, model=model)
    if provider == "perplexity":
        from .perplexity import PerplexityProvider
        return PerplexityProvider(api_key=key, model=model)
    if provider == "claude":
        from .claude import ClaudeProvider
        return ClaudeProvider(api_key=key, model=model)
    raise ValueError(f"Unknown provider: {provider}")


class ProviderRouter:
    """
    Routes (provider, system, user) calls to the right adapter.

    Usage:
        async with ProviderRouter(location="Canada") as router:
            text = await router.ask("chatgpt", "Answer concisely.", "Best coffee?")

    ask() never raises for provider failures: they are logged and the
    call yields ''. Only an unknown provider id raises (ValueError).
    """

    def __init__(
        self,
        location: str,
        config: Optional[ProviderConfig] = None,
        adapters: Optional[Dict[str, ProviderAdapter]] = None,
        adapter_factory: Callable[[str, ProviderConfig], ProviderAdapter] = _build_adapter,
    ):
        self.location = location
        self.config = config or ProviderConfig()
        self._adapters: Dict[str, ProviderAdapter] = dict(adapters or {})
        self._factory = adapter_factory

    def is_available(self, provider: str) -> bool:
        self._check_known(provider)
        return provider in self._adapters or self.config.has(provider)

    def available(self, providers: List[str]) -> List[str]:
        return [p for p in providers if self.is_available(p)]

    def adapter(self, provider: str) -> ProviderAdapter:
        """Get or create the adapter for a provider."""
        self._check_known(provider)
        if provider not in self._adapters:
            if not self.config.has(provider):
                raise ProviderError(f"Provider '{provider}' is not configured", provider=provider)
            self._adapters[provider] = self._factory(provider, self.config)
            logger.info(f"Initialized {provider} adapter")
        return self._adapters[provider]

    async def complete(
        self,
        provider: str,
        system: str,
        user: str,
        temperature: Optional[float] = None,
        with_locale: bool = True,
    ) -> str:
        """
        Ask a provider, raising ProviderError on failure.
        """
        messages = []
        if with_locale:
            messages.append(ChatMessage("system", locale_prompt(self.location)))
        messages.append(ChatMessage("system", system))
        messages.append(ChatMessage("user", user))

        temp = self.config.answer_temperature if temperature is None else temperature
        return await self.adapter(provider).complete(messages, temperature=temp)

    async def ask(
        self,
        provider: str,
        system: str,
        user: str,
        temperature: Optional[float] = None,
        with_locale: bool = True,
    ) -> str:
        """Ask a provider; failures are logged and degrade to ''."""
        try:
            return await self.complete(provider, system, user, temperature, with_locale)
        except ProviderError as e:
            logger.warning(f"{provider} call failed, using empty answer: {e}")
            return ""

    async def close(self) -> None:
        """Close all adapters."""
        for adapter in self._adapters.values():
            await adapter.close()
        self._adapters.clear()
        logger.debug("Closed provider adapters")

    @staticmethod
    def _check_known(provider: str) -> None:
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
