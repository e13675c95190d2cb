"""
Answer-engine integrations

One adapter per provider, all returning plain text:
- chatgpt: OpenAI Chat Completions
- gemini: Generative Language REST API
- perplexity: Perplexity chat completions (web search)
- claude: Anthropic Messages API
"""

from .base import ChatMessage, ProviderAdapter
from .config import (
    DEFAULT_REPORT_PROVIDERS,
    PROVIDERS,
    ProviderConfig,
    ProviderRouter,
    locale_prompt,
)

__all__ = [
    "ChatMessage",
    "ProviderAdapter",
    "DEFAULT_REPORT_PROVIDERS",
    "PROVIDERS",
    "ProviderConfig",
    "ProviderRouter",
    "locale_prompt",
]
