"""
Error taxonomy shared across the tracker.

Malformed LLM output is not an exception here: it is decoded into a
tagged result (see visibility.output.parser) and each consumer picks its
own default.
"""

from typing import Optional


class VisibilityError(Exception):
    """Base class for tracker errors."""


class ProviderError(VisibilityError):
    """Network, HTTP, timeout or SDK failure talking to an LLM provider."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ConfigError(VisibilityError):
    """Missing or invalid configuration (config file, input file, brand)."""


class StoreError(VisibilityError):
    """Database write or schema failure. Fatal for the run."""


class RunNotFoundError(StoreError):
    """No stored run matches the requested provider and brand."""
