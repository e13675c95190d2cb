"""
Provider adapter contract.

Every answer engine is wrapped in a ProviderAdapter whose complete()
returns plain text. Transport, HTTP and SDK failures surface as
ProviderError; an answer that decodes but carries no text is ''.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


class ProviderAdapter(ABC):
    """Base class for answer-engine adapters."""

    #: Provider id used on the command line and in stored rows
    name: str = ""

    @abstractmethod
    async def complete(self, messages: List[ChatMessage], temperature: float) -> str:
        """
        Send messages and return the reply text.

        Raises:
            ProviderError: transport, HTTP or SDK failure
        """

    async def close(self) -> None:
        """Release network resources."""


def split_messages(messages: List[ChatMessage]):
    """(joined system text, joined user text) for APIs without a system role per message."""
    system = "\n".join(m.content for m in messages if m.role == "system")
    user = "\n".join(m.content for m in messages if m.role != "system")
    return system, user
