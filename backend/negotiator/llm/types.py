"""
Completion service types and errors.

WHAT: Message, completion, and health shapes plus the provider error family
WHY: The governor retries on ProviderError; fallbacks and HTTP handlers branch on the subclass
HOW: TypedDict for chat messages, dataclasses for results, one exception base
"""

from dataclasses import dataclass, field
from typing import Literal, TypedDict


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class Completion:
    """Text returned by one chat completion call."""
    text: str
    model: str
    usage: dict = field(default_factory=dict)

    @property
    def total_tokens(self) -> int | None:
        return self.usage.get("total_tokens")


@dataclass
class ProviderHealth:
    """Reachability of the completion service and its configured model."""
    available: bool
    endpoint: str
    model: str
    model_listed: bool = False
    latency_ms: float | None = None
    error: str | None = None


class ProviderError(Exception):
    """Base class for completion service failures."""


class ProviderDisabledError(ProviderError):
    """Completion service is switched off or missing credentials."""


class ProviderTimeoutError(ProviderError):
    """No answer within LLM_TIMEOUT."""


class ProviderUnavailableError(ProviderError):
    """Service unreachable or rate limiting us."""


class ProviderResponseError(ProviderError):
    """Service answered with an error status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
