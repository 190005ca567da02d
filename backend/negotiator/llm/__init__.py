"""Completion service access for market analysis."""

from .provider import CompletionProvider
from .provider_factory import get_provider, reset_provider
from .types import (
    ChatMessage,
    Completion,
    ProviderDisabledError,
    ProviderError,
    ProviderHealth,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

__all__ = [
    "ChatMessage",
    "Completion",
    "CompletionProvider",
    "ProviderDisabledError",
    "ProviderError",
    "ProviderHealth",
    "ProviderResponseError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "get_provider",
    "reset_provider",
]
