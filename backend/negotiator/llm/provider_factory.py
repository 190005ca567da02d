"""
Process-wide completion provider.

WHAT: Build the OpenRouter client once, or nothing when the paid service is off
WHY: One connection pool per process; market data treats None as "local data only"
HOW: Lazily constructed module singleton, reset hook for tests
"""

from ..core import config
from ..utils.logger import get_logger
from .provider import CompletionProvider

logger = get_logger(__name__)

_provider: CompletionProvider | None = None


def get_provider() -> CompletionProvider | None:
    global _provider

    settings = config.settings
    if not settings.LLM_ENABLE_OPENROUTER:
        logger.info("LLM market analysis disabled; using comparables and synthetic data")
        return None

    if _provider is None:
        from .openrouter import OpenRouterProvider
        _provider = OpenRouterProvider(settings)
    return _provider


def reset_provider() -> None:
    global _provider
    _provider = None
