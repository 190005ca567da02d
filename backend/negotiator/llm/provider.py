"""Interface the market data service expects from a completion backend."""

from typing import Protocol

from .types import ChatMessage, Completion, ProviderHealth


class CompletionProvider(Protocol):

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        model: str | None = None,
    ) -> Completion:
        """One attempt; raises a ProviderError subclass on failure."""
        ...

    async def health(self) -> ProviderHealth: ...

    async def close(self) -> None: ...
