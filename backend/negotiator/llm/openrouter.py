"""
OpenRouter completion client.

WHAT: Chat completions against OpenRouter's OpenAI-compatible API
WHY: Market analysis for listings that have few comparables in our own data
HOW: One httpx.AsyncClient per provider; each call is a single attempt and
     every transport or payload problem surfaces as a ProviderError subclass.
     Budget and retries belong to the RequestGovernor.
"""

import json
import time

import httpx

from ..core.config import Settings
from ..utils.logger import get_logger
from .types import (
    ChatMessage,
    Completion,
    ProviderDisabledError,
    ProviderHealth,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = get_logger(__name__)

CONNECT_TIMEOUT = 5.0
HEALTH_TIMEOUT = 10.0


def _mask(api_key: str) -> str:
    return f"...{api_key[-4:]}" if len(api_key) > 8 else "***"


class OpenRouterProvider:
    """Completion provider for OpenRouter; inert unless LLM_ENABLE_OPENROUTER is set."""

    def __init__(self, config: Settings):
        self.enabled = config.LLM_ENABLE_OPENROUTER
        self.base_url = config.OPENROUTER_BASE_URL.rstrip("/")
        self.model = config.OPENROUTER_DEFAULT_MODEL
        self._client: httpx.AsyncClient | None = None

        if not self.enabled:
            logger.info("OpenRouter client created in disabled state")
            return

        api_key = (config.OPENROUTER_API_KEY or "").strip()
        if not api_key:
            raise ProviderDisabledError(
                "LLM_ENABLE_OPENROUTER is set but OPENROUTER_API_KEY is empty"
            )

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(CONNECT_TIMEOUT, read=float(config.LLM_TIMEOUT)),
            headers={
                "Authorization": f"Bearer {api_key}",
                "HTTP-Referer": config.APP_NAME,
                "X-Title": config.APP_NAME,
            },
        )
        logger.info(f"OpenRouter client ready (model={self.model}, key={_mask(api_key)})")

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ProviderDisabledError("OpenRouter is disabled; set LLM_ENABLE_OPENROUTER=true")
        return self._client

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        model: str | None = None,
    ) -> Completion:
        """
        Send one chat completion request.

        Raises:
            ProviderDisabledError: client was built disabled
            ProviderTimeoutError: read or connect timeout
            ProviderUnavailableError: connection refused or HTTP 429
            ProviderResponseError: other HTTP errors, malformed or empty body
        """
        client = self._require_client()
        body = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        try:
            response = await client.post("/chat/completions", json=body)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"OpenRouter did not answer in time: {e}") from e
        except httpx.TransportError as e:
            raise ProviderUnavailableError(f"OpenRouter unreachable: {e}") from e

        if response.status_code == 429:
            raise ProviderUnavailableError("OpenRouter rate limit hit (HTTP 429)")
        if response.is_error:
            raise ProviderResponseError(
                f"OpenRouter returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(f"Unexpected completion payload: {e}") from e

        if not text or not text.strip():
            raise ProviderResponseError("Empty completion text")

        completion = Completion(
            text=text,
            model=data.get("model", body["model"]),
            usage=data.get("usage") or {},
        )
        logger.debug(f"OpenRouter completion ({completion.model}, tokens={completion.total_tokens})")
        return completion

    async def health(self) -> ProviderHealth:
        """Probe the models endpoint; never raises for network problems."""
        client = self._require_client()
        started = time.perf_counter()
        try:
            response = await client.get("/models", timeout=HEALTH_TIMEOUT)
            response.raise_for_status()
            listed = {entry.get("id") for entry in response.json().get("data", [])}
        except httpx.TimeoutException:
            return ProviderHealth(False, self.base_url, self.model, error="timeout")
        except httpx.TransportError as e:
            logger.warning(f"OpenRouter health check failed: {e}")
            return ProviderHealth(False, self.base_url, self.model, error="unreachable")
        except (httpx.HTTPStatusError, ValueError) as e:
            return ProviderHealth(False, self.base_url, self.model, error=str(e))

        return ProviderHealth(
            available=True,
            endpoint=self.base_url,
            model=self.model,
            model_listed=self.model in listed,
            latency_ms=round((time.perf_counter() - started) * 1000, 1),
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
