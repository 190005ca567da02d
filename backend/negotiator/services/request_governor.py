"""
Request governor for the paid completion service.

WHAT: Hard lifetime budget plus retry/backoff around external LLM calls
WHY: The completion API is billed per call and shared by every negotiation in the process
HOW: Mutex-guarded counter with sticky blocking; execute_with_retry reserves one slot per logical call
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..core.config import settings
from ..utils.exceptions import QuotaExhaustedError
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class GovernorCheck:
    """Result of asking whether a request may be made."""
    allowed: bool
    reason: str | None = None


@dataclass
class GovernorStatus:
    """Snapshot of budget usage."""
    count: int
    max_requests: int
    is_blocked: bool
    remaining: int


class RequestGovernor:
    """
    Process-wide budget for external requests.

    Construct once at startup and pass the same instance to every caller.
    A reserved slot is never refunded, even when the call fails.
    """

    def __init__(
        self,
        max_requests: int | None = None,
        *,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
    ):
        self.max_requests = max_requests if max_requests is not None else settings.LLM_REQUEST_BUDGET
        self.max_attempts = max_attempts if max_attempts is not None else settings.LLM_RETRY_ATTEMPTS
        self.retry_delay = retry_delay if retry_delay is not None else settings.LLM_RETRY_DELAY
        self._count = 0
        self._blocked = False
        self._lock = threading.Lock()
        logger.info(
            f"Request governor initialized (budget={self.max_requests}, "
            f"attempts={self.max_attempts}, retry_delay={self.retry_delay}s)"
        )

    def _check_locked(self) -> GovernorCheck:
        if self._blocked:
            return GovernorCheck(
                allowed=False,
                reason=f"Requests blocked. Maximum limit of {self.max_requests} requests reached."
            )
        if self._count >= self.max_requests:
            self._blocked = True
            logger.warning(f"Request limit reached ({self.max_requests}). Blocking further requests.")
            return GovernorCheck(
                allowed=False,
                reason=f"Maximum limit of {self.max_requests} requests reached."
            )
        return GovernorCheck(allowed=True)

    def can_request(self) -> GovernorCheck:
        """Check whether a request could be made right now."""
        with self._lock:
            return self._check_locked()

    def reserve(self) -> bool:
        """Atomically check the budget and consume one slot."""
        with self._lock:
            if not self._check_locked().allowed:
                return False
            self._count += 1
            logger.info(f"Request reserved: {self._count}/{self.max_requests}")
            return True

    def status(self) -> GovernorStatus:
        with self._lock:
            return GovernorStatus(
                count=self._count,
                max_requests=self.max_requests,
                is_blocked=self._blocked,
                remaining=max(0, self.max_requests - self._count),
            )

    def reset(self) -> None:
        """Reset the budget (tests and operator action only)."""
        with self._lock:
            self._count = 0
            self._blocked = False
        logger.info("Request governor reset")

    async def execute_with_retry(self, fn: Callable[[], Awaitable[T]], label: str) -> T:
        """
        Run an external call under the budget, retrying failures with backoff.

        Args:
            fn: Zero-argument coroutine factory performing the call
            label: Human-readable name for logs

        Returns:
            Whatever fn returns

        Raises:
            QuotaExhaustedError: Budget already spent, fn was not called
            Exception: The last error from fn once attempts are exhausted
        """
        if not self.reserve():
            check = self.can_request()
            logger.warning(f"{label}: request blocked by governor ({check.reason})")
            raise QuotaExhaustedError(check.reason or "Request budget exhausted")

        for attempt in range(self.max_attempts):
            try:
                result = await fn()
                if attempt > 0:
                    logger.info(f"{label}: succeeded on attempt {attempt + 1}/{self.max_attempts}")
                return result
            except Exception as e:
                logger.warning(f"{label}: attempt {attempt + 1}/{self.max_attempts} failed: {e}")
                if attempt == self.max_attempts - 1:
                    logger.error(f"{label}: giving up after {self.max_attempts} attempts")
                    raise
                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        # max_attempts >= 1 guarantees the loop returns or raises
        raise RuntimeError(f"{label}: no attempts were made")
