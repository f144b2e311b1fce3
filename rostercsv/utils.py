"""
Utility Functions
Whitespace cleanup, network-error classification, and retry logic.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Tuple, Type

from .errors import NavigationTimeout, NetworkTransient

logger = logging.getLogger(__name__)


# Message fragments Playwright/Firefox/Chromium emit for dropped connections
_NETWORK_ERROR_PATTERNS = [
    re.compile(r"ECONNRESET", re.IGNORECASE),
    re.compile(r"ERR_CONNECTION_(RESET|CLOSED|REFUSED|ABORTED)", re.IGNORECASE),
    re.compile(r"ERR_EMPTY_RESPONSE", re.IGNORECASE),
    re.compile(r"ERR_NETWORK_CHANGED", re.IGNORECASE),
    re.compile(r"NS_ERROR_NET_(RESET|INTERRUPT|TIMEOUT)", re.IGNORECASE),
    re.compile(r"NS_ERROR_CONNECTION_REFUSED", re.IGNORECASE),
    re.compile(r"connection (was )?reset", re.IGNORECASE),
    re.compile(r"empty (reply|response)", re.IGNORECASE),
    re.compile(r"socket hang up", re.IGNORECASE),
]


def clean_text(text: Any) -> str:
    """Collapse whitespace runs to a single space and trim."""
    if text is None:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def is_network_error(exc: BaseException) -> bool:
    """True if the exception message looks like a transient network failure."""
    message = str(exc)
    return any(p.search(message) for p in _NETWORK_ERROR_PATTERNS)


class RetryHandler:
    """
    Retries an async call on transient failures with a fixed delay.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates on the first occurrence.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 10.0,
        retry_on: Tuple[Type[BaseException], ...] = (NetworkTransient, NavigationTimeout),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            max_attempts: Total attempts, including the first one
            delay: Seconds to wait between attempts
            retry_on: Exception types that trigger a retry
            sleep: Awaitable sleep function (injectable for tests)
        """
        self.max_attempts = max(1, max_attempts)
        self.delay = delay
        self.retry_on = retry_on
        self._sleep = sleep

    async def execute_with_retry(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await ``func(*args, **kwargs)`` until it succeeds or attempts run out.

        Raises:
            The last retryable exception if every attempt failed
        """
        last_exception = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func(*args, **kwargs)
            except self.retry_on as e:
                last_exception = e
                if attempt < self.max_attempts:
                    logger.warning(
                        f"[RETRY] Attempt {attempt}/{self.max_attempts} failed: {e}. "
                        f"Retrying in {self.delay:.0f}s..."
                    )
                    await self._sleep(self.delay)
                else:
                    logger.error(f"[RETRY] All {self.max_attempts} attempts failed: {e}")

        raise last_exception
