"""
Bounded retry with exponential backoff for transient store failures.

Only StoreUnavailable is retried. NotFound and ValidationError are
answers, not glitches, and propagate on the first attempt.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from app.core.config import get_settings
from app.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(
    func: Callable[[], T],
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run func(), retrying on StoreUnavailable.

    Args:
        func: zero-argument callable (use a lambda to bind arguments)
        max_retries: total attempts, defaults to settings.store_retry_attempts
        base_delay: first delay in seconds
        max_delay: cap on any single delay
        sleep: injectable for tests

    Raises:
        StoreUnavailable: the last error once all attempts are used
    """
    settings = get_settings()
    attempts = max(1, max_retries if max_retries is not None else settings.store_retry_attempts)
    base = base_delay if base_delay is not None else settings.store_retry_backoff_seconds
    cap = max_delay if max_delay is not None else settings.store_retry_max_delay_seconds

    last_exception: Optional[StoreUnavailable] = None
    for attempt in range(attempts):
        try:
            return func()
        except StoreUnavailable as e:
            last_exception = e
            if attempt < attempts - 1:
                delay = min(base * (2 ** attempt), cap)
                logger.warning(
                    "[Store-Retry] Attempt %d/%d failed: %s. Retrying in %.2fs",
                    attempt + 1, attempts, e, delay,
                )
                sleep(delay)
            else:
                logger.error("[Store-Retry] All %d attempts failed: %s", attempts, e)
    raise last_exception

