"""Backoff for the agent's outbound HTTP adapters.

Only connection-level failures and 5xx responses are retried. The command
pipeline itself never retries; this applies to registry and service API
calls only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

import httpx

log = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.PoolTimeout,
)

RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    backoff_base: float = 0.5  # seconds
    backoff_max: float = 5.0

    def delay(self, attempt: int) -> float:
        """Exponential backoff: base * 2^attempt, capped at backoff_max."""
        return min(self.backoff_base * (2 ** attempt), self.backoff_max)


NO_RETRY = RetryPolicy(max_retries=0)


def send_with_retry(
    send: Callable[..., httpx.Response],
    *args: Any,
    policy: RetryPolicy = RetryPolicy(),
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Call ``send`` until it returns a non-5xx response or retries run out.

    The last response is returned as-is (callers raise on status); the last
    transport error is re-raised.
    """
    last_exception: Optional[Exception] = None
    response: Optional[httpx.Response] = None

    for attempt in range(policy.max_retries + 1):
        try:
            response = send(*args, **kwargs)
        except RETRYABLE_EXCEPTIONS as exc:
            last_exception = exc
            response = None
            reason = exc.__class__.__name__
        else:
            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response
            reason = f"HTTP {response.status_code}"

        if attempt < policy.max_retries:
            delay = policy.delay(attempt)
            log.debug(
                "Retrying request (%s, attempt %d/%d, backoff %.1fs)",
                reason,
                attempt + 1,
                policy.max_retries,
                delay,
            )
            sleep(delay)

    if response is not None:
        return response
    if last_exception:
        raise last_exception
    raise RuntimeError("Retry logic exhausted")
