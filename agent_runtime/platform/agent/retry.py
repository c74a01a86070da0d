"""Retry of transient provider failures.

Timeouts, refused connections and HTTP 429/500/502/503/504 responses are
retried with exponential backoff plus jitter; anything else fails at once.
Running out of attempts raises ``llm_error("max retries exceeded")``.
"""

import logging
import random
import time
from collections.abc import Callable
from typing import Any

import httpx
import litellm
import tenacity

from agent_runtime.platform.agent.config import RetryPolicy
from agent_runtime.platform.agent.errors import llm_error

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionRefusedError,
    httpx.TimeoutException,
    httpx.ConnectError,
    litellm.Timeout,
)


def _status_code(exc: BaseException) -> int | None:
    for candidate in (exc, getattr(exc, "response", None)):
        if candidate is None:
            continue
        for attribute in ("status_code", "status"):
            value = getattr(candidate, attribute, None)
            if isinstance(value, int):
                return value
    return None


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        return True
    return _status_code(exc) in RETRYABLE_STATUS_CODES


class wait_exponential_jitter(tenacity.wait.wait_base):
    """``base_delay * 2^(attempt-1)`` plus up to ``jitter`` of that at random."""

    def __init__(self, base_delay: float, jitter: float = 0.1, rng: random.Random | None = None):
        self.base_delay = base_delay
        self.jitter = jitter
        self.rng = rng or random.Random()

    def __call__(self, retry_state: tenacity.RetryCallState) -> float:
        delay = self.base_delay * 2 ** (retry_state.attempt_number - 1)
        return delay + self.rng.uniform(0, delay * self.jitter)


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retryable provider failure on attempt %d, retrying in %.3fs: %s",
        retry_state.attempt_number,
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
        exc,
    )


def call_with_retry(
    fn: Callable[[], Any],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> tuple[Any, int]:
    """Call ``fn`` until it succeeds, fails terminally, or attempts run out.

    Returns:
        ``(result, attempts)`` where ``attempts`` counts the first call

    Raises:
        AgentError: ``llm_error`` when every attempt failed with a retryable error
        Exception: the original exception when it is not retryable
    """
    retrying = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(policy.max_attempts),
        wait=wait_exponential_jitter(policy.base_delay, policy.jitter, rng),
        retry=tenacity.retry_if_exception(is_retryable),
        sleep=sleep,
        before_sleep=_log_retry,
    )
    try:
        result = retrying(fn)
    except tenacity.RetryError as e:
        last = e.last_attempt.exception()
        attempts = e.last_attempt.attempt_number
        logger.error("Provider call failed after %d attempts: %s", attempts, last)
        raise llm_error(
            "max retries exceeded",
            {"attempts": attempts, "max_attempts": policy.max_attempts, "exception": last},
        ) from last
    return result, retrying.statistics.get("attempt_number", 1)
