"""
Bounded retry combinator shared by the telemetry fetch path and the
batched score writes.

Both call sites use the same shape: a maximum attempt count, a wait
schedule and a predicate of retryable exception types. On exhaustion the
last exception is re-raised unchanged so callers can map it.

Usage:
    retrying = bounded_retry(3, wait_retry_after(cap=60), (RateLimited,), is_async=True)
    data = await retrying(client.fetch, app_id)

    retrying = bounded_retry(5, wait_exponential(multiplier=1, max=30), (SQLAlchemyError,))
    retrying(commit_batch, batch)
"""
import logging
from typing import Callable, Optional, Tuple, Type, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from app.core.logging import get_logger

logger = get_logger(__name__)


def wait_retry_after(cap: float, fallback: float = 1.0) -> Callable[[RetryCallState], float]:
    """
    Wait strategy honouring an exception's ``retry_after`` attribute.

    Args:
        cap: Upper bound on any single wait, in seconds
        fallback: Wait used when the exception carries no retry_after

    Returns:
        A tenacity-compatible wait callable
    """

    def _wait(retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(exc, "retry_after", None)
        seconds = fallback if retry_after is None else float(retry_after)
        return max(0.0, min(seconds, cap))

    return _wait


def bounded_retry(
    max_attempts: int,
    wait: Callable[[RetryCallState], float],
    retryable: Tuple[Type[BaseException], ...],
    is_async: bool = False,
    log: Optional[logging.Logger] = None,
) -> Union[Retrying, AsyncRetrying]:
    """
    Build a retrying callable.

    Args:
        max_attempts: Total attempts including the first call
        wait: Wait strategy between attempts
        retryable: Exception types that trigger another attempt
        is_async: Return an AsyncRetrying for coroutine functions
        log: Logger for the before-sleep warning (defaults to this module's)

    Returns:
        tenacity Retrying / AsyncRetrying; call it with ``(fn, *args, **kwargs)``
    """
    retrying_cls = AsyncRetrying if is_async else Retrying
    return retrying_cls(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait,
        retry=retry_if_exception_type(retryable),
        before_sleep=before_sleep_log(log or logger, logging.WARNING),
        reraise=True,
    )
