"""
Jittered exponential backoff with a per-attempt timeout, for coroutines.
"""
import asyncio
from functools import wraps
from typing import Callable, Optional, Tuple, Type, Union

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from cloudjournal.messages import get_logger

from .exceptions import SinkConnectionError, SinkSequenceError

ExceptionTypes = Union[Type[Exception], Tuple[Type[Exception], ...]]


def with_retry(
    timeout: float = 60,
    retries: int = 5,
    delay: float = 1,
    exceptions: ExceptionTypes = (SinkConnectionError, SinkSequenceError),
    logger_name: str = "cloudjournal.retry",
    retry_if_func: Optional[Callable[[BaseException], bool]] = None,
    reraise: bool = False,
):
    """
    Retry an async function on transient failures.

    The n-th wait is ``delay * 2**(n-1)`` seconds, capped at ``delay * 32``,
    plus up to ``delay`` seconds of random jitter so that agents restarted
    together don't retry in lockstep. Each attempt runs under its own
    ``timeout``; an attempt that overruns raises TimeoutError, which is
    retried only if ``exceptions``/``retry_if_func`` say so.

    Args:
        timeout: Seconds allowed per attempt (default: 60)
        retries: Total attempts, including the first (default: 5)
        delay: Base backoff in seconds (default: 1)
        exceptions: Exception types to retry (default: transient sink errors)
        logger_name: Logger that reports each backoff
        retry_if_func: Predicate on the raised exception; replaces
            ``exceptions`` when given
        reraise: Once attempts run out, raise the last exception itself
            instead of ``tenacity.RetryError``

    Example:
        @with_retry(retries=5, delay=1)
        async def upload(self, batch: LogBatch) -> None:
            ...
    """
    logger = get_logger(logger_name)

    if retry_if_func is not None:
        should_retry = retry_if_exception(retry_if_func)
    else:
        should_retry = retry_if_exception_type(exceptions)

    def log_backoff(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{retries} of "
            f"{retry_state.fn.__name__} failed: {error}. Retrying in {wait:.2f}s"
        )

    def decorator(func):
        @retry(
            stop=stop_after_attempt(retries),
            wait=wait_exponential(multiplier=delay, min=delay, max=delay * 32)
            + wait_random(0, delay),
            retry=should_retry,
            before_sleep=log_backoff,
            reraise=reraise,
        )
        @wraps(func)
        async def attempt(*args, **kwargs):
            try:
                async with asyncio.timeout(timeout):
                    return await func(*args, **kwargs)
            except TimeoutError as e:
                raise TimeoutError(
                    f"Operation {func.__name__} timed out after {timeout} seconds"
                ) from e

        return attempt

    return decorator
