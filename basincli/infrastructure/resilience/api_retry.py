"""Service for executing API attempts with bounded transport retries.

Only failures flagged as retryable (dropped connections, DNS failures) are
retried, after a fixed delay. Timeouts and HTTP rejections propagate on
the first occurrence.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Optional

from basincli.domain.errors import NetworkError
from basincli.domain.events.api_events import DomainEvent, RetryScheduled

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 0
DEFAULT_RETRY_DELAY_S = 1.0

EventDispatcher = Callable[[DomainEvent], None]
SleepFunc = Callable[[float], Awaitable[None]]


def log_event(event: DomainEvent) -> None:
    """Default dispatcher: events are only logged."""
    logger.debug(f"EVENT: {event}")


class ApiRetryService:
    """Handles execution of single-attempt coroutines with retries."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_s: float = DEFAULT_RETRY_DELAY_S,
        sleep: SleepFunc = asyncio.sleep,
        dispatch_event: EventDispatcher = log_event,
    ):
        """Initializes the ApiRetryService.

        Args:
            max_retries: Default number of retries after the first attempt.
            retry_delay_s: Default fixed delay between attempts, in seconds.
            sleep: Awaitable used to wait between attempts.
            dispatch_event: Receives RetryScheduled events.
        """
        self.max_retries = max_retries
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep
        self._dispatch = dispatch_event
        logger.debug(f"ApiRetryService initialized: max_retries={max_retries}, retry_delay={retry_delay_s}s")

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        endpoint_name: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay_s: Optional[float] = None,
        **kwargs: Any
    ) -> Any:
        """Executes an async function, retrying retryable NetworkErrors.

        Args:
            func: The async function (one HTTP attempt) to execute.
            *args: Positional arguments for the function.
            endpoint_name: Name used in logs and events.
            max_retries: Overrides the service default for this call.
            retry_delay_s: Overrides the service default for this call.
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the first successful attempt.

        Raises:
            NetworkError: When a terminal transport failure occurs or retries are exhausted.
            Exception: Any non-retryable error raised by the function, unchanged.
        """
        retries = self.max_retries if max_retries is None else max_retries
        delay = self.retry_delay_s if retry_delay_s is None else retry_delay_s
        endpoint = endpoint_name or getattr(func, "__name__", "request")

        attempt = 0
        while True:
            attempt += 1
            try:
                return await func(*args, **kwargs)
            except NetworkError as e:
                if not e.retryable:
                    raise
                if attempt > retries:
                    logger.warning(f"Network error on {endpoint}, giving up after {attempt} attempt(s): {e.message}")
                    if retries > 0:
                        raise NetworkError(
                            f"{e.message} (after {attempt} attempts)", url=e.url, retryable=False
                        ) from e
                    raise
                logger.warning(
                    f"Network error on {endpoint}, retrying in {delay:.2f}s (attempt {attempt}/{retries + 1}): {e.message}"
                )
                self._dispatch(RetryScheduled(endpoint=endpoint, attempt_number=attempt, delay_seconds=delay))
                await self._sleep(delay)
