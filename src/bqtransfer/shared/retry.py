"""Retry utilities with exponential backoff."""

import time
import random
from typing import Callable, TypeVar, Optional, Type, Tuple

T = TypeVar('T')


class RetryStrategy:
    """
    Configurable retry strategy.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates on the first occurrence.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        exponential: bool = True,
        jitter: bool = True,
        max_backoff: float = 60.0,
        retry_on: Tuple[Type[Exception], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter
        self.max_backoff = max_backoff
        self.retry_on = retry_on
        self._sleep = sleep
        self._on_retry = on_retry

    def execute(
        self,
        func: Callable[..., T],
        *args,
        **kwargs
    ) -> T:
        """
        Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Function result

        Raises:
            Last exception if all attempts fail
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                if attempt == self.max_attempts:
                    raise

                wait_time = self._calculate_backoff(attempt)
                if self._on_retry:
                    self._on_retry(attempt, e, wait_time)
                self._sleep(wait_time)

        raise RuntimeError("Retry logic failed unexpectedly")

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff time for given attempt number."""
        if self.exponential:
            wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        else:
            wait_time = self.backoff_seconds * attempt

        if self.jitter:
            wait_time = wait_time * (0.5 + random.random())

        # Cap at max_backoff
        return min(wait_time, self.max_backoff)
