"""Retry policy with linear backoff, shared by the scheduler, gateway and RPC provider."""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pulse_portfolio_tracker.core.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """
    Configuration for retry behavior.

    Parameters
    ----------
    max_attempts : int
        Total number of attempts, including the first one
    base_delay : float
        Delay in seconds before the first retry; retry ``n`` waits ``n * base_delay``
    max_delay : float
        Maximum delay between retries
    retry_on : tuple[type[BaseException], ...]
        Exception types considered transient

    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        retry_on: tuple[type[BaseException], ...] = (ProviderUnavailable,),
    ) -> None:
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt using linear backoff.

        Parameters
        ----------
        attempt : int
            Number of the attempt that just failed (1-indexed)

        Returns
        -------
        float
            Delay in seconds

        """
        return min(self.base_delay * attempt, self.max_delay)

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, self.retry_on)


class RetryPolicy:
    """
    Runs a callable until it succeeds, a non-retryable error occurs or attempts run out.

    Parameters
    ----------
    config : RetryConfig | None
        Retry configuration
    sleep : Callable[[float], None] | None
        Sleep function, ``time.sleep`` by default

    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep or time.sleep

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        on_retry: Callable[[int, BaseException], None] | None = None,
        **kwargs: Any,
    ) -> T:
        """
        Call ``func`` with retries.

        Parameters
        ----------
        func : Callable[..., T]
            Function to call
        *args : Any
            Positional arguments for ``func``
        on_retry : Callable[[int, BaseException], None] | None
            Hook run before each retry with the failed attempt number and error
        **kwargs : Any
            Keyword arguments for ``func``

        Returns
        -------
        T
            Result of the first successful call

        Raises
        ------
        Exception
            The last error, or the first non-retryable one

        """
        attempt = 1
        while True:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not self.config.is_retryable(e) or attempt >= self.config.max_attempts:
                    raise
                delay = self.config.get_delay(attempt)
                logger.debug(
                    "Attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt,
                    self.config.max_attempts,
                    e,
                    delay,
                )
                if on_retry is not None:
                    on_retry(attempt, e)
                self._sleep(delay)
                attempt += 1


class RetryManager:
    """
    Manages retry logic for RPC providers with endpoint rotation.

    Parameters
    ----------
    provider : Any
        RPC provider instance with ``make_request`` and ``rotate_endpoint``
    policy : RetryPolicy | None
        Retry policy

    """

    def __init__(self, provider: Any, policy: RetryPolicy | None = None) -> None:
        self.provider = provider
        self.policy = policy or RetryPolicy()

    def execute_with_retry(self, method: str, params: list[Any]) -> Any:
        """
        Execute RPC call with retry and endpoint rotation on failure.

        Parameters
        ----------
        method : str
            RPC method name
        params : list[Any]
            Method parameters

        Returns
        -------
        Any
            RPC result

        """
        return self.policy.call(
            self.provider.make_request,
            method,
            params,
            on_retry=lambda _attempt, _error: self.provider.rotate_endpoint(),
        )
