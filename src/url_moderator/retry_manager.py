"""
Retry Manager for idempotent document store reads.

Reads (get, list, query) are retried with exponential backoff when the
store reports a transient error. Writes are never passed through here:
repeating a create or an append could apply it twice.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import RetryConfig
from .enums import StoreErrorCode
from .exceptions import UrlModeratorError

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """Result of a retry operation."""

    success: bool
    result: Optional[T]
    attempts: int
    last_error: Optional[Exception]


class RetryManager:
    """Runs an async operation again after transient failures."""

    TRANSIENT_ERROR_CODES = frozenset({
        StoreErrorCode.TIMEOUT.value,
        StoreErrorCode.SERVER_ERROR.value,
        StoreErrorCode.RATE_LIMITED.value,
        StoreErrorCode.NETWORK_ERROR.value,
    })

    def __init__(self, config: RetryConfig) -> None:
        self._config = config

    def _calculate_delay(self, attempt: int) -> float:
        """
        Delay before retry number ``attempt + 1``.

        delay(n) = base_delay * 2^n, capped at max_delay.
        """
        delay = self._config.base_delay_seconds * (2 ** attempt)
        return min(delay, self._config.max_delay_seconds)

    def is_retryable_error(self, error: Exception) -> bool:
        """
        Check whether an exception is a transient store error.

        Only UrlModeratorError codes listed both as transient and in the
        configured ``retryable_errors`` qualify.
        """
        if not isinstance(error, UrlModeratorError):
            return False
        return (
            error.code in self.TRANSIENT_ERROR_CODES
            and error.code in self._config.retryable_errors
        )

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
    ) -> RetryResult[T]:
        """
        Execute an operation, retrying transient failures.

        Args:
            operation: The async operation to execute

        Returns:
            RetryResult with the result or the last error
        """
        last_error: Optional[Exception] = None
        attempts = 0
        max_attempts = self._config.max_retries + 1

        while attempts < max_attempts:
            try:
                result = await operation()
                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempts + 1,
                    last_error=None,
                )
            except UrlModeratorError as e:
                last_error = e
                attempts += 1

                if not self.is_retryable_error(e) or attempts >= max_attempts:
                    break

                await asyncio.sleep(self._calculate_delay(attempts - 1))

        return RetryResult(
            success=False,
            result=None,
            attempts=attempts,
            last_error=last_error,
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute with retry and return the result, raising the last error.

        Raises:
            UrlModeratorError: The error of the final attempt
        """
        outcome = await self.execute_with_retry(operation)
        if not outcome.success:
            assert outcome.last_error is not None
            raise outcome.last_error
        return outcome.result  # type: ignore[return-value]
