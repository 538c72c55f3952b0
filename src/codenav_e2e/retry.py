# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Polling retry engine for flaky UI assertions.

A probe is a zero-argument callable that either returns a value (or an
awaitable resolving to one) or raises. RetryPoller keeps invoking the probe
until it succeeds or the policy deadline is reached, sleeping between
attempts.

State machine:
- POLLING -> SUCCEEDED on a successful probe result
- POLLING -> POLLING on failure while the next attempt can start before the deadline
- POLLING -> TIMED_OUT on failure once no attempt fits before the deadline

The poller owns no per-call state, so a single instance can serve any number
of concurrent retry_until() calls.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Probe = Callable[[], Union[T, Awaitable[T]]]
SleepFunc = Callable[[float], Awaitable[Any]]
ClockFunc = Callable[[], float]


class ProbeFailure(Exception):
    """Base class for errors a probe raises to signal "not yet".

    Any exception raised by a probe is treated as a failed attempt; this
    class only exists so callers can raise something more descriptive
    than AssertionError.
    """

    pass


class RetryExhausted(Exception):
    """Raised when the retry deadline is reached without a successful attempt."""

    def __init__(self, last_error: BaseException, attempts: int, elapsed_ms: float):
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed_ms = elapsed_ms
        super().__init__(
            f"Retry exhausted after {attempts} attempt(s) in {elapsed_ms:.0f}ms: "
            f"{type(last_error).__name__}: {last_error}"
        )


class PollState(Enum):
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RetryPolicy:
    """Timeout and interval configuration governing retries.

    Attributes:
        timeout_ms: Maximum wall-clock time to keep retrying. Must be > 0.
        interval_ms: Delay between attempts. Must be >= 0.
        backoff_factor: Multiplier applied to the delay after each failed
            attempt. 1.0 keeps the interval fixed.
        max_interval_ms: Upper bound for the backoff delay, if any.
        max_attempts: Upper bound for the number of attempts, if any.
    """

    timeout_ms: float
    interval_ms: float = 500
    backoff_factor: float = 1.0
    max_interval_ms: Optional[float] = None
    max_attempts: Optional[int] = None

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.interval_ms < 0:
            raise ValueError(f"interval_ms must be >= 0, got {self.interval_ms}")
        if self.backoff_factor < 1.0:
            raise ValueError(f"backoff_factor must be >= 1.0, got {self.backoff_factor}")
        if self.max_interval_ms is not None and self.max_interval_ms < 0:
            raise ValueError(f"max_interval_ms must be >= 0, got {self.max_interval_ms}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def delay_for(self, attempt: int) -> float:
        """Return the delay in ms to wait after the given failed attempt (1-based).

        The delay never exceeds max_interval_ms, or timeout_ms when no cap is
        set, however many attempts have failed.
        """
        ceiling = self.max_interval_ms if self.max_interval_ms is not None else self.timeout_ms
        if self.interval_ms == 0 or self.backoff_factor == 1.0:
            return min(self.interval_ms, ceiling)
        try:
            delay = self.interval_ms * (self.backoff_factor ** (attempt - 1))
        except OverflowError:
            return ceiling
        return min(delay, ceiling)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int
    elapsed_ms: float

    @property
    def state(self) -> PollState:
        return PollState.SUCCEEDED

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    last_error: Exception
    attempts: int
    elapsed_ms: float

    @property
    def state(self) -> PollState:
        return PollState.TIMED_OUT

    def unwrap(self) -> Any:
        raise RetryExhausted(self.last_error, self.attempts, self.elapsed_ms) from self.last_error


Outcome = Union[Success[T], Failure]


async def _invoke(probe: Probe[T]) -> T:
    result = probe()
    if inspect.isawaitable(result):
        return await result
    return result


class RetryPoller:
    """Invokes probes until they succeed or a deadline elapses.

    Usage:
        poller = RetryPoller(default_interval_ms=500, default_timeout_ms=120000)
        url = await poller.retry_until(check_url, RetryPolicy(timeout_ms=5000))
        await poller.try_(lambda: assert_exists("codeSourceViewer"))
    """

    def __init__(
        self,
        default_timeout_ms: float = 120000,
        default_interval_ms: float = 500,
        default_backoff_factor: float = 1.0,
        default_max_interval_ms: Optional[float] = None,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
    ):
        """Initialize the poller.

        Args:
            default_timeout_ms: Timeout used by try_() when no policy is given.
            default_interval_ms: Interval used by try_() and try_for_time().
            default_backoff_factor: Backoff used by try_() and try_for_time().
            default_max_interval_ms: Backoff cap used by try_() and try_for_time().
            sleep: Coroutine function taking seconds. Defaults to asyncio.sleep.
            clock: Monotonic clock returning seconds. Defaults to time.monotonic.
        """
        self.default_timeout_ms = default_timeout_ms
        self.default_interval_ms = default_interval_ms
        self.default_backoff_factor = default_backoff_factor
        self.default_max_interval_ms = default_max_interval_ms
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._clock: ClockFunc = clock or time.monotonic

    async def poll(self, probe: Probe[T], policy: RetryPolicy) -> "Outcome[T]":
        """Run the probe under the policy and return the terminal outcome.

        Probe failures never escape this method; they are reported through
        the returned Failure. Cancellation does escape.
        """
        start = self._clock()
        attempts = 0

        while True:
            attempts += 1
            try:
                value = await self._run_to_completion(probe)
            except Exception as e:
                last_error = e
            else:
                return Success(value, attempts, self._elapsed_ms(start))

            elapsed_ms = self._elapsed_ms(start)
            delay_ms = policy.delay_for(attempts)
            logger.debug(
                f"Attempt {attempts} failed after {elapsed_ms:.0f}ms: "
                f"{type(last_error).__name__}: {last_error}"
            )

            if policy.max_attempts is not None and attempts >= policy.max_attempts:
                return Failure(last_error, attempts, elapsed_ms)
            if elapsed_ms + delay_ms >= policy.timeout_ms:
                return Failure(last_error, attempts, elapsed_ms)

            await self._sleep(delay_ms / 1000.0)

    async def retry_until(self, probe: Probe[T], policy: RetryPolicy) -> T:
        """Invoke the probe until it succeeds or the policy deadline is reached.

        Returns:
            The value returned by the first successful attempt.

        Raises:
            RetryExhausted: If no attempt succeeded in time. The last probe
                error is attached as __cause__ and as last_error.
        """
        outcome = await self.poll(probe, policy)
        if isinstance(outcome, Failure):
            logger.warning(
                f"Retry exhausted after {outcome.attempts} attempt(s) "
                f"({outcome.elapsed_ms:.0f}ms of {policy.timeout_ms:.0f}ms): {outcome.last_error}",
                extra={
                    "extra_fields": {
                        "attempts": outcome.attempts,
                        "elapsed_ms": outcome.elapsed_ms,
                        "timeout_ms": policy.timeout_ms,
                        "last_error": type(outcome.last_error).__name__,
                    }
                },
            )
        return outcome.unwrap()

    async def retry_once(self, probe: Probe[T]) -> T:
        """Evaluate the probe exactly once, without waiting."""
        policy = RetryPolicy(timeout_ms=self.default_timeout_ms, interval_ms=0, max_attempts=1)
        return await self.retry_until(probe, policy)

    async def try_for_time(self, timeout_ms: float, probe: Probe[T]) -> T:
        """Retry the probe for up to timeout_ms using the default interval and backoff."""
        policy = RetryPolicy(
            timeout_ms=timeout_ms,
            interval_ms=self.default_interval_ms,
            backoff_factor=self.default_backoff_factor,
            max_interval_ms=self.default_max_interval_ms,
        )
        return await self.retry_until(probe, policy)

    async def try_(self, probe: Probe[T]) -> T:
        """Retry the probe using the default timeout and interval."""
        return await self.try_for_time(self.default_timeout_ms, probe)

    async def _run_to_completion(self, probe: Probe[T]) -> T:
        # A cancelled caller still lets the in-flight probe finish.
        attempt = asyncio.ensure_future(_invoke(probe))
        try:
            return await asyncio.shield(attempt)
        except asyncio.CancelledError:
            if not attempt.done():
                await asyncio.wait({attempt})
            if not attempt.cancelled():
                attempt.exception()
            raise

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000.0
