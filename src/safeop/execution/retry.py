"""Bounded retry with exponential backoff, jitter and cancellation.

A retry run is a small state machine over attempts::

    PENDING ─> ATTEMPTING ─┬─> SUCCEEDED                      (Ok)
                           ├─> WAITING ─> ATTEMPTING ...     (retryable, budget left)
                           └─> FAILED_TERMINAL               (Err, whole cause chain)

After a failed attempt the run waits only if attempts remain, the error's
kind is in ``policy.retryable_kinds`` and the error itself is retryable.
The wait is ``min(base_delay * multiplier ** (attempt - 1), max_delay)``
plus up to ``jitter`` of extra random delay, still capped at ``max_delay``.
Jitter only lengthens a wait, so a run never waits less than its backoff.
A :class:`CancellationToken` is observed only while waiting; a cancelled
run ends with a ``CANCELLED`` error.

The terminal ``Err`` carries the last attempt's error. Its ``cause`` chain
has one link per attempt, newest first. An attempt's own cause chain is
summarised in its ``caused_by`` context field and kept whole in
``RetryRun.errors``.

Example:
    >>> from safeop.execution.retry import RetryPolicy, with_retry
    >>>
    >>> policy = RetryPolicy(max_attempts=5, base_delay=0.2, max_delay=5.0)
    >>> outcome = with_retry(fetch_quote, policy)
    >>> for attempt in range(1, 5):
    ...     print(f"Attempt {attempt}: wait {policy.backoff(attempt):.2f}s")
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import random
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, TypeVar

from safeop.core.adapters import normalize_kinds
from safeop.core.classify import classify
from safeop.core.errors import ErrorKind, StructuredError
from safeop.core.logging import get_logger
from safeop.core.result import Err, Ok, Outcome, is_outcome
from safeop.core.settings import SafeopSettings, get_settings

logger = get_logger(__name__)

T = TypeVar("T")

# Granularity at which an async wait re-checks its cancellation token.
_CANCEL_POLL_INTERVAL = 0.05


def _seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class RetryState(str, Enum):
    """States of a retry run."""

    PENDING = "PENDING"
    ATTEMPTING = "ATTEMPTING"
    WAITING = "WAITING"
    SUCCEEDED = "SUCCEEDED"
    FAILED_TERMINAL = "FAILED_TERMINAL"


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration.

    Safe to share between concurrent runs. Durations are seconds and also
    accept ``timedelta``.

    Attributes:
        max_attempts: Total attempts, first one included (>= 1)
        base_delay: Wait after the first failed attempt
        max_delay: Cap on any single wait (>= base_delay)
        multiplier: Exponential growth factor (> 1.0)
        retryable_kinds: Kinds that may be retried at all
        jitter: Extra random delay as a fraction of the backoff (0.1 = up to +10%)
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 30.0
    multiplier: float = 2.0
    retryable_kinds: frozenset[ErrorKind] = frozenset(
        {ErrorKind.TIMEOUT, ErrorKind.RESOURCE_UNAVAILABLE}
    )
    jitter: float = 0.1

    def __post_init__(self) -> None:
        base_delay = _seconds(self.base_delay)
        max_delay = _seconds(self.max_delay)
        object.__setattr__(self, "base_delay", base_delay)
        object.__setattr__(self, "max_delay", max_delay)
        kinds = self.retryable_kinds
        if isinstance(kinds, (str, ErrorKind)):
            kinds = (kinds,)
        object.__setattr__(self, "retryable_kinds", frozenset(ErrorKind(k) for k in kinds))

        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise TypeError(f"max_attempts must be an int, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {base_delay}")
        if max_delay < base_delay:
            raise ValueError(f"max_delay ({max_delay}) must be >= base_delay ({base_delay})")
        if not self.multiplier > 1.0:
            raise ValueError(f"multiplier must be > 1.0, got {self.multiplier}")
        if not 0.0 <= self.jitter < 1.0:
            raise ValueError(f"jitter must be in [0, 1), got {self.jitter}")

    @classmethod
    def from_settings(cls, settings: SafeopSettings | None = None, **overrides: Any) -> RetryPolicy:
        """Build a policy from ``SAFEOP_RETRY_*`` settings."""
        settings = settings or get_settings()
        values: dict[str, Any] = {
            "max_attempts": settings.retry_max_attempts,
            "base_delay": settings.retry_base_delay,
            "max_delay": settings.retry_max_delay,
            "multiplier": settings.retry_multiplier,
            "retryable_kinds": frozenset(settings.retry_kinds),
            "jitter": settings.retry_jitter,
        }
        values.update(overrides)
        return cls(**values)

    def backoff(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based), without jitter."""
        try:
            delay = self.base_delay * (self.multiplier ** (attempt - 1))
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    def next_delay(self, attempt: int) -> float:
        """Backoff plus jitter, capped; never shorter than :meth:`backoff`."""
        delay = self.backoff(attempt)
        if self.jitter:
            delay += random.uniform(0.0, delay * self.jitter)
        return min(delay, self.max_delay)

    def should_retry(self, attempt: int, error: StructuredError) -> bool:
        """True if another attempt is allowed after ``attempt`` failed with ``error``."""
        return (
            attempt < self.max_attempts
            and error.kind in self.retryable_kinds
            and bool(error.retryable)
        )


class CancellationToken:
    """Cancellation signal for retry runs.

    One token may be shared by many runs; cancelling it ends every run that
    is currently waiting (or next reaches a wait).
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


@dataclass
class RetryRun:
    """State of one retry run.

    Created per call and never shared. ``with_retry`` drives it; callers who
    need the attempt history can drive it themselves.

    Example:
        >>> run = RetryRun(RetryPolicy(max_attempts=3))
        >>> outcome = run.run(call_api)
        >>> run.state, run.attempts, run.waited
    """

    policy: RetryPolicy
    expected: Iterable[ErrorKind] | None = None
    cancel: CancellationToken | None = None
    on_retry: Callable[[int, StructuredError, float], None] | None = None
    state: RetryState = field(default=RetryState.PENDING, init=False)
    attempts: int = field(default=0, init=False)
    errors: list[StructuredError] = field(default_factory=list, init=False)
    waited: float = field(default=0.0, init=False)
    started_at: float = field(default_factory=time.monotonic, init=False)
    _last: StructuredError | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.expected is not None:
            self.expected = normalize_kinds(self.expected)

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since the run was created."""
        return time.monotonic() - self.started_at

    @property
    def last_error(self) -> StructuredError | None:
        """Last attempt's error with the full chain of earlier attempts."""
        return self._last

    # -- transitions --------------------------------------------------------

    def _begin_attempt(self) -> None:
        self.state = RetryState.ATTEMPTING
        self.attempts += 1

    def _capture(self, exc: Exception) -> Outcome[Any] | None:
        error = classify(exc)
        if self.expected is not None and error.kind not in self.expected:
            self.state = RetryState.FAILED_TERMINAL
            logger.debug("retry.unexpected_failure", attempt=self.attempts, error_kind=error.kind.value)
            return None
        return Err(error)

    @staticmethod
    def _settle(produced: Any) -> Outcome[Any]:
        if is_outcome(produced):
            return produced
        return Ok(produced)

    def _succeed(self, outcome: Outcome[T]) -> Outcome[T]:
        self.state = RetryState.SUCCEEDED
        logger.debug("retry.succeeded", attempts=self.attempts, waited=round(self.waited, 4))
        return outcome

    def _fail(self, error: StructuredError) -> float | None:
        """Record a failed attempt; return the wait before the next one, or None."""
        attempt_error = error.with_context(attempt=self.attempts)
        self.errors.append(attempt_error)
        link = attempt_error
        if error.cause is not None:
            link = link.with_context(caused_by=" <- ".join(str(e) for e in error.cause.chain()))
        # One link per attempt: the terminal chain depth equals the attempt count.
        self._last = link.with_cause(self._last)

        logger.info(
            "retry.attempt_failed",
            attempt=self.attempts,
            max_attempts=self.policy.max_attempts,
            error_kind=error.kind.value,
            retryable=error.retryable,
        )

        if not self.policy.should_retry(self.attempts, error):
            self.state = RetryState.FAILED_TERMINAL
            logger.warning(
                "retry.exhausted",
                attempts=self.attempts,
                error_kind=error.kind.value,
                error_message=error.message,
            )
            return None

        delay = self.policy.next_delay(self.attempts)
        self.state = RetryState.WAITING
        if self.on_retry:
            self.on_retry(self.attempts, attempt_error, delay)
        logger.info("retry.waiting", attempt=self.attempts, delay=round(delay, 4))
        return delay

    def _cancelled(self) -> Outcome[Any]:
        self.state = RetryState.FAILED_TERMINAL
        logger.warning("retry.cancelled", attempts=self.attempts)
        error = StructuredError(
            ErrorKind.CANCELLED,
            f"retry cancelled while waiting after {self.attempts} attempt(s)",
            {"attempts": self.attempts},
            cause=self._last,
            retryable=False,
        )
        return Err(error)

    # -- waiting ------------------------------------------------------------

    def _wait(self, delay: float, sleep: Callable[[float], None] | None) -> bool:
        """Block for ``delay``; False if cancelled before or during the wait."""
        if self.cancel is not None:
            if self.cancel.cancelled or self.cancel.wait(delay):
                return False
        else:
            (sleep or time.sleep)(delay)
        self.waited += delay
        return True

    async def _wait_async(self, delay: float) -> bool:
        if self.cancel is None:
            await asyncio.sleep(delay)
            self.waited += delay
            return True
        deadline = time.monotonic() + delay
        while not self.cancel.cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.waited += delay
                return True
            await asyncio.sleep(min(remaining, _CANCEL_POLL_INTERVAL))
        return False

    # -- drivers ------------------------------------------------------------

    def run(
        self,
        operation: Callable[[], T | Outcome[T]],
        *,
        sleep: Callable[[float], None] | None = None,
    ) -> Outcome[T]:
        """Drive the run to a terminal state.

        ``sleep`` replaces ``time.sleep`` for the waits; it is unused when a
        cancellation token is attached, since the token's wait does the blocking.

        Raises:
            The original exception if ``expected`` is set and the failure's
            kind is outside it.
        """
        while True:
            self._begin_attempt()
            try:
                produced = operation()
            except Exception as exc:
                outcome = self._capture(exc)
                if outcome is None:
                    raise
            else:
                outcome = self._settle(produced)

            if outcome.is_ok():
                return self._succeed(outcome)

            delay = self._fail(outcome.error)
            if delay is None:
                return Err(self._last)
            if not self._wait(delay, sleep):
                return self._cancelled()

    async def run_async(self, operation: Callable[[], Awaitable[T | Outcome[T]]]) -> Outcome[T]:
        """Async counterpart of :meth:`run`, waiting with ``asyncio.sleep``."""
        while True:
            self._begin_attempt()
            try:
                produced = await operation()
            except Exception as exc:
                outcome = self._capture(exc)
                if outcome is None:
                    raise
            else:
                outcome = self._settle(produced)

            if outcome.is_ok():
                return self._succeed(outcome)

            delay = self._fail(outcome.error)
            if delay is None:
                return Err(self._last)
            if not await self._wait_async(delay):
                return self._cancelled()


def with_retry(
    operation: Callable[[], T | Outcome[T]],
    policy: RetryPolicy | None = None,
    *,
    expected: Iterable[ErrorKind] | None = None,
    cancel: CancellationToken | None = None,
    on_retry: Callable[[int, StructuredError, float], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> Outcome[T]:
    """Run ``operation`` under ``policy`` and return its Outcome.

    ``operation`` may return a plain value, return an Outcome (an ``Err``
    counts as a failed attempt), or raise. Raised failures are classified;
    with ``expected`` set, kinds outside it are re-raised unchanged, without
    ``expected`` every ``Exception`` is recovered into the run.

    Args:
        operation: Zero-argument callable
        policy: Retry configuration (default: from settings)
        expected: Kinds recovered from raised failures
        cancel: Token observed while waiting between attempts
        on_retry: Callback before each wait (attempt, error, delay)
        sleep: Replacement for ``time.sleep``
    """
    run = RetryRun(
        policy=policy or RetryPolicy.from_settings(),
        expected=expected,
        cancel=cancel,
        on_retry=on_retry,
    )
    return run.run(operation, sleep=sleep)


async def with_retry_async(
    operation: Callable[[], Awaitable[T | Outcome[T]]],
    policy: RetryPolicy | None = None,
    *,
    expected: Iterable[ErrorKind] | None = None,
    cancel: CancellationToken | None = None,
    on_retry: Callable[[int, StructuredError, float], None] | None = None,
) -> Outcome[T]:
    """Async counterpart of :func:`with_retry`."""
    run = RetryRun(
        policy=policy or RetryPolicy.from_settings(),
        expected=expected,
        cancel=cancel,
        on_retry=on_retry,
    )
    return await run.run_async(operation)


def retry(
    policy: RetryPolicy | None = None,
    *,
    expected: Iterable[ErrorKind] | None = None,
    on_retry: Callable[[int, StructuredError, float], None] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator factory: the wrapped function returns an Outcome.

    Works for plain and ``async def`` functions.

    Example:
        >>> @retry(RetryPolicy(max_attempts=3))
        ... def flaky_operation():
        ...     return call_api()
        >>> flaky_operation().unwrap_or(None)
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Outcome[Any]:
                return await with_retry_async(
                    lambda: func(*args, **kwargs), policy, expected=expected, on_retry=on_retry
                )
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Outcome[Any]:
            return with_retry(
                lambda: func(*args, **kwargs), policy, expected=expected, on_retry=on_retry
            )
        return sync_wrapper

    return decorator


__all__ = [
    "RetryState",
    "RetryPolicy",
    "CancellationToken",
    "RetryRun",
    "with_retry",
    "with_retry_async",
    "retry",
]
