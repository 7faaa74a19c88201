"""Cooperative deadlines for fallible operations.

A deadline gives a block of work a time budget. Overrunning it raises
:class:`TimeoutExpired`, a ``TimeoutError`` that ``classify`` files under
``TIMEOUT`` (retryable by default) with ``timeout``, ``elapsed`` and
``operation`` context.

Sync blocks are checked at ``check_deadline()`` calls and on exit; nothing
is interrupted mid-statement. Async blocks are enforced by ``asyncio.timeout``.

Active deadlines live in a ``ContextVar``: each thread and each asyncio task
sees only the deadlines it entered itself. A nested deadline never outlives
its enclosing one.

Architecture:
    ::

        with_deadline(30.0, "batch")          _active: (batch,)
          └─ with_deadline(60.0, "row")       _active: (batch, row)
               budget = min(60.0, batch.remaining())
               check_deadline() ──expired──> TimeoutExpired(row)

Examples:
    >>> with with_deadline(5.0, operation="load_batch"):
    ...     for row in rows:
    ...         check_deadline()
    ...         process(row)

    Retrying a step that may overrun:

    >>> def attempt():
    ...     with with_deadline(2.0, operation="fetch"):
    ...         return fetch()
    >>> outcome = with_retry(attempt, RetryPolicy(retryable_kinds={ErrorKind.TIMEOUT}))

Tags:
    timeout, deadline, contextvars, execution, safeop
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field


class TimeoutExpired(TimeoutError):
    """A deadline ran out.

    Attributes:
        timeout: Budget of the deadline, seconds
        elapsed: Time spent when the overrun was detected
        operation: Name of the guarded operation
    """

    def __init__(self, timeout: float, elapsed: float | None = None, operation: str = "operation"):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation
        detail = f"{operation} exceeded its {timeout:g}s deadline"
        if elapsed is not None:
            detail = f"{detail} after {elapsed:.3f}s"
        super().__init__(detail)


@dataclass(frozen=True)
class DeadlineContext:
    """One active deadline: a budget measured from ``started``."""

    budget: float
    operation: str = "operation"
    started: float = field(default_factory=time.monotonic)

    @property
    def expires_at(self) -> float:
        return self.started + self.budget

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def remaining(self) -> float:
        """Seconds left; negative once the deadline has passed."""
        return self.expires_at - time.monotonic()

    def is_expired(self) -> bool:
        return self.remaining() <= 0

    def expired(self) -> TimeoutExpired:
        return TimeoutExpired(self.budget, elapsed=self.elapsed, operation=self.operation)

    def check(self) -> None:
        """Raise TimeoutExpired if the budget is spent."""
        if self.is_expired():
            raise self.expired()


_active: ContextVar[tuple[DeadlineContext, ...]] = ContextVar("safeop_deadlines", default=())


def current_deadline() -> DeadlineContext | None:
    """Innermost deadline entered by the current thread or task."""
    active = _active.get()
    return active[-1] if active else None


def get_remaining_deadline() -> float | None:
    """Seconds left on the innermost deadline, or None outside any."""
    deadline = current_deadline()
    return None if deadline is None else deadline.remaining()


def check_deadline() -> None:
    """Raise TimeoutExpired if the innermost deadline has passed; no-op outside one."""
    deadline = current_deadline()
    if deadline is not None:
        deadline.check()


def _start(seconds: float, operation: str | None) -> DeadlineContext:
    if seconds < 0:
        raise ValueError(f"deadline must be non-negative, got {seconds}")
    budget = float(seconds)
    enclosing = current_deadline()
    if enclosing is not None:
        budget = max(0.0, min(budget, enclosing.remaining()))
    return DeadlineContext(budget, operation or "operation")


@contextmanager
def with_deadline(seconds: float, operation: str | None = None):
    """Deadline block for synchronous code.

    Yields:
        The active DeadlineContext

    Raises:
        TimeoutExpired: On exit, if the block overran
        ValueError: If seconds < 0
    """
    deadline = _start(seconds, operation)
    token = _active.set(_active.get() + (deadline,))
    try:
        yield deadline
    finally:
        _active.reset(token)
    deadline.check()


@asynccontextmanager
async def with_deadline_async(seconds: float, operation: str | None = None):
    """Deadline block for coroutines, enforced with ``asyncio.timeout``.

    The cancellation raised by ``asyncio.timeout`` surfaces as TimeoutExpired,
    so sync and async overruns classify the same way.
    """
    deadline = _start(seconds, operation)
    token = _active.set(_active.get() + (deadline,))
    try:
        async with asyncio.timeout(deadline.budget):
            yield deadline
    except TimeoutError as exc:
        if isinstance(exc, TimeoutExpired):
            raise
        raise deadline.expired() from None
    finally:
        _active.reset(token)


__all__ = [
    "TimeoutExpired",
    "DeadlineContext",
    "current_deadline",
    "with_deadline",
    "with_deadline_async",
    "check_deadline",
    "get_remaining_deadline",
]
