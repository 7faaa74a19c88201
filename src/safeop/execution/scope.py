"""Deterministic acquire / use / release.

Generalises "always close in finally" and ``with`` blocks: the release step
runs exactly once per successful acquisition, whether the body succeeded,
returned an ``Err``, raised, or was interrupted by a ``BaseException``.

Architecture:
    ::

        acquire() ──fails──> Err(phase=acquire)            release never runs
            │
            ▼
        ScopeGuard(resource, release)
            │
        use_body(resource) ──> Ok / Err / raises (classified, phase=use)
            │
        guard.release()  ── exactly once ──┐
            │                              │ release raised?
            ▼                              ▼
        body outcome                 body Err  -> stays primary,
                                                release failure in context
                                     body Ok   -> Err(phase=release)

Examples:
    >>> outcome = with_scope(
    ...     lambda: open("report.csv"),
    ...     lambda fh: fh.read(),
    ...     lambda fh: fh.close(),
    ... )

    Guard as a context manager:

    >>> with ScopeGuard(connect(), lambda conn: conn.close()) as conn:
    ...     conn.execute("SELECT 1")

Guardrails:
    ❌ DON'T: Keep using a resource after its guard released it
    ✅ DO: Let the guard own the resource for the whole block

    ❌ DON'T: Let a failing close() hide the error that caused it
    ✅ DO: Read ``release_error`` from the primary error's context

Tags:
    resource-management, cleanup, finally, scope-guard, safeop
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from typing import Any, Generic, TypeVar

from safeop.core.adapters import normalize_kinds
from safeop.core.classify import classify
from safeop.core.errors import ErrorKind, StructuredError
from safeop.core.logging import get_logger
from safeop.core.result import Err, Ok, Outcome, is_outcome

logger = get_logger(__name__)

R = TypeVar("R")
T = TypeVar("T")


class GuardReleasedError(RuntimeError):
    """Raised when a released guard's resource is accessed."""


class ScopeGuard(Generic[R]):
    """Owns ``resource`` until ``release`` has run, exactly once.

    ``release()`` is idempotent: the first call runs the release callable
    and returns its classified failure (or ``None``); later calls do
    nothing and return ``None``. After release the guard is terminal.
    """

    def __init__(self, resource: R, release: Callable[[R], Any]):
        self._resource = resource
        self._release = release
        self._released = False
        self._release_error: StructuredError | None = None

    @property
    def resource(self) -> R:
        if self._released:
            raise GuardReleasedError("resource accessed after its guard was released")
        return self._resource

    @property
    def released(self) -> bool:
        return self._released

    @property
    def release_error(self) -> StructuredError | None:
        """Classified failure of the release callable, if it raised."""
        return self._release_error

    def _take(self) -> tuple[bool, Any]:
        if self._released:
            return False, None
        self._released = True
        resource, self._resource = self._resource, None
        return True, resource

    def _record(self, exc: Exception) -> StructuredError:
        error = classify(exc, context={"phase": "release"})
        self._release_error = error
        logger.warning(
            "scope.release_failed",
            error_kind=error.kind.value,
            error_message=error.message,
        )
        return error

    def release(self) -> StructuredError | None:
        """Run the release callable once; return its failure, if any."""
        pending, resource = self._take()
        if not pending:
            return None
        try:
            self._release(resource)
        except Exception as exc:
            return self._record(exc)
        return None

    async def release_async(self) -> StructuredError | None:
        """Like :meth:`release`, awaiting the callable's result if it is awaitable."""
        pending, resource = self._take()
        if not pending:
            return None
        try:
            result = self._release(resource)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            return self._record(exc)
        return None

    def __enter__(self) -> R:
        return self.resource

    def __exit__(self, exc_type, exc, tb) -> bool:
        error = self.release()
        if error is None:
            return False
        if exc is None:
            raise error.origin
        # Keep the body's exception primary.
        exc.add_note(f"release failed during cleanup: {error}")
        return False

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"ScopeGuard({state})"


def _acquire_failed(exc: Exception, kinds: frozenset[ErrorKind] | None) -> Outcome[Any] | None:
    error = classify(exc, context={"phase": "acquire"})
    if kinds is not None and error.kind not in kinds:
        return None
    logger.info("scope.acquire_failed", error_kind=error.kind.value, error_message=error.message)
    return Err(error)


def _use_failed(exc: Exception) -> Err[Any]:
    error = classify(exc, context={"phase": "use"})
    logger.info("scope.use_failed", error_kind=error.kind.value, error_message=error.message)
    return Err(error)


def _combine(
    outcome: Outcome[T],
    raised: Exception | None,
    release_error: StructuredError | None,
    kinds: frozenset[ErrorKind] | None,
) -> Outcome[T]:
    if outcome.is_err():
        error = outcome.error
        if release_error is not None:
            error = error.with_context(
                release_error=release_error.message,
                release_error_kind=release_error.kind.value,
            )
            if raised is not None:
                raised.add_note(f"release failed during cleanup: {release_error}")
        if raised is not None and kinds is not None and error.kind not in kinds:
            raise raised
        return Err(error)

    if release_error is not None:
        if kinds is not None and release_error.kind not in kinds:
            raise release_error.origin
        return Err(release_error)
    return outcome


def with_scope(
    acquire: Callable[[], R],
    use_body: Callable[[R], T | Outcome[T]],
    release: Callable[[R], Any],
    *,
    expected: Iterable[ErrorKind] | None = None,
) -> Outcome[T]:
    """Acquire a resource, use it, and release it exactly once.

    Args:
        acquire: Zero-argument callable producing the resource
        use_body: Called once with the resource; returns a value or an Outcome
        release: Called once with the resource after ``use_body``
        expected: If given, raised failures of other kinds are re-raised
            (after release); without it every ``Exception`` becomes ``Err``

    Returns:
        The body's Outcome; ``Err`` with ``phase`` context for acquire,
        use or release failures.
    """
    kinds = normalize_kinds(expected) if expected is not None else None

    try:
        resource = acquire()
    except Exception as exc:
        failed = _acquire_failed(exc, kinds)
        if failed is None:
            raise
        return failed

    guard = ScopeGuard(resource, release)
    raised: Exception | None = None
    try:
        try:
            produced = use_body(resource)
        except Exception as exc:
            raised = exc
            outcome = _use_failed(exc)
        else:
            outcome = produced if is_outcome(produced) else Ok(produced)
    finally:
        release_error = guard.release()

    return _combine(outcome, raised, release_error, kinds)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def with_scope_async(
    acquire: Callable[[], Any],
    use_body: Callable[[Any], Any],
    release: Callable[[Any], Any],
    *,
    expected: Iterable[ErrorKind] | None = None,
) -> Outcome[Any]:
    """Async counterpart of :func:`with_scope`; each callable may be sync or async."""
    kinds = normalize_kinds(expected) if expected is not None else None

    try:
        resource = await _resolve(acquire())
    except Exception as exc:
        failed = _acquire_failed(exc, kinds)
        if failed is None:
            raise
        return failed

    guard = ScopeGuard(resource, release)
    raised: Exception | None = None
    try:
        try:
            produced = await _resolve(use_body(resource))
        except Exception as exc:
            raised = exc
            outcome = _use_failed(exc)
        else:
            outcome = produced if is_outcome(produced) else Ok(produced)
    finally:
        release_error = await guard.release_async()

    return _combine(outcome, raised, release_error, kinds)


__all__ = [
    "GuardReleasedError",
    "ScopeGuard",
    "with_scope",
    "with_scope_async",
]
