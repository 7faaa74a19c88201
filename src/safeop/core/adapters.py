"""
Safe-access adapters.

Each adapter runs an operation once and turns the failures its caller
*expects* into ``Err`` values. Failures outside the expected set are
re-raised unchanged: catching everything is the bare-except anti-pattern,
and a malformed call must surface, not disappear into a default.

Architecture:
    ::

        operation()  ──ok──────────────────────────────> Ok(value)
             │
           raises
             │
             ▼
        classify(exc) ── kind ∈ expected ─────────────> Err(StructuredError)
             │
             └────────── kind ∉ expected ─────────────> raise exc (original)

    Per operation class, the expected set is a public constant:

        EXPECT_INDEX       {OUT_OF_RANGE}            safe_index
        EXPECT_KEY         {NOT_FOUND}               safe_key
        EXPECT_LOOKUP      {NOT_FOUND, OUT_OF_RANGE} safe_get
        EXPECT_PARSE       {INVALID_FORMAT}          safe_int, safe_float
        EXPECT_ARITHMETIC  {ARITHMETIC_DOMAIN}       safe_divide, safe_modulo
        EXPECT_FILE        {NOT_FOUND, PERMISSION_DENIED,
                            RESOURCE_UNAVAILABLE}    safe_open

Examples:
    >>> safe_index([1, 2, 3], 10).error.context["length"]
    '3'
    >>> with_default(lambda: int("abc"), EXPECT_PARSE, 0)
    0
    >>> safe_get({"a": 1}, "b", default=-1)
    -1
    >>> safe_divide(1, 0).error.kind
    <ErrorKind.ARITHMETIC_DOMAIN: 'ARITHMETIC_DOMAIN'>

Guardrails:
    ❌ DON'T: Pass every ErrorKind as "expected" to silence failures
    ✅ DO: Enumerate only the failures the call site knows how to handle

Tags:
    safe-access, fallback, error-handling, safeop
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from os import PathLike
from typing import IO, Any, TypeVar

from safeop.core.classify import classify
from safeop.core.errors import ErrorKind
from safeop.core.logging import get_logger
from safeop.core.result import Err, Ok, Outcome

logger = get_logger(__name__)

T = TypeVar("T")

ExpectedKinds = Iterable[ErrorKind | str]

EXPECT_INDEX = frozenset({ErrorKind.OUT_OF_RANGE})
EXPECT_KEY = frozenset({ErrorKind.NOT_FOUND})
EXPECT_LOOKUP = frozenset({ErrorKind.NOT_FOUND, ErrorKind.OUT_OF_RANGE})
EXPECT_PARSE = frozenset({ErrorKind.INVALID_FORMAT})
EXPECT_ARITHMETIC = frozenset({ErrorKind.ARITHMETIC_DOMAIN})
EXPECT_FILE = frozenset({
    ErrorKind.NOT_FOUND,
    ErrorKind.PERMISSION_DENIED,
    ErrorKind.RESOURCE_UNAVAILABLE,
})


def normalize_kinds(expected: ExpectedKinds) -> frozenset[ErrorKind]:
    """
    Validate an expected-kind collection.

    Raises:
        TypeError: If ``expected`` is a bare string/kind or not iterable
        ValueError: If it is empty or names an unknown kind
    """
    if isinstance(expected, (str, ErrorKind)):
        raise TypeError(
            "expected kinds must be a collection, e.g. {ErrorKind.NOT_FOUND}, "
            f"not a single {type(expected).__name__}"
        )
    try:
        kinds = frozenset(ErrorKind(kind) for kind in expected)
    except TypeError as exc:
        raise TypeError(f"expected kinds must be iterable, got {expected!r}") from exc
    if not kinds:
        raise ValueError("expected kinds must not be empty")
    return kinds


def _recover(
    exc: Exception,
    kinds: frozenset[ErrorKind],
    context: Mapping[str, Any] | None,
    retryable: bool | None,
) -> Outcome[Any] | None:
    error = classify(exc, context=context, retryable=retryable)
    if error.kind not in kinds:
        return None
    logger.debug(
        "safe_call.recovered",
        error_kind=error.kind.value,
        exception_type=type(exc).__name__,
    )
    return Err(error)


def safe_call(
    operation: Callable[[], T],
    expected: ExpectedKinds,
    *,
    context: Mapping[str, Any] | None = None,
    retryable: bool | None = None,
) -> Outcome[T]:
    """
    Run ``operation`` once and recover expected failures into ``Err``.

    Args:
        operation: Zero-argument callable
        expected: Kinds recovered into Err; anything else is re-raised
        context: Extra context fields for the classified error
        retryable: Overrides the kind's retryable default

    Returns:
        Ok with the return value, or Err for an expected failure.

    Raises:
        The original exception when its kind is not expected.
    """
    kinds = normalize_kinds(expected)
    try:
        value = operation()
    except Exception as exc:
        recovered = _recover(exc, kinds, context, retryable)
        if recovered is None:
            raise
        return recovered
    return Ok(value)


async def safe_call_async(
    operation: Callable[[], Awaitable[T]],
    expected: ExpectedKinds,
    *,
    context: Mapping[str, Any] | None = None,
    retryable: bool | None = None,
) -> Outcome[T]:
    """Async counterpart of :func:`safe_call` (``operation`` returns an awaitable)."""
    kinds = normalize_kinds(expected)
    try:
        value = await operation()
    except Exception as exc:
        recovered = _recover(exc, kinds, context, retryable)
        if recovered is None:
            raise
        return recovered
    return Ok(value)


def with_default(operation: Callable[[], T], expected: ExpectedKinds, default: T) -> T:
    """Run ``operation``; return ``default`` for an expected failure."""
    return safe_call(operation, expected).unwrap_or(default)


def safe(
    *expected: ErrorKind | str,
    context: Mapping[str, Any] | None = None,
) -> Callable[[Callable[..., T]], Callable[..., Outcome[T]]]:
    """
    Decorator turning a raising function into an Outcome-returning one.

    Example:
        >>> @safe(ErrorKind.NOT_FOUND)
        ... def load(name):
        ...     return REGISTRY[name]
        >>> load("missing").is_err()
        True
    """
    kinds = normalize_kinds(expected)

    def decorator(func: Callable[..., T]) -> Callable[..., Outcome[T]]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Outcome[T]:
            return safe_call(lambda: func(*args, **kwargs), kinds, context=context)

        return wrapper

    return decorator


# =============================================================================
# PER-OPERATION-CLASS ADAPTERS
# =============================================================================


def safe_index(sequence: Sequence[T], index: int) -> Outcome[T]:
    """Indexed access; an out-of-range index becomes ``Err(OUT_OF_RANGE)``."""
    return safe_call(
        lambda: sequence[index],
        EXPECT_INDEX,
        context={"index": index, "length": len(sequence)},
    )


def safe_key(mapping: Mapping[Any, T], key: Any) -> Outcome[T]:
    """Keyed access; a missing key becomes ``Err(NOT_FOUND)``."""
    return safe_call(lambda: mapping[key], EXPECT_KEY, context={"key": key})


def safe_get(container: Mapping[Any, T] | Sequence[T], key: Any, default: T | None = None) -> T | None:
    """``container[key]`` or ``default``, for mappings and sequences alike."""
    return with_default(lambda: container[key], EXPECT_LOOKUP, default)


def safe_int(text: Any, base: int = 10) -> Outcome[int]:
    """Parse an integer; unparseable text becomes ``Err(INVALID_FORMAT)``.

    Non-string, non-numeric input (``None``, lists) is a type mismatch and
    is re-raised.
    """
    def parse() -> int:
        if isinstance(text, (str, bytes, bytearray)):
            return int(text, base)
        return int(text)

    return safe_call(parse, EXPECT_PARSE, context={"value": text, "target": "int"})


def safe_float(text: Any) -> Outcome[float]:
    """Parse a float; unparseable text becomes ``Err(INVALID_FORMAT)``."""
    return safe_call(lambda: float(text), EXPECT_PARSE, context={"value": text, "target": "float"})


def safe_divide(dividend: Any, divisor: Any) -> Outcome[Any]:
    """``dividend / divisor``; a zero divisor becomes ``Err(ARITHMETIC_DOMAIN)``."""
    return safe_call(
        lambda: dividend / divisor,
        EXPECT_ARITHMETIC,
        context={"dividend": dividend, "divisor": divisor, "operation": "divide"},
    )


def safe_modulo(dividend: Any, divisor: Any) -> Outcome[Any]:
    """``dividend % divisor``; a zero divisor becomes ``Err(ARITHMETIC_DOMAIN)``."""
    return safe_call(
        lambda: dividend % divisor,
        EXPECT_ARITHMETIC,
        context={"dividend": dividend, "divisor": divisor, "operation": "modulo"},
    )


def safe_open(path: str | PathLike[str], mode: str = "r", **open_kwargs: Any) -> Outcome[IO[Any]]:
    """
    Open a file; missing, forbidden or unavailable files become ``Err``.

    The caller owns the returned handle. Pair with
    :func:`safeop.execution.scope.with_scope` to guarantee it is closed.
    """
    return safe_call(
        lambda: open(path, mode, **open_kwargs),
        EXPECT_FILE,
        context={"path": path, "mode": mode},
    )


__all__ = [
    "EXPECT_INDEX",
    "EXPECT_KEY",
    "EXPECT_LOOKUP",
    "EXPECT_PARSE",
    "EXPECT_ARITHMETIC",
    "EXPECT_FILE",
    "normalize_kinds",
    "safe_call",
    "safe_call_async",
    "with_default",
    "safe",
    "safe_index",
    "safe_key",
    "safe_get",
    "safe_int",
    "safe_float",
    "safe_divide",
    "safe_modulo",
    "safe_open",
]
