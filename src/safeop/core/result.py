"""
Outcome envelope for explicit success/failure handling.

Provides a typed Outcome[T] pattern: operations on expected failure paths
return ``Ok[T]`` for success or ``Err[T]`` carrying a
:class:`~safeop.core.errors.StructuredError` instead of raising. Chaining with
``map``/``and_then`` replaces nested try/except blocks.

Manifesto:
    - **Explicit over implicit:** No hidden exceptions on expected paths
    - **Functional composition:** Chain steps with map/and_then
    - **Loud misuse:** Reading the value of an Err raises UnwrapError, never
      hands back ``None``
    - **Batch-friendly:** collect_outcomes() and partition_outcomes()

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     Outcome[T]                              │
        │                    (Type Alias)                             │
        ├─────────────────┬─────────────────┬─────────────────────────┤
        │     Ok[T]       │     Err[T]      │     Utilities           │
        │   (Success)     │   (Failure)     │                         │
        ├─────────────────┼─────────────────┼─────────────────────────┤
        │ • value: T      │ • error: SE     │ • collect_outcomes()    │
        │ • map()         │ • map_err()     │ • partition_outcomes()  │
        │ • and_then()    │ • or_else()     │ • from_optional()       │
        │ • unwrap()      │ • unwrap_or()   │                         │
        └─────────────────┴─────────────────┴─────────────────────────┘

Examples:
    >>> from safeop.core.result import Ok, Err
    >>> Ok(10).map(lambda x: x * 2).unwrap()
    20
    >>> err = Err(StructuredError(ErrorKind.NOT_FOUND, "no such user"))
    >>> err.map(lambda x: x * 2).unwrap_or(0)
    0
    >>> match Ok(5):
    ...     case Ok(value):
    ...         print(value)
    ...     case Err(error):
    ...         print(error.kind)
    5

Guardrails:
    ❌ DON'T: Read ``.value`` without checking is_ok() first
    ✅ DO: Use unwrap_or() or pattern matching for safe extraction

    ❌ DON'T: Raise inside and_then() callbacks for expected failures
    ✅ DO: Return an Err from the callback

Tags:
    result-pattern, error-handling, functional-programming, monadic, safeop

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from safeop.core.errors import ErrorKind, StructuredError, UnwrapError


T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful outcome containing a value.

    Immutable. ``map`` builds a new Ok; ``and_then`` hands the value to the
    next fallible step. Asking an Ok for its ``error`` is a programming error
    and raises :class:`UnwrapError`.
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    @property
    def error(self) -> StructuredError:
        raise UnwrapError(f"Ok has no error (value={self.value!r})")

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_err(self) -> StructuredError:
        """Raise UnwrapError: an Ok has no error."""
        raise UnwrapError(f"Called unwrap_err() on Ok({self.value!r})")

    def unwrap_or(self, default: T) -> T:
        """Get value or default (always returns value for Ok)."""
        return self.value

    def unwrap_or_else(self, f: Callable[[StructuredError], T]) -> T:
        """Get value or call f with error (always returns value for Ok)."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Outcome[U]:
        """Transform the value."""
        return Ok(f(self.value))

    def map_err(self, f: Callable[[StructuredError], StructuredError]) -> Outcome[T]:
        """Transform error if Err (no-op for Ok)."""
        return self

    def and_then(self, f: Callable[[T], Outcome[U]]) -> Outcome[U]:
        """Chain to another Outcome-returning step."""
        return f(self.value)

    flat_map = and_then

    def or_else(self, f: Callable[[StructuredError], Outcome[T]]) -> Outcome[T]:
        """Return self (recovery only applies to Err)."""
        return self

    def inspect(self, f: Callable[[T], None]) -> Outcome[T]:
        """Call f with value for side effects, return self."""
        f(self.value)
        return self

    def inspect_err(self, f: Callable[[StructuredError], None]) -> Outcome[T]:
        """No-op for Ok."""
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed outcome carrying a StructuredError.

    Transformations short-circuit: ``map`` and ``and_then`` return the same
    error unchanged. ``unwrap_or``/``or_else`` are the recovery points.
    Reading ``value`` or calling ``unwrap()`` raises :class:`UnwrapError`
    so that an ignored failure surfaces at the line that ignored it.
    """

    error: StructuredError

    def __post_init__(self) -> None:
        if not isinstance(self.error, StructuredError):
            raise TypeError(
                f"Err requires a StructuredError, got {type(self.error).__name__}; "
                "use classify() to convert exceptions"
            )

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    @property
    def value(self) -> T:
        raise UnwrapError(f"Err has no value ({self.error})", self.error)

    def unwrap(self) -> T:
        """Raise UnwrapError. Use only when you're sure it's Ok."""
        raise UnwrapError(f"Called unwrap() on Err ({self.error})", self.error)

    def unwrap_err(self) -> StructuredError:
        return self.error

    def unwrap_or(self, default: T) -> T:
        """Get default since this is Err."""
        return default

    def unwrap_or_else(self, f: Callable[[StructuredError], T]) -> T:
        """Call f with error to get value."""
        return f(self.error)

    def map(self, f: Callable[[T], U]) -> Outcome[U]:
        """No-op for Err."""
        return Err(self.error)

    def map_err(self, f: Callable[[StructuredError], StructuredError]) -> Outcome[T]:
        """Transform the error."""
        return Err(f(self.error))

    def and_then(self, f: Callable[[T], Outcome[U]]) -> Outcome[U]:
        """No-op for Err."""
        return Err(self.error)

    flat_map = and_then

    def or_else(self, f: Callable[[StructuredError], Outcome[T]]) -> Outcome[T]:
        """Call f with error to try recovery."""
        return f(self.error)

    def inspect(self, f: Callable[[T], None]) -> Outcome[T]:
        """No-op for Err."""
        return self

    def inspect_err(self, f: Callable[[StructuredError], None]) -> Outcome[T]:
        """Call f with error for side effects, return self."""
        f(self.error)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": False, "error": self.error.to_dict()}

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Type alias for Outcome
Outcome = Ok[T] | Err[T]


def is_outcome(candidate: object) -> bool:
    """True for Ok and Err instances."""
    return isinstance(candidate, (Ok, Err))


# =============================================================================
# COLLECTORS AND CONSTRUCTORS
# =============================================================================


def collect_outcomes(outcomes: Iterable[Outcome[T]]) -> Outcome[list[T]]:
    """
    Collect Outcomes into an Outcome of list (fail-fast).

    Returns Ok with all values in order, or the first Err encountered.
    Iteration stops at that Err.

    Examples:
        >>> collect_outcomes([Ok(1), Ok(2)]).unwrap()
        [1, 2]
        >>> collect_outcomes([]).unwrap()
        []
    """
    values = []
    for outcome in outcomes:
        match outcome:
            case Ok(value):
                values.append(value)
            case Err(error):
                return Err(error)
    return Ok(values)


def partition_outcomes(
    outcomes: Iterable[Outcome[T]],
) -> tuple[list[T], list[StructuredError]]:
    """
    Partition outcomes into successful values and errors.

    Unlike collect_outcomes() this always processes everything, so callers
    can continue with partial success and still report every failure.
    """
    values = []
    errors = []
    for outcome in outcomes:
        match outcome:
            case Ok(value):
                values.append(value)
            case Err(error):
                errors.append(error)
    return values, errors


def from_optional(
    value: T | None,
    error: StructuredError | str,
    *,
    kind: ErrorKind = ErrorKind.NOT_FOUND,
) -> Outcome[T]:
    """
    Convert an optional value to an Outcome.

    ``None`` becomes Err; a plain message string is turned into a
    StructuredError of ``kind`` (NOT_FOUND by default).

    Examples:
        >>> cache = {"key1": "value1"}
        >>> from_optional(cache.get("key1"), "cache miss").unwrap()
        'value1'
        >>> from_optional(cache.get("missing"), "cache miss").error.kind
        <ErrorKind.NOT_FOUND: 'NOT_FOUND'>
    """
    if value is None:
        if isinstance(error, str):
            error = StructuredError(kind, error)
        return Err(error)
    return Ok(value)


__all__ = [
    # Types
    "Outcome",
    "Ok",
    "Err",
    "is_outcome",
    # Constructors
    "from_optional",
    # Collectors
    "collect_outcomes",
    "partition_outcomes",
]
