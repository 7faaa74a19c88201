"""
Structured error types for safeop.

Provides the closed error taxonomy (ErrorKind), the immutable StructuredError
record that every component passes around, and a small exception hierarchy for
application code that wants to raise failures which are already classified.

The taxonomy is the common currency of the library. Instead of letting raw
exceptions cross component boundaries, every failure is turned into a
StructuredError carrying:
- **Kind:** Which closed category the failure belongs to
- **Context:** Ordered string fields (index, key, path, ...) for assertions and logs
- **Cause:** The previous StructuredError when an error is wrapped on its way up
- **Retryable:** Whether retrying the same operation can help

Manifesto:
    - **Closed taxonomy:** A fixed set of kinds, no ad-hoc string categories
    - **Errors as values:** StructuredError is frozen, never mutated after creation
    - **Explicit retry semantics:** Each kind has a default, callers may override
    - **Error chaining:** Wrapping keeps the predecessor as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                     StructuredError (frozen)                    │
        │  kind · message · context · cause · retryable · (origin)        │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ErrorKind              OperationFailure (Exception)            │
        │  ─────────              ────────────────────────────            │
        │  NOT_FOUND              NotFoundFailure                         │
        │  OUT_OF_RANGE           InvalidFormatFailure                    │
        │  TYPE_MISMATCH          PermissionFailure                       │
        │  INVALID_FORMAT         UnavailableFailure                      │
        │  PERMISSION_DENIED      OperationCancelled                      │
        │  RESOURCE_UNAVAILABLE                                           │
        │  TIMEOUT                UnwrapError (RuntimeError)              │
        │  CANCELLED              programming error, never recovered      │
        │  ARITHMETIC_DOMAIN                                              │
        │  UNKNOWN                                                        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Building and wrapping an error:

    >>> err = StructuredError(ErrorKind.NOT_FOUND, "missing key", {"key": "user"})
    >>> err.retryable
    False
    >>> outer = err.wrap("profile lookup failed", section="users")
    >>> outer.cause is err
    True
    >>> outer.depth
    2

    Raising an already-classified failure from application code:

    >>> raise UnavailableFailure("pool exhausted", pool="primary")
    Traceback (most recent call last):
    ...
    UnavailableFailure: pool exhausted

Guardrails:
    ❌ DON'T: Mutate context after construction (it is a read-only mapping)
    ✅ DO: Use with_context() to get a new error with extra fields

    ❌ DON'T: Drop the previous error when adding information
    ✅ DO: Use wrap() so the predecessor becomes ``cause``

Tags:
    error-handling, taxonomy, retry-logic, error-context, safeop

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any


class ErrorKind(str, Enum):
    """
    Closed set of failure categories.

    Kinds are not exception classes: many raw exception types map onto one
    kind, and the mapping is owned by :func:`safeop.core.classify.classify`.

    Attributes:
        NOT_FOUND: Missing key, file or entity
        OUT_OF_RANGE: Index or numeric range violation
        TYPE_MISMATCH: Wrong type, missing attribute
        INVALID_FORMAT: Unparseable text, bad literal, bad encoding
        PERMISSION_DENIED: Access refused by the OS or an upstream
        RESOURCE_UNAVAILABLE: Broken pipe, refused connection, exhausted pool
        TIMEOUT: Deadline exceeded
        CANCELLED: Operation cancelled by the caller
        ARITHMETIC_DOMAIN: Division or modulo by zero and similar
        UNKNOWN: Anything the classification table does not recognise
    """

    NOT_FOUND = "NOT_FOUND"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    INVALID_FORMAT = "INVALID_FORMAT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    ARITHMETIC_DOMAIN = "ARITHMETIC_DOMAIN"
    UNKNOWN = "UNKNOWN"


# Transient kinds are retryable by default; everything else needs the caller
# to opt in explicitly.
DEFAULT_RETRYABLE: Mapping[ErrorKind, bool] = MappingProxyType({
    ErrorKind.NOT_FOUND: False,
    ErrorKind.OUT_OF_RANGE: False,
    ErrorKind.TYPE_MISMATCH: False,
    ErrorKind.INVALID_FORMAT: False,
    ErrorKind.PERMISSION_DENIED: False,
    ErrorKind.RESOURCE_UNAVAILABLE: True,
    ErrorKind.TIMEOUT: True,
    ErrorKind.CANCELLED: False,
    ErrorKind.ARITHMETIC_DOMAIN: False,
    ErrorKind.UNKNOWN: False,
})


def default_retryable(kind: ErrorKind) -> bool:
    """Return the static retryable default for a kind."""
    return DEFAULT_RETRYABLE[ErrorKind(kind)]


def _freeze_context(context: Mapping[str, Any] | None) -> Mapping[str, str]:
    if not context:
        return MappingProxyType({})
    return MappingProxyType({str(key): str(value) for key, value in context.items()})


@dataclass(frozen=True, eq=True)
class StructuredError:
    """
    Immutable, inspectable failure record.

    Constructed once where a low-level failure is caught and never changed
    afterwards. Context values are coerced to ``str`` and exposed through a
    read-only mapping that keeps insertion order. ``retryable`` defaults from
    :data:`DEFAULT_RETRYABLE` when not given.
    Errors are hashable, so they can be deduplicated in sets.

    ``origin`` keeps the raw exception the error was classified from so that
    log sinks can render a traceback. It takes no part in equality or hashing.

    Attributes:
        kind: Taxonomy tag
        message: Human-readable diagnostic message
        context: Ordered, read-only ``str -> str`` mapping
        cause: Previous error in the chain, if this one wraps another
        retryable: Whether retrying the operation may succeed
        origin: Raw exception this error was built from, if any
    """

    kind: ErrorKind
    message: str
    context: Mapping[str, str] = field(default_factory=dict)
    cause: StructuredError | None = None
    retryable: bool | None = None
    origin: BaseException | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        kind = ErrorKind(self.kind)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "message", str(self.message))
        object.__setattr__(self, "context", _freeze_context(self.context))
        if self.retryable is None:
            object.__setattr__(self, "retryable", DEFAULT_RETRYABLE[kind])
        if self.cause is not None and not isinstance(self.cause, StructuredError):
            raise TypeError(
                f"cause must be a StructuredError, got {type(self.cause).__name__}"
            )

    # -- derivation ---------------------------------------------------------

    def with_context(self, **fields: Any) -> StructuredError:
        """Return a copy with ``fields`` merged into the context."""
        merged = dict(self.context)
        merged.update(fields)
        return replace(self, context=merged)

    def with_cause(self, cause: StructuredError | None) -> StructuredError:
        """Return a copy whose direct cause is ``cause``."""
        return replace(self, cause=cause)

    def wrap(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        **context: Any,
    ) -> StructuredError:
        """
        Wrap this error in a new one, keeping it as ``cause``.

        The new error inherits kind and retryable flag unless overridden.
        """
        return StructuredError(
            kind=kind if kind is not None else self.kind,
            message=message,
            context=context,
            cause=self,
            retryable=self.retryable if retryable is None else retryable,
        )

    def chained_to(self, previous: StructuredError | None) -> StructuredError:
        """
        Return a copy of this chain with ``previous`` attached at the root.

        Every link of the existing chain is kept; only the innermost error
        gains ``previous`` as its cause.
        """
        if previous is None:
            return self
        links = list(self.chain())
        rebuilt = links[-1].with_cause(previous)
        for link in reversed(links[:-1]):
            rebuilt = link.with_cause(rebuilt)
        return rebuilt

    # -- inspection ---------------------------------------------------------

    def chain(self) -> Iterator[StructuredError]:
        """Iterate from this error down to the root cause."""
        current: StructuredError | None = self
        while current is not None:
            yield current
            current = current.cause

    @property
    def depth(self) -> int:
        """Number of errors in the chain, this one included."""
        return sum(1 for _ in self.chain())

    @property
    def root_cause(self) -> StructuredError:
        """The innermost error of the chain."""
        *_, root = self.chain()
        return root

    def to_dict(self) -> dict[str, Any]:
        """Convert error (and its cause chain) to a dict for logging/serialization."""
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = self.cause.to_dict()
        return result

    def __hash__(self) -> int:
        # Context equality ignores order, so its hash must too.
        return hash((
            self.kind,
            self.message,
            frozenset(self.context.items()),
            self.cause,
            self.retryable,
        ))

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


# =============================================================================
# RAISABLE FAILURES
# =============================================================================


class OperationFailure(Exception):
    """
    Base exception for failures raised already classified.

    Application code raises OperationFailure (or a subclass) when it knows
    the kind of a failure better than the generic classification table does.
    ``classify`` honours kind, context and retryable flag as given.

    Subclasses set ``default_kind`` and ``default_retryable`` class
    attributes to provide sensible defaults for their domain.
    """

    default_kind: ErrorKind = ErrorKind.UNKNOWN
    default_retryable: bool | None = None

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.kind = ErrorKind(kind) if kind is not None else self.default_kind
        if retryable is None:
            retryable = self.default_retryable
        if retryable is None:
            retryable = DEFAULT_RETRYABLE[self.kind]
        self.retryable = retryable
        self.context = {key: str(value) for key, value in context.items()}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value})"


class NotFoundFailure(OperationFailure):
    """Requested entity does not exist."""

    default_kind = ErrorKind.NOT_FOUND


class InvalidFormatFailure(OperationFailure):
    """Input could not be parsed or validated."""

    default_kind = ErrorKind.INVALID_FORMAT


class PermissionFailure(OperationFailure):
    """Access refused."""

    default_kind = ErrorKind.PERMISSION_DENIED


class UnavailableFailure(OperationFailure):
    """Resource temporarily unavailable (retryable)."""

    default_kind = ErrorKind.RESOURCE_UNAVAILABLE


class OperationCancelled(OperationFailure):
    """Operation was cancelled by its caller."""

    default_kind = ErrorKind.CANCELLED


# =============================================================================
# MISUSE
# =============================================================================


class UnwrapError(RuntimeError):
    """
    Raised when a caller reads the value of an Err (or the error of an Ok).

    This is a programming error, never an expected outcome: it is not an
    OperationFailure and classifies as UNKNOWN.
    """

    def __init__(self, message: str, error: StructuredError | None = None):
        super().__init__(message)
        self.error = error


__all__ = [
    "ErrorKind",
    "DEFAULT_RETRYABLE",
    "default_retryable",
    "StructuredError",
    "OperationFailure",
    "NotFoundFailure",
    "InvalidFormatFailure",
    "PermissionFailure",
    "UnavailableFailure",
    "OperationCancelled",
    "UnwrapError",
]
