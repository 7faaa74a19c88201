"""
Failure classification.

Maps raw runtime failures (index violations, missing keys, type errors,
numeric parse failures, missing files, permission failures, broken pipes,
deadlines) onto :class:`~safeop.core.errors.ErrorKind` values.

The mapping is a priority-ordered table of rules. Each rule pairs a predicate
with a kind and a context extractor; the first matching predicate wins and a
failure no rule matches becomes ``UNKNOWN``. Order matters: specific
subclasses (``ZeroDivisionError``, ``FileNotFoundError``, ``UnicodeError``)
sit above their bases (``ArithmeticError``, ``OSError``, ``ValueError``).

Examples:
    >>> err = classify(KeyError("user"))
    >>> err.kind, dict(err.context)
    (<ErrorKind.NOT_FOUND: 'NOT_FOUND'>, {'key': 'user', 'exception_type': 'KeyError'})

    >>> classify(ValueError("invalid literal for int() with base 10: 'abc'")).kind
    <ErrorKind.INVALID_FORMAT: 'INVALID_FORMAT'>

Guardrails:
    ❌ DON'T: Parse ``err.message`` in tests or alerting
    ✅ DO: Assert on ``err.kind`` and the stable context keys

Tags:
    classification, error-handling, taxonomy, safeop
"""

from __future__ import annotations

import asyncio
import errno
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from safeop.core.errors import ErrorKind, OperationFailure, StructuredError

# Guards against pathological or cyclic __cause__ chains.
MAX_CAUSE_DEPTH = 16

Extractor = Callable[[BaseException], dict[str, Any]]


@dataclass(frozen=True)
class ClassificationRule:
    """One row of the classification table."""

    name: str
    predicate: Callable[[BaseException], bool]
    kind: ErrorKind | Callable[[BaseException], ErrorKind]
    extract: Extractor | None = None

    def resolve_kind(self, failure: BaseException) -> ErrorKind:
        if isinstance(self.kind, ErrorKind):
            return self.kind
        return self.kind(failure)


def _is(*types: type[BaseException]) -> Callable[[BaseException], bool]:
    return lambda failure: isinstance(failure, types)


# -- context extractors ------------------------------------------------------


def _timeout_fields(failure: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for name in ("timeout", "elapsed", "operation"):
        value = getattr(failure, name, None)
        if value is not None:
            fields[name] = value
    return fields


def _key_fields(failure: BaseException) -> dict[str, Any]:
    if failure.args:
        return {"key": failure.args[0]}
    return {}


def _os_fields(failure: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    filename = getattr(failure, "filename", None)
    if filename is not None:
        fields["path"] = filename
    code = getattr(failure, "errno", None)
    if code is not None:
        fields["errno"] = errno.errorcode.get(code, code)
    return fields


def _unicode_fields(failure: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    encoding = getattr(failure, "encoding", None)
    if encoding is not None:
        fields["encoding"] = encoding
    start = getattr(failure, "start", None)
    if start is not None:
        fields["position"] = start
    return fields


def _json_fields(failure: BaseException) -> dict[str, Any]:
    return {"line": failure.lineno, "column": failure.colno}


def _attribute_fields(failure: BaseException) -> dict[str, Any]:
    # name/obj are only populated when the interpreter raised the error.
    name = getattr(failure, "name", None)
    if name is None:
        return {}
    return {"attribute": name, "owner_type": type(getattr(failure, "obj", None)).__name__}


def _os_kind(failure: BaseException) -> ErrorKind:
    code = getattr(failure, "errno", None)
    if code == errno.ENOENT:
        return ErrorKind.NOT_FOUND
    if code in (errno.EACCES, errno.EPERM):
        return ErrorKind.PERMISSION_DENIED
    if code == errno.ETIMEDOUT:
        return ErrorKind.TIMEOUT
    return ErrorKind.RESOURCE_UNAVAILABLE


# -- the table ---------------------------------------------------------------

DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "operation_failure",
        _is(OperationFailure),
        lambda failure: failure.kind,
        lambda failure: dict(failure.context),
    ),
    # TimeoutError must win over OSError: it is one of its subclasses.
    ClassificationRule("timeout", _is(TimeoutError), ErrorKind.TIMEOUT, _timeout_fields),
    ClassificationRule("cancelled", _is(asyncio.CancelledError), ErrorKind.CANCELLED),
    ClassificationRule("zero_division", _is(ZeroDivisionError), ErrorKind.ARITHMETIC_DOMAIN),
    ClassificationRule("index", _is(IndexError), ErrorKind.OUT_OF_RANGE),
    ClassificationRule("key", _is(KeyError), ErrorKind.NOT_FOUND, _key_fields),
    ClassificationRule("file_not_found", _is(FileNotFoundError), ErrorKind.NOT_FOUND, _os_fields),
    ClassificationRule("permission", _is(PermissionError), ErrorKind.PERMISSION_DENIED, _os_fields),
    ClassificationRule(
        "wrong_file_type",
        _is(IsADirectoryError, NotADirectoryError),
        ErrorKind.TYPE_MISMATCH,
        _os_fields,
    ),
    ClassificationRule(
        "unavailable",
        _is(ConnectionError, BlockingIOError, InterruptedError, MemoryError),
        ErrorKind.RESOURCE_UNAVAILABLE,
        _os_fields,
    ),
    ClassificationRule("os_error", _is(OSError), _os_kind, _os_fields),
    ClassificationRule("overflow", _is(OverflowError), ErrorKind.OUT_OF_RANGE),
    ClassificationRule("arithmetic", _is(ArithmeticError), ErrorKind.ARITHMETIC_DOMAIN),
    ClassificationRule("unicode", _is(UnicodeError), ErrorKind.INVALID_FORMAT, _unicode_fields),
    ClassificationRule("json", _is(json.JSONDecodeError), ErrorKind.INVALID_FORMAT, _json_fields),
    ClassificationRule("value", _is(ValueError), ErrorKind.INVALID_FORMAT),
    ClassificationRule("attribute", _is(AttributeError), ErrorKind.TYPE_MISMATCH, _attribute_fields),
    ClassificationRule("type", _is(TypeError), ErrorKind.TYPE_MISMATCH),
    ClassificationRule("lookup", _is(LookupError), ErrorKind.NOT_FOUND),
)


def _message_of(failure: BaseException) -> str:
    if isinstance(failure, OperationFailure):
        return failure.message
    if isinstance(failure, KeyError) and failure.args:
        return f"key not found: {failure.args[0]!r}"
    text = str(failure)
    return text if text else type(failure).__name__


def _match(
    failure: BaseException,
    rules: tuple[ClassificationRule, ...],
) -> tuple[ErrorKind, dict[str, Any]]:
    for rule in rules:
        try:
            if not rule.predicate(failure):
                continue
            kind = rule.resolve_kind(failure)
        except Exception:
            continue
        try:
            fields = rule.extract(failure) if rule.extract else {}
        except Exception:
            fields = {}
        return kind, fields
    return ErrorKind.UNKNOWN, {}


def classify(
    failure: BaseException,
    *,
    context: Mapping[str, Any] | None = None,
    retryable: bool | None = None,
    message: str | None = None,
    rules: tuple[ClassificationRule, ...] = DEFAULT_RULES,
) -> StructuredError:
    """
    Classify a raw failure into a StructuredError.

    Total and deterministic: the same failure always yields the same kind
    and classification itself never raises.

    Args:
        failure: The caught exception
        context: Extra fields merged after the extracted ones (caller wins)
        retryable: Overrides the kind's default when the caller knows better
        message: Replaces the failure's own message
        rules: Classification table, first match wins

    Returns:
        StructuredError whose ``origin`` is ``failure`` and whose ``cause``
        is the classified ``failure.__cause__``, if any.
    """
    return _classify(failure, context, retryable, message, rules, depth=0, seen=set())


def _classify(
    failure: BaseException,
    context: Mapping[str, Any] | None,
    retryable: bool | None,
    message: str | None,
    rules: tuple[ClassificationRule, ...],
    *,
    depth: int,
    seen: set[int],
) -> StructuredError:
    seen.add(id(failure))
    kind, fields = _match(failure, rules)
    fields["exception_type"] = type(failure).__name__
    if context:
        fields.update(context)

    if retryable is None and isinstance(failure, OperationFailure) and kind == failure.kind:
        retryable = failure.retryable

    try:
        text = message if message is not None else _message_of(failure)
    except Exception:
        text = type(failure).__name__

    cause = None
    raw_cause = failure.__cause__
    if raw_cause is not None and depth < MAX_CAUSE_DEPTH and id(raw_cause) not in seen:
        cause = _classify(raw_cause, None, None, None, rules, depth=depth + 1, seen=seen)

    try:
        return StructuredError(
            kind=kind,
            message=text,
            context=fields,
            cause=cause,
            retryable=retryable,
            origin=failure,
        )
    except Exception:
        # A context value whose str() raises: keep the kind, drop the fields.
        return StructuredError(
            kind=kind,
            message=text,
            context={"exception_type": type(failure).__name__},
            cause=cause,
            retryable=retryable,
            origin=failure,
        )


__all__ = [
    "ClassificationRule",
    "DEFAULT_RULES",
    "MAX_CAUSE_DEPTH",
    "classify",
]
