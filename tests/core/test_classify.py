"""Tests for safeop.core.classify module.

Covers:
- Every row of the classification table
- Context extraction and caller overrides
- Retryable defaults and overrides
- Cause chains (bounded, cycle safe)
- Totality: classification never raises
"""

import asyncio
import codecs
import decimal
import errno
import json
import math

import pytest

from safeop.core.classify import DEFAULT_RULES, MAX_CAUSE_DEPTH, ClassificationRule, classify
from safeop.core.errors import (
    ErrorKind,
    NotFoundFailure,
    OperationFailure,
    UnavailableFailure,
    UnwrapError,
)
from safeop.execution.timeout import TimeoutExpired


def capture(func):
    """Run func and return the exception it raises."""
    try:
        func()
    except BaseException as exc:  # noqa: BLE001
        return exc
    raise AssertionError("expected an exception")


class TestClassificationTable:
    """One test per rule family."""

    def test_index_error(self):
        err = classify(capture(lambda: [1, 2, 3][10]))
        assert err.kind == ErrorKind.OUT_OF_RANGE
        assert err.context["exception_type"] == "IndexError"

    def test_key_error(self):
        err = classify(capture(lambda: {}["user"]))
        assert err.kind == ErrorKind.NOT_FOUND
        assert err.context["key"] == "user"
        assert err.message == "key not found: 'user'"

    def test_zero_division(self):
        err = classify(capture(lambda: 1 / 0))
        assert err.kind == ErrorKind.ARITHMETIC_DOMAIN
        assert err.retryable is False

    def test_decimal_division_by_zero(self):
        err = classify(capture(lambda: decimal.Decimal(1) / decimal.Decimal(0)))
        assert err.kind == ErrorKind.ARITHMETIC_DOMAIN

    def test_overflow(self):
        err = classify(capture(lambda: math.exp(1000)))
        assert err.kind == ErrorKind.OUT_OF_RANGE

    def test_value_error(self):
        err = classify(capture(lambda: int("abc")))
        assert err.kind == ErrorKind.INVALID_FORMAT
        assert "abc" in err.message

    def test_unicode_error(self):
        err = classify(capture(lambda: b"\xff".decode("utf-8")))
        assert err.kind == ErrorKind.INVALID_FORMAT
        assert err.context["encoding"] == "utf-8"
        assert err.context["position"] == "0"

    def test_json_error(self):
        err = classify(capture(lambda: json.loads("{bad")))
        assert err.kind == ErrorKind.INVALID_FORMAT
        assert err.context["line"] == "1"
        assert err.context["column"] == "2"

    def test_type_error(self):
        err = classify(capture(lambda: len(5)))
        assert err.kind == ErrorKind.TYPE_MISMATCH

    def test_attribute_error(self):
        err = classify(capture(lambda: object().missing))
        assert err.kind == ErrorKind.TYPE_MISMATCH
        assert err.context["attribute"] == "missing"
        assert err.context["owner_type"] == "object"

    def test_attribute_error_without_name(self):
        err = classify(AttributeError("raised by hand"))
        assert err.kind == ErrorKind.TYPE_MISMATCH
        assert "attribute" not in err.context

    def test_other_lookup_error(self):
        err = classify(capture(lambda: codecs.lookup("no-such-codec")))
        assert err.kind == ErrorKind.NOT_FOUND

    def test_file_not_found(self, tmp_path):
        missing = tmp_path / "missing.txt"
        err = classify(capture(lambda: open(missing)))
        assert err.kind == ErrorKind.NOT_FOUND
        assert err.context["path"] == str(missing)
        assert err.context["errno"] == "ENOENT"

    def test_permission_error(self):
        err = classify(PermissionError(errno.EACCES, "Permission denied", "/etc/shadow"))
        assert err.kind == ErrorKind.PERMISSION_DENIED
        assert err.context["path"] == "/etc/shadow"
        assert err.context["errno"] == "EACCES"

    def test_is_a_directory(self, tmp_path):
        err = classify(capture(lambda: open(tmp_path)))
        assert err.kind == ErrorKind.TYPE_MISMATCH

    @pytest.mark.parametrize(
        "exc",
        [BrokenPipeError(), ConnectionRefusedError(), ConnectionResetError(), MemoryError()],
    )
    def test_unavailable(self, exc):
        err = classify(exc)
        assert err.kind == ErrorKind.RESOURCE_UNAVAILABLE
        assert err.retryable is True

    @pytest.mark.parametrize(
        "code,kind",
        [
            (errno.EIO, ErrorKind.RESOURCE_UNAVAILABLE),
            (errno.ENOSPC, ErrorKind.RESOURCE_UNAVAILABLE),
            (errno.ENOENT, ErrorKind.NOT_FOUND),
            (errno.EPERM, ErrorKind.PERMISSION_DENIED),
            (errno.ETIMEDOUT, ErrorKind.TIMEOUT),
        ],
    )
    def test_os_error_by_errno(self, code, kind):
        err = classify(OSError(code, "os failure"))
        assert err.kind == kind

    def test_timeout_error(self):
        err = classify(TimeoutError("read timed out"))
        assert err.kind == ErrorKind.TIMEOUT
        assert err.retryable is True

    def test_timeout_expired_context(self):
        err = classify(TimeoutExpired(5.0, elapsed=6.5, operation="fetch_quote"))
        assert err.kind == ErrorKind.TIMEOUT
        assert err.context["timeout"] == "5.0"
        assert err.context["elapsed"] == "6.5"
        assert err.context["operation"] == "fetch_quote"

    def test_cancelled(self):
        err = classify(asyncio.CancelledError())
        assert err.kind == ErrorKind.CANCELLED
        assert err.retryable is False

    def test_unknown_keeps_message(self):
        err = classify(RuntimeError("disk controller on fire"))
        assert err.kind == ErrorKind.UNKNOWN
        assert err.message == "disk controller on fire"

    def test_unwrap_error_is_unknown(self):
        assert classify(UnwrapError("misuse")).kind == ErrorKind.UNKNOWN

    def test_empty_message_falls_back_to_type_name(self):
        assert classify(RuntimeError()).message == "RuntimeError"


class TestOperationFailureClassification:
    """Already-classified failures are honoured first."""

    def test_kind_context_and_retryable_honoured(self):
        err = classify(NotFoundFailure("no such user", user_id=7))
        assert err.kind == ErrorKind.NOT_FOUND
        assert err.message == "no such user"
        assert err.context["user_id"] == "7"
        assert err.retryable is False

    def test_retryable_from_failure(self):
        assert classify(UnavailableFailure("pool exhausted")).retryable is True
        assert classify(OperationFailure("x", kind=ErrorKind.TIMEOUT, retryable=False)).retryable is False

    def test_explicit_kind_wins_over_table(self):
        """An OperationFailure tagged TIMEOUT is not classified as UNKNOWN."""
        err = classify(OperationFailure("upstream slow", kind=ErrorKind.TIMEOUT))
        assert err.kind == ErrorKind.TIMEOUT


class TestClassifyArguments:
    """Caller-supplied context, retryable and message."""

    def test_caller_context_merged_last(self):
        err = classify(KeyError("a"), context={"key": "override", "section": "users"})
        assert err.context["key"] == "override"
        assert err.context["section"] == "users"
        assert err.context["exception_type"] == "KeyError"

    def test_retryable_override(self):
        assert classify(KeyError("a"), retryable=True).retryable is True
        assert classify(TimeoutError(), retryable=False).retryable is False

    def test_message_override(self):
        assert classify(ValueError("raw"), message="bad config").message == "bad config"

    def test_origin_kept(self):
        exc = ValueError("raw")
        assert classify(exc).origin is exc

    def test_custom_rules(self):
        rules = (
            ClassificationRule("runtime", lambda exc: isinstance(exc, RuntimeError), ErrorKind.CANCELLED),
        ) + DEFAULT_RULES
        assert classify(RuntimeError("stop"), rules=rules).kind == ErrorKind.CANCELLED


class TestCauseChain:
    """``__cause__`` is classified into ``cause``."""

    def test_explicit_cause_classified(self):
        def load():
            try:
                {}["timeout"]
            except KeyError as exc:
                raise ValueError("bad config") from exc

        err = classify(capture(load))
        assert err.kind == ErrorKind.INVALID_FORMAT
        assert err.cause.kind == ErrorKind.NOT_FOUND
        assert err.depth == 2

    def test_cyclic_cause_terminates(self):
        a = ValueError("a")
        b = ValueError("b")
        a.__cause__ = b
        b.__cause__ = a
        err = classify(a)
        assert err.depth == 2

    def test_long_chain_bounded(self):
        exc = ValueError("0")
        for i in range(1, 50):
            outer = ValueError(str(i))
            outer.__cause__ = exc
            exc = outer
        err = classify(exc)
        assert err.depth == MAX_CAUSE_DEPTH + 1


class TestClassifyIsTotal:
    """classify never raises and is deterministic."""

    def test_failure_whose_str_raises(self):
        class Unprintable(Exception):
            def __str__(self):
                raise RuntimeError("cannot render")

        err = classify(Unprintable())
        assert err.kind == ErrorKind.UNKNOWN
        assert err.message == "Unprintable"

    def test_context_value_whose_str_raises(self):
        class BadKey:
            def __str__(self):
                raise RuntimeError("cannot render")

            def __repr__(self):
                return "BadKey()"

        err = classify(KeyError(BadKey()))
        assert err.kind == ErrorKind.NOT_FOUND
        assert err.context == {"exception_type": "KeyError"}

    def test_predicate_that_raises_is_skipped(self):
        def explode(exc):
            raise RuntimeError("broken rule")

        rules = (ClassificationRule("broken", explode, ErrorKind.CANCELLED),) + DEFAULT_RULES
        assert classify(KeyError("a"), rules=rules).kind == ErrorKind.NOT_FOUND

    @pytest.mark.parametrize(
        "exc",
        [IndexError("i"), KeyError("k"), ValueError("v"), OSError(errno.EIO, "io"), Exception()],
    )
    def test_deterministic(self, exc):
        assert classify(exc) == classify(exc)
