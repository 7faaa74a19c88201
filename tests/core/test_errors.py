"""Tests for safeop.core.errors module."""

from dataclasses import FrozenInstanceError

import pytest

from safeop.core.errors import (
    DEFAULT_RETRYABLE,
    ErrorKind,
    InvalidFormatFailure,
    NotFoundFailure,
    OperationCancelled,
    OperationFailure,
    PermissionFailure,
    StructuredError,
    UnavailableFailure,
    UnwrapError,
    default_retryable,
)


class TestErrorKind:
    """Test ErrorKind enum."""

    def test_all_kinds_defined(self):
        """The taxonomy is closed: exactly these ten kinds."""
        assert {kind.value for kind in ErrorKind} == {
            "NOT_FOUND",
            "OUT_OF_RANGE",
            "TYPE_MISMATCH",
            "INVALID_FORMAT",
            "PERMISSION_DENIED",
            "RESOURCE_UNAVAILABLE",
            "TIMEOUT",
            "CANCELLED",
            "ARITHMETIC_DOMAIN",
            "UNKNOWN",
        }

    def test_kind_is_string_enum(self):
        """Kinds compare equal to their string value."""
        assert ErrorKind.NOT_FOUND == "NOT_FOUND"
        assert ErrorKind("TIMEOUT") is ErrorKind.TIMEOUT

    def test_every_kind_has_retryable_default(self):
        """DEFAULT_RETRYABLE covers the whole taxonomy."""
        assert set(DEFAULT_RETRYABLE) == set(ErrorKind)

    def test_only_transient_kinds_retryable(self):
        retryable = {kind for kind in ErrorKind if default_retryable(kind)}
        assert retryable == {ErrorKind.TIMEOUT, ErrorKind.RESOURCE_UNAVAILABLE}


class TestStructuredError:
    """Test StructuredError value semantics."""

    def test_create_minimal_error(self):
        """Create error with just kind and message."""
        err = StructuredError(ErrorKind.NOT_FOUND, "missing")
        assert err.kind == ErrorKind.NOT_FOUND
        assert err.message == "missing"
        assert dict(err.context) == {}
        assert err.cause is None
        assert err.retryable is False

    def test_kind_accepts_string_value(self):
        err = StructuredError("TIMEOUT", "slow")
        assert err.kind is ErrorKind.TIMEOUT
        assert err.retryable is True

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            StructuredError("EXPLODED", "boom")

    def test_context_values_coerced_to_str(self):
        """Context values are always strings."""
        err = StructuredError(ErrorKind.OUT_OF_RANGE, "bad index", {"index": 10, "length": 3})
        assert err.context == {"index": "10", "length": "3"}

    def test_context_preserves_insertion_order(self):
        err = StructuredError(ErrorKind.UNKNOWN, "x", {"b": 1, "a": 2, "c": 3})
        assert list(err.context) == ["b", "a", "c"]

    def test_context_is_read_only(self):
        err = StructuredError(ErrorKind.UNKNOWN, "x", {"a": 1})
        with pytest.raises(TypeError):
            err.context["a"] = "2"

    def test_context_not_shared_with_input(self):
        """Mutating the source dict after construction has no effect."""
        source = {"a": 1}
        err = StructuredError(ErrorKind.UNKNOWN, "x", source)
        source["a"] = 99
        assert err.context["a"] == "1"

    def test_error_is_frozen(self):
        err = StructuredError(ErrorKind.UNKNOWN, "x")
        with pytest.raises(FrozenInstanceError):
            err.message = "changed"

    def test_explicit_retryable_overrides_default(self):
        err = StructuredError(ErrorKind.NOT_FOUND, "eventually consistent", retryable=True)
        assert err.retryable is True

    def test_cause_must_be_structured_error(self):
        with pytest.raises(TypeError, match="cause must be a StructuredError"):
            StructuredError(ErrorKind.UNKNOWN, "x", cause=ValueError("raw"))

    def test_equality_ignores_origin(self):
        a = StructuredError(ErrorKind.UNKNOWN, "x", {"k": "v"}, origin=ValueError("a"))
        b = StructuredError(ErrorKind.UNKNOWN, "x", {"k": "v"}, origin=ValueError("b"))
        assert a == b

    def test_str_shows_kind_and_message(self):
        err = StructuredError(ErrorKind.PERMISSION_DENIED, "read-only volume")
        assert str(err) == "PERMISSION_DENIED: read-only volume"


class TestStructuredErrorDerivation:
    """Test with_context, wrap and chained_to."""

    def test_with_context_returns_new_error(self):
        err = StructuredError(ErrorKind.NOT_FOUND, "missing", {"key": "a"})
        extended = err.with_context(section="users")
        assert extended.context == {"key": "a", "section": "users"}
        assert err.context == {"key": "a"}

    def test_with_context_overrides_existing_key(self):
        err = StructuredError(ErrorKind.NOT_FOUND, "missing", {"key": "a"})
        assert err.with_context(key="b").context["key"] == "b"

    def test_wrap_keeps_cause(self):
        inner = StructuredError(ErrorKind.TIMEOUT, "socket read timed out")
        outer = inner.wrap("quote fetch failed", symbol="ACME")
        assert outer.cause is inner
        assert outer.kind == ErrorKind.TIMEOUT
        assert outer.retryable is True
        assert outer.context == {"symbol": "ACME"}

    def test_wrap_with_kind_override(self):
        inner = StructuredError(ErrorKind.INVALID_FORMAT, "bad row")
        outer = inner.wrap("import rejected", kind=ErrorKind.UNKNOWN, retryable=False)
        assert outer.kind == ErrorKind.UNKNOWN
        assert outer.cause.kind == ErrorKind.INVALID_FORMAT

    def test_chain_depth_and_root(self):
        root = StructuredError(ErrorKind.NOT_FOUND, "root")
        middle = root.wrap("middle")
        top = middle.wrap("top")
        assert [e.message for e in top.chain()] == ["top", "middle", "root"]
        assert top.depth == 3
        assert top.root_cause is root

    def test_chained_to_attaches_at_root(self):
        """chained_to keeps every link and appends the previous chain."""
        first = StructuredError(ErrorKind.TIMEOUT, "attempt 1")
        second = StructuredError(ErrorKind.TIMEOUT, "attempt 2 inner").wrap("attempt 2")
        combined = second.chained_to(first)
        assert [e.message for e in combined.chain()] == [
            "attempt 2",
            "attempt 2 inner",
            "attempt 1",
        ]
        assert combined.depth == 3

    def test_chained_to_none_is_identity(self):
        err = StructuredError(ErrorKind.TIMEOUT, "t")
        assert err.chained_to(None) is err


class TestStructuredErrorHashing:
    """Errors are hashable values."""

    def test_hash_does_not_raise(self):
        err = StructuredError(ErrorKind.NOT_FOUND, "missing", {"key": "user"})
        assert isinstance(hash(err), int)

    def test_equal_errors_deduplicate_in_set(self):
        first = StructuredError(ErrorKind.NOT_FOUND, "missing", {"key": "user"})
        second = StructuredError(ErrorKind.NOT_FOUND, "missing", {"key": "user"})
        other = StructuredError(ErrorKind.NOT_FOUND, "missing", {"key": "team"})
        assert len({first, second, other}) == 2

    def test_usable_as_dict_key(self):
        err = StructuredError(ErrorKind.TIMEOUT, "slow").wrap("fetch failed", url="/quote")
        counts = {err: 1}
        counts[StructuredError(ErrorKind.TIMEOUT, "slow").wrap("fetch failed", url="/quote")] += 1
        assert counts == {err: 2}

    def test_context_order_does_not_change_hash(self):
        first = StructuredError(ErrorKind.OUT_OF_RANGE, "bad index", {"index": 10, "length": 3})
        second = StructuredError(ErrorKind.OUT_OF_RANGE, "bad index", {"length": 3, "index": 10})
        assert first == second
        assert hash(first) == hash(second)

    def test_origin_ignored(self):
        first = StructuredError(ErrorKind.NOT_FOUND, "missing", origin=KeyError("a"))
        second = StructuredError(ErrorKind.NOT_FOUND, "missing", origin=KeyError("b"))
        assert first == second
        assert hash(first) == hash(second)


class TestStructuredErrorSerialization:
    """Test to_dict."""

    def test_to_dict_minimal(self):
        d = StructuredError(ErrorKind.NOT_FOUND, "missing").to_dict()
        assert d == {"kind": "NOT_FOUND", "message": "missing", "retryable": False}

    def test_to_dict_recurses_into_cause(self):
        err = StructuredError(ErrorKind.TIMEOUT, "inner", {"timeout": 5}).wrap("outer")
        d = err.to_dict()
        assert d["message"] == "outer"
        assert d["cause"]["kind"] == "TIMEOUT"
        assert d["cause"]["context"] == {"timeout": "5"}


class TestOperationFailure:
    """Test the raisable failure hierarchy."""

    def test_defaults(self):
        exc = OperationFailure("something odd")
        assert exc.kind == ErrorKind.UNKNOWN
        assert exc.retryable is False
        assert exc.context == {}
        assert str(exc) == "something odd"

    @pytest.mark.parametrize(
        "cls,kind,retryable",
        [
            (NotFoundFailure, ErrorKind.NOT_FOUND, False),
            (InvalidFormatFailure, ErrorKind.INVALID_FORMAT, False),
            (PermissionFailure, ErrorKind.PERMISSION_DENIED, False),
            (UnavailableFailure, ErrorKind.RESOURCE_UNAVAILABLE, True),
            (OperationCancelled, ErrorKind.CANCELLED, False),
        ],
    )
    def test_subclass_defaults(self, cls, kind, retryable):
        exc = cls("failed")
        assert exc.kind == kind
        assert exc.retryable is retryable
        assert isinstance(exc, OperationFailure)

    def test_context_kwargs_stringified(self):
        exc = NotFoundFailure("no such user", user_id=42)
        assert exc.context == {"user_id": "42"}

    def test_overrides(self):
        exc = NotFoundFailure("replica lag", kind=ErrorKind.RESOURCE_UNAVAILABLE, retryable=False)
        assert exc.kind == ErrorKind.RESOURCE_UNAVAILABLE
        assert exc.retryable is False

    def test_repr(self):
        assert repr(NotFoundFailure("gone")) == "NotFoundFailure('gone', kind=NOT_FOUND)"


class TestUnwrapError:
    """UnwrapError is a programming error, not part of the taxonomy."""

    def test_is_runtime_error(self):
        assert issubclass(UnwrapError, RuntimeError)
        assert not issubclass(UnwrapError, OperationFailure)

    def test_carries_error(self):
        err = StructuredError(ErrorKind.NOT_FOUND, "missing")
        exc = UnwrapError("unwrap on Err", err)
        assert exc.error is err
