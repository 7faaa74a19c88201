"""
safeop - Structured errors and safe operations.

Turns raised failures into typed, inspectable outcomes without losing
diagnostic information:
- safeop.core: Error taxonomy, classify, Outcome, safe-access adapters
- safeop.execution: Retry/backoff, resource scopes, deadlines
"""

__version__ = "0.1.0"

from safeop.core import (  # noqa: E402
    EXPECT_ARITHMETIC,
    EXPECT_FILE,
    EXPECT_INDEX,
    EXPECT_KEY,
    EXPECT_LOOKUP,
    EXPECT_PARSE,
    Err,
    ErrorKind,
    InvalidFormatFailure,
    NotFoundFailure,
    Ok,
    OperationCancelled,
    OperationFailure,
    Outcome,
    PermissionFailure,
    StructuredError,
    UnavailableFailure,
    UnwrapError,
    classify,
    collect_outcomes,
    configure_logging,
    configure_logging_from_settings,
    from_optional,
    get_logger,
    log_error,
    partition_outcomes,
    safe,
    safe_call,
    safe_call_async,
    safe_divide,
    safe_float,
    safe_get,
    safe_index,
    safe_int,
    safe_key,
    safe_modulo,
    safe_open,
    with_default,
)
from safeop.execution import (  # noqa: E402
    CancellationToken,
    GuardReleasedError,
    RetryPolicy,
    RetryRun,
    RetryState,
    ScopeGuard,
    TimeoutExpired,
    retry,
    with_deadline,
    with_retry,
    with_retry_async,
    with_scope,
    with_scope_async,
)

__all__ = [
    "__version__",
    # taxonomy
    "ErrorKind",
    "StructuredError",
    "OperationFailure",
    "NotFoundFailure",
    "InvalidFormatFailure",
    "PermissionFailure",
    "UnavailableFailure",
    "OperationCancelled",
    "UnwrapError",
    "classify",
    # outcomes
    "Ok",
    "Err",
    "Outcome",
    "collect_outcomes",
    "partition_outcomes",
    "from_optional",
    # adapters
    "EXPECT_INDEX",
    "EXPECT_KEY",
    "EXPECT_LOOKUP",
    "EXPECT_PARSE",
    "EXPECT_ARITHMETIC",
    "EXPECT_FILE",
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
    # execution
    "RetryPolicy",
    "RetryState",
    "RetryRun",
    "CancellationToken",
    "with_retry",
    "with_retry_async",
    "retry",
    "ScopeGuard",
    "GuardReleasedError",
    "with_scope",
    "with_scope_async",
    "TimeoutExpired",
    "with_deadline",
    # logging
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "log_error",
]
