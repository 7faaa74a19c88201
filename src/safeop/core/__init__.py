"""safeop core -- error taxonomy, outcomes and safe-access adapters.

Manifesto:
    Code that indexes, parses, divides or opens files fails in a handful of
    recurring ways. Handling each with its own try/except and ad-hoc default
    loses the diagnostic that explains *why* the default was used.

    ``safeop.core`` turns every such failure into one immutable value, a
    ``StructuredError`` of a closed ``ErrorKind``, and returns it inside an
    ``Outcome`` instead of raising it. Only failures the caller enumerated
    are recovered; everything else surfaces unchanged.

    - **Closed taxonomy:** ten kinds, mapped from raw exceptions by one table
    - **Errors as values:** frozen records with context and cause chains
    - **Explicit expectations:** each adapter names the kinds it recovers
    - **No hidden state:** pure functions plus immutable settings

Architecture::

    Layer 1 -- Taxonomy
        errors.py          ErrorKind, StructuredError, OperationFailure, UnwrapError
        classify.py        Priority-ordered raw-exception -> ErrorKind table

    Layer 2 -- Outcomes
        result.py          Outcome[T] envelope (Ok / Err, collectors)
        adapters.py        safe_call, with_default, safe_index ... safe_open

    Layer 3 -- Cross-Cutting Concerns
        logging.py         structlog configuration + log_error bridge
        settings.py        SAFEOP_* environment settings (pydantic-settings)

Module Map (recommended reading order)
--------------------------------------
1. errors.py     -- what a failure looks like
2. classify.py   -- how raw exceptions become failures
3. result.py     -- how failures travel
4. adapters.py   -- how call sites opt in
"""

from safeop.core.adapters import (
    EXPECT_ARITHMETIC,
    EXPECT_FILE,
    EXPECT_INDEX,
    EXPECT_KEY,
    EXPECT_LOOKUP,
    EXPECT_PARSE,
    normalize_kinds,
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
from safeop.core.classify import DEFAULT_RULES, ClassificationRule, classify
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
from safeop.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    configure_logging_from_settings,
    error_fields,
    get_logger,
    log_error,
    unbind_context,
)
from safeop.core.result import (
    Err,
    Ok,
    Outcome,
    collect_outcomes,
    from_optional,
    is_outcome,
    partition_outcomes,
)
from safeop.core.settings import SafeopSettings, get_settings

__all__ = [
    # errors
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
    # classify
    "ClassificationRule",
    "DEFAULT_RULES",
    "classify",
    # result
    "Ok",
    "Err",
    "Outcome",
    "is_outcome",
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
    # logging
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    "error_fields",
    "log_error",
    # settings
    "SafeopSettings",
    "get_settings",
]
