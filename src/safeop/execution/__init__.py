"""safeop execution -- retries, resource scopes and deadlines.

WHY
───
Recovering a failure into an ``Err`` is half the story. Transient failures
deserve another attempt, resources must be released however the work ends,
and slow work needs a budget. ``safeop.execution`` layers these on top of
the core taxonomy; every path still ends in an ``Outcome``.

ARCHITECTURE
────────────
::

    operation
      │
      ▼
    with_deadline        ─ TimeoutExpired once the budget is spent
      │
      ▼
    with_scope           ─ acquire / use / release exactly once
      │
      ▼
    with_retry           ─ RetryPolicy + RetryRun state machine
      ├── backoff        ─ exponential, capped, +jitter
      └── cancel         ─ CancellationToken, observed while waiting
      │
      ▼
    Outcome[T]

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. timeout.py  ─ DeadlineContext, with_deadline
  2. scope.py    ─ ScopeGuard, with_scope
  3. retry.py    ─ RetryPolicy, RetryRun, with_retry
"""

from safeop.execution.retry import (
    CancellationToken,
    RetryPolicy,
    RetryRun,
    RetryState,
    retry,
    with_retry,
    with_retry_async,
)
from safeop.execution.scope import (
    GuardReleasedError,
    ScopeGuard,
    with_scope,
    with_scope_async,
)
from safeop.execution.timeout import (
    DeadlineContext,
    TimeoutExpired,
    check_deadline,
    current_deadline,
    get_remaining_deadline,
    with_deadline,
    with_deadline_async,
)

__all__ = [
    # retry
    "RetryState",
    "RetryPolicy",
    "CancellationToken",
    "RetryRun",
    "with_retry",
    "with_retry_async",
    "retry",
    # scope
    "GuardReleasedError",
    "ScopeGuard",
    "with_scope",
    "with_scope_async",
    # timeout
    "TimeoutExpired",
    "DeadlineContext",
    "with_deadline",
    "with_deadline_async",
    "check_deadline",
    "current_deadline",
    "get_remaining_deadline",
]
