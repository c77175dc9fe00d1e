"""
RetryPolicy -- bounded retry of a unit of work on transient lock contention.

Responsibility:
    Decides whether a failed unit of work may run again and how long to
    wait first.  The policy is three pluggable parts: a classifier (is this
    error transient?), a maximum attempt count, and a backoff strategy.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Inspects exception objects only;
    sleeping and re-running belong to RetryService.

Invariants enforced:
    - max_attempts >= 1.  The default of 2 means "run once, retry once".
    - Only errors the classifier accepts are retried.  Everything else,
      and the final failure, propagates unmodified.

Failure modes:
    - ValueError on max_attempts < 1.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

Classifier = Callable[[BaseException], bool]
Backoff = Callable[[int], float]

# PostgreSQL SQLSTATEs: lock_not_available, deadlock_detected
_PG_TRANSIENT_CODES = frozenset({"55P03", "40P01"})
# MySQL: ER_LOCK_WAIT_TIMEOUT, ER_LOCK_DEADLOCK
_MYSQL_TRANSIENT_CODES = frozenset({1205, 1213})
_TRANSIENT_MESSAGES = (
    "lock wait timeout",
    "lock timeout",
    "deadlock",
    "database is locked",
    "could not obtain lock",
)


def is_lock_contention(exc: BaseException) -> bool:
    """
    Default classifier: True for lock-wait / deadlock errors.

    Looks through SQLAlchemy's DBAPIError wrapper (``exc.orig``) at the
    driver exception: psycopg2 ``pgcode``, MySQL numeric error code in
    ``args[0]``, and finally the message text (SQLite has no codes).
    """
    orig = getattr(exc, "orig", None) or exc

    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _PG_TRANSIENT_CODES:
        return True

    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in _MYSQL_TRANSIENT_CODES:
        return True

    message = str(orig).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


def fixed_backoff(delay_seconds: float) -> Backoff:
    """Backoff that waits the same interval before every retry."""

    def _delay(attempt: int) -> float:
        return delay_seconds

    return _delay


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy.

    Contract:
        ``should_retry(exc, attempt)`` is asked after attempt number
        ``attempt`` (1-based) failed with ``exc``.

    Guarantees:
        - Never retries past max_attempts.
        - Never retries an error the classifier rejects.
    """

    classifier: Classifier = is_lock_contention
    max_attempts: int = 2
    backoff: Backoff = field(default_factory=lambda: fixed_backoff(0.2))

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        return attempt < self.max_attempts and self.classifier(exc)

    def delay_for(self, attempt: int) -> float:
        return self.backoff(attempt)

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_attempts=1)
