"""
RetryService -- run a unit of work, retrying on transient lock contention.

Responsibility:
    Executes ``work(session)`` inside a fresh ``session_scope`` and, when
    the store reports a transient lock-wait or deadlock condition, waits
    the policy's backoff and runs the whole unit of work again on a new
    session.

Architecture position:
    Kernel > Services -- imperative shell.
    Used by ``LedgerService`` around every multi-table write (schedule
    batch insert, transaction + history, payment + invoice recomputation).

Invariants enforced:
    - Each attempt is its own unit of work: a failed attempt is rolled
      back in full before the next one starts, so no partial rows from
      attempt N are visible to attempt N+1.
    - At most ``policy.max_attempts`` attempts (default 2: run once,
      retry once).
    - Non-transient errors and the final transient error propagate
      unmodified.

Failure modes:
    - Whatever ``work`` raises, re-raised as-is.

Audit relevance:
    Every retry is logged at WARNING with the operation name, attempt
    number, delay and error type.

Usage:
    retry = RetryService(session_factory, RetryPolicy())
    record = retry.run(lambda session: recorder.create(...), operation="create_transaction")
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session, sessionmaker

from rental_kernel.db.engine import session_scope
from rental_kernel.domain.retry_policy import RetryPolicy
from rental_kernel.logging_config import get_logger

logger = get_logger("services.retry_service")

T = TypeVar("T")


class RetryService:
    """Bounded-retry executor for units of work.

    Contract:
        ``run(work)`` returns ``work``'s result from the first attempt that
        commits.

    Guarantees:
        - Commit-or-rollback on every exit path (via ``session_scope``).
        - ``sleep`` is called only between attempts, never after the last.

    Non-goals:
        - No exponential backoff unless the policy's backoff provides it.
        - Does NOT classify errors itself; the policy does.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def run(self, work: Callable[[Session], T], operation: str = "unit_of_work") -> T:
        """Execute ``work`` in a unit of work, retrying per the policy.

        Raises:
            Exception: The error of the last attempt, unmodified.
        """
        attempt = 1
        while True:
            try:
                with session_scope(self._session_factory) as session:
                    return work(session)
            except Exception as exc:
                if not self._policy.should_retry(exc, attempt):
                    raise
                delay = self._policy.delay_for(attempt)
                logger.warning(
                    "unit_of_work_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "delay_seconds": delay,
                        "error_type": type(exc).__name__,
                    },
                )
                self._sleep(delay)
                attempt += 1
