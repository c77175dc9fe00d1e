"""
Pure domain layer.

Data transfer objects, enumerated values, the clock abstraction, the retry
policy and the access-scope description.  Nothing here touches the ORM,
the database or the wall clock (except SystemClock).
"""

from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rental_kernel.domain.dtos import (
    UNSET,
    Actor,
    ContractInput,
    ContractRecord,
    ContractTerms,
    HistoryFilters,
    HistoryRecord,
    InvoiceInput,
    InvoiceRecord,
    Page,
    PaymentInput,
    PaymentPatch,
    PaymentRecord,
    RentPaymentInput,
    ScheduleFilters,
    ScheduleInput,
    ScheduleRow,
    TransactionFilters,
    TransactionInput,
    TransactionPatch,
    TransactionRecord,
)
from rental_kernel.domain.retry_policy import (
    RetryPolicy,
    fixed_backoff,
    is_lock_contention,
)
from rental_kernel.domain.scope import AccessScope, ScopeKind

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "UNSET",
    "Actor",
    "Page",
    "ContractTerms",
    "ContractInput",
    "ContractRecord",
    "ScheduleInput",
    "ScheduleRow",
    "ScheduleFilters",
    "TransactionInput",
    "RentPaymentInput",
    "TransactionPatch",
    "TransactionFilters",
    "TransactionRecord",
    "HistoryFilters",
    "HistoryRecord",
    "PaymentInput",
    "PaymentPatch",
    "PaymentRecord",
    "InvoiceInput",
    "InvoiceRecord",
    "RetryPolicy",
    "fixed_backoff",
    "is_lock_contention",
    "AccessScope",
    "ScopeKind",
]
