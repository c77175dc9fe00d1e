"""
rental_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure calculation
    engines (rental_engines/) with database sessions, configuration and
    the clock.  LedgerService is the boundary every caller uses.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        rental_services/ -> rental_engines/  (allowed)
        rental_services/ -> rental_kernel/   (allowed)
        rental_services/ -> rental_config/   (allowed)
        rental_engines/  -> rental_services/ (FORBIDDEN)
        rental_kernel/   -> rental_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.

Audit relevance:
    - This package is the canonical import surface for external consumers.
"""

from rental_kernel.logging_config import get_logger

logger = get_logger("services")

from rental_services.ledger_service import LedgerService
from rental_services.reconciliation_service import InvoiceReconciler, PaymentService
from rental_services.schedule_service import ScheduleGenerator
from rental_services.transaction_service import TransactionRecorder

__all__ = [
    "InvoiceReconciler",
    "LedgerService",
    "PaymentService",
    "ScheduleGenerator",
    "TransactionRecorder",
]
