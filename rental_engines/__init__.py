"""
Module: rental_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: schedule
    planning, invoice reconciliation, payment-history derivation and fees,
    identifier formatting, and statistics.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import rental_kernel.domain, rental_kernel.db.types and
    rental_kernel.exceptions.  MUST NOT import services or selectors.

Invariants enforced:
    - Purity: engines never read the clock.  Dates are parameters.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.
"""

from rental_engines.payment_history import (
    HistoryProjection,
    ProcessingFeeSchedule,
    derive_history,
    processing_fee_for,
    validate_amounts,
)
from rental_engines.reconciliation import InvoiceBalance, reconcile_invoice
from rental_engines.references import (
    invoice_number,
    invoice_sequence_name,
    refund_reference,
    transaction_reference,
)
from rental_engines.schedule import (
    DEFAULT_DUE_DAY,
    PlannedObligation,
    monthly_due_dates,
    plan_monthly_rent,
    plan_security_deposit,
)
from rental_engines.statistics import (
    Breakdown,
    PaymentSummary,
    ScheduleStatistics,
    TenantPaymentStatistics,
    TransactionStatistics,
    summarize_history,
    summarize_payments,
    summarize_schedules,
    summarize_transactions,
)

__all__ = [
    "DEFAULT_DUE_DAY",
    "PlannedObligation",
    "monthly_due_dates",
    "plan_monthly_rent",
    "plan_security_deposit",
    "InvoiceBalance",
    "reconcile_invoice",
    "HistoryProjection",
    "ProcessingFeeSchedule",
    "derive_history",
    "processing_fee_for",
    "validate_amounts",
    "transaction_reference",
    "invoice_number",
    "invoice_sequence_name",
    "refund_reference",
    "Breakdown",
    "PaymentSummary",
    "ScheduleStatistics",
    "TransactionStatistics",
    "TenantPaymentStatistics",
    "summarize_schedules",
    "summarize_transactions",
    "summarize_history",
    "summarize_payments",
]
