"""
Module: rental_engines.reconciliation
Responsibility:
    Compute an invoice's paid amount, amount due and status from its total
    and the FULL set of linked payment amounts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ReconciliationService locks the invoice, reads the amounts and writes
    the result back.

Invariants enforced:
    - amount_due = max(0, total_amount - total_paid).
    - status is a pure function of total_paid vs. total_amount:
        total_paid >= total_amount  -> Paid
        0 < total_paid < total      -> Partially Paid
        total_paid <= 0             -> Generated
      A negative sum leaves amount_due above total_amount.
    - Workflow statuses: Cancelled is kept whatever the sum; Sent and
      Overdue are kept while nothing is paid (derived status Generated).
    - Order-independent and idempotent: the same multiset of amounts always
      yields the same balance.  Nothing is applied as a delta.

Failure modes:
    - InvalidAmountError when total_amount is negative.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from rental_engines.tracer import traced_engine
from rental_kernel.db.types import ZERO, round_money
from rental_kernel.domain.values import InvoiceStatus
from rental_kernel.exceptions import InvalidAmountError

_UNPAID_WORKFLOW = (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


@dataclass(frozen=True)
class InvoiceBalance:
    """Derived invoice fields."""

    total_amount: Decimal
    total_paid: Decimal
    amount_due: Decimal
    status: InvoiceStatus

    @property
    def is_settled(self) -> bool:
        return self.status == InvoiceStatus.PAID


@traced_engine("reconciliation", "1.0", fingerprint_fields=("total_amount", "payment_amounts"))
def reconcile_invoice(
    *,
    total_amount: Decimal,
    payment_amounts: Iterable[Decimal],
    current_status: InvoiceStatus | None = None,
) -> InvoiceBalance:
    """
    Recompute an invoice balance from scratch.

    Refunds are negative amounts and reduce total_paid like any other
    payment.  current_status is the stored status; only the workflow
    statuses in it survive recomputation.
    """
    if total_amount < 0:
        raise InvalidAmountError("total_amount", total_amount, "must not be negative")

    total_paid = round_money(sum(payment_amounts, ZERO))
    total = round_money(total_amount)
    amount_due = max(ZERO, total - total_paid)

    if total_paid >= total:
        status = InvoiceStatus.PAID
    elif total_paid > 0:
        status = InvoiceStatus.PARTIALLY_PAID
    else:
        status = InvoiceStatus.GENERATED

    if current_status == InvoiceStatus.CANCELLED:
        status = InvoiceStatus.CANCELLED
    elif status == InvoiceStatus.GENERATED and current_status in _UNPAID_WORKFLOW:
        status = current_status
    return InvoiceBalance(total, total_paid, amount_due, status)
