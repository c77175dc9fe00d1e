"""
rental_services.reconciliation_service -- invoices, payments and balance recomputation.

Responsibility:
    Issues invoices and moves them through the workflow statuses,
    records/updates/deletes/refunds payments, and after every payment
    write recomputes the linked invoice's ``amount_due`` and ``status``
    from the FULL set of its payments.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ``rental_engines.reconciliation`` (pure balance arithmetic)
    and ``rental_engines.references`` (invoice numbers, refund references)
    with the session and ``SequenceService``.  Flush-only.

Invariants enforced:
    - amount_due = max(0, total_amount - sum(payment.amount)); status is
      Paid / Partially Paid / Generated as a pure function of that sum,
      except that Cancelled is kept and Sent / Overdue are kept while
      nothing is paid.  Never incremented.
    - Lock order: invoice row first (``SELECT ... FOR UPDATE``), then the
      payment row.  Concurrent writes to one invoice serialize and each
      recomputation reads every committed payment.
    - Refunds are negative payments with method "Refund", reference
      ``REFUND-<payment id>`` and a refunded_payment_id link.  The total
      refunded against a payment never exceeds its amount, whether the
      refund, a later refund update or an update of the original comes
      last.  Method and reference of a refund row are fixed, and deleting
      a payment deletes its refunds.
    - Invoice numbers come from a locked per-month counter.

Failure modes:
    - InvoiceNotFoundError / PaymentNotFoundError for missing rows.
    - InvalidAmountError for a zero/negative payment or refund amount.
    - RefundExceedsPaymentError when a refund (or an amount update on
      either side) exceeds what is left.
    - InvalidRefundError when a write would detach a refund from its
      payment.
    - EmptyPatchError / UnknownPatchFieldError for bad patches.
    - InvalidInvoiceStatusError for a status outside Sent / Overdue /
      Cancelled, a Sent or Overdue on a paid invoice, or any change to a
      cancelled one.

Audit relevance:
    Every recomputation logs the invoice id, total paid, amount due and
    status before/after.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select

from rental_engines.reconciliation import InvoiceBalance, reconcile_invoice
from rental_engines.references import invoice_number, invoice_sequence_name, refund_reference
from rental_kernel.db.types import ZERO, round_money, to_money, validate_currency
from rental_kernel.domain.clock import Clock
from rental_kernel.domain.dtos import InvoiceInput, PaymentInput, PaymentPatch
from rental_kernel.domain.values import REFUND_PAYMENT_METHOD, InvoiceStatus
from rental_kernel.exceptions import (
    InvalidAmountError,
    InvalidInvoiceStatusError,
    InvalidRefundError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
    RefundExceedsPaymentError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.invoice import Invoice, Payment
from rental_kernel.services.base import BaseService
from rental_kernel.services.sequence_service import SequenceService

logger = get_logger("services.reconciliation")

# Fields that tie a refund row to the payment it refunds
_REFUND_FIXED_FIELDS = frozenset({"payment_method", "transaction_reference"})

_UNPAID_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.OVERDUE})
_WORKFLOW_STATUSES = _UNPAID_STATUSES | {InvoiceStatus.CANCELLED}
_PAID_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID})


class InvoiceReconciler(BaseService):
    """
    Recomputes an invoice balance from its payments.

    Guarantees:
        - Idempotent: two calls with no payment write in between produce
          identical amount_due and status.
    """

    def lock_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def reconcile(self, invoice_id: UUID) -> InvoiceBalance:
        invoice = self.lock_invoice(invoice_id)
        amounts = list(
            self.session.execute(
                select(Payment.amount).where(Payment.invoice_id == invoice_id)
            ).scalars()
        )
        balance = reconcile_invoice(
            total_amount=invoice.total_amount,
            payment_amounts=amounts,
            current_status=InvoiceStatus(invoice.status),
        )

        previous_status = invoice.status
        invoice.amount_due = balance.amount_due
        invoice.status = balance.status.value
        self.session.flush()

        logger.info(
            "invoice_reconciled",
            extra={
                "invoice_id": str(invoice_id),
                "payment_count": len(amounts),
                "total_paid": str(balance.total_paid),
                "amount_due": str(balance.amount_due),
                "previous_status": previous_status,
                "status": balance.status.value,
            },
        )
        return balance


class PaymentService(BaseService):
    """
    Payment and invoice writes.

    Contract:
        Each write method leaves the linked invoice reconciled in the same
        unit of work.

    Non-goals:
        - No currency conversion: payments are summed as recorded.
        - Does NOT check access scope; LedgerService does that first.
    """

    def __init__(self, session, clock: Clock, default_currency: str = "AED"):
        super().__init__(session)
        self._clock = clock
        self._default_currency = default_currency
        self._reconciler = InvoiceReconciler(session)

    # -- invoices ------------------------------------------------------------

    def create_invoice(self, data: InvoiceInput) -> Invoice:
        total = to_money(data.total_amount, "total_amount")
        if total is None or total <= 0:
            raise InvalidAmountError("total_amount", total, "must be positive")

        invoice_date = data.invoice_date or self._clock.today()
        seq = SequenceService(self.session).next_value(invoice_sequence_name(invoice_date))

        invoice = Invoice(
            contract_id=data.contract_id,
            tenant_id=data.tenant_id,
            apartment_id=data.apartment_id,
            invoice_number=invoice_number(invoice_date, seq),
            invoice_date=invoice_date,
            due_date=data.due_date,
            billing_period_start=data.billing_period_start,
            billing_period_end=data.billing_period_end,
            total_amount=total,
            amount_due=total,
            currency=validate_currency(data.currency or self._default_currency),
            status=InvoiceStatus.GENERATED.value,
        )
        self.session.add(invoice)
        self.session.flush()
        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "total_amount": str(total),
            },
        )
        return invoice

    def update_invoice_status(self, invoice_id: UUID, status: InvoiceStatus | str) -> Invoice:
        """
        Move an invoice through the workflow statuses.

        Sent and Overdue apply while nothing is paid; Cancelled applies to
        any invoice that is not already Cancelled.  amount_due is unchanged.
        """
        target = _workflow_status(status)
        invoice = self._reconciler.lock_invoice(invoice_id)
        previous = InvoiceStatus(invoice.status)
        if previous == InvoiceStatus.CANCELLED:
            raise InvalidInvoiceStatusError(target.value, "invoice is cancelled")
        if target in _UNPAID_STATUSES and previous in _PAID_STATUSES:
            raise InvalidInvoiceStatusError(target.value, f"invoice is {previous.value}")

        invoice.status = target.value
        self.session.flush()
        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice_id),
                "previous_status": previous.value,
                "status": target.value,
            },
        )
        return invoice

    # -- payments ------------------------------------------------------------

    def _lock_payment(self, payment_id: UUID) -> Payment:
        current = self.session.get(Payment, payment_id)
        if current is None:
            raise PaymentNotFoundError(payment_id)
        if current.invoice_id is not None:
            self._reconciler.lock_invoice(current.invoice_id)
        return self.session.get(Payment, payment_id, with_for_update=True, populate_existing=True)

    def record(self, data: PaymentInput) -> Payment:
        amount = to_money(data.amount)
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount, "must be positive")
        if data.payment_method == REFUND_PAYMENT_METHOD:
            raise InvalidRefundError(None, "refunds are recorded through refund_payment")

        invoice = None
        if data.invoice_id is not None:
            invoice = self._reconciler.lock_invoice(data.invoice_id)

        payment = Payment(
            invoice_id=data.invoice_id,
            contract_id=data.contract_id or (invoice.contract_id if invoice else None),
            tenant_id=data.tenant_id,
            payment_date=data.payment_date or self._clock.today(),
            amount=amount,
            currency=validate_currency(
                data.currency or (invoice.currency if invoice else self._default_currency)
            ),
            payment_method=data.payment_method,
            transaction_reference=data.transaction_reference,
            is_advance_payment=data.is_advance_payment,
        )
        self.session.add(payment)
        self.session.flush()
        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(data.invoice_id) if data.invoice_id else None,
                "amount": str(amount),
            },
        )
        if invoice is not None:
            self._reconciler.reconcile(invoice.id)
        return payment

    def _check_refund_bound(self, payment: Payment, new_amount: Decimal) -> None:
        """Refunds against one payment never add up to more than the payment."""
        if not payment.is_refund:
            refunded = self.refunded_total(payment.id)
            if new_amount < refunded:
                raise RefundExceedsPaymentError(str(payment.id), refunded, new_amount)
            return

        original = self.session.get(
            Payment, payment.refunded_payment_id, with_for_update=True, populate_existing=True
        )
        other_refunds = self.refunded_total(original.id) + payment.amount
        remaining = original.amount - other_refunds
        if -new_amount > remaining:
            raise RefundExceedsPaymentError(str(original.id), -new_amount, remaining)

    def update(self, payment_id: UUID, patch: PaymentPatch) -> Payment:
        changes = patch.require_changes()
        payment = self._lock_payment(payment_id)

        if payment.is_refund:
            fixed = sorted(_REFUND_FIXED_FIELDS.intersection(changes))
            if fixed:
                raise InvalidRefundError(
                    payment_id, f"{', '.join(fixed)} of a refund cannot change"
                )
        elif changes.get("payment_method") == REFUND_PAYMENT_METHOD:
            raise InvalidRefundError(payment_id, "refunds are recorded through refund_payment")

        for name, value in changes.items():
            if name == "amount":
                value = to_money(value)
                if value is None or value == 0 or (value < 0) != payment.is_refund:
                    raise InvalidAmountError(
                        "amount", value, "must be non-zero and keep the payment's sign"
                    )
                self._check_refund_bound(payment, value)
            elif name == "currency":
                value = validate_currency(value)
            setattr(payment, name, value)
        self.session.flush()

        logger.info(
            "payment_updated",
            extra={"payment_id": str(payment_id), "fields": sorted(changes)},
        )
        if payment.invoice_id is not None:
            self._reconciler.reconcile(payment.invoice_id)
        return payment

    def delete(self, payment_id: UUID) -> bool:
        """
        Delete a payment.  Deleting an original payment removes its refunds
        too, so no refund outlives the payment it refunds.
        """
        if self.session.get(Payment, payment_id) is None:
            return False
        payment = self._lock_payment(payment_id)
        invoice_id = payment.invoice_id

        refund_count = 0
        if not payment.is_refund:
            refund_count = self.session.execute(
                delete(Payment).where(Payment.refunded_payment_id == payment_id)
            ).rowcount
        self.session.delete(payment)
        self.session.flush()
        logger.info(
            "payment_deleted",
            extra={
                "payment_id": str(payment_id),
                "invoice_id": str(invoice_id) if invoice_id else None,
                "refunds_removed": refund_count,
            },
        )
        if invoice_id is not None:
            self._reconciler.reconcile(invoice_id)
        return True

    def refunded_total(self, payment_id: UUID) -> Decimal:
        """Sum already refunded against a payment, as a positive amount."""
        total = self.session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.refunded_payment_id == payment_id
            )
        ).scalar_one()
        return round_money(-Decimal(total)) if total else ZERO

    def refund(self, payment_id: UUID, amount: Decimal, reason: str | None = None) -> Payment:
        refund_amount = to_money(amount, "refund_amount")
        if refund_amount is None or refund_amount <= 0:
            raise InvalidAmountError("refund_amount", refund_amount, "must be positive")

        original = self._lock_payment(payment_id)
        if original.is_refund:
            raise InvalidAmountError("refund_amount", refund_amount, "cannot refund a refund")

        remaining = original.amount - self.refunded_total(payment_id)
        if refund_amount > remaining:
            raise RefundExceedsPaymentError(str(payment_id), refund_amount, remaining)

        refund = Payment(
            invoice_id=original.invoice_id,
            contract_id=original.contract_id,
            tenant_id=original.tenant_id,
            payment_date=self._clock.today(),
            amount=-refund_amount,
            currency=original.currency,
            payment_method=REFUND_PAYMENT_METHOD,
            transaction_reference=refund_reference(payment_id),
            refunded_payment_id=payment_id,
            is_advance_payment=False,
        )
        self.session.add(refund)
        self.session.flush()
        logger.info(
            "payment_refunded",
            extra={
                "payment_id": str(payment_id),
                "refund_id": str(refund.id),
                "refund_amount": str(refund_amount),
                "reason": reason,
            },
        )
        if original.invoice_id is not None:
            self._reconciler.reconcile(original.invoice_id)
        return refund


def _workflow_status(value: InvoiceStatus | str) -> InvoiceStatus:
    try:
        status = InvoiceStatus(value)
    except ValueError as exc:
        raise InvalidInvoiceStatusError(str(value)) from exc
    if status not in _WORKFLOW_STATUSES:
        raise InvalidInvoiceStatusError(status.value)
    return status
