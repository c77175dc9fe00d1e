"""
Tests for invoice balance recomputation.

Covers:
- Status derivation (Generated / Partially Paid / Paid)
- Overpayment clamps amount_due at zero
- Refunds (negative payments) reduce the paid total
- Order independence and idempotence
- Workflow statuses (Sent, Overdue, Cancelled) survive recomputation
"""

from decimal import Decimal

import pytest

from rental_engines.reconciliation import reconcile_invoice
from rental_kernel.domain.values import InvoiceStatus
from rental_kernel.exceptions import InvalidAmountError

TOTAL = Decimal("1000.00")


def _amounts(*values: str) -> list[Decimal]:
    return [Decimal(v) for v in values]


class TestReconcileInvoice:

    def test_no_payments_is_generated(self):
        balance = reconcile_invoice(total_amount=TOTAL, payment_amounts=[])

        assert balance.status == InvoiceStatus.GENERATED
        assert balance.amount_due == TOTAL
        assert balance.total_paid == Decimal("0.00")

    def test_partial_payment(self):
        balance = reconcile_invoice(total_amount=TOTAL, payment_amounts=_amounts("400"))

        assert balance.status == InvoiceStatus.PARTIALLY_PAID
        assert balance.amount_due == Decimal("600.00")
        assert not balance.is_settled

    def test_exact_payment_settles(self):
        balance = reconcile_invoice(total_amount=TOTAL, payment_amounts=_amounts("400", "600"))

        assert balance.status == InvoiceStatus.PAID
        assert balance.amount_due == Decimal("0.00")
        assert balance.is_settled

    def test_overpayment_clamps_amount_due(self):
        balance = reconcile_invoice(total_amount=TOTAL, payment_amounts=_amounts("1500"))

        assert balance.status == InvoiceStatus.PAID
        assert balance.amount_due == Decimal("0.00")
        assert balance.total_paid == Decimal("1500.00")

    def test_refund_reopens_invoice(self):
        balance = reconcile_invoice(
            total_amount=TOTAL, payment_amounts=_amounts("1000", "-250")
        )

        assert balance.status == InvoiceStatus.PARTIALLY_PAID
        assert balance.amount_due == Decimal("250.00")

    def test_full_refund_returns_to_generated(self):
        balance = reconcile_invoice(
            total_amount=TOTAL, payment_amounts=_amounts("1000", "-1000")
        )

        assert balance.status == InvoiceStatus.GENERATED
        assert balance.amount_due == TOTAL

    def test_sub_cent_amounts_are_rounded(self):
        balance = reconcile_invoice(
            total_amount=Decimal("100.005"), payment_amounts=_amounts("0.004")
        )

        assert balance.total_amount == Decimal("100.01")
        assert balance.total_paid == Decimal("0.00")
        assert balance.status == InvoiceStatus.GENERATED

    def test_order_of_payments_does_not_matter(self):
        forward = reconcile_invoice(
            total_amount=TOTAL, payment_amounts=_amounts("100", "250.25", "300")
        )
        backward = reconcile_invoice(
            total_amount=TOTAL, payment_amounts=_amounts("300", "250.25", "100")
        )

        assert forward == backward

    def test_same_inputs_same_result(self):
        amounts = _amounts("400")
        assert reconcile_invoice(total_amount=TOTAL, payment_amounts=amounts) == reconcile_invoice(
            total_amount=TOTAL, payment_amounts=amounts
        )

    def test_negative_total_rejected(self):
        with pytest.raises(InvalidAmountError):
            reconcile_invoice(total_amount=Decimal("-1"), payment_amounts=[])

    def test_net_refund_raises_amount_due_above_total(self):
        balance = reconcile_invoice(total_amount=TOTAL, payment_amounts=_amounts("-400"))

        assert balance.status == InvoiceStatus.GENERATED
        assert balance.total_paid == Decimal("-400.00")
        assert balance.amount_due == Decimal("1400.00")


class TestWorkflowStatuses:

    @pytest.mark.parametrize("status", [InvoiceStatus.SENT, InvoiceStatus.OVERDUE])
    def test_unpaid_workflow_status_kept(self, status):
        balance = reconcile_invoice(total_amount=TOTAL, payment_amounts=[], current_status=status)

        assert balance.status == status
        assert balance.amount_due == TOTAL

    @pytest.mark.parametrize("status", [InvoiceStatus.SENT, InvoiceStatus.OVERDUE])
    def test_payment_replaces_workflow_status(self, status):
        balance = reconcile_invoice(
            total_amount=TOTAL, payment_amounts=_amounts("400"), current_status=status
        )

        assert balance.status == InvoiceStatus.PARTIALLY_PAID

    def test_cancelled_is_kept(self):
        balance = reconcile_invoice(
            total_amount=TOTAL,
            payment_amounts=_amounts("1000"),
            current_status=InvoiceStatus.CANCELLED,
        )

        assert balance.status == InvoiceStatus.CANCELLED
        assert balance.amount_due == Decimal("0.00")

    def test_derived_status_is_not_sticky(self):
        balance = reconcile_invoice(
            total_amount=TOTAL, payment_amounts=[], current_status=InvoiceStatus.PAID
        )

        assert balance.status == InvoiceStatus.GENERATED
