"""
Tests for invoices, payments, refunds and invoice reconciliation.

Verifies:
- amount_due / status are recomputed from the payment set on every write
- Reconciliation is idempotent and independent of payment order
- Refunds are negative payments bounded by what remains unrefunded
- Invoice numbers run INV-YYYYMM-NNNN per month without gaps
- Refunds stay linked to their payment through updates and deletes
- Invoice and payment listings, lookup by number and the monthly summary
- Sent / Overdue / Cancelled workflow transitions
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.dtos import (
    InvoiceFilters,
    InvoiceInput,
    Page,
    PaymentFilters,
    PaymentInput,
    PaymentPatch,
)
from rental_kernel.domain.values import REFUND_PAYMENT_METHOD, InvoiceStatus
from rental_kernel.exceptions import (
    EmptyPatchError,
    InvalidAmountError,
    InvalidInvoiceStatusError,
    InvalidRefundError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
    RefundExceedsPaymentError,
    UnknownPatchFieldError,
)


@pytest.fixture
def invoice(ledger, world, contract):
    return ledger.create_invoice(
        world.admin,
        InvoiceInput(
            tenant_id=world.tenant_1,
            apartment_id=world.apartment_1,
            contract_id=contract.id,
            total_amount=Decimal("1000.00"),
            due_date=date(2024, 3, 5),
            billing_period_start=date(2024, 3, 1),
            billing_period_end=date(2024, 3, 31),
        ),
    )


@pytest.fixture
def pay(ledger, world, invoice):
    def _pay(amount: str, invoice_id=None):
        return ledger.record_payment(
            world.admin,
            PaymentInput(
                tenant_id=world.tenant_1,
                invoice_id=invoice_id or invoice.id,
                amount=Decimal(amount),
            ),
        )

    return _pay


class TestInvoices:

    def test_new_invoice(self, invoice, contract):
        assert invoice.invoice_number == "INV-202403-0001"
        assert invoice.invoice_date == date(2024, 3, 15)
        assert invoice.amount_due == Decimal("1000.00")
        assert invoice.status == InvoiceStatus.GENERATED
        assert invoice.currency == "AED"
        assert invoice.contract_id == contract.id

    def test_numbers_increase_per_month(self, ledger, world, invoice):
        def create(invoice_date):
            return ledger.create_invoice(
                world.admin,
                InvoiceInput(
                    tenant_id=world.tenant_1,
                    apartment_id=world.apartment_1,
                    total_amount=Decimal("500"),
                    due_date=date(2024, 4, 5),
                    invoice_date=invoice_date,
                ),
            )

        second = create(None)
        april = create(date(2024, 4, 1))

        assert second.invoice_number == "INV-202403-0002"
        assert april.invoice_number == "INV-202404-0001"

    def test_non_positive_total_rejected(self, ledger, world):
        with pytest.raises(InvalidAmountError):
            ledger.create_invoice(
                world.admin,
                InvoiceInput(
                    tenant_id=world.tenant_1,
                    apartment_id=world.apartment_1,
                    total_amount=Decimal("0"),
                    due_date=date(2024, 4, 5),
                ),
            )

    def test_unknown_invoice(self, ledger, world):
        with pytest.raises(InvoiceNotFoundError):
            ledger.get_invoice(world.admin, uuid4())

    def test_overdue_invoices(self, ledger, world, invoice, pay):
        assert [i.id for i in ledger.list_overdue_invoices(world.admin)] == [invoice.id]

        pay("1000.00")

        assert ledger.list_overdue_invoices(world.admin) == []


class TestReconciliation:

    def test_partial_then_full(self, ledger, world, invoice, pay):
        first = pay("400.00")

        assert first.invoice.amount_due == Decimal("600.00")
        assert first.invoice.status == InvoiceStatus.PARTIALLY_PAID

        second = pay("600.00")

        assert second.invoice.amount_due == Decimal("0.00")
        assert second.invoice.status == InvoiceStatus.PAID

    def test_overpayment_settles_with_zero_due(self, ledger, world, invoice, pay):
        payment = pay("1200.00")

        assert payment.invoice.amount_due == Decimal("0.00")
        assert payment.invoice.status == InvoiceStatus.PAID

    def test_delete_payment_reopens_invoice(self, ledger, world, invoice, pay):
        pay("400.00")
        second = pay("600.00")

        assert ledger.delete_payment(world.admin, second.id) is True

        reopened = ledger.get_invoice(world.admin, invoice.id)
        assert reopened.amount_due == Decimal("600.00")
        assert reopened.status == InvoiceStatus.PARTIALLY_PAID

    def test_delete_missing_payment_returns_false(self, ledger, world):
        assert ledger.delete_payment(world.admin, uuid4()) is False

    def test_get_payment(self, ledger, world, invoice, pay):
        payment = pay("400.00")

        assert ledger.get_payment(world.admin, payment.id) == payment
        with pytest.raises(PaymentNotFoundError):
            ledger.get_payment(world.admin, uuid4())

    def test_update_amount_recomputes(self, ledger, world, invoice, pay):
        payment = pay("400.00")

        updated = ledger.update_payment(world.admin, payment.id, {"amount": "1000.00"})

        assert updated.invoice.status == InvoiceStatus.PAID

    def test_update_cannot_flip_sign(self, ledger, world, invoice, pay):
        payment = pay("400.00")

        with pytest.raises(InvalidAmountError):
            ledger.update_payment(world.admin, payment.id, PaymentPatch(amount=Decimal("-400")))

    def test_update_rejects_empty_and_unknown_patches(self, ledger, world, invoice, pay):
        payment = pay("400.00")

        with pytest.raises(EmptyPatchError):
            ledger.update_payment(world.admin, payment.id, {})
        with pytest.raises(UnknownPatchFieldError):
            ledger.update_payment(world.admin, payment.id, {"invoice_id": uuid4()})

    def test_reconcile_is_idempotent(self, ledger, world, invoice, pay):
        pay("250.00")

        first = ledger.reconcile_invoice(world.admin, invoice.id)
        second = ledger.reconcile_invoice(world.admin, invoice.id)

        assert first == second
        assert second.amount_due == Decimal("750.00")

    def test_reconcile_logged(self, ledger, world, invoice, pay, captured_logs):
        pay("250.00")
        ledger.reconcile_invoice(world.admin, invoice.id)

        events = [r for r in captured_logs() if r["message"] == "invoice_reconciled"]
        assert events[-1]["invoice_id"] == str(invoice.id)
        assert events[-1]["status"] == InvoiceStatus.PARTIALLY_PAID.value
        assert events[-1]["amount_due"] == "750.00"

    def test_payment_for_unknown_invoice(self, ledger, world):
        with pytest.raises(InvoiceNotFoundError):
            ledger.record_payment(
                world.admin,
                PaymentInput(tenant_id=world.tenant_1, invoice_id=uuid4(), amount=Decimal("10")),
            )

    def test_non_positive_payment_rejected(self, ledger, world, invoice, pay):
        with pytest.raises(InvalidAmountError):
            pay("0")

    def test_payment_without_invoice(self, ledger, world):
        payment = ledger.record_payment(
            world.admin,
            PaymentInput(tenant_id=world.tenant_1, amount=Decimal("300"), is_advance_payment=True),
        )

        assert payment.invoice is None
        assert payment.is_advance_payment is True
        assert payment.currency == "AED"
        assert payment.payment_date == date(2024, 3, 15)


class TestRefunds:

    def test_refund_reopens_invoice(self, ledger, world, invoice, pay):
        payment = pay("1000.00")

        refund = ledger.refund_payment(world.admin, payment.id, Decimal("300"), reason="overcharge")

        assert refund.amount == Decimal("-300.00")
        assert refund.payment_method == REFUND_PAYMENT_METHOD
        assert refund.transaction_reference == f"REFUND-{payment.id}"
        assert refund.refunded_payment_id == payment.id
        assert refund.invoice.amount_due == Decimal("300.00")
        assert refund.invoice.status == InvoiceStatus.PARTIALLY_PAID

    def test_refund_larger_than_payment(self, ledger, world, invoice, pay):
        payment = pay("400.00")

        with pytest.raises(RefundExceedsPaymentError) as exc_info:
            ledger.refund_payment(world.admin, payment.id, Decimal("400.01"))

        assert exc_info.value.refund_amount == Decimal("400.01")

    def test_refunds_are_cumulative(self, ledger, world, invoice, pay):
        payment = pay("400.00")
        ledger.refund_payment(world.admin, payment.id, Decimal("300"))

        with pytest.raises(RefundExceedsPaymentError):
            ledger.refund_payment(world.admin, payment.id, Decimal("100.01"))

        last = ledger.refund_payment(world.admin, payment.id, Decimal("100"))
        assert last.invoice.amount_due == Decimal("1000.00")
        assert last.invoice.status == InvoiceStatus.GENERATED

    def test_refund_of_refund_rejected(self, ledger, world, invoice, pay):
        payment = pay("400.00")
        refund = ledger.refund_payment(world.admin, payment.id, Decimal("100"))

        with pytest.raises(InvalidAmountError):
            ledger.refund_payment(world.admin, refund.id, Decimal("10"))

    def test_non_positive_refund_rejected(self, ledger, world, invoice, pay):
        payment = pay("400.00")

        with pytest.raises(InvalidAmountError):
            ledger.refund_payment(world.admin, payment.id, Decimal("0"))

    def test_refund_of_unknown_payment(self, ledger, world):
        with pytest.raises(PaymentNotFoundError):
            ledger.refund_payment(world.admin, uuid4(), Decimal("10"))

    def test_refund_update_cannot_exceed_payment(self, ledger, world, invoice, pay):
        payment = pay("500.00")
        refund = ledger.refund_payment(world.admin, payment.id, Decimal("400"))

        with pytest.raises(RefundExceedsPaymentError) as exc_info:
            ledger.update_payment(world.admin, refund.id, {"amount": Decimal("-900")})

        assert exc_info.value.payment_id == str(payment.id)
        assert ledger.get_payment(world.admin, refund.id).amount == Decimal("-400.00")

        grown = ledger.update_payment(world.admin, refund.id, {"amount": Decimal("-500")})
        assert grown.amount == Decimal("-500.00")
        assert grown.invoice.amount_due == Decimal("1000.00")

    def test_original_cannot_shrink_below_refunded(self, ledger, world, invoice, pay):
        payment = pay("500.00")
        ledger.refund_payment(world.admin, payment.id, Decimal("400"))

        with pytest.raises(RefundExceedsPaymentError):
            ledger.update_payment(world.admin, payment.id, {"amount": Decimal("100")})

        assert ledger.get_payment(world.admin, payment.id).amount == Decimal("500.00")
        shrunk = ledger.update_payment(world.admin, payment.id, {"amount": Decimal("400")})
        assert shrunk.invoice.amount_due == Decimal("1000.00")

    @pytest.mark.parametrize(
        "field,value",
        [("transaction_reference", "MANUAL-1"), ("payment_method", "Cash")],
    )
    def test_refund_link_fields_are_fixed(self, ledger, world, invoice, pay, field, value):
        payment = pay("500.00")
        refund = ledger.refund_payment(world.admin, payment.id, Decimal("500"))

        with pytest.raises(InvalidRefundError):
            ledger.update_payment(world.admin, refund.id, {field: value})

        with pytest.raises(RefundExceedsPaymentError):
            ledger.refund_payment(world.admin, payment.id, Decimal("500"))

    def test_refund_method_reserved_for_refunds(self, ledger, world, invoice, pay):
        payment = pay("500.00")

        with pytest.raises(InvalidRefundError):
            ledger.update_payment(
                world.admin, payment.id, {"payment_method": REFUND_PAYMENT_METHOD}
            )
        with pytest.raises(InvalidRefundError):
            ledger.record_payment(
                world.admin,
                PaymentInput(
                    tenant_id=world.tenant_1,
                    invoice_id=invoice.id,
                    amount=Decimal("100"),
                    payment_method=REFUND_PAYMENT_METHOD,
                ),
            )

    def test_deleting_payment_removes_its_refunds(self, ledger, world, invoice, pay):
        payment = pay("500.00")
        refund = ledger.refund_payment(world.admin, payment.id, Decimal("400"))

        assert ledger.delete_payment(world.admin, payment.id) is True

        with pytest.raises(PaymentNotFoundError):
            ledger.get_payment(world.admin, refund.id)
        reopened = ledger.get_invoice(world.admin, invoice.id)
        assert reopened.amount_due == Decimal("1000.00")
        assert reopened.status == InvoiceStatus.GENERATED
        assert ledger.list_invoice_payments(world.admin, invoice.id) == []

    def test_deleting_refund_keeps_payment(self, ledger, world, invoice, pay):
        payment = pay("500.00")
        refund = ledger.refund_payment(world.admin, payment.id, Decimal("400"))

        assert ledger.delete_payment(world.admin, refund.id) is True

        assert ledger.get_invoice(world.admin, invoice.id).amount_due == Decimal("500.00")
        assert ledger.refund_payment(world.admin, payment.id, Decimal("500")).amount == (
            Decimal("-500.00")
        )


@pytest.fixture
def later_invoice(ledger, world, invoice):
    """Issued after ``invoice``, for tenant_3, not yet due."""
    return ledger.create_invoice(
        world.admin,
        InvoiceInput(
            tenant_id=world.tenant_3,
            apartment_id=world.apartment_3,
            total_amount=Decimal("800.00"),
            due_date=date(2024, 4, 5),
            invoice_date=date(2024, 3, 20),
        ),
    )


class TestInvoiceQueries:

    def test_list_newest_first(self, ledger, world, invoice, later_invoice):
        listed = ledger.list_invoices(world.admin)

        assert [i.id for i in listed] == [later_invoice.id, invoice.id]
        assert ledger.list_invoices(world.admin, page=Page(limit=1, offset=1)) == [invoice]

    def test_list_filters(self, ledger, world, contract, invoice, later_invoice, pay):
        def ids(**filters):
            return [i.id for i in ledger.list_invoices(world.admin, InvoiceFilters(**filters))]

        assert ids(tenant_id=world.tenant_3) == [later_invoice.id]
        assert ids(contract_id=contract.id) == [invoice.id]
        assert ids(overdue=True) == [invoice.id]
        assert ids(status=InvoiceStatus.PAID) == []

        pay("1000.00")

        assert ids(status=InvoiceStatus.PAID) == [invoice.id]
        assert ids(overdue=True) == []

    def test_get_by_number(self, ledger, world, invoice, later_invoice):
        assert ledger.get_invoice_by_number(world.admin, "INV-202403-0002") == later_invoice

        with pytest.raises(InvoiceNotFoundError):
            ledger.get_invoice_by_number(world.admin, "INV-202403-0099")

    def test_invoice_payments_oldest_first(self, ledger, world, invoice, later_invoice):
        def pay_on(day, invoice_id=invoice.id, amount="100"):
            return ledger.record_payment(
                world.admin,
                PaymentInput(
                    tenant_id=world.tenant_1,
                    invoice_id=invoice_id,
                    amount=Decimal(amount),
                    payment_date=day,
                ),
            )

        late = pay_on(date(2024, 3, 12))
        early = pay_on(date(2024, 3, 2))
        pay_on(date(2024, 3, 3), invoice_id=later_invoice.id)
        refund = ledger.refund_payment(world.admin, early.id, Decimal("50"))

        listed = ledger.list_invoice_payments(world.admin, invoice.id)

        assert [p.id for p in listed] == [early.id, late.id, refund.id]
        assert listed[-1].refunded_payment_id == early.id

    def test_overdue_filter_follows_the_clock(self, ledger, world, clock, invoice, later_invoice):
        clock.advance_days(25)

        overdue = ledger.list_invoices(world.admin, InvoiceFilters(overdue=True))

        assert [i.id for i in overdue] == [later_invoice.id, invoice.id]

    def test_payments_of_unknown_invoice(self, ledger, world):
        with pytest.raises(InvoiceNotFoundError):
            ledger.list_invoice_payments(world.admin, uuid4())


class TestInvoiceStatus:

    @pytest.mark.parametrize("status", [InvoiceStatus.SENT, "Overdue"])
    def test_unpaid_invoice_moves_through_workflow(self, ledger, world, invoice, status):
        updated = ledger.update_invoice_status(world.admin, invoice.id, status)

        assert updated.status == InvoiceStatus(status)
        assert updated.amount_due == Decimal("1000.00")

    def test_sent_survives_reconciliation_until_paid(self, ledger, world, invoice, pay):
        ledger.update_invoice_status(world.admin, invoice.id, InvoiceStatus.SENT)

        assert ledger.reconcile_invoice(world.admin, invoice.id).status == InvoiceStatus.SENT

        payment = pay("400.00")

        assert payment.invoice.status == InvoiceStatus.PARTIALLY_PAID

    def test_cancelled_is_final(self, ledger, world, invoice, pay):
        pay("400.00")
        cancelled = ledger.update_invoice_status(world.admin, invoice.id, InvoiceStatus.CANCELLED)

        assert cancelled.status == InvoiceStatus.CANCELLED
        assert pay("100.00").invoice.status == InvoiceStatus.CANCELLED
        with pytest.raises(InvalidInvoiceStatusError):
            ledger.update_invoice_status(world.admin, invoice.id, InvoiceStatus.SENT)
        assert ledger.list_overdue_invoices(world.admin) == []

    @pytest.mark.parametrize("status", ["Paid", "Partially Paid", "Generated", "Archived"])
    def test_derived_and_unknown_statuses_rejected(self, ledger, world, invoice, status):
        with pytest.raises(InvalidInvoiceStatusError):
            ledger.update_invoice_status(world.admin, invoice.id, status)

        assert ledger.get_invoice(world.admin, invoice.id).status == InvoiceStatus.GENERATED

    def test_paid_invoice_cannot_be_sent(self, ledger, world, invoice, pay):
        pay("1000.00")

        with pytest.raises(InvalidInvoiceStatusError) as exc_info:
            ledger.update_invoice_status(world.admin, invoice.id, InvoiceStatus.OVERDUE)

        assert exc_info.value.reason == "invoice is Paid"

    def test_status_change_logged(self, ledger, world, invoice, captured_logs):
        ledger.update_invoice_status(world.admin, invoice.id, InvoiceStatus.SENT)

        events = [r for r in captured_logs() if r["message"] == "invoice_status_changed"]
        assert events[-1]["previous_status"] == "Generated"
        assert events[-1]["status"] == "Sent"
        assert events[-1]["actor_id"] == str(world.admin.id)

    def test_unknown_invoice(self, ledger, world):
        with pytest.raises(InvoiceNotFoundError):
            ledger.update_invoice_status(world.admin, uuid4(), InvoiceStatus.SENT)


class TestPaymentQueries:

    @pytest.fixture
    def payments(self, ledger, world, invoice):
        def record(tenant_id, amount, day, **kwargs):
            return ledger.record_payment(
                world.admin,
                PaymentInput(
                    tenant_id=tenant_id, amount=Decimal(amount), payment_date=day, **kwargs
                ),
            )

        return {
            "invoice": record(world.tenant_1, "400", date(2024, 3, 1), invoice_id=invoice.id),
            "advance": record(
                world.tenant_1, "300", date(2024, 2, 10), is_advance_payment=True
            ),
            "cash": record(world.tenant_3, "500", date(2024, 3, 10), payment_method="Cash"),
        }

    def test_list_newest_first(self, ledger, world, payments):
        listed = ledger.list_payments(world.admin)

        assert [p.id for p in listed] == [
            payments["cash"].id,
            payments["invoice"].id,
            payments["advance"].id,
        ]

    def test_list_filters(self, ledger, world, invoice, payments):
        def ids(**filters):
            return {p.id for p in ledger.list_payments(world.admin, PaymentFilters(**filters))}

        assert ids(tenant_id=world.tenant_3) == {payments["cash"].id}
        assert ids(invoice_id=invoice.id) == {payments["invoice"].id}
        assert ids(payment_method="Cash") == {payments["cash"].id}
        assert ids(is_advance_payment=True) == {payments["advance"].id}
        assert ids(start_date=date(2024, 3, 1), end_date=date(2024, 3, 5)) == {
            payments["invoice"].id
        }

    def test_monthly_summary_defaults_to_current_month(self, ledger, world, payments):
        ledger.refund_payment(world.admin, payments["invoice"].id, Decimal("100"))

        summary = ledger.monthly_payment_summary(world.admin)

        assert (summary.year, summary.month) == (2024, 3)
        assert summary.total_payments == 3
        assert summary.total_amount == Decimal("800.00")
        assert summary.unique_tenants == 2
        assert summary.by_method["Bank Transfer"].amount == Decimal("400.00")
        assert summary.by_method["Cash"].count == 1
        assert summary.by_method[REFUND_PAYMENT_METHOD].amount == Decimal("-100.00")

    def test_monthly_summary_follows_the_clock(self, ledger, world, clock, payments):
        clock.set_date(date(2024, 2, 20))

        summary = ledger.monthly_payment_summary(world.admin)

        assert (summary.year, summary.month) == (2024, 2)
        assert summary.total_amount == Decimal("300.00")

    def test_monthly_summary_for_other_month(self, ledger, world, payments):
        february = ledger.monthly_payment_summary(world.admin, year=2024, month=2)

        assert february.total_payments == 1
        assert february.total_amount == Decimal("300.00")
        assert ledger.monthly_payment_summary(world.admin, 2023, 12).total_payments == 0
