"""
Tests for schedule, transaction, payment-month and payment-history statistics.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from rental_engines.statistics import (
    summarize_history,
    summarize_payments,
    summarize_schedules,
    summarize_transactions,
)
from rental_kernel.domain.dtos import (
    HistoryRecord,
    PaymentRecord,
    ScheduleRow,
    TransactionRecord,
)
from rental_kernel.domain.values import (
    HistoryStatus,
    PaymentMethod,
    SchedulePaymentType,
    ScheduleStatus,
    TransactionStatus,
    TransactionType,
)


def _schedule(due: date, status: ScheduleStatus, amount: str = "1000") -> ScheduleRow:
    return ScheduleRow(
        id=uuid4(),
        contract_id=uuid4(),
        tenant_id=uuid4(),
        apartment_id=uuid4(),
        payment_type=SchedulePaymentType.MONTHLY_RENT,
        amount=Decimal(amount),
        due_date=due,
        status=status,
        transaction_id=None,
    )


def _txn(
    amount: str,
    status: TransactionStatus,
    kind: TransactionType = TransactionType.RENT_PAYMENT,
    method: PaymentMethod = PaymentMethod.CASH,
    processing_fee: str = "0",
    late_fee: str = "0",
) -> TransactionRecord:
    return TransactionRecord(
        id=uuid4(),
        tenant_id=None,
        apartment_id=None,
        contract_id=None,
        transaction_type=kind,
        amount=Decimal(amount),
        currency="AED",
        payment_method=method,
        transaction_date=date(2024, 3, 1),
        due_date=None,
        status=status,
        description=None,
        reference_number=None,
        receipt_path=None,
        processing_fee=Decimal(processing_fee),
        late_fee=Decimal(late_fee),
        billing_period_start=None,
        billing_period_end=None,
        created_by_id=None,
    )


def _history(paid: date, total: str, late_fee: str, status: HistoryStatus) -> HistoryRecord:
    return HistoryRecord(
        id=uuid4(),
        tenant_id=uuid4(),
        apartment_id=None,
        contract_id=None,
        transaction_id=uuid4(),
        payment_month=paid.replace(day=1),
        rent_amount=Decimal(total) - Decimal(late_fee),
        late_fee=Decimal(late_fee),
        total_paid=Decimal(total),
        payment_date=paid,
        payment_method=PaymentMethod.CASH,
        status=status,
    )


class TestScheduleStatistics:

    def test_counts_and_amounts(self):
        as_of = date(2024, 3, 15)
        rows = [
            _schedule(date(2024, 1, 5), ScheduleStatus.PAID),
            _schedule(date(2024, 2, 5), ScheduleStatus.PENDING),
            _schedule(date(2024, 3, 5), ScheduleStatus.PENDING),
            _schedule(date(2024, 4, 5), ScheduleStatus.PENDING, amount="1200"),
        ]

        stats = summarize_schedules(rows=rows, as_of=as_of)

        assert stats.total_scheduled == 4
        assert stats.total_paid == 1
        assert stats.total_overdue == 2
        assert stats.total_upcoming == 1
        assert stats.amount_paid == Decimal("1000.00")
        assert stats.amount_pending == Decimal("3200.00")

    def test_due_today_is_not_overdue(self):
        stats = summarize_schedules(
            rows=[_schedule(date(2024, 3, 15), ScheduleStatus.PENDING)], as_of=date(2024, 3, 15)
        )

        assert stats.total_overdue == 0
        assert stats.total_upcoming == 1

    def test_empty(self):
        stats = summarize_schedules(rows=[], as_of=date(2024, 1, 1))

        assert stats.total_scheduled == 0
        assert stats.amount_pending == Decimal("0.00")


class TestTransactionStatistics:

    def test_totals_by_status_type_and_method(self):
        rows = [
            _txn("1000", TransactionStatus.COMPLETED, processing_fee="5", late_fee="50"),
            _txn("500", TransactionStatus.PENDING, method=PaymentMethod.CREDIT_CARD),
            _txn("200", TransactionStatus.FAILED, kind=TransactionType.MAINTENANCE_FEE),
            _txn("300", TransactionStatus.CANCELLED),
        ]

        stats = summarize_transactions(rows=rows)

        assert stats.total_count == 4
        assert stats.total_amount == Decimal("2000.00")
        assert stats.completed_count == 1
        assert stats.completed_amount == Decimal("1000.00")
        assert stats.pending_count == 1
        assert stats.pending_amount == Decimal("500.00")
        assert stats.failed_count == 1
        assert stats.total_processing_fees == Decimal("5.00")
        assert stats.total_late_fees == Decimal("50.00")
        assert stats.by_type["Rent Payment"].count == 3
        assert stats.by_type["Maintenance Fee"].amount == Decimal("200.00")
        assert stats.by_method["Credit Card"].count == 1


class TestHistoryStatistics:

    def test_reliability_and_totals(self):
        rows = [
            _history(date(2024, 1, 4), "1000", "0", HistoryStatus.ON_TIME),
            _history(date(2024, 2, 20), "1050", "50", HistoryStatus.LATE),
            _history(date(2024, 3, 3), "1000", "0", HistoryStatus.ON_TIME),
        ]

        stats = summarize_history(rows=rows)

        assert stats.total_payments == 3
        assert stats.total_amount_paid == Decimal("3050.00")
        assert stats.total_rent_paid == Decimal("3000.00")
        assert stats.total_late_fees == Decimal("50.00")
        assert stats.average_payment == Decimal("1016.67")
        assert stats.on_time_payments == 2
        assert stats.late_payments == 1
        assert stats.reliability_percent == 67
        assert stats.first_payment_date == date(2024, 1, 4)
        assert stats.last_payment_date == date(2024, 3, 3)
        assert stats.unique_tenants == 3

    def test_no_history(self):
        stats = summarize_history(rows=[])

        assert stats.total_payments == 0
        assert stats.reliability_percent == 0
        assert stats.first_payment_date is None


def _payment(tenant_id, paid: date, amount: str, method: str = "Bank Transfer") -> PaymentRecord:
    return PaymentRecord(
        id=uuid4(),
        invoice_id=None,
        contract_id=None,
        tenant_id=tenant_id,
        payment_date=paid,
        amount=Decimal(amount),
        currency="AED",
        payment_method=method,
        transaction_reference=None,
        is_advance_payment=False,
    )


class TestPaymentSummary:

    def test_month_totals_by_method(self):
        tenant_a, tenant_b = uuid4(), uuid4()
        rows = [
            _payment(tenant_a, date(2024, 3, 1), "400"),
            _payment(tenant_a, date(2024, 3, 9), "600", "Cash"),
            _payment(tenant_b, date(2024, 3, 31), "250.50"),
            _payment(tenant_b, date(2024, 3, 31), "-100", "Refund"),
            _payment(tenant_b, date(2024, 4, 1), "999"),
        ]

        summary = summarize_payments(rows=rows, year=2024, month=3)

        assert summary.total_payments == 4
        assert summary.total_amount == Decimal("1150.50")
        assert summary.unique_tenants == 2
        assert summary.by_method["Bank Transfer"].count == 2
        assert summary.by_method["Bank Transfer"].amount == Decimal("650.50")
        assert summary.by_method["Refund"].amount == Decimal("-100.00")

    def test_empty_month(self):
        summary = summarize_payments(rows=[], year=2024, month=2)

        assert (summary.year, summary.month) == (2024, 2)
        assert summary.total_amount == Decimal("0.00")
        assert dict(summary.by_method) == {}
