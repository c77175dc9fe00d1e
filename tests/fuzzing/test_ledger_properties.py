"""
Property-based tests for the pure ledger calculations.

Boundaries fuzzed here:
- Contract windows: any start/end pair and due day 1-31
- Invoice payment sets: any mix of payments and refunds, in any order
- Rent payments: any amount / late fee split
- Patches: any subset of mutable fields

Boundaries not fuzzed here (covered by explicit service tests):
- Access scoping, atomicity and retry (tests/services)
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from rental_engines.payment_history import derive_history, processing_fee_for
from rental_engines.reconciliation import reconcile_invoice
from rental_engines.schedule import monthly_due_dates
from rental_kernel.db.types import ZERO, round_money
from rental_kernel.domain.dtos import TransactionPatch
from rental_kernel.domain.values import HistoryStatus, InvoiceStatus, PaymentMethod

dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31))

money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

signed_money = st.decimals(
    min_value=Decimal("-99999.99"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestDueDates:

    @given(start=dates, span=st.integers(min_value=0, max_value=800), due_day=st.integers(1, 31))
    @settings(max_examples=200)
    def test_due_dates_stay_inside_window(self, start, span, due_day):
        end = start + timedelta(days=span)

        due = monthly_due_dates(start, end, due_day)

        assert all(start <= d <= end for d in due)
        assert due == sorted(set(due))
        assert len({(d.year, d.month) for d in due}) == len(due)

    @given(start=dates, span=st.integers(min_value=0, max_value=800), due_day=st.integers(1, 31))
    def test_due_day_clamped_to_month_end(self, start, span, due_day):
        for d in monthly_due_dates(start, start + timedelta(days=span), due_day):
            assert d.day == due_day or (d + timedelta(days=1)).day == 1

    @given(year=st.integers(2000, 2040), due_day=st.integers(1, 28))
    def test_calendar_year_has_twelve_rows(self, year, due_day):
        assert len(monthly_due_dates(date(year, 1, 1), date(year, 12, 31), due_day)) == 12


class TestReconciliation:

    @given(total=money, payments=st.lists(signed_money, max_size=8), data=st.data())
    def test_order_does_not_matter(self, total, payments, data):
        shuffled = data.draw(st.permutations(payments))

        assert reconcile_invoice(total_amount=total, payment_amounts=payments) == (
            reconcile_invoice(total_amount=total, payment_amounts=shuffled)
        )

    @given(total=money, payments=st.lists(signed_money, max_size=8))
    def test_balance_invariants(self, total, payments):
        balance = reconcile_invoice(total_amount=total, payment_amounts=payments)
        paid = round_money(sum(payments, ZERO))

        assert balance.total_paid == paid
        assert balance.amount_due == max(ZERO, total - paid)
        if paid >= total:
            assert balance.status == InvoiceStatus.PAID
            assert balance.amount_due == ZERO
        elif paid > 0:
            assert balance.status == InvoiceStatus.PARTIALLY_PAID
            assert balance.amount_due == total - paid
        else:
            assert balance.status == InvoiceStatus.GENERATED
            assert balance.amount_due >= total

    @given(total=money, payments=st.lists(signed_money, max_size=8))
    def test_reconcile_is_idempotent(self, total, payments):
        first = reconcile_invoice(total_amount=total, payment_amounts=payments)
        second = reconcile_invoice(total_amount=total, payment_amounts=payments)

        assert first == second


class TestHistoryProjection:

    @given(rent=money, late_fee=money | st.just(ZERO), paid_on=dates)
    def test_rent_plus_late_fee_is_total(self, rent, late_fee, paid_on):
        projection = derive_history(
            amount=rent + late_fee,
            late_fee=late_fee,
            transaction_date=paid_on,
            billing_period_start=None,
            payment_method=PaymentMethod.CASH,
        )

        assert projection.rent_amount + projection.late_fee == projection.total_paid
        assert projection.payment_month == paid_on
        assert (projection.status == HistoryStatus.LATE) == (late_fee > 0)

    @given(amount=money, method=st.sampled_from(list(PaymentMethod)))
    def test_processing_fee_never_negative(self, amount, method):
        fee = processing_fee_for(method, amount)

        assert fee >= ZERO
        assert fee == round_money(fee)


class TestPatches:

    @given(
        fields=st.sets(st.sampled_from(TransactionPatch.mutable_fields()), min_size=1),
    )
    def test_supplied_fields_are_exactly_the_changes(self, fields):
        patch = TransactionPatch.from_mapping({name: None for name in fields})

        assert set(patch.require_changes()) == fields
