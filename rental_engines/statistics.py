"""
Module: rental_engines.statistics
Responsibility:
    Aggregate already-scoped rows into the summary figures the dashboards
    show: schedule coverage (paid/overdue/upcoming), transaction totals by
    type and method, a month of invoice payments, and the payment reliability of
    a tenant or an apartment.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Selectors fetch the rows
    (after the access scope has been applied) and hand them to these
    functions.

Invariants enforced:
    - Decimal-only sums; an empty input yields zero totals, never None.
    - "Overdue" means Pending with due_date < as_of; "upcoming" means
      Pending with due_date >= as_of.  as_of is always passed in.
    - reliability_percent = round(100 * on_time / total), 0 when no rows.
    - A monthly summary counts only payments whose payment_date falls in
      that month; refunds count with their negative amount.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType

from rental_engines.tracer import traced_engine
from rental_kernel.db.types import ZERO, round_money
from rental_kernel.domain.dtos import HistoryRecord, PaymentRecord, ScheduleRow, TransactionRecord
from rental_kernel.domain.values import HistoryStatus, ScheduleStatus, TransactionStatus


@dataclass(frozen=True)
class ScheduleStatistics:
    total_scheduled: int
    total_paid: int
    total_overdue: int
    total_upcoming: int
    amount_paid: Decimal
    amount_pending: Decimal


@dataclass(frozen=True)
class Breakdown:
    count: int
    amount: Decimal


@dataclass(frozen=True)
class TransactionStatistics:
    total_count: int
    total_amount: Decimal
    completed_count: int
    completed_amount: Decimal
    pending_count: int
    pending_amount: Decimal
    failed_count: int
    total_processing_fees: Decimal
    total_late_fees: Decimal
    by_type: Mapping[str, Breakdown] = field(default_factory=lambda: MappingProxyType({}))
    by_method: Mapping[str, Breakdown] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class TenantPaymentStatistics:
    total_payments: int
    total_amount_paid: Decimal
    total_rent_paid: Decimal
    total_late_fees: Decimal
    average_payment: Decimal
    on_time_payments: int
    late_payments: int
    partial_payments: int
    first_payment_date: date | None
    last_payment_date: date | None
    reliability_percent: int
    unique_tenants: int = 0


@dataclass(frozen=True)
class PaymentSummary:
    """Invoice payments dated inside one calendar month."""

    year: int
    month: int
    total_payments: int
    total_amount: Decimal
    unique_tenants: int
    by_method: Mapping[str, Breakdown] = field(default_factory=lambda: MappingProxyType({}))


@traced_engine("statistics.schedules", "1.0", fingerprint_fields=("as_of",))
def summarize_schedules(*, rows: Iterable[ScheduleRow], as_of: date) -> ScheduleStatistics:
    total = paid = overdue = upcoming = 0
    amount_paid = amount_pending = ZERO
    for row in rows:
        total += 1
        if row.status == ScheduleStatus.PAID:
            paid += 1
            amount_paid += row.amount
        elif row.status == ScheduleStatus.PENDING:
            amount_pending += row.amount
            if row.due_date < as_of:
                overdue += 1
            else:
                upcoming += 1
    return ScheduleStatistics(
        total_scheduled=total,
        total_paid=paid,
        total_overdue=overdue,
        total_upcoming=upcoming,
        amount_paid=round_money(amount_paid),
        amount_pending=round_money(amount_pending),
    )


def _add(buckets: dict[str, Breakdown], key: str, amount: Decimal) -> None:
    current = buckets.get(key, Breakdown(0, ZERO))
    buckets[key] = Breakdown(current.count + 1, round_money(current.amount + amount))


@traced_engine("statistics.transactions", "1.0")
def summarize_transactions(*, rows: Iterable[TransactionRecord]) -> TransactionStatistics:
    total_count = completed_count = pending_count = failed_count = 0
    total_amount = completed_amount = pending_amount = ZERO
    processing_fees = late_fees = ZERO
    by_type: dict[str, Breakdown] = {}
    by_method: dict[str, Breakdown] = {}

    for row in rows:
        total_count += 1
        total_amount += row.amount
        processing_fees += row.processing_fee
        late_fees += row.late_fee
        if row.status == TransactionStatus.COMPLETED:
            completed_count += 1
            completed_amount += row.amount
        elif row.status == TransactionStatus.PENDING:
            pending_count += 1
            pending_amount += row.amount
        elif row.status == TransactionStatus.FAILED:
            failed_count += 1
        _add(by_type, str(row.transaction_type.value), row.amount)
        _add(by_method, str(row.payment_method.value), row.amount)

    return TransactionStatistics(
        total_count=total_count,
        total_amount=round_money(total_amount),
        completed_count=completed_count,
        completed_amount=round_money(completed_amount),
        pending_count=pending_count,
        pending_amount=round_money(pending_amount),
        failed_count=failed_count,
        total_processing_fees=round_money(processing_fees),
        total_late_fees=round_money(late_fees),
        by_type=MappingProxyType(by_type),
        by_method=MappingProxyType(by_method),
    )


@traced_engine("statistics.history", "1.0")
def summarize_history(*, rows: Iterable[HistoryRecord]) -> TenantPaymentStatistics:
    rows = list(rows)
    count = len(rows)
    total_paid = round_money(sum((r.total_paid for r in rows), ZERO))
    on_time = sum(1 for r in rows if r.status == HistoryStatus.ON_TIME)
    dates = [r.payment_date for r in rows]

    if count:
        average = round_money(total_paid / count)
        reliability = int(
            (Decimal(on_time) * 100 / Decimal(count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )
    else:
        average = ZERO
        reliability = 0

    return TenantPaymentStatistics(
        total_payments=count,
        total_amount_paid=total_paid,
        total_rent_paid=round_money(sum((r.rent_amount for r in rows), ZERO)),
        total_late_fees=round_money(sum((r.late_fee for r in rows), ZERO)),
        average_payment=average,
        on_time_payments=on_time,
        late_payments=sum(1 for r in rows if r.status == HistoryStatus.LATE),
        partial_payments=sum(1 for r in rows if r.status == HistoryStatus.PARTIAL),
        first_payment_date=min(dates) if dates else None,
        last_payment_date=max(dates) if dates else None,
        reliability_percent=reliability,
        unique_tenants=len({r.tenant_id for r in rows if r.tenant_id is not None}),
    )


@traced_engine("statistics.payments", "1.0", fingerprint_fields=("year", "month"))
def summarize_payments(
    *,
    rows: Iterable[PaymentRecord],
    year: int,
    month: int,
) -> PaymentSummary:
    count = 0
    total = ZERO
    tenants = set()
    by_method: dict[str, Breakdown] = {}
    for row in rows:
        if row.payment_date.year != year or row.payment_date.month != month:
            continue
        count += 1
        total += row.amount
        tenants.add(row.tenant_id)
        _add(by_method, row.payment_method, row.amount)

    return PaymentSummary(
        year=year,
        month=month,
        total_payments=count,
        total_amount=round_money(total),
        unique_tenants=len(tenants),
        by_method=MappingProxyType(by_method),
    )
