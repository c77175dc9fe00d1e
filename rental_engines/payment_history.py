"""
Module: rental_engines.payment_history
Responsibility:
    Rules that derive values from a transaction:
    - the payment-history projection of a completed rent payment,
    - the processing fee charged for a payment method.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - rent_amount = amount - late_fee; total_paid = amount.
    - status = Late when late_fee > 0, else On Time.
    - payment_month = billing_period_start, falling back to the
      transaction date.
    - Processing fee: Credit Card pays a percentage of the amount, Bank
      Transfer pays a flat fee, every other method pays nothing.

Failure modes:
    - InvalidAmountError when amount or late_fee is negative, or when
      late_fee exceeds amount (the rent portion would be negative).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from rental_engines.tracer import traced_engine
from rental_kernel.db.types import ZERO, round_money
from rental_kernel.domain.values import HistoryStatus, PaymentMethod
from rental_kernel.exceptions import InvalidAmountError


@dataclass(frozen=True)
class HistoryProjection:
    """Column values of the history row for one completed rent payment."""

    payment_month: date
    rent_amount: Decimal
    late_fee: Decimal
    total_paid: Decimal
    payment_date: date
    payment_method: PaymentMethod
    status: HistoryStatus


@dataclass(frozen=True)
class ProcessingFeeSchedule:
    """Fee parameters; defaults match the counter rates."""

    credit_card_rate: Decimal = Decimal("0.029")
    bank_transfer_flat: Decimal = Decimal("5.00")


def validate_amounts(amount: Decimal, late_fee: Decimal) -> None:
    """
    Reject amounts that cannot produce a sane history row.

    Raises:
        InvalidAmountError: On a negative amount, negative late fee, or a
            late fee larger than the amount.
    """
    if amount < 0:
        raise InvalidAmountError("amount", amount, "must not be negative")
    if late_fee < 0:
        raise InvalidAmountError("late_fee", late_fee, "must not be negative")
    if late_fee > amount:
        raise InvalidAmountError(
            "late_fee", late_fee, f"exceeds transaction amount {amount}"
        )


@traced_engine(
    "payment_history",
    "1.0",
    fingerprint_fields=("amount", "late_fee", "transaction_date", "billing_period_start"),
)
def derive_history(
    *,
    amount: Decimal,
    late_fee: Decimal,
    transaction_date: date,
    billing_period_start: date | None,
    payment_method: PaymentMethod,
) -> HistoryProjection:
    """Project a completed rent payment into its history row values."""
    validate_amounts(amount, late_fee)
    total_paid = round_money(amount)
    fee = round_money(late_fee)
    return HistoryProjection(
        payment_month=billing_period_start or transaction_date,
        rent_amount=round_money(total_paid - fee),
        late_fee=fee,
        total_paid=total_paid,
        payment_date=transaction_date,
        payment_method=PaymentMethod(payment_method),
        status=HistoryStatus.LATE if fee > 0 else HistoryStatus.ON_TIME,
    )


def processing_fee_for(
    method: PaymentMethod,
    amount: Decimal,
    schedule: ProcessingFeeSchedule | None = None,
) -> Decimal:
    """Processing fee charged for paying ``amount`` by ``method``."""
    schedule = schedule or ProcessingFeeSchedule()
    if method == PaymentMethod.CREDIT_CARD:
        return round_money(amount * schedule.credit_card_rate)
    if method == PaymentMethod.BANK_TRANSFER:
        return round_money(schedule.bank_transfer_flat)
    return ZERO
