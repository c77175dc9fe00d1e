"""
Module: rental_engines.schedule
Responsibility:
    Turn a contract's terms into the list of payment obligations it creates:
    one Monthly Rent obligation per calendar month and an optional one-time
    Security Deposit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ScheduleService persists what this module plans.

Invariants enforced:
    - Every planned due date lies within [start_date, end_date].
    - Months are walked from start_date normalized to the first of the
      month through end_date; the due day is clamped to the month length.
    - Decimal-only arithmetic; amounts are rounded with round_money().

Failure modes:
    - InvalidContractTermsError when start_date or end_date is missing,
      start_date > end_date, or monthly_rent <= 0.

Usage:
    from rental_engines.schedule import plan_monthly_rent

    obligations = plan_monthly_rent(terms=terms, due_day=5)
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from rental_engines.tracer import traced_engine
from rental_kernel.db.types import round_money
from rental_kernel.domain.dtos import ContractTerms
from rental_kernel.domain.values import SchedulePaymentType
from rental_kernel.exceptions import InvalidContractTermsError

DEFAULT_DUE_DAY = 5


@dataclass(frozen=True)
class PlannedObligation:
    """A schedule row before it is written."""

    payment_type: SchedulePaymentType
    amount: Decimal
    due_date: date


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def _due_in_month(month_start: date, due_day: int) -> date:
    last_day = calendar.monthrange(month_start.year, month_start.month)[1]
    return month_start.replace(day=min(due_day, last_day))


def monthly_due_dates(start_date: date, end_date: date, due_day: int = DEFAULT_DUE_DAY) -> list[date]:
    """
    Due dates of every month touched by [start_date, end_date].

    Due dates before start_date or after end_date are skipped.
    """
    if not 1 <= due_day <= 31:
        raise ValueError(f"due_day must be between 1 and 31, got {due_day}")

    dates: list[date] = []
    cursor = start_date.replace(day=1)
    while cursor <= end_date:
        due = _due_in_month(cursor, due_day)
        if start_date <= due <= end_date:
            dates.append(due)
        cursor = _next_month(cursor)
    return dates


def _require_window(terms: ContractTerms) -> tuple[date, date]:
    if terms.start_date is None:
        raise InvalidContractTermsError(
            "start_date is required", contract_id=str(terms.contract_id)
        )
    if terms.end_date is None:
        raise InvalidContractTermsError(
            "end_date is required to generate a monthly schedule",
            contract_id=str(terms.contract_id),
        )
    if terms.start_date > terms.end_date:
        raise InvalidContractTermsError(
            "start_date is after end_date",
            contract_id=str(terms.contract_id),
            start_date=terms.start_date,
            end_date=terms.end_date,
        )
    return terms.start_date, terms.end_date


@traced_engine("schedule", "1.0", fingerprint_fields=("terms", "due_day"))
def plan_monthly_rent(
    *,
    terms: ContractTerms,
    due_day: int = DEFAULT_DUE_DAY,
) -> list[PlannedObligation]:
    """
    Plan one Pending Monthly Rent obligation per month of the contract.

    Raises:
        InvalidContractTermsError: Missing/inverted window or rent <= 0.
    """
    start_date, end_date = _require_window(terms)
    if terms.monthly_rent is None or terms.monthly_rent <= 0:
        raise InvalidContractTermsError(
            "monthly_rent must be positive",
            contract_id=str(terms.contract_id),
            monthly_rent=terms.monthly_rent,
        )

    amount = round_money(terms.monthly_rent)
    return [
        PlannedObligation(
            payment_type=SchedulePaymentType.MONTHLY_RENT,
            amount=amount,
            due_date=due,
        )
        for due in monthly_due_dates(start_date, end_date, due_day)
    ]


@traced_engine("schedule", "1.0", fingerprint_fields=("terms",))
def plan_security_deposit(*, terms: ContractTerms) -> PlannedObligation | None:
    """
    Plan the one-time deposit due on start_date.

    Returns None when the security fee is absent or not positive.  That is
    a valid outcome, not an error.
    """
    if terms.security_fee is None or terms.security_fee <= 0:
        return None
    if terms.start_date is None:
        raise InvalidContractTermsError(
            "start_date is required", contract_id=str(terms.contract_id)
        )
    return PlannedObligation(
        payment_type=SchedulePaymentType.SECURITY_DEPOSIT,
        amount=round_money(terms.security_fee),
        due_date=terms.start_date,
    )
