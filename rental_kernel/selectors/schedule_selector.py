"""
Module: rental_kernel.selectors.schedule_selector
Responsibility: Read access to payment schedule rows: by contract, by
    tenant, overdue and upcoming obligations, and filtered sets for
    statistics.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Results are ordered by due_date, then payment_type, then id.
    - "Overdue" is Pending with due_date < as_of; "upcoming" is Pending
      with as_of <= due_date <= as_of + days.  as_of is always passed in;
      selectors never read the clock.
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import ColumnElement, and_, select

from rental_kernel.domain.dtos import ScheduleFilters, ScheduleRow
from rental_kernel.domain.values import ScheduleStatus
from rental_kernel.models.schedule import PaymentSchedule
from rental_kernel.selectors.base import BaseSelector

_ORDER = (PaymentSchedule.due_date, PaymentSchedule.payment_type, PaymentSchedule.id)


class ScheduleSelector(BaseSelector):
    """Read-only queries over payment schedules."""

    def _rows(self, *criteria: ColumnElement[bool]) -> list[ScheduleRow]:
        stmt = select(PaymentSchedule).where(and_(*criteria)).order_by(*_ORDER)
        return [ScheduleRow.from_model(m) for m in self.session.execute(stmt).scalars()]

    def get(self, schedule_id: UUID) -> ScheduleRow | None:
        model = self.session.get(PaymentSchedule, schedule_id)
        return ScheduleRow.from_model(model) if model is not None else None

    def by_contract(
        self,
        contract_id: UUID,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[ScheduleRow]:
        return self._rows(PaymentSchedule.contract_id == contract_id, self._scope(scope_clause))

    def by_tenant(
        self,
        tenant_id: UUID,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[ScheduleRow]:
        return self._rows(PaymentSchedule.tenant_id == tenant_id, self._scope(scope_clause))

    def overdue(
        self,
        as_of: date,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[ScheduleRow]:
        return self._rows(
            PaymentSchedule.status == ScheduleStatus.PENDING.value,
            PaymentSchedule.due_date < as_of,
            self._scope(scope_clause),
        )

    def upcoming(
        self,
        as_of: date,
        days: int = 30,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[ScheduleRow]:
        return self._rows(
            PaymentSchedule.status == ScheduleStatus.PENDING.value,
            PaymentSchedule.due_date >= as_of,
            PaymentSchedule.due_date <= as_of + timedelta(days=days),
            self._scope(scope_clause),
        )

    def matching(
        self,
        filters: ScheduleFilters | None = None,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[ScheduleRow]:
        filters = filters or ScheduleFilters()
        criteria: list[ColumnElement[bool]] = [self._scope(scope_clause)]
        if filters.contract_id is not None:
            criteria.append(PaymentSchedule.contract_id == filters.contract_id)
        if filters.tenant_id is not None:
            criteria.append(PaymentSchedule.tenant_id == filters.tenant_id)
        if filters.apartment_id is not None:
            criteria.append(PaymentSchedule.apartment_id == filters.apartment_id)
        if filters.start_date is not None:
            criteria.append(PaymentSchedule.due_date >= filters.start_date)
        if filters.end_date is not None:
            criteria.append(PaymentSchedule.due_date <= filters.end_date)
        return self._rows(*criteria)
