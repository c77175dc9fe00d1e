"""
Module: rental_kernel.selectors.history_selector
Responsibility: Read access to the payment-history projection of
    completed rent payments.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Rows are ordered by payment_month desc, payment_date desc, id.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import ColumnElement, and_, func, select

from rental_kernel.domain.dtos import HistoryFilters, HistoryRecord
from rental_kernel.domain.values import HistoryStatus
from rental_kernel.models.transaction import TenantPaymentHistory
from rental_kernel.selectors.base import BaseSelector


def _history_criteria(filters: HistoryFilters) -> list[ColumnElement[bool]]:
    criteria: list[ColumnElement[bool]] = []
    if filters.tenant_id is not None:
        criteria.append(TenantPaymentHistory.tenant_id == filters.tenant_id)
    if filters.year is not None:
        criteria.append(TenantPaymentHistory.payment_month >= date(filters.year, 1, 1))
        criteria.append(TenantPaymentHistory.payment_month <= date(filters.year, 12, 31))
    if filters.start_date is not None:
        criteria.append(TenantPaymentHistory.payment_date >= filters.start_date)
    if filters.end_date is not None:
        criteria.append(TenantPaymentHistory.payment_date <= filters.end_date)
    if filters.status is not None:
        criteria.append(TenantPaymentHistory.status == HistoryStatus(filters.status).value)
    return criteria


class HistorySelector(BaseSelector):
    """Read-only queries over tenant payment history."""

    def for_transaction(self, transaction_id: UUID) -> list[HistoryRecord]:
        rows = self.session.execute(
            select(TenantPaymentHistory).where(
                TenantPaymentHistory.transaction_id == transaction_id
            )
        ).scalars()
        return [HistoryRecord.from_model(m) for m in rows]

    def count_for_transaction(self, transaction_id: UUID) -> int:
        return self.session.execute(
            select(func.count(TenantPaymentHistory.id)).where(
                TenantPaymentHistory.transaction_id == transaction_id
            )
        ).scalar_one()

    def _history(
        self,
        criteria: list[ColumnElement[bool]],
        limit: int | None = None,
    ) -> list[HistoryRecord]:
        stmt = (
            select(TenantPaymentHistory)
            .where(and_(*criteria))
            .order_by(
                TenantPaymentHistory.payment_month.desc(),
                TenantPaymentHistory.payment_date.desc(),
                TenantPaymentHistory.id,
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [HistoryRecord.from_model(m) for m in self.session.execute(stmt).scalars()]

    def for_tenant(
        self,
        tenant_id: UUID,
        filters: HistoryFilters | None = None,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[HistoryRecord]:
        """History rows of a tenant, newest payment month first."""
        filters = filters or HistoryFilters()
        return self._history([
            TenantPaymentHistory.tenant_id == tenant_id,
            self._scope(scope_clause),
            *_history_criteria(filters),
        ])

    def for_apartment(
        self,
        apartment_id: UUID,
        filters: HistoryFilters | None = None,
        scope_clause: ColumnElement[bool] | None = None,
        limit: int | None = None,
    ) -> list[HistoryRecord]:
        """History rows of every tenant of an apartment, newest payment month first."""
        filters = filters or HistoryFilters()
        return self._history(
            [
                TenantPaymentHistory.apartment_id == apartment_id,
                self._scope(scope_clause),
                *_history_criteria(filters),
            ],
            limit,
        )
