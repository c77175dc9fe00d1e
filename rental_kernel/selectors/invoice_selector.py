"""
Module: rental_kernel.selectors.invoice_selector
Responsibility: Read access to invoices and their payments.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Overdue invoices are those with due_date < as_of whose status is
      neither Paid nor Cancelled, ordered by due_date.
    - Invoice listings are newest first (invoice_date desc, invoice_number
      desc); payment listings are newest first (payment_date desc,
      recorded_at desc).
    - Pagination is applied with .limit()/.offset() from a validated Page.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import ColumnElement, and_, select

from rental_kernel.domain.dtos import (
    InvoiceFilters,
    InvoiceRecord,
    Page,
    PaymentFilters,
    PaymentRecord,
)
from rental_kernel.domain.values import InvoiceStatus
from rental_kernel.models.invoice import Invoice, Payment
from rental_kernel.selectors.base import BaseSelector

_CLOSED = (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)


def _overdue_criteria(as_of: date) -> list[ColumnElement[bool]]:
    return [Invoice.due_date < as_of, Invoice.status.not_in(_CLOSED)]


def _payment_criteria(filters: PaymentFilters) -> list[ColumnElement[bool]]:
    criteria: list[ColumnElement[bool]] = []
    if filters.tenant_id is not None:
        criteria.append(Payment.tenant_id == filters.tenant_id)
    if filters.contract_id is not None:
        criteria.append(Payment.contract_id == filters.contract_id)
    if filters.invoice_id is not None:
        criteria.append(Payment.invoice_id == filters.invoice_id)
    if filters.payment_method is not None:
        criteria.append(Payment.payment_method == filters.payment_method)
    if filters.is_advance_payment is not None:
        criteria.append(Payment.is_advance_payment == filters.is_advance_payment)
    if filters.start_date is not None:
        criteria.append(Payment.payment_date >= filters.start_date)
    if filters.end_date is not None:
        criteria.append(Payment.payment_date <= filters.end_date)
    return criteria


class InvoiceSelector(BaseSelector):
    """Read-only queries over invoices and payments."""

    def get(self, invoice_id: UUID) -> InvoiceRecord | None:
        model = self.session.get(Invoice, invoice_id)
        return InvoiceRecord.from_model(model) if model is not None else None

    def by_number(self, invoice_number: str) -> InvoiceRecord | None:
        model = self.session.execute(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        ).scalar_one_or_none()
        return InvoiceRecord.from_model(model) if model is not None else None

    def list_invoices(
        self,
        filters: InvoiceFilters | None = None,
        as_of: date | None = None,
        scope_clause: ColumnElement[bool] | None = None,
        page: Page | None = None,
    ) -> list[InvoiceRecord]:
        """
        Invoices matching ``filters`` inside ``scope_clause``.

        ``as_of`` is required when ``filters.overdue`` is set.
        """
        filters = filters or InvoiceFilters()
        criteria: list[ColumnElement[bool]] = [self._scope(scope_clause)]
        if filters.status is not None:
            criteria.append(Invoice.status == InvoiceStatus(filters.status).value)
        if filters.tenant_id is not None:
            criteria.append(Invoice.tenant_id == filters.tenant_id)
        if filters.contract_id is not None:
            criteria.append(Invoice.contract_id == filters.contract_id)
        if filters.overdue:
            if as_of is None:
                raise ValueError("as_of is required to list overdue invoices")
            criteria.extend(_overdue_criteria(as_of))

        stmt = (
            select(Invoice)
            .where(and_(*criteria))
            .order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())
        )
        if page is not None:
            stmt = stmt.limit(page.limit).offset(page.offset)
        return [InvoiceRecord.from_model(m) for m in self.session.execute(stmt).scalars()]

    def get_payment(self, payment_id: UUID, with_invoice: bool = True) -> PaymentRecord | None:
        model = self.session.get(Payment, payment_id)
        if model is None:
            return None
        invoice = None
        if with_invoice and model.invoice_id is not None:
            invoice = self.get(model.invoice_id)
        return PaymentRecord.from_model(model, invoice=invoice)

    def payments_for(
        self,
        invoice_id: UUID,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[PaymentRecord]:
        """Payments and refunds of one invoice in the order they were made."""
        rows = self.session.execute(
            select(Payment)
            .where(and_(Payment.invoice_id == invoice_id, self._scope(scope_clause)))
            .order_by(Payment.payment_date, Payment.recorded_at, Payment.id)
        ).scalars()
        return [PaymentRecord.from_model(m) for m in rows]

    def list_payments(
        self,
        filters: PaymentFilters | None = None,
        scope_clause: ColumnElement[bool] | None = None,
        page: Page | None = None,
    ) -> list[PaymentRecord]:
        """Passing no page returns every matching row (used by the monthly summary)."""
        stmt = (
            select(Payment)
            .where(and_(self._scope(scope_clause), *_payment_criteria(filters or PaymentFilters())))
            .order_by(Payment.payment_date.desc(), Payment.recorded_at.desc(), Payment.id)
        )
        if page is not None:
            stmt = stmt.limit(page.limit).offset(page.offset)
        return [PaymentRecord.from_model(m) for m in self.session.execute(stmt).scalars()]

    def overdue(
        self,
        as_of: date,
        scope_clause: ColumnElement[bool] | None = None,
    ) -> list[InvoiceRecord]:
        rows = self.session.execute(
            select(Invoice)
            .where(and_(*_overdue_criteria(as_of), self._scope(scope_clause)))
            .order_by(Invoice.due_date, Invoice.invoice_number)
        ).scalars()
        return [InvoiceRecord.from_model(m) for m in rows]
