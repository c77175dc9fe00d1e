"""
Module: rental_kernel.models.invoice
Responsibility: ORM persistence for invoices and the payments recorded
    against them.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - invoice_number is unique (uq_invoice_number).
    - amount_due and status are DERIVED.  They are written only by the
      reconciliation step, recomputed from the full sum of linked payments,
      never incremented.
    - A refund is a Payment with a negative amount; it participates in the
      sum like any other payment.
    - A refund row points at the payment it refunds (refunded_payment_id)
      and is removed with it (ON DELETE CASCADE).

Failure modes:
    - IntegrityError on a duplicate invoice number.

Audit relevance:
    Incremental balance updates drift under partial failure and concurrent
    writes.  Recomputing from the aggregate makes the final status
    independent of commit order.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.values import InvoiceStatus


class Invoice(TrackedBase):
    """
    A bill issued to a tenant for one billing period.

    Guarantees:
        - amount_due = max(0, total_amount - sum(payment.amount)).
        - Outside the workflow statuses, status is Paid / Partially Paid /
          Generated as a pure function of that sum, regardless of the order
          payments were written in.

    Non-goals:
        - Sent, Overdue and Cancelled are set by the invoicing workflow.
          Cancelled survives recomputation; Sent and Overdue survive only
          while nothing is paid.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_tenant", "tenant_id"),
        Index("idx_invoice_contract", "contract_id"),
        Index("idx_invoice_status", "status"),
        Index("idx_invoice_due_date", "due_date"),
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    apartment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("apartments.id"),
        nullable=False,
    )

    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False)
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    billing_period_start: Mapped[date | None] = mapped_column(nullable=True)
    billing_period_end: Mapped[date | None] = mapped_column(nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_due: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AED")

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.GENERATED,
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.total_amount} ({self.status})>"


class Payment(TrackedBase):
    """
    Money received against an invoice (or in advance of one).

    Guarantees:
        - Every create/update/delete of a linked payment triggers
          reconciliation of its invoice in the same unit of work.
        - invoice_id may be NULL for advance payments; no reconciliation
          happens for those.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_invoice", "invoice_id"),
        Index("idx_payment_tenant", "tenant_id"),
        Index("idx_payment_date", "payment_date"),
        Index("idx_payment_refunded", "refunded_payment_id"),
    )

    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AED")
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    transaction_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    refunded_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=True,
    )

    is_advance_payment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def is_refund(self) -> bool:
        return self.refunded_payment_id is not None

    def __repr__(self) -> str:
        return f"<Payment {self.amount} on {self.payment_date} invoice={self.invoice_id}>"
