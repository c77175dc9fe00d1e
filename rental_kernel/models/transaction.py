"""
Module: rental_kernel.models.transaction
Responsibility: ORM persistence for financial transactions and for the
    payment-history projection derived from completed rent payments.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - reference_number is unique when present (uq_transaction_reference).
      A collision surfaces as IntegrityError; nothing regenerates silently.
    - A transaction has at most one TenantPaymentHistory row
      (uq_history_transaction).
    - History rows are removed before their transaction; the FK is
      ON DELETE CASCADE so a raw delete cannot orphan them either.

Failure modes:
    - IntegrityError on a duplicate reference number.
    - IntegrityError on a second history row for the same transaction.

Audit relevance:
    TenantPaymentHistory is a materialized view of its transaction.  Every
    write path that changes a completed rent payment (create, update, delete)
    must keep the two in step inside the same unit of work.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.values import (
    HistoryStatus,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)


class FinancialTransaction(TrackedBase):
    """
    A record of money moving, or attempting to move.

    Contract:
        Created on payment intake, updated for status and metadata, deleted
        only administratively (history first).

    Guarantees:
        - processing_fee and late_fee default to 0.00, never NULL.
        - contract_id may be NULL: a transaction can precede contract
          resolution.
        - created_by_id is the acting user; owners see rows they created.
    """

    __tablename__ = "financial_transactions"

    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_transaction_reference"),
        Index("idx_transaction_tenant", "tenant_id"),
        Index("idx_transaction_apartment", "apartment_id"),
        Index("idx_transaction_contract", "contract_id"),
        Index("idx_transaction_date", "transaction_date"),
        Index("idx_transaction_status", "status"),
        Index("idx_transaction_type", "transaction_type"),
        Index("idx_transaction_created_by", "created_by_id"),
    )

    tenant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )

    apartment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("apartments.id", ondelete="SET NULL"),
        nullable=True,
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(30),
        nullable=False,
        default=TransactionType.RENT_PAYMENT,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AED")

    payment_method: Mapped[PaymentMethod] = mapped_column(
        String(30),
        nullable=False,
        default=PaymentMethod.BANK_TRANSFER,
    )

    transaction_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[TransactionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.PENDING,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receipt_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    processing_fee: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )
    late_fee: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    billing_period_start: Mapped[date | None] = mapped_column(nullable=True)
    billing_period_end: Mapped[date | None] = mapped_column(nullable=True)

    created_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    @property
    def is_completed_rent_payment(self) -> bool:
        """True when this row must carry exactly one history row."""
        return (
            self.transaction_type == TransactionType.RENT_PAYMENT
            and self.status == TransactionStatus.COMPLETED
        )

    def __repr__(self) -> str:
        return (
            f"<FinancialTransaction {self.reference_number} "
            f"{self.transaction_type} {self.amount} ({self.status})>"
        )


class TenantPaymentHistory(TrackedBase):
    """
    Derived projection of one completed rent-payment transaction.

    Guarantees:
        - transaction_id is unique: one history row per settling transaction.
        - rent_amount = total_paid - late_fee.
        - status is Late when late_fee > 0, else On Time.

    Non-goals:
        - Not an independent source of truth.  Edit the transaction, never
          the history row.
    """

    __tablename__ = "tenant_payment_history"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_history_transaction"),
        Index("idx_history_tenant", "tenant_id"),
        Index("idx_history_payment_month", "payment_month"),
        Index("idx_history_payment_date", "payment_date"),
    )

    tenant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
    )

    apartment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("apartments.id", ondelete="CASCADE"),
        nullable=True,
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("financial_transactions.id", ondelete="CASCADE"),
        nullable=False,
    )

    payment_month: Mapped[date] = mapped_column(nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(nullable=False)
    late_fee: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    total_paid: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(String(30), nullable=False)

    status: Mapped[HistoryStatus] = mapped_column(String(20), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
