"""
Module: rental_kernel.models.schedule
Responsibility: ORM persistence for payment schedule rows, one row per due
    obligation generated from a contract.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py only.

Invariants enforced:
    - amount > 0 (ck_schedule_amount_positive).
    - due_date lies within [contract.start_date, contract.end_date]; the
      schedule generator is the only writer of generated rows.
    - transaction_id is SET NULL when the settling transaction is deleted.

Failure modes:
    - IntegrityError on a non-positive amount or a dangling contract id.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import Base, UUIDString
from rental_kernel.domain.values import SchedulePaymentType, ScheduleStatus


class PaymentSchedule(Base):
    """
    A single expected payment obligation.

    Guarantees:
        - Created Pending; the only mutation is the status transition when
          the obligation is settled (optionally linking the transaction).
        - Deleted only in bulk, per contract.
    """

    __tablename__ = "payment_schedules"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_schedule_amount_positive"),
        Index("idx_schedule_contract", "contract_id"),
        Index("idx_schedule_tenant", "tenant_id"),
        Index("idx_schedule_due_date", "due_date"),
        Index("idx_schedule_status", "status"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )

    apartment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("apartments.id", ondelete="CASCADE"),
        nullable=False,
    )

    payment_type: Mapped[SchedulePaymentType] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)

    status: Mapped[ScheduleStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ScheduleStatus.PENDING,
    )

    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("financial_transactions.id", ondelete="SET NULL"),
        nullable=True,
    )

    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PaymentSchedule {self.payment_type} {self.amount} due {self.due_date} ({self.status})>"
