"""
Module: rental_kernel.models.contract
Responsibility: ORM persistence for tenancy contracts.  A Contract carries the
    terms the schedule generator turns into payment obligations: start/end
    dates, monthly rent, currency and security fee.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - start_date <= end_date when both are present (ck_contract_dates).
    - monthly_rent > 0 (ck_contract_rent_positive).
    - A contract referenced by schedule rows is never hard-deleted.  The
      schedules FK has no cascade, and ContractService checks first.

Failure modes:
    - IntegrityError when a check constraint is violated.
    - IntegrityError when a delete would orphan schedule rows.

Audit relevance:
    Contract terms are the source of every generated obligation.  Changing
    the rent after schedules exist does NOT rewrite existing schedule rows.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.values import ContractStatus


class Contract(TrackedBase):
    """
    Tenancy contract between a tenant and an owner for one apartment.

    Guarantees:
        - start_date <= end_date when both are set.
        - monthly_rent is strictly positive.
        - security_fee is optional; None or 0 means no deposit obligation.

    Non-goals:
        - Renewal history is not kept; a renewal updates the row in place.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR start_date <= end_date",
            name="ck_contract_dates",
        ),
        CheckConstraint("monthly_rent > 0", name="ck_contract_rent_positive"),
        Index("idx_contract_tenant", "tenant_id"),
        Index("idx_contract_apartment", "apartment_id"),
        Index("idx_contract_status", "status"),
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

    owner_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    start_date: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)

    monthly_rent: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="AED",
    )

    security_fee: Mapped[Decimal | None] = mapped_column(nullable=True)

    status: Mapped[ContractStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContractStatus.PENDING,
    )

    def __repr__(self) -> str:
        return f"<Contract {self.id} tenant={self.tenant_id} ({self.status})>"
