"""
Module: rental_kernel.models.property
Responsibility: ORM persistence for the ownership graph the ledger scopes by:
    users, buildings, floors, apartments, tenants, and the two assignment
    tables that connect them (building -> owner, tenant -> apartment).
Architecture position: Kernel > Models.  May import from db/ and domain/values.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - The ownership graph Tenant -> Apartment -> Floor -> Building -> Owner is
      the ONLY basis for access scoping.  There is no per-row ACL.
    - A tenant's current apartment is the ApartmentAssignment whose
      released_on is NULL.
    - (building_id, owner_id) is unique in building_assignments.

Failure modes:
    - IntegrityError on a duplicate building assignment.
    - IntegrityError on a dangling foreign key.

Audit relevance:
    Building assignments decide which owner sees which tenant's rent data.
    A wrong row here leaks one owner's financial records to another.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.values import UserRole


class User(TrackedBase):
    """
    Platform user.

    Only the display fields the ledger joins into its records are mapped
    here; credentials and profile data belong to the account service.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.TENANT,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class Building(TrackedBase):
    """A building administered by zero or more owners."""

    __tablename__ = "buildings"

    building_name: Mapped[str] = mapped_column(String(255), nullable=False)
    building_address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    floors: Mapped[list["Floor"]] = relationship(back_populates="building")

    def __repr__(self) -> str:
        return f"<Building {self.building_name}>"


class BuildingAssignment(TrackedBase):
    """
    Owner <-> building link.

    Contract:
        Sole source of "buildings administered by an owner".

    Guarantees:
        - (building_id, owner_id) is unique (uq_building_owner).
    """

    __tablename__ = "building_assignments"

    __table_args__ = (
        UniqueConstraint("building_id", "owner_id", name="uq_building_owner"),
        Index("idx_building_assignment_owner", "owner_id"),
    )

    building_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("buildings.id", ondelete="CASCADE"),
        nullable=False,
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


class Floor(TrackedBase):
    __tablename__ = "floors"

    building_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("buildings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    floor_name: Mapped[str] = mapped_column(String(100), nullable=False)

    building: Mapped[Building] = relationship(back_populates="floors")


class Apartment(TrackedBase):
    """A rentable unit on a floor."""

    __tablename__ = "apartments"

    floor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("floors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bedrooms: Mapped[int | None] = mapped_column(nullable=True)
    bathrooms: Mapped[int | None] = mapped_column(nullable=True)
    rent_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    floor: Mapped[Floor] = relationship()


class Tenant(TrackedBase):
    """Tenant profile attached to a platform user."""

    __tablename__ = "tenants"

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user: Mapped[User] = relationship(lazy="joined")


class ApartmentAssignment(TrackedBase):
    """
    Tenant occupancy of an apartment.

    Guarantees:
        - released_on IS NULL marks the tenant's current apartment.
        - Historical rows are kept; the scope filter ignores them.
    """

    __tablename__ = "apartment_assignments"

    __table_args__ = (
        Index("idx_apartment_assignment_tenant", "tenant_id"),
        Index("idx_apartment_assignment_apartment", "apartment_id"),
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

    assigned_on: Mapped[date] = mapped_column(nullable=False)
    released_on: Mapped[date | None] = mapped_column(nullable=True)
