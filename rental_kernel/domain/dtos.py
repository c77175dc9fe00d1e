"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable structures that cross the ledger boundary:
    actors and pagination, operation inputs (contract terms, transaction,
    rent payment, payment, invoice and contract inputs), typed patches that
    enumerate exactly the mutable fields of an entity, filters, and the
    frozen records returned to callers after commit.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  from_model() class methods exist as boundary
    converters and are only invoked from services and selectors.

Invariants enforced:
    - Patches reject unknown field names at construction from a mapping
      (UnknownPatchFieldError) and report emptiness before any store access
      (EmptyPatchError via require_changes()).
    - Page accepts only non-negative integers; values are later bound as
      query parameters, never spliced into SQL text.
    - Records are frozen; callers cannot mutate persisted state through them.

Failure modes:
    - UnknownPatchFieldError from Patch.from_mapping().
    - EmptyPatchError from Patch.require_changes().
    - InvalidPaginationError from Page().
    - ValueError from Actor() on an unknown role string.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, Self
from uuid import UUID

from rental_kernel.domain.values import (
    ContractStatus,
    HistoryStatus,
    InvoiceStatus,
    PaymentMethod,
    SchedulePaymentType,
    ScheduleStatus,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from rental_kernel.exceptions import (
    EmptyPatchError,
    InvalidPaginationError,
    UnknownPatchFieldError,
)

if TYPE_CHECKING:
    from rental_kernel.models.contract import Contract as ContractModel
    from rental_kernel.models.invoice import Invoice as InvoiceModel
    from rental_kernel.models.invoice import Payment as PaymentModel
    from rental_kernel.models.schedule import PaymentSchedule as ScheduleModel
    from rental_kernel.models.transaction import (
        TenantPaymentHistory as HistoryModel,
    )


# ---------------------------------------------------------------------------
# Actor and pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Actor:
    """
    The user on whose behalf an operation runs.

    Guarantees:
        - role is always a UserRole member (strings are coerced).
    """

    id: UUID
    role: UserRole

    def __post_init__(self) -> None:
        if not isinstance(self.role, UserRole):
            object.__setattr__(self, "role", UserRole(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER


@dataclass(frozen=True)
class Page:
    """Validated limit/offset pair."""

    limit: int = 50
    offset: int = 0

    def __post_init__(self) -> None:
        for value in (self.limit, self.offset):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidPaginationError(self.limit, self.offset)


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


class _UnsetType:
    """Marker for a patch field the caller did not supply."""

    _instance: _UnsetType | None = None

    def __new__(cls) -> _UnsetType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _UnsetType()


class Patch:
    """
    Base for typed patches.

    Contract:
        Subclasses are frozen dataclasses whose fields are exactly the
        mutable columns of ENTITY, each defaulting to UNSET.
    """

    ENTITY: ClassVar[str] = "record"

    @classmethod
    def mutable_fields(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """
        Build a patch from loose key/value input.

        Raises:
            UnknownPatchFieldError: If any key is not a mutable field.
        """
        allowed = cls.mutable_fields()
        unknown = [key for key in data if key not in allowed]
        if unknown:
            raise UnknownPatchFieldError(cls.ENTITY, unknown, list(allowed))
        return cls(**dict(data))

    def changes(self) -> dict[str, Any]:
        """Fields the caller supplied, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def require_changes(self) -> dict[str, Any]:
        """
        Return changes(), refusing an empty patch.

        Raises:
            EmptyPatchError: If no field was supplied.
        """
        changes = self.changes()
        if not changes:
            raise EmptyPatchError(self.ENTITY)
        return changes


@dataclass(frozen=True)
class TransactionPatch(Patch):
    ENTITY: ClassVar[str] = "FinancialTransaction"

    status: TransactionStatus | str = UNSET
    description: str | None = UNSET
    receipt_path: str | None = UNSET
    processing_fee: Decimal = UNSET
    late_fee: Decimal = UNSET
    reference_number: str | None = UNSET
    transaction_date: date = UNSET


@dataclass(frozen=True)
class PaymentPatch(Patch):
    ENTITY: ClassVar[str] = "Payment"

    payment_date: date = UNSET
    amount: Decimal = UNSET
    currency: str = UNSET
    payment_method: str = UNSET
    transaction_reference: str | None = UNSET
    is_advance_payment: bool = UNSET


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContractTerms:
    """The contract fields the schedule generator reads."""

    contract_id: UUID
    tenant_id: UUID
    apartment_id: UUID
    start_date: date | None
    end_date: date | None
    monthly_rent: Decimal
    security_fee: Decimal | None = None

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractTerms:
        return cls(
            contract_id=model.id,
            tenant_id=model.tenant_id,
            apartment_id=model.apartment_id,
            start_date=model.start_date,
            end_date=model.end_date,
            monthly_rent=model.monthly_rent,
            security_fee=model.security_fee,
        )


@dataclass(frozen=True)
class ContractInput:
    tenant_id: UUID
    apartment_id: UUID
    start_date: date
    end_date: date
    monthly_rent: Decimal
    owner_id: UUID | None = None
    currency: str | None = None
    security_fee: Decimal | None = None
    status: ContractStatus = ContractStatus.PENDING


@dataclass(frozen=True)
class ScheduleInput:
    """A single hand-entered schedule row."""

    contract_id: UUID
    tenant_id: UUID
    apartment_id: UUID
    payment_type: SchedulePaymentType
    amount: Decimal
    due_date: date
    status: ScheduleStatus = ScheduleStatus.PENDING
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class TransactionInput:
    """
    Caller-supplied transaction fields.

    None means "not supplied"; the recorder substitutes explicit defaults
    (currency, method, type, date, status, zero fees) and a generated
    reference number.
    """

    tenant_id: UUID | None
    apartment_id: UUID | None
    amount: Decimal
    contract_id: UUID | None = None
    transaction_type: TransactionType | None = None
    currency: str | None = None
    payment_method: PaymentMethod | None = None
    transaction_date: date | None = None
    due_date: date | None = None
    status: TransactionStatus | None = None
    description: str | None = None
    reference_number: str | None = None
    receipt_path: str | None = None
    processing_fee: Decimal | None = None
    late_fee: Decimal | None = None
    billing_period_start: date | None = None
    billing_period_end: date | None = None
    created_by_id: UUID | None = None


@dataclass(frozen=True)
class RentPaymentInput:
    """A rent payment processed at the counter: amount = rent + late fee."""

    tenant_id: UUID
    apartment_id: UUID
    rent_amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    late_fee: Decimal = Decimal("0")
    contract_id: UUID | None = None
    transaction_date: date | None = None
    billing_period_start: date | None = None
    billing_period_end: date | None = None
    description: str | None = None
    reference_number: str | None = None
    receipt_path: str | None = None
    created_by_id: UUID | None = None


@dataclass(frozen=True)
class PaymentInput:
    tenant_id: UUID
    amount: Decimal
    invoice_id: UUID | None = None
    contract_id: UUID | None = None
    payment_date: date | None = None
    currency: str | None = None
    payment_method: str = PaymentMethod.BANK_TRANSFER.value
    transaction_reference: str | None = None
    is_advance_payment: bool = False


@dataclass(frozen=True)
class InvoiceInput:
    tenant_id: UUID
    apartment_id: UUID
    total_amount: Decimal
    due_date: date
    contract_id: UUID | None = None
    invoice_date: date | None = None
    billing_period_start: date | None = None
    billing_period_end: date | None = None
    currency: str | None = None


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransactionFilters:
    tenant_id: UUID | None = None
    apartment_id: UUID | None = None
    contract_id: UUID | None = None
    transaction_type: TransactionType | None = None
    status: TransactionStatus | None = None
    payment_method: PaymentMethod | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class ScheduleFilters:
    contract_id: UUID | None = None
    tenant_id: UUID | None = None
    apartment_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class HistoryFilters:
    year: int | None = None
    tenant_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: HistoryStatus | None = None


@dataclass(frozen=True)
class InvoiceFilters:
    """overdue keeps invoices past due_date that are neither Paid nor Cancelled."""

    status: InvoiceStatus | None = None
    tenant_id: UUID | None = None
    contract_id: UUID | None = None
    overdue: bool = False


@dataclass(frozen=True)
class PaymentFilters:
    tenant_id: UUID | None = None
    contract_id: UUID | None = None
    invoice_id: UUID | None = None
    payment_method: str | None = None
    is_advance_payment: bool | None = None
    start_date: date | None = None
    end_date: date | None = None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContractRecord:
    id: UUID
    tenant_id: UUID
    apartment_id: UUID
    owner_id: UUID | None
    start_date: date | None
    end_date: date | None
    monthly_rent: Decimal
    currency: str
    security_fee: Decimal | None
    status: ContractStatus

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractRecord:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            apartment_id=model.apartment_id,
            owner_id=model.owner_id,
            start_date=model.start_date,
            end_date=model.end_date,
            monthly_rent=model.monthly_rent,
            currency=model.currency,
            security_fee=model.security_fee,
            status=ContractStatus(model.status),
        )


@dataclass(frozen=True)
class ScheduleRow:
    """A persisted schedule row."""

    id: UUID
    contract_id: UUID
    tenant_id: UUID
    apartment_id: UUID
    payment_type: SchedulePaymentType
    amount: Decimal
    due_date: date
    status: ScheduleStatus
    transaction_id: UUID | None

    @classmethod
    def from_model(cls, model: ScheduleModel) -> ScheduleRow:
        return cls(
            id=model.id,
            contract_id=model.contract_id,
            tenant_id=model.tenant_id,
            apartment_id=model.apartment_id,
            payment_type=SchedulePaymentType(model.payment_type),
            amount=model.amount,
            due_date=model.due_date,
            status=ScheduleStatus(model.status),
            transaction_id=model.transaction_id,
        )


@dataclass(frozen=True)
class TransactionRecord:
    """
    A transaction joined with its display context.

    The display fields (tenant, unit, building, contract, creator) are
    denormalized at read time and are None when the linked row is absent.
    """

    id: UUID
    tenant_id: UUID | None
    apartment_id: UUID | None
    contract_id: UUID | None
    transaction_type: TransactionType
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    transaction_date: date
    due_date: date | None
    status: TransactionStatus
    description: str | None
    reference_number: str | None
    receipt_path: str | None
    processing_fee: Decimal
    late_fee: Decimal
    billing_period_start: date | None
    billing_period_end: date | None
    created_by_id: UUID | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tenant_name: str | None = None
    tenant_email: str | None = None
    tenant_phone: str | None = None
    unit_number: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    rent_price: Decimal | None = None
    floor_name: str | None = None
    building_id: UUID | None = None
    building_name: str | None = None
    building_address: str | None = None
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    security_fee: Decimal | None = None
    created_by_name: str | None = None


@dataclass(frozen=True)
class HistoryRecord:
    id: UUID
    tenant_id: UUID | None
    apartment_id: UUID | None
    contract_id: UUID | None
    transaction_id: UUID
    payment_month: date
    rent_amount: Decimal
    late_fee: Decimal
    total_paid: Decimal
    payment_date: date
    payment_method: PaymentMethod
    status: HistoryStatus
    notes: str | None = None

    @classmethod
    def from_model(cls, model: HistoryModel) -> HistoryRecord:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            apartment_id=model.apartment_id,
            contract_id=model.contract_id,
            transaction_id=model.transaction_id,
            payment_month=model.payment_month,
            rent_amount=model.rent_amount,
            late_fee=model.late_fee,
            total_paid=model.total_paid,
            payment_date=model.payment_date,
            payment_method=PaymentMethod(model.payment_method),
            status=HistoryStatus(model.status),
            notes=model.notes,
        )


@dataclass(frozen=True)
class InvoiceRecord:
    id: UUID
    contract_id: UUID | None
    tenant_id: UUID
    apartment_id: UUID
    invoice_number: str
    invoice_date: date
    due_date: date
    billing_period_start: date | None
    billing_period_end: date | None
    total_amount: Decimal
    amount_due: Decimal
    currency: str
    status: InvoiceStatus

    @classmethod
    def from_model(cls, model: InvoiceModel) -> InvoiceRecord:
        return cls(
            id=model.id,
            contract_id=model.contract_id,
            tenant_id=model.tenant_id,
            apartment_id=model.apartment_id,
            invoice_number=model.invoice_number,
            invoice_date=model.invoice_date,
            due_date=model.due_date,
            billing_period_start=model.billing_period_start,
            billing_period_end=model.billing_period_end,
            total_amount=model.total_amount,
            amount_due=model.amount_due,
            currency=model.currency,
            status=InvoiceStatus(model.status),
        )


@dataclass(frozen=True)
class PaymentRecord:
    id: UUID
    invoice_id: UUID | None
    contract_id: UUID | None
    tenant_id: UUID
    payment_date: date
    amount: Decimal
    currency: str
    payment_method: str
    transaction_reference: str | None
    is_advance_payment: bool
    refunded_payment_id: UUID | None = None
    invoice: InvoiceRecord | None = field(default=None)

    @classmethod
    def from_model(
        cls,
        model: PaymentModel,
        invoice: InvoiceRecord | None = None,
    ) -> PaymentRecord:
        return cls(
            id=model.id,
            invoice_id=model.invoice_id,
            contract_id=model.contract_id,
            tenant_id=model.tenant_id,
            payment_date=model.payment_date,
            amount=model.amount,
            currency=model.currency,
            payment_method=model.payment_method,
            transaction_reference=model.transaction_reference,
            is_advance_payment=model.is_advance_payment,
            refunded_payment_id=model.refunded_payment_id,
            invoice=invoice,
        )
