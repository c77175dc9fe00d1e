"""ORM models for the rental ledger."""

from rental_kernel.domain.values import (
    REFUND_PAYMENT_METHOD,
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
from rental_kernel.models.contract import Contract
from rental_kernel.models.invoice import Invoice, Payment
from rental_kernel.models.property import (
    Apartment,
    ApartmentAssignment,
    Building,
    BuildingAssignment,
    Floor,
    Tenant,
    User,
)
from rental_kernel.models.schedule import PaymentSchedule
from rental_kernel.models.sequence import SequenceCounter
from rental_kernel.models.transaction import FinancialTransaction, TenantPaymentHistory

__all__ = [
    "User",
    "UserRole",
    "Building",
    "BuildingAssignment",
    "Floor",
    "Apartment",
    "Tenant",
    "ApartmentAssignment",
    "Contract",
    "ContractStatus",
    "PaymentSchedule",
    "SchedulePaymentType",
    "ScheduleStatus",
    "FinancialTransaction",
    "TenantPaymentHistory",
    "TransactionType",
    "TransactionStatus",
    "PaymentMethod",
    "HistoryStatus",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "REFUND_PAYMENT_METHOD",
    "SequenceCounter",
]
