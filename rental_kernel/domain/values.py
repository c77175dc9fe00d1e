"""
Values -- enumerated vocabularies of the rental ledger.

Responsibility:
    Defines every closed set of strings the ledger stores: roles, contract
    and schedule states, transaction types/methods/states, history and
    invoice states.  Models, DTOs, engines and services all import them
    from here so that one spelling exists per value.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no ORM imports.

Invariants enforced:
    - Values are the exact strings persisted in String columns.  They are
      str subclasses, so rows loaded back as plain strings compare equal.
"""

from enum import Enum


class UserRole(str, Enum):
    """Platform roles.  Only ADMIN and OWNER may read financial rows."""

    ADMIN = "Admin"
    OWNER = "Owner"
    MANAGER = "Manager"
    STAFF = "Staff"
    TENANT = "Tenant"


class ContractStatus(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    EXPIRED = "Expired"
    TERMINATED = "Terminated"


class SchedulePaymentType(str, Enum):
    MONTHLY_RENT = "Monthly Rent"
    SECURITY_DEPOSIT = "Security Deposit"


class ScheduleStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"


class TransactionType(str, Enum):
    RENT_PAYMENT = "Rent Payment"
    SECURITY_DEPOSIT = "Security Deposit"
    MAINTENANCE_FEE = "Maintenance Fee"
    UTILITY_PAYMENT = "Utility Payment"
    LATE_FEE = "Late Fee"
    REFUND = "Refund"
    OTHER = "Other"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "Bank Transfer"
    CREDIT_CARD = "Credit Card"
    CASH = "Cash"
    CHEQUE = "Cheque"
    ONLINE_PAYMENT = "Online Payment"


class TransactionStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class HistoryStatus(str, Enum):
    ON_TIME = "On Time"
    LATE = "Late"
    PARTIAL = "Partial"


class InvoiceStatus(str, Enum):
    GENERATED = "Generated"
    SENT = "Sent"
    PAID = "Paid"
    PARTIALLY_PAID = "Partially Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


# Payment.payment_method value used for refund rows
REFUND_PAYMENT_METHOD = "Refund"
