"""
Typed exception hierarchy for the rental ledger kernel.

Every error the kernel raises on purpose is a subclass of
``RentalLedgerError`` and carries a ``code`` class attribute (machine
readable, API safe) plus the structured data that produced it.  Callers
catch by type, never by message text.

    RentalLedgerError (base)
    |
    +-- ValidationError
    |   +-- EmptyPatchError
    |   +-- UnknownPatchFieldError
    |   +-- InvalidContractTermsError
    |   +-- InvalidAmountError
    |   +-- InvalidCurrencyError
    |   +-- RefundExceedsPaymentError
    |   +-- InvalidRefundError
    |   +-- InvalidPaginationError
    |   +-- InvalidScheduleStatusError
    |   +-- InvalidInvoiceStatusError
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- ScheduleNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- AccessError
    |   +-- AccessDeniedError
    |
    +-- ContractError
        +-- ContractReferencedError

Store errors are NOT wrapped.  A repeated lock-wait timeout surfaces as the
driver's ``OperationalError`` and integrity violations (duplicate reference
number, foreign key) surface as SQLAlchemy's ``IntegrityError``, unmodified.

Error codes
-----------

Category    | Code                      | When raised
------------|---------------------------|------------------------------------
Validation  | EMPTY_PATCH               | Patch carries no mutable field
            | UNKNOWN_PATCH_FIELD       | Patch names a non-mutable field
            | INVALID_CONTRACT_TERMS    | start > end, missing end, rent <= 0
            | INVALID_AMOUNT            | Negative or otherwise bad amount
            | INVALID_CURRENCY          | Not a three-letter currency code
            | REFUND_EXCEEDS_PAYMENT    | Refund larger than original payment
            | INVALID_REFUND            | Refund row written outside refund_payment
            | INVALID_PAGINATION        | Negative / non-integer limit, offset
            | INVALID_SCHEDULE_STATUS   | Unknown schedule status
            | INVALID_INVOICE_STATUS    | Status change the workflow rejects
------------|---------------------------|------------------------------------
Not found   | CONTRACT_NOT_FOUND        | Contract id does not exist
            | SCHEDULE_NOT_FOUND        | Schedule id does not exist
            | TRANSACTION_NOT_FOUND     | Transaction id does not exist
            | INVOICE_NOT_FOUND         | Invoice id does not exist
            | PAYMENT_NOT_FOUND         | Payment id does not exist
------------|---------------------------|------------------------------------
Access      | ACCESS_DENIED             | Actor outside scope or role denied
------------|---------------------------|------------------------------------
Contract    | CONTRACT_REFERENCED       | Delete blocked by schedule rows
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class RentalLedgerError(Exception):
    """
    Base exception for all rental ledger errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "RENTAL_LEDGER_ERROR"


# Validation / business-rule errors (raised before any store write)


class ValidationError(RentalLedgerError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class EmptyPatchError(ValidationError):
    """Patch does not carry any mutable field."""

    code: str = "EMPTY_PATCH"

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"No valid fields to update on {entity}")


class UnknownPatchFieldError(ValidationError):
    """Patch names fields that are not mutable on this entity."""

    code: str = "UNKNOWN_PATCH_FIELD"

    def __init__(self, entity: str, fields: list[str], allowed: list[str]):
        self.entity = entity
        self.fields = fields
        self.allowed = allowed
        super().__init__(
            f"Fields {sorted(fields)} cannot be updated on {entity}; "
            f"allowed: {sorted(allowed)}"
        )


class InvalidContractTermsError(ValidationError):
    """Contract terms cannot produce a schedule or a valid contract."""

    code: str = "INVALID_CONTRACT_TERMS"

    def __init__(self, reason: str, **details: Any):
        self.reason = reason
        self.details = details
        super().__init__(f"Invalid contract terms: {reason}")


class InvalidAmountError(ValidationError):
    """A monetary amount violates its business rule."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal | None, reason: str):
        self.field = field
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid {field} ({amount}): {reason}")


class RefundExceedsPaymentError(ValidationError):
    """Refund amount is larger than the payment it refunds."""

    code: str = "REFUND_EXCEEDS_PAYMENT"

    def __init__(self, payment_id: str, refund_amount: Decimal, payment_amount: Decimal):
        self.payment_id = payment_id
        self.refund_amount = refund_amount
        self.payment_amount = payment_amount
        super().__init__(
            f"Refund amount {refund_amount} cannot exceed payment amount "
            f"{payment_amount} (payment {payment_id})"
        )


class InvalidRefundError(ValidationError):
    """A write would detach a refund from the payment it refunds."""

    code: str = "INVALID_REFUND"

    def __init__(self, payment_id: Any, reason: str):
        self.payment_id = str(payment_id) if payment_id is not None else None
        self.reason = reason
        super().__init__(f"Invalid refund write (payment {payment_id}): {reason}")


class InvalidCurrencyError(ValidationError):
    """Currency is not a three-letter ISO 4217 style code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: '{currency}'")


class InvalidPaginationError(ValidationError):
    """Limit/offset are not non-negative integers."""

    code: str = "INVALID_PAGINATION"

    def __init__(self, limit: Any, offset: Any):
        self.limit = limit
        self.offset = offset
        super().__init__(
            f"Pagination requires non-negative integers, got limit={limit!r} "
            f"offset={offset!r}"
        )


class InvalidScheduleStatusError(ValidationError):
    """Unknown payment schedule status."""

    code: str = "INVALID_SCHEDULE_STATUS"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Invalid payment schedule status: {status}")


class InvalidInvoiceStatusError(ValidationError):
    """
    Invoice status change the workflow does not allow.

    Paid, Partially Paid and Generated are derived from the payment set;
    only the workflow statuses (Sent, Overdue, Cancelled) are settable.
    Sent and Overdue apply to unpaid invoices only, and Cancelled is final.
    """

    code: str = "INVALID_INVOICE_STATUS"

    def __init__(self, status: str, reason: str = "not a workflow status"):
        self.status = status
        self.reason = reason
        super().__init__(f"Invoice status {status!r} rejected: {reason}")


# Not-found errors


class NotFoundError(RentalLedgerError):
    """Base exception for missing rows."""

    code: str = "NOT_FOUND"
    entity: str = "record"

    def __init__(self, record_id: Any):
        self.record_id = str(record_id)
        super().__init__(f"{self.entity} not found: {record_id}")


class ContractNotFoundError(NotFoundError):
    code: str = "CONTRACT_NOT_FOUND"
    entity = "Contract"


class ScheduleNotFoundError(NotFoundError):
    code: str = "SCHEDULE_NOT_FOUND"
    entity = "Payment schedule"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity = "Transaction"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity = "Invoice"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity = "Payment"


# Access-scope errors


class AccessError(RentalLedgerError):
    """Base exception for scope violations."""

    code: str = "ACCESS_ERROR"


class AccessDeniedError(AccessError):
    """
    Actor may not see or modify the requested rows.

    Distinct from NotFoundError: the kernel always reports denial
    explicitly; hiding existence is a decision of the HTTP layer.
    """

    code: str = "ACCESS_DENIED"

    def __init__(self, actor_id: str, role: str, reason: str):
        self.actor_id = actor_id
        self.role = role
        self.reason = reason
        super().__init__(f"Access denied for {role} {actor_id}: {reason}")


# Contract lifecycle errors


class ContractError(RentalLedgerError):
    """Base exception for contract lifecycle errors."""

    code: str = "CONTRACT_ERROR"


class ContractReferencedError(ContractError):
    """Contract still has payment schedule rows referencing it."""

    code: str = "CONTRACT_REFERENCED"

    def __init__(self, contract_id: str, schedule_count: int):
        self.contract_id = contract_id
        self.schedule_count = schedule_count
        super().__init__(
            f"Contract {contract_id} is referenced by {schedule_count} "
            f"payment schedule row(s)"
        )
