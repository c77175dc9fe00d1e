"""
rental_services.transaction_service -- financial transactions and their history.

Responsibility:
    Records financial transactions and keeps the payment-history
    projection of completed rent payments in step with them on create,
    update and delete.  Also processes counter rent payments (rent plus
    late fee, with a method-dependent processing fee).

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ``rental_engines.payment_history`` (history derivation, fee
    rules) and ``rental_engines.references`` (reference numbers) with the
    session.  Flush-only.

Invariants enforced:
    - Defaults are explicit: currency, method, type and status come from
      ``TransactionDefaults``; the date from the injected clock; fees are
      0.00, never NULL.
    - A Completed Rent Payment has exactly one history row; any other
      transaction has none.  Create, update and delete all restore this
      inside the caller's unit of work.
    - An empty patch is rejected before the store is touched.
    - History rows are deleted before their transaction.

Failure modes:
    - EmptyPatchError / UnknownPatchFieldError for bad patches.
    - InvalidAmountError for negative amounts/fees or a late fee larger
      than the amount of a completed rent payment.
    - TransactionNotFoundError from update().
    - IntegrityError on a duplicate reference number, propagated
      unmodified; nothing regenerates silently.

Audit relevance:
    Every create/update/delete is logged with the transaction id,
    reference number and whether a history row was written or removed.
"""

from __future__ import annotations

import random
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select

from rental_config.schema import TransactionDefaults
from rental_engines.payment_history import (
    HistoryProjection,
    ProcessingFeeSchedule,
    derive_history,
    processing_fee_for,
)
from rental_engines.references import transaction_reference
from rental_kernel.db.types import ZERO, to_money, validate_currency
from rental_kernel.domain.clock import Clock
from rental_kernel.domain.dtos import RentPaymentInput, TransactionInput, TransactionPatch
from rental_kernel.domain.values import PaymentMethod, TransactionStatus, TransactionType
from rental_kernel.exceptions import (
    InvalidAmountError,
    TransactionNotFoundError,
    ValidationError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.transaction import FinancialTransaction, TenantPaymentHistory
from rental_kernel.services.base import BaseService
from rental_kernel.services.contract_service import ContractService

logger = get_logger("services.transaction")

_MONEY_FIELDS = ("processing_fee", "late_fee")


def _non_negative(value: Decimal | None, field: str) -> Decimal:
    amount = to_money(value, field)
    if amount is None:
        return ZERO
    if amount < 0:
        raise InvalidAmountError(field, amount, "must not be negative")
    return amount


class TransactionRecorder(BaseService):
    """
    Writes financial transactions and their derived history rows.

    Contract:
        Methods flush and return ORM rows; the caller commits and re-reads
        the joined record.

    Guarantees:
        - History symmetry (see module docstring) after every method.

    Non-goals:
        - Does NOT check access scope; LedgerService does that first.
        - Does NOT settle schedule rows.
    """

    def __init__(
        self,
        session,
        clock: Clock,
        rng: random.Random | None = None,
        defaults: TransactionDefaults | None = None,
        fee_schedule: ProcessingFeeSchedule | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._rng = rng or random.Random()
        self._defaults = defaults or TransactionDefaults()
        self._fees = fee_schedule or ProcessingFeeSchedule()

    # -- create --------------------------------------------------------------

    def create(self, data: TransactionInput) -> FinancialTransaction:
        amount = _non_negative(data.amount, "amount")
        transaction_date = data.transaction_date or self._clock.today()

        contract_id = data.contract_id
        if contract_id is None and data.tenant_id and data.apartment_id:
            contract = ContractService(self.session).find_for_tenant_apartment(
                data.tenant_id, data.apartment_id
            )
            contract_id = contract.id if contract else None

        txn = FinancialTransaction(
            tenant_id=data.tenant_id,
            apartment_id=data.apartment_id,
            contract_id=contract_id,
            transaction_type=TransactionType(
                data.transaction_type or self._defaults.transaction_type
            ).value,
            amount=amount,
            currency=validate_currency(data.currency or self._defaults.currency),
            payment_method=PaymentMethod(
                data.payment_method or self._defaults.payment_method
            ).value,
            transaction_date=transaction_date,
            due_date=data.due_date,
            status=TransactionStatus(data.status or self._defaults.status).value,
            description=data.description,
            reference_number=data.reference_number
            or transaction_reference(transaction_date, self._rng),
            receipt_path=data.receipt_path,
            processing_fee=_non_negative(data.processing_fee, "processing_fee"),
            late_fee=_non_negative(data.late_fee, "late_fee"),
            billing_period_start=data.billing_period_start,
            billing_period_end=data.billing_period_end,
            created_by_id=data.created_by_id,
        )
        # Derive before writing anything so a bad late fee leaves no rows.
        projection = self._project(txn) if txn.is_completed_rent_payment else None

        self.session.add(txn)
        self.session.flush()
        if projection is not None:
            self._insert_history(txn, projection)

        logger.info(
            "transaction_recorded",
            extra={
                "transaction_id": str(txn.id),
                "reference_number": txn.reference_number,
                "transaction_type": txn.transaction_type,
                "status": txn.status,
                "amount": str(txn.amount),
                "history_written": projection is not None,
            },
        )
        return txn

    def process_rent_payment(self, data: RentPaymentInput) -> FinancialTransaction:
        """Record a Completed Rent Payment of rent plus late fee."""
        rent = to_money(data.rent_amount, "rent_amount")
        if rent is None or rent <= 0:
            raise InvalidAmountError("rent_amount", rent, "must be positive")
        late_fee = _non_negative(data.late_fee, "late_fee")
        method = PaymentMethod(data.payment_method)

        description = data.description or (
            "Monthly rent payment for "
            f"{data.billing_period_start or 'current period'} to "
            f"{data.billing_period_end or 'current period'}"
        )
        return self.create(
            TransactionInput(
                tenant_id=data.tenant_id,
                apartment_id=data.apartment_id,
                contract_id=data.contract_id,
                amount=rent + late_fee,
                transaction_type=TransactionType.RENT_PAYMENT,
                payment_method=method,
                transaction_date=data.transaction_date,
                status=TransactionStatus.COMPLETED,
                description=description,
                reference_number=data.reference_number,
                receipt_path=data.receipt_path,
                processing_fee=processing_fee_for(method, rent, self._fees),
                late_fee=late_fee,
                billing_period_start=data.billing_period_start,
                billing_period_end=data.billing_period_end,
                created_by_id=data.created_by_id,
            )
        )

    # -- update --------------------------------------------------------------

    def update(self, transaction_id: UUID, patch: TransactionPatch) -> FinancialTransaction:
        changes = patch.require_changes()

        txn = self.session.get(FinancialTransaction, transaction_id, with_for_update=True)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)

        for name, value in changes.items():
            setattr(txn, name, self._coerce(name, value))
        self.session.flush()

        history_action = self._sync_history(txn)
        logger.info(
            "transaction_updated",
            extra={
                "transaction_id": str(txn.id),
                "fields": sorted(changes),
                "history_action": history_action,
            },
        )
        return txn

    def _coerce(self, name: str, value: Any) -> Any:
        if name == "status":
            return TransactionStatus(value).value
        if name in _MONEY_FIELDS:
            if value is None:
                raise InvalidAmountError(name, None, "must not be null")
            return _non_negative(value, name)
        if name == "transaction_date" and value is None:
            raise ValidationError("transaction_date must not be null")
        return value

    # -- delete --------------------------------------------------------------

    def delete(self, transaction_id: UUID) -> bool:
        txn = self.session.get(FinancialTransaction, transaction_id, with_for_update=True)
        if txn is None:
            return False
        removed = self.session.execute(
            delete(TenantPaymentHistory).where(
                TenantPaymentHistory.transaction_id == transaction_id
            )
        ).rowcount
        self.session.delete(txn)
        self.session.flush()
        logger.info(
            "transaction_deleted",
            extra={"transaction_id": str(transaction_id), "history_rows_removed": removed},
        )
        return True

    # -- history projection --------------------------------------------------

    @staticmethod
    def _project(txn: FinancialTransaction) -> HistoryProjection:
        return derive_history(
            amount=txn.amount,
            late_fee=txn.late_fee,
            transaction_date=txn.transaction_date,
            billing_period_start=txn.billing_period_start,
            payment_method=PaymentMethod(txn.payment_method),
        )

    def _insert_history(self, txn: FinancialTransaction, projection: HistoryProjection) -> None:
        self.session.add(
            TenantPaymentHistory(
                tenant_id=txn.tenant_id,
                apartment_id=txn.apartment_id,
                contract_id=txn.contract_id,
                transaction_id=txn.id,
                notes=txn.description,
                **_history_values(projection),
            )
        )
        self.session.flush()

    def _sync_history(self, txn: FinancialTransaction) -> str:
        """Make the history row match ``txn``.  Returns the action taken."""
        existing = self.session.execute(
            select(TenantPaymentHistory).where(TenantPaymentHistory.transaction_id == txn.id)
        ).scalar_one_or_none()

        if not txn.is_completed_rent_payment:
            if existing is None:
                return "none"
            self.session.delete(existing)
            self.session.flush()
            return "removed"

        projection = self._project(txn)
        if existing is None:
            self._insert_history(txn, projection)
            return "inserted"

        for name, value in _history_values(projection).items():
            setattr(existing, name, value)
        existing.notes = txn.description
        self.session.flush()
        return "updated"


def _history_values(projection: HistoryProjection) -> dict[str, Any]:
    return {
        "payment_month": projection.payment_month,
        "rent_amount": projection.rent_amount,
        "late_fee": projection.late_fee,
        "total_paid": projection.total_paid,
        "payment_date": projection.payment_date,
        "payment_method": projection.payment_method.value,
        "status": projection.status.value,
    }
