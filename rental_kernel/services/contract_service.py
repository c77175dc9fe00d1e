"""
ContractService -- tenancy contract persistence.

Responsibility:
    Creates, looks up and deletes contracts, and resolves "the contract of
    this tenant on this apartment" for transactions that arrive without a
    contract id.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.

Invariants enforced:
    - start_date <= end_date and monthly_rent > 0, checked before any
      write (InvalidContractTermsError) and again by check constraints.
    - A contract referenced by schedule rows is never hard-deleted
      (ContractReferencedError).  Callers bulk-delete its schedules first.

Failure modes:
    - ContractNotFoundError from get()/delete().
    - ContractReferencedError from delete().
    - InvalidContractTermsError / InvalidCurrencyError from create().
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, func, select

from rental_kernel.db.types import to_money, validate_currency
from rental_kernel.domain.dtos import ContractInput
from rental_kernel.domain.values import ContractStatus
from rental_kernel.exceptions import (
    ContractNotFoundError,
    ContractReferencedError,
    InvalidContractTermsError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.models.schedule import PaymentSchedule
from rental_kernel.services.base import BaseService

logger = get_logger("services.contract")


class ContractService(BaseService):
    """
    Contract lifecycle.

    Guarantees:
        - delete() never orphans schedule rows.
        - find_for_tenant_apartment() prefers an Active contract, then the
          one starting latest.
    """

    def create(self, data: ContractInput, default_currency: str = "AED") -> Contract:
        rent = to_money(data.monthly_rent, "monthly_rent")
        if rent is None or rent <= 0:
            raise InvalidContractTermsError("monthly_rent must be positive", monthly_rent=rent)
        if data.start_date and data.end_date and data.start_date > data.end_date:
            raise InvalidContractTermsError(
                "start_date is after end_date",
                start_date=data.start_date,
                end_date=data.end_date,
            )

        contract = Contract(
            tenant_id=data.tenant_id,
            apartment_id=data.apartment_id,
            owner_id=data.owner_id,
            start_date=data.start_date,
            end_date=data.end_date,
            monthly_rent=rent,
            currency=validate_currency(data.currency or default_currency),
            security_fee=to_money(data.security_fee, "security_fee"),
            status=ContractStatus(data.status).value,
        )
        self.session.add(contract)
        self.session.flush()
        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "tenant_id": str(contract.tenant_id),
                "apartment_id": str(contract.apartment_id),
            },
        )
        return contract

    def get(self, contract_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    def find_for_tenant_apartment(self, tenant_id: UUID, apartment_id: UUID) -> Contract | None:
        active_first = case((Contract.status == ContractStatus.ACTIVE.value, 0), else_=1)
        return self.session.execute(
            select(Contract)
            .where(Contract.tenant_id == tenant_id, Contract.apartment_id == apartment_id)
            .order_by(active_first, Contract.start_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    def schedule_count(self, contract_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PaymentSchedule.id)).where(
                PaymentSchedule.contract_id == contract_id
            )
        ).scalar_one()

    def delete(self, contract_id: UUID) -> None:
        contract = self.get(contract_id)
        referencing = self.schedule_count(contract_id)
        if referencing:
            raise ContractReferencedError(str(contract_id), referencing)
        self.session.delete(contract)
        self.session.flush()
        logger.info("contract_deleted", extra={"contract_id": str(contract_id)})
