"""
rental_services.schedule_service -- payment obligations from contract terms.

Responsibility:
    Turns a contract's terms into persisted schedule rows (monthly rent
    rows, a one-time security deposit row) and performs the few writes a
    schedule row ever sees: manual creation, the status transition when it
    is settled, and bulk deletion per contract.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ``rental_engines.schedule`` (pure date planning) with the
    session.  Flush-only; the unit of work belongs to the caller.

Invariants enforced:
    - Monthly rows are written with ONE batch insert statement.
    - Every generated due date lies within [start_date, end_date].
    - Rows are created Pending; the only mutation is the status transition.

Failure modes:
    - InvalidContractTermsError for a missing or inverted date window, or a
      non-positive rent.
    - ScheduleNotFoundError / InvalidScheduleStatusError on status updates.
    - IntegrityError (e.g. unknown contract id) propagates unmodified.

Audit relevance:
    Generation and deletion are logged with the contract id and row count.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import delete, insert

from rental_engines.schedule import DEFAULT_DUE_DAY, plan_monthly_rent, plan_security_deposit
from rental_kernel.db.types import to_money
from rental_kernel.domain.dtos import ContractTerms, ScheduleInput
from rental_kernel.domain.values import SchedulePaymentType, ScheduleStatus
from rental_kernel.exceptions import (
    InvalidAmountError,
    InvalidContractTermsError,
    InvalidScheduleStatusError,
    ScheduleNotFoundError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.models.schedule import PaymentSchedule
from rental_kernel.services.base import BaseService
from rental_kernel.services.contract_service import ContractService

logger = get_logger("services.schedule")


class ScheduleGenerator(BaseService):
    """
    Writes schedule rows for a contract.

    Contract:
        ``generate_monthly_rent`` and ``generate_security_deposit`` return
        the number of rows written (0 or 1 for the deposit).  Callers
        re-read the contract's rows after commit.

    Guarantees:
        - No row is written when planning fails.

    Non-goals:
        - Does NOT deduplicate: generating twice for one contract writes
          two sets of rows.
    """

    def __init__(self, session, due_day: int = DEFAULT_DUE_DAY):
        super().__init__(session)
        self._due_day = due_day

    def generate_monthly_rent(self, terms: ContractTerms) -> int:
        planned = plan_monthly_rent(terms=terms, due_day=self._due_day)
        if planned:
            self.session.execute(
                insert(PaymentSchedule),
                [
                    {
                        "id": uuid4(),
                        "contract_id": terms.contract_id,
                        "tenant_id": terms.tenant_id,
                        "apartment_id": terms.apartment_id,
                        "payment_type": obligation.payment_type.value,
                        "amount": obligation.amount,
                        "due_date": obligation.due_date,
                        "status": ScheduleStatus.PENDING.value,
                    }
                    for obligation in planned
                ],
            )
        logger.info(
            "monthly_rent_schedule_generated",
            extra={"contract_id": str(terms.contract_id), "row_count": len(planned)},
        )
        return len(planned)

    def generate_security_deposit(self, terms: ContractTerms) -> int:
        planned = plan_security_deposit(terms=terms)
        if planned is None:
            logger.debug(
                "security_deposit_not_applicable",
                extra={"contract_id": str(terms.contract_id)},
            )
            return 0
        self.session.add(
            PaymentSchedule(
                contract_id=terms.contract_id,
                tenant_id=terms.tenant_id,
                apartment_id=terms.apartment_id,
                payment_type=planned.payment_type.value,
                amount=planned.amount,
                due_date=planned.due_date,
                status=ScheduleStatus.PENDING.value,
            )
        )
        self.session.flush()
        logger.info(
            "security_deposit_schedule_generated",
            extra={"contract_id": str(terms.contract_id), "amount": str(planned.amount)},
        )
        return 1

    def create(self, data: ScheduleInput) -> PaymentSchedule:
        """Persist one hand-entered schedule row."""
        amount = to_money(data.amount)
        if amount is None or amount <= 0:
            raise InvalidAmountError("amount", amount, "must be positive")

        contract: Contract = ContractService(self.session).get(data.contract_id)
        if (contract.start_date and data.due_date < contract.start_date) or (
            contract.end_date and data.due_date > contract.end_date
        ):
            raise InvalidContractTermsError(
                "due_date outside the contract window",
                contract_id=str(contract.id),
                due_date=data.due_date,
            )

        row = PaymentSchedule(
            contract_id=data.contract_id,
            tenant_id=data.tenant_id,
            apartment_id=data.apartment_id,
            payment_type=SchedulePaymentType(data.payment_type).value,
            amount=amount,
            due_date=data.due_date,
            status=_status(data.status).value,
            transaction_id=data.transaction_id,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def update_status(
        self,
        schedule_id: UUID,
        status: ScheduleStatus | str,
        transaction_id: UUID | None = None,
    ) -> PaymentSchedule:
        new_status = _status(status)
        row = self.session.get(PaymentSchedule, schedule_id, with_for_update=True)
        if row is None:
            raise ScheduleNotFoundError(schedule_id)
        row.status = new_status.value
        if transaction_id is not None:
            row.transaction_id = transaction_id
        self.session.flush()
        logger.info(
            "schedule_status_updated",
            extra={
                "schedule_id": str(schedule_id),
                "status": new_status.value,
                "transaction_id": str(transaction_id) if transaction_id else None,
            },
        )
        return row

    def delete_by_contract(self, contract_id: UUID) -> int:
        result = self.session.execute(
            delete(PaymentSchedule).where(PaymentSchedule.contract_id == contract_id)
        )
        logger.info(
            "schedules_deleted",
            extra={"contract_id": str(contract_id), "row_count": result.rowcount},
        )
        return result.rowcount


def _status(value: ScheduleStatus | str) -> ScheduleStatus:
    try:
        return ScheduleStatus(value)
    except ValueError as exc:
        raise InvalidScheduleStatusError(str(value)) from exc
