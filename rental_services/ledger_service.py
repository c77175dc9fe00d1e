"""
rental_services.ledger_service -- the library boundary of the rental ledger.

Responsibility:
    The single entry point callers (the HTTP layer, scripts, tests) use for
    every financial operation: contracts and their schedules, transactions
    and payment history, invoices and payments, statistics, and access
    scope computation.

Architecture position:
    Services -- top of the stack.  Wires configuration into kernel and
    engine inputs, owns the unit of work for every call, and enforces the
    actor's access scope before any read or write.

Invariants enforced:
    - Unit of work: every write runs inside ``RetryService.run`` -- a
      fresh ``session_scope`` per attempt with commit-or-rollback on every
      exit path.  Transient lock contention is retried per the policy
      (default: once, after 0.2 s).
    - Read-after-commit: returned records are re-read in a new session
      after the write committed, so callers observe persisted state.
    - Scope before store: Admin sees everything, Owner sees their scope,
      any other role is denied.  Single-row operations report not-found
      before access denial.
    - Patch validation (unknown / empty) happens before any session opens.

Failure modes:
    - Every kernel exception propagates unmodified; nothing is swallowed.
    - IntegrityError and a repeated OperationalError propagate as raised
      by SQLAlchemy.

Audit relevance:
    Each call binds ``actor_id`` (and the record id where known) into
    ``LogContext`` so every log line emitted underneath carries them.

Usage:
    ledger = LedgerService(session_factory)
    record = ledger.create_transaction(actor, TransactionInput(...))
    rows = ledger.generate_monthly_rent_schedule(actor, terms)
"""

from __future__ import annotations

import calendar
import dataclasses
import logging
import random
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from rental_config import get_active_config
from rental_config.schema import LedgerConfig
from rental_engines.payment_history import ProcessingFeeSchedule
from rental_engines.statistics import (
    PaymentSummary,
    ScheduleStatistics,
    TenantPaymentStatistics,
    TransactionStatistics,
    summarize_history,
    summarize_payments,
    summarize_schedules,
    summarize_transactions,
)
from rental_kernel.db.engine import build_engine, session_scope
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import (
    Actor,
    ContractInput,
    ContractRecord,
    ContractTerms,
    HistoryFilters,
    HistoryRecord,
    InvoiceFilters,
    InvoiceInput,
    InvoiceRecord,
    Page,
    PaymentFilters,
    PaymentInput,
    PaymentPatch,
    PaymentRecord,
    RentPaymentInput,
    ScheduleFilters,
    ScheduleInput,
    ScheduleRow,
    TransactionFilters,
    TransactionInput,
    TransactionPatch,
    TransactionRecord,
)
from rental_kernel.domain.retry_policy import RetryPolicy, fixed_backoff
from rental_kernel.domain.scope import AccessScope
from rental_kernel.domain.values import InvoiceStatus, SchedulePaymentType, ScheduleStatus
from rental_kernel.exceptions import (
    ContractNotFoundError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
    ScheduleNotFoundError,
    TransactionNotFoundError,
)
from rental_kernel.logging_config import LogContext, configure_logging, get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.models.invoice import Payment
from rental_kernel.models.schedule import PaymentSchedule
from rental_kernel.selectors.history_selector import HistorySelector
from rental_kernel.selectors.invoice_selector import InvoiceSelector
from rental_kernel.selectors.schedule_selector import ScheduleSelector
from rental_kernel.selectors.transaction_selector import TransactionSelector
from rental_kernel.services.access_scope_service import AccessScopeService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.retry_service import RetryService
from rental_services.reconciliation_service import InvoiceReconciler, PaymentService
from rental_services.schedule_service import ScheduleGenerator
from rental_services.transaction_service import TransactionRecorder

logger = get_logger("services.ledger")

T = TypeVar("T")

APARTMENT_HISTORY_LIMIT = 12


class LedgerService:
    """
    Facade over the ledger's services, selectors and engines.

    Contract:
        Every public method takes the acting ``Actor`` first and returns
        frozen records (never ORM rows).

    Guarantees:
        - Atomicity per call: all rows of one call commit together or not
          at all.
        - No implicit "see everything" for non-admin roles.

    Non-goals:
        - Does NOT shape JSON or map errors to HTTP statuses.
        - Does NOT authenticate; the Actor is trusted as given.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        policy = retry_policy or RetryPolicy(
            max_attempts=self._config.retry.max_attempts,
            backoff=fixed_backoff(self._config.retry.delay_seconds),
        )
        self._retry = RetryService(session_factory, policy, sleep=sleep)
        self._fees = ProcessingFeeSchedule(
            credit_card_rate=self._config.processing_fees.credit_card_rate,
            bank_transfer_flat=self._config.processing_fees.bank_transfer_flat,
        )

    @classmethod
    def from_config(cls, config: LedgerConfig | None = None, **kwargs: Any) -> LedgerService:
        """
        Build a ledger on its own engine from ``config.database``.

        Also configures structured logging at ``config.log_level``.
        """
        config = config or get_active_config()
        configure_logging(level=logging.getLevelName(config.log_level))
        engine = build_engine(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            pool_timeout=config.database.pool_timeout,
            pool_recycle=config.database.pool_recycle,
        )
        return cls(sessionmaker(bind=engine, expire_on_commit=False), config=config, **kwargs)

    # -- plumbing ------------------------------------------------------------

    @property
    def config(self) -> LedgerConfig:
        return self._config

    def _write(self, operation: str, work: Callable[[Session], T]) -> T:
        return self._retry.run(work, operation=operation)

    def _read(self, work: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as session:
            return work(session)

    def _recorder(self, session: Session) -> TransactionRecorder:
        return TransactionRecorder(
            session,
            clock=self._clock,
            rng=self._rng,
            defaults=self._config.transactions,
            fee_schedule=self._fees,
        )

    def _payments(self, session: Session) -> PaymentService:
        return PaymentService(
            session, clock=self._clock, default_currency=self._config.transactions.currency
        )

    def _scope(self, session: Session, actor: Actor, reachable: Iterable[UUID] = ()) -> AccessScope:
        return AccessScopeService(session).compute(actor, reachable)

    def _default_page(self, page: Page | None) -> Page:
        return page or Page(limit=self._config.pagination.default_limit)

    # -- access scope --------------------------------------------------------

    def compute_access_scope(
        self,
        actor: Actor,
        reachable_transaction_ids: Iterable[UUID] = (),
    ) -> AccessScope:
        """Scope of ``actor``; AccessDeniedError for roles other than Admin/Owner."""
        reachable = frozenset(reachable_transaction_ids)
        return self._read(lambda s: self._scope(s, actor, reachable))

    # -- contracts -----------------------------------------------------------

    def create_contract(
        self,
        actor: Actor,
        data: ContractInput,
        generate_schedules: bool = True,
    ) -> ContractRecord:
        """Create a contract and, by default, its rent and deposit schedules."""

        def work(session: Session) -> UUID:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_tenant(scope, data.tenant_id)
            access.ensure_apartment(scope, data.apartment_id)
            contract = ContractService(session).create(
                data, default_currency=self._config.transactions.currency
            )
            if generate_schedules:
                terms = ContractTerms.from_model(contract)
                generator = ScheduleGenerator(session, due_day=self._config.schedule.due_day)
                generator.generate_monthly_rent(terms)
                generator.generate_security_deposit(terms)
            return contract.id

        with LogContext.bind(actor_id=str(actor.id)):
            contract_id = self._write("create_contract", work)
        return self.get_contract(actor, contract_id)

    def get_contract(self, actor: Actor, contract_id: UUID) -> ContractRecord:
        def work(session: Session) -> ContractRecord:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            contract = ContractService(session).get(contract_id)
            access.ensure_tenant(scope, contract.tenant_id)
            return ContractRecord.from_model(contract)

        return self._read(work)

    def delete_contract(self, actor: Actor, contract_id: UUID) -> None:
        """Hard-delete a contract with no schedule rows (ContractReferencedError otherwise)."""

        def work(session: Session) -> None:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            service = ContractService(session)
            access.ensure_tenant(scope, service.get(contract_id).tenant_id)
            service.delete(contract_id)

        with LogContext.bind(actor_id=str(actor.id), contract_id=str(contract_id)):
            self._write("delete_contract", work)

    # -- schedules -----------------------------------------------------------

    def _guard_terms(self, session: Session, actor: Actor, terms: ContractTerms) -> None:
        access = AccessScopeService(session)
        scope = access.compute(actor)
        access.ensure_tenant(scope, terms.tenant_id)
        access.ensure_apartment(scope, terms.apartment_id)

    def generate_monthly_rent_schedule(
        self,
        actor: Actor,
        terms: ContractTerms,
    ) -> list[ScheduleRow]:
        """
        Write one Pending Monthly Rent row per contract month.

        Returns every schedule row of the contract, re-read after commit
        and ordered by due date.
        """

        def work(session: Session) -> int:
            self._guard_terms(session, actor, terms)
            return ScheduleGenerator(
                session, due_day=self._config.schedule.due_day
            ).generate_monthly_rent(terms)

        with LogContext.bind(actor_id=str(actor.id), contract_id=str(terms.contract_id)):
            self._write("generate_monthly_rent_schedule", work)
        return self._read(lambda s: ScheduleSelector(s).by_contract(terms.contract_id))

    def generate_security_deposit_schedule(
        self,
        actor: Actor,
        terms: ContractTerms,
    ) -> ScheduleRow | None:
        """The deposit row, or None when the contract has no positive security fee."""
        if terms.security_fee is None or terms.security_fee <= 0:
            return None

        def work(session: Session) -> int:
            self._guard_terms(session, actor, terms)
            return ScheduleGenerator(session).generate_security_deposit(terms)

        with LogContext.bind(actor_id=str(actor.id), contract_id=str(terms.contract_id)):
            written = self._write("generate_security_deposit_schedule", work)
        if not written:
            return None
        rows = self._read(lambda s: ScheduleSelector(s).by_contract(terms.contract_id))
        deposits = [r for r in rows if r.payment_type == SchedulePaymentType.SECURITY_DEPOSIT]
        return deposits[-1] if deposits else None

    def create_schedule(self, actor: Actor, data: ScheduleInput) -> ScheduleRow:
        def work(session: Session) -> UUID:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_tenant(scope, data.tenant_id)
            access.ensure_apartment(scope, data.apartment_id)
            return ScheduleGenerator(session).create(data).id

        schedule_id = self._write("create_schedule", work)
        return self._read(lambda s: ScheduleSelector(s).get(schedule_id))

    def _guard_schedule(self, session: Session, actor: Actor, schedule_id: UUID) -> None:
        access = AccessScopeService(session)
        scope = access.compute(actor)
        row = session.get(PaymentSchedule, schedule_id)
        if row is None:
            raise ScheduleNotFoundError(schedule_id)
        access.ensure_tenant(scope, row.tenant_id)

    def get_schedule(self, actor: Actor, schedule_id: UUID) -> ScheduleRow:
        def work(session: Session) -> ScheduleRow:
            self._guard_schedule(session, actor, schedule_id)
            return ScheduleSelector(session).get(schedule_id)

        return self._read(work)

    def update_schedule_status(
        self,
        actor: Actor,
        schedule_id: UUID,
        status: ScheduleStatus | str,
        transaction_id: UUID | None = None,
    ) -> ScheduleRow:
        def work(session: Session) -> None:
            self._guard_schedule(session, actor, schedule_id)
            ScheduleGenerator(session).update_status(schedule_id, status, transaction_id)

        self._write("update_schedule_status", work)
        return self._read(lambda s: ScheduleSelector(s).get(schedule_id))

    def mark_schedule_paid(
        self,
        actor: Actor,
        schedule_id: UUID,
        transaction_id: UUID | None = None,
    ) -> ScheduleRow:
        return self.update_schedule_status(actor, schedule_id, ScheduleStatus.PAID, transaction_id)

    def list_schedules_by_contract(self, actor: Actor, contract_id: UUID) -> list[ScheduleRow]:
        def work(session: Session) -> list[ScheduleRow]:
            access = AccessScopeService(session)
            clause = access.schedule_clause(access.compute(actor))
            return ScheduleSelector(session).by_contract(contract_id, clause)

        return self._read(work)

    def list_schedules_by_tenant(self, actor: Actor, tenant_id: UUID) -> list[ScheduleRow]:
        def work(session: Session) -> list[ScheduleRow]:
            access = AccessScopeService(session)
            clause = access.schedule_clause(access.compute(actor))
            return ScheduleSelector(session).by_tenant(tenant_id, clause)

        return self._read(work)

    def list_overdue_schedules(self, actor: Actor, as_of: date | None = None) -> list[ScheduleRow]:
        as_of = as_of or self._clock.today()

        def work(session: Session) -> list[ScheduleRow]:
            access = AccessScopeService(session)
            clause = access.schedule_clause(access.compute(actor))
            return ScheduleSelector(session).overdue(as_of, clause)

        return self._read(work)

    def list_upcoming_schedules(
        self,
        actor: Actor,
        as_of: date | None = None,
        days: int = 30,
    ) -> list[ScheduleRow]:
        as_of = as_of or self._clock.today()

        def work(session: Session) -> list[ScheduleRow]:
            access = AccessScopeService(session)
            clause = access.schedule_clause(access.compute(actor))
            return ScheduleSelector(session).upcoming(as_of, days, clause)

        return self._read(work)

    def schedule_statistics(
        self,
        actor: Actor,
        filters: ScheduleFilters | None = None,
        as_of: date | None = None,
    ) -> ScheduleStatistics:
        as_of = as_of or self._clock.today()

        def work(session: Session) -> list[ScheduleRow]:
            access = AccessScopeService(session)
            clause = access.schedule_clause(access.compute(actor))
            return ScheduleSelector(session).matching(filters, clause)

        return summarize_schedules(rows=self._read(work), as_of=as_of)

    def delete_schedules_by_contract(self, actor: Actor, contract_id: UUID) -> int:
        def work(session: Session) -> int:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            contract = session.get(Contract, contract_id)
            if contract is None:
                raise ContractNotFoundError(contract_id)
            access.ensure_tenant(scope, contract.tenant_id)
            return ScheduleGenerator(session).delete_by_contract(contract_id)

        with LogContext.bind(actor_id=str(actor.id), contract_id=str(contract_id)):
            return self._write("delete_schedules_by_contract", work)

    # -- transactions --------------------------------------------------------

    def _read_transaction(self, transaction_id: UUID) -> TransactionRecord:
        return self._read(lambda s: TransactionSelector(s).get(transaction_id))

    def create_transaction(self, actor: Actor, data: TransactionInput) -> TransactionRecord:
        """
        Record a transaction (and its history row for a completed rent
        payment) in one unit of work; returns the joined record.
        """
        if data.created_by_id is None:
            data = dataclasses.replace(data, created_by_id=actor.id)

        def work(session: Session) -> UUID:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_tenant(scope, data.tenant_id)
            access.ensure_apartment(scope, data.apartment_id)
            return self._recorder(session).create(data).id

        with LogContext.bind(actor_id=str(actor.id)):
            transaction_id = self._write("create_transaction", work)
        return self._read_transaction(transaction_id)

    def process_rent_payment(self, actor: Actor, data: RentPaymentInput) -> TransactionRecord:
        if data.created_by_id is None:
            data = dataclasses.replace(data, created_by_id=actor.id)

        def work(session: Session) -> UUID:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_tenant(scope, data.tenant_id)
            access.ensure_apartment(scope, data.apartment_id)
            return self._recorder(session).process_rent_payment(data).id

        with LogContext.bind(actor_id=str(actor.id)):
            transaction_id = self._write("process_rent_payment", work)
        return self._read_transaction(transaction_id)

    def _guard_transaction(self, session: Session, actor: Actor, transaction_id: UUID) -> None:
        access = AccessScopeService(session)
        scope = access.compute(actor)
        if not TransactionSelector(session).transaction_exists(transaction_id):
            raise TransactionNotFoundError(transaction_id)
        access.ensure_transaction(scope, transaction_id)

    def update_transaction(
        self,
        actor: Actor,
        transaction_id: UUID,
        patch: TransactionPatch | Mapping[str, Any],
    ) -> TransactionRecord:
        """
        Apply a typed patch; the history row follows inside the same unit
        of work.

        Raises:
            UnknownPatchFieldError: Mapping with a non-mutable key.
            EmptyPatchError: Nothing to change (before any store access).
        """
        if not isinstance(patch, TransactionPatch):
            patch = TransactionPatch.from_mapping(patch)
        patch.require_changes()

        def work(session: Session) -> None:
            self._guard_transaction(session, actor, transaction_id)
            self._recorder(session).update(transaction_id, patch)

        with LogContext.bind(actor_id=str(actor.id), transaction_id=str(transaction_id)):
            self._write("update_transaction", work)
        return self._read_transaction(transaction_id)

    def delete_transaction(self, actor: Actor, transaction_id: UUID) -> bool:
        """Delete history rows then the transaction; False when it did not exist."""

        def work(session: Session) -> bool:
            if not TransactionSelector(session).transaction_exists(transaction_id):
                return False
            self._guard_transaction(session, actor, transaction_id)
            return self._recorder(session).delete(transaction_id)

        with LogContext.bind(actor_id=str(actor.id), transaction_id=str(transaction_id)):
            return self._write("delete_transaction", work)

    def get_transaction(self, actor: Actor, transaction_id: UUID) -> TransactionRecord:
        def work(session: Session) -> TransactionRecord:
            self._guard_transaction(session, actor, transaction_id)
            return TransactionSelector(session).get(transaction_id)

        return self._read(work)

    def list_transactions(
        self,
        actor: Actor,
        filters: TransactionFilters | None = None,
        page: Page | None = None,
        reachable_transaction_ids: Iterable[UUID] = (),
    ) -> list[TransactionRecord]:
        page = self._default_page(page)
        reachable = frozenset(reachable_transaction_ids)

        def work(session: Session) -> list[TransactionRecord]:
            access = AccessScopeService(session)
            clause = access.transaction_clause(access.compute(actor, reachable))
            return TransactionSelector(session).list_transactions(filters, clause, page)

        return self._read(work)

    def transaction_statistics(
        self,
        actor: Actor,
        filters: TransactionFilters | None = None,
    ) -> TransactionStatistics:
        def work(session: Session) -> list[TransactionRecord]:
            access = AccessScopeService(session)
            clause = access.transaction_clause(access.compute(actor))
            return TransactionSelector(session).list_transactions(filters, clause)

        return summarize_transactions(rows=self._read(work))

    # -- payment history -----------------------------------------------------

    def payment_history_for_tenant(
        self,
        actor: Actor,
        tenant_id: UUID,
        filters: HistoryFilters | None = None,
    ) -> list[HistoryRecord]:
        def work(session: Session) -> list[HistoryRecord]:
            access = AccessScopeService(session)
            clause = access.history_clause(access.compute(actor))
            return HistorySelector(session).for_tenant(tenant_id, filters, clause)

        return self._read(work)

    def tenant_payment_statistics(
        self,
        actor: Actor,
        tenant_id: UUID,
        filters: HistoryFilters | None = None,
    ) -> TenantPaymentStatistics:
        return summarize_history(rows=self.payment_history_for_tenant(actor, tenant_id, filters))

    def payment_history_for_apartment(
        self,
        actor: Actor,
        apartment_id: UUID,
        filters: HistoryFilters | None = None,
        limit: int | None = APARTMENT_HISTORY_LIMIT,
    ) -> list[HistoryRecord]:
        """
        History of every tenant who paid rent on an apartment, newest first.

        Owners need the apartment's building assigned.  ``limit=None``
        returns every row.
        """

        def work(session: Session) -> list[HistoryRecord]:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_apartment(scope, apartment_id)
            clause = access.history_clause(scope)
            return HistorySelector(session).for_apartment(apartment_id, filters, clause, limit)

        return self._read(work)

    def apartment_payment_statistics(
        self,
        actor: Actor,
        apartment_id: UUID,
        filters: HistoryFilters | None = None,
    ) -> TenantPaymentStatistics:
        rows = self.payment_history_for_apartment(actor, apartment_id, filters, limit=None)
        return summarize_history(rows=rows)

    # -- invoices and payments -----------------------------------------------

    def create_invoice(self, actor: Actor, data: InvoiceInput) -> InvoiceRecord:
        def work(session: Session) -> UUID:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_tenant(scope, data.tenant_id)
            access.ensure_apartment(scope, data.apartment_id)
            return self._payments(session).create_invoice(data).id

        with LogContext.bind(actor_id=str(actor.id)):
            invoice_id = self._write("create_invoice", work)
        return self._read(lambda s: InvoiceSelector(s).get(invoice_id))

    def _guard_invoice(self, session: Session, actor: Actor, invoice_id: UUID) -> None:
        access = AccessScopeService(session)
        scope = access.compute(actor)
        if InvoiceSelector(session).get(invoice_id) is None:
            raise InvoiceNotFoundError(invoice_id)
        access.ensure_invoice(scope, invoice_id)

    def get_invoice(self, actor: Actor, invoice_id: UUID) -> InvoiceRecord:
        def work(session: Session) -> InvoiceRecord:
            self._guard_invoice(session, actor, invoice_id)
            return InvoiceSelector(session).get(invoice_id)

        return self._read(work)

    def reconcile_invoice(self, actor: Actor, invoice_id: UUID) -> InvoiceRecord:
        """Recompute an invoice from its payments (idempotent)."""

        def work(session: Session) -> None:
            self._guard_invoice(session, actor, invoice_id)
            InvoiceReconciler(session).reconcile(invoice_id)

        with LogContext.bind(actor_id=str(actor.id), invoice_id=str(invoice_id)):
            self._write("reconcile_invoice", work)
        return self._read(lambda s: InvoiceSelector(s).get(invoice_id))

    def list_overdue_invoices(self, actor: Actor, as_of: date | None = None) -> list[InvoiceRecord]:
        as_of = as_of or self._clock.today()

        def work(session: Session) -> list[InvoiceRecord]:
            access = AccessScopeService(session)
            clause = access.invoice_clause(access.compute(actor))
            return InvoiceSelector(session).overdue(as_of, clause)

        return self._read(work)

    def list_invoices(
        self,
        actor: Actor,
        filters: InvoiceFilters | None = None,
        page: Page | None = None,
    ) -> list[InvoiceRecord]:
        """Invoices in scope, newest first; ``filters.overdue`` is judged as of today."""
        page = self._default_page(page)
        as_of = self._clock.today()

        def work(session: Session) -> list[InvoiceRecord]:
            access = AccessScopeService(session)
            clause = access.invoice_clause(access.compute(actor))
            return InvoiceSelector(session).list_invoices(filters, as_of, clause, page)

        return self._read(work)

    def get_invoice_by_number(self, actor: Actor, invoice_number: str) -> InvoiceRecord:
        def work(session: Session) -> InvoiceRecord:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            record = InvoiceSelector(session).by_number(invoice_number)
            if record is None:
                raise InvoiceNotFoundError(invoice_number)
            access.ensure_invoice(scope, record.id)
            return record

        return self._read(work)

    def list_invoice_payments(self, actor: Actor, invoice_id: UUID) -> list[PaymentRecord]:
        """Payments and refunds recorded against one invoice, oldest first."""

        def work(session: Session) -> list[PaymentRecord]:
            self._guard_invoice(session, actor, invoice_id)
            access = AccessScopeService(session)
            clause = access.payment_clause(access.compute(actor))
            return InvoiceSelector(session).payments_for(invoice_id, clause)

        return self._read(work)

    def update_invoice_status(
        self,
        actor: Actor,
        invoice_id: UUID,
        status: InvoiceStatus | str,
    ) -> InvoiceRecord:
        """Set Sent, Overdue or Cancelled; the derived statuses are not settable."""

        def work(session: Session) -> None:
            self._guard_invoice(session, actor, invoice_id)
            self._payments(session).update_invoice_status(invoice_id, status)

        with LogContext.bind(actor_id=str(actor.id), invoice_id=str(invoice_id)):
            self._write("update_invoice_status", work)
        return self._read(lambda s: InvoiceSelector(s).get(invoice_id))

    def _read_payment(self, payment_id: UUID) -> PaymentRecord:
        return self._read(lambda s: InvoiceSelector(s).get_payment(payment_id))

    def record_payment(self, actor: Actor, data: PaymentInput) -> PaymentRecord:
        """Record a payment; its invoice is recomputed in the same unit of work."""

        def work(session: Session) -> UUID:
            access = AccessScopeService(session)
            scope = access.compute(actor)
            access.ensure_tenant(scope, data.tenant_id)
            if data.invoice_id is not None:
                if InvoiceSelector(session).get(data.invoice_id) is None:
                    raise InvoiceNotFoundError(data.invoice_id)
                access.ensure_invoice(scope, data.invoice_id)
            return self._payments(session).record(data).id

        with LogContext.bind(
            actor_id=str(actor.id),
            invoice_id=str(data.invoice_id) if data.invoice_id else None,
        ):
            payment_id = self._write("record_payment", work)
        return self._read_payment(payment_id)

    def _guard_payment(self, session: Session, actor: Actor, payment_id: UUID) -> None:
        access = AccessScopeService(session)
        scope = access.compute(actor)
        if session.get(Payment, payment_id) is None:
            raise PaymentNotFoundError(payment_id)
        access.ensure_payment(scope, payment_id)

    def get_payment(self, actor: Actor, payment_id: UUID) -> PaymentRecord:
        def work(session: Session) -> PaymentRecord:
            self._guard_payment(session, actor, payment_id)
            return InvoiceSelector(session).get_payment(payment_id)

        return self._read(work)

    def update_payment(
        self,
        actor: Actor,
        payment_id: UUID,
        patch: PaymentPatch | Mapping[str, Any],
    ) -> PaymentRecord:
        if not isinstance(patch, PaymentPatch):
            patch = PaymentPatch.from_mapping(patch)
        patch.require_changes()

        def work(session: Session) -> None:
            self._guard_payment(session, actor, payment_id)
            self._payments(session).update(payment_id, patch)

        with LogContext.bind(actor_id=str(actor.id)):
            self._write("update_payment", work)
        return self._read_payment(payment_id)

    def delete_payment(self, actor: Actor, payment_id: UUID) -> bool:
        def work(session: Session) -> bool:
            if session.get(Payment, payment_id) is None:
                return False
            self._guard_payment(session, actor, payment_id)
            return self._payments(session).delete(payment_id)

        with LogContext.bind(actor_id=str(actor.id)):
            return self._write("delete_payment", work)

    def refund_payment(
        self,
        actor: Actor,
        payment_id: UUID,
        amount: Decimal,
        reason: str | None = None,
    ) -> PaymentRecord:
        """Record a negative "Refund" payment against ``payment_id``."""

        def work(session: Session) -> UUID:
            self._guard_payment(session, actor, payment_id)
            return self._payments(session).refund(payment_id, amount, reason).id

        with LogContext.bind(actor_id=str(actor.id)):
            refund_id = self._write("refund_payment", work)
        return self._read_payment(refund_id)

    def list_payments(
        self,
        actor: Actor,
        filters: PaymentFilters | None = None,
        page: Page | None = None,
    ) -> list[PaymentRecord]:
        page = self._default_page(page)

        def work(session: Session) -> list[PaymentRecord]:
            access = AccessScopeService(session)
            clause = access.payment_clause(access.compute(actor))
            return InvoiceSelector(session).list_payments(filters, clause, page)

        return self._read(work)

    def monthly_payment_summary(
        self,
        actor: Actor,
        year: int | None = None,
        month: int | None = None,
    ) -> PaymentSummary:
        """Payments in scope dated in one month; defaults to the current month."""
        today = self._clock.today()
        year = year or today.year
        month = month or today.month
        filters = PaymentFilters(
            start_date=date(year, month, 1),
            end_date=date(year, month, calendar.monthrange(year, month)[1]),
        )

        def work(session: Session) -> list[PaymentRecord]:
            access = AccessScopeService(session)
            clause = access.payment_clause(access.compute(actor))
            return InvoiceSelector(session).list_payments(filters, clause)

        return summarize_payments(rows=self._read(work), year=year, month=month)
