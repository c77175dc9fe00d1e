"""
AccessScopeService -- ownership-graph scoping of financial rows.

Responsibility:
    Computes an actor's ``AccessScope`` from the ownership graph
    (Tenant -> current Apartment -> Floor -> Building -> assigned Owner)
    and renders it into SQL predicates for every financial table.  Also
    answers single-row questions ("may this actor touch transaction X /
    write for tenant Y?").

Architecture position:
    Kernel > Services -- imperative shell.  Reads only; never flushes.
    Consumed by ``LedgerService`` before any list, read or write.

Invariants enforced:
    - Admin: unrestricted (``true()``).
    - Owner: tenant's current apartment in an assigned building, UNION
      rows the owner created, UNION explicitly reachable transaction ids.
    - Owner with nothing in scope: explicit ``false()`` predicate.  An
      omitted WHERE clause is never produced for an owner.
    - Any other role: AccessDeniedError, no fallback.
    - "Current" apartment means an ApartmentAssignment with
      ``released_on IS NULL``.  A past assignment grants nothing.

Failure modes:
    - AccessDeniedError for roles other than Admin/Owner, and from the
      ``ensure_*`` single-row checks.

Audit relevance:
    Wrong scoping leaks one owner's rent data to another.  Denials are
    logged at INFO with the actor and the reason.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import ColumnElement, Select, and_, exists, false, or_, select, true

from rental_kernel.domain.dtos import Actor
from rental_kernel.domain.scope import AccessScope, ScopeKind
from rental_kernel.domain.values import UserRole
from rental_kernel.exceptions import AccessDeniedError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.invoice import Invoice, Payment
from rental_kernel.models.property import (
    Apartment,
    ApartmentAssignment,
    BuildingAssignment,
    Floor,
)
from rental_kernel.models.schedule import PaymentSchedule
from rental_kernel.models.transaction import FinancialTransaction, TenantPaymentHistory
from rental_kernel.services.base import BaseService

logger = get_logger("services.access_scope")


def tenants_in_buildings(building_ids: Iterable[UUID]) -> Select:
    """Tenant ids whose current apartment lies in one of ``building_ids``."""
    return (
        select(ApartmentAssignment.tenant_id)
        .join(Apartment, Apartment.id == ApartmentAssignment.apartment_id)
        .join(Floor, Floor.id == Apartment.floor_id)
        .where(
            ApartmentAssignment.released_on.is_(None),
            Floor.building_id.in_(list(building_ids)),
        )
    )


class AccessScopeService(BaseService):
    """
    Builds and renders access scopes.

    Contract:
        ``compute(actor)`` returns an AccessScope.  The ``*_clause``
        methods turn a scope into a boolean SQL expression for one table.

    Guarantees:
        - Every clause is ``true()``, ``false()`` or a bound-parameter
          predicate.  Ids are never interpolated into SQL text.

    Non-goals:
        - Does NOT decide HTTP semantics of denial vs. not-found.
    """

    # -- computing -----------------------------------------------------------

    def assigned_building_ids(self, owner_id: UUID) -> frozenset[UUID]:
        rows = self.session.execute(
            select(BuildingAssignment.building_id).where(
                BuildingAssignment.owner_id == owner_id
            )
        ).scalars()
        return frozenset(rows)

    def _has_created_rows(self, owner_id: UUID) -> bool:
        return bool(
            self.session.execute(
                select(
                    exists().where(FinancialTransaction.created_by_id == owner_id)
                )
            ).scalar()
        )

    def compute(
        self,
        actor: Actor,
        reachable_transaction_ids: Iterable[UUID] = (),
    ) -> AccessScope:
        """
        Compute the scope of ``actor``.

        Raises:
            AccessDeniedError: If the actor is neither Admin nor Owner.
        """
        if actor.role == UserRole.ADMIN:
            return AccessScope.unrestricted(actor)

        if actor.role != UserRole.OWNER:
            logger.info(
                "access_denied",
                extra={"actor_id": str(actor.id), "role": actor.role.value},
            )
            raise AccessDeniedError(
                str(actor.id),
                actor.role.value,
                "financial records are restricted to administrators and owners",
            )

        scope = AccessScope.for_owner(
            actor,
            building_ids=self.assigned_building_ids(actor.id),
            reachable_transaction_ids=frozenset(reachable_transaction_ids),
            includes_created_rows=self._has_created_rows(actor.id),
        )
        logger.debug(
            "access_scope_computed",
            extra={
                "actor_id": str(actor.id),
                "scope_kind": scope.kind.value,
                "building_count": len(scope.building_ids),
                "reachable_count": len(scope.reachable_transaction_ids),
            },
        )
        return scope

    # -- rendering -----------------------------------------------------------

    @staticmethod
    def _tenant_clause(scope: AccessScope, tenant_column) -> ColumnElement[bool] | None:
        if not scope.building_ids:
            return None
        return tenant_column.in_(tenants_in_buildings(scope.building_ids))

    @staticmethod
    def _combine(parts: list[ColumnElement[bool] | None]) -> ColumnElement[bool]:
        present = [part for part in parts if part is not None]
        if not present:
            return false()
        return or_(*present)

    def transaction_clause(self, scope: AccessScope) -> ColumnElement[bool]:
        if scope.kind == ScopeKind.UNRESTRICTED:
            return true()
        if scope.kind == ScopeKind.EMPTY:
            return false()
        return self._combine([
            self._tenant_clause(scope, FinancialTransaction.tenant_id),
            FinancialTransaction.created_by_id == scope.actor.id
            if scope.includes_created_rows else None,
            FinancialTransaction.id.in_(list(scope.reachable_transaction_ids))
            if scope.reachable_transaction_ids else None,
        ])

    def history_clause(self, scope: AccessScope) -> ColumnElement[bool]:
        if scope.kind == ScopeKind.UNRESTRICTED:
            return true()
        if scope.kind == ScopeKind.EMPTY:
            return false()
        created = None
        if scope.includes_created_rows:
            created = TenantPaymentHistory.transaction_id.in_(
                select(FinancialTransaction.id).where(
                    FinancialTransaction.created_by_id == scope.actor.id
                )
            )
        return self._combine([
            self._tenant_clause(scope, TenantPaymentHistory.tenant_id),
            created,
            TenantPaymentHistory.transaction_id.in_(list(scope.reachable_transaction_ids))
            if scope.reachable_transaction_ids else None,
        ])

    def schedule_clause(self, scope: AccessScope) -> ColumnElement[bool]:
        if scope.kind == ScopeKind.UNRESTRICTED:
            return true()
        if scope.kind == ScopeKind.EMPTY:
            return false()
        return self._combine([self._tenant_clause(scope, PaymentSchedule.tenant_id)])

    def invoice_clause(self, scope: AccessScope) -> ColumnElement[bool]:
        if scope.kind == ScopeKind.UNRESTRICTED:
            return true()
        if scope.kind == ScopeKind.EMPTY:
            return false()
        return self._combine([self._tenant_clause(scope, Invoice.tenant_id)])

    def payment_clause(self, scope: AccessScope) -> ColumnElement[bool]:
        if scope.kind == ScopeKind.UNRESTRICTED:
            return true()
        if scope.kind == ScopeKind.EMPTY:
            return false()
        return self._combine([self._tenant_clause(scope, Payment.tenant_id)])

    # -- single-row checks ---------------------------------------------------

    def _deny(self, scope: AccessScope, reason: str) -> AccessDeniedError:
        logger.info(
            "access_denied",
            extra={"actor_id": str(scope.actor.id), "reason": reason},
        )
        return AccessDeniedError(str(scope.actor.id), scope.actor.role.value, reason)

    def _row_visible(self, clause: ColumnElement[bool], *criteria) -> bool:
        return bool(
            self.session.execute(select(exists().where(and_(clause, *criteria)))).scalar()
        )

    def ensure_transaction(self, scope: AccessScope, transaction_id: UUID) -> None:
        """Raise AccessDeniedError unless the transaction is in scope."""
        if scope.is_unrestricted:
            return
        if not self._row_visible(
            self.transaction_clause(scope), FinancialTransaction.id == transaction_id
        ):
            raise self._deny(scope, f"transaction {transaction_id} is outside your buildings")

    def ensure_payment(self, scope: AccessScope, payment_id: UUID) -> None:
        if scope.is_unrestricted:
            return
        if not self._row_visible(self.payment_clause(scope), Payment.id == payment_id):
            raise self._deny(scope, f"payment {payment_id} is outside your buildings")

    def ensure_invoice(self, scope: AccessScope, invoice_id: UUID) -> None:
        if scope.is_unrestricted:
            return
        if not self._row_visible(self.invoice_clause(scope), Invoice.id == invoice_id):
            raise self._deny(scope, f"invoice {invoice_id} is outside your buildings")

    def ensure_tenant(self, scope: AccessScope, tenant_id: UUID | None) -> None:
        """Writes for a tenant require the tenant's current apartment in scope."""
        if scope.is_unrestricted or tenant_id is None:
            return
        if scope.building_ids:
            in_buildings = self.session.execute(
                select(
                    exists().where(
                        ApartmentAssignment.tenant_id == tenant_id,
                        ApartmentAssignment.tenant_id.in_(
                            tenants_in_buildings(scope.building_ids)
                        ),
                    )
                )
            ).scalar()
            if in_buildings:
                return
        raise self._deny(scope, f"tenant {tenant_id} is not in your assigned buildings")

    def ensure_apartment(self, scope: AccessScope, apartment_id: UUID | None) -> None:
        """Writes for an apartment require its building to be assigned."""
        if scope.is_unrestricted or apartment_id is None:
            return
        if scope.building_ids:
            in_buildings = self.session.execute(
                select(
                    exists().where(
                        Apartment.id == apartment_id,
                        Apartment.floor_id == Floor.id,
                        Floor.building_id.in_(list(scope.building_ids)),
                    )
                )
            ).scalar()
            if in_buildings:
                return
        raise self._deny(scope, f"apartment {apartment_id} is not in your assigned buildings")
