"""
Module: rental_kernel.selectors.transaction_selector
Responsibility: Read access to financial transactions joined with their
    display context (tenant, unit, floor, building, contract, creator).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every join is an outer join: a transaction with no tenant, apartment
      or contract is still returned, with None display fields.
    - Pagination is applied with .limit()/.offset(), i.e. bound
      parameters, from an already-validated Page.
    - Ordering is deterministic: transaction_date desc, created_at desc,
      id.

Failure modes:
    - get() returns None for a missing id.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ColumnElement, Row, Select, and_, exists, select
from sqlalchemy.orm import aliased

from rental_kernel.domain.dtos import Page, TransactionFilters, TransactionRecord
from rental_kernel.domain.values import PaymentMethod, TransactionStatus, TransactionType
from rental_kernel.models.contract import Contract
from rental_kernel.models.property import Apartment, Building, Floor, Tenant, User
from rental_kernel.models.transaction import FinancialTransaction
from rental_kernel.selectors.base import BaseSelector

TenantUser = aliased(User, name="tenant_user")
Creator = aliased(User, name="creator")


def _joined_query() -> Select:
    txn = FinancialTransaction
    return (
        select(
            txn,
            TenantUser.first_name.label("tenant_first_name"),
            TenantUser.last_name.label("tenant_last_name"),
            TenantUser.email.label("tenant_email"),
            TenantUser.phone_number.label("tenant_phone"),
            Apartment.unit_number,
            Apartment.bedrooms,
            Apartment.bathrooms,
            Apartment.rent_price,
            Floor.floor_name,
            Building.id.label("building_id"),
            Building.building_name,
            Building.building_address,
            Contract.start_date.label("contract_start_date"),
            Contract.end_date.label("contract_end_date"),
            Contract.security_fee,
            Creator.first_name.label("creator_first_name"),
            Creator.last_name.label("creator_last_name"),
        )
        .outerjoin(Tenant, Tenant.id == txn.tenant_id)
        .outerjoin(TenantUser, TenantUser.id == Tenant.user_id)
        .outerjoin(Apartment, Apartment.id == txn.apartment_id)
        .outerjoin(Floor, Floor.id == Apartment.floor_id)
        .outerjoin(Building, Building.id == Floor.building_id)
        .outerjoin(Contract, Contract.id == txn.contract_id)
        .outerjoin(Creator, Creator.id == txn.created_by_id)
    )


def _full_name(first: str | None, last: str | None) -> str | None:
    if first is None and last is None:
        return None
    return " ".join(part for part in (first, last) if part)


def _to_record(row: Row) -> TransactionRecord:
    txn: FinancialTransaction = row[0]
    return TransactionRecord(
        id=txn.id,
        tenant_id=txn.tenant_id,
        apartment_id=txn.apartment_id,
        contract_id=txn.contract_id,
        transaction_type=TransactionType(txn.transaction_type),
        amount=txn.amount,
        currency=txn.currency,
        payment_method=PaymentMethod(txn.payment_method),
        transaction_date=txn.transaction_date,
        due_date=txn.due_date,
        status=TransactionStatus(txn.status),
        description=txn.description,
        reference_number=txn.reference_number,
        receipt_path=txn.receipt_path,
        processing_fee=txn.processing_fee,
        late_fee=txn.late_fee,
        billing_period_start=txn.billing_period_start,
        billing_period_end=txn.billing_period_end,
        created_by_id=txn.created_by_id,
        created_at=txn.created_at,
        updated_at=txn.updated_at,
        tenant_name=_full_name(row.tenant_first_name, row.tenant_last_name),
        tenant_email=row.tenant_email,
        tenant_phone=row.tenant_phone,
        unit_number=row.unit_number,
        bedrooms=row.bedrooms,
        bathrooms=row.bathrooms,
        rent_price=row.rent_price,
        floor_name=row.floor_name,
        building_id=row.building_id,
        building_name=row.building_name,
        building_address=row.building_address,
        contract_start_date=row.contract_start_date,
        contract_end_date=row.contract_end_date,
        security_fee=row.security_fee,
        created_by_name=_full_name(row.creator_first_name, row.creator_last_name),
    )


def _filter_criteria(filters: TransactionFilters) -> list[ColumnElement[bool]]:
    txn = FinancialTransaction
    criteria: list[ColumnElement[bool]] = []
    if filters.tenant_id is not None:
        criteria.append(txn.tenant_id == filters.tenant_id)
    if filters.apartment_id is not None:
        criteria.append(txn.apartment_id == filters.apartment_id)
    if filters.contract_id is not None:
        criteria.append(txn.contract_id == filters.contract_id)
    if filters.transaction_type is not None:
        criteria.append(txn.transaction_type == TransactionType(filters.transaction_type).value)
    if filters.status is not None:
        criteria.append(txn.status == TransactionStatus(filters.status).value)
    if filters.payment_method is not None:
        criteria.append(txn.payment_method == PaymentMethod(filters.payment_method).value)
    if filters.start_date is not None:
        criteria.append(txn.transaction_date >= filters.start_date)
    if filters.end_date is not None:
        criteria.append(txn.transaction_date <= filters.end_date)
    return criteria


class TransactionSelector(BaseSelector):
    """Read-only queries over financial transactions."""

    def transaction_exists(self, transaction_id: UUID) -> bool:
        return bool(
            self.session.execute(
                select(exists().where(FinancialTransaction.id == transaction_id))
            ).scalar()
        )

    def get(self, transaction_id: UUID) -> TransactionRecord | None:
        row = self.session.execute(
            _joined_query().where(FinancialTransaction.id == transaction_id)
        ).first()
        return _to_record(row) if row is not None else None

    def list_transactions(
        self,
        filters: TransactionFilters | None = None,
        scope_clause: ColumnElement[bool] | None = None,
        page: Page | None = None,
    ) -> list[TransactionRecord]:
        """
        Transactions matching ``filters`` inside ``scope_clause``.

        Passing no page returns every matching row (used by statistics).
        """
        stmt = (
            _joined_query()
            .where(and_(self._scope(scope_clause), *_filter_criteria(filters or TransactionFilters())))
            .order_by(
                FinancialTransaction.transaction_date.desc(),
                FinancialTransaction.created_at.desc(),
                FinancialTransaction.id,
            )
        )
        if page is not None:
            stmt = stmt.limit(page.limit).offset(page.offset)
        return [_to_record(row) for row in self.session.execute(stmt)]
