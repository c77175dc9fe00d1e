"""
AccessScope -- the set of financial rows an actor may see or modify.

Responsibility:
    Pure description of a computed scope.  AccessScopeService builds it from
    the ownership graph and renders it into SQL predicates; this module only
    records which of the three shapes applies and the ids it depends on.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - UNRESTRICTED only for Admin.
    - An Owner scope with no buildings, no created rows and no reachable
      transaction ids is EMPTY.  EMPTY renders as an explicit false
      predicate, never as an omitted WHERE clause.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from rental_kernel.domain.dtos import Actor


class ScopeKind(str, Enum):
    UNRESTRICTED = "unrestricted"
    OWNER = "owner"
    EMPTY = "empty"


@dataclass(frozen=True)
class AccessScope:
    """
    Computed visibility of financial rows for one actor.

    Guarantees:
        - building_ids, reachable_transaction_ids are frozensets.
        - kind is EMPTY iff an owner has nothing to see.
    """

    actor: Actor
    kind: ScopeKind
    building_ids: frozenset[UUID] = frozenset()
    reachable_transaction_ids: frozenset[UUID] = frozenset()
    includes_created_rows: bool = False

    @classmethod
    def unrestricted(cls, actor: Actor) -> AccessScope:
        return cls(actor=actor, kind=ScopeKind.UNRESTRICTED)

    @classmethod
    def for_owner(
        cls,
        actor: Actor,
        building_ids: frozenset[UUID],
        reachable_transaction_ids: frozenset[UUID],
        includes_created_rows: bool,
    ) -> AccessScope:
        if not building_ids and not reachable_transaction_ids and not includes_created_rows:
            return cls(actor=actor, kind=ScopeKind.EMPTY)
        return cls(
            actor=actor,
            kind=ScopeKind.OWNER,
            building_ids=building_ids,
            reachable_transaction_ids=reachable_transaction_ids,
            includes_created_rows=includes_created_rows,
        )

    @property
    def is_unrestricted(self) -> bool:
        return self.kind == ScopeKind.UNRESTRICTED

    @property
    def is_empty(self) -> bool:
        return self.kind == ScopeKind.EMPTY
