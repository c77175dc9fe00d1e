"""
Module: rental_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors form the "Q" side of the service/selector split, providing
    structured read access to financial rows without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/ DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen records, NOT ORM
      model instances.
    - Session ownership: the caller owns the session and its transaction.
    - Scope is applied by the caller: every list method takes the boolean
      clause rendered by AccessScopeService and ANDs it into its WHERE.

Failure modes:
    - Return None or an empty list when nothing matches; never raise on
      absence of data.
"""

from abc import ABC

from sqlalchemy import ColumnElement, true
from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return records.

    Non-goals:
        - BaseSelector does NOT define any query methods.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _scope(clause: ColumnElement[bool] | None) -> ColumnElement[bool]:
        return true() if clause is None else clause
