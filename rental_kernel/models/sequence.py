"""
Module: rental_kernel.models.sequence
Responsibility: Named monotonic counters used to allocate human-readable
    document numbers (invoice numbers) under a row lock.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py only.

Invariants enforced:
    - name is unique; one row per sequence.
    - current_value only increases (SequenceService is the sole writer).
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g. "invoice:202501")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
