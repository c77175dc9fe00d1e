"""
Module: rental_engines.references
Responsibility:
    Format the human-readable identifiers the ledger hands out:
    transaction reference numbers, invoice numbers and refund references.

Architecture position:
    Engines -- pure calculation layer.  Randomness and dates are injected.

Invariants enforced:
    - Transaction references are TXN-YYMMDD-NNNN with a random four-digit
      suffix.  They are NOT unique by construction; the store's unique
      constraint is the arbiter and a collision surfaces as IntegrityError.
    - Invoice numbers are INV-YYYYMM-NNNN where NNNN comes from a per-month
      locked sequence counter.
"""

from __future__ import annotations

import random
from datetime import date
from uuid import UUID


def transaction_reference(on: date, rng: random.Random) -> str:
    return f"TXN-{on:%y%m%d}-{rng.randrange(10000):04d}"


def invoice_sequence_name(on: date) -> str:
    """Name of the counter row that numbers invoices of one month."""
    return f"invoice:{on:%Y%m}"


def invoice_number(on: date, sequence: int) -> str:
    return f"INV-{on:%Y%m}-{sequence:04d}"


def refund_reference(payment_id: UUID) -> str:
    return f"REFUND-{payment_id}"
