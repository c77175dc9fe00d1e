"""
Rental Kernel - payment and financial reconciliation core

A session-scoped ledger for property management with:
- Calendar-driven payment schedules generated from contracts
- Atomic recording of transactions and their derived payment history
- Invoice balances recomputed from the full set of linked payments
- Ownership-scoped visibility across the building hierarchy
"""

__version__ = "0.1.0"
