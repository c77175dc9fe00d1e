"""Read-only selectors returning frozen records."""

from rental_kernel.selectors.base import BaseSelector
from rental_kernel.selectors.history_selector import HistorySelector
from rental_kernel.selectors.invoice_selector import InvoiceSelector
from rental_kernel.selectors.schedule_selector import ScheduleSelector
from rental_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "BaseSelector",
    "HistorySelector",
    "InvoiceSelector",
    "ScheduleSelector",
    "TransactionSelector",
]
