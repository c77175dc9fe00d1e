"""
Kernel services: session-bound, flush-only.

Sequence allocation, bounded retry of units of work, access scoping and
contract persistence.  Services that compose the pure engines live in
``rental_services``.
"""

from rental_kernel.services.access_scope_service import (
    AccessScopeService,
    tenants_in_buildings,
)
from rental_kernel.services.base import BaseService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.retry_service import RetryService
from rental_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccessScopeService",
    "BaseService",
    "ContractService",
    "RetryService",
    "SequenceService",
    "tenants_in_buildings",
]
