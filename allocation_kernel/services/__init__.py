"""Kernel services: flush-only ledgers and the transactional AllocationService."""

from allocation_kernel.services.allocation_service import UNCHANGED, AllocationService
from allocation_kernel.services.base import BaseService
from allocation_kernel.services.payment_ledger import PaymentLedger
from allocation_kernel.services.percentage_ledger import PercentageLedger
from allocation_kernel.services.recalculation_coordinator import RecalculationCoordinator

__all__ = [
    "AllocationService",
    "BaseService",
    "PaymentLedger",
    "PercentageLedger",
    "RecalculationCoordinator",
    "UNCHANGED",
]
