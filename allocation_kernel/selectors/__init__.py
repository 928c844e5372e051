"""Read-only selectors (CQRS query side)."""

from allocation_kernel.selectors.base import BaseSelector
from allocation_kernel.selectors.payment_selector import PaymentSelector

__all__ = [
    "BaseSelector",
    "PaymentSelector",
]
