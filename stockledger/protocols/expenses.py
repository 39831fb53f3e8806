"""
Expense Backend Protocol — pending expenses created from purchases.

The finance module registers a pending expense for every purchase. When
the purchase is deleted, Stockledger asks the backend to drop it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ExpenseBackend(Protocol):
    """Protocol for the finance-side pending expense records."""

    def remove_pending_for_purchase(self, purchase_id: int) -> int:
        """
        Delete pending (not yet paid) expenses tied to a purchase.

        Args:
            purchase_id: Purchase primary key

        Returns:
            Number of expenses removed (0 when there was none)
        """
        ...
