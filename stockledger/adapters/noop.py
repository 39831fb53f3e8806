"""
Noop Expense Backend — Stub adapter for projects without a finance module.

This adapter implements the ExpenseBackend protocol with trivial defaults:
there are never pending expenses to remove.

Usage in settings.py:
    STOCKLEDGER = {
        "EXPENSE_BACKEND": "stockledger.adapters.noop.NoopExpenseBackend",
    }
"""

from __future__ import annotations


class NoopExpenseBackend:
    """
    No-operation expense backend.

    Suitable for:

    - Installations where purchases are not mirrored as expenses
    - Unit/integration tests that don't need a finance module
    """

    def remove_pending_for_purchase(self, purchase_id: int) -> int:
        """
        Remove pending expenses. Always removes nothing.

        Args:
            purchase_id: Purchase primary key (ignored).

        Returns:
            0
        """
        return 0
