"""
Stockledger configuration.

Usage in settings.py:
    STOCKLEDGER = {
        "ENTRY_REVERSAL_POLICY": "reverse",      # or "delete"
        "REJECTED_SESSION_POLICY": "terminal",   # or "supersede"
        "DIFFERENCE_TOLERANCE_PERCENT": 1,
        "CAPABILITIES": {"verifier": ["count_stock"]},
        "DOCUMENT_STORAGE": "stockledger.adapters.storage.DjangoDocumentStorage",
        "EXPENSE_BACKEND": "stockledger.adapters.noop.NoopExpenseBackend",
    }
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.conf import settings


REVERSAL_POLICIES = ('reverse', 'delete')
REJECTED_SESSION_POLICIES = ('terminal', 'supersede')


@dataclass
class StockledgerSettings:
    """Stockledger configuration settings."""

    # What happens to the original Entry when a purchase is deleted:
    # "reverse" keeps it (marked reversed), "delete" removes it and keeps
    # the compensating Exit as an audit-only tombstone.
    ENTRY_REVERSAL_POLICY: str = 'reverse'

    # "terminal": a rejected count stays rejected.
    # "supersede": a rejected count may be restarted as a new session.
    REJECTED_SESSION_POLICY: str = 'terminal'

    # Differences within this percentage are labelled "within tolerance"
    DIFFERENCE_TOLERANCE_PERCENT: Decimal = Decimal('1')

    # Role -> list of capability names, merged over the defaults
    CAPABILITIES: dict[str, list[str]] = field(default_factory=dict)

    # Invoice document storage backend (dotted path)
    DOCUMENT_STORAGE: str = 'stockledger.adapters.storage.DjangoDocumentStorage'

    # Pending-expense backend (dotted path)
    EXPENSE_BACKEND: str = 'stockledger.adapters.noop.NoopExpenseBackend'

    # Default window for the monthly valuation summary
    VALUATION_MONTHS: int = 6


def get_stockledger_settings() -> StockledgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKLEDGER", {})
    return StockledgerSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockledgerSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stockledger_settings(), name)


stockledger_settings = _LazySettings()
