"""
Stockledger Protocols.

Defines interfaces for external system integration.
"""

from stockledger.protocols.documents import DocumentStorage
from stockledger.protocols.expenses import ExpenseBackend

__all__ = [
    "DocumentStorage",
    "ExpenseBackend",
]
