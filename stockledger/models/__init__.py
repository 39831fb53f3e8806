"""
Stockledger Models.

Core models for the inventory ledger:
- Product: On-hand quantity cache
- Movement: Append-only ledger of changes
- Purchase: Supplier purchase backed by one Entry movement
- VerificationSession / VerificationLine: Physical counts
"""

from stockledger.models.enums import DifferenceStatus, MovementType, SessionStatus, StockStatus
from stockledger.models.movement import Movement
from stockledger.models.product import Product
from stockledger.models.purchase import Purchase
from stockledger.models.verification import VerificationLine, VerificationSession, VerificationSummary

__all__ = [
    'MovementType',
    'SessionStatus',
    'DifferenceStatus',
    'StockStatus',
    'Product',
    'Movement',
    'Purchase',
    'VerificationSession',
    'VerificationLine',
    'VerificationSummary',
]
