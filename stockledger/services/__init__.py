"""
Stock services — modular organization of ledger operations.

Re-exports the service classes:
    from stockledger.services import StockLedger, StockPurchases, StockVerification
"""

from stockledger.services.ledger import StockLedger
from stockledger.services.purchases import StockPurchases
from stockledger.services.queries import StockQueries
from stockledger.services.valuation import StockValuation
from stockledger.services.verification import StockVerification

__all__ = [
    'StockLedger',
    'StockPurchases',
    'StockQueries',
    'StockValuation',
    'StockVerification',
]
