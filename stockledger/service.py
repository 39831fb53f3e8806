"""
Inventory Service — The single public interface for ledger operations.

Usage:
    from stockledger import inventory, Actor, Role

    ana = Actor('ana@finca.co', Role.ADMINISTRATOR)
    purchase = inventory.record_purchase(PurchaseInput(...), ana)
    inventory.current_balance(urea)        # Decimal('50.000')
    inventory.delete_purchase(purchase, ana)
"""

from datetime import datetime
from decimal import Decimal

from django.db.models import QuerySet

from stockledger.models.movement import Movement
from stockledger.models.purchase import Purchase
from stockledger.models.verification import VerificationLine, VerificationSession
from stockledger.services.ledger import BalanceCheck, StockLedger
from stockledger.services.purchases import PurchaseInput, PurchaseReversal, StockPurchases
from stockledger.services.queries import ReorderSuggestion, StockQueries
from stockledger.services.valuation import (
    MonthlyValuation,
    MovementStats,
    ProductActivity,
    StockValuation,
)
from stockledger.services.verification import StockVerification


class Inventory:
    """
    Single interface for all ledger operations.

    Every mutating method takes the acting Actor explicitly; there is no
    ambient user or session. See each service for locking details.
    """

    # ══════════════════════════════════════════════════════════════
    # LEDGER
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def apply_movement(cls, product, movement_type: str, quantity: Decimal, actor,
                       note: str, **kwargs) -> Movement:
        return StockLedger.apply_movement(product, movement_type, quantity, actor, note, **kwargs)

    @classmethod
    def current_balance(cls, product) -> Decimal:
        return StockLedger.current_balance(product)

    @classmethod
    def computed_balance(cls, product) -> Decimal:
        return StockLedger.computed_balance(product)

    @classmethod
    def verify_balance(cls, product) -> BalanceCheck:
        return StockLedger.verify_balance(product)

    # ══════════════════════════════════════════════════════════════
    # PURCHASES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def record_purchase(cls, data: PurchaseInput, actor, invoice_file=None, **kwargs) -> Purchase:
        return StockPurchases.record_purchase(data, actor, invoice_file=invoice_file, **kwargs)

    @classmethod
    def finalize_purchase(cls, purchase, actor, invoice_number: str = '', **kwargs) -> Purchase:
        return StockPurchases.finalize_purchase(purchase, actor, invoice_number=invoice_number, **kwargs)

    @classmethod
    def delete_purchase(cls, purchase, actor, policy: str | None = None, **kwargs) -> PurchaseReversal:
        return StockPurchases.delete_purchase(purchase, actor, policy=policy, **kwargs)

    # ══════════════════════════════════════════════════════════════
    # VERIFICATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def start_session(cls, actor, notes: str = '') -> VerificationSession:
        return StockVerification.start_session(actor, notes=notes)

    @classmethod
    def restart_session(cls, session, actor, notes: str = '') -> VerificationSession:
        return StockVerification.restart_session(session, actor, notes=notes)

    @classmethod
    def record_count(cls, session, product, counted_quantity: Decimal, actor,
                     notes: str = '') -> VerificationLine:
        return StockVerification.record_count(session, product, counted_quantity, actor, notes=notes)

    @classmethod
    def submit_for_approval(cls, session, actor) -> VerificationSession:
        return StockVerification.submit_for_approval(session, actor)

    @classmethod
    def approve(cls, session, reviewer, notes: str = '') -> VerificationSession:
        return StockVerification.approve(session, reviewer, notes=notes)

    @classmethod
    def reject(cls, session, reviewer, reason: str) -> VerificationSession:
        return StockVerification.reject(session, reviewer, reason)

    # ══════════════════════════════════════════════════════════════
    # VALUATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def current_valuation(cls) -> Decimal:
        return StockValuation.current_valuation()

    @classmethod
    def monthly_valuation(cls, months: int | None = None,
                          now: datetime | None = None) -> list[MonthlyValuation]:
        return StockValuation.monthly_valuation(months=months, now=now)

    @classmethod
    def movement_stats(cls, days: int = 30) -> MovementStats:
        return StockValuation.movement_stats(days=days)

    @classmethod
    def top_products(cls, days: int = 30, limit: int = 5) -> list[ProductActivity]:
        return StockValuation.top_products(days=days, limit=limit)

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def stock_status(cls, product) -> str:
        return StockQueries.stock_status(product)

    @classmethod
    def stock_criticality(cls, product) -> str:
        return StockQueries.stock_criticality(product)

    @classmethod
    def can_withdraw(cls, product, quantity) -> bool:
        return StockQueries.can_withdraw(product, quantity)

    @classmethod
    def low_stock(cls) -> QuerySet:
        return StockQueries.low_stock()

    @classmethod
    def weighted_average_cost(cls, product, last: int = 10) -> Decimal:
        return StockQueries.weighted_average_cost(product, last=last)

    @classmethod
    def suggested_reorder(cls, product, days: int = 30, horizon_days: int = 60) -> ReorderSuggestion:
        return StockQueries.suggested_reorder(product, days=days, horizon_days=horizon_days)

    @classmethod
    def movements_for(cls, product, include_tombstones: bool = False) -> QuerySet:
        return StockQueries.movements_for(product, include_tombstones=include_tombstones)
