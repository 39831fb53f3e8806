"""
Stock queries — read-only operations.

All methods are classmethods and use no locking.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from django.db.models import QuerySet, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from stockledger.exceptions import NotFoundError
from stockledger.models.enums import StockStatus
from stockledger.models.movement import Movement
from stockledger.models.product import Product
from stockledger.models.purchase import Purchase
from stockledger.services.ledger import as_decimal, pk_of

ZERO = Decimal('0')


@dataclass(frozen=True)
class ReorderSuggestion:
    """Quantity to buy to cover `horizon_days` at the recent consumption rate."""

    product_id: int
    suggested: int
    daily_consumption: Decimal
    days_analyzed: int
    horizon_days: int

    @property
    def has_history(self) -> bool:
        return self.daily_consumption > 0


class StockQueries:
    """Read-only stock query methods."""

    @classmethod
    def get_product(cls, product) -> Product:
        pk = pk_of(product)
        try:
            return Product.objects.get(pk=pk)
        except Product.DoesNotExist:
            raise NotFoundError('PRODUCT_NOT_FOUND', product_id=pk)

    @classmethod
    def stock_status(cls, product) -> str:
        """out_of_stock at zero, low at or below min_stock, else available."""
        product = cls.get_product(product)
        if product.quantity <= 0:
            return StockStatus.OUT_OF_STOCK
        if product.quantity <= product.min_stock:
            return StockStatus.LOW
        return StockStatus.AVAILABLE

    @classmethod
    def stock_criticality(cls, product) -> str:
        """
        Stock level relative to the minimum.

        critical: empty or below half the minimum
        low:      at or below the minimum
        normal:   up to 1.5× the minimum
        good:     above that
        """
        product = cls.get_product(product)
        current, minimum = product.quantity, product.min_stock
        if current == 0 or current < minimum * Decimal('0.5'):
            return 'critical'
        if current <= minimum:
            return 'low'
        if current <= minimum * Decimal('1.5'):
            return 'normal'
        return 'good'

    @classmethod
    def can_withdraw(cls, product, quantity) -> bool:
        """Whether an Exit of `quantity` would keep the balance non-negative."""
        return cls.get_product(product).quantity - as_decimal(quantity, 'quantity') >= 0

    @classmethod
    def low_stock(cls) -> QuerySet:
        """Active products at or below their minimum stock."""
        return Product.objects.low_stock()

    @classmethod
    def weighted_average_cost(cls, product, last: int = 10) -> Decimal:
        """
        Average unit cost of the most recent purchases, weighted by quantity.

        Returns 0 when the product has no purchases.
        """
        rows = list(
            Purchase.objects.filter(product_id=pk_of(product))
            .order_by('-created_at', '-pk')
            .values_list('quantity', 'unit_cost')[:last]
        )
        total_quantity = sum((quantity for quantity, _ in rows), ZERO)
        if not total_quantity:
            return ZERO
        total_cost = sum((quantity * cost for quantity, cost in rows), ZERO)
        return (total_cost / total_quantity).quantize(Decimal('0.01'))

    @classmethod
    def suggested_reorder(cls, product, days: int = 30, horizon_days: int = 60,
                          now: datetime | None = None) -> ReorderSuggestion:
        """
        Reorder quantity from the average daily consumption.

        Consumption is the sum of live Exit movements in the last `days`
        days, excluding purchase reversals. The suggestion is rounded up.
        """
        pk = pk_of(product)
        now = now or timezone.now()
        consumed = (
            Movement.objects.live().exits()
            .filter(
                product_id=pk,
                reversal_of__isnull=True,
                timestamp__gte=now - timedelta(days=days),
                timestamp__lte=now,
            )
            .aggregate(t=Coalesce(Sum('quantity'), ZERO))['t']
        )
        daily = consumed / days if days else ZERO
        return ReorderSuggestion(
            product_id=pk,
            suggested=math.ceil(daily * horizon_days),
            daily_consumption=daily.quantize(Decimal('0.001')),
            days_analyzed=days,
            horizon_days=horizon_days,
        )

    @classmethod
    def movements_for(cls, product, include_tombstones: bool = False) -> QuerySet:
        """Movement history of a product, oldest first."""
        qs = Movement.objects.filter(product_id=pk_of(product))
        if not include_tombstones:
            qs = qs.live()
        return qs.order_by('timestamp', 'pk')
