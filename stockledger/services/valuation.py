"""
Valuation and movement reporting. Read-only.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.db.models import Count, DateField, Q, Sum
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from stockledger.conf import stockledger_settings
from stockledger.exceptions import ValidationError
from stockledger.models.enums import MovementType
from stockledger.models.movement import Movement
from stockledger.models.product import Product

logger = logging.getLogger('stockledger')

ZERO = Decimal('0')
CENTS = Decimal('0.01')


@dataclass(frozen=True)
class MonthlyValuation:
    """One month bucket of the valuation summary."""

    month: date
    entries_value: Decimal
    exits_value: Decimal
    movements: int
    closing_value: Decimal
    is_estimate: bool = True

    @property
    def net_value(self) -> Decimal:
        return self.entries_value - self.exits_value


@dataclass(frozen=True)
class MovementStats:
    days: int
    total: int
    entries: int
    exits: int
    entries_value: Decimal
    exits_value: Decimal
    products: int

    @property
    def daily_average(self) -> Decimal:
        if not self.days:
            return ZERO
        return (Decimal(self.total) / self.days).quantize(CENTS)


@dataclass(frozen=True)
class ProductActivity:
    product_id: int
    name: str
    movements: int
    quantity: Decimal


def _window_start(days: int, now: datetime) -> datetime:
    return now - timedelta(days=days)


def _month_starts(last: date, months: int) -> list[date]:
    """First day of each of the `months` months ending with `last`, oldest first."""
    year, month = last.year, last.month
    starts = []
    for _ in range(months):
        starts.append(date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def _aware(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min))


class StockValuation:
    """Valuation methods."""

    @classmethod
    def current_valuation(cls) -> Decimal:
        """Σ quantity × unit price over active products."""
        total = sum(
            (quantity * price for quantity, price in
             Product.objects.active().values_list('_quantity', 'unit_price')),
            ZERO,
        )
        return total.quantize(CENTS)

    @classmethod
    def monthly_valuation(cls, months: int | None = None, now: datetime | None = None) -> list[MonthlyValuation]:
        """
        Entries and exits value per month, with an estimated closing value.

        The closing value is NOT a historical record. It is derived by
        walking backward from today's valuation: each earlier month closes
        at the following month's closing value minus that month's entries
        plus its exits. This assumes unit prices did not change over the
        window, so rows are flagged is_estimate=True.

        Movements after the last bucket (when `now` is in the past) are
        unwound first, so the last bucket closes at the estimated value
        for its own month end.

        Only movements of active products are summed, matching the
        starting point from current_valuation().

        Returns:
            One row per month, oldest first, always `months` rows long.

        Raises:
            ValidationError: months is less than 1
        """
        if months is None:
            months = stockledger_settings.VALUATION_MONTHS
        if months < 1:
            raise ValidationError('REQUIRED_FIELD', field='months', value=months)
        now = now or timezone.now()
        starts = _month_starts(timezone.localdate(now), months)
        window_start = _aware(starts[0])
        window_end = _aware(_next_month(starts[-1]))

        live = Movement.objects.live().exclude(product__is_active=False).order_by()
        rows = (
            live.filter(timestamp__gte=window_start, timestamp__lt=window_end)
            .annotate(month=TruncMonth('timestamp', output_field=DateField()))
            .values('month')
            .annotate(
                entries=Coalesce(Sum('value', filter=Q(movement_type=MovementType.ENTRY)), ZERO),
                exits=Coalesce(Sum('value', filter=Q(movement_type=MovementType.EXIT)), ZERO),
                count=Count('pk'),
            )
        )
        buckets = {row['month']: row for row in rows}

        later = live.filter(timestamp__gte=window_end).aggregate(
            entries=Coalesce(Sum('value', filter=Q(movement_type=MovementType.ENTRY)), ZERO),
            exits=Coalesce(Sum('value', filter=Q(movement_type=MovementType.EXIT)), ZERO),
        )
        closing = cls.current_valuation() - later['entries'] + later['exits']

        result = []
        for start in reversed(starts):
            row = buckets.get(start, {})
            entries = row.get('entries', ZERO)
            exits = row.get('exits', ZERO)
            result.append(MonthlyValuation(
                month=start,
                entries_value=entries,
                exits_value=exits,
                movements=row.get('count', 0),
                closing_value=closing.quantize(CENTS),
            ))
            closing = closing - entries + exits

        result.reverse()
        logger.debug("valuation.monthly", extra={"months": months, "from": starts[0].isoformat()})
        return result

    @classmethod
    def movement_stats(cls, days: int = 30, now: datetime | None = None) -> MovementStats:
        """Movement counts and values over the last `days` days."""
        now = now or timezone.now()
        totals = Movement.objects.live().filter(
            timestamp__gte=_window_start(days, now),
            timestamp__lte=now,
        ).aggregate(
            total=Count('pk'),
            entries=Count('pk', filter=Q(movement_type=MovementType.ENTRY)),
            exits=Count('pk', filter=Q(movement_type=MovementType.EXIT)),
            entries_value=Coalesce(Sum('value', filter=Q(movement_type=MovementType.ENTRY)), ZERO),
            exits_value=Coalesce(Sum('value', filter=Q(movement_type=MovementType.EXIT)), ZERO),
            products=Count('product', distinct=True),
        )
        return MovementStats(days=days, **totals)

    @classmethod
    def top_products(cls, days: int = 30, limit: int = 5, now: datetime | None = None) -> list[ProductActivity]:
        """Products with the most movements in the last `days` days."""
        now = now or timezone.now()
        rows = (
            Movement.objects.live()
            .filter(timestamp__gte=_window_start(days, now), timestamp__lte=now)
            .values('product_id', 'product__name')
            .annotate(count=Count('pk'), total=Sum('quantity'))
            .order_by('-count', 'product__name')[:limit]
        )
        return [
            ProductActivity(
                product_id=row['product_id'],
                name=row['product__name'],
                movements=row['count'],
                quantity=row['total'],
            )
            for row in rows
        ]
