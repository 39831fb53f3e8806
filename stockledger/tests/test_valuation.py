"""
Tests for valuation and movement reporting.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from stockledger.exceptions import ValidationError
from stockledger.models import Movement, MovementType
from stockledger.services.ledger import StockLedger
from stockledger.services.purchases import PurchaseInput, StockPurchases
from stockledger.services.valuation import StockValuation


pytestmark = pytest.mark.django_db


def at(year, month, day, hour=9):
    return timezone.make_aware(datetime(year, month, day, hour, 0))


@pytest.fixture
def history(urea, glifosato, admin_actor):
    """
    urea (price 100): +10 on Apr 10, −3 on May 20, +5 on Jun 5
    glifosato (price 40): +1 on Jun 10
    """
    def move(product, movement_type, quantity, when):
        movement = StockLedger.apply_movement(product, movement_type, Decimal(quantity), admin_actor, 'Histórico')
        # Backdate for the test; timestamps are otherwise set at write time
        Movement.objects.filter(pk=movement.pk).update(timestamp=when)

    move(urea, MovementType.ENTRY, '10', at(2026, 4, 10))
    move(urea, MovementType.EXIT, '3', at(2026, 5, 20))
    move(urea, MovementType.ENTRY, '5', at(2026, 6, 5))
    move(glifosato, MovementType.ENTRY, '1', at(2026, 6, 10))


class TestCurrentValuation:

    def test_sums_active_products(self, history, inactive_product, stocked):
        stocked(inactive_product, '5')

        # urea 12 × 100 + glifosato 1 × 40
        assert StockValuation.current_valuation() == Decimal('1240.00')

    def test_empty(self, db):
        assert StockValuation.current_valuation() == Decimal('0')


class TestMonthlyValuation:
    """Backward walk from the current valuation."""

    def test_buckets_and_estimated_closing(self, history):
        rows = StockValuation.monthly_valuation(months=3, now=at(2026, 6, 15))

        assert [row.month for row in rows] == [date(2026, 4, 1), date(2026, 5, 1), date(2026, 6, 1)]
        april, may, june = rows

        assert june.entries_value == Decimal('540')
        assert june.exits_value == Decimal('0')
        assert june.closing_value == Decimal('1240.00')
        assert june.movements == 2

        assert may.entries_value == Decimal('0')
        assert may.exits_value == Decimal('300')
        assert may.closing_value == Decimal('700.00')

        assert april.entries_value == Decimal('1000')
        assert april.closing_value == Decimal('1000.00')
        assert april.net_value == Decimal('1000')

        assert all(row.is_estimate for row in rows)

    def test_unwinds_movements_after_window(self, history):
        rows = StockValuation.monthly_valuation(months=2, now=at(2026, 5, 25))

        april, may = rows
        assert may.closing_value == Decimal('700.00')
        assert april.closing_value == Decimal('1000.00')

    def test_inactive_products_are_left_out(self, history, inactive_product, stocked):
        """Stock of a deactivated product is neither in the start value nor in the monthly sums."""
        stocked(inactive_product, '50')
        Movement.objects.filter(product=inactive_product).update(timestamp=at(2026, 6, 12))

        april, may, june = StockValuation.monthly_valuation(months=3, now=at(2026, 6, 15))

        assert june.entries_value == Decimal('540')
        assert june.movements == 2
        assert june.closing_value == Decimal('1240.00')
        assert may.closing_value == Decimal('700.00')
        assert april.closing_value == Decimal('1000.00')

    def test_product_deactivated_with_stock(self, urea, admin_actor):
        StockLedger.apply_movement(urea, MovementType.ENTRY, Decimal('5'), admin_actor, 'Compra')
        urea.is_active = False
        urea.save(update_fields=['is_active'])

        rows = StockValuation.monthly_valuation(months=2)

        assert [row.closing_value for row in rows] == [Decimal('0.00'), Decimal('0.00')]
        assert all(row.closing_value >= 0 for row in rows)

    @pytest.mark.parametrize('months', [0, -1])
    def test_months_must_be_positive(self, db, months):
        with pytest.raises(ValidationError) as exc:
            StockValuation.monthly_valuation(months=months)

        assert exc.value.data['field'] == 'months'

    def test_empty_months_are_present(self, history):
        rows = StockValuation.monthly_valuation(months=3, now=at(2026, 9, 1))

        assert [row.movements for row in rows] == [0, 0, 0]
        assert {row.closing_value for row in rows} == {Decimal('1240.00')}

    def test_window_crosses_year(self, db):
        rows = StockValuation.monthly_valuation(months=3, now=at(2026, 1, 15))

        assert [row.month for row in rows] == [date(2025, 11, 1), date(2025, 12, 1), date(2026, 1, 1)]

    def test_default_window_from_settings(self, db, settings):
        settings.STOCKLEDGER = {'VALUATION_MONTHS': 4}

        assert len(StockValuation.monthly_valuation(now=at(2026, 6, 15))) == 4


class TestMovementStats:

    def test_window_totals(self, history):
        stats = StockValuation.movement_stats(days=30, now=at(2026, 6, 15))

        assert stats.total == 3
        assert stats.entries == 2
        assert stats.exits == 1
        assert stats.entries_value == Decimal('540')
        assert stats.exits_value == Decimal('300')
        assert stats.products == 2
        assert stats.daily_average == Decimal('0.10')

    def test_tombstones_are_excluded(self, urea, admin_actor):
        purchase = StockPurchases.record_purchase(
            PurchaseInput(supplier='Agroinsumos', product=urea, quantity=Decimal('4'), unit_cost=Decimal('90')),
            admin_actor,
        )
        StockPurchases.delete_purchase(purchase, admin_actor, policy='delete')

        assert StockValuation.movement_stats(days=1).total == 0


class TestTopProducts:

    def test_ordered_by_activity(self, history, urea, glifosato):
        top = StockValuation.top_products(days=30, now=at(2026, 6, 15))

        assert [(p.product_id, p.movements) for p in top] == [(urea.pk, 2), (glifosato.pk, 1)]
        assert top[0].name == 'Urea 46%'
        assert top[0].quantity == Decimal('8')

    def test_limit(self, history, urea):
        top = StockValuation.top_products(days=30, limit=1, now=at(2026, 6, 15))

        assert [p.product_id for p in top] == [urea.pk]
