"""
Product model — on-hand quantity cache owned by the ledger.
"""

import logging
from decimal import Decimal

from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import MovementType

logger = logging.getLogger('stockledger')


class ProductQuerySet(models.QuerySet):
    """QuerySet with helper filters for Product."""

    def active(self):
        """Active products. A null flag counts as active."""
        return self.exclude(is_active=False)

    def low_stock(self):
        """Active products at or below their minimum stock."""
        return self.active().filter(_quantity__lte=models.F('min_stock'))


class Product(models.Model):
    """
    Product stocked on the farm (agrochemicals, fertilizers, tools...).

    Performance:
    - _quantity is a cache updated atomically by Movement
    - Read is O(1), not O(N)
    - Use recalculate() for audit/correction

    The quantity is NEVER edited directly. Every change goes through
    Ledger.apply_movement(), which records the matching Movement.
    """

    name = models.CharField(max_length=200, verbose_name=_('Nombre'))
    category = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Categoría'))
    unit = models.CharField(
        max_length=20,
        default='unidad',
        verbose_name=_('Unidad de medida'),
        help_text=_('Ej: kg, L, unidad'),
    )

    # Quantity cache (updated atomically by Movement)
    _quantity = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Cantidad actual'),
    )
    min_stock = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Stock mínimo'),
    )
    unit_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Precio unitario'),
    )
    is_active = models.BooleanField(null=True, default=True, verbose_name=_('Activo'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        verbose_name = _('Producto')
        verbose_name_plural = _('Productos')
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(_quantity__gte=0),
                name='product_quantity_non_negative',
            ),
        ]

    @property
    def quantity(self) -> Decimal:
        """Current on-hand quantity (O(1) cache read)."""
        return self._quantity

    @property
    def valuation(self) -> Decimal:
        return self._quantity * self.unit_price

    def computed_quantity(self) -> Decimal:
        """Signed sum of live movements (Entry +, Exit -)."""
        totals = self.movements.live().aggregate(
            entries=Coalesce(
                Sum('quantity', filter=models.Q(movement_type=MovementType.ENTRY)),
                Decimal('0'),
            ),
            exits=Coalesce(
                Sum('quantity', filter=models.Q(movement_type=MovementType.EXIT)),
                Decimal('0'),
            ),
        )
        return totals['entries'] - totals['exits']

    def recalculate(self) -> Decimal:
        """
        Recalculate quantity from live Movements.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency

        Returns:
            New calculated quantity
        """
        total = self.computed_quantity()

        if total != self._quantity:
            old = self._quantity
            self._quantity = total
            self.save(update_fields=['_quantity', 'updated_at'])

            logger.warning(
                "ledger.product.recalculated",
                extra={
                    "product_id": self.pk,
                    "old": str(old),
                    "new": str(total),
                    "diff": str(total - old),
                },
            )

        return total

    def __str__(self) -> str:
        return self.name
