"""
Movement model — Append-only ledger of quantity changes.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import MovementType


class MovementQuerySet(models.QuerySet):
    """
    QuerySet for Movement.

    mark_reversed() and tombstone() are the only sanctioned writes on
    existing movements; both are used by the purchase reversal flow and
    never touch quantity or balance fields.
    """

    def live(self):
        """Movements that count toward the product balance."""
        return self.filter(is_tombstone=False)

    def entries(self):
        return self.filter(movement_type=MovementType.ENTRY)

    def exits(self):
        return self.filter(movement_type=MovementType.EXIT)

    def for_product(self, product):
        return self.filter(product=product)

    def finalize(self):
        """Clear the provisional flag once the backing purchase is finalized."""
        return self.update(provisional=False)

    def mark_reversed(self, compensating):
        """Flag movements as reversed by the given compensating movement."""
        return self.update(reversed_at=timezone.now(), reversed_by=compensating)

    def tombstone(self, **snapshot):
        """
        Turn movements into audit-only records.

        A tombstone stays in the history but no longer counts toward the
        product balance. Only valid together with removal of the movement
        it compensates, inside the same transaction.
        """
        count = 0
        for movement in self:
            metadata = {**movement.metadata, **snapshot}
            count += self.model._default_manager.using(self.db).filter(pk=movement.pk).update(
                is_tombstone=True,
                metadata=metadata,
            )
        return count


class Movement(models.Model):
    """
    Immutable record of a quantity change.

    Rules:
    - NEVER update() or delete() (except the purchase reversal flow)
    - Corrections are new Movements in the opposite direction
    - Updates Product._quantity atomically on save()

    prior_balance/new_balance are captured at write time by the ledger
    service under a row lock, never recomputed later.
    """

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Producto'),
    )
    movement_type = models.CharField(
        max_length=10,
        choices=MovementType.choices,
        verbose_name=_('Tipo'),
    )
    quantity = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        verbose_name=_('Cantidad'),
        help_text=_('Siempre positiva. El tipo define la dirección.'),
    )
    prior_balance = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        verbose_name=_('Saldo anterior'),
    )
    new_balance = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        verbose_name=_('Saldo nuevo'),
    )
    unit_value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Valor unitario'),
    )
    value = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Valor'),
        help_text=_('Cantidad × valor unitario al momento del movimiento'),
    )

    purchase = models.ForeignKey(
        'stockledger.Purchase',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Compra'),
    )
    note = models.CharField(
        max_length=255,
        verbose_name=_('Nota'),
        help_text=_('Obligatoria. Ej: "Compra #F-102", "Ajuste conteo #4"'),
    )
    provisional = models.BooleanField(
        default=False,
        verbose_name=_('Provisional'),
        help_text=_('Registrado antes de que la compra/factura esté finalizada'),
    )

    # Reversal links
    reversal_of = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Revierte a'),
    )
    reversed_by = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Revertido por'),
    )
    reversed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Revertido en'))
    is_tombstone = models.BooleanField(
        default=False,
        verbose_name=_('Solo auditoría'),
        help_text=_('Registro de una entrada eliminada; no cuenta en el saldo'),
    )

    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadatos'))
    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Fecha/Hora'))
    actor = models.CharField(max_length=150, verbose_name=_('Responsable'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Usuario'),
    )

    objects = MovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Movimiento')
        verbose_name_plural = _('Movimientos')
        ordering = ['timestamp', 'pk']
        indexes = [
            models.Index(fields=['product', 'timestamp'], name='movement_product_ts_idx'),
            models.Index(fields=['timestamp'], name='movement_timestamp_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='movement_quantity_positive',
            ),
            models.UniqueConstraint(
                fields=['purchase'],
                condition=models.Q(movement_type='entry', reversed_at__isnull=True),
                name='one_live_entry_per_purchase',
            ),
        ]

    @property
    def signed_quantity(self) -> Decimal:
        if self.movement_type == MovementType.EXIT:
            return -self.quantity
        return self.quantity

    @property
    def is_reversed(self) -> bool:
        return self.reversed_at is not None

    def save(self, *args, **kwargs):
        """Save movement and update product cache atomically."""
        # Immutability check
        if self.pk:
            raise ValueError(
                "Los movimientos son inmutables. "
                "Para corregir, registre un movimiento en sentido contrario."
            )

        if not self.note:
            raise ValueError("La nota del movimiento es obligatoria")

        with transaction.atomic():
            super().save(*args, **kwargs)

            from stockledger.models.product import Product

            Product.objects.filter(pk=self.product_id).update(
                _quantity=F('_quantity') + self.signed_quantity,
                updated_at=timezone.now(),
            )

    def delete(self, *args, **kwargs):
        """Prevent deletion. Movements are immutable."""
        raise ValueError(
            "Los movimientos son inmutables. "
            "Para revertir, registre un movimiento en sentido contrario."
        )

    def __str__(self) -> str:
        sign = '+' if self.movement_type == MovementType.ENTRY else '-'
        return f"{sign}{self.quantity} {self.product} | {self.note}"
