"""
Purchase model — one purchase, one Entry movement.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import MovementType


class Purchase(models.Model):
    """
    A product purchase from a supplier.

    LIFECYCLE:
        record_purchase()  → Purchase + Entry movement (one atomic unit)
        finalize_purchase() → invoice attached, Entry no longer provisional
        delete_purchase()  → compensating Exit, purchase removed

    For its whole lifetime a purchase has exactly one live Entry
    movement (enforced by a partial unique constraint on Movement).
    """

    purchase_date = models.DateField(default=timezone.localdate, verbose_name=_('Fecha de compra'))
    supplier = models.CharField(max_length=200, verbose_name=_('Proveedor'))
    invoice_number = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Número de factura'))

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='purchases',
        verbose_name=_('Producto'),
    )
    quantity = models.DecimalField(max_digits=14, decimal_places=3, verbose_name=_('Cantidad'))
    unit = models.CharField(max_length=20, blank=True, default='', verbose_name=_('Unidad'))
    batch_number = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Lote'))
    expiry_date = models.DateField(null=True, blank=True, verbose_name=_('Fecha de vencimiento'))
    unit_cost = models.DecimalField(max_digits=14, decimal_places=2, verbose_name=_('Costo unitario'))
    total_cost = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Costo total'),
        help_text=_('Cantidad × costo unitario'),
    )
    invoice_document = models.CharField(
        max_length=255,
        blank=True,
        default='',
        verbose_name=_('Documento de factura'),
        help_text=_('Referencia en el almacenamiento de documentos'),
    )

    recorded_by = models.CharField(max_length=150, verbose_name=_('Registrado por'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Usuario'),
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('Creado en'))

    class Meta:
        verbose_name = _('Compra')
        verbose_name_plural = _('Compras')
        ordering = ['-purchase_date', '-created_at']
        indexes = [
            models.Index(fields=['supplier', 'invoice_number'], name='purchase_supplier_invoice_idx'),
        ]

    def save(self, *args, **kwargs):
        self.total_cost = self.quantity * self.unit_cost
        super().save(*args, **kwargs)

    @property
    def entry_movement(self):
        """The live Entry movement backing this purchase (or None)."""
        return self.movements.filter(
            movement_type=MovementType.ENTRY,
            reversed_at__isnull=True,
        ).first()

    @property
    def is_provisional(self) -> bool:
        entry = self.entry_movement
        return bool(entry and entry.provisional)

    def snapshot(self) -> dict:
        """Plain-data copy kept on movements after the purchase is gone."""
        return {
            'purchase_id': self.pk,
            'supplier': self.supplier,
            'invoice_number': self.invoice_number,
            'purchase_date': self.purchase_date.isoformat() if self.purchase_date else None,
            'quantity': str(self.quantity),
            'unit_cost': str(self.unit_cost),
        }

    def __str__(self) -> str:
        invoice = f" #{self.invoice_number}" if self.invoice_number else ""
        return f"{self.supplier}{invoice}: {self.quantity} {self.product}"
