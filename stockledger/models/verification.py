"""
Verification models — physical-count sessions and their lines.
"""

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import DifferenceStatus, SessionStatus


@dataclass(frozen=True)
class VerificationSummary:
    """Counters derived from a session's lines."""

    total_lines: int
    lines_counted: int
    lines_matching: int
    lines_with_difference: int
    total_difference_value: Decimal

    @property
    def completion_percent(self) -> Decimal:
        if not self.total_lines:
            return Decimal('0')
        return (Decimal(self.lines_counted) * 100 / self.total_lines).quantize(Decimal('0.01'))

    @property
    def is_complete(self) -> bool:
        return self.total_lines > 0 and self.lines_counted == self.total_lines


class VerificationSession(models.Model):
    """
    A bounded physical-count exercise.

    LIFECYCLE:

        ┌─────────────┐  submit   ┌──────────────────┐  approve  ┌──────────┐
        │ IN_PROGRESS │ ────────► │ PENDING_APPROVAL │ ────────► │ APPROVED │
        └─────────────┘           └──────────────────┘           └──────────┘
                                           │ reject
                                           ▼
                                     ┌──────────┐
                                     │ REJECTED │
                                     └──────────┘

    Summary counters are a cache of the lines, refreshed in the same
    transaction as every line write (see refresh_summary()).
    """

    started_at = models.DateTimeField(default=timezone.now, verbose_name=_('Inicio'))
    ended_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Fin del conteo'))
    status = models.CharField(
        max_length=20,
        choices=SessionStatus.choices,
        default=SessionStatus.IN_PROGRESS,
        db_index=True,
        verbose_name=_('Estado'),
    )

    verifier = models.CharField(max_length=150, verbose_name=_('Verificador'))
    verifier_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    reviewer = models.CharField(max_length=150, blank=True, default='', verbose_name=_('Revisor'))
    reviewer_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    reviewed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Revisado en'))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Completado en'))

    notes = models.TextField(blank=True, default='', verbose_name=_('Observaciones'))
    rejection_reason = models.TextField(blank=True, default='', verbose_name=_('Motivo de rechazo'))
    supersedes = models.OneToOneField(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='superseded_by',
        verbose_name=_('Reemplaza a'),
    )

    # Summary cache (refreshed from lines)
    total_lines = models.PositiveIntegerField(default=0)
    lines_counted = models.PositiveIntegerField(default=0)
    lines_matching = models.PositiveIntegerField(default=0)
    lines_with_difference = models.PositiveIntegerField(default=0)
    total_difference_value = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))

    class Meta:
        verbose_name = _('Verificación de inventario')
        verbose_name_plural = _('Verificaciones de inventario')
        ordering = ['-started_at']

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.APPROVED, SessionStatus.REJECTED)

    def summary(self) -> VerificationSummary:
        return VerificationSummary(
            total_lines=self.total_lines,
            lines_counted=self.lines_counted,
            lines_matching=self.lines_matching,
            lines_with_difference=self.lines_with_difference,
            total_difference_value=self.total_difference_value,
        )

    def compute_summary(self) -> VerificationSummary:
        """Summary straight from the lines (no cache)."""
        result = self.lines.aggregate(
            total=Count('pk'),
            counted=Count('pk', filter=Q(counted_quantity__isnull=False)),
            matching=Count('pk', filter=Q(counted_quantity__isnull=False, difference=0)),
            with_difference=Count(
                'pk', filter=Q(counted_quantity__isnull=False) & ~Q(difference=0)
            ),
            value=Coalesce(Sum('monetary_difference'), Decimal('0')),
        )
        return VerificationSummary(
            total_lines=result['total'],
            lines_counted=result['counted'],
            lines_matching=result['matching'],
            lines_with_difference=result['with_difference'],
            total_difference_value=result['value'],
        )

    def refresh_summary(self) -> VerificationSummary:
        summary = self.compute_summary()
        self.total_lines = summary.total_lines
        self.lines_counted = summary.lines_counted
        self.lines_matching = summary.lines_matching
        self.lines_with_difference = summary.lines_with_difference
        self.total_difference_value = summary.total_difference_value
        self.save(update_fields=[
            'total_lines', 'lines_counted', 'lines_matching',
            'lines_with_difference', 'total_difference_value',
        ])
        return summary

    def __str__(self) -> str:
        return f"Verificación #{self.pk} ({self.get_status_display()})"


class VerificationLine(models.Model):
    """
    One product in a count.

    expected_quantity and unit_price are snapshots taken when the session
    starts; differences are computed against them.
    """

    session = models.ForeignKey(
        VerificationSession,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name=_('Verificación'),
    )
    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='verification_lines',
        verbose_name=_('Producto'),
    )
    expected_quantity = models.DecimalField(max_digits=14, decimal_places=3, verbose_name=_('Cantidad teórica'))
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), verbose_name=_('Precio unitario'))

    counted_quantity = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Cantidad física'),
    )
    difference = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True, verbose_name=_('Diferencia'))
    difference_percent = models.DecimalField(max_digits=9, decimal_places=2, null=True, blank=True, verbose_name=_('Diferencia %'))
    monetary_difference = models.DecimalField(max_digits=16, decimal_places=2, null=True, blank=True, verbose_name=_('Valor diferencia'))
    difference_status = models.CharField(
        max_length=20,
        choices=DifferenceStatus.choices,
        blank=True,
        default='',
        verbose_name=_('Estado diferencia'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Observaciones'))
    counted_at = models.DateTimeField(null=True, blank=True)
    counted_by = models.CharField(max_length=150, blank=True, default='')

    adjustment = models.OneToOneField(
        'stockledger.Movement',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='verification_line',
        verbose_name=_('Movimiento de ajuste'),
    )

    class Meta:
        verbose_name = _('Detalle de verificación')
        verbose_name_plural = _('Detalles de verificación')
        ordering = ['product__name']
        constraints = [
            models.UniqueConstraint(fields=['session', 'product'], name='unique_line_per_session_product'),
        ]

    @property
    def is_counted(self) -> bool:
        return self.counted_quantity is not None

    @property
    def has_difference(self) -> bool:
        return self.is_counted and self.difference != 0

    def __str__(self) -> str:
        counted = self.counted_quantity if self.is_counted else '?'
        return f"{self.product}: {counted}/{self.expected_quantity}"
