"""
Enums for Stockledger models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """Direction of a movement. Entry adds stock, Exit removes it."""
    ENTRY = 'entry', _('Entrada')
    EXIT = 'exit', _('Salida')


class SessionStatus(models.TextChoices):
    """
    Verification session lifecycle.

    IN_PROGRESS → PENDING_APPROVAL → APPROVED
                                   ↘ REJECTED
    """
    IN_PROGRESS = 'in_progress', _('En proceso')
    PENDING_APPROVAL = 'pending_approval', _('Pendiente aprobación')
    APPROVED = 'approved', _('Aprobada')
    REJECTED = 'rejected', _('Rechazada')


class DifferenceStatus(models.TextChoices):
    """Outcome of a counted line."""
    MATCH = 'match', _('Sin diferencia')
    WITHIN_TOLERANCE = 'within_tolerance', _('Diferencia aceptable')
    SURPLUS = 'surplus', _('Sobrante')
    SHORTAGE = 'shortage', _('Faltante')


class StockStatus(models.TextChoices):
    OUT_OF_STOCK = 'out_of_stock', _('Sin existencias')
    LOW = 'low', _('Stock bajo')
    AVAILABLE = 'available', _('Disponible')
