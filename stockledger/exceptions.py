"""
Exceptions for Stockledger.

Every error carries a structured code for programmatic handling. The
subclasses split the codes into the families callers need to tell apart:
clean rejections (nothing was written) versus PartialApplicationError,
which always needs operator attention.
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """
    Structured exception: code + human message + context data.

    Usage:
        raise LedgerError('PRODUCT_NOT_FOUND', product_id=7)
        raise NegativeStockError(available=Decimal('3'), requested=Decimal('5'))
    """

    default_code = 'ERROR'
    _default_messages: dict[str, str] = {}

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.data:
            return f"[{self.code}] {self.message}"
        context = ", ".join(f"{k}={v}" for k, v in self.data.items())
        return f"[{self.code}] {self.message} ({context})"


class LedgerError(BaseError):
    """
    Base for all stock ledger errors.

    Usage:
        try:
            inventory.delete_purchase(purchase, actor)
        except WouldUnderflowError as e:
            print(f"Solo quedan {e.available} en inventario")
        except PartialApplicationError as e:
            alert_operator(e.as_dict())

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'REQUIRED_FIELD': 'Campo obligatorio',
        'INVALID_QUANTITY': 'Cantidad inválida (debe ser mayor a 0)',
        'INVALID_COUNT': 'La cantidad contada debe ser mayor o igual a 0',
        'INVALID_PRECISION': 'Demasiados decimales para el campo',
        'INVALID_UNIT_COST': 'El costo unitario no puede ser negativo',
        'INVALID_DATES': 'La fecha de vencimiento es anterior a la compra',
        'DUPLICATE_INVOICE': 'Ya existe una compra con esa factura del proveedor',
        'PRODUCT_INACTIVE': 'El producto no está activo',
        'NOTE_REQUIRED': 'La nota del movimiento es obligatoria',
        'REASON_REQUIRED': 'El motivo es obligatorio',
        'NO_ACTIVE_PRODUCTS': 'No hay productos activos para verificar',
        'PRODUCT_NOT_FOUND': 'Producto no encontrado',
        'PURCHASE_NOT_FOUND': 'Compra no encontrada',
        'SESSION_NOT_FOUND': 'Verificación no encontrada',
        'NOT_AUTHORIZED': 'Operación no permitida para este usuario',
        'NEGATIVE_STOCK': 'El inventario no puede quedar negativo',
        'WOULD_UNDERFLOW': 'La compra ya fue consumida parcial o totalmente',
        'INVALID_TRANSITION': 'Transición de estado inválida',
        'BACKEND_UNAVAILABLE': 'Base de datos no disponible, intente nuevamente',
        'PARTIAL_APPLICATION': 'Operación aplicada parcialmente, requiere conciliación',
        'PURCHASE_DELETION_FAILED': 'Error al eliminar la compra, requiere conciliación',
        'APPROVAL_FAILED': 'Error al aprobar la verificación, requiere conciliación',
    }

    @property
    def available(self) -> Decimal:
        """Shortcut for data['available']."""
        return self.data.get('available', Decimal('0'))

    @property
    def requested(self) -> Decimal:
        """Shortcut for data['requested']."""
        return self.data.get('requested', Decimal('0'))

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }


class ValidationError(LedgerError):
    """Missing or invalid input. Raised before any write."""

    default_code = 'REQUIRED_FIELD'


class NotFoundError(LedgerError):
    default_code = 'PRODUCT_NOT_FOUND'


class NotAuthorizedError(LedgerError):
    """Actor lacks the capability required by the operation."""

    default_code = 'NOT_AUTHORIZED'


class NegativeStockError(LedgerError):
    """Operation would drive a product's quantity below zero."""

    default_code = 'NEGATIVE_STOCK'


class WouldUnderflowError(NegativeStockError):
    """Purchase deletion rejected: its stock was already consumed downstream."""

    default_code = 'WOULD_UNDERFLOW'


class InvalidTransitionError(LedgerError):
    """Verification state machine misuse. data: current, requested."""

    default_code = 'INVALID_TRANSITION'

    @property
    def current(self) -> str | None:
        return self.data.get('current')

    @property
    def requested_state(self) -> str | None:
        return self.data.get('requested')


class RetryableError(LedgerError):
    """Backend timeout/lock failure. Nothing was applied; safe to retry."""

    default_code = 'BACKEND_UNAVAILABLE'


class PartialApplicationError(LedgerError):
    """
    A multi-step sequence failed after it had started writing.

    The transaction is rolled back, so data should be intact, but the
    caller must surface this to an operator: ``data`` carries the
    identifiers, the steps applied before the failure and whether the
    rollback completed.
    """

    default_code = 'PARTIAL_APPLICATION'

    @property
    def steps_applied(self) -> list[str]:
        return self.data.get('steps_applied', [])


class PurchaseDeletionError(PartialApplicationError):
    default_code = 'PURCHASE_DELETION_FAILED'


class VerificationApprovalError(PartialApplicationError):
    default_code = 'APPROVAL_FAILED'


class DependencyCleanupWarning(UserWarning):
    """Non-fatal failure of a best-effort cleanup (pending expense, invoice file)."""
