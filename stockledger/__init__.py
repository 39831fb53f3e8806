"""
Django Stockledger — Libro de inventario de insumos de la finca.

Uso:
    from stockledger import inventory, Actor, Role, LedgerError

    ana = Actor('ana@finca.co', Role.ADMINISTRATOR)
    inventory.record_purchase(datos, ana)
    inventory.current_balance(urea)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'inventory':
        from stockledger.service import Inventory
        return Inventory
    elif name in ('Actor', 'Role', 'Capability'):
        from stockledger import permissions
        return getattr(permissions, name)
    elif name == 'PurchaseInput':
        from stockledger.services.purchases import PurchaseInput
        return PurchaseInput
    elif name in (
        'LedgerError', 'ValidationError', 'NotFoundError', 'NotAuthorizedError',
        'NegativeStockError', 'WouldUnderflowError', 'InvalidTransitionError',
        'RetryableError', 'PartialApplicationError', 'PurchaseDeletionError',
        'VerificationApprovalError', 'DependencyCleanupWarning',
    ):
        from stockledger import exceptions
        return getattr(exceptions, name)
    elif name in (
        'Product', 'Movement', 'Purchase', 'VerificationSession', 'VerificationLine',
        'MovementType', 'SessionStatus', 'DifferenceStatus', 'StockStatus',
    ):
        from stockledger import models
        return getattr(models, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'inventory',
    'Actor',
    'Role',
    'Capability',
    'PurchaseInput',
    'LedgerError',
    'ValidationError',
    'NotFoundError',
    'NotAuthorizedError',
    'NegativeStockError',
    'WouldUnderflowError',
    'InvalidTransitionError',
    'RetryableError',
    'PartialApplicationError',
    'PurchaseDeletionError',
    'VerificationApprovalError',
    'DependencyCleanupWarning',
    'Product',
    'Movement',
    'Purchase',
    'VerificationSession',
    'VerificationLine',
    'MovementType',
    'SessionStatus',
    'DifferenceStatus',
    'StockStatus',
]

__version__ = '0.1.0'
