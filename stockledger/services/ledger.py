"""
Stock ledger — the single authority for quantity changes.

Every quantity change is a Movement written by apply_movement(), under a
row lock on the product so concurrent movements on the same product
serialize and balances are never computed from stale data.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.db import OperationalError, transaction

from stockledger.exceptions import (
    NegativeStockError,
    NotFoundError,
    RetryableError,
    ValidationError,
)
from stockledger.models.enums import MovementType
from stockledger.models.movement import Movement
from stockledger.models.product import Product

logger = logging.getLogger('stockledger')


QUANTITY_PLACES = 3
MONEY_PLACES = 2


def as_decimal(value, field: str, places: int | None = None) -> Decimal:
    """
    Coerce user input to Decimal or raise ValidationError.

    With `places`, values finer than the stored scale are rejected
    ('INVALID_PRECISION') and the result is quantized to that scale, so
    what is computed in Python is exactly what the database keeps.
    """
    if value is None or value == '':
        raise ValidationError('REQUIRED_FIELD', field=field)
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError('REQUIRED_FIELD', field=field, value=str(value))
    if not result.is_finite():
        raise ValidationError('REQUIRED_FIELD', field=field, value=str(value))
    if places is None:
        return result
    try:
        quantized = result.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation:
        raise ValidationError('REQUIRED_FIELD', field=field, value=str(value))
    if quantized != result:
        raise ValidationError('INVALID_PRECISION', field=field, value=str(value), places=places)
    return quantized


def pk_of(obj, field: str = 'product') -> int:
    """Accept a model instance or its primary key."""
    if obj is None:
        raise ValidationError('REQUIRED_FIELD', field=field)
    return getattr(obj, 'pk', obj)


def actor_fields(actor) -> dict:
    """
    Identifier + optional user of the actor stamped on written rows.

    Services check capabilities with require() first, which accepts only
    Actor instances. apply_movement() does not, so internal callers may
    pass a bare identifier string.
    """
    if actor is None or not str(actor):
        raise ValidationError('REQUIRED_FIELD', field='actor')
    return {'actor': str(actor), 'user': getattr(actor, 'user', None)}


@dataclass(frozen=True)
class BalanceCheck:
    """Result of comparing the cached quantity with the movement history."""

    product_id: int
    cached: Decimal
    computed: Decimal

    @property
    def ok(self) -> bool:
        return self.cached == self.computed

    @property
    def drift(self) -> Decimal:
        return self.cached - self.computed


class StockLedger:
    """Ledger methods: apply movements, read and verify balances."""

    @classmethod
    def apply_movement(cls, product, movement_type, quantity, actor, note,
                       purchase=None, provisional=False, unit_value=None,
                       reversal_of=None, metadata=None) -> Movement:
        """
        Apply a signed quantity change and record it.

        Reads the current quantity under lock, captures prior/new balance,
        rejects negative results, then writes the Movement (which updates
        the product cache in the same transaction).

        Raises:
            ValidationError: Invalid type/quantity, missing note or actor
            NotFoundError('PRODUCT_NOT_FOUND'): Unknown product
            NegativeStockError: Result would be below zero
            RetryableError: Lock timeout / backend unavailable

        Concurrency:
            - Runs under transaction.atomic()
            - Uses select_for_update() on Product
            - Verifies the balance after lock
        """
        pk = pk_of(product)
        if movement_type not in MovementType.values:
            raise ValidationError('REQUIRED_FIELD', field='movement_type', value=str(movement_type))
        quantity = as_decimal(quantity, 'quantity', QUANTITY_PLACES)
        if quantity <= 0:
            raise ValidationError('INVALID_QUANTITY', requested=quantity)
        if not note:
            raise ValidationError('NOTE_REQUIRED')
        if unit_value is not None:
            unit_value = as_decimal(unit_value, 'unit_value', MONEY_PLACES)
        who = actor_fields(actor)

        try:
            with transaction.atomic():
                try:
                    locked = Product.objects.select_for_update().get(pk=pk)
                except Product.DoesNotExist:
                    raise NotFoundError('PRODUCT_NOT_FOUND', product_id=pk)

                prior = locked._quantity
                signed = quantity if movement_type == MovementType.ENTRY else -quantity
                new = prior + signed

                if new < 0:
                    raise NegativeStockError(
                        product_id=pk,
                        available=prior,
                        requested=quantity,
                    )

                unit = locked.unit_price if unit_value is None else unit_value

                movement = Movement.objects.create(
                    product=locked,
                    movement_type=movement_type,
                    quantity=quantity,
                    prior_balance=prior,
                    new_balance=new,
                    unit_value=unit,
                    value=(quantity * unit).quantize(Decimal('0.01')),
                    purchase=purchase,
                    note=note,
                    provisional=provisional,
                    reversal_of=reversal_of,
                    metadata=metadata or {},
                    **who,
                )
        except OperationalError as exc:
            raise RetryableError(product_id=pk, error=str(exc)) from exc

        logger.info(
            "ledger.movement.applied",
            extra={
                "product_id": pk,
                "movement_id": movement.pk,
                "type": movement_type,
                "qty": str(quantity),
                "prior_balance": str(prior),
                "new_balance": str(new),
                "actor": who['actor'],
            },
        )
        return movement

    @classmethod
    def current_balance(cls, product) -> Decimal:
        """Current quantity, read fresh from the database."""
        pk = pk_of(product)
        try:
            return Product.objects.values_list('_quantity', flat=True).get(pk=pk)
        except Product.DoesNotExist:
            raise NotFoundError('PRODUCT_NOT_FOUND', product_id=pk)

    @classmethod
    def computed_balance(cls, product) -> Decimal:
        """Signed sum of the product's live movements."""
        pk = pk_of(product)
        return Product(pk=pk).computed_quantity()

    @classmethod
    def verify_balance(cls, product) -> BalanceCheck:
        """
        Compare the cached quantity with the movement history.

        Logs a warning on drift; use Product.recalculate() to correct it.
        """
        pk = pk_of(product)
        check = BalanceCheck(
            product_id=pk,
            cached=cls.current_balance(pk),
            computed=cls.computed_balance(pk),
        )
        if not check.ok:
            logger.warning(
                "ledger.balance.drift",
                extra={
                    "product_id": pk,
                    "cached": str(check.cached),
                    "computed": str(check.computed),
                },
            )
        return check
