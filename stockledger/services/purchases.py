"""
Purchase lifecycle — record, finalize and delete purchases.

A purchase and its Entry movement are one logical unit: they are written
together and removed together. Deletion is a compensating transaction:
the reversal is recorded as its own Exit movement, never as a silent edit.
"""

import logging
import warnings
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from functools import partial

from django.db import transaction

from stockledger.adapters import get_document_storage, get_expense_backend
from stockledger.conf import REVERSAL_POLICIES, stockledger_settings
from stockledger.exceptions import (
    DependencyCleanupWarning,
    NotFoundError,
    PurchaseDeletionError,
    ValidationError,
    WouldUnderflowError,
)
from stockledger.models.enums import MovementType
from stockledger.models.movement import Movement
from stockledger.models.product import Product
from stockledger.models.purchase import Purchase
from stockledger.permissions import Capability, require
from stockledger.services.ledger import (
    MONEY_PLACES,
    QUANTITY_PLACES,
    StockLedger,
    actor_fields,
    as_decimal,
    pk_of,
)
from stockledger.services.sequences import ledger_sequence

logger = logging.getLogger('stockledger')


@dataclass
class PurchaseInput:
    """Data needed to record a purchase."""

    supplier: str
    product: object
    quantity: Decimal
    unit_cost: Decimal
    purchase_date: date | None = None
    invoice_number: str = ''
    unit: str = ''
    batch_number: str = ''
    expiry_date: date | None = None
    # None = provisional when no invoice number/document is attached
    provisional: bool | None = None


@dataclass
class PurchaseReversal:
    """What delete_purchase() did."""

    purchase: dict
    exit_movement: Movement
    policy: str
    expenses_removed: int = 0
    invoice_document: str = ''
    warnings: list[str] = field(default_factory=list)


def _cleanup_warning(collected: list[str] | None, what: str, purchase_id: int, exc: Exception) -> None:
    message = f"Purchase {purchase_id}: could not remove {what}: {exc}"
    logger.warning(
        "purchase.cleanup.failed",
        extra={"purchase_id": purchase_id, "target": what, "error": str(exc)},
    )
    warnings.warn(DependencyCleanupWarning(message), stacklevel=3)
    if collected is not None:
        collected.append(message)


class StockPurchases:
    """Purchase lifecycle methods."""

    @classmethod
    def record_purchase(cls, data: PurchaseInput, actor, invoice_file=None,
                        invoice_name: str = '', storage=None) -> Purchase:
        """
        Record a purchase and its Entry movement.

        Validates before writing anything. The Purchase row and the Entry
        movement share one transaction; if the movement fails the purchase
        is rolled back, and a document stored for it is removed.

        Raises:
            NotAuthorizedError: Actor cannot record purchases
            ValidationError: Missing/invalid fields, inactive product,
                duplicate invoice for the supplier and product
        """
        require(actor, Capability.RECORD_PURCHASE)
        cleaned = cls._validate(data)
        product = cleaned['product']
        who = actor_fields(actor)

        provisional = data.provisional
        if provisional is None:
            provisional = not (cleaned['invoice_number'] or invoice_file is not None)

        document = ''
        if invoice_file is not None:
            storage = storage or get_document_storage()
            document = storage.save(invoice_name or getattr(invoice_file, 'name', '') or 'factura', invoice_file)

        try:
            with transaction.atomic():
                purchase = Purchase.objects.create(
                    purchase_date=cleaned['purchase_date'],
                    supplier=cleaned['supplier'],
                    invoice_number=cleaned['invoice_number'],
                    product=product,
                    quantity=cleaned['quantity'],
                    unit=data.unit or product.unit,
                    batch_number=data.batch_number or '',
                    expiry_date=data.expiry_date,
                    unit_cost=cleaned['unit_cost'],
                    invoice_document=document,
                    recorded_by=who['actor'],
                    user=who['user'],
                )
                StockLedger.apply_movement(
                    product,
                    MovementType.ENTRY,
                    purchase.quantity,
                    actor,
                    note=cls._note('Compra', purchase),
                    purchase=purchase,
                    provisional=provisional,
                    unit_value=purchase.unit_cost,
                    metadata={'purchase': purchase.snapshot()},
                )
        except Exception:
            if document:
                cls._discard_document(storage, document, purchase_id=None)
            raise

        logger.info(
            "purchase.recorded",
            extra={
                "purchase_id": purchase.pk,
                "product_id": product.pk,
                "qty": str(purchase.quantity),
                "total_cost": str(purchase.total_cost),
                "provisional": provisional,
            },
        )
        return purchase

    @classmethod
    def finalize_purchase(cls, purchase, actor, invoice_number: str = '',
                          invoice_file=None, invoice_name: str = '', storage=None) -> Purchase:
        """
        Attach invoice data to a provisional purchase.

        Clears the provisional flag on the live Entry movement. Quantity
        and balance fields are untouched.
        """
        require(actor, Capability.RECORD_PURCHASE)
        pk = pk_of(purchase, 'purchase')

        with transaction.atomic():
            try:
                locked = Purchase.objects.select_for_update().get(pk=pk)
            except Purchase.DoesNotExist:
                raise NotFoundError('PURCHASE_NOT_FOUND', purchase_id=pk)

            invoice_number = (invoice_number or '').strip()
            if invoice_number:
                cls._check_invoice_unique(locked.supplier, invoice_number, locked.product_id, exclude=locked.pk)
                locked.invoice_number = invoice_number

            if invoice_file is not None:
                storage = storage or get_document_storage()
                name = invoice_name or getattr(invoice_file, 'name', '') or 'factura'
                reference = storage.save(name, invoice_file)
                if locked.invoice_document:
                    transaction.on_commit(
                        partial(cls._discard_document, storage, locked.invoice_document, locked.pk)
                    )
                locked.invoice_document = reference

            locked.save(update_fields=['invoice_number', 'invoice_document', 'total_cost'])
            Movement.objects.filter(
                purchase=locked,
                movement_type=MovementType.ENTRY,
                reversed_at__isnull=True,
            ).finalize()

        logger.info("purchase.finalized", extra={"purchase_id": locked.pk})
        return locked

    @classmethod
    def delete_purchase(cls, purchase, actor, policy: str | None = None,
                        storage=None, expenses=None) -> PurchaseReversal:
        """
        Undo a purchase through a compensating transaction.

        Steps:
            1. Underflow check on the locked product (fatal, nothing written)
            2. Compensating Exit movement linked to the original Entry
            3. Remove the pending expense (best effort)
            4. Remove the invoice document after commit (best effort)
            5. Original Entry: marked reversed ("reverse") or deleted with
               the Exit kept as an audit-only tombstone ("delete")
            6. Delete the Purchase

        Steps 2, 5 and 6 share one transaction.

        Raises:
            NotAuthorizedError: Actor cannot delete purchases
            NotFoundError('PURCHASE_NOT_FOUND'): Unknown purchase
            WouldUnderflowError: Stock of the purchase was already consumed
            PurchaseDeletionError: Database failure midway (rolled back;
                data carries steps applied and ids for reconciliation)
        """
        require(actor, Capability.DELETE_PURCHASE)
        policy = policy or stockledger_settings.ENTRY_REVERSAL_POLICY
        if policy not in REVERSAL_POLICIES:
            raise ValidationError('REQUIRED_FIELD', field='policy', value=policy)

        pk = pk_of(purchase, 'purchase')
        expenses = expenses or get_expense_backend()
        collected: list[str] = []

        with ledger_sequence('purchase.delete', PurchaseDeletionError, purchase_id=pk) as seq:
            try:
                locked = Purchase.objects.select_for_update().get(pk=pk)
            except Purchase.DoesNotExist:
                raise NotFoundError('PURCHASE_NOT_FOUND', purchase_id=pk)

            # 1. Underflow check
            product = Product.objects.select_for_update().get(pk=locked.product_id)
            seq.context.update(product_id=product.pk, quantity=locked.quantity)
            if product._quantity - locked.quantity < 0:
                raise WouldUnderflowError(
                    purchase_id=pk,
                    product_id=product.pk,
                    available=product._quantity,
                    requested=locked.quantity,
                )

            entry = locked.entry_movement
            snapshot = locked.snapshot()

            # 2. Compensating exit
            exit_movement = StockLedger.apply_movement(
                product,
                MovementType.EXIT,
                locked.quantity,
                actor,
                note=cls._note('Reversión compra', locked),
                purchase=locked,
                unit_value=locked.unit_cost,
                reversal_of=entry,
                metadata={'purchase': snapshot, 'reversal_policy': policy},
            )
            seq.step('compensating_exit')

            # 3. Pending expense
            removed = cls._remove_pending_expense(expenses, pk, collected)
            if removed:
                seq.step('pending_expense_removed')
                seq.context['expenses_removed'] = removed

            # 4. Invoice document
            document = locked.invoice_document
            if document:
                storage = storage or get_document_storage()
                transaction.on_commit(partial(cls._discard_document, storage, document, pk))

            # 5. Original entry
            if entry is not None:
                if policy == 'reverse':
                    Movement.objects.filter(pk=entry.pk).mark_reversed(exit_movement)
                else:
                    Movement.objects.filter(pk=exit_movement.pk).tombstone(
                        deleted_entry=cls._movement_snapshot(entry),
                    )
                    # Movement.delete() refuses; reversal is the one sanctioned removal
                    Movement.objects.filter(pk=entry.pk).delete()
                seq.step(f'entry_{policy}')

            # 6. Purchase
            locked.delete()
            seq.step('purchase_deleted')

        exit_movement.refresh_from_db()
        logger.info(
            "purchase.deleted",
            extra={
                "purchase_id": pk,
                "product_id": product.pk,
                "qty": str(snapshot['quantity']),
                "policy": policy,
                "exit_movement_id": exit_movement.pk,
            },
        )
        return PurchaseReversal(
            purchase=snapshot,
            exit_movement=exit_movement,
            policy=policy,
            expenses_removed=removed,
            invoice_document=document,
            warnings=collected,
        )

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _validate(cls, data: PurchaseInput) -> dict:
        supplier = (data.supplier or '').strip()
        if not supplier:
            raise ValidationError('REQUIRED_FIELD', field='supplier')

        pk = pk_of(data.product)
        try:
            product = Product.objects.get(pk=pk)
        except Product.DoesNotExist:
            raise NotFoundError('PRODUCT_NOT_FOUND', product_id=pk)
        if product.is_active is False:
            raise ValidationError('PRODUCT_INACTIVE', product_id=pk)

        quantity = as_decimal(data.quantity, 'quantity', QUANTITY_PLACES)
        if quantity <= 0:
            raise ValidationError('INVALID_QUANTITY', requested=quantity)

        unit_cost = as_decimal(data.unit_cost, 'unit_cost', MONEY_PLACES)
        if unit_cost < 0:
            raise ValidationError('INVALID_UNIT_COST', unit_cost=unit_cost)

        purchase_date = data.purchase_date or date.today()
        if data.expiry_date is not None and data.expiry_date < purchase_date:
            raise ValidationError(
                'INVALID_DATES',
                purchase_date=purchase_date.isoformat(),
                expiry_date=data.expiry_date.isoformat(),
            )

        invoice_number = (data.invoice_number or '').strip()
        if invoice_number:
            cls._check_invoice_unique(supplier, invoice_number, product.pk)

        return {
            'supplier': supplier,
            'product': product,
            'quantity': quantity,
            'unit_cost': unit_cost,
            'purchase_date': purchase_date,
            'invoice_number': invoice_number,
        }

    @classmethod
    def _check_invoice_unique(cls, supplier: str, invoice_number: str, product_id: int,
                              exclude: int | None = None) -> None:
        """One invoice may list several products, but each product only once."""
        qs = Purchase.objects.filter(
            supplier__iexact=supplier.strip(),
            invoice_number__iexact=invoice_number.strip(),
            product_id=product_id,
        )
        if exclude is not None:
            qs = qs.exclude(pk=exclude)
        if qs.exists():
            raise ValidationError(
                'DUPLICATE_INVOICE',
                supplier=supplier,
                invoice_number=invoice_number,
                product_id=product_id,
            )

    @classmethod
    def _remove_pending_expense(cls, backend, purchase_id: int, collected: list[str]) -> int:
        try:
            with transaction.atomic():
                return backend.remove_pending_for_purchase(purchase_id) or 0
        except Exception as exc:
            _cleanup_warning(collected, 'pending expense', purchase_id, exc)
            return 0

    @classmethod
    def _discard_document(cls, storage, reference: str, purchase_id: int | None) -> None:
        try:
            storage.delete(reference)
        except Exception as exc:
            _cleanup_warning(None, f'invoice document {reference}', purchase_id, exc)

    @staticmethod
    def _note(label: str, purchase: Purchase) -> str:
        invoice = f" factura {purchase.invoice_number}" if purchase.invoice_number else ""
        return f"{label} #{purchase.pk} - {purchase.supplier}{invoice}"

    @staticmethod
    def _movement_snapshot(movement: Movement) -> dict:
        return {
            'movement_id': movement.pk,
            'type': movement.movement_type,
            'quantity': str(movement.quantity),
            'prior_balance': str(movement.prior_balance),
            'new_balance': str(movement.new_balance),
            'value': str(movement.value),
            'timestamp': movement.timestamp.isoformat(),
            'actor': movement.actor,
        }
