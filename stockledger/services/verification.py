"""
Verification workflow — physical counts reconciled against the ledger.

A session snapshots the active products, collects counts, and once
approved writes one adjustment movement per line with a difference.
Nothing touches the ledger before approval.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from stockledger.conf import stockledger_settings
from stockledger.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    VerificationApprovalError,
)
from stockledger.models.enums import DifferenceStatus, MovementType, SessionStatus
from stockledger.models.product import Product
from stockledger.models.verification import VerificationLine, VerificationSession
from stockledger.permissions import Capability, require
from stockledger.services.ledger import QUANTITY_PLACES, StockLedger, actor_fields, as_decimal, pk_of
from stockledger.services.sequences import ledger_sequence

logger = logging.getLogger('stockledger')

HUNDRED = Decimal('100')


def evaluate_difference(expected: Decimal, counted: Decimal,
                        tolerance: Decimal | None = None) -> tuple[Decimal, Decimal | None, str]:
    """
    Difference, percentage against expected, and status label.

    The percentage is None when nothing was expected but something was
    counted. A nonzero difference whose percentage is below the tolerance
    is labelled within_tolerance; it is still adjusted on approval.
    """
    if tolerance is None:
        tolerance = Decimal(str(stockledger_settings.DIFFERENCE_TOLERANCE_PERCENT))

    difference = counted - expected
    if expected:
        percent = (difference * HUNDRED / expected).quantize(Decimal('0.01'))
    elif difference:
        percent = None
    else:
        percent = Decimal('0')

    if difference == 0:
        status = DifferenceStatus.MATCH
    elif percent is not None and abs(percent) < tolerance:
        status = DifferenceStatus.WITHIN_TOLERANCE
    elif difference > 0:
        status = DifferenceStatus.SURPLUS
    else:
        status = DifferenceStatus.SHORTAGE
    return difference, percent, status


class StockVerification:
    """Verification session lifecycle."""

    @classmethod
    def start_session(cls, actor, notes: str = '', supersedes=None) -> VerificationSession:
        """
        Open a count over every active product.

        Each line snapshots the product's balance and unit price under a
        row lock, so the expectation matches the ledger at this instant.

        Raises:
            NotAuthorizedError: Actor cannot count stock
            ValidationError('NO_ACTIVE_PRODUCTS'): Nothing to count
        """
        require(actor, Capability.COUNT_STOCK)
        who = actor_fields(actor)

        with transaction.atomic():
            products = list(Product.objects.active().select_for_update().order_by('pk'))
            if not products:
                raise ValidationError('NO_ACTIVE_PRODUCTS')

            session = VerificationSession.objects.create(
                verifier=who['actor'],
                verifier_user=who['user'],
                notes=notes or '',
                supersedes=supersedes,
            )
            VerificationLine.objects.bulk_create([
                VerificationLine(
                    session=session,
                    product=product,
                    expected_quantity=product._quantity,
                    unit_price=product.unit_price,
                )
                for product in products
            ])
            session.refresh_summary()

        logger.info(
            "verification.started",
            extra={
                "session_id": session.pk,
                "lines": len(products),
                "actor": who['actor'],
                "supersedes": getattr(supersedes, 'pk', None),
            },
        )
        return session

    @classmethod
    def restart_session(cls, session, actor, notes: str = '') -> VerificationSession:
        """
        Start a new count replacing a rejected one.

        Only available with STOCKLEDGER['REJECTED_SESSION_POLICY'] set to
        "supersede". The rejected session stays rejected; the new one
        points back to it.

        Raises:
            InvalidTransitionError: Policy is "terminal", session is not
                rejected, or it was already superseded
        """
        require(actor, Capability.COUNT_STOCK)
        policy = stockledger_settings.REJECTED_SESSION_POLICY

        with transaction.atomic():
            locked = cls._get_session(session, lock=True)
            if policy != 'supersede':
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.IN_PROGRESS,
                    policy=policy,
                )
            if locked.status != SessionStatus.REJECTED:
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.IN_PROGRESS,
                )
            if VerificationSession.objects.filter(supersedes=locked).exists():
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.IN_PROGRESS,
                    superseded=True,
                )
            return cls.start_session(actor, notes=notes, supersedes=locked)

    @classmethod
    def record_count(cls, session, product, counted_quantity, actor,
                     notes: str = '') -> VerificationLine:
        """
        Record (or correct) the physical count of one product.

        A product without a line in the snapshot gets one, expecting its
        current ledger balance.

        Raises:
            ValidationError('INVALID_COUNT'): Negative count
            InvalidTransitionError: Session is no longer in progress
        """
        require(actor, Capability.COUNT_STOCK)
        who = actor_fields(actor)
        counted = as_decimal(counted_quantity, 'counted_quantity', QUANTITY_PLACES)
        if counted < 0:
            raise ValidationError('INVALID_COUNT', counted=counted)
        pk = pk_of(product)

        with transaction.atomic():
            locked = cls._get_session(session, lock=True)
            if locked.status != SessionStatus.IN_PROGRESS:
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested='record_count',
                )

            line = VerificationLine.objects.filter(session=locked, product_id=pk).first()
            if line is None:
                try:
                    target = Product.objects.get(pk=pk)
                except Product.DoesNotExist:
                    raise NotFoundError('PRODUCT_NOT_FOUND', product_id=pk)
                line = VerificationLine(
                    session=locked,
                    product=target,
                    expected_quantity=StockLedger.current_balance(target),
                    unit_price=target.unit_price,
                )

            difference, percent, status = evaluate_difference(line.expected_quantity, counted)
            line.counted_quantity = counted
            line.difference = difference
            line.difference_percent = percent
            line.monetary_difference = (difference * line.unit_price).quantize(Decimal('0.01'))
            line.difference_status = status
            line.counted_at = timezone.now()
            line.counted_by = who['actor']
            if notes:
                line.notes = notes
            line.save()

            locked.refresh_summary()

        logger.info(
            "verification.counted",
            extra={
                "session_id": locked.pk,
                "product_id": pk,
                "counted": str(counted),
                "difference": str(difference),
                "status": status,
            },
        )
        return line

    @classmethod
    def submit_for_approval(cls, session, actor) -> VerificationSession:
        """
        Close counting and hand the session to a reviewer.

        Raises:
            InvalidTransitionError: Not in progress, or lines still uncounted
        """
        require(actor, Capability.COUNT_STOCK)

        with transaction.atomic():
            locked = cls._get_session(session, lock=True)
            if locked.status != SessionStatus.IN_PROGRESS:
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.PENDING_APPROVAL,
                )

            summary = locked.refresh_summary()
            if not summary.is_complete:
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.PENDING_APPROVAL,
                    uncounted=summary.total_lines - summary.lines_counted,
                )

            now = timezone.now()
            locked.status = SessionStatus.PENDING_APPROVAL
            locked.ended_at = now
            locked.completed_at = now
            locked.save(update_fields=['status', 'ended_at', 'completed_at'])

        logger.info(
            "verification.submitted",
            extra={
                "session_id": locked.pk,
                "lines_with_difference": summary.lines_with_difference,
                "difference_value": str(summary.total_difference_value),
            },
        )
        return locked

    @classmethod
    def approve(cls, session, reviewer, notes: str = '') -> VerificationSession:
        """
        Approve a submitted count and adjust the ledger.

        Writes one movement per line with a nonzero difference: Entry for
        a surplus, Exit for a shortage, for |difference| at the line's
        unit price. Each movement is linked back to its line. Either all
        adjustments and the status change are committed, or none.

        Raises:
            NotAuthorizedError: Reviewer lacks REVIEW_COUNT
            InvalidTransitionError: Session is not pending approval
            NegativeStockError: A shortage exceeds the current balance
            VerificationApprovalError: Database failure midway (rolled back)
        """
        require(reviewer, Capability.REVIEW_COUNT)
        who = actor_fields(reviewer)
        pk = pk_of(session, 'session')
        adjustments = 0

        with ledger_sequence('verification.approve', VerificationApprovalError, session_id=pk) as seq:
            locked = cls._get_session(pk, lock=True)
            if locked.status != SessionStatus.PENDING_APPROVAL:
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.APPROVED,
                )

            lines = (
                locked.lines
                .select_related('product')
                .exclude(difference=0)
                .filter(difference__isnull=False)
                .order_by('product_id')
            )
            for line in lines:
                movement = StockLedger.apply_movement(
                    line.product,
                    MovementType.ENTRY if line.difference > 0 else MovementType.EXIT,
                    abs(line.difference),
                    reviewer,
                    note=f"Ajuste verificación #{locked.pk} - {line.product}",
                    unit_value=line.unit_price,
                    metadata={
                        'verification_session': locked.pk,
                        'verification_line': line.pk,
                        'expected': str(line.expected_quantity),
                        'counted': str(line.counted_quantity),
                    },
                )
                line.adjustment = movement
                line.save(update_fields=['adjustment'])
                seq.step(f'adjustment:{line.product_id}')
                adjustments += 1

            locked.status = SessionStatus.APPROVED
            locked.reviewer = who['actor']
            locked.reviewer_user = who['user']
            locked.reviewed_at = timezone.now()
            if notes:
                locked.notes = f"{locked.notes}\n{notes}".strip()
            locked.save(update_fields=['status', 'reviewer', 'reviewer_user', 'reviewed_at', 'notes'])
            seq.step('approved')

        logger.info(
            "verification.approved",
            extra={
                "session_id": locked.pk,
                "adjustments": adjustments,
                "reviewer": who['actor'],
            },
        )
        return locked

    @classmethod
    def reject(cls, session, reviewer, reason: str) -> VerificationSession:
        """
        Reject a submitted count. No ledger writes.

        Raises:
            ValidationError('REASON_REQUIRED'): Empty reason
            InvalidTransitionError: Session is not pending approval
        """
        require(reviewer, Capability.REVIEW_COUNT)
        who = actor_fields(reviewer)
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError('REASON_REQUIRED')

        with transaction.atomic():
            locked = cls._get_session(session, lock=True)
            if locked.status != SessionStatus.PENDING_APPROVAL:
                raise InvalidTransitionError(
                    session_id=locked.pk,
                    current=locked.status,
                    requested=SessionStatus.REJECTED,
                )
            locked.status = SessionStatus.REJECTED
            locked.rejection_reason = reason
            locked.reviewer = who['actor']
            locked.reviewer_user = who['user']
            locked.reviewed_at = timezone.now()
            locked.save(update_fields=[
                'status', 'rejection_reason', 'reviewer', 'reviewer_user', 'reviewed_at',
            ])

        logger.info(
            "verification.rejected",
            extra={"session_id": locked.pk, "reviewer": who['actor']},
        )
        return locked

    @classmethod
    def _get_session(cls, session, lock: bool = False) -> VerificationSession:
        pk = pk_of(session, 'session')
        qs = VerificationSession.objects.all()
        if lock:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=pk)
        except VerificationSession.DoesNotExist:
            raise NotFoundError('SESSION_NOT_FOUND', session_id=pk)
