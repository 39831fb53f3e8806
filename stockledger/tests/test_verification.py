"""
Tests for the verification workflow.
"""

from decimal import Decimal

import pytest
from django.db import DatabaseError, OperationalError

from stockledger.exceptions import (
    InvalidTransitionError,
    NegativeStockError,
    NotAuthorizedError,
    RetryableError,
    ValidationError,
    VerificationApprovalError,
)
from stockledger.models import (
    DifferenceStatus,
    Movement,
    MovementType,
    Product,
    SessionStatus,
    VerificationLine,
)
from stockledger.services.ledger import StockLedger
from stockledger.services.verification import StockVerification, evaluate_difference


pytestmark = pytest.mark.django_db


@pytest.fixture
def session(urea, glifosato, stocked, verifier):
    """In-progress session: urea expected 100, glifosato expected 20."""
    stocked(urea, '100')
    stocked(glifosato, '20')
    return StockVerification.start_session(verifier, notes='Conteo mensual')


def count_all(session, verifier, counts):
    for product, counted in counts.items():
        StockVerification.record_count(session, product, Decimal(counted), verifier)


class TestEvaluateDifference:
    """Difference, percentage and status of a counted line."""

    def test_match(self):
        assert evaluate_difference(Decimal('10'), Decimal('10')) == (
            Decimal('0'), Decimal('0.00'), DifferenceStatus.MATCH,
        )

    def test_shortage(self):
        difference, percent, status = evaluate_difference(Decimal('100'), Decimal('95'))

        assert difference == Decimal('-5')
        assert percent == Decimal('-5.00')
        assert status == DifferenceStatus.SHORTAGE

    def test_surplus(self):
        assert evaluate_difference(Decimal('20'), Decimal('22'))[2] == DifferenceStatus.SURPLUS

    def test_within_tolerance(self):
        difference, percent, status = evaluate_difference(Decimal('1000'), Decimal('995'))

        assert percent == Decimal('-0.50')
        assert status == DifferenceStatus.WITHIN_TOLERANCE

    def test_tolerance_is_configurable(self):
        assert evaluate_difference(
            Decimal('100'), Decimal('97'), tolerance=Decimal('5'),
        )[2] == DifferenceStatus.WITHIN_TOLERANCE

    def test_nothing_expected(self):
        difference, percent, status = evaluate_difference(Decimal('0'), Decimal('3'))

        assert difference == Decimal('3')
        assert percent is None
        assert status == DifferenceStatus.SURPLUS


class TestStartSession:
    """Tests for StockVerification.start_session()."""

    def test_snapshots_active_products(self, session, urea, glifosato, inactive_product):
        lines = {line.product_id: line for line in session.lines.all()}

        assert set(lines) == {urea.pk, glifosato.pk}
        assert lines[urea.pk].expected_quantity == Decimal('100')
        assert lines[urea.pk].unit_price == Decimal('100.00')
        assert lines[glifosato.pk].expected_quantity == Decimal('20')
        assert session.status == SessionStatus.IN_PROGRESS
        assert session.verifier == 'luis@finca.co'
        assert session.total_lines == 2
        assert session.lines_counted == 0

    def test_no_active_products(self, verifier, inactive_product):
        with pytest.raises(ValidationError) as exc:
            StockVerification.start_session(verifier)

        assert exc.value.code == 'NO_ACTIVE_PRODUCTS'

    def test_null_active_flag_counts_as_active(self, verifier):
        Product.objects.create(name='Sin estado', is_active=None)

        session = StockVerification.start_session(verifier)

        assert session.total_lines == 1

    def test_requires_count_capability(self, urea, settings):
        from stockledger.permissions import Actor, Role

        settings.STOCKLEDGER = {'CAPABILITIES': {'verifier': ['record_purchase']}}

        with pytest.raises(NotAuthorizedError):
            StockVerification.start_session(Actor('luis@finca.co', Role.VERIFIER))


class TestRecordCount:
    """Tests for StockVerification.record_count()."""

    def test_computes_difference(self, session, urea, verifier):
        line = StockVerification.record_count(session, urea, Decimal('95'), verifier, notes='Saco roto')

        assert line.difference == Decimal('-5')
        assert line.difference_percent == Decimal('-5.00')
        assert line.monetary_difference == Decimal('-500.00')
        assert line.difference_status == DifferenceStatus.SHORTAGE
        assert line.counted_by == 'luis@finca.co'
        assert line.notes == 'Saco roto'

    def test_updates_summary(self, session, urea, glifosato, verifier):
        StockVerification.record_count(session, urea, Decimal('95'), verifier)
        StockVerification.record_count(session, glifosato, Decimal('20'), verifier)

        session.refresh_from_db()
        summary = session.summary()
        assert summary.lines_counted == 2
        assert summary.lines_matching == 1
        assert summary.lines_with_difference == 1
        assert summary.total_difference_value == Decimal('-500.00')
        assert summary.completion_percent == Decimal('100.00')
        assert summary == session.compute_summary()

    def test_partial_completion(self, session, urea, verifier):
        StockVerification.record_count(session, urea, Decimal('100'), verifier)

        session.refresh_from_db()
        assert session.summary().completion_percent == Decimal('50.00')
        assert not session.summary().is_complete

    def test_recount_overwrites_line(self, session, urea, verifier):
        StockVerification.record_count(session, urea, Decimal('95'), verifier)
        line = StockVerification.record_count(session, urea, Decimal('100'), verifier)

        assert line.difference == Decimal('0')
        assert session.lines.filter(product=urea).count() == 1
        session.refresh_from_db()
        assert session.lines_with_difference == 0

    def test_product_outside_snapshot_gets_a_line(self, session, verifier, stocked):
        late = stocked(Product.objects.create(name='Cal agrícola', unit_price=Decimal('5')), '8')

        line = StockVerification.record_count(session, late, Decimal('10'), verifier)

        assert line.expected_quantity == Decimal('8')
        assert line.difference == Decimal('2')
        session.refresh_from_db()
        assert session.total_lines == 3

    def test_negative_count_rejected(self, session, urea, verifier):
        with pytest.raises(ValidationError) as exc:
            StockVerification.record_count(session, urea, Decimal('-1'), verifier)

        assert exc.value.code == 'INVALID_COUNT'

    def test_count_finer_than_stored_scale_rejected(self, session, urea, verifier):
        with pytest.raises(ValidationError) as exc:
            StockVerification.record_count(session, urea, Decimal('9.9999'), verifier)

        assert exc.value.code == 'INVALID_PRECISION'
        assert not session.lines.filter(counted_quantity__isnull=False).exists()

    def test_not_in_progress(self, session, urea, glifosato, verifier):
        count_all(session, verifier, {urea: '100', glifosato: '20'})
        StockVerification.submit_for_approval(session, verifier)

        with pytest.raises(InvalidTransitionError) as exc:
            StockVerification.record_count(session, urea, Decimal('90'), verifier)

        assert exc.value.current == SessionStatus.PENDING_APPROVAL

    def test_no_ledger_writes_while_counting(self, session, urea, verifier):
        movements = Movement.objects.count()

        StockVerification.record_count(session, urea, Decimal('50'), verifier)

        assert Movement.objects.count() == movements
        assert StockLedger.current_balance(urea) == Decimal('100')


class TestSubmitForApproval:
    """Tests for StockVerification.submit_for_approval()."""

    def test_uncounted_lines_block_submission(self, session, urea, verifier):
        StockVerification.record_count(session, urea, Decimal('100'), verifier)

        with pytest.raises(InvalidTransitionError) as exc:
            StockVerification.submit_for_approval(session, verifier)

        assert exc.value.current == SessionStatus.IN_PROGRESS
        assert exc.value.requested_state == SessionStatus.PENDING_APPROVAL
        assert exc.value.data['uncounted'] == 1
        session.refresh_from_db()
        assert session.status == SessionStatus.IN_PROGRESS

    def test_submits_and_stamps_end(self, session, urea, glifosato, verifier):
        count_all(session, verifier, {urea: '100', glifosato: '20'})

        submitted = StockVerification.submit_for_approval(session, verifier)

        assert submitted.status == SessionStatus.PENDING_APPROVAL
        assert submitted.ended_at is not None
        assert submitted.completed_at == submitted.ended_at

    def test_cannot_submit_twice(self, session, urea, glifosato, verifier):
        count_all(session, verifier, {urea: '100', glifosato: '20'})
        StockVerification.submit_for_approval(session, verifier)

        with pytest.raises(InvalidTransitionError):
            StockVerification.submit_for_approval(session, verifier)


@pytest.fixture
def pending(session, urea, glifosato, verifier):
    """Submitted session: urea counted 95 (−5), glifosato counted 22 (+2)."""
    count_all(session, verifier, {urea: '95', glifosato: '22'})
    return StockVerification.submit_for_approval(session, verifier)


class TestApprove:
    """Tests for StockVerification.approve()."""

    def test_one_adjustment_per_difference(self, pending, urea, glifosato, manager):
        before = Movement.objects.count()

        approved = StockVerification.approve(pending, manager, notes='Revisado en bodega')

        assert approved.status == SessionStatus.APPROVED
        assert approved.reviewer == 'gerencia@finca.co'
        assert approved.reviewed_at is not None
        assert 'Revisado en bodega' in approved.notes
        assert Movement.objects.count() == before + 2

        urea_line = approved.lines.get(product=urea)
        assert urea_line.adjustment.movement_type == MovementType.EXIT
        assert urea_line.adjustment.quantity == Decimal('5')
        assert urea_line.adjustment.value == Decimal('500.00')
        assert urea_line.adjustment.actor == 'gerencia@finca.co'

        glifosato_line = approved.lines.get(product=glifosato)
        assert glifosato_line.adjustment.movement_type == MovementType.ENTRY
        assert glifosato_line.adjustment.quantity == Decimal('2')

        assert StockLedger.current_balance(urea) == Decimal('95')
        assert StockLedger.current_balance(glifosato) == Decimal('22')
        assert StockLedger.verify_balance(urea).ok
        assert StockLedger.verify_balance(glifosato).ok

    def test_matching_lines_get_no_adjustment(self, session, urea, glifosato, verifier, admin_actor):
        count_all(session, verifier, {urea: '100', glifosato: '20'})
        StockVerification.submit_for_approval(session, verifier)
        before = Movement.objects.count()

        StockVerification.approve(session, admin_actor)

        assert Movement.objects.count() == before
        assert not VerificationLine.objects.filter(adjustment__isnull=False).exists()

    def test_verifier_cannot_approve(self, pending, verifier):
        with pytest.raises(NotAuthorizedError):
            StockVerification.approve(pending, verifier)

        pending.refresh_from_db()
        assert pending.status == SessionStatus.PENDING_APPROVAL

    def test_only_from_pending(self, session, manager):
        with pytest.raises(InvalidTransitionError) as exc:
            StockVerification.approve(session, manager)

        assert exc.value.current == SessionStatus.IN_PROGRESS
        assert exc.value.requested_state == SessionStatus.APPROVED

    def test_approved_is_terminal(self, pending, manager):
        StockVerification.approve(pending, manager)

        with pytest.raises(InvalidTransitionError):
            StockVerification.approve(pending, manager)
        with pytest.raises(InvalidTransitionError):
            StockVerification.reject(pending, manager, 'Tarde')

    def test_shortage_beyond_balance_applies_nothing(self, pending, urea, glifosato, manager, admin_actor):
        """Stock consumed after the snapshot: all adjustments or none."""
        StockLedger.apply_movement(urea, MovementType.EXIT, Decimal('98'), admin_actor, 'Aplicación')
        before = Movement.objects.count()

        with pytest.raises(NegativeStockError):
            StockVerification.approve(pending, manager)

        assert Movement.objects.count() == before
        assert StockLedger.current_balance(glifosato) == Decimal('20')
        pending.refresh_from_db()
        assert pending.status == SessionStatus.PENDING_APPROVAL

    def test_database_failure_raises_partial_application(self, pending, glifosato, manager, monkeypatch):
        original_save = VerificationLine.save

        def broken_save(self, *args, **kwargs):
            if kwargs.get('update_fields') == ['adjustment'] and self.product_id != glifosato.pk:
                raise DatabaseError('disk I/O error')
            return original_save(self, *args, **kwargs)

        monkeypatch.setattr(VerificationLine, 'save', broken_save)
        before = Movement.objects.count()

        with pytest.raises(VerificationApprovalError) as exc:
            StockVerification.approve(pending, manager)

        assert exc.value.code == 'APPROVAL_FAILED'
        assert exc.value.data['rolled_back'] is True
        assert exc.value.data['session_id'] == pending.pk
        assert Movement.objects.count() == before
        pending.refresh_from_db()
        assert pending.status == SessionStatus.PENDING_APPROVAL


    def test_lock_timeout_midway_is_retryable(self, pending, glifosato, manager, monkeypatch):
        """The first adjustment is written, the second times out: all of it rolls back."""
        original_save = Movement.save

        def timing_out_save(self, *args, **kwargs):
            if self.product_id == glifosato.pk:
                raise OperationalError('database is locked')
            return original_save(self, *args, **kwargs)

        monkeypatch.setattr(Movement, 'save', timing_out_save)
        before = Movement.objects.count()

        with pytest.raises(RetryableError) as exc:
            StockVerification.approve(pending, manager)

        assert exc.value.data['product_id'] == glifosato.pk
        assert Movement.objects.count() == before
        assert not pending.lines.filter(adjustment__isnull=False).exists()
        pending.refresh_from_db()
        assert pending.status == SessionStatus.PENDING_APPROVAL


class TestReject:
    """Tests for StockVerification.reject()."""

    def test_rejects_without_ledger_writes(self, pending, urea, manager):
        before = Movement.objects.count()

        rejected = StockVerification.reject(pending, manager, 'Recontar bodega 2')

        assert rejected.status == SessionStatus.REJECTED
        assert rejected.rejection_reason == 'Recontar bodega 2'
        assert rejected.reviewer == 'gerencia@finca.co'
        assert Movement.objects.count() == before
        assert StockLedger.current_balance(urea) == Decimal('100')

    def test_reason_required(self, pending, manager):
        with pytest.raises(ValidationError) as exc:
            StockVerification.reject(pending, manager, '   ')

        assert exc.value.code == 'REASON_REQUIRED'

    def test_verifier_cannot_reject(self, pending, verifier):
        with pytest.raises(NotAuthorizedError):
            StockVerification.reject(pending, verifier, 'No')

    def test_only_from_pending(self, session, manager):
        with pytest.raises(InvalidTransitionError):
            StockVerification.reject(session, manager, 'Incompleto')


class TestRestartSession:
    """Rejected sessions and the restart policy."""

    @pytest.fixture
    def rejected(self, pending, manager):
        return StockVerification.reject(pending, manager, 'Recontar')

    def test_terminal_policy_refuses_restart(self, rejected, verifier):
        with pytest.raises(InvalidTransitionError) as exc:
            StockVerification.restart_session(rejected, verifier)

        assert exc.value.current == SessionStatus.REJECTED
        assert exc.value.data['policy'] == 'terminal'

    def test_supersede_policy_opens_new_session(self, rejected, verifier, settings):
        settings.STOCKLEDGER = {'REJECTED_SESSION_POLICY': 'supersede'}

        fresh = StockVerification.restart_session(rejected, verifier, notes='Segundo conteo')

        assert fresh.status == SessionStatus.IN_PROGRESS
        assert fresh.supersedes_id == rejected.pk
        rejected.refresh_from_db()
        assert rejected.status == SessionStatus.REJECTED
        assert rejected.superseded_by == fresh

    def test_supersede_only_once(self, rejected, verifier, settings):
        settings.STOCKLEDGER = {'REJECTED_SESSION_POLICY': 'supersede'}
        StockVerification.restart_session(rejected, verifier)

        with pytest.raises(InvalidTransitionError):
            StockVerification.restart_session(rejected, verifier)

    def test_only_rejected_sessions(self, pending, verifier, settings):
        settings.STOCKLEDGER = {'REJECTED_SESSION_POLICY': 'supersede'}

        with pytest.raises(InvalidTransitionError):
            StockVerification.restart_session(pending, verifier)
