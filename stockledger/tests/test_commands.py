"""
Tests for the check_ledger management command.
"""

from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from stockledger.models import Product


pytestmark = pytest.mark.django_db


def run(*args):
    out = StringIO()
    call_command('check_ledger', *args, stdout=out)
    return out.getvalue()


class TestCheckLedger:

    def test_all_consistent(self, urea, glifosato, stocked):
        stocked(urea, '10')

        assert 'Todos los saldos coinciden' in run()

    def test_reports_drift(self, urea, glifosato, stocked):
        stocked(urea, '10')
        Product.objects.filter(pk=urea.pk).update(_quantity=Decimal('12'))

        output = run()

        assert 'Urea 46%' in output
        assert 'Glifosato' not in output
        assert '1 producto(s) con saldo inconsistente' in output
        urea.refresh_from_db()
        assert urea.quantity == Decimal('12')

    def test_fix_recalculates(self, urea, stocked):
        stocked(urea, '10')
        Product.objects.filter(pk=urea.pk).update(_quantity=Decimal('12'))

        output = run('--fix')

        assert '1 producto(s) recalculado(s)' in output
        urea.refresh_from_db()
        assert urea.quantity == Decimal('10')

    def test_single_product(self, urea, glifosato, stocked):
        stocked(glifosato, '3')
        Product.objects.filter(pk=glifosato.pk).update(_quantity=Decimal('1'))

        assert 'Todos los saldos coinciden' in run('--product', str(urea.pk))

    def test_unknown_product(self, db):
        with pytest.raises(CommandError):
            run('--product', '999')


class TestSystemChecks:

    def test_project_checks_pass(self):
        """App, admin and model checks report no errors (SystemCheckError otherwise)."""
        out = StringIO()
        call_command('check', stdout=out)

        assert 'ERRORS' not in out.getvalue()
