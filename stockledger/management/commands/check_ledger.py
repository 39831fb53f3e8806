"""
Management command to audit product balances against the movement history.

Usage:
    python manage.py check_ledger
    python manage.py check_ledger --product 12
    python manage.py check_ledger --fix
"""

from django.core.management.base import BaseCommand, CommandError

from stockledger.models import Product
from stockledger.services.ledger import StockLedger


class Command(BaseCommand):
    """Balance invariant audit command."""

    help = 'Verifica que el saldo de cada producto coincida con sus movimientos'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product',
            type=int,
            help='Verifica solo el producto indicado (id)',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Recalcula el saldo de los productos inconsistentes',
        )

    def handle(self, *args, **options):
        products = Product.objects.order_by('pk')
        if options['product'] is not None:
            products = products.filter(pk=options['product'])
            if not products.exists():
                raise CommandError(f"Producto {options['product']} no encontrado")

        drifted = 0
        for product in products:
            check = StockLedger.verify_balance(product)
            if check.ok:
                continue
            drifted += 1
            self.stdout.write(
                f'{product.pk} {product.name}: saldo {check.cached}, '
                f'movimientos {check.computed} (diferencia {check.drift})'
            )
            if options['fix']:
                product.recalculate()

        if not drifted:
            self.stdout.write(self.style.SUCCESS('Todos los saldos coinciden'))
        elif options['fix']:
            self.stdout.write(self.style.SUCCESS(f'{drifted} producto(s) recalculado(s)'))
        else:
            self.stdout.write(self.style.WARNING(f'{drifted} producto(s) con saldo inconsistente'))
