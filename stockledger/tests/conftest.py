"""
Pytest fixtures for Stockledger tests.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from stockledger.adapters import reset_backends
from stockledger.models import MovementType, Product
from stockledger.permissions import Actor, Role
from stockledger.services.ledger import StockLedger


User = get_user_model()


@pytest.fixture(autouse=True)
def _fresh_backends():
    """Adapters are cached per dotted path; start every test clean."""
    reset_backends()
    yield
    reset_backends()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='ana',
        password='testpass123'
    )


@pytest.fixture
def admin_actor(user):
    """Administrator with every capability, linked to a Django user."""
    return Actor('ana@finca.co', Role.ADMINISTRATOR, user=user)


@pytest.fixture
def manager():
    return Actor('gerencia@finca.co', Role.MANAGEMENT)


@pytest.fixture
def verifier():
    """Verifier: can count and record purchases, cannot review or delete."""
    return Actor('luis@finca.co', Role.VERIFIER)


@pytest.fixture
def urea(db):
    """Fertilizer sold by the kilo."""
    return Product.objects.create(
        name='Urea 46%',
        category='Fertilizantes',
        unit='kg',
        min_stock=Decimal('10'),
        unit_price=Decimal('100.00'),
    )


@pytest.fixture
def glifosato(db):
    """Herbicide sold by the litre."""
    return Product.objects.create(
        name='Glifosato',
        category='Herbicidas',
        unit='L',
        min_stock=Decimal('5'),
        unit_price=Decimal('40.00'),
    )


@pytest.fixture
def inactive_product(db):
    return Product.objects.create(
        name='Producto descontinuado',
        unit_price=Decimal('10.00'),
        is_active=False,
    )


@pytest.fixture
def stocked(admin_actor):
    """Helper: put quantity on hand through the ledger."""
    def _stock(product, quantity, note='Saldo inicial'):
        StockLedger.apply_movement(product, MovementType.ENTRY, Decimal(quantity), admin_actor, note)
        product.refresh_from_db()
        return product
    return _stock


# =========================================================================
# ADAPTER DOUBLES
# =========================================================================

class RecordingStorage:
    """In-memory DocumentStorage that records calls and can be told to fail."""

    def __init__(self, fail_delete=False):
        self.files = {}
        self.deleted = []
        self.fail_delete = fail_delete

    def save(self, name, content):
        reference = f"facturas/{len(self.files) + 1}-{name}"
        self.files[reference] = content
        return reference

    def delete(self, reference):
        if self.fail_delete:
            raise OSError('almacenamiento no disponible')
        self.files.pop(reference, None)
        self.deleted.append(reference)

    def exists(self, reference):
        return reference in self.files


class RecordingExpenseBackend:
    """ExpenseBackend double: returns a fixed count or raises."""

    def __init__(self, removed=1, error=None):
        self.removed = removed
        self.error = error
        self.calls = []

    def remove_pending_for_purchase(self, purchase_id):
        self.calls.append(purchase_id)
        if self.error is not None:
            raise self.error
        return self.removed


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def expenses():
    return RecordingExpenseBackend()
