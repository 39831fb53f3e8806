"""
Stockledger Admin.

Read-only views for auditing the ledger:
- Product: editable catalogue fields, quantity read-only
- Movement: read-only audit trail
- Purchase: read-only (record/delete through the service)
- VerificationSession: read-only with lines inline
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from stockledger.models import Movement, Product, Purchase, VerificationLine, VerificationSession


class ReadOnlyAdminMixin:
    """Records only change through the inventory service."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# PRODUCT ADMIN
# =========================================================================

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Product admin. Quantity is owned by the ledger."""

    list_display = ['name', 'category', 'quantity_display', 'unit', 'min_stock',
                    'unit_price', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'category']
    readonly_fields = ['_quantity', 'created_at', 'updated_at']
    actions = ['verify_balances']

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Cantidad'))
    def quantity_display(self, obj):
        return obj.quantity

    @admin.action(description=_('Verificar saldo contra movimientos'))
    def verify_balances(self, request, queryset):
        from stockledger.services.ledger import StockLedger

        drifted = [p for p in queryset if not StockLedger.verify_balance(p).ok]
        if drifted:
            names = ', '.join(p.name for p in drifted)
            self.message_user(request, _('Saldo inconsistente: {names}').format(names=names), level='warning')
        else:
            self.message_user(request, _('Todos los saldos coinciden.'))


# =========================================================================
# MOVEMENT ADMIN (read-only audit trail)
# =========================================================================

@admin.register(Movement)
class MovementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Movement admin: read-only, immutable audit trail."""

    list_display = ['timestamp', 'product', 'movement_type', 'quantity', 'prior_balance',
                    'new_balance', 'value', 'actor', 'provisional', 'is_reversed_display',
                    'is_tombstone']
    list_filter = ['movement_type', 'provisional', 'is_tombstone', 'timestamp']
    search_fields = ['note', 'actor', 'product__name']
    date_hierarchy = 'timestamp'

    @admin.display(description=_('Revertido'), boolean=True)
    def is_reversed_display(self, obj):
        return obj.is_reversed


# =========================================================================
# PURCHASE ADMIN (read-only)
# =========================================================================

@admin.register(Purchase)
class PurchaseAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['purchase_date', 'supplier', 'invoice_number', 'product', 'quantity',
                    'unit_cost', 'total_cost', 'recorded_by']
    list_filter = ['purchase_date', 'supplier']
    search_fields = ['supplier', 'invoice_number', 'product__name', 'batch_number']
    date_hierarchy = 'purchase_date'


# =========================================================================
# VERIFICATION ADMIN (read-only)
# =========================================================================

class VerificationLineInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = VerificationLine
    extra = 0
    fields = ['product', 'expected_quantity', 'counted_quantity', 'difference',
              'difference_percent', 'monetary_difference', 'difference_status', 'adjustment']
    readonly_fields = fields


@admin.register(VerificationSession)
class VerificationSessionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['pk', 'started_at', 'status', 'verifier', 'reviewer',
                    'completion_display', 'lines_with_difference', 'total_difference_value']
    list_filter = ['status', 'started_at']
    search_fields = ['verifier', 'reviewer', 'notes']
    inlines = [VerificationLineInline]

    @admin.display(description=_('Avance %'))
    def completion_display(self, obj):
        return obj.summary().completion_percent
