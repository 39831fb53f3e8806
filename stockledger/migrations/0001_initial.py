"""
Initial migration for Stockledger models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Stockledger models: Product, Purchase, Movement, VerificationSession, VerificationLine."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, verbose_name='Nombre')),
                ('category', models.CharField(blank=True, default='', max_length=100, verbose_name='Categoría')),
                ('unit', models.CharField(default='unidad', help_text='Ej: kg, L, unidad', max_length=20, verbose_name='Unidad de medida')),
                ('_quantity', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=14, verbose_name='Cantidad actual')),
                ('min_stock', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=14, verbose_name='Stock mínimo')),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, verbose_name='Precio unitario')),
                ('is_active', models.BooleanField(default=True, null=True, verbose_name='Activo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Producto',
                'verbose_name_plural': 'Productos',
                'ordering': ['name'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(_quantity__gte=0), name='product_quantity_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Purchase',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('purchase_date', models.DateField(default=django.utils.timezone.localdate, verbose_name='Fecha de compra')),
                ('supplier', models.CharField(max_length=200, verbose_name='Proveedor')),
                ('invoice_number', models.CharField(blank=True, default='', max_length=50, verbose_name='Número de factura')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14, verbose_name='Cantidad')),
                ('unit', models.CharField(blank=True, default='', max_length=20, verbose_name='Unidad')),
                ('batch_number', models.CharField(blank=True, default='', max_length=50, verbose_name='Lote')),
                ('expiry_date', models.DateField(blank=True, null=True, verbose_name='Fecha de vencimiento')),
                ('unit_cost', models.DecimalField(decimal_places=2, max_digits=14, verbose_name='Costo unitario')),
                ('total_cost', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Cantidad × costo unitario', max_digits=16, verbose_name='Costo total')),
                ('invoice_document', models.CharField(blank=True, default='', help_text='Referencia en el almacenamiento de documentos', max_length=255, verbose_name='Documento de factura')),
                ('recorded_by', models.CharField(max_length=150, verbose_name='Registrado por')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Creado en')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchases', to='stockledger.product', verbose_name='Producto')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Usuario')),
            ],
            options={
                'verbose_name': 'Compra',
                'verbose_name_plural': 'Compras',
                'ordering': ['-purchase_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['supplier', 'invoice_number'], name='purchase_supplier_invoice_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Movement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_type', models.CharField(choices=[('entry', 'Entrada'), ('exit', 'Salida')], max_length=10, verbose_name='Tipo')),
                ('quantity', models.DecimalField(decimal_places=3, help_text='Siempre positiva. El tipo define la dirección.', max_digits=14, verbose_name='Cantidad')),
                ('prior_balance', models.DecimalField(decimal_places=3, max_digits=14, verbose_name='Saldo anterior')),
                ('new_balance', models.DecimalField(decimal_places=3, max_digits=14, verbose_name='Saldo nuevo')),
                ('unit_value', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, verbose_name='Valor unitario')),
                ('value', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Cantidad × valor unitario al momento del movimiento', max_digits=16, verbose_name='Valor')),
                ('note', models.CharField(help_text='Obligatoria. Ej: "Compra #F-102", "Ajuste conteo #4"', max_length=255, verbose_name='Nota')),
                ('provisional', models.BooleanField(default=False, help_text='Registrado antes de que la compra/factura esté finalizada', verbose_name='Provisional')),
                ('reversed_at', models.DateTimeField(blank=True, null=True, verbose_name='Revertido en')),
                ('is_tombstone', models.BooleanField(default=False, help_text='Registro de una entrada eliminada; no cuenta en el saldo', verbose_name='Solo auditoría')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadatos')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Fecha/Hora')),
                ('actor', models.CharField(max_length=150, verbose_name='Responsable')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.product', verbose_name='Producto')),
                ('purchase', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='movements', to='stockledger.purchase', verbose_name='Compra')),
                ('reversal_of', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='stockledger.movement', verbose_name='Revierte a')),
                ('reversed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='stockledger.movement', verbose_name='Revertido por')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Usuario')),
            ],
            options={
                'verbose_name': 'Movimiento',
                'verbose_name_plural': 'Movimientos',
                'ordering': ['timestamp', 'pk'],
                'indexes': [
                    models.Index(fields=['product', 'timestamp'], name='movement_product_ts_idx'),
                    models.Index(fields=['timestamp'], name='movement_timestamp_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name='movement_quantity_positive'),
                    models.UniqueConstraint(condition=models.Q(movement_type='entry', reversed_at__isnull=True), fields=('purchase',), name='one_live_entry_per_purchase'),
                ],
            },
        ),
        migrations.CreateModel(
            name='VerificationSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('started_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Inicio')),
                ('ended_at', models.DateTimeField(blank=True, null=True, verbose_name='Fin del conteo')),
                ('status', models.CharField(choices=[('in_progress', 'En proceso'), ('pending_approval', 'Pendiente aprobación'), ('approved', 'Aprobada'), ('rejected', 'Rechazada')], db_index=True, default='in_progress', max_length=20, verbose_name='Estado')),
                ('verifier', models.CharField(max_length=150, verbose_name='Verificador')),
                ('reviewer', models.CharField(blank=True, default='', max_length=150, verbose_name='Revisor')),
                ('reviewed_at', models.DateTimeField(blank=True, null=True, verbose_name='Revisado en')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Completado en')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observaciones')),
                ('rejection_reason', models.TextField(blank=True, default='', verbose_name='Motivo de rechazo')),
                ('total_lines', models.PositiveIntegerField(default=0)),
                ('lines_counted', models.PositiveIntegerField(default=0)),
                ('lines_matching', models.PositiveIntegerField(default=0)),
                ('lines_with_difference', models.PositiveIntegerField(default=0)),
                ('total_difference_value', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16)),
                ('supersedes', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='superseded_by', to='stockledger.verificationsession', verbose_name='Reemplaza a')),
                ('verifier_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('reviewer_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Verificación de inventario',
                'verbose_name_plural': 'Verificaciones de inventario',
                'ordering': ['-started_at'],
            },
        ),
        migrations.CreateModel(
            name='VerificationLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('expected_quantity', models.DecimalField(decimal_places=3, max_digits=14, verbose_name='Cantidad teórica')),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, verbose_name='Precio unitario')),
                ('counted_quantity', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True, verbose_name='Cantidad física')),
                ('difference', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True, verbose_name='Diferencia')),
                ('difference_percent', models.DecimalField(blank=True, decimal_places=2, max_digits=9, null=True, verbose_name='Diferencia %')),
                ('monetary_difference', models.DecimalField(blank=True, decimal_places=2, max_digits=16, null=True, verbose_name='Valor diferencia')),
                ('difference_status', models.CharField(blank=True, choices=[('match', 'Sin diferencia'), ('within_tolerance', 'Diferencia aceptable'), ('surplus', 'Sobrante'), ('shortage', 'Faltante')], default='', max_length=20, verbose_name='Estado diferencia')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observaciones')),
                ('counted_at', models.DateTimeField(blank=True, null=True)),
                ('counted_by', models.CharField(blank=True, default='', max_length=150)),
                ('adjustment', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='verification_line', to='stockledger.movement', verbose_name='Movimiento de ajuste')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='verification_lines', to='stockledger.product', verbose_name='Producto')),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='stockledger.verificationsession', verbose_name='Verificación')),
            ],
            options={
                'verbose_name': 'Detalle de verificación',
                'verbose_name_plural': 'Detalles de verificación',
                'ordering': ['product__name'],
                'constraints': [
                    models.UniqueConstraint(fields=('session', 'product'), name='unique_line_per_session_product'),
                ],
            },
        ),
    ]
