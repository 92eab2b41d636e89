"""
Initial migration for Stockkeeper models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Stockkeeper models: StockRecord, Order, OrderItem, Reservation, AuditEntry, ReorderAlert."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockRecord',
            fields=[
                ('product_id', models.CharField(max_length=64, primary_key=True, serialize=False, verbose_name='Product ID')),
                ('sku', models.CharField(db_index=True, max_length=100, verbose_name='SKU')),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('price', models.DecimalField(decimal_places=2, default=0, max_digits=12, verbose_name='Price')),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('physical_stock', models.PositiveIntegerField(default=0, verbose_name='Physical stock')),
                ('reserved_stock', models.PositiveIntegerField(default=0, verbose_name='Reserved stock')),
                ('reorder_point', models.PositiveIntegerField(default=0, verbose_name='Reorder point')),
                ('reorder_quantity', models.PositiveIntegerField(default=0, verbose_name='Reorder quantity')),
                ('max_stock_level', models.PositiveIntegerField(default=0, verbose_name='Max stock level')),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Stock record',
                'verbose_name_plural': 'Stock records',
                'ordering': ['product_id'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('reserved_stock__lte', models.F('physical_stock'))),
                        name='stock_reserved_within_physical',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(max_length=40, unique=True, verbose_name='Order number')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('customer_name', models.CharField(blank=True, default='', max_length=255)),
                ('customer_email', models.EmailField(blank=True, default='', max_length=254)),
                ('customer_phone', models.CharField(blank=True, default='', max_length=40)),
                ('shipping_address', models.JSONField(blank=True, default=dict)),
                ('notes', models.TextField(blank=True, default='')),
                ('currency', models.CharField(default='UGX', max_length=3)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('shipping_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('placed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Order',
                'verbose_name_plural': 'Orders',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_name', models.CharField(max_length=255)),
                ('product_sku', models.CharField(max_length=100)),
                ('quantity', models.PositiveIntegerField()),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('line_total', models.DecimalField(decimal_places=2, max_digits=12)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='stockkeeper.order')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_items', to='stockkeeper.stockrecord')),
            ],
            options={
                'verbose_name': 'Order item',
                'verbose_name_plural': 'Order items',
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('quantity__gt', 0)),
                        name='order_item_quantity_positive',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_ref', models.CharField(blank=True, db_index=True, help_text='Order, cart or session the units are held for', max_length=64, null=True, verbose_name='Order reference')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity')),
                ('status', models.CharField(choices=[('active', 'Active'), ('fulfilled', 'Fulfilled'), ('cancelled', 'Cancelled'), ('expired', 'Expired')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, null=True, verbose_name='Expires at')),
                ('resolved_at', models.DateTimeField(blank=True, help_text='When the reservation reached a terminal state', null=True, verbose_name='Resolved at')),
                ('notes', models.TextField(blank=True, default='')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('order', models.ForeignKey(blank=True, help_text='Set when an order consumes the reservation', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reservations', to='stockkeeper.order', verbose_name='Order')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to='stockkeeper.stockrecord', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Reservation',
                'verbose_name_plural': 'Reservations',
                'indexes': [
                    models.Index(fields=['status', 'expires_at'], name='reservation_status_expiry_idx'),
                    models.Index(fields=['product', 'status'], name='reservation_product_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('quantity__gt', 0)),
                        name='reservation_quantity_positive',
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'active')),
                        fields=('product', 'order_ref'),
                        name='one_active_reservation_per_order_product',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('operation', models.CharField(choices=[('increase', 'Increase'), ('decrease', 'Decrease'), ('set', 'Set'), ('reserve', 'Reserve'), ('release', 'Release'), ('fulfill', 'Fulfill')], db_index=True, max_length=20, verbose_name='Operation')),
                ('physical_stock_before', models.PositiveIntegerField()),
                ('physical_stock_after', models.PositiveIntegerField()),
                ('physical_stock_change', models.IntegerField(help_text='Positive = units in, negative = units out')),
                ('reserved_stock_before', models.PositiveIntegerField(default=0)),
                ('reserved_stock_after', models.PositiveIntegerField(default=0)),
                ('reason', models.CharField(choices=[('received', 'Received'), ('damaged', 'Damaged'), ('lost', 'Lost'), ('correction', 'Correction'), ('return', 'Return'), ('sale', 'Sale'), ('transfer', 'Transfer'), ('order_reservation', 'Order reservation'), ('order_fulfillment', 'Order fulfillment'), ('order_cancellation', 'Order cancellation'), ('other', 'Other')], db_index=True, max_length=30, verbose_name='Reason')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('order_ref', models.CharField(blank=True, db_index=True, max_length=64, null=True, verbose_name='Order reference')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Timestamp')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Actor')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='audit_entries', to='stockkeeper.stockrecord', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Audit entry',
                'verbose_name_plural': 'Audit entries',
                'ordering': ['timestamp', 'pk'],
                'indexes': [
                    models.Index(fields=['product', 'timestamp'], name='audit_product_timestamp_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReorderAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('alert_type', models.CharField(choices=[('low_stock', 'Low stock'), ('out_of_stock', 'Out of stock')], max_length=20, verbose_name='Type')),
                ('available_stock', models.PositiveIntegerField(verbose_name='Available at trigger')),
                ('reorder_point', models.PositiveIntegerField(verbose_name='Reorder point')),
                ('suggested_quantity', models.PositiveIntegerField(verbose_name='Suggested reorder quantity')),
                ('status', models.CharField(choices=[('active', 'Active'), ('acknowledged', 'Acknowledged'), ('resolved', 'Resolved')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('triggered_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='stockkeeper.stockrecord', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Reorder alert',
                'verbose_name_plural': 'Reorder alerts',
                'ordering': ['-triggered_at'],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status__in', ['active', 'acknowledged'])),
                        fields=('product',),
                        name='one_open_reorder_alert_per_product',
                    ),
                ],
            },
        ),
    ]
