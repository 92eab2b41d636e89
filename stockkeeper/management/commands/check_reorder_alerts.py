"""
Management command to refresh reorder alerts.

Usage:
    python manage.py check_reorder_alerts
    python manage.py check_reorder_alerts --product sku-1
"""

from django.core.management.base import BaseCommand

from stockkeeper import stock


class Command(BaseCommand):

    help = 'Opens alerts for products at or below their reorder point and resolves recovered ones'

    def add_arguments(self, parser):
        parser.add_argument('--product', help='Only check this product id')

    def handle(self, *args, **options):
        triggered = stock.check_reorder_alerts(options.get('product'))

        for alert in triggered:
            self.stdout.write(
                f'{alert.product_id}: {alert.alert_type}, '
                f'{alert.available_stock} available, reorder {alert.suggested_quantity}'
            )
        self.stdout.write(
            self.style.SUCCESS(f'{len(triggered)} new alert(s)')
        )
