"""
Management command to expire overdue reservations.

Usage:
    python manage.py sweep_expired_reservations
    python manage.py sweep_expired_reservations --dry-run
"""

from django.core.management.base import BaseCommand

from stockkeeper import stock


class Command(BaseCommand):
    """Expire overdue reservations command."""

    help = 'Expires active reservations past their expiry and releases their stock'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many reservations would expire without changing anything'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired = stock.count_expired()
            self.stdout.write(f'{expired} reservation(s) would expire')
        else:
            count = stock.sweep_expired()
            self.stdout.write(
                self.style.SUCCESS(f'{count} reservation(s) expired')
            )
