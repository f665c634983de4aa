# emergencies/management/commands/expire_requests.py
"""
Run the expiry sweep once (same work as the celery beat task)
Usage: python manage.py expire_requests
"""
from django.core.management.base import BaseCommand

from emergencies import lifecycle


class Command(BaseCommand):
    help = 'Mark OPEN emergency requests past their expiry time as EXPIRED'

    def handle(self, *args, **options):
        expired = lifecycle.expire_stale()
        self.stdout.write(self.style.SUCCESS(f'{expired} request(s) expired'))
