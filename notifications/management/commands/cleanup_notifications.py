from django.conf import settings
from django.core.management.base import BaseCommand

from notifications.services.notification_service import NotificationService


class Command(BaseCommand):
    help = "Delete notifications older than the retention window"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=settings.NOTIFICATION_RETENTION_DAYS,
            help="Retention window in days",
        )

    def handle(self, *args, **options):
        deleted = NotificationService.cleanup(options["days"])
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} notifications"))
