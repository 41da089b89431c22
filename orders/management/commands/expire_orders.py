from django.core.management.base import BaseCommand

from orders.services.order_service import OrderService


class Command(BaseCommand):
    help = "Cancel unpaid orders whose payment window has passed"

    def handle(self, *args, **options):
        expired = OrderService.expire_stale_orders()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} unpaid orders"))
