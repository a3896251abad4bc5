from django.core.management.base import BaseCommand, CommandError

from ....store.models import Store
from ...monitoring import check_exhausted_stock, check_low_stock


class Command(BaseCommand):
    help = "List inventories that are low on stock or out of stock"

    def add_arguments(self, parser):
        parser.add_argument(
            "--store",
            type=int,
            help="Only check inventories of the store with this ID",
        )

    def handle(self, *args, **options):
        store_id = options.get("store")
        if store_id is not None and not Store.objects.filter(pk=store_id).exists():
            raise CommandError(f"Store {store_id} does not exist")

        low_stock = check_low_stock(store_id)
        exhausted = check_exhausted_stock(store_id)

        if not low_stock and not exhausted:
            self.stdout.write(self.style.SUCCESS("All inventories are above threshold"))
            return

        self.stdout.write(f"\n=== Low stock ({len(low_stock)}) ===")
        for alert in low_stock:
            self.stdout.write(
                self.style.WARNING(
                    f"{alert.sku} @ store {alert.store_id}: "
                    f"{alert.quantity} left (threshold {alert.low_stock_threshold})"
                )
            )

        self.stdout.write(f"\n=== Out of stock ({len(exhausted)}) ===")
        for alert in exhausted:
            self.stdout.write(
                self.style.ERROR(f"{alert.sku} @ store {alert.store_id}: out of stock")
            )
